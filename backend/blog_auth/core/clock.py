from datetime import datetime, timezone

from blog_auth.core.interfaces import IClock


class SystemClock(IClock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
