"""Login rate limiter to slow down credential brute-forcing.

Fixed window per client key (usually the client IP), stored in MongoDB so the
limit holds across workers. Every attempt is counted with a single atomic
``$inc`` and the decision is made from the count that update returns.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from blog_auth.core.interfaces import IClock

logger = logging.getLogger(__name__)


def _ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Treat naive datetimes read back from MongoDB as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class LoginRateLimiter:
    """Counts login attempts per client key within a fixed window."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: IClock,
        max_attempts: int = 5,
        window_seconds: int = 60,
    ) -> None:
        self._collection = db["login_attempts"]
        self._clock = clock
        self._max_attempts = max_attempts
        self._window = timedelta(seconds=window_seconds)

    async def _increment(self, key: str, now: datetime) -> dict[str, Any]:
        return await self._collection.find_one_and_update(
            {"_id": key},
            {"$inc": {"attempts": 1}, "$setOnInsert": {"window_started": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def _restart_window(self, key: str, seen_start: Any, now: datetime) -> bool:
        """Start a new window unless another request already did."""
        result = await self._collection.update_one(
            {"_id": key, "window_started": seen_start},
            {"$set": {"attempts": 1, "window_started": now}},
        )
        return result.modified_count == 1

    async def hit(self, key: str) -> tuple[bool, int]:
        """Record one attempt for ``key``.

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        now = self._clock.now()
        data = await self._increment(key, now)

        window_started = _ensure_utc_aware(data["window_started"])
        if now - window_started >= self._window:
            if await self._restart_window(key, data["window_started"], now):
                return True, 0
            # Lost the race: count this attempt in the window the winner opened
            data = await self._increment(key, now)
            window_started = _ensure_utc_aware(data["window_started"])

        if data["attempts"] > self._max_attempts:
            retry_after = max(1, math.ceil((window_started + self._window - now).total_seconds()))
            logger.warning(f"Login rate limit reached for {key}")
            return False, retry_after

        return True, 0

    async def reset(self, key: str) -> None:
        """Forget attempts for ``key``."""
        await self._collection.delete_one({"_id": key})
