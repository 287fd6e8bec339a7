from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from blog_auth.auth.tokens import DecodedToken, TokenClaims
from blog_auth.users.model import Identity


class IClock(ABC):
    """Interface for the current time (injectable for tests)."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        pass


class IPasswordHasher(ABC):
    """Interface for password hashing operations (Interface Segregation)."""

    @abstractmethod
    def hash(self, password: str) -> str:
        """Hash a plain text password."""
        pass

    @abstractmethod
    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a plain password against a hashed one."""
        pass


class ITokenCodec(ABC):
    """Interface for signing and verifying typed tokens."""

    @abstractmethod
    def issue(self, claims: TokenClaims, ttl: timedelta) -> str:
        """Sign claims with issued-at/expiry timestamps."""
        pass

    @abstractmethod
    def parse(self, token: str) -> DecodedToken:
        """Verify structure, signature and expiry; raise a TokenError otherwise."""
        pass


class IIdentityStore(ABC):
    """Interface for identity data access (Interface Segregation)."""

    @abstractmethod
    async def find_by_email_or_phone(
        self,
        email: str | None = None,
        phone: str | None = None,
        include_secret: bool = False,
    ) -> Identity | None:
        """Find an identity by email, or by phone when no email is given."""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Identity | None:
        pass

    @abstractmethod
    async def find_by_id(self, identity_id: str, include_secret: bool = False) -> Identity | None:
        pass

    @abstractmethod
    async def exists_by_email_or_phone(
        self, email: str | None = None, phone: str | None = None
    ) -> bool:
        """True if any identity uses the given email or the given phone."""
        pass

    @abstractmethod
    async def create(self, document: dict[str, Any]) -> Identity:
        """Persist a new identity document."""
        pass

    @abstractmethod
    async def update_fields(self, identity_id: str, fields: dict[str, Any]) -> None:
        """Set plain fields. Never touches the secret hash or the token generation."""
        pass

    @abstractmethod
    async def set_secret(self, identity_id: str, plain_password: str) -> None:
        """Hash and store a new secret for the identity."""
        pass

    @abstractmethod
    async def record_logout(self, identity_id: str) -> Identity | None:
        """Atomically mark logged out and bump the token generation by one."""
        pass


@dataclass(frozen=True)
class NotificationResult:
    delivered: bool


class INotificationPort(ABC):
    """Interface for outbound user notifications."""

    @abstractmethod
    async def send_password_reset(
        self, email: str, token: str, display_name: str
    ) -> NotificationResult:
        """Deliver a password reset token to the address."""
        pass
