from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class IdentityStatus(str, Enum):
    """Session status of an identity."""
    LOGGED_IN = "logged_in"
    LOGGED_OUT = "logged_out"


# Fields callers may never change through a generic update.
PROTECTED_FIELDS = frozenset({"_id", "id", "secret_hash", "token_generation"})


@dataclass(frozen=True)
class Identity:
    """Durable account record.

    ``secret_hash`` is only populated when the store was asked to include it.
    """

    id: str
    name: str
    email: str
    phone: str | None = None
    image: str | None = None
    status: IdentityStatus = IdentityStatus.LOGGED_OUT
    last_authenticated_at: datetime | None = None
    token_generation: int = 0
    secret_hash: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Identity":
        return cls(
            id=str(document["_id"]),
            name=document.get("name", ""),
            email=document["email"],
            phone=document.get("phone"),
            image=document.get("image"),
            status=IdentityStatus(document.get("status", IdentityStatus.LOGGED_OUT.value)),
            last_authenticated_at=document.get("last_authenticated_at"),
            token_generation=document.get("token_generation", 0),
            secret_hash=document.get("secret_hash"),
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )

    def public_view(self) -> dict[str, Any]:
        """Projection that is safe to return to clients."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "image": self.image,
            "status": self.status.value,
        }


def create_identity_document(
    name: str,
    email: str,
    secret_hash: str,
    phone: str | None = None,
    image: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Create an identity document for insertion.

    The phone key is omitted when absent so the sparse unique index ignores it.
    """
    now = now or datetime.now(timezone.utc)
    document: dict[str, Any] = {
        "name": name,
        "email": email,
        "secret_hash": secret_hash,
        "image": image,
        "status": IdentityStatus.LOGGED_OUT.value,
        "last_authenticated_at": None,
        "token_generation": 0,
        "created_at": now,
        "updated_at": now,
    }
    if phone:
        document["phone"] = phone
    return document
