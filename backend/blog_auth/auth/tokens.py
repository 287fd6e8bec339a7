"""Token kinds and payload types shared by the codec and the auth service."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenKind(str, Enum):
    """Purpose of a signed token."""
    ACCESS = "access"
    REFRESH = "refresh"
    PASSWORD_RESET = "password_reset"

    @property
    def carries_generation(self) -> bool:
        return self is not TokenKind.PASSWORD_RESET


@dataclass(frozen=True)
class TokenClaims:
    """Business payload of a token.

    Access and refresh tokens carry a snapshot of the identity's token
    generation; password reset tokens never do.
    """

    subject_id: str
    kind: TokenKind
    generation: int | None = None

    def __post_init__(self) -> None:
        if not self.subject_id:
            raise ValueError("subject_id is required")
        if not isinstance(self.kind, TokenKind):
            raise ValueError(f"unknown token kind: {self.kind!r}")
        if self.kind.carries_generation:
            if isinstance(self.generation, bool) or not isinstance(self.generation, int):
                raise ValueError(f"{self.kind.value} token requires an integer generation")
            if self.generation < 0:
                raise ValueError("generation must be non-negative")
        elif self.generation is not None:
            raise ValueError(f"{self.kind.value} token must not carry a generation")

    @classmethod
    def access(cls, subject_id: str, generation: int) -> "TokenClaims":
        return cls(subject_id=subject_id, kind=TokenKind.ACCESS, generation=generation)

    @classmethod
    def refresh(cls, subject_id: str, generation: int) -> "TokenClaims":
        return cls(subject_id=subject_id, kind=TokenKind.REFRESH, generation=generation)

    @classmethod
    def password_reset(cls, subject_id: str) -> "TokenClaims":
        return cls(subject_id=subject_id, kind=TokenKind.PASSWORD_RESET)


@dataclass(frozen=True)
class DecodedToken:
    """Claims plus the timestamps the codec stamped at issuance."""

    claims: TokenClaims
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class CredentialPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
