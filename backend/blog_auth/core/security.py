from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError

from blog_auth.auth.exceptions import (
    ConfigurationError,
    InvalidSignatureError,
    MalformedTokenError,
    SecretTooLongError,
    TokenExpiredError,
)
from blog_auth.auth.tokens import DecodedToken, TokenClaims, TokenKind
from blog_auth.config import get_settings
from blog_auth.core.clock import SystemClock
from blog_auth.core.interfaces import IClock, IPasswordHasher, ITokenCodec

settings = get_settings()

# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


class BcryptPasswordHasher(IPasswordHasher):
    """Bcrypt password hasher implementation (Single Responsibility)."""

    def __init__(self, rounds: int = settings.bcrypt_rounds) -> None:
        self._rounds = rounds

    def hash(self, password: str) -> str:
        encoded = password.encode()
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise SecretTooLongError()
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode()

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        encoded = plain_password.encode()
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed_password.encode())
        except ValueError:
            # Not a bcrypt hash
            return False


class JWTTokenCodec(ITokenCodec):
    """HS256 JWT codec. Expiry is judged against the injected clock."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        clock: IClock | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._clock = clock or SystemClock()

    def ensure_configured(self) -> None:
        if not self._secret_key:
            raise ConfigurationError("JWT secret key is not configured")

    def issue(self, claims: TokenClaims, ttl: timedelta) -> str:
        self.ensure_configured()
        issued_at = int(self._clock.now().timestamp())
        payload: dict[str, Any] = {
            "sub": claims.subject_id,
            "typ": claims.kind.value,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
        }
        if claims.generation is not None:
            payload["gen"] = claims.generation
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def parse(self, token: str) -> DecodedToken:
        self.ensure_configured()
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except (JWTError, AttributeError, TypeError):
            raise MalformedTokenError()

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTClaimsError as e:
            raise MalformedTokenError(str(e))
        except JWTError:
            raise InvalidSignatureError()

        decoded = self._to_decoded(payload)
        if self._clock.now() >= decoded.expires_at:
            raise TokenExpiredError()
        return decoded

    def _to_decoded(self, payload: dict[str, Any]) -> DecodedToken:
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise MalformedTokenError("Token timestamps are missing or invalid")

        try:
            claims = TokenClaims(
                subject_id=payload.get("sub"),
                kind=TokenKind(payload.get("typ")),
                generation=payload.get("gen"),
            )
        except ValueError as e:
            raise MalformedTokenError(str(e))

        return DecodedToken(
            claims=claims,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


# Default instances (can be overridden for testing via Dependency Injection)
clock = SystemClock()
password_hasher = BcryptPasswordHasher()
token_codec = JWTTokenCodec(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    clock=clock,
)
