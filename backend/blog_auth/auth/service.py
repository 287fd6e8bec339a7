import dataclasses
import logging
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from blog_auth.auth.exceptions import (
    AccessTokenExpiredError,
    IdentityAlreadyExistsError,
    IdentityNotFoundError,
    InvalidAccessTokenError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidResetTokenError,
    NotificationDeliveryFailedError,
    PasswordResetFailedError,
    RefreshTokenExpiredError,
    ResetTokenExpiredError,
    TokenError,
    TokenExpiredError,
)
from blog_auth.auth.tokens import CredentialPair, TokenClaims, TokenKind
from blog_auth.config import Settings
from blog_auth.core.interfaces import (
    IClock,
    IIdentityStore,
    INotificationPort,
    IPasswordHasher,
    ITokenCodec,
)
from blog_auth.users.model import Identity, IdentityStatus, create_identity_document

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "User"


@dataclass(frozen=True)
class TokenLifetimes:
    access: timedelta = timedelta(minutes=15)
    refresh: timedelta = timedelta(days=7)
    password_reset: timedelta = timedelta(hours=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenLifetimes":
        return cls(
            access=timedelta(minutes=settings.jwt_access_token_expire_minutes),
            refresh=timedelta(days=settings.jwt_refresh_token_expire_days),
            password_reset=timedelta(minutes=settings.password_reset_token_expire_minutes),
        )


@dataclass(frozen=True)
class RegistrationInput:
    name: str
    email: str
    password: str
    phone: str | None = None
    image: str | None = None


@dataclass(frozen=True)
class LoginInput:
    """Credentials for login. Exactly one of email/phone is expected."""

    password: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class AuthenticationResult:
    identity: Identity
    tokens: CredentialPair


@dataclass(frozen=True)
class PasswordResetResult:
    email_sent: bool


@lru_cache(maxsize=8)
def _timing_equalization_hash(password_hasher: IPasswordHasher) -> str:
    # Verified against when the identity is unknown so both failure paths cost one hash check.
    return password_hasher.hash("timing-equalization-placeholder")


class AuthService:
    """Credential lifecycle: registration, login, logout, refresh and password reset."""

    def __init__(
        self,
        identity_store: IIdentityStore,
        password_hasher: IPasswordHasher,
        token_codec: ITokenCodec,
        notifier: INotificationPort,
        clock: IClock,
        lifetimes: TokenLifetimes | None = None,
        revoke_sessions_on_password_reset: bool = False,
    ) -> None:
        self._identity_store = identity_store
        self._password_hasher = password_hasher
        self._token_codec = token_codec
        self._notifier = notifier
        self._clock = clock
        self._lifetimes = lifetimes or TokenLifetimes()
        self._revoke_sessions_on_password_reset = revoke_sessions_on_password_reset

    async def register_user(self, data: RegistrationInput) -> Identity:
        """Create a logged-out identity. No token is issued and no email is sent."""
        if await self._identity_store.exists_by_email_or_phone(data.email, data.phone):
            raise IdentityAlreadyExistsError()

        document = create_identity_document(
            name=data.name,
            email=data.email,
            secret_hash=self._password_hasher.hash(data.password),
            phone=data.phone,
            image=data.image,
            now=self._clock.now(),
        )
        identity = await self._identity_store.create(document)
        logger.info(f"Registered identity {identity.id}")
        return identity

    async def authenticate_user(self, data: LoginInput) -> AuthenticationResult:
        """Verify credentials and issue an access/refresh pair.

        Unknown identity and wrong password raise the same error.
        """
        identity = await self._identity_store.find_by_email_or_phone(
            email=data.email, phone=data.phone, include_secret=True
        )
        if identity is None or not identity.secret_hash:
            self._password_hasher.verify(
                data.password, _timing_equalization_hash(self._password_hasher)
            )
            raise InvalidCredentialsError()

        if not self._password_hasher.verify(data.password, identity.secret_hash):
            raise InvalidCredentialsError()

        now = self._clock.now()
        await self._identity_store.update_fields(
            identity.id,
            {"status": IdentityStatus.LOGGED_IN, "last_authenticated_at": now},
        )

        generation = identity.token_generation
        tokens = CredentialPair(
            access_token=self._issue(TokenClaims.access(identity.id, generation)),
            refresh_token=self._issue(TokenClaims.refresh(identity.id, generation)),
        )
        logger.info(f"Identity {identity.id} logged in (generation {generation})")

        return AuthenticationResult(
            identity=dataclasses.replace(
                identity,
                status=IdentityStatus.LOGGED_IN,
                last_authenticated_at=now,
                secret_hash=None,
            ),
            tokens=tokens,
        )

    async def logout_user(self, identity_id: str) -> None:
        """Invalidate every access and refresh token issued so far for the identity."""
        identity = await self._identity_store.find_by_id(identity_id)
        if identity is None:
            raise IdentityNotFoundError(identity_id)

        updated = await self._identity_store.record_logout(identity_id)
        if updated is None:
            raise IdentityNotFoundError(identity_id)
        logger.info(f"Identity {identity_id} logged out (generation now {updated.token_generation})")

    async def verify_and_refresh_token(self, refresh_token: str) -> str:
        """Exchange a current-generation refresh token for a new access token."""
        try:
            decoded = self._token_codec.parse(refresh_token)
        except TokenExpiredError:
            raise RefreshTokenExpiredError()
        except TokenError:
            raise InvalidRefreshTokenError()

        claims = decoded.claims
        if claims.kind is not TokenKind.REFRESH:
            raise InvalidRefreshTokenError()

        identity = await self._identity_store.find_by_id(claims.subject_id)
        if identity is None:
            raise IdentityNotFoundError(claims.subject_id)

        if claims.generation != identity.token_generation:
            logger.warning(f"Rejected stale refresh token for identity {identity.id}")
            raise InvalidRefreshTokenError()

        return self._issue(TokenClaims.access(identity.id, identity.token_generation))

    async def create_password_reset_token(self, email: str) -> PasswordResetResult:
        """Email a reset token. Unknown addresses succeed without sending anything."""
        identity = await self._identity_store.find_by_email(email)
        if identity is None:
            return PasswordResetResult(email_sent=False)

        token = self._issue(TokenClaims.password_reset(identity.id))
        display_name = identity.name or DEFAULT_DISPLAY_NAME

        try:
            result = await self._notifier.send_password_reset(email, token, display_name)
        except Exception as e:
            logger.exception(f"Failed to send password reset email for identity {identity.id}")
            raise NotificationDeliveryFailedError() from e

        if not result.delivered:
            logger.error(f"Password reset email for identity {identity.id} was not delivered")
            raise NotificationDeliveryFailedError()

        return PasswordResetResult(email_sent=True)

    async def reset_user_password(self, token: str, new_password: str) -> None:
        """Replace the identity's password using a password reset token."""
        try:
            decoded = self._token_codec.parse(token)
        except TokenExpiredError:
            raise ResetTokenExpiredError()
        except TokenError:
            raise InvalidResetTokenError()

        claims = decoded.claims
        if claims.kind is not TokenKind.PASSWORD_RESET:
            raise InvalidResetTokenError()

        identity = await self._identity_store.find_by_id(claims.subject_id, include_secret=True)
        if identity is None:
            raise IdentityNotFoundError(claims.subject_id)

        previous_hash = identity.secret_hash
        await self._identity_store.set_secret(identity.id, new_password)

        updated = await self._identity_store.find_by_id(identity.id, include_secret=True)
        stored_hash = updated.secret_hash if updated else None
        if (
            not stored_hash
            or stored_hash == previous_hash
            or stored_hash == new_password
            or not self._password_hasher.verify(new_password, stored_hash)
        ):
            logger.error(f"Password write for identity {identity.id} did not produce a new hash")
            raise PasswordResetFailedError()

        if self._revoke_sessions_on_password_reset:
            await self._identity_store.record_logout(identity.id)
        logger.info(f"Password reset for identity {identity.id}")

    async def get_current_identity(self, access_token: str) -> Identity:
        """Resolve the identity behind a current-generation access token."""
        try:
            decoded = self._token_codec.parse(access_token)
        except TokenExpiredError:
            raise AccessTokenExpiredError()
        except TokenError:
            raise InvalidAccessTokenError()

        claims = decoded.claims
        if claims.kind is not TokenKind.ACCESS:
            raise InvalidAccessTokenError()

        identity = await self._identity_store.find_by_id(claims.subject_id)
        if identity is None or claims.generation != identity.token_generation:
            raise InvalidAccessTokenError()

        return identity

    def _issue(self, claims: TokenClaims) -> str:
        ttl = {
            TokenKind.ACCESS: self._lifetimes.access,
            TokenKind.REFRESH: self._lifetimes.refresh,
            TokenKind.PASSWORD_RESET: self._lifetimes.password_reset,
        }[claims.kind]
        return self._token_codec.issue(claims, ttl)
