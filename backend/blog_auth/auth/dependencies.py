from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from motor.motor_asyncio import AsyncIOMotorDatabase

from blog_auth.config import get_settings
from blog_auth.database import get_database
from blog_auth.users.model import Identity
from blog_auth.users.repository import MongoIdentityStore
from blog_auth.core.security import clock, password_hasher, token_codec
from blog_auth.core.interfaces import INotificationPort
from blog_auth.notifications.email import get_email_notifier
from blog_auth.auth.service import AuthService, TokenLifetimes
from blog_auth.auth.rate_limiter import LoginRateLimiter
from blog_auth.auth.exceptions import AccessTokenExpiredError, InvalidAccessTokenError

settings = get_settings()

security = HTTPBearer()


def get_identity_store(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
) -> MongoIdentityStore:
    return MongoIdentityStore(db, password_hasher=password_hasher, clock=clock)


def get_notifier() -> INotificationPort:
    return get_email_notifier()


def get_auth_service(
    identity_store: Annotated[MongoIdentityStore, Depends(get_identity_store)],
    notifier: Annotated[INotificationPort, Depends(get_notifier)],
) -> AuthService:
    """Dependency injection for AuthService (Dependency Inversion Principle)."""
    return AuthService(
        identity_store=identity_store,
        password_hasher=password_hasher,
        token_codec=token_codec,
        notifier=notifier,
        clock=clock,
        lifetimes=TokenLifetimes.from_settings(settings),
        revoke_sessions_on_password_reset=settings.revoke_sessions_on_password_reset,
    )


def get_login_rate_limiter(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
) -> LoginRateLimiter:
    return LoginRateLimiter(
        db,
        clock=clock,
        max_attempts=settings.login_rate_limit_attempts,
        window_seconds=settings.login_rate_limit_window_seconds,
    )


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Identity:
    """Dependency to get current authenticated identity."""
    try:
        return await auth_service.get_current_identity(credentials.credentials)
    except (InvalidAccessTokenError, AccessTokenExpiredError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
