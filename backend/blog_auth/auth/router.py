import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from blog_auth.auth.schemas import (
    RegisterRequest,
    LoginRequest,
    TokenResponse,
    AccessTokenResponse,
    RefreshRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    MessageResponse,
)
from blog_auth.auth.service import AuthService, LoginInput, RegistrationInput
from blog_auth.auth.rate_limiter import LoginRateLimiter
from blog_auth.auth.dependencies import (
    get_auth_service,
    get_current_identity,
    get_login_rate_limiter,
)
from blog_auth.auth.exceptions import (
    AuthError,
    AuthInternalError,
    IdentityAlreadyExistsError,
    IdentityNotFoundError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    RefreshTokenExpiredError,
    InvalidResetTokenError,
    ResetTokenExpiredError,
    SecretTooLongError,
    TooManyLoginAttemptsError,
)
from blog_auth.users.model import Identity
from blog_auth.users.schemas import IdentityResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_TOKEN_SENT = "Password reset token has been sent to your email"

_STATUS_BY_ERROR: dict[type[AuthError], int] = {
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    IdentityAlreadyExistsError: status.HTTP_409_CONFLICT,
    IdentityNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidRefreshTokenError: status.HTTP_401_UNAUTHORIZED,
    RefreshTokenExpiredError: status.HTTP_401_UNAUTHORIZED,
    InvalidResetTokenError: status.HTTP_401_UNAUTHORIZED,
    ResetTokenExpiredError: status.HTTP_401_UNAUTHORIZED,
    SecretTooLongError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TooManyLoginAttemptsError: status.HTTP_429_TOO_MANY_REQUESTS,
}


def _to_http_exception(error: AuthError) -> HTTPException:
    """Map a service error to its HTTP response (one place for every route)."""
    if isinstance(error, AuthInternalError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error.message,
        )
    headers = None
    if isinstance(error, TooManyLoginAttemptsError):
        headers = {"Retry-After": str(error.retry_after)}
    return HTTPException(
        status_code=_STATUS_BY_ERROR.get(type(error), status.HTTP_400_BAD_REQUEST),
        detail=error.message,
        headers=headers,
    )


@router.post("/register", response_model=IdentityResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> IdentityResponse:
    """Register a new account."""
    try:
        identity = await auth_service.register_user(
            RegistrationInput(
                name=request.name,
                email=request.email,
                password=request.password,
                phone=request.phone,
                image=request.image,
            )
        )
    except AuthError as e:
        raise _to_http_exception(e)
    return IdentityResponse.from_identity(identity)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    http_request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    rate_limiter: Annotated[LoginRateLimiter, Depends(get_login_rate_limiter)],
) -> TokenResponse:
    """Login with email or phone and get access/refresh tokens."""
    client_key = http_request.client.host if http_request.client else "unknown"
    allowed, retry_after = await rate_limiter.hit(client_key)
    if not allowed:
        raise _to_http_exception(TooManyLoginAttemptsError(retry_after))

    try:
        result = await auth_service.authenticate_user(
            LoginInput(password=request.password, email=request.email, phone=request.phone)
        )
    except AuthError as e:
        raise _to_http_exception(e)

    return TokenResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        user=IdentityResponse.from_identity(result.identity),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    current_identity: Annotated[Identity, Depends(get_current_identity)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Logout and invalidate every token issued to the current identity."""
    try:
        await auth_service.logout_user(current_identity.id)
    except AuthError as e:
        raise _to_http_exception(e)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(
    request: RefreshRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AccessTokenResponse:
    """Refresh access token using refresh token."""
    try:
        access_token = await auth_service.verify_and_refresh_token(request.refresh_token)
    except IdentityNotFoundError:
        raise _to_http_exception(InvalidRefreshTokenError())
    except AuthError as e:
        raise _to_http_exception(e)
    return AccessTokenResponse(access_token=access_token)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Send a password reset link. Responds the same whether or not the email is known."""
    try:
        await auth_service.create_password_reset_token(request.email)
    except AuthError as e:
        raise _to_http_exception(e)
    return MessageResponse(message=RESET_TOKEN_SENT)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Set a new password using a password reset token."""
    try:
        await auth_service.reset_user_password(request.token, request.password)
    except IdentityNotFoundError:
        raise _to_http_exception(InvalidResetTokenError())
    except AuthInternalError as e:
        logger.exception("Password reset failed")
        raise _to_http_exception(e)
    except AuthError as e:
        raise _to_http_exception(e)
    return MessageResponse(message="Password has been reset successfully")


@router.get("/me", response_model=IdentityResponse)
async def get_me(
    current_identity: Annotated[Identity, Depends(get_current_identity)],
) -> IdentityResponse:
    """Get current authenticated identity."""
    return IdentityResponse.from_identity(current_identity)
