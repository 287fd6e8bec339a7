ERROR_MESSAGES: dict[str, str] = {
    "INVALID_CREDENTIALS": "Invalid credentials",
    "USER_ALREADY_EXISTS": "User with that email or phone already exists",
    "USER_NOT_FOUND": "User not found",
    "INVALID_TOKEN": "Invalid token",
    "ACCESS_TOKEN_EXPIRED": "Access token has expired. Please refresh your token",
    "INVALID_REFRESH_TOKEN": "Invalid or expired refresh token",
    "REFRESH_TOKEN_EXPIRED": "Refresh token has expired. Please login again",
    "INVALID_RESET_TOKEN": "Invalid or expired reset token",
    "RESET_TOKEN_EXPIRED": "Reset token has expired. Please request a new one",
    "EMAIL_SEND_FAILED": "Failed to send email. Please try again later",
    "PASSWORD_RESET_FAILED": "Could not perform operation at this time, kindly try again later.",
    "TOO_MANY_REQUESTS": "Too many requests, please try again later",
    "PASSWORD_TOO_LONG": "Password must be at most 72 bytes",
}


class ConfigurationError(Exception):
    """Raised when the service is missing required configuration (fatal at startup)."""

    pass


# Codec-level errors. AuthService always translates these into business errors.


class TokenError(Exception):
    """Base codec-level token error."""

    pass


class MalformedTokenError(TokenError):
    """Raised when a token is not a structurally valid signed token."""

    def __init__(self, message: str = "Malformed token") -> None:
        super().__init__(message)


class InvalidSignatureError(TokenError):
    """Raised when a token signature does not verify."""

    def __init__(self) -> None:
        super().__init__("Token signature verification failed")


class TokenExpiredError(TokenError):
    """Raised when a token is past its expiry."""

    def __init__(self) -> None:
        super().__init__("Token has expired")


# Business-level errors


class AuthError(Exception):
    """Base authentication error with a stable machine-readable code."""

    code = "AUTH_ERROR"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    """Raised when login credentials are invalid (unknown identity or wrong secret)."""

    code = "INVALID_CREDENTIALS"


class IdentityAlreadyExistsError(AuthError):
    """Raised when trying to register with an email or phone already in use."""

    code = "USER_ALREADY_EXISTS"


class IdentityNotFoundError(AuthError):
    """Raised when an identity referenced by id does not exist."""

    code = "USER_NOT_FOUND"

    def __init__(self, identity_id: str | None = None) -> None:
        self.identity_id = identity_id
        super().__init__()


class InvalidAccessTokenError(AuthError):
    code = "INVALID_TOKEN"


class AccessTokenExpiredError(AuthError):
    code = "ACCESS_TOKEN_EXPIRED"


class InvalidRefreshTokenError(AuthError):
    """Raised for malformed, tampered, wrong-kind or revoked refresh tokens."""

    code = "INVALID_REFRESH_TOKEN"


class RefreshTokenExpiredError(AuthError):
    code = "REFRESH_TOKEN_EXPIRED"


class InvalidResetTokenError(AuthError):
    code = "INVALID_RESET_TOKEN"


class ResetTokenExpiredError(AuthError):
    code = "RESET_TOKEN_EXPIRED"


class SecretTooLongError(AuthError):
    """Raised when a password exceeds what bcrypt can hash."""

    code = "PASSWORD_TOO_LONG"


class TooManyLoginAttemptsError(AuthError):
    """Raised when a client exceeds the login rate limit."""

    code = "TOO_MANY_REQUESTS"

    def __init__(self, retry_after: int = 0) -> None:
        self.retry_after = retry_after
        super().__init__()


class AuthInternalError(AuthError):
    """Base for failures that signal a broken collaborator, not a bad request."""

    code = "INTERNAL_ERROR"


class NotificationDeliveryFailedError(AuthInternalError):
    """Raised when a password reset token was generated but could not be delivered."""

    code = "EMAIL_SEND_FAILED"


class PasswordResetFailedError(AuthInternalError):
    """Raised when a password write did not produce a fresh hash."""

    code = "PASSWORD_RESET_FAILED"
