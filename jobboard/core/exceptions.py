"""
Application error taxonomy.

Every error a route can surface to a client is an ``AppError`` subclass with
an HTTP status, a machine-readable ``code`` and a human message. The error
translator in ``jobboard.core.error_handlers`` renders them; anything that is
not an ``AppError`` is treated as an unexpected failure.
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors that are safe to show to clients."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Something went wrong!"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    @property
    def status(self) -> str:
        """``fail`` for client errors, ``error`` for server errors."""
        return "fail" if self.status_code < 500 else "error"


# 400
class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class InvalidOrExpiredToken(ValidationError):
    code = "INVALID_OR_EXPIRED_TOKEN"
    message = "Invalid or expired reset token"


class ConflictError(AppError):
    status_code = 400
    code = "CONFLICT"
    message = "Resource already exists"


class DuplicateEmail(ConflictError):
    code = "DUPLICATE_EMAIL"
    message = "Email already registered"


# 401 / 423
class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_FAILED"
    message = "Authentication failed"


class InvalidCredentials(AuthenticationError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class NotAuthenticated(AuthenticationError):
    code = "NOT_AUTHENTICATED"
    message = "Not authenticated. Please login."


class TokenExpired(AuthenticationError):
    code = "TOKEN_EXPIRED"
    message = "Token expired. Please refresh."


class InvalidToken(AuthenticationError):
    code = "INVALID_TOKEN"
    message = "Invalid token."


class NoToken(AuthenticationError):
    code = "NO_TOKEN"
    message = "No refresh token provided"


class InvalidRefreshToken(AuthenticationError):
    code = "INVALID_REFRESH_TOKEN"
    message = "Invalid refresh token"


class CurrentPasswordIncorrect(AuthenticationError):
    code = "CURRENT_PASSWORD_INCORRECT"
    message = "Current password is incorrect"


class AccountLocked(AuthenticationError):
    status_code = 423
    code = "ACCOUNT_LOCKED"
    message = "Account locked. Try again later."


# 403
class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Not authorized for this action."


class Forbidden(AuthorizationError):
    pass


class AccountDeactivated(AuthorizationError):
    code = "ACCOUNT_DEACTIVATED"
    message = "Account deactivated. Contact support."


# 404
class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"
    message = "User not found"


class ServiceNotFound(NotFoundError):
    code = "SERVICE_NOT_FOUND"
    message = "Route not found"


# 429
class RateLimitExceeded(AppError):
    status_code = 429
    code = "RATE_LIMITED"
    message = "Too many requests. Please slow down."


# 502
class UpstreamUnavailable(AppError):
    status_code = 502
    code = "SERVICE_UNAVAILABLE"
    message = "Service unavailable"
