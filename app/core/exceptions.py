"""Application error taxonomy. Handlers in app.main turn these into the JSON envelope."""

from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, details: Any = None):
        self.message = message or self.message
        self.code = code or self.code
        self.details = details
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Validation errors"


class DuplicateIdentity(AppError):
    status_code = 400
    code = "DUPLICATE_IDENTITY"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"User with this {field} already exists", details={"field": field})


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "User not found"


class AlreadyVerified(AppError):
    status_code = 400
    code = "ALREADY_VERIFIED"
    message = "User is already verified"


class InvalidOrExpiredToken(AppError):
    status_code = 400
    code = "INVALID_OR_EXPIRED_TOKEN"
    message = "Invalid or expired verification token"


class InvalidCredentials(AppError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class EmailNotVerified(AppError):
    status_code = 401
    code = "EMAIL_NOT_VERIFIED"
    message = "Please verify your email first"


class AccountDisabled(AppError):
    status_code = 401
    code = "ACCOUNT_DISABLED"
    message = "Account is disabled or banned"


class Unauthenticated(AppError):
    status_code = 401
    code = "NO_TOKEN"
    message = "Access denied. No token provided."


class InvalidToken(AppError):
    status_code = 401
    code = "INVALID_TOKEN"
    message = "Invalid token."


class TokenExpired(AppError):
    status_code = 401
    code = "TOKEN_EXPIRED"
    message = "Token expired. Please refresh or log in again."


class InvalidRefreshToken(AppError):
    status_code = 401
    code = "INVALID_REFRESH_TOKEN"
    message = "Invalid refresh token"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Access denied. Admin privileges required."


class TooManyRequests(AppError):
    status_code = 429
    code = "RATE_LIMITED"
    message = "Too many attempts, please try again later."


class CollaboratorError(AppError):
    status_code = 502
    code = "UPSTREAM_ERROR"
    message = "An external service failed"
