"""
Error taxonomy shared by the auth, tenancy and user layers.

Every error carries a stable ``code`` and an HTTP ``status_code``; the message
text is for humans and is not part of the contract. Handlers in app.main turn
these into JSON responses via ``to_payload``.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    code = "internal_error"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        for key, value in self.details.items():
            if value is not None:
                payload[key] = value
        return payload


class ValidationError(AppError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    code = "authentication_error"
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(AppError):
    code = "authorization_error"
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    code = "conflict"
    status_code = 409
    default_message = "Conflict"


class AccountLocked(AppError):
    code = "account_locked"
    status_code = 423
    default_message = "Account locked due to too many failed attempts"


class RateLimited(AppError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many attempts, try again later"

    def __init__(self, retry_after: int, message: str | None = None):
        self.retry_after = retry_after
        super().__init__(message, details={"retry_after": retry_after})


class InternalError(AppError):
    pass


# Domain refinements. Callers catch the broad kinds above; tests and logs
# can still tell the specific condition apart by ``code``.


class InvalidSlug(ValidationError):
    code = "invalid_slug"
    default_message = "Slug must be 3-50 characters of lowercase letters, numbers and hyphens"


class InvalidRole(ValidationError):
    code = "invalid_role"
    default_message = "Invalid role"


class SlugTaken(ConflictError):
    code = "slug_taken"
    default_message = "Slug already taken"


class DuplicateEmail(ConflictError):
    code = "duplicate_email"
    default_message = "A user with this email already exists in this organization"


class UserLimitReached(AuthorizationError):
    code = "user_limit_reached"
    default_message = "User limit reached"


class InvalidCredentials(AuthenticationError):
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class InvalidToken(AuthenticationError):
    code = "invalid_token"
    default_message = "Invalid or expired token"


class Forbidden(AuthorizationError):
    code = "forbidden"
    default_message = "Insufficient permissions"
