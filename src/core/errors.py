"""
Custom exceptions and error handling for Tripbook.

Defines application-specific exceptions with error codes and HTTP status codes
so handlers can translate any failure into the JSON response envelope.

Usage:
    from core.errors import InvalidAmountError, ErrorCode

    raise InvalidAmountError("Refund amount cannot exceed 150.0 USD")
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for client-facing error messages."""

    # Authentication errors
    AUTH_FAILED = "AUTH_FAILED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"

    # Authorization errors
    FORBIDDEN = "FORBIDDEN"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    # Payment errors
    INVALID_STATE = "INVALID_STATE"
    INVALID_AMOUNT = "INVALID_AMOUNT"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # System errors
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.AUTH_FAILED: "Authentication failed. Please sign in again.",
    ErrorCode.INVALID_TOKEN: "Access denied. Invalid token.",
    ErrorCode.TOKEN_EXPIRED: "Access denied. Token has expired.",
    ErrorCode.ACCOUNT_LOCKED: "Account is temporarily locked due to failed login attempts.",
    ErrorCode.FORBIDDEN: "Access denied. You do not have permission to access this resource.",
    ErrorCode.EMAIL_NOT_VERIFIED: "Email verification required. Please verify your email address.",
    ErrorCode.NOT_FOUND: "Resource not found.",
    ErrorCode.CONFLICT: "The resource already exists.",
    ErrorCode.CONCURRENT_MODIFICATION: "The resource was modified by another request. Please retry.",
    ErrorCode.INVALID_STATE: "The operation is not allowed in the resource's current state.",
    ErrorCode.INVALID_AMOUNT: "The requested amount is not allowed.",
    ErrorCode.VALIDATION_ERROR: "Validation errors",
    ErrorCode.INVALID_REQUEST: "Invalid request format. Please try again.",
    ErrorCode.RATE_LIMITED: "Too many requests. Please try again later.",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Please try again.",
}


class TripbookError(Exception):
    """Base exception for all Tripbook errors."""

    status_code: int = 500
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: ErrorCode | None = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.code, USER_MESSAGES[ErrorCode.INTERNAL_ERROR])

    def extra(self) -> dict[str, Any]:
        """Additional envelope fields for this error."""
        return {}


class ValidationError(TripbookError):
    """Input validation or schema validation failed."""

    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        errors: list[dict[str, str]] | None = None,
    ):
        super().__init__(message, code)
        self.errors = errors or []

    def extra(self) -> dict[str, Any]:
        return {"errors": self.errors} if self.errors else {}


class AuthenticationError(TripbookError):
    """Credential missing, invalid or expired."""

    status_code = 401
    default_code = ErrorCode.AUTH_FAILED


class AccountLockedError(TripbookError):
    """Account locked after repeated failed logins."""

    status_code = 423
    default_code = ErrorCode.ACCOUNT_LOCKED


class PermissionDeniedError(TripbookError):
    """Role, ownership or verification check failed."""

    status_code = 403
    default_code = ErrorCode.FORBIDDEN

    def extra(self) -> dict[str, Any]:
        if self.code == ErrorCode.EMAIL_NOT_VERIFIED:
            return {"requiresEmailVerification": True}
        return {}


class NotFoundError(TripbookError):
    status_code = 404
    default_code = ErrorCode.NOT_FOUND


class ConflictError(TripbookError):
    """Unique field already taken."""

    status_code = 409
    default_code = ErrorCode.CONFLICT


class ConcurrentModificationError(ConflictError):
    """Stored document version changed between read and write."""

    default_code = ErrorCode.CONCURRENT_MODIFICATION


class RateLimitError(TripbookError):
    status_code = 429
    default_code = ErrorCode.RATE_LIMITED

    def __init__(self, message: str, retry_after: int, code: ErrorCode | None = None):
        super().__init__(message, code)
        self.retry_after = retry_after

    def extra(self) -> dict[str, Any]:
        return {"retryAfter": self.retry_after}


class InvalidStateError(TripbookError):
    """Business rule rejects the transition from the current state."""

    status_code = 400
    default_code = ErrorCode.INVALID_STATE


class InvalidAmountError(TripbookError):
    """Monetary amount violates a payment invariant."""

    status_code = 400
    default_code = ErrorCode.INVALID_AMOUNT
