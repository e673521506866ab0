"""
Domain exceptions raised by the service layer and their HTTP mapping.
"""

from typing import Optional


class PortalError(Exception):
    """Base class for domain errors surfaced to API callers."""

    error_type = "portal_error"

    def __init__(self, message: str, status_code: int = 500, original_error: Optional[Exception] = None):
        self.message = message
        self.status_code = status_code
        self.original_error = original_error
        super().__init__(self.message)


class ValidationError(PortalError):
    """Raised when input is malformed or violates a business rule."""

    error_type = "validation_error"

    def __init__(self, message: str = "Validation error", original_error: Optional[Exception] = None):
        super().__init__(message, 400, original_error)


class AuthenticationError(PortalError):
    """Raised for missing sessions, bad credentials or bad 2FA codes."""

    error_type = "authentication_error"

    def __init__(self, message: str = "Authentication required", original_error: Optional[Exception] = None):
        super().__init__(message, 401, original_error)


class EmailNotVerifiedError(PortalError):
    """Raised when an unverified user tries to log in."""

    error_type = "email_not_verified"

    def __init__(
        self,
        message: str = "Email not verified. Please check your email and verify your account.",
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, 403, original_error)


class PermissionDeniedError(PortalError):
    """Raised when the caller lacks the role for an operation."""

    error_type = "permission_denied"

    def __init__(self, message: str = "Permission denied", original_error: Optional[Exception] = None):
        super().__init__(message, 403, original_error)


class NotFoundError(PortalError):
    """Raised when an id does not resolve within the caller's account."""

    error_type = "not_found"

    def __init__(self, message: str = "Resource not found", original_error: Optional[Exception] = None):
        super().__init__(message, 404, original_error)


class ConflictError(PortalError):
    """Raised on uniqueness violations and blocked deletions."""

    error_type = "conflict"

    def __init__(self, message: str = "Resource conflict", original_error: Optional[Exception] = None):
        super().__init__(message, 409, original_error)


class InsufficientCreditsError(PortalError):
    """Raised when a debit would take a balance below zero."""

    error_type = "insufficient_credits"

    def __init__(self, message: str = "Insufficient credits", original_error: Optional[Exception] = None):
        super().__init__(message, 402, original_error)


class FileTooLargeError(PortalError):
    """Raised when an upload exceeds MAX_FILE_SIZE."""

    error_type = "file_too_large"

    def __init__(self, message: str = "File too large", original_error: Optional[Exception] = None):
        super().__init__(message, 413, original_error)
