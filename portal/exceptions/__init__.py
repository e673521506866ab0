"""
Custom exceptions for the Translation Order Portal.
"""

from .portal_exceptions import (
    PortalError,
    ValidationError,
    AuthenticationError,
    EmailNotVerifiedError,
    PermissionDeniedError,
    NotFoundError,
    ConflictError,
    InsufficientCreditsError,
    FileTooLargeError,
)

__all__ = [
    "PortalError",
    "ValidationError",
    "AuthenticationError",
    "EmailNotVerifiedError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "InsufficientCreditsError",
    "FileTooLargeError",
]
