"""
Domain exceptions package for RhymeRumble.

Exports
-------
- All domain exception classes (defined in modules.shared.exceptions)
- EXCEPTION_TEMPLATES: Registry mapping exception types to user-facing templates
- format_exception: Render an exception into a user-facing payload
"""

from src.modules.shared.exceptions import (
    AlreadyFriendsError,
    DuplicateRequestError,
    ErrorSeverity,
    FriendshipError,
    InvalidOperationError,
    InvalidSelfRequestError,
    InvalidTransitionError,
    NoSuchEdgeError,
    NotFoundError,
    RequestBlockedError,
    RumbleDomainException,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

from .registry import EXCEPTION_TEMPLATES, format_exception, get_exception_template

__all__ = [
    # Exception classes
    "RumbleDomainException",
    "NotFoundError",
    "ValidationError",
    "InvalidOperationError",
    "FriendshipError",
    "InvalidSelfRequestError",
    "DuplicateRequestError",
    "AlreadyFriendsError",
    "RequestBlockedError",
    "InvalidTransitionError",
    "NoSuchEdgeError",
    "ErrorSeverity",
    # Utilities
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Registry
    "EXCEPTION_TEMPLATES",
    "format_exception",
    "get_exception_template",
]
