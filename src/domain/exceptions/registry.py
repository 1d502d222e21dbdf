"""
Exception message template registry for RhymeRumble.

Purpose
-------
Single source of truth for exception-to-message mappings. Converts domain and
infrastructure exceptions into user-facing payloads (title, description,
help text, severity) for whatever client renders them.

Design Notes
------------
Each template contains:
- title: Short, clear error title
- template: Message template with {placeholder} interpolation from `details`
- help_text: Optional guidance for the user
- severity: ErrorSeverity level for visual styling

Lookup walks the exception's MRO, so a subclass without its own template
uses the nearest registered ancestor.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    EventBusError,
    RumbleInfrastructureException,
)
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
)


class ExceptionTemplate:
    """Template for formatting exception messages."""

    def __init__(
        self,
        title: str,
        template: str,
        help_text: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ):
        self.title = title
        self.template = template
        self.help_text = help_text
        self.severity = severity

    def format(self, exception: Exception) -> Dict[str, Any]:
        """
        Format exception using template.

        Returns:
            Dict with 'title', 'description', 'help_text', 'severity'
        """
        details: Dict[str, Any] = {}
        if isinstance(exception, (RumbleDomainException, RumbleInfrastructureException)):
            details = exception.details.copy()

        try:
            description = self.template.format(**details)
        except KeyError:
            # Template placeholders missing from details
            description = getattr(exception, "message", str(exception))

        return {
            "title": self.title,
            "description": description,
            "help_text": self.help_text,
            "severity": self.severity,
        }


# ============================================================================
# EXCEPTION TEMPLATE REGISTRY
# ============================================================================

EXCEPTION_TEMPLATES: Dict[type, ExceptionTemplate] = {
    # Domain Exceptions
    NotFoundError: ExceptionTemplate(
        title="Not Found",
        template="{resource_type} not found.",
        severity=ErrorSeverity.INFO,
    ),
    ValidationError: ExceptionTemplate(
        title="Invalid Input",
        template="{field}: {validation_message}",
        help_text="Please check your input and try again.",
        severity=ErrorSeverity.INFO,
    ),
    InvalidOperationError: ExceptionTemplate(
        title="Invalid Operation",
        template="{reason}",
        severity=ErrorSeverity.INFO,
    ),
    # Friendship
    FriendshipError: ExceptionTemplate(
        title="Friend Request Failed",
        template="This friendship action is not allowed.",
        severity=ErrorSeverity.INFO,
    ),
    InvalidSelfRequestError: ExceptionTemplate(
        title="Invalid Request",
        template="You can't send a friend request to yourself.",
        severity=ErrorSeverity.INFO,
    ),
    DuplicateRequestError: ExceptionTemplate(
        title="Request Already Sent",
        template="A friend request is already pending between you and this user.",
        help_text="Check your sent and received requests.",
        severity=ErrorSeverity.INFO,
    ),
    AlreadyFriendsError: ExceptionTemplate(
        title="Already Friends",
        template="You are already friends with this user.",
        severity=ErrorSeverity.INFO,
    ),
    RequestBlockedError: ExceptionTemplate(
        title="Request Blocked",
        template="You can't send a friend request to this user.",
        help_text="Remove the block first if you want to reconnect.",
        severity=ErrorSeverity.INFO,
    ),
    InvalidTransitionError: ExceptionTemplate(
        title="Request Unavailable",
        template="This request can no longer be answered (it is {current_status}).",
        severity=ErrorSeverity.INFO,
    ),
    NoSuchEdgeError: ExceptionTemplate(
        title="Not Connected",
        template="There is no friendship with this user to remove.",
        severity=ErrorSeverity.INFO,
    ),
    # Infrastructure Exceptions
    ConfigurationError: ExceptionTemplate(
        title="Configuration Error",
        template="A system configuration error occurred. Please contact support.",
        help_text="Error code: CONFIG_ERROR",
        severity=ErrorSeverity.CRITICAL,
    ),
    DatabaseError: ExceptionTemplate(
        title="Database Error",
        template="A database error occurred. Please try again in a moment.",
        help_text="If this persists, contact support.",
        severity=ErrorSeverity.ERROR,
    ),
    EventBusError: ExceptionTemplate(
        title="Event Processing Error",
        template="An error occurred processing your request. Please try again.",
        severity=ErrorSeverity.ERROR,
    ),
}

_FALLBACK_TEMPLATE = ExceptionTemplate(
    title="Something Went Wrong",
    template="An unexpected error occurred. Please try again.",
    severity=ErrorSeverity.ERROR,
)


def get_exception_template(exception: Exception) -> Optional[ExceptionTemplate]:
    """
    Get the template registered for the exception type or its nearest ancestor.

    Returns:
        ExceptionTemplate if found, None otherwise
    """
    for klass in type(exception).__mro__:
        template = EXCEPTION_TEMPLATES.get(klass)
        if template is not None:
            return template
    return None


def format_exception(exception: Exception) -> Dict[str, Any]:
    """Render any exception into a user-facing payload."""
    template = get_exception_template(exception) or _FALLBACK_TEMPLATE
    payload = template.format(exception)
    payload["error_code"] = getattr(exception, "error_code", type(exception).__name__)
    return payload
