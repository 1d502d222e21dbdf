"""
Domain exceptions for the RhymeRumble backend.

Purpose
-------
Define the structured, domain-specific exception hierarchy for business rule
violations and user-facing errors. Services raise these; the calling
application layer renders them through `src.domain.exceptions` templates.

Design Notes
------------
- All domain exceptions inherit from `RumbleDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Friendship rejections are business-rule errors: INFO severity and never
  retryable.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import ErrorSeverity, RumbleInfrastructureException


class RumbleDomainException(Exception):
    """
    Base exception for all domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise RumbleDomainException(
        ...     "Theme closed",
        ...     {"theme_id": "a1b2"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


# ============================================================================
# Generic domain errors
# ============================================================================


class NotFoundError(RumbleDomainException):
    """
    Raised when a requested resource cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Profile", "Poem", "Theme")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"
        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(RumbleDomainException):
    """
    Raised when user input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class InvalidOperationError(RumbleDomainException):
    """
    Raised when a user attempts an action that violates product rules.

    Args:
        action: Description of the invalid action
        reason: Explanation of why it's not allowed

    Example:
        >>> raise InvalidOperationError(
        ...     "close_theme",
        ...     "Only the theme creator can close it"
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={
                "action": action,
                "reason": reason,
            },
            error_code=f"INVALID_{action.upper()}",
        )


# ============================================================================
# Friendship errors
# ============================================================================


class FriendshipError(RumbleDomainException):
    """Base class for friend-request rejections."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False


class InvalidSelfRequestError(FriendshipError):
    """Raised when a user targets themselves with a friendship action."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(
            "Cannot form a friendship with yourself",
            details={"user_id": user_id},
            error_code="FRIENDSHIP_SELF_REQUEST",
        )


class DuplicateRequestError(FriendshipError):
    """Raised when a pending request already exists for the pair."""

    def __init__(
        self, user_id: str, other_id: str, requested_by: Optional[str] = None
    ) -> None:
        self.user_id = user_id
        self.other_id = other_id
        self.requested_by = requested_by
        super().__init__(
            "A friend request between these users is already pending",
            details={
                "user_id": user_id,
                "other_id": other_id,
                "requested_by": requested_by,
            },
            error_code="FRIENDSHIP_DUPLICATE_REQUEST",
        )


class AlreadyFriendsError(FriendshipError):
    def __init__(self, user_id: str, other_id: str) -> None:
        self.user_id = user_id
        self.other_id = other_id
        super().__init__(
            "Users are already friends",
            details={"user_id": user_id, "other_id": other_id},
            error_code="FRIENDSHIP_ALREADY_FRIENDS",
        )


class RequestBlockedError(FriendshipError):
    """Raised when the pair is blocked; only removal reopens it."""

    def __init__(self, user_id: str, other_id: str, blocked_by: Optional[str] = None) -> None:
        self.user_id = user_id
        self.other_id = other_id
        self.blocked_by = blocked_by
        super().__init__(
            "Cannot send a friend request to this user",
            details={
                "user_id": user_id,
                "other_id": other_id,
                "blocked_by": blocked_by,
            },
            error_code="FRIENDSHIP_REQUEST_BLOCKED",
        )


class InvalidTransitionError(FriendshipError):
    """
    Raised when a friendship edge cannot move to the requested state.

    Args:
        friendship_id: Edge identifier
        current_status: Status the edge is in now
        action: Attempted action (accept, decline, ...)
        reason: Optional extra explanation
    """

    def __init__(
        self,
        friendship_id: Optional[str],
        current_status: str,
        action: str,
        reason: Optional[str] = None,
    ) -> None:
        self.friendship_id = friendship_id
        self.current_status = current_status
        self.action = action
        message = f"Cannot {action} a friendship in state '{current_status}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={
                "friendship_id": friendship_id,
                "current_status": current_status,
                "action": action,
                "reason": reason,
            },
            error_code="FRIENDSHIP_INVALID_TRANSITION",
        )


class NoSuchEdgeError(FriendshipError):
    def __init__(self, user_id: str, other_id: str) -> None:
        self.user_id = user_id
        self.other_id = other_id
        super().__init__(
            "No friendship exists between these users",
            details={"user_id": user_id, "other_id": other_id},
            error_code="FRIENDSHIP_NOT_FOUND",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Covers both domain and infrastructure exceptions.
    """
    if isinstance(exc, (RumbleDomainException, RumbleInfrastructureException)):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity of an exception; unknown exceptions count as ERROR."""
    if isinstance(exc, (RumbleDomainException, RumbleInfrastructureException)):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
