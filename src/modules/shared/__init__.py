"""
Shared Module

Purpose
-------
Foundations every feature module builds on:
- Domain exceptions and error helpers
- Base service and repository patterns

Usage
-----
    from src.modules.shared import (
        BaseService,
        BaseRepository,
        NotFoundError,
    )
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
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

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
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
    # Helpers
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
