"""
Core event types for the RhymeRumble event bus.

Purpose
-------
Type definitions shared by the bus, the router and every subscriber:
the payload alias, listener priorities, the callback union and the
immutable listener record.

Priority Levels
---------------
- CRITICAL (0): runs first. Use for state that other listeners read.
- HIGH (10): leaderboard and standings updates.
- NORMAL (50): notifications.
- LOW (100): audit logging and metrics.

Listeners run in ascending priority value; ties are ordered by identifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Should stay JSON-serializable so the JSON log formatter can render it.
EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """
    Priority levels for event listeners (lower value runs earlier).

    Examples
    --------
    >>> ListenerPriority.HIGH.value
    10
    """

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    A registered listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Determines execution order.
    identifier:
        Unique per pattern; used for deduplication and unsubscription.
    once:
        Remove the listener before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """
        Build a listener, deriving ``identifier`` from the callback when
        none is given.

        >>> listener = EventListener.from_callback(
        ...     "friendship.request_sent", notify, ListenerPriority.NORMAL, None, False
        ... )
        >>> listener.identifier
        'notifications.notify@friendship.request_sent'
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(
                callback, "__qualname__", getattr(callback, "__name__", "callback")
            )
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
