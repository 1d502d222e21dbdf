"""
Event system for RhymeRumble.

Exposes `EventBus` (one per process, built at start-up and handed to every
service), plus the types needed to subscribe to it.
"""

from .bus import EventBus, apply_event_log_context
from .metrics import EventMetrics
from .router import EventRouter
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventMetrics",
    "EventRouter",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
    "apply_event_log_context",
]
