"""
EventBus: in-process publish/subscribe for RhymeRumble.

Purpose
-------
Decouple services from the side effects of their writes. A service publishes
``friendship.request_sent`` or ``theme.closed`` after its transaction
commits; notifications, leaderboard refreshes and audit logging subscribe
without the service knowing about them.

Responsibilities
----------------
- Register and remove listeners for exact names or wildcard patterns
- Dispatch in priority order (CRITICAL, HIGH, NORMAL, LOW)
- Isolate listener failures: log and count them, never propagate
- Bound each listener with an optional timeout
- Record publish and error counts

Execution Model
---------------
Listeners run one after another in ``(priority, identifier)`` order and are
awaited before ``publish`` returns. Async callbacks are awaited directly;
sync callbacks run in the default executor so they cannot block the loop.

Thread Safety
-------------
Single event loop only. Registry mutations never span an await.

Examples
--------
>>> bus = EventBus()
>>> bus.subscribe("friendship.*", audit_friendship, priority=ListenerPriority.LOW)
>>> await bus.publish("friendship.request_sent", {"friendship_id": "..."})
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Optional

from src.core.event.metrics import EventMetrics, EventMetricsRecorder
from src.core.event.registry import ListenerRegistry
from src.core.event.router import EventRouter
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.exceptions import EventBusError
from src.core.logging.logger import get_logger, set_log_context

if TYPE_CHECKING:
    from src.core.config.manager import ConfigManager

logger = get_logger(__name__)


def apply_event_log_context(event_name: str, payload: EventPayload) -> None:
    """Tag subsequent log records with the event name and payload keys (not values)."""
    set_log_context(event_name=event_name, event_keys=sorted(payload.keys()))


class EventBus:
    """
    Priority-ordered event bus with wildcard subscriptions.

    Parameters
    ----------
    config_manager:
        Optional source for ``events.listener_timeout_seconds``.
    enable_metrics:
        Collect publish and error counters. Default True.
    listener_timeout_seconds:
        Per-listener timeout. Overrides config; ``0`` disables it.
    """

    def __init__(
        self,
        config_manager: Optional[type[ConfigManager]] = None,
        *,
        enable_metrics: bool = True,
        listener_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._router = EventRouter()
        self._registry = ListenerRegistry(self._router)
        self._metrics = EventMetricsRecorder()
        self._metrics_enabled = enable_metrics
        self._config_manager = config_manager
        self._listener_timeout = self._load_timeout(listener_timeout_seconds)

    def _load_timeout(self, override: Optional[float]) -> float:
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return 5.0

        value = self._config_manager.get("events.listener_timeout_seconds", 5.0)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid listener timeout in config, using default",
                extra={"config_key": "events.listener_timeout_seconds", "value": value},
            )
            return 5.0

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_event_name(operation: str, event_name: str) -> None:
        if not isinstance(event_name, str) or not event_name.strip():
            raise EventBusError(operation, str(event_name))

    @staticmethod
    def _validate_callback(event_name: str, callback: CallbackType) -> None:
        """
        Raises
        ------
        EventBusError:
            If the callback is not callable or does not take exactly one
            positional argument.
        """
        if not callable(callback):
            raise EventBusError(
                "subscribe", event_name, TypeError("callback is not callable")
            )

        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # Some builtins expose no signature.
            return

        params = list(sig.parameters.values())
        if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params):
            return
        if len(params) != 1:
            name = getattr(callback, "__qualname__", repr(callback))
            raise EventBusError(
                "subscribe",
                event_name,
                TypeError(
                    f"listener '{name}' must accept exactly 1 parameter, got {len(params)}"
                ),
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe ``callback`` to an event name or wildcard pattern.

        Returns
        -------
        str:
            The listener identifier, for `unsubscribe`.

        Raises
        ------
        EventBusError:
            On an empty event name or an invalid callback.
        """
        self._validate_event_name("subscribe", event_name)
        self._validate_callback(event_name, callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        added = self._registry.add_listener(
            event_name, listener, allow_duplicates=allow_duplicates
        )

        if added:
            self._metrics.adjust_listener_count(1)
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "once": once,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )

        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        removed = self._registry.remove_listener(event_name, identifier)
        if removed:
            self._metrics.adjust_listener_count(-1)
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove all listeners and reset counters. Intended for tests."""
        total = self._registry.clear_all()
        self._metrics.reset()
        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": total},
        )

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Deliver ``data`` to every matching listener in priority order.

        Returns
        -------
        list[Any]:
            One result per listener; ``None`` where a listener failed or
            timed out.

        Raises
        ------
        EventBusError:
            If ``event_name`` is empty or is itself a wildcard pattern.
        """
        self._validate_event_name("publish", event_name)
        if self._router.is_pattern(event_name):
            raise EventBusError(
                "publish", event_name, ValueError("cannot publish a wildcard pattern")
            )

        if self._metrics_enabled:
            self._metrics.record_publish(event_name)

        apply_event_log_context(event_name, data)

        listeners = self._registry.extract_listeners_for_event(event_name)
        if once_count := sum(1 for lst in listeners if lst.once):
            self._metrics.adjust_listener_count(-once_count)

        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        logger.debug(
            "EventBus: dispatching event",
            extra={"event_name": event_name, "listener_count": len(listeners)},
        )

        results: list[Any] = []
        for listener in listeners:
            results.append(await self._run_listener(listener, event_name, data))
        return results

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
    ) -> Any:
        try:
            if inspect.iscoroutinefunction(listener.callback):
                call = listener.callback(payload)
            else:
                loop = asyncio.get_running_loop()
                call = loop.run_in_executor(None, listener.callback, payload)

            if self._listener_timeout > 0:
                return await asyncio.wait_for(call, timeout=self._listener_timeout)
            return await call

        except asyncio.TimeoutError:
            self._record_listener_failure(event_name, listener, None, timed_out=True)
            return None
        except Exception as exc:
            self._record_listener_failure(event_name, listener, exc)
            return None

    def _record_listener_failure(
        self,
        event_name: str,
        listener: EventListener,
        exc: Optional[Exception],
        timed_out: bool = False,
    ) -> None:
        if self._metrics_enabled:
            self._metrics.record_error(event_name)

        logger.error(
            "EventBus listener timeout" if timed_out else "EventBus listener error",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "error_type": type(exc).__name__ if exc else "TimeoutError",
                "error_message": str(exc) if exc else None,
                "timeout_seconds": self._listener_timeout if timed_out else None,
            },
            exc_info=exc is not None,
        )

    # ------------------------------------------------------------------ #
    # Metrics & Introspection
    # ------------------------------------------------------------------ #

    def get_metrics(self) -> Optional[EventMetrics]:
        if not self._metrics_enabled:
            return None
        return self._metrics.snapshot()

    def get_metrics_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        return metrics.get_summary() if metrics else {}

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        """
        Total listeners, or the number that would receive ``event_name``
        (wildcards included).
        """
        if event_name:
            return self._registry.get_listener_count_for_event(event_name)
        return self._registry.get_total_listener_count()

    def get_all_events(self) -> list[str]:
        return self._registry.get_all_event_keys()
