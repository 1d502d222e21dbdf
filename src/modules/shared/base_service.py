"""
Base Service Pattern

Purpose
-------
Common foundation for application services: configuration access,
structured logging, and event emission. Subclasses implement product rules
and open their own transactions through `DatabaseService`.

What services built on this class do NOT do:
- Build SQL directly (repositories do)
- Commit sessions by hand (`DatabaseService.get_transaction()` does)

Usage
-----
    class PoemService(BaseService):
        def __init__(self, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
            self._poem_repo = PoemRepository(Poem, logger)

        async def create_poem(self, author_id: str, ...):
            # Service logic here, using self.log_operation, self.get_config,
            # self.emit_event
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.base import DomainEvent


class BaseService:
    """
    Base class for all application services.

    Args:
        config_manager: Runtime configuration (``ConfigManager`` or compatible)
        event_bus: Event bus for notifications and cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and the key is missing
        """
        from src.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish an event on the bus.

        Args:
            event_type: Event name, e.g. "friendship.request_sent"
            data: Event payload
            context: Optional extra fields merged into the payload
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    async def publish_domain_events(self, events: Iterable[DomainEvent]) -> None:
        """Publish events collected from an aggregate, in order."""
        for event in events:
            await self.emit_event(
                event.event_name,
                event.payload,
                {"occurred_at": event.occurred_at.isoformat()},
            )

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
