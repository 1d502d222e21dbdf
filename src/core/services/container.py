"""
Service Container
=================

Purpose
-------
Builds every application service once, with the same constructor
dependencies ``(config_manager, event_bus, logger)``, and hands them out to
whatever hosts the application (an API layer, a worker, tests).

Non-Responsibilities
--------------------
- Infrastructure start-up order (`src.main` does that)
- Business logic
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.logging.logger import get_logger
from src.modules.friendship import FriendshipService
from src.modules.leaderboard import LeaderboardService
from src.modules.poems import PoemService
from src.modules.profiles import ProfileService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


class ServiceContainer:
    """
    Holds one instance of each application service.

    Usage:
        container = ServiceContainer(ConfigManager, event_bus, logger)
        await container.initialize()
        await container.friendships.send_request(alice_id, bob_id)
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger

        self._friendships: Optional[FriendshipService] = None
        self._leaderboard: Optional[LeaderboardService] = None
        self._poems: Optional[PoemService] = None
        self._profiles: Optional[ProfileService] = None

        self._initialized = False
        self._service_init_times: Dict[str, float] = {}

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        start = time.perf_counter()
        self._friendships = self._create_service("friendships", FriendshipService)
        self._leaderboard = self._create_service("leaderboard", LeaderboardService)
        self._poems = self._create_service("poems", PoemService)
        self._profiles = self._create_service("profiles", ProfileService)
        self._initialized = True

        self._logger.info(
            "Service container initialized",
            extra={
                "service_count": len(self._service_init_times),
                "duration_ms": (time.perf_counter() - start) * 1000.0,
            },
        )

    def _create_service(self, name: str, cls: type) -> Any:
        start = time.perf_counter()
        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        self._service_init_times[name] = time.perf_counter() - start
        return instance

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        self._friendships = self._leaderboard = self._poems = self._profiles = None
        self._initialized = False
        self._logger.info("Service container shut down")

    def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "services": sorted(self._service_init_times),
        }

    # ========================================================================
    # Services
    # ========================================================================

    def _require(self, service: Optional[Any]) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    @property
    def friendships(self) -> FriendshipService:
        return self._require(self._friendships)

    @property
    def leaderboard(self) -> LeaderboardService:
        return self._require(self._leaderboard)

    @property
    def poems(self) -> PoemService:
        return self._require(self._poems)

    @property
    def profiles(self) -> ProfileService:
        return self._require(self._profiles)

    @property
    def is_initialized(self) -> bool:
        return self._initialized


# ============================================================================
# Process-wide container
# ============================================================================

_container: Optional[ServiceContainer] = None


def initialize_service_container(
    config_manager: type[ConfigManager],
    event_bus: EventBus,
    logger: Logger,
) -> ServiceContainer:
    """Create the process-wide container; call ``initialize()`` on the result."""
    global _container
    if _container is not None:
        raise RuntimeError("Service container already created")
    _container = ServiceContainer(config_manager, event_bus, logger)
    return _container


def get_service_container() -> ServiceContainer:
    if _container is None:
        raise RuntimeError("Service container not created. Call initialize_service_container() first.")
    return _container


async def shutdown_service_container() -> None:
    global _container
    if _container is None:
        return
    await _container.shutdown()
    _container = None
