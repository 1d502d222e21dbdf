"""
RhymeRumble - Application Entry Point
=====================================

Bootstrap
---------
- Logging and config validation
- Database initialization
- ConfigManager initialization
- Event bus and service container
- Periodic leaderboard snapshot refresh
- Graceful shutdown on SIGTERM / SIGINT
"""

import asyncio
import signal
import sys

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import LogContext, get_logger, setup_logging, shutdown_logging
from src.core.services.container import (
    ServiceContainer,
    initialize_service_container,
    shutdown_service_container,
)

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> ServiceContainer:
    """Initialize all infrastructure components and the service container."""
    logger.info("========== RHYMERUMBLE INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    try:
        await DatabaseService.initialize()
        if Config.is_development():
            await DatabaseService.create_all()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Initialize config manager
    try:
        ConfigManager.initialize()
        logger.info("✓ Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    # Step 4: Event bus bound to runtime config
    event_bus = EventBus(ConfigManager)
    logger.info("✓ Event bus available")

    # Step 5: Initialize service container
    try:
        container = initialize_service_container(
            config_manager=ConfigManager,
            event_bus=event_bus,
            logger=get_logger("src.core.services.container"),
        )
        await container.initialize()
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown() -> None:
    """Gracefully shut down services and infrastructure."""
    logger.info("========== RHYMERUMBLE SHUTDOWN START ==========")

    try:
        await shutdown_service_container()
        logger.info("✓ Service container shut down")
    except Exception as exc:
        logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Background Work
# ============================================================================

async def _refresh_leaderboards(container: ServiceContainer, stop: asyncio.Event) -> None:
    """Refresh every leaderboard period until ``stop`` is set."""
    interval = ConfigManager.get_int("leaderboards.refresh_interval_seconds", 300)
    periods = ConfigManager.get("leaderboards.periods", ["overall", "monthly"])

    while not stop.is_set():
        for period in periods:
            with LogContext(component="leaderboard", operation="refresh_snapshot"):
                try:
                    await container.leaderboard.refresh_snapshot(period)
                except Exception as exc:
                    container.leaderboard.log_error("refresh_snapshot", exc, period=period)

        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


# ============================================================================
# Application Entrypoint
# ============================================================================

async def main() -> None:
    """
    RhymeRumble entry point.

    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure (DB, ConfigManager, EventBus, Services)
        3. Refresh leaderboards periodically until a stop signal
        4. Handle shutdown gracefully
    """
    setup_logging(file_output=not Config.is_testing())
    stop = asyncio.Event()
    _install_signal_handlers(asyncio.get_running_loop(), stop)

    try:
        container = await _startup()

        logger.info("RhymeRumble services running")
        await _refresh_leaderboards(container, stop)

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        sys.exit(1)

    finally:
        await _shutdown()
        shutdown_logging()


# ============================================================================
# Process Startup
# ============================================================================

def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    """Set ``stop`` on SIGTERM / SIGINT."""
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
            logger.debug(f"{sig.name} handler installed")
        except NotImplementedError:
            logger.debug(f"{sig.name} not supported on this platform (likely Windows)")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Manually stopped via keyboard interrupt.")
