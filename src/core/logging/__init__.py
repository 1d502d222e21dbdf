"""
RhymeRumble Logging Infrastructure

Exports the structured logging subsystem, log context helpers,
and configuration interface.
"""

from src.core.logging.logger import (
    JSONFormatter,
    LogContext,
    LoggerConfig,
    clear_log_context,
    get_log_context,
    get_logger,
    get_logging_metrics,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_metrics",
    "LogContext",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "JSONFormatter",
    "LoggerConfig",
]
