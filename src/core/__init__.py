"""
Core infrastructure layer for RhymeRumble.

Single import surface for the infrastructure subsystems:

- Configuration (Config, ConfigManager)
- Database (DatabaseService)
- Logging (setup_logging, get_logger)
- Validation (InputValidator)
- Infrastructure exceptions

This module only re-exports; it performs no I/O. Feature modules should
still import from the submodules directly.
"""

from __future__ import annotations

from src.core.config import Config, ConfigManager
from src.core.database import DatabaseService
from src.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
    EventBusError,
    RumbleInfrastructureException,
)
from src.core.logging import get_logger, setup_logging
from src.core.validation import InputValidator

__all__ = [
    # Configuration
    "Config",
    "ConfigManager",
    # Database
    "DatabaseService",
    # Logging
    "setup_logging",
    "get_logger",
    # Validation
    "InputValidator",
    # Infrastructure Exceptions
    "RumbleInfrastructureException",
    "ConfigurationError",
    "DatabaseError",
    "EventBusError",
    "ErrorSeverity",
]
