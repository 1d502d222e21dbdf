"""
Configuration subsystem for RhymeRumble.

Two layers:

- **Config** (`config.py`): static settings read from the environment
  (with `.env` support) at import time. Database URL, pool sizes,
  environment name, log level. Changing them needs a restart.
- **ConfigManager** (`manager.py`): dotted-key runtime settings loaded from
  the YAML files in ``config/`` with in-process overrides. Product rules
  such as ``friendships.decline_policy`` or ``leaderboards.max_page_size``
  live here.

Usage
-----
>>> from src.core.config import Config, ConfigManager
>>> Config.DATABASE_POOL_SIZE
10
>>> ConfigManager.get("leaderboards.max_page_size", 100)
100
"""

from src.core.config.config import Config, Environment
from src.core.config.manager import ConfigManager, ConfigManagerError, ConfigWriteError

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigManagerError",
    "ConfigWriteError",
]
