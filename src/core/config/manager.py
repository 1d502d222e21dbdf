"""
ConfigManager: dot-notation access to runtime tunables for RhymeRumble.

Purpose
-------
- Provide hierarchical, dot-notation access to product rules (friendship
  decline policy, leaderboard page sizes, poem length limits).
- Back configuration with YAML defaults from the ``config/`` directory.
- Allow in-process overrides (tests, admin tooling) layered over defaults.

Responsibilities
----------------
- Load and deep-merge every YAML file under ``config/`` into the defaults.
- Serve reads from the merged view: overrides first, then defaults.
- Validate writes through per-key validators.
- Track simple read/write counters for health snapshots.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides live in memory.
- Class-level state, no instantiation; services receive the class itself.
- Unknown keys resolve to the caller's ``default``.

Dependencies
------------
- PyYAML: YAML parsing of default configuration files.
- ``src.core.logging.logger.get_logger``: structured logging interface.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, MutableMapping, Optional

import yaml

from src.core.config.config import Config
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigWriteError(ConfigManagerError):
    """Raised when a configuration write fails validation."""


__all__ = ["ConfigManager", "ConfigManagerError", "ConfigWriteError"]


@dataclass
class _ManagerMetrics:
    gets: int = 0
    sets: int = 0
    default_hits: int = 0
    misses: int = 0
    yaml_files_loaded: int = 0


_MISSING = object()


# ============================================================================
# ConfigManager
# ============================================================================


class ConfigManager:
    """
    Runtime configuration with YAML defaults and in-memory overrides.

    Examples
    --------
    >>> ConfigManager.initialize()
    >>> ConfigManager.get("friendships.decline_policy")
    'block'
    >>> ConfigManager.set("leaderboards.max_page_size", 50)
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _validators: Dict[str, Callable[[Any], Any]] = {}
    _initialized: bool = False
    _metrics: _ManagerMetrics = _ManagerMetrics()
    _config_dir: Path = Config.PROJECT_ROOT / "config"

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """Deep-merge all YAML config files from ``config_dir`` into defaults."""
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using caller defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        for yaml_file in yaml_files:
            with yaml_file.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                cls._metrics.yaml_files_loaded += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults. Safe to call more than once; later calls reload.

        Parameters
        ----------
        config_dir:
            Directory to scan for ``*.yaml`` files. Defaults to ``<root>/config``.
        """
        cls._defaults = {}
        cls._load_yaml_configs(config_dir or cls._config_dir)
        cls._initialized = True
        logger.info(
            "ConfigManager initialized",
            extra={
                "yaml_file_count": cls._metrics.yaml_files_loaded,
                "top_level_keys": len(cls._defaults),
            },
        )

    @classmethod
    def _lookup(cls, source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    # =========================================================================
    # READS
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Overrides take precedence over YAML defaults. Returns ``default``
        when neither defines the key.
        """
        if not cls._initialized:
            cls.initialize()

        cls._metrics.gets += 1

        if key in cls._overrides:
            return cls._overrides[key]

        value = cls._lookup(cls._defaults, key)
        if value is _MISSING or value is None:
            cls._metrics.misses += 1
            return default

        cls._metrics.default_hits += 1
        return value

    @classmethod
    def get_int(cls, key: str, default: int) -> int:
        value = cls.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                "Non-integer configuration value, using default",
                extra={"config_key": key, "value": repr(value), "default": default},
            )
            return default

    @classmethod
    def get_bool(cls, key: str, default: bool) -> bool:
        value = cls.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"true", "yes", "1", "on"}
        return bool(value)

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Top-level keys present in defaults or overrides."""
        keys = set(cls._defaults.keys())
        keys.update(k.split(".")[0] for k in cls._overrides)
        return sorted(keys)

    # =========================================================================
    # WRITES
    # =========================================================================

    @classmethod
    def register_validator(cls, key: str, validator: Callable[[Any], Any]) -> None:
        """
        Register a validator for an exact dot key.

        The validator returns the (possibly coerced) value or raises.
        """
        cls._validators[key] = validator

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """
        Override a configuration value in memory.

        Raises
        ------
        ConfigWriteError
            If a registered validator rejects the value.
        """
        validator = cls._validators.get(key)
        if validator is not None:
            try:
                value = validator(value)
            except Exception as exc:
                raise ConfigWriteError(
                    f"Validation failed for config key '{key}': {exc}"
                ) from exc

        previous = cls._overrides.get(key, cls._lookup(cls._defaults, key))
        cls._overrides[key] = value
        cls._metrics.sets += 1

        logger.info(
            "Configuration override applied",
            extra={
                "config_key": key,
                "previous_value": None if previous is _MISSING else previous,
                "new_value": value,
            },
        )

    @classmethod
    def reset(cls) -> None:
        """Drop all overrides."""
        cls._overrides.clear()

    # =========================================================================
    # OBSERVABILITY
    # =========================================================================

    @classmethod
    def health_snapshot(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._initialized,
            "override_count": len(cls._overrides),
            **asdict(cls._metrics),
        }
