"""
ConfigManager: cache-backed access to tunable engine configuration.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable leaderboard values
  (batch sizes, window sizes, scheduler cadence, reward tiers).
- Back configuration with YAML files from the `config/` directory.
- Fall back to the caller-supplied default when a key is absent.

Responsibilities
----------------
- Load and deep-merge every YAML file under `config/` into `_defaults`.
- Serve reads from an in-memory cache with lightweight metrics.
- Allow runtime overrides (`set`) for tests and operational tweaks.

Key Design Decisions
--------------------
- YAML is the single source for defaults; overrides live only in memory.
- Reads never raise: a malformed path falls back to defaults, then to the
  supplied default.
- Initialization is idempotent; `get()` before `initialize()` bootstraps lazily.
"""

from __future__ import annotations

import copy
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

from ranksync.core.config.config import Config
from ranksync.core.logging.logger import get_logger

logger = get_logger(__name__)


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigInitializationError(ConfigManagerError):
    """Raised when ConfigManager cannot initialize correctly."""


@dataclass
class ConfigMetrics:
    """Counters for configuration reads."""

    gets: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    fallback_to_defaults: int = 0
    errors: int = 0
    total_get_time_ms: float = 0.0


class ConfigManager:
    """
    Dynamic engine configuration with YAML defaults and in-memory overrides.

    Features
    --------
    - Hierarchical config access with dot notation (e.g. `"leaderboard.window.top_n"`).
    - Deep-merged YAML composition across files.
    - Runtime overrides that take precedence over YAML.
    """

    _cache: Dict[str, Any] = {}
    _defaults: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None
    _metrics: ConfigMetrics = ConfigMetrics()

    # =========================================================================
    # YAML LOADING
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
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """Recursively load all YAML config files from `config_dir` into `_defaults`."""
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                cls._metrics.errors += 1
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
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

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": loaded_count,
                "top_level_keys": sorted(cls._defaults.keys()),
            },
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults into the cache (idempotent).

        Parameters
        ----------
        config_dir:
            Directory to scan for YAML files. Defaults to `Config.CONFIG_DIR`.

        Raises
        ------
        ConfigInitializationError
            If `config_dir` exists but is not a directory.
        """
        if cls._initialized:
            return

        start = time.perf_counter()
        cls._config_dir = Path(config_dir) if config_dir is not None else Config.CONFIG_DIR
        if cls._config_dir.exists() and not cls._config_dir.is_dir():
            raise ConfigInitializationError(f"Config path is not a directory: {cls._config_dir}")
        cls._defaults = {}
        cls._load_yaml_configs(cls._config_dir)
        cls._cache = copy.deepcopy(cls._defaults)
        cls._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={
                "config_dir": str(cls._config_dir),
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )

    @classmethod
    def reset(cls) -> None:
        """Drop all cached state so the next access reloads from YAML."""
        cls._cache = {}
        cls._defaults = {}
        cls._initialized = False
        cls._metrics = ConfigMetrics()

    # =========================================================================
    # READS
    # =========================================================================

    @classmethod
    def _get_from_defaults(cls, key: str) -> Any:
        """Traverse default config using dot notation; returns `None` if missing."""
        value: Any = cls._defaults
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return None
            else:
                return None
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> ConfigManager.get("leaderboard.window.top_n", 100)
        100
        """
        start_time = time.perf_counter()
        cls._metrics.gets += 1

        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; loading defaults"
            )
            cls.initialize()

        try:
            value: Any = cls._cache
            for part in key.split("."):
                if not isinstance(value, dict) or value.get(part) is None:
                    cls._metrics.cache_misses += 1
                    fallback = cls._get_from_defaults(key)
                    if fallback is not None:
                        cls._metrics.fallback_to_defaults += 1
                        return fallback
                    return default
                value = value[part]

            cls._metrics.cache_hits += 1
            return value
        finally:
            cls._metrics.total_get_time_ms += (time.perf_counter() - start_time) * 1000

    @classmethod
    def get_int(cls, key: str, default: int) -> int:
        value = cls.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning(
                "Non-numeric config value; using default",
                extra={"config_key": key, "value": repr(value), "default": default},
            )
            return default
        return int(value)

    @classmethod
    def get_bool(cls, key: str, default: bool) -> bool:
        value = cls.get(key, default)
        return value if isinstance(value, bool) else default

    # =========================================================================
    # WRITES
    # =========================================================================

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """
        Override a configuration value in memory.

        Overrides win over YAML defaults until `reset()` is called.
        """
        if not cls._initialized:
            cls.initialize()

        parts = key.split(".")
        node: Dict[str, Any] = cls._cache
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

        logger.info("Configuration override applied", extra={"config_key": key})

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        metrics = asdict(cls._metrics)
        gets = metrics["gets"] or 1
        metrics["cache_hit_rate"] = round(100.0 * metrics["cache_hits"] / gets, 2)
        return metrics
