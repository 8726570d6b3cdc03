"""
ConfigManager: YAML-backed, dot-notation configuration access for Statboard.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable configuration values.
- Back configuration with YAML defaults from the config directory.
- Allow in-process overrides (tests, admin tooling) without touching files.

Responsibilities
----------------
- Load and deep-merge every YAML document under `Config.CONFIG_DIR`.
- Serve reads from an in-memory cache with hit/miss metrics.
- Apply in-memory overrides via `set()`; `reset()` drops them.

Key Design Decisions
--------------------
- YAML is the single source for defaults; overrides live in memory only.
- Nested keys are stored as nested dictionaries and addressed with dots
  (`"core.redis.resilience.retry.max_attempts"`).
- Reads before explicit initialization lazily load the YAML defaults.
"""

from __future__ import annotations

import threading
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from statboard.core.config.config import Config
from statboard.core.config.errors import ConfigInitializationError, ConfigValidationError
from statboard.core.logging.logger import get_logger

logger = get_logger(__name__)

__all__ = ["ConfigManager"]


class ConfigManager:
    """
    Dynamic configuration management with YAML defaults and in-memory overrides.

    Features
    --------
    - Hierarchical config access with dot notation (e.g. `"leaderboards.Player"`).
    - Deep-merge of all YAML files in the config directory.
    - Read metrics for observability.
    """

    _defaults: Dict[str, Any] = {}
    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None
    _lock = threading.Lock()

    _metrics: Dict[str, Any] = {
        "gets": 0,
        "sets": 0,
        "cache_hits": 0,
        "cache_misses": 0,
        "yaml_files_loaded": 0,
        "total_get_time_ms": 0.0,
    }

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
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """
        Recursively load all YAML config files from `config_dir` into `_defaults`.

        Raises
        ------
        ConfigValidationError
            If a YAML document has a non-mapping root.
        ConfigInitializationError
            If a YAML file cannot be read or parsed.
        """
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        if not yaml_files:
            logger.info(
                "No YAML config files discovered; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        loaded_count = 0
        for yaml_file in yaml_files:
            relative = str(yaml_file.relative_to(config_dir))
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigInitializationError(
                    f"Failed to load YAML config {relative}: {exc}"
                ) from exc

            if data is None:
                continue
            if not isinstance(data, dict):
                raise ConfigValidationError(
                    f"YAML config {relative} must have a mapping root, "
                    f"got {type(data).__name__}"
                )

            cls._deep_merge_dict(cls._defaults, data)
            loaded_count += 1
            logger.debug("Loaded YAML config", extra={"file": relative})

        cls._metrics["yaml_files_loaded"] = loaded_count
        logger.info(
            "YAML configs loaded",
            extra={
                "config_dir": str(config_dir),
                "yaml_file_count": loaded_count,
                "top_level_keys": sorted(cls._defaults.keys()),
            },
        )

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults into the cache. Idempotent unless `config_dir` changes.

        Parameters
        ----------
        config_dir:
            Directory to scan; defaults to `Config.CONFIG_DIR`.
        """
        target = Path(config_dir) if config_dir is not None else Path(Config.CONFIG_DIR)

        with cls._lock:
            if cls._initialized and cls._config_dir == target:
                return

            cls._defaults = {}
            cls._load_yaml_configs(target)
            cls._cache = deepcopy(cls._defaults)
            cls._config_dir = target
            cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop the cache and all overrides; the next read reloads YAML defaults."""
        with cls._lock:
            cls._defaults = {}
            cls._cache = {}
            cls._config_dir = None
            cls._initialized = False
            for key in cls._metrics:
                cls._metrics[key] = 0.0 if key == "total_get_time_ms" else 0

    # =========================================================================
    # READ / WRITE
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> ConfigManager.get("core.redis.resilience.retry.max_attempts", 3)
        3
        """
        if not cls._initialized:
            cls.initialize()

        start_time = time.perf_counter()
        cls._metrics["gets"] += 1
        try:
            value: Any = cls._cache
            for part in key.split("."):
                if not isinstance(value, dict) or part not in value:
                    cls._metrics["cache_misses"] += 1
                    return default
                value = value[part]

            cls._metrics["cache_hits"] += 1
            return value if value is not None else default
        finally:
            cls._metrics["total_get_time_ms"] += (time.perf_counter() - start_time) * 1000

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """
        Override a configuration value in memory.

        Intermediate mappings are created as needed.
        """
        if not cls._initialized:
            cls.initialize()

        with cls._lock:
            parts = key.split(".")
            node = cls._cache
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = value
            cls._metrics["sets"] += 1

        logger.info("Configuration override applied", extra={"config_key": key})

    @classmethod
    def get_all_keys(cls) -> List[str]:
        if not cls._initialized:
            cls.initialize()
        return sorted(cls._cache.keys())

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        gets = cls._metrics["gets"]
        return {
            **cls._metrics,
            "cache_hit_rate": round(cls._metrics["cache_hits"] / gets * 100, 2) if gets else 0.0,
            "avg_get_time_ms": round(cls._metrics["total_get_time_ms"] / gets, 4) if gets else 0.0,
        }

    @classmethod
    def health_snapshot(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._initialized,
            "config_dir": str(cls._config_dir) if cls._config_dir else None,
            "top_level_keys": len(cls._cache),
        }
