"""
Static configuration for Statboard, read from the environment.

Values are read once at import (`Config.load()`), after `.env` is applied
through python-dotenv. A malformed or out-of-range value is logged,
counted in the load report and replaced by its default; loading never
fails. Tunables that change at runtime (resilience, metrics thresholds,
the metric catalog) live in YAML and are served by `ConfigManager`.

Environment Variables
---------------------
- ENVIRONMENT: development | testing | staging | production (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON: Force JSON console logs (default: unset, JSON in production)
- LOG_TO_FILE: Enable the rotating JSON file log (default: False)
- LOGS_DIR: Directory for file logs (default: <project>/logs)
- CONFIG_DIR: Directory holding YAML defaults (default: <project>/config)
- REDIS_URL: Redis connection string (default: redis://localhost:6379/0)
- REDIS_MAX_CONNECTIONS: Connection pool size, 1-500 (default: 50)
- REDIS_SOCKET_TIMEOUT: Socket timeout in seconds, 1-60 (default: 5)
- LEADERBOARD_TIMEOUT_SECONDS: Per-call deadline for store/resolver I/O,
  0.01-120 (default: 5.0)
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from dotenv import load_dotenv

load_dotenv()

N = TypeVar("N", int, float)

_TRUE = frozenset({"true", "yes", "1", "on"})
_FALSE = frozenset({"false", "no", "0", "off"})


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Example
        -------
        >>> Environment.from_string("Production") is Environment.PRODUCTION
        True
        >>> Environment.from_string("qa") is Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            # Plain logging: the structured logger reads Config and is not up yet
            logging.warning("Unknown ENVIRONMENT %r, using development", value)
            return cls.DEVELOPMENT


@dataclass
class EnvLoadReport:
    """Where each setting came from during the last `Config.load()`."""

    from_env: List[str] = field(default_factory=list)
    defaulted: List[str] = field(default_factory=list)
    rejected: Dict[str, str] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.from_env) + len(self.defaulted),
            "from_environment": len(self.from_env),
            "from_defaults": len(self.defaulted),
            "validation_errors": len(self.rejected),
            "defaults_used": list(self.defaulted),
        }


class Config:
    """
    Process-wide static settings, as class attributes.

    Usage
    -----
    >>> Config.REDIS_URL
    'redis://localhost:6379/0'
    >>> Config.is_production()
    False
    """

    _report: EnvLoadReport = EnvLoadReport()

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: int = 5

    # Leaderboard
    LEADERBOARD_TIMEOUT_SECONDS: float = 5.0

    # Environment / logging
    ENVIRONMENT: str = Environment.DEVELOPMENT.value
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_TO_FILE: bool = False

    # Directories
    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Parsing
    # =========================================================================

    @classmethod
    def _raw(cls, key: str) -> Optional[str]:
        raw = os.getenv(key)
        if raw is None:
            cls._report.defaulted.append(key)
        return raw

    @classmethod
    def _reject(cls, key: str, message: str) -> None:
        logging.warning(message)
        cls._report.rejected[key] = message

    @classmethod
    def _env_number(
        cls,
        key: str,
        default: N,
        parse: Callable[[str], N],
        low: Optional[N] = None,
        high: Optional[N] = None,
    ) -> N:
        """
        Number from the environment, bounded to [low, high].

        Example
        -------
        >>> Config._env_number("REDIS_MAX_CONNECTIONS", 50, int, 1, 500)
        50
        """
        raw = cls._raw(key)
        if raw is None:
            return default

        try:
            value = parse(raw)
        except ValueError:
            cls._reject(key, f"{key}={raw!r} is not a valid {parse.__name__}, using {default}")
            return default

        if (low is not None and value < low) or (high is not None and value > high):
            cls._reject(key, f"{key}={value} is outside [{low}, {high}], using {default}")
            return default

        cls._report.from_env.append(key)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """true/false, yes/no, 1/0, on/off, any case."""
        raw = cls._raw(key)
        if raw is None:
            return default

        normalized = raw.strip().lower()
        if normalized in _TRUE or normalized in _FALSE:
            cls._report.from_env.append(key)
            return normalized in _TRUE

        cls._reject(key, f"{key}={raw!r} is not a valid boolean, using {default}")
        return default

    @classmethod
    def _env_str(cls, key: str, default: str) -> str:
        raw = cls._raw(key)
        if raw is None:
            return default
        cls._report.from_env.append(key)
        return raw

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        (Re)read every setting from the environment.

        Runs on import; call again after changing the environment (tests do
        this after monkeypatching).
        """
        cls._report = EnvLoadReport()

        cls.REDIS_URL = cls._env_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_MAX_CONNECTIONS = cls._env_number("REDIS_MAX_CONNECTIONS", 50, int, 1, 500)
        cls.REDIS_SOCKET_TIMEOUT = cls._env_number("REDIS_SOCKET_TIMEOUT", 5, int, 1, 60)

        cls.LEADERBOARD_TIMEOUT_SECONDS = cls._env_number(
            "LEADERBOARD_TIMEOUT_SECONDS", 5.0, float, 0.01, 120.0
        )

        cls.ENVIRONMENT = Environment.from_string(cls._env_str("ENVIRONMENT", "development")).value
        level = cls._env_str("LOG_LEVEL", "INFO").upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            cls._reject("LOG_LEVEL", f"LOG_LEVEL={level!r} is not a logging level, using INFO")
            level = "INFO"
        cls.LOG_LEVEL = level
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_TO_FILE = bool(cls._safe_bool("LOG_TO_FILE", False))

        cls.LOGS_DIR = Path(cls._env_str("LOGS_DIR", str(cls.PROJECT_ROOT / "logs")))
        cls.CONFIG_DIR = Path(cls._env_str("CONFIG_DIR", str(cls.PROJECT_ROOT / "config")))

    # =========================================================================
    # Environment Helpers
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == Environment.DEVELOPMENT.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT == Environment.TESTING.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Loggable summary. The Redis URL is reduced to its scheme."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "redis_scheme": cls.REDIS_URL.split("://")[0] if "://" in cls.REDIS_URL else "unknown",
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "leaderboard_timeout_seconds": cls.LEADERBOARD_TIMEOUT_SECONDS,
            "load_metrics": cls._report.summary(),
        }


Config.load()
