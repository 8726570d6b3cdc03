"""
Core infrastructure layer for Statboard.

Purpose
-------
Provide a single import surface for the infrastructure subsystems:

- Configuration management (Config, ConfigManager)
- Redis subsystem (RedisService, ordered-set store client)
- Logging (structured logging, logger factory, LogContext)
- Infrastructure exceptions (StatboardError base, StatboardInfrastructureException hierarchy)

Non-Responsibilities
--------------------
- Leaderboard logic (lives in `statboard.modules`)
- Any side effects beyond simple re-exports
"""

from statboard.core.config import Config, ConfigManager
from statboard.core.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    StatboardError,
    StatboardInfrastructureException,
    StoreUnavailable,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from statboard.core.logging import LogContext, get_logger
from statboard.core.redis import OrderedSetStore, RedisService, RedisSortedSetStore, SortOrder

__all__ = [
    "Config",
    "ConfigManager",
    "ErrorSeverity",
    "StatboardError",
    "StatboardInfrastructureException",
    "ConfigurationError",
    "StoreUnavailable",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    "get_logger",
    "LogContext",
    "RedisService",
    "OrderedSetStore",
    "RedisSortedSetStore",
    "SortOrder",
]
