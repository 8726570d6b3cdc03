"""
Statboard Logging Infrastructure

Exports the structured logging subsystem, the log context manager and
logging health.
"""

from statboard.core.logging.logger import (
    LogContext,
    LoggerSettings,
    LoggingHealth,
    get_log_context,
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LogContext",
    "LoggingHealth",
    "get_log_context",
    "LoggerSettings",
]
