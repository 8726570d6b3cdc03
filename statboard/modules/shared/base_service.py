"""
Base Service Foundation

Purpose
-------
Foundational class for Statboard domain services: structured logging with
operation context and safe config access.

Design Notes
------------
What this class does NOT do:
- Own store connections (injected by the concrete service)
- Open log contexts (services wrap each public operation in `LogContext`)

Usage
-----
    class LeaderboardService(BaseService):
        def __init__(self, store, registry):
            super().__init__(ConfigManager, get_logger(__name__))
            ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from statboard.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger

    from statboard.core.config.manager import ConfigManager


class BaseService:
    """
    Base class for domain services.

    Args:
        config_manager: Configuration manager (class or instance exposing `get`)
        logger: Structured logger instance
    """

    def __init__(self, config_manager: type[ConfigManager], logger: Logger) -> None:
        self._config = config_manager
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and the key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def log_operation(self, action: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {action}",
            extra={"action": action, **context},
        )

    def log_error(
        self,
        action: str,
        error: BaseException,
        **context: Any,
    ) -> None:
        """Log a failed operation at the exception's own severity."""
        severity = getattr(error, "severity", None)
        level = getattr(severity, "value", "error").upper()
        self.log.log(
            getattr(logging, level, logging.ERROR),
            f"Service error during {action}: {error}",
            extra={
                "action": action,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
