"""
Infrastructure exceptions for Statboard.

Two hierarchies share one structured base, `StatboardError`:

- `StatboardInfrastructureException` (this module): the store or the
  configuration failed. Needs an operator, not a corrected request.
- `StatboardDomainException` (`modules/shared/exceptions.py`): a request
  was rejected, or a collaborator broke its contract.

Every `StatboardError` carries `message`, `details` (dict), `severity`
(`ErrorSeverity`, which the service logs at), `is_retryable` (a hint for
callers; the engine itself never retries a failed call) and a stable
`error_code`, and serializes with `to_dict()`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"  # bad client input; nothing is broken
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"  # a contract or integrity violation


class StatboardError(Exception):
    """
    Structured base for both exception hierarchies.

    Subclasses set `DEFAULT_SEVERITY` / `DEFAULT_RETRYABLE`; the keyword
    arguments override them per instance.
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.error_code}] {self.message}"
        return f"[{self.error_code}] {self.message} | Details: {self.details}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, details={self.details!r}, "
            f"severity={self.severity.value!r}, is_retryable={self.is_retryable!r})"
        )


class StatboardInfrastructureException(StatboardError):
    """
    Base for infrastructure failures.

    Example:
        >>> raise StatboardInfrastructureException(
        ...     "Redis pipeline failed",
        ...     {"operation": "ZADD"}
        ... )
    """


class ConfigurationError(StatboardInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class StoreUnavailable(StatboardInfrastructureException):
    """
    Raised when an ordered-set store call fails or exceeds its deadline.

    Covers single commands, range fetches, rank fetches and batched
    transactions alike. A batch that fails raises this once for the whole
    batch; no per-operation partial result is surfaced.

    Args:
        operation: Logical store operation (e.g. "ZADD", "BATCH", "ZREVRANGE")
        key: Ranking key involved, if a single one applies
        original_error: The underlying exception, if any
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.key = key
        self.original_error = original_error
        if original_error is None:
            reason = "no response"
        else:
            reason = str(original_error) or type(original_error).__name__
        target = f" on '{key}'" if key else ""
        super().__init__(
            f"Ordered-set store unavailable during {operation}{target}: {reason}",
            details={
                "operation": operation,
                "key": key,
                "error": reason,
                "error_type": type(original_error).__name__ if original_error else None,
            },
            error_code="STORE_UNAVAILABLE",
        )


def is_transient_error(exc: BaseException) -> bool:
    """
    True if the caller may retry. Works for both hierarchies; plain
    exceptions are never transient.
    """
    return bool(getattr(exc, "is_retryable", False))


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """Severity to log `exc` at; ERROR for anything without one."""
    severity = getattr(exc, "severity", None)
    if isinstance(severity, ErrorSeverity):
        return severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
