"""
Domain exceptions for Statboard.

`StatboardDomainException` is the base for errors a service raises about a
request: the request itself was wrong (severity INFO, see
`is_client_error`), or a collaborator such as a resolver failed or broke
its contract (ERROR / CRITICAL). Front ends turn them into user-facing
messages via `to_dict()`.
"""

from __future__ import annotations

from statboard.core.exceptions import (
    ErrorSeverity,
    StatboardError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "ErrorSeverity",
    "StatboardDomainException",
    "is_client_error",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]


class StatboardDomainException(StatboardError):
    """
    Base exception for all Statboard domain-level errors.

    Example:
        >>> raise StatboardDomainException(
        ...     "Leaderboard query rejected",
        ...     {"reason": "negative page"},
        ...     severity=ErrorSeverity.INFO,
        ... )
    """


def is_client_error(exc: BaseException) -> bool:
    """True for domain errors caused by the request itself (INFO severity)."""
    return isinstance(exc, StatboardDomainException) and exc.severity in (
        ErrorSeverity.DEBUG,
        ErrorSeverity.INFO,
    )
