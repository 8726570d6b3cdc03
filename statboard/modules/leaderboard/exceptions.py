"""
Leaderboard domain exceptions.

Client-input errors (INFO):
- UnknownMetric: no rankable definition for (entity_type, field_key)
- InvalidLeaderboardQuery: bad page, position, input text or mode
- InputNotFound: free-text input maps to no ranked entity

Server errors (ERROR, retryable hint only):
- ResolverUnavailable: an auxiliary or input resolver failed or timed out
- StoreUnavailable: re-exported from core; the ordered-set store failed

Consistency violations (CRITICAL):
- ResolverMismatch: the auxiliary resolver broke its one-record-per-id contract
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from statboard.core.exceptions import ErrorSeverity, StoreUnavailable
from statboard.modules.shared.exceptions import StatboardDomainException

__all__ = [
    "LeaderboardError",
    "UnknownMetric",
    "InvalidLeaderboardQuery",
    "InputNotFound",
    "ResolverMismatch",
    "ResolverUnavailable",
    "StoreUnavailable",
]


class LeaderboardError(StatboardDomainException):
    """Base for every error raised by the leaderboard engine itself."""


class UnknownMetric(LeaderboardError):
    """
    Raised when a field key has no leaderboard definition for an entity type.

    Args:
        entity_type: Entity type queried (e.g. "Player")
        field_key: Field key that was not found or is display-only
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, entity_type: str, field_key: str) -> None:
        self.entity_type = entity_type
        self.field_key = field_key
        super().__init__(
            f"No leaderboard for {entity_type}.{field_key}",
            details={"entity_type": entity_type, "field_key": field_key},
            error_code="UNKNOWN_METRIC",
        )


class InvalidLeaderboardQuery(LeaderboardError):
    """
    Raised when a query's input does not fit its addressing mode.

    Args:
        mode: Addressing mode as given by the caller
        value: Offending input
        reason: Why it was rejected
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, mode: Any, value: Any, reason: str) -> None:
        self.mode = mode
        self.value = value
        self.reason = reason
        super().__init__(
            f"Invalid leaderboard query ({getattr(mode, 'value', mode)}): {reason}",
            details={"mode": str(getattr(mode, "value", mode)), "value": repr(value), "reason": reason},
            error_code="INVALID_LEADERBOARD_QUERY",
        )


class InputNotFound(LeaderboardError):
    """Raised when free-text input resolves to no ranked entity."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, entity_type: str, field_key: str, text: str) -> None:
        self.entity_type = entity_type
        self.field_key = field_key
        self.text = text
        super().__init__(
            f"No ranked {entity_type} matches '{text}' on {field_key}",
            details={"entity_type": entity_type, "field_key": field_key, "input": text},
            error_code="INPUT_NOT_FOUND",
        )


class ResolverMismatch(LeaderboardError):
    """
    Raised when the auxiliary resolver does not return exactly one record per
    requested id, in order.

    Args:
        expected_ids: Ids the reader asked for, in window order
        received: Number of records returned
        mismatched_id: First id whose record came back out of place, if any
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(
        self,
        expected_ids: Sequence[str],
        received: int,
        mismatched_id: Optional[str] = None,
    ) -> None:
        self.expected_ids = list(expected_ids)
        self.received = received
        self.mismatched_id = mismatched_id
        if mismatched_id is not None:
            message = f"Display record out of order for '{mismatched_id}'"
        else:
            message = f"Expected {len(self.expected_ids)} display records, got {received}"
        super().__init__(
            message,
            details={
                "expected": len(self.expected_ids),
                "received": received,
                "mismatched_id": mismatched_id,
            },
            error_code="RESOLVER_MISMATCH",
        )


class ResolverUnavailable(LeaderboardError):
    """
    Raised when a resolver call fails or exceeds its deadline.

    Args:
        resolver: Which resolver failed ("display" or "input")
        original_error: Underlying exception, if any
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, resolver: str, original_error: Optional[BaseException] = None) -> None:
        self.resolver = resolver
        self.original_error = original_error
        reason = (str(original_error) or type(original_error).__name__) if original_error else "unavailable"
        super().__init__(
            f"{resolver.capitalize()} resolver unavailable: {reason}",
            details={
                "resolver": resolver,
                "error": reason,
                "error_type": type(original_error).__name__ if original_error else None,
            },
            error_code="RESOLVER_UNAVAILABLE",
        )
