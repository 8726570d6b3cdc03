"""
Redis Infrastructure for Statboard

Purpose
-------
Connection lifecycle, resilience, metrics and the ordered-set store client
that backs every leaderboard ranking.

Exports
-------
Core Service:
    RedisService - Connection pool owner, health checks, store factory

Ordered-Set Store:
    OrderedSetStore - Store protocol the engine depends on
    RedisSortedSetStore - Redis sorted-set implementation
    SortOrder, RankingEntry - Read-side value types
    Upsert, Remove, RankOf - Batch operations

Resilience:
    RedisResilience - Circuit breaker + retry
    RetryPolicy, CircuitSettings - Their settings, loaded from ConfigManager
    CircuitState - Circuit breaker state enum
    CircuitBreakerOpenError - Raised when the circuit is open

Observability:
    RedisMetrics - Centralized metrics collection
    traced_operation - Timing/metrics/log wrapper for store calls
"""

from statboard.core.redis.metrics import RedisMetrics
from statboard.core.redis.resilience import (
    CircuitBreakerOpenError,
    CircuitSettings,
    CircuitState,
    RedisResilience,
    RetryPolicy,
)
from statboard.core.redis.service import RedisService
from statboard.core.redis.sorted_set import (
    BatchOperation,
    OrderedSetStore,
    RankingEntry,
    RankOf,
    RedisSortedSetStore,
    Remove,
    SortOrder,
    Upsert,
)
from statboard.core.redis.tracing import TraceContext, traced_operation

__all__ = [
    "RedisService",
    "OrderedSetStore",
    "RedisSortedSetStore",
    "SortOrder",
    "RankingEntry",
    "Upsert",
    "Remove",
    "RankOf",
    "BatchOperation",
    "RedisResilience",
    "RetryPolicy",
    "CircuitSettings",
    "CircuitState",
    "CircuitBreakerOpenError",
    "RedisMetrics",
    "TraceContext",
    "traced_operation",
]
