"""
In-process metrics for Redis traffic.

`traced_operation` records every store and resolver command here, and
`RedisService.health_check` records its PING checks. Nothing is exported
or persisted: `RedisService.get_status()` and `bootstrap.get_health()`
read the summary.

Per command type (ZADD, ZREVRANGE, BATCH, HMGET, ...) the collector keeps
counts, min/avg/max latency and p50/p95/p99 over the last
`core.redis.metrics.retention_samples` latencies. Commands slower than
`core.redis.metrics.slow_operation_ms` are logged as warnings.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Deque, Dict, List, NamedTuple

from statboard.core.config import ConfigManager
from statboard.core.logging.logger import get_logger

logger = get_logger(__name__)

_HEALTH_HISTORY = 100


def _positive_int(key: str, default: int) -> int:
    value = ConfigManager.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def _percentile(ordered: List[float], pct: int) -> float:
    if not ordered:
        return 0.0
    return ordered[min(int(len(ordered) * pct / 100), len(ordered) - 1)]


@dataclass
class CommandStats:
    """Counters and a bounded latency sample for one command type."""

    successes: int = 0
    failures: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    samples: Deque[float] = field(
        default_factory=lambda: deque(
            maxlen=_positive_int("core.redis.metrics.retention_samples", 1000)
        )
    )

    @property
    def count(self) -> int:
        return self.successes + self.failures

    def add(self, latency_ms: float, success: bool) -> None:
        if success:
            self.successes += 1
        else:
            self.failures += 1
        self.min_ms = latency_ms if self.count == 1 else min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)
        self.total_ms += latency_ms
        self.samples.append(latency_ms)

    def snapshot(self) -> Dict[str, Any]:
        count = self.count
        ordered = sorted(self.samples)
        return {
            "total_count": count,
            "success_count": self.successes,
            "failure_count": self.failures,
            "success_rate_pct": round(self.successes / count * 100, 2) if count else 0.0,
            "avg_latency_ms": round(self.total_ms / count, 2) if count else 0.0,
            "min_latency_ms": round(self.min_ms, 2),
            "max_latency_ms": round(self.max_ms, 2),
            "p50_latency_ms": round(_percentile(ordered, 50), 2),
            "p95_latency_ms": round(_percentile(ordered, 95), 2),
            "p99_latency_ms": round(_percentile(ordered, 99), 2),
        }


class HealthCheck(NamedTuple):
    at: float
    success: bool
    latency_ms: float


class RedisMetrics:
    """
    Process-wide collector. Class methods only; a threading lock guards the
    shared state, so recording is safe from any thread or loop.
    """

    _commands: Dict[str, CommandStats] = {}
    _checks: Deque[HealthCheck] = deque(maxlen=_HEALTH_HISTORY)
    _lock = Lock()
    _started_at: float = time.time()

    @classmethod
    def record_operation(cls, operation: str, latency_ms: float, success: bool = True) -> None:
        """Record one command. `operation` is the command type, e.g. "ZREVRANGE"."""
        with cls._lock:
            stats = cls._commands.get(operation)
            if stats is None:
                stats = cls._commands[operation] = CommandStats()
            stats.add(latency_ms, success)

        threshold = _positive_int("core.redis.metrics.slow_operation_ms", 100)
        if latency_ms > threshold:
            logger.warning(
                "Slow Redis operation detected",
                extra={
                    "command": operation,
                    "latency_ms": round(latency_ms, 2),
                    "threshold_ms": threshold,
                },
            )

    @classmethod
    def record_health_check(cls, success: bool, latency_ms: float) -> None:
        with cls._lock:
            cls._checks.append(HealthCheck(time.time(), success, latency_ms))

    @classmethod
    def get_operation_metrics(cls, operation: str) -> Dict[str, Any]:
        """Snapshot for one command type; {} if it was never recorded."""
        with cls._lock:
            stats = cls._commands.get(operation)
            return stats.snapshot() if stats is not None else {}

    @classmethod
    def get_summary(cls) -> Dict[str, Any]:
        with cls._lock:
            operations = {name: stats.snapshot() for name, stats in cls._commands.items()}
            checks = list(cls._checks)

        passed = sum(1 for check in checks if check.success)
        return {
            "uptime_seconds": round(time.time() - cls._started_at, 2),
            "operations": operations,
            "health": {
                "total_checks": len(checks),
                "successful_checks": passed,
                "failed_checks": len(checks) - passed,
                "success_rate_pct": round(passed / len(checks) * 100, 2) if checks else 0.0,
                "avg_latency_ms": (
                    round(sum(check.latency_ms for check in checks) / len(checks), 2)
                    if checks
                    else 0.0
                ),
            },
        }

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._commands.clear()
            cls._checks.clear()
            cls._started_at = time.time()
