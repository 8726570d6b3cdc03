"""
Redis resilience: circuit breaker plus bounded retry.

Every store and resolver command goes through `RedisResilience.execute`,
so a flapping connection is retried briefly and a dead one fails fast.

- `RetryPolicy`: how many attempts, and the jittered exponential delay
  between them. Only connection-level errors are retried; a command error
  (WRONGTYPE, EXECABORT) fails on the first attempt.
- `Circuit`: CLOSED -> OPEN after `failure_threshold` consecutive failures,
  OPEN -> HALF_OPEN once `timeout_seconds` have passed, HALF_OPEN -> CLOSED
  after `success_threshold` successes. Any failure while HALF_OPEN reopens.

Both read their settings from `core.redis.resilience.{retry,circuit}.*`
in ConfigManager. Retrying is safe because every command routed here is
idempotent (ZADD / ZREM / ZRANGE / ZRANK / HMGET / HGET, MULTI/EXEC batches
of those).
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from statboard.core.config import ConfigManager
from statboard.core.logging.logger import get_logger

logger = get_logger(__name__)

RETRYABLE_EXCEPTIONS = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionRefusedError,
    ConnectionResetError,
)


class CircuitState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreakerOpenError(Exception):
    """The circuit is OPEN; the command was rejected without touching Redis."""


def _config_number(key: str, default: Any) -> Any:
    value = ConfigManager.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return type(default)(value)


# ============================================================================
# RETRY POLICY
# ============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    multiplier: float = 2.0
    jitter: bool = True

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        prefix = "core.redis.resilience.retry"
        jitter = ConfigManager.get(f"{prefix}.jitter", True)
        return cls(
            max_attempts=_config_number(f"{prefix}.max_attempts", 3),
            initial_delay=_config_number(f"{prefix}.initial_delay_seconds", 0.1),
            max_delay=_config_number(f"{prefix}.max_delay_seconds", 2.0),
            multiplier=_config_number(f"{prefix}.backoff_multiplier", 2.0),
            jitter=jitter if isinstance(jitter, bool) else True,
        )

    def delay_for(self, attempt: int) -> float:
        """
        Seconds to wait after failed attempt `attempt` (1-based).

        Example:
            >>> RetryPolicy(jitter=False).delay_for(2)
            0.2
        """
        delay = min(self.initial_delay * self.multiplier ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1, 0.1) * delay
        return max(0.0, delay)


# ============================================================================
# CIRCUIT
# ============================================================================


@dataclass(frozen=True)
class CircuitSettings:
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_seconds: float = 60.0

    @classmethod
    def from_config(cls) -> "CircuitSettings":
        prefix = "core.redis.resilience.circuit"
        return cls(
            failure_threshold=_config_number(f"{prefix}.failure_threshold", 5),
            success_threshold=_config_number(f"{prefix}.success_threshold", 2),
            timeout_seconds=_config_number(f"{prefix}.timeout_seconds", 60.0),
        )


class Circuit:
    """
    Circuit state machine. Not locked itself; `RedisResilience` serializes
    access.
    """

    def __init__(self, settings: CircuitSettings) -> None:
        self.settings = settings
        self.state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.consecutive_successes = 0
        self.opened_at: Optional[float] = None
        self.last_failure_at: Optional[float] = None

    def allows_call(self, now: float) -> bool:
        if self.state is not CircuitState.OPEN:
            return True
        if self.opened_at is not None and now - self.opened_at < self.settings.timeout_seconds:
            return False
        self._move_to(CircuitState.HALF_OPEN)
        return True

    def on_success(self) -> None:
        self.consecutive_failures = 0
        self.consecutive_successes += 1
        if (
            self.state is CircuitState.HALF_OPEN
            and self.consecutive_successes >= self.settings.success_threshold
        ):
            self._move_to(CircuitState.CLOSED)

    def on_failure(self, now: float) -> None:
        self.consecutive_successes = 0
        self.consecutive_failures += 1
        self.last_failure_at = now
        if self.state is CircuitState.HALF_OPEN or (
            self.state is CircuitState.CLOSED
            and self.consecutive_failures >= self.settings.failure_threshold
        ):
            self.trip(now)

    def trip(self, now: float) -> None:
        self.opened_at = now
        self._move_to(CircuitState.OPEN)

    def close(self) -> None:
        self.last_failure_at = None
        self._move_to(CircuitState.CLOSED)

    def seconds_until_half_open(self, now: float) -> Optional[float]:
        if self.state is not CircuitState.OPEN or self.opened_at is None:
            return None
        return max(0.0, self.settings.timeout_seconds - (now - self.opened_at))

    def _move_to(self, state: CircuitState) -> None:
        previous, self.state = self.state, state
        self.consecutive_successes = 0
        if state is not CircuitState.OPEN:
            self.consecutive_failures = 0
        if state is CircuitState.CLOSED:
            self.opened_at = None

        log = logger.warning if state is CircuitState.OPEN else logger.info
        log(
            f"Redis circuit {state.value}",
            extra={
                "previous_state": previous.value,
                "consecutive_failures": self.consecutive_failures,
                "timeout_seconds": self.settings.timeout_seconds,
            },
        )


# ============================================================================
# RESILIENCE LAYER
# ============================================================================


class RedisResilience:
    """
    Circuit breaker and retry around one Redis command.

    Args:
        retry: Retry policy (default: from ConfigManager)
        circuit: Circuit settings (default: from ConfigManager)

    Example:
        >>> resilience = RedisResilience()
        >>> members = await resilience.execute(
        ...     operation=lambda: client.zrevrange("player.wins", 0, 9),
        ...     operation_name="ZREVRANGE",
        ... )
    """

    def __init__(
        self,
        retry: Optional[RetryPolicy] = None,
        circuit: Optional[CircuitSettings] = None,
    ) -> None:
        self.retry = retry or RetryPolicy.from_config()
        self.circuit = Circuit(circuit or CircuitSettings.from_config())
        self._lock = asyncio.Lock()

        logger.debug(
            "RedisResilience ready",
            extra={
                "retry_max_attempts": self.retry.max_attempts,
                "circuit_failure_threshold": self.circuit.settings.failure_threshold,
                "circuit_timeout_seconds": self.circuit.settings.timeout_seconds,
            },
        )

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
        max_attempts: Optional[int] = None,
    ) -> Any:
        """
        Run `operation` (a factory returning a fresh awaitable per attempt).

        Raises:
            CircuitBreakerOpenError: The circuit rejected the call
            Exception: The command's own error, after retries where allowed
        """
        async with self._lock:
            allowed = self.circuit.allows_call(time.monotonic())
        if not allowed:
            raise CircuitBreakerOpenError(
                f"Redis circuit breaker is OPEN, operation '{operation_name}' rejected"
            )

        attempts = max(1, max_attempts if max_attempts is not None else self.retry.max_attempts)
        attempt = 1
        while True:
            try:
                result = await operation()
            except Exception as exc:
                async with self._lock:
                    self.circuit.on_failure(time.monotonic())

                retryable = isinstance(exc, RETRYABLE_EXCEPTIONS)
                failure = {
                    "command": operation_name,
                    "attempt": attempt,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                }
                if not retryable or attempt >= attempts:
                    logger.error(
                        "Redis command failed",
                        extra={**failure, "retryable": retryable, "circuit_state": self.state.value},
                    )
                    raise

                delay = self.retry.delay_for(attempt)
                logger.warning(
                    "Redis command failed, retrying",
                    extra={**failure, "retry_delay_seconds": round(delay, 3)},
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            async with self._lock:
                self.circuit.on_success()
            if attempt > 1:
                logger.info(
                    "Redis command recovered",
                    extra={"command": operation_name, "attempt": attempt},
                )
            return result

    # =========================================================================
    # CONTROL & STATUS
    # =========================================================================

    async def reset(self) -> None:
        """Force the circuit CLOSED."""
        async with self._lock:
            self.circuit.close()

    async def force_open(self) -> None:
        """Force the circuit OPEN, e.g. for maintenance."""
        async with self._lock:
            self.circuit.trip(time.monotonic())

    @property
    def state(self) -> CircuitState:
        return self.circuit.state

    @property
    def is_closed(self) -> bool:
        return self.circuit.state is CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.circuit.state is CircuitState.OPEN

    def get_status(self) -> Dict[str, Any]:
        circuit = self.circuit
        return {
            "circuit_state": circuit.state.value,
            "consecutive_failures": circuit.consecutive_failures,
            "consecutive_successes": circuit.consecutive_successes,
            "seconds_until_half_open": circuit.seconds_until_half_open(time.monotonic()),
            "circuit": {
                "failure_threshold": circuit.settings.failure_threshold,
                "success_threshold": circuit.settings.success_threshold,
                "timeout_seconds": circuit.settings.timeout_seconds,
            },
            "retry": {
                "max_attempts": self.retry.max_attempts,
                "initial_delay_seconds": self.retry.initial_delay,
                "max_delay_seconds": self.retry.max_delay,
                "backoff_multiplier": self.retry.multiplier,
                "jitter": self.retry.jitter,
            },
        }
