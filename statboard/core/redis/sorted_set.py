"""
Ordered-set store client backed by Redis sorted sets.

Purpose
-------
Expose the five primitives the leaderboard engine needs from an ordered-set
store (upsert, remove, rank-range fetch, rank lookup and atomic batch) behind
the `OrderedSetStore` protocol, with a Redis implementation that speaks
ZADD / ZREM / ZRANGE / ZREVRANGE / ZRANK / ZREVRANK and MULTI/EXEC.

Responsibilities
----------------
- Translate store calls into Redis sorted-set commands
- Route every call through RedisResilience and traced_operation
- Bound every call with a deadline (`asyncio.wait_for`)
- Map all transport, command, breaker and deadline failures to StoreUnavailable

Non-Responsibilities
--------------------
- No key naming (callers pass Ranking Keys)
- No value classification or rank arithmetic
- No connection lifecycle (RedisService owns the pool)

Architecture Notes
------------------
- Redis orders equal scores lexicographically by member: ascending for
  ZRANGE/ZRANK and descending for ZREVRANGE/ZREVRANK. Ties are never broken
  here.
- A batch is one `pipeline(transaction=True)`; readers never observe half of it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import RedisError

from statboard.core.exceptions import StoreUnavailable
from statboard.core.logging.logger import get_logger
from statboard.core.redis.resilience import CircuitBreakerOpenError, RedisResilience
from statboard.core.redis.tracing import traced_operation

logger = get_logger(__name__)

__all__ = [
    "SortOrder",
    "RankingEntry",
    "Upsert",
    "Remove",
    "RankOf",
    "BatchOperation",
    "OrderedSetStore",
    "RedisSortedSetStore",
]

_STORE_FAILURES = (
    RedisError,
    CircuitBreakerOpenError,
    asyncio.TimeoutError,
    OSError,
)


class SortOrder(str, Enum):
    """Direction a ranking is read in. DESC puts the highest score at rank 0."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def from_string(cls, value: Union[str, "SortOrder"]) -> "SortOrder":
        if isinstance(value, SortOrder):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown sort order: {value!r}") from exc


@dataclass(frozen=True)
class RankingEntry:
    entity_id: str
    score: float


@dataclass(frozen=True)
class Upsert:
    key: str
    entity_id: str
    score: float


@dataclass(frozen=True)
class Remove:
    key: str
    entity_id: str


@dataclass(frozen=True)
class RankOf:
    key: str
    entity_id: str
    order: SortOrder = SortOrder.DESC


BatchOperation = Union[Upsert, Remove, RankOf]


@runtime_checkable
class OrderedSetStore(Protocol):
    """
    Contract of the ordered-set store the engine writes to and reads from.

    Ranks are 0-based. `rank_of` returns None for an absent member.
    `execute_batch` applies all operations atomically and returns one
    result per operation, in order (the 0-based rank or None for RankOf).
    """

    async def upsert(
        self, key: str, entity_id: str, score: float, *, timeout: Optional[float] = None
    ) -> None: ...

    async def remove(
        self, key: str, entity_id: str, *, timeout: Optional[float] = None
    ) -> None: ...

    async def range_by_rank(
        self,
        key: str,
        start: int,
        end_inclusive: int,
        order: SortOrder,
        *,
        timeout: Optional[float] = None,
    ) -> List[RankingEntry]: ...

    async def rank_of(
        self, key: str, entity_id: str, order: SortOrder, *, timeout: Optional[float] = None
    ) -> Optional[int]: ...

    async def execute_batch(
        self, operations: Sequence[BatchOperation], *, timeout: Optional[float] = None
    ) -> List[Any]: ...


def _decode(member: Any) -> str:
    if isinstance(member, bytes):
        return member.decode("utf-8")
    return str(member)


class RedisSortedSetStore:
    """
    `OrderedSetStore` over a shared `redis.asyncio` client.

    Holds no state beyond the client, the resilience layer and the default
    deadline. Safe to share across coroutines.

    Example
    -------
    >>> store = RedisSortedSetStore(RedisService.client(), RedisService.get_resilience())
    >>> await store.execute_batch([Upsert("player.wins", "p1", 12.0)])
    >>> await store.rank_of("player.wins", "p1", SortOrder.DESC)
    0
    """

    def __init__(
        self,
        client: AsyncRedis,
        resilience: Optional[RedisResilience] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._resilience = resilience or RedisResilience()
        self._default_timeout = default_timeout

    # ═════════════════════════════════════════════════════════════════════════
    # SINGLE COMMANDS
    # ═════════════════════════════════════════════════════════════════════════

    async def upsert(
        self, key: str, entity_id: str, score: float, *, timeout: Optional[float] = None
    ) -> None:
        await self._call(
            "ZADD",
            key,
            f"{key} {entity_id}={score}",
            lambda: self._client.zadd(key, {entity_id: float(score)}),
            timeout,
        )

    async def remove(
        self, key: str, entity_id: str, *, timeout: Optional[float] = None
    ) -> None:
        await self._call(
            "ZREM",
            key,
            f"{key} {entity_id}",
            lambda: self._client.zrem(key, entity_id),
            timeout,
        )

    async def range_by_rank(
        self,
        key: str,
        start: int,
        end_inclusive: int,
        order: SortOrder,
        *,
        timeout: Optional[float] = None,
    ) -> List[RankingEntry]:
        if order == SortOrder.DESC:
            command = "ZREVRANGE"
            factory = lambda: self._client.zrevrange(key, start, end_inclusive, withscores=True)
        else:
            command = "ZRANGE"
            factory = lambda: self._client.zrange(key, start, end_inclusive, withscores=True)

        raw = await self._call(command, key, f"{key} [{start}, {end_inclusive}]", factory, timeout)
        return [RankingEntry(_decode(member), float(score)) for member, score in raw or []]

    async def rank_of(
        self, key: str, entity_id: str, order: SortOrder, *, timeout: Optional[float] = None
    ) -> Optional[int]:
        if order == SortOrder.DESC:
            command = "ZREVRANK"
            factory = lambda: self._client.zrevrank(key, entity_id)
        else:
            command = "ZRANK"
            factory = lambda: self._client.zrank(key, entity_id)

        rank = await self._call(command, key, f"{key} {entity_id}", factory, timeout)
        return None if rank is None else int(rank)

    # ═════════════════════════════════════════════════════════════════════════
    # ATOMIC BATCH
    # ═════════════════════════════════════════════════════════════════════════

    async def execute_batch(
        self, operations: Sequence[BatchOperation], *, timeout: Optional[float] = None
    ) -> List[Any]:
        """
        Apply `operations` in one MULTI/EXEC transaction.

        Returns one result per operation in order: the 0-based rank (or None)
        for RankOf, and the Redis reply count for Upsert/Remove.

        Raises
        ------
        StoreUnavailable
            If the transaction fails, times out or returns no usable response.
        """
        operations = list(operations)
        if not operations:
            return []

        async def run_transaction() -> List[Any]:
            async with self._client.pipeline(transaction=True) as pipe:
                for op in operations:
                    self._queue(pipe, op)
                return await pipe.execute()

        description = f"{len(operations)} ops: " + ", ".join(
            sorted({op.key for op in operations})
        )
        results = await self._call("BATCH", None, description, run_transaction, timeout)

        if results is None or len(results) != len(operations):
            logger.error(
                "Store batch returned no usable response",
                extra={
                    "operation_count": len(operations),
                    "result_count": None if results is None else len(results),
                },
            )
            raise StoreUnavailable("BATCH")

        return [
            (None if result is None else int(result)) if isinstance(op, RankOf) else result
            for op, result in zip(operations, results)
        ]

    @staticmethod
    def _queue(pipe: Any, op: BatchOperation) -> None:
        if isinstance(op, Upsert):
            pipe.zadd(op.key, {op.entity_id: float(op.score)})
        elif isinstance(op, Remove):
            pipe.zrem(op.key, op.entity_id)
        elif isinstance(op, RankOf):
            if op.order == SortOrder.DESC:
                pipe.zrevrank(op.key, op.entity_id)
            else:
                pipe.zrank(op.key, op.entity_id)
        else:
            raise TypeError(f"Unsupported batch operation: {op!r}")

    # ═════════════════════════════════════════════════════════════════════════
    # EXECUTION PLUMBING
    # ═════════════════════════════════════════════════════════════════════════

    async def _call(
        self,
        command: str,
        key: Optional[str],
        description: str,
        factory: Callable[[], Awaitable[Any]],
        timeout: Optional[float],
    ) -> Any:
        deadline = timeout if timeout is not None else self._default_timeout

        try:
            async with traced_operation(command, description):
                return await asyncio.wait_for(
                    self._resilience.execute(operation=factory, operation_name=command),
                    timeout=deadline,
                )
        except _STORE_FAILURES as exc:
            logger.error(
                "Ordered-set store call failed",
                extra={
                    "command": command,
                    "key": key,
                    "timeout_seconds": deadline,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreUnavailable(command, key=key, original_error=exc) from exc
