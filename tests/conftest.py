"""
Pytest Configuration and Fixtures for the Statboard Test Suite
==============================================================

Purpose
-------
Centralized fixtures for the leaderboard engine tests.

Responsibilities
----------------
- In-memory ordered-set store with Redis sorted-set ordering (unit tests)
- Metric registry and display resolver fixtures
- Testcontainers Redis for integration tests (skipped without Docker)

Architecture Notes
------------------
- Unit tests use the in-memory store and mocks (fast, isolated)
- Integration tests use a real Redis container
- Fixtures follow scope hierarchy: session > function
"""

from __future__ import annotations

import math
import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_TO_FILE", "false")

from typing import Any, AsyncGenerator, Dict, Generator, List, Mapping, Optional, Sequence

import pytest
import pytest_asyncio
from testcontainers.redis import RedisContainer

from statboard.core.config import ConfigManager
from statboard.core.exceptions import StoreUnavailable
from statboard.core.logging.logger import get_logger
from statboard.core.redis.metrics import RedisMetrics
from statboard.core.redis.service import RedisService
from statboard.core.redis.sorted_set import (
    BatchOperation,
    RankingEntry,
    RankOf,
    Remove,
    SortOrder,
    Upsert,
)
from statboard.modules.leaderboard.formatters import format_duration, format_integer
from statboard.modules.leaderboard.models import DisplayRecord, MetricDefinition
from statboard.modules.leaderboard.reader import RankingReader
from statboard.modules.leaderboard.registry import MetricRegistry
from statboard.modules.leaderboard.writer import RankingWriter

logger = get_logger(__name__)


# ============================================================================
# IN-MEMORY ORDERED-SET STORE (Unit Tests)
# ============================================================================


class InMemoryOrderedSetStore:
    """
    `OrderedSetStore` double with Redis sorted-set ordering.

    Ascending order sorts by (score, member); descending is its exact
    reverse, so equal scores come back in reverse lexicographic order, as
    ZREVRANGE does.
    """

    def __init__(self) -> None:
        self.sets: Dict[str, Dict[str, float]] = {}
        self.batches: List[List[BatchOperation]] = []
        self.range_calls: List[tuple] = []
        self.fail_with: Optional[BaseException] = None
        self.batch_response_override: Any = None
        self.timeouts_seen: List[Optional[float]] = []

    # -- helpers --------------------------------------------------------------

    def _check(self, operation: str, timeout: Optional[float]) -> None:
        self.timeouts_seen.append(timeout)
        if self.fail_with is not None:
            raise StoreUnavailable(operation, original_error=self.fail_with)

    def ordered(self, key: str, order: SortOrder = SortOrder.DESC) -> List[str]:
        members = sorted(self.sets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        if order == SortOrder.DESC:
            members.reverse()
        return [member for member, _ in members]

    def score(self, key: str, entity_id: str) -> Optional[float]:
        return self.sets.get(key, {}).get(entity_id)

    def seed(self, key: str, scores: Mapping[str, float]) -> None:
        self.sets.setdefault(key, {}).update({k: float(v) for k, v in scores.items()})

    def _zadd(self, key: str, entity_id: str, score: float) -> int:
        bucket = self.sets.setdefault(key, {})
        added = 0 if entity_id in bucket else 1
        bucket[entity_id] = score
        return added

    def _zrem(self, key: str, entity_id: str) -> int:
        bucket = self.sets.get(key, {})
        if entity_id not in bucket:
            return 0
        del bucket[entity_id]
        if not bucket:
            self.sets.pop(key, None)
        return 1

    def _rank(self, key: str, entity_id: str, order: SortOrder) -> Optional[int]:
        members = self.ordered(key, order)
        return members.index(entity_id) if entity_id in members else None

    # -- protocol -------------------------------------------------------------

    async def upsert(self, key, entity_id, score, *, timeout=None) -> None:
        self._check("ZADD", timeout)
        self._zadd(key, entity_id, float(score))

    async def remove(self, key, entity_id, *, timeout=None) -> None:
        self._check("ZREM", timeout)
        self._zrem(key, entity_id)

    async def range_by_rank(self, key, start, end_inclusive, order, *, timeout=None):
        self._check("ZRANGE", timeout)
        self.range_calls.append((key, start, end_inclusive, order))
        bucket = self.sets.get(key, {})
        members = self.ordered(key, order)[start : end_inclusive + 1]
        return [RankingEntry(member, bucket[member]) for member in members]

    async def rank_of(self, key, entity_id, order, *, timeout=None):
        self._check("ZRANK", timeout)
        return self._rank(key, entity_id, order)

    async def execute_batch(self, operations: Sequence[BatchOperation], *, timeout=None):
        self._check("BATCH", timeout)
        operations = list(operations)
        self.batches.append(operations)
        if self.batch_response_override is not None:
            return self.batch_response_override

        results: List[Any] = []
        for op in operations:
            if isinstance(op, Upsert):
                results.append(self._zadd(op.key, op.entity_id, op.score))
            elif isinstance(op, Remove):
                results.append(self._zrem(op.key, op.entity_id))
            elif isinstance(op, RankOf):
                results.append(self._rank(op.key, op.entity_id, op.order))
        return results


class FakeDisplayResolver:
    """Display resolver over a dict of profiles; records every call."""

    def __init__(self, profiles: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.profiles: Dict[str, Dict[str, Any]] = profiles or {}
        self.calls: List[tuple] = []

    async def fetch_display_data(self, entity_ids, field_keys) -> List[DisplayRecord]:
        self.calls.append((list(entity_ids), list(field_keys)))
        records = []
        for entity_id in entity_ids:
            profile = self.profiles.get(entity_id, {})
            records.append(
                DisplayRecord(
                    name=profile.get("name", entity_id),
                    fields={key: profile.get(key) for key in field_keys},
                    entity_id=entity_id,
                )
            )
        return records


# ============================================================================
# REGISTRY FIXTURES
# ============================================================================


def _player_definitions() -> List[MetricDefinition]:
    return [
        MetricDefinition(
            entity_type="Player",
            field_key="wins",
            name="Wins",
            field_name="Wins",
            formatter=format_integer,
            additional_fields=("losses",),
            extra_display="prefix",
        ),
        MetricDefinition(
            entity_type="Player",
            field_key="losses",
            name="Losses",
            field_name="Losses",
        ),
        MetricDefinition(
            entity_type="Player",
            field_key="kills",
            name="Kills",
            field_name="Kills",
        ),
        MetricDefinition(
            entity_type="Player",
            field_key="fastest",
            name="Fastest Run",
            field_name="Time",
            sort=SortOrder.ASC,
            formatter=format_duration,
        ),
        MetricDefinition(
            entity_type="Player",
            field_key="level",
            name="Level",
            field_name="Level",
            hidden=True,
            extra_display="prefix",
        ),
        MetricDefinition(
            entity_type="Player",
            field_key="prefix",
            name="Prefix",
            field_name="Prefix",
            leaderboard=False,
        ),
    ]


@pytest.fixture
def registry() -> MetricRegistry:
    """Player catalog: wins (+losses, prefix), losses, kills, fastest (ASC), level (hidden)."""
    return MetricRegistry(_player_definitions())


@pytest.fixture
def store() -> InMemoryOrderedSetStore:
    return InMemoryOrderedSetStore()


@pytest.fixture
def display_resolver() -> FakeDisplayResolver:
    return FakeDisplayResolver()


@pytest.fixture
def writer(store, registry) -> RankingWriter:
    return RankingWriter(store, registry, default_timeout=1.0)


@pytest.fixture
def reader(store, registry, display_resolver) -> RankingReader:
    return RankingReader(
        store,
        registry,
        display_resolvers={"Player": display_resolver},
        default_timeout=1.0,
    )


@pytest.fixture
def mock_input_resolver(mocker):
    """Input resolver whose rank is set per test via `return_value`."""
    resolver = mocker.MagicMock()
    resolver.resolve_rank_from_input = mocker.AsyncMock(return_value=1)
    return resolver


@pytest.fixture
def config_overrides() -> Generator[Any, None, None]:
    """ConfigManager with in-memory overrides dropped after the test."""
    ConfigManager.reset()
    yield ConfigManager
    ConfigManager.reset()


@pytest.fixture
def fresh_metrics() -> Generator[type, None, None]:
    RedisMetrics.reset()
    yield RedisMetrics
    RedisMetrics.reset()


def scores_for(count: int, start: float = 100.0) -> Dict[str, float]:
    """`count` players with strictly decreasing scores: p01 highest."""
    return {f"p{i:02d}": start - i for i in range(1, count + 1)}


def is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start a Redis testcontainer for integration tests.

    Scope: session. Skips the requesting tests when Docker is unavailable.
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    try:
        container.start()
    except Exception as exc:  # docker daemon missing or unreachable
        pytest.skip(f"Docker unavailable for Redis testcontainer: {exc}")

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_url(redis_container) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


@pytest_asyncio.fixture
async def redis_service(redis_url) -> AsyncGenerator[type[RedisService], None]:
    """Initialized RedisService against the container; database flushed per test."""
    await RedisService.initialize(url=redis_url)
    await RedisService.client().flushdb()
    yield RedisService
    await RedisService.client().flushdb()
    await RedisService.shutdown()
