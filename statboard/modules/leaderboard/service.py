"""
LeaderboardService: the entry point front ends talk to.

Purpose
-------
Wire the writer, reader and resolvers together over one ordered-set store
and run every public operation inside a `LogContext`, so each log line the
engine emits carries the entity type, field, mode and a correlation id.

Responsibilities
----------------
- Build the engine from explicit parts, or from `RedisService` + the YAML
  catalog (`from_redis`)
- Delegate to `RankingWriter` / `RankingReader`
- Log failures once, at the exception's own severity, then re-raise

Non-Responsibilities
--------------------
- Retries (errors carry an `is_retryable` hint; callers decide)
- HTTP or chat formatting of pages
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Union

from statboard.core.config import Config, ConfigManager
from statboard.core.exceptions import StatboardInfrastructureException
from statboard.core.logging.logger import LogContext, get_logger
from statboard.core.redis.service import RedisService
from statboard.core.redis.sorted_set import OrderedSetStore
from statboard.modules.leaderboard.exceptions import LeaderboardError
from statboard.modules.leaderboard.models import AddressingMode, FieldRank, LeaderboardPage
from statboard.modules.leaderboard.reader import RankingReader, coerce_mode
from statboard.modules.leaderboard.registry import MetricRegistry, build_registry
from statboard.modules.leaderboard.resolvers import (
    AuxiliaryDataResolver,
    EntityLookup,
    InputResolver,
    RankedInputResolver,
    RedisHashDisplayResolver,
    RedisNameIndexLookup,
)
from statboard.modules.leaderboard.writer import RankingWriter
from statboard.modules.shared.base_service import BaseService

logger = get_logger(__name__)

_COMPONENT = "leaderboard"
_HANDLED = (LeaderboardError, StatboardInfrastructureException)


class LeaderboardService(BaseService):
    """
    Leaderboard engine facade.

    Args:
        store: Ordered-set store holding the rankings
        registry: Metric catalog
        display_resolvers: Auxiliary data resolver per entity type
        entity_lookup: Text -> id lookup; enables INPUT mode through a
            `RankedInputResolver` backed by this service's reader
        input_resolver: Explicit input resolver (takes precedence over
            `entity_lookup`)
        default_timeout: Per-call deadline in seconds
            (default `Config.LEADERBOARD_TIMEOUT_SECONDS`)

    Example:
        >>> service = LeaderboardService.from_redis()
        >>> await service.apply_update("Player", "p1", {"tntgames.wins": 12})
        >>> page = await service.get_leaderboard("Player", "tntgames.wins", 0, "page")
    """

    def __init__(
        self,
        store: OrderedSetStore,
        registry: MetricRegistry,
        display_resolvers: Optional[Mapping[str, AuxiliaryDataResolver]] = None,
        entity_lookup: Optional[EntityLookup] = None,
        input_resolver: Optional[InputResolver] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        super().__init__(ConfigManager, logger)

        timeout = default_timeout if default_timeout is not None else Config.LEADERBOARD_TIMEOUT_SECONDS
        self.registry = registry
        self.writer = RankingWriter(store, registry, default_timeout=timeout)
        self.reader = RankingReader(
            store,
            registry,
            display_resolvers=display_resolvers,
            input_resolver=input_resolver,
            default_timeout=timeout,
        )
        if input_resolver is None and entity_lookup is not None:
            self.reader.input_resolver = RankedInputResolver(entity_lookup, self.reader)

    @classmethod
    def from_redis(cls, registry: Optional[MetricRegistry] = None) -> "LeaderboardService":
        """
        Engine over the shared Redis client: sorted-set rankings, profile
        hashes for display data and the name index for INPUT lookups.

        Requires `await RedisService.initialize()` first.
        """
        registry = registry or build_registry()
        client = RedisService.client()
        resilience = RedisService.get_resilience()

        return cls(
            store=RedisService.sorted_set_store(),
            registry=registry,
            display_resolvers={
                entity_type: RedisHashDisplayResolver(client, entity_type, resilience=resilience)
                for entity_type in registry.entity_types()
            },
            entity_lookup=RedisNameIndexLookup(client, resilience=resilience),
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    async def apply_update(
        self,
        entity_type: str,
        entity_id: str,
        field_values: Mapping[str, Any],
        fields: Optional[Sequence[str]] = None,
        remove: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        async with LogContext(entity_type=entity_type, component=_COMPONENT, operation="apply_update"):
            try:
                await self.writer.apply_update(
                    entity_type, entity_id, field_values, fields=fields, remove=remove, timeout=timeout
                )
            except _HANDLED as exc:
                self.log_error("apply_update", exc, entity_id=entity_id, remove=remove)
                raise

    async def remove_entity(
        self,
        entity_type: str,
        entity_id: str,
        fields: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        async with LogContext(entity_type=entity_type, component=_COMPONENT, operation="remove_entity"):
            try:
                await self.writer.remove_entity(entity_type, entity_id, fields=fields, timeout=timeout)
            except _HANDLED as exc:
                self.log_error("remove_entity", exc, entity_id=entity_id)
                raise

    # =========================================================================
    # READS
    # =========================================================================

    async def get_leaderboard(
        self,
        entity_type: str,
        field_key: str,
        input: Union[int, str],
        mode: Union[AddressingMode, str],
        timeout: Optional[float] = None,
    ) -> LeaderboardPage:
        mode_label = getattr(mode, "value", str(mode))
        async with LogContext(
            entity_type=entity_type,
            field=field_key,
            mode=mode_label,
            component=_COMPONENT,
            operation="get_leaderboard",
        ):
            try:
                page = await self.reader.get_leaderboard(
                    entity_type, field_key, input, coerce_mode(mode), timeout=timeout
                )
            except _HANDLED as exc:
                self.log_error("get_leaderboard", exc, input=repr(input))
                raise

            self.log_operation("get_leaderboard", page=page.page, rows=len(page.data))
            return page

    async def get_ranks(
        self,
        entity_type: str,
        field_keys: Sequence[str],
        entity_id: str,
        timeout: Optional[float] = None,
    ) -> List[FieldRank]:
        async with LogContext(entity_type=entity_type, component=_COMPONENT, operation="get_ranks"):
            try:
                return await self.reader.get_ranks(entity_type, field_keys, entity_id, timeout=timeout)
            except _HANDLED as exc:
                self.log_error("get_ranks", exc, entity_id=entity_id, field_count=len(field_keys))
                raise

    async def get_rank(
        self,
        entity_type: str,
        field_key: str,
        entity_id: str,
        timeout: Optional[float] = None,
    ) -> int:
        async with LogContext(
            entity_type=entity_type, field=field_key, component=_COMPONENT, operation="get_rank"
        ):
            try:
                return await self.reader.get_rank(entity_type, field_key, entity_id, timeout=timeout)
            except _HANDLED as exc:
                self.log_error("get_rank", exc, entity_id=entity_id)
                raise
