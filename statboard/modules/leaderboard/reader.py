"""
Ranking reader: leaderboard pages and rank lookups.

Purpose
-------
Resolve a leaderboard query into a window of ranks, fetch that window from
the ordered-set store, decorate each row with auxiliary display data and
format it; and look up an entity's rank across several metrics in one
round trip.

Window Arithmetic
-----------------
    PAGE      p (0-based page)   top = p * 10                      no highlight
    POSITION  r (1-based rank)   top = (r-1) - ((r-1) % 10)        highlight r-1
    INPUT     text -> rank r     same as POSITION

`bottom = top + 10` (exclusive) and `page = top // 10`.

Design Notes
------------
- Every store and resolver call is bounded by the same per-call deadline
- Rows are ranked by their offset in the fetched window; ties are ordered
  by the store and never re-broken here
- No partial pages: any failure fails the whole query
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Mapping, Optional, Sequence, Union

from statboard.core.exceptions import StatboardInfrastructureException, StoreUnavailable
from statboard.core.logging.logger import get_logger
from statboard.core.redis.sorted_set import OrderedSetStore, RankingEntry, RankOf
from statboard.modules.leaderboard.constants import PAGE_SIZE, RESET_MARKER, ranking_key
from statboard.modules.leaderboard.exceptions import (
    InputNotFound,
    InvalidLeaderboardQuery,
    LeaderboardError,
    ResolverMismatch,
    ResolverUnavailable,
)
from statboard.modules.leaderboard.models import (
    AddressingMode,
    DisplayRecord,
    FieldRank,
    LeaderboardPage,
    LeaderboardRow,
    MetricDefinition,
    RankWindow,
)
from statboard.modules.leaderboard.registry import MetricRegistry
from statboard.modules.leaderboard.resolvers import AuxiliaryDataResolver, InputResolver

logger = get_logger(__name__)

__all__ = ["RankingReader", "compute_window", "coerce_mode"]


# ============================================================================
# WINDOW ARITHMETIC
# ============================================================================


def coerce_mode(mode: Union[AddressingMode, str]) -> AddressingMode:
    if isinstance(mode, AddressingMode):
        return mode
    try:
        return AddressingMode(str(mode).strip().lower())
    except ValueError:
        raise InvalidLeaderboardQuery(mode, mode, "unknown addressing mode") from None


def _require_int(mode: AddressingMode, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLeaderboardQuery(mode, value, "expected an integer")
    if value < minimum:
        raise InvalidLeaderboardQuery(mode, value, f"must be >= {minimum}")
    return value


def compute_window(mode: Union[AddressingMode, str], value: int) -> RankWindow:
    """
    Rank window for a query.

    `value` is the page index for PAGE, and the 1-based rank for POSITION
    and for INPUT (after the input has been resolved).

    Example:
        >>> compute_window(AddressingMode.POSITION, 7)
        RankWindow(top=0, bottom=10, highlight=6)
        >>> compute_window(AddressingMode.PAGE, 2)
        RankWindow(top=20, bottom=30, highlight=None)

    Raises:
        InvalidLeaderboardQuery: If `value` is not an int in range
    """
    mode = coerce_mode(mode)

    if mode is AddressingMode.PAGE:
        page = _require_int(mode, value, 0)
        top = page * PAGE_SIZE
        return RankWindow(top=top, bottom=top + PAGE_SIZE)

    position = _require_int(mode, value, 1) - 1
    top = position - (position % PAGE_SIZE)
    return RankWindow(top=top, bottom=top + PAGE_SIZE, highlight=position)


# ============================================================================
# READER
# ============================================================================


class RankingReader:
    """
    Read side of the leaderboard engine.

    Args:
        store: Ordered-set store holding the rankings
        registry: Metric catalog
        display_resolvers: Auxiliary data resolver per entity type
        input_resolver: Resolves free text to a rank (INPUT mode); may be
            attached after construction
        default_timeout: Deadline in seconds for calls that pass none
    """

    def __init__(
        self,
        store: OrderedSetStore,
        registry: MetricRegistry,
        display_resolvers: Optional[Mapping[str, AuxiliaryDataResolver]] = None,
        input_resolver: Optional[InputResolver] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._display_resolvers = dict(display_resolvers or {})
        self.input_resolver = input_resolver
        self._default_timeout = default_timeout

    # =========================================================================
    # PAGE RESOLUTION
    # =========================================================================

    async def get_leaderboard(
        self,
        entity_type: str,
        field_key: str,
        input: Union[int, str],
        mode: Union[AddressingMode, str],
        timeout: Optional[float] = None,
    ) -> LeaderboardPage:
        """
        Build one leaderboard page.

        Raises:
            UnknownMetric: Field missing or not rankable
            InvalidLeaderboardQuery: Input does not fit the mode
            InputNotFound: INPUT text maps to no ranked entity
            StoreUnavailable: Store failure or timeout
            ResolverUnavailable: Resolver failure or timeout
            ResolverMismatch: Resolver broke its one-record-per-id contract
        """
        definition = self._registry.get_leaderboard_field(entity_type, field_key)
        mode = coerce_mode(mode)
        deadline = timeout if timeout is not None else self._default_timeout

        if mode is AddressingMode.INPUT:
            rank = await self._resolve_input(entity_type, field_key, input, deadline)
            window = compute_window(mode, rank)
        else:
            window = compute_window(mode, input)

        entries = await self._store.range_by_rank(
            ranking_key(entity_type, field_key),
            window.top,
            window.end_inclusive,
            definition.sort,
            timeout=deadline,
        )

        records = await self._fetch_display(definition, entries, deadline) if entries else []
        page = self._build_page(definition, window, entries, records)

        logger.debug(
            "Leaderboard page resolved",
            extra={"top": window.top, "rows": len(page.data), "page": page.page},
        )
        return page

    async def _resolve_input(
        self,
        entity_type: str,
        field_key: str,
        text: Any,
        deadline: Optional[float],
    ) -> int:
        if not isinstance(text, str) or not text.strip():
            raise InvalidLeaderboardQuery(AddressingMode.INPUT, text, "expected non-blank text")
        if self.input_resolver is None:
            raise ResolverUnavailable("input")

        try:
            rank = await asyncio.wait_for(
                self.input_resolver.resolve_rank_from_input(entity_type, field_key, text.strip()),
                timeout=deadline,
            )
        except (LeaderboardError, StatboardInfrastructureException):
            raise
        except Exception as exc:
            raise ResolverUnavailable("input", exc) from exc

        if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
            raise InputNotFound(entity_type, field_key, text.strip())
        return rank

    async def _fetch_display(
        self,
        definition: MetricDefinition,
        entries: Sequence[RankingEntry],
        deadline: Optional[float],
    ) -> List[DisplayRecord]:
        resolver = self._display_resolvers.get(definition.entity_type)
        if resolver is None:
            raise ResolverUnavailable("display")

        ids = [entry.entity_id for entry in entries]
        try:
            records = await asyncio.wait_for(
                resolver.fetch_display_data(ids, definition.display_fields),
                timeout=deadline,
            )
        except (LeaderboardError, StatboardInfrastructureException):
            raise
        except Exception as exc:
            raise ResolverUnavailable("display", exc) from exc

        records = list(records or [])
        if len(records) != len(ids):
            raise ResolverMismatch(ids, len(records))
        for entity_id, record in zip(ids, records):
            if record.entity_id is not None and record.entity_id != entity_id:
                raise ResolverMismatch(ids, len(records), mismatched_id=entity_id)
        return records

    def _build_page(
        self,
        definition: MetricDefinition,
        window: RankWindow,
        entries: Sequence[RankingEntry],
        records: Sequence[DisplayRecord],
    ) -> LeaderboardPage:
        additional = [
            self._registry.get_field(definition.entity_type, key)
            for key in definition.additional_fields
        ]

        rows: List[LeaderboardRow] = []
        for offset, (entry, record) in enumerate(zip(entries, records)):
            rank = window.top + offset

            name = record.name
            if definition.extra_display:
                prefix = record.fields.get(definition.extra_display)
                if prefix is not None:
                    name = f"{prefix}{RESET_MARKER} {record.name}"

            fields: List[Any] = []
            if not definition.hidden:
                fields.append(definition.format(entry.score))
            fields.extend(extra.format(record.fields.get(extra.field_key)) for extra in additional)

            rows.append(
                LeaderboardRow(
                    id=entry.entity_id,
                    fields=fields,
                    name=name,
                    position=rank + 1,
                    highlight=rank == window.highlight,
                )
            )

        columns = [] if definition.hidden else [definition.field_name]
        columns.extend(extra.field_name for extra in additional)

        return LeaderboardPage(
            name=definition.name,
            fields=columns,
            data=rows,
            page=window.top // PAGE_SIZE,
        )

    # =========================================================================
    # RANK LOOKUP
    # =========================================================================

    async def get_ranks(
        self,
        entity_type: str,
        field_keys: Sequence[str],
        entity_id: str,
        timeout: Optional[float] = None,
    ) -> List[FieldRank]:
        """
        1-based rank of `entity_id` for each field (0 when unranked), in one batch.

        Raises:
            UnknownMetric: Any field missing or not rankable
            StoreUnavailable: Store failure, timeout or empty response
        """
        definitions = [
            self._registry.get_leaderboard_field(entity_type, field_key) for field_key in field_keys
        ]
        if not definitions:
            return []

        operations = [
            RankOf(ranking_key(entity_type, definition.field_key), entity_id, definition.sort)
            for definition in definitions
        ]
        results = await self._store.execute_batch(
            operations,
            timeout=timeout if timeout is not None else self._default_timeout,
        )
        if results is None or len(results) != len(operations):
            raise StoreUnavailable("BATCH")

        return [
            FieldRank(field=definition.field_key, rank=0 if result is None else int(result) + 1)
            for definition, result in zip(definitions, results)
        ]

    async def get_rank(
        self,
        entity_type: str,
        field_key: str,
        entity_id: str,
        timeout: Optional[float] = None,
    ) -> int:
        """1-based rank of `entity_id` for one field; 0 when unranked."""
        definition = self._registry.get_leaderboard_field(entity_type, field_key)
        rank = await self._store.rank_of(
            ranking_key(entity_type, field_key),
            entity_id,
            definition.sort,
            timeout=timeout if timeout is not None else self._default_timeout,
        )
        return 0 if rank is None else rank + 1
