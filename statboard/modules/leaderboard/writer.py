"""
Ranking writer: turns one entity mutation into ranking updates.

Every candidate field is classified into exactly one action:

    remove=True            -> REMOVE   (whatever the value is, even absent)
    not a real number      -> SKIP     (bool, None and missing keys included)
    0 or NaN               -> REMOVE
    anything else          -> UPSERT   (score = float(value))

All actions of one call go to the store as a single atomic batch.
"""

from __future__ import annotations

import math
from enum import Enum
from numbers import Real
from typing import Any, List, Mapping, Optional, Sequence

from statboard.core.logging.logger import get_logger
from statboard.core.redis.sorted_set import BatchOperation, OrderedSetStore, Remove, Upsert
from statboard.modules.leaderboard.constants import ranking_key
from statboard.modules.leaderboard.registry import MetricRegistry

logger = get_logger(__name__)

__all__ = ["RankingWriter", "WriteAction", "classify_value"]

_MISSING = object()


class WriteAction(Enum):
    SKIP = "skip"
    REMOVE = "remove"
    UPSERT = "upsert"


def classify_value(value: Any, remove: bool = False) -> WriteAction:
    """
    Decide what a field value does to its ranking.

    Example:
        >>> classify_value(12)
        <WriteAction.UPSERT: 'upsert'>
        >>> classify_value(0)
        <WriteAction.REMOVE: 'remove'>
        >>> classify_value("12")
        <WriteAction.SKIP: 'skip'>
    """
    if remove:
        return WriteAction.REMOVE
    if value is _MISSING or value is None or isinstance(value, bool):
        return WriteAction.SKIP
    if not isinstance(value, Real):
        return WriteAction.SKIP
    try:
        number = float(value)
    except OverflowError:
        return WriteAction.SKIP
    if number == 0 or math.isnan(number):
        return WriteAction.REMOVE
    return WriteAction.UPSERT


class RankingWriter:
    """
    Applies entity mutations to the ordered-set store.

    Args:
        store: Ordered-set store the rankings live in
        registry: Metric catalog used when no explicit field list is given
        default_timeout: Deadline in seconds for calls that pass none
    """

    def __init__(
        self,
        store: OrderedSetStore,
        registry: MetricRegistry,
        default_timeout: Optional[float] = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._default_timeout = default_timeout

    def build_operations(
        self,
        entity_type: str,
        entity_id: str,
        field_values: Mapping[str, Any],
        fields: Optional[Sequence[str]] = None,
        remove: bool = False,
    ) -> List[BatchOperation]:
        """Batch operations for one mutation, in field order. Pure."""
        candidates = self._registry.leaderboard_fields(entity_type) if fields is None else list(fields)

        operations: List[BatchOperation] = []
        for field_key in candidates:
            value = field_values.get(field_key, _MISSING)
            action = classify_value(value, remove)
            key = ranking_key(entity_type, field_key)

            if action is WriteAction.REMOVE:
                operations.append(Remove(key, entity_id))
            elif action is WriteAction.UPSERT:
                operations.append(Upsert(key, entity_id, float(value)))

        return operations

    async def apply_update(
        self,
        entity_type: str,
        entity_id: str,
        field_values: Mapping[str, Any],
        fields: Optional[Sequence[str]] = None,
        remove: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Write an entity's current field values into its rankings.

        Args:
            entity_type: Registered entity type (e.g. "Player")
            entity_id: Stable id used as the sorted-set member
            field_values: Current field values of the entity
            fields: Field keys to process; None means every rankable field
            remove: Remove the entity from every listed field's ranking
            timeout: Deadline in seconds for the store batch

        Raises:
            StoreUnavailable: If the batch fails or times out
        """
        operations = self.build_operations(entity_type, entity_id, field_values, fields, remove)

        if not operations:
            logger.debug(
                "No ranking changes for entity",
                extra={"entity_id": entity_id, "remove": remove},
            )
            return

        await self._store.execute_batch(
            operations,
            timeout=timeout if timeout is not None else self._default_timeout,
        )

        logger.debug(
            "Rankings updated",
            extra={
                "entity_id": entity_id,
                "upserts": sum(1 for op in operations if isinstance(op, Upsert)),
                "removals": sum(1 for op in operations if isinstance(op, Remove)),
                "remove": remove,
            },
        )

    async def remove_entity(
        self,
        entity_type: str,
        entity_id: str,
        fields: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Drop an entity from every listed ranking (all rankable fields by default)."""
        await self.apply_update(entity_type, entity_id, {}, fields, remove=True, timeout=timeout)
