"""
Resolver interfaces and bundled implementations.

Auxiliary Data Resolver
-----------------------
Supplies display data (name + extra fields) for the ids in a leaderboard
window. Contract: exactly one `DisplayRecord` per id, in the order asked.
`RedisHashDisplayResolver` reads profile hashes `"{prefix}:{id}"` with one
pipelined HMGET per id, in a single round trip.

Input Resolver
--------------
Maps free text (usually a player name) to a 1-based rank for INPUT-mode
queries, or raises `InputNotFound`. `RankedInputResolver` looks the text up
through an `EntityLookup` and asks a rank source for the entity's rank.
`RedisNameIndexLookup` is an `EntityLookup` over a lowercase name -> id hash.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]

from statboard.core.config import ConfigManager
from statboard.core.logging.logger import get_logger
from statboard.core.redis.resilience import RedisResilience
from statboard.core.redis.tracing import traced_operation
from statboard.modules.leaderboard.constants import DEFAULT_NAME_FIELD
from statboard.modules.leaderboard.exceptions import InputNotFound
from statboard.modules.leaderboard.models import DisplayRecord

logger = get_logger(__name__)

__all__ = [
    "AuxiliaryDataResolver",
    "InputResolver",
    "EntityLookup",
    "RankSource",
    "RedisHashDisplayResolver",
    "RedisNameIndexLookup",
    "RankedInputResolver",
]


# ============================================================================
# PROTOCOLS
# ============================================================================


@runtime_checkable
class AuxiliaryDataResolver(Protocol):
    async def fetch_display_data(
        self, entity_ids: Sequence[str], field_keys: Sequence[str]
    ) -> List[DisplayRecord]: ...


@runtime_checkable
class InputResolver(Protocol):
    async def resolve_rank_from_input(self, entity_type: str, field_key: str, text: str) -> int: ...


class EntityLookup(Protocol):
    async def find_entity_id(self, entity_type: str, text: str) -> Optional[str]: ...


class RankSource(Protocol):
    async def get_rank(self, entity_type: str, field_key: str, entity_id: str) -> int: ...


# ============================================================================
# REDIS HASH DISPLAY RESOLVER
# ============================================================================


def _decode(raw: Any) -> Any:
    return raw.decode("utf-8") if isinstance(raw, bytes) else raw


class RedisHashDisplayResolver:
    """
    Display data from per-entity Redis hashes.

    Args:
        client: Shared async Redis client
        entity_type: Entity type served; the hash prefix is its lowercase form
        name_field: Hash field holding the display name
            (default: `leaderboard.display.name_field`, then "name")
        resilience: Resilience layer for the pipelined read

    A hash without a name falls back to the entity id. Field values come back
    as stored text; formatters parse numeric strings.
    """

    def __init__(
        self,
        client: AsyncRedis,
        entity_type: str,
        name_field: Optional[str] = None,
        resilience: Optional[RedisResilience] = None,
    ) -> None:
        self._client = client
        self._prefix = entity_type.lower()
        self._name_field = name_field or ConfigManager.get(
            "leaderboard.display.name_field", DEFAULT_NAME_FIELD
        )
        self._resilience = resilience or RedisResilience()

    def hash_key(self, entity_id: str) -> str:
        return f"{self._prefix}:{entity_id}"

    async def fetch_display_data(
        self, entity_ids: Sequence[str], field_keys: Sequence[str]
    ) -> List[DisplayRecord]:
        ids = list(entity_ids)
        if not ids:
            return []

        requested = [self._name_field, *field_keys]

        async def read_hashes() -> List[Any]:
            async with self._client.pipeline(transaction=False) as pipe:
                for entity_id in ids:
                    pipe.hmget(self.hash_key(entity_id), requested)
                return await pipe.execute()

        async with traced_operation("HMGET", f"{self._prefix} x{len(ids)}"):
            rows = await self._resilience.execute(operation=read_hashes, operation_name="HMGET")

        records: List[DisplayRecord] = []
        for entity_id, values in zip(ids, rows):
            name, *extras = values
            records.append(
                DisplayRecord(
                    name=_decode(name) if name is not None else entity_id,
                    fields={key: _decode(value) for key, value in zip(field_keys, extras)},
                    entity_id=entity_id,
                )
            )
        return records


# ============================================================================
# INPUT RESOLUTION
# ============================================================================


class RedisNameIndexLookup:
    """
    `EntityLookup` over a hash mapping lowercase names to ids
    (`"{prefix}:names"`, e.g. `player:names`).
    """

    def __init__(self, client: AsyncRedis, resilience: Optional[RedisResilience] = None) -> None:
        self._client = client
        self._resilience = resilience or RedisResilience()

    @staticmethod
    def index_key(entity_type: str) -> str:
        return f"{entity_type.lower()}:names"

    async def find_entity_id(self, entity_type: str, text: str) -> Optional[str]:
        key = self.index_key(entity_type)
        needle = text.strip().lower()

        async with traced_operation("HGET", key):
            found = await self._resilience.execute(
                operation=lambda: self._client.hget(key, needle),
                operation_name="HGET",
            )
        return _decode(found)


class RankedInputResolver:
    """
    Resolves free text to a rank: text -> entity id -> rank.

    Args:
        lookup: Maps text to an entity id (profile search)
        ranks: Rank source, normally the `RankingReader`
    """

    def __init__(self, lookup: EntityLookup, ranks: RankSource) -> None:
        self._lookup = lookup
        self._ranks = ranks

    async def resolve_rank_from_input(self, entity_type: str, field_key: str, text: str) -> int:
        entity_id = await self._lookup.find_entity_id(entity_type, text)
        if not entity_id:
            raise InputNotFound(entity_type, field_key, text)

        rank = await self._ranks.get_rank(entity_type, field_key, entity_id)
        if rank < 1:
            raise InputNotFound(entity_type, field_key, text)

        logger.debug(
            "Leaderboard input resolved",
            extra={"entity_id": entity_id, "rank": rank},
        )
        return rank
