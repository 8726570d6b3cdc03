"""
Unit tests for rank lookups (`get_ranks` / `get_rank`).
"""

import pytest

from statboard.core.exceptions import StoreUnavailable
from statboard.core.redis.sorted_set import RankOf, SortOrder
from statboard.modules.leaderboard.exceptions import UnknownMetric
from statboard.modules.leaderboard.models import FieldRank


@pytest.mark.asyncio
class TestGetRanks:
    """All ranks of one entity come back from a single batch."""

    async def test_ranks_in_request_order(self, reader, store):
        store.seed("player.wins", {"p1": 10, "p2": 20, "p3": 5})
        store.seed("player.kills", {"p1": 99, "p2": 1})

        ranks = await reader.get_ranks("Player", ["wins", "kills"], "p1")

        assert ranks == [FieldRank("wins", 2), FieldRank("kills", 1)]

    async def test_absent_entity_has_rank_zero(self, reader, store):
        store.seed("player.wins", {"p2": 20})

        ranks = await reader.get_ranks("Player", ["wins", "losses"], "p1")

        assert [rank.rank for rank in ranks] == [0, 0]

    async def test_single_batch_with_sort_order(self, reader, store):
        await reader.get_ranks("Player", ["wins", "fastest"], "p1")

        assert store.batches == [
            [
                RankOf("player.wins", "p1", SortOrder.DESC),
                RankOf("player.fastest", "p1", SortOrder.ASC),
            ]
        ]

    async def test_ascending_metric_rank(self, reader, store):
        store.seed("player.fastest", {"p1": 300, "p2": 60, "p3": 900})

        (rank,) = await reader.get_ranks("Player", ["fastest"], "p1")

        assert rank.rank == 2

    async def test_empty_field_list(self, reader, store):
        assert await reader.get_ranks("Player", [], "p1") == []
        assert store.batches == []

    async def test_unknown_field_rejected_before_store_call(self, reader, store):
        with pytest.raises(UnknownMetric):
            await reader.get_ranks("Player", ["wins", "prefix"], "p1")

        assert store.batches == []

    async def test_missing_response_is_store_failure(self, reader, store):
        store.batch_response_override = [0]

        with pytest.raises(StoreUnavailable):
            await reader.get_ranks("Player", ["wins", "kills"], "p1")

    async def test_to_dict(self, reader, store):
        store.seed("player.wins", {"p1": 1})

        (rank,) = await reader.get_ranks("Player", ["wins"], "p1")

        assert rank.to_dict() == {"field": "wins", "rank": 1}


@pytest.mark.asyncio
class TestGetRank:
    """Single-field rank lookup."""

    async def test_rank(self, reader, store):
        store.seed("player.kills", {"p1": 3, "p2": 9, "p3": 6})

        assert await reader.get_rank("Player", "kills", "p1") == 3

    async def test_absent(self, reader, store):
        assert await reader.get_rank("Player", "kills", "nobody") == 0

    async def test_unknown_field(self, reader):
        with pytest.raises(UnknownMetric):
            await reader.get_rank("Player", "deaths", "p1")
