"""
Unit tests for RankingReader.

Tests page assembly across the three addressing modes, display decoration,
resolver contract enforcement and failure mapping.
"""

import asyncio

import pytest

from statboard.core.exceptions import StoreUnavailable
from statboard.core.redis.sorted_set import SortOrder
from statboard.modules.leaderboard.constants import RESET_MARKER
from statboard.modules.leaderboard.exceptions import (
    InputNotFound,
    InvalidLeaderboardQuery,
    ResolverMismatch,
    ResolverUnavailable,
    UnknownMetric,
)
from statboard.modules.leaderboard.models import AddressingMode, DisplayRecord
from statboard.modules.leaderboard.reader import RankingReader
from tests.conftest import FakeDisplayResolver, scores_for


@pytest.mark.asyncio
class TestPageMode:
    """PAGE queries return whole pages of ten, ranked from 1."""

    async def test_first_page(self, reader, store):
        store.seed("player.kills", scores_for(25))

        page = await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert page.name == "Kills"
        assert page.fields == ["Kills"]
        assert page.page == 0
        assert [row.id for row in page.data] == [f"p{i:02d}" for i in range(1, 11)]
        assert [row.position for row in page.data] == list(range(1, 11))
        assert not any(row.highlight for row in page.data)

    async def test_last_partial_page(self, reader, store):
        store.seed("player.kills", scores_for(25))

        page = await reader.get_leaderboard("Player", "kills", 2, "page")

        assert page.page == 2
        assert [row.position for row in page.data] == [21, 22, 23, 24, 25]

    async def test_page_past_the_end_is_empty(self, reader, store, display_resolver):
        store.seed("player.kills", scores_for(5))

        page = await reader.get_leaderboard("Player", "kills", 3, AddressingMode.PAGE)

        assert page.data == []
        assert page.page == 3
        assert page.fields == ["Kills"]
        assert display_resolver.calls == []

    async def test_fetches_exact_window(self, reader, store):
        await reader.get_leaderboard("Player", "kills", 4, AddressingMode.PAGE)

        assert store.range_calls == [("player.kills", 40, 49, SortOrder.DESC)]

    async def test_ascending_metric_ranks_lowest_first(self, reader, store):
        store.seed("player.fastest", {"slow": 400, "quick": 65, "mid": 120})

        page = await reader.get_leaderboard("Player", "fastest", 0, AddressingMode.PAGE)

        assert [row.id for row in page.data] == ["quick", "mid", "slow"]
        assert [row.fields for row in page.data] == [["1m 5s"], ["2m"], ["6m 40s"]]

    async def test_ties_follow_store_order(self, reader, store):
        store.seed("player.kills", {"a": 5, "b": 5, "c": 5})

        page = await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert [row.id for row in page.data] == ["c", "b", "a"]
        assert [row.position for row in page.data] == [1, 2, 3]


@pytest.mark.asyncio
class TestPositionMode:
    """POSITION queries snap to the page holding the rank and highlight it."""

    async def test_highlights_requested_rank(self, reader, store):
        store.seed("player.kills", scores_for(25))

        page = await reader.get_leaderboard("Player", "kills", 14, AddressingMode.POSITION)

        assert page.page == 1
        assert [row.position for row in page.data] == list(range(11, 21))
        highlighted = [row for row in page.data if row.highlight]
        assert len(highlighted) == 1
        assert highlighted[0].position == 14
        assert highlighted[0].id == "p14"

    async def test_rank_beyond_population_gives_empty_page(self, reader, store):
        store.seed("player.kills", scores_for(5))

        page = await reader.get_leaderboard("Player", "kills", 31, AddressingMode.POSITION)

        assert page.page == 3
        assert page.data == []

    async def test_zero_position_rejected(self, reader):
        with pytest.raises(InvalidLeaderboardQuery):
            await reader.get_leaderboard("Player", "kills", 0, AddressingMode.POSITION)


@pytest.mark.asyncio
class TestInputMode:
    """INPUT queries resolve text to a rank, then behave like POSITION."""

    async def test_resolved_rank_is_highlighted(self, reader, store, mock_input_resolver):
        store.seed("player.kills", scores_for(25))
        mock_input_resolver.resolve_rank_from_input.return_value = 23
        reader.input_resolver = mock_input_resolver

        page = await reader.get_leaderboard("Player", "kills", "  p23 ", AddressingMode.INPUT)

        mock_input_resolver.resolve_rank_from_input.assert_awaited_once_with("Player", "kills", "p23")
        assert page.page == 2
        assert [row.id for row in page.data if row.highlight] == ["p23"]

    async def test_blank_text_rejected(self, reader, mock_input_resolver):
        reader.input_resolver = mock_input_resolver

        with pytest.raises(InvalidLeaderboardQuery):
            await reader.get_leaderboard("Player", "kills", "   ", AddressingMode.INPUT)

        mock_input_resolver.resolve_rank_from_input.assert_not_awaited()

    async def test_non_text_rejected(self, reader, mock_input_resolver):
        reader.input_resolver = mock_input_resolver

        with pytest.raises(InvalidLeaderboardQuery):
            await reader.get_leaderboard("Player", "kills", 5, AddressingMode.INPUT)

    async def test_missing_resolver(self, reader):
        with pytest.raises(ResolverUnavailable) as exc_info:
            await reader.get_leaderboard("Player", "kills", "p1", AddressingMode.INPUT)

        assert exc_info.value.resolver == "input"

    @pytest.mark.parametrize("rank", [0, -3, None, "7", True])
    async def test_unusable_rank_is_not_found(self, reader, mock_input_resolver, rank):
        mock_input_resolver.resolve_rank_from_input.return_value = rank
        reader.input_resolver = mock_input_resolver

        with pytest.raises(InputNotFound):
            await reader.get_leaderboard("Player", "kills", "p1", AddressingMode.INPUT)

    async def test_resolver_not_found_propagates(self, reader, mock_input_resolver):
        mock_input_resolver.resolve_rank_from_input.side_effect = InputNotFound("Player", "kills", "zed")
        reader.input_resolver = mock_input_resolver

        with pytest.raises(InputNotFound):
            await reader.get_leaderboard("Player", "kills", "zed", AddressingMode.INPUT)

    async def test_resolver_failure_wrapped(self, reader, mock_input_resolver):
        mock_input_resolver.resolve_rank_from_input.side_effect = RuntimeError("profile db down")
        reader.input_resolver = mock_input_resolver

        with pytest.raises(ResolverUnavailable) as exc_info:
            await reader.get_leaderboard("Player", "kills", "p1", AddressingMode.INPUT)

        assert isinstance(exc_info.value.original_error, RuntimeError)
        assert exc_info.value.is_retryable is True


@pytest.mark.asyncio
class TestDisplayDecoration:
    """Names, prefixes, hidden scores and additional fields."""

    async def test_additional_fields_and_prefix(self, reader, store, display_resolver):
        store.seed("player.wins", {"p1": 1200, "p2": 15})
        display_resolver.profiles = {
            "p1": {"name": "Alice", "losses": 30, "prefix": "[MVP]"},
            "p2": {"name": "Bob", "losses": None, "prefix": None},
        }

        page = await reader.get_leaderboard("Player", "wins", 0, AddressingMode.PAGE)

        assert page.fields == ["Wins", "Losses"]
        assert display_resolver.calls == [(["p1", "p2"], ["losses", "prefix"])]
        first, second = page.data
        assert first.name == f"[MVP]{RESET_MARKER} Alice"
        assert first.fields == ["1,200", 30]
        assert second.name == "Bob"
        assert second.fields == ["15", None]

    async def test_hidden_metric_omits_score_column(self, reader, store, display_resolver):
        store.seed("player.level", {"p1": 80})
        display_resolver.profiles = {"p1": {"name": "Alice", "prefix": "[VIP]"}}

        page = await reader.get_leaderboard("Player", "level", 0, AddressingMode.PAGE)

        assert page.fields == []
        assert page.data[0].fields == []
        assert page.data[0].name == f"[VIP]{RESET_MARKER} Alice"

    async def test_unformatted_metric_shows_raw_score(self, reader, store):
        store.seed("player.kills", {"p1": 42})

        page = await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert page.data[0].fields == [42.0]

    async def test_to_dict_shape(self, reader, store):
        store.seed("player.kills", {"p1": 42})

        payload = (await reader.get_leaderboard("Player", "kills", 0, "page")).to_dict()

        assert payload == {
            "name": "Kills",
            "fields": ["Kills"],
            "data": [
                {"id": "p1", "fields": [42.0], "name": "p1", "position": 1, "highlight": False}
            ],
            "page": 0,
        }


@pytest.mark.asyncio
class TestResolverContract:
    """The display resolver must return one record per id, in order."""

    async def test_short_response_is_mismatch(self, store, registry, mocker):
        store.seed("player.kills", {"p1": 3, "p2": 2})
        resolver = mocker.MagicMock()
        resolver.fetch_display_data = mocker.AsyncMock(return_value=[DisplayRecord(name="only")])
        reader = RankingReader(store, registry, display_resolvers={"Player": resolver})

        with pytest.raises(ResolverMismatch) as exc_info:
            await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert exc_info.value.received == 1
        assert exc_info.value.expected_ids == ["p1", "p2"]

    async def test_out_of_order_records_are_mismatch(self, store, registry, mocker):
        store.seed("player.kills", {"p1": 3, "p2": 2})
        resolver = mocker.MagicMock()
        resolver.fetch_display_data = mocker.AsyncMock(
            return_value=[
                DisplayRecord(name="Bob", entity_id="p2"),
                DisplayRecord(name="Alice", entity_id="p1"),
            ]
        )
        reader = RankingReader(store, registry, display_resolvers={"Player": resolver})

        with pytest.raises(ResolverMismatch) as exc_info:
            await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert exc_info.value.mismatched_id == "p1"

    async def test_records_without_ids_are_trusted_positionally(self, store, registry, mocker):
        store.seed("player.kills", {"p1": 3, "p2": 2})
        resolver = mocker.MagicMock()
        resolver.fetch_display_data = mocker.AsyncMock(
            return_value=[DisplayRecord(name="Alice"), DisplayRecord(name="Bob")]
        )
        reader = RankingReader(store, registry, display_resolvers={"Player": resolver})

        page = await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert [row.name for row in page.data] == ["Alice", "Bob"]

    async def test_resolver_failure_wrapped(self, store, registry, mocker):
        store.seed("player.kills", {"p1": 3})
        resolver = mocker.MagicMock()
        resolver.fetch_display_data = mocker.AsyncMock(side_effect=OSError("socket closed"))
        reader = RankingReader(store, registry, display_resolvers={"Player": resolver})

        with pytest.raises(ResolverUnavailable) as exc_info:
            await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert exc_info.value.resolver == "display"

    async def test_resolver_timeout(self, store, registry):
        store.seed("player.kills", {"p1": 3})

        class SlowResolver(FakeDisplayResolver):
            async def fetch_display_data(self, entity_ids, field_keys):
                await asyncio.sleep(5)
                return await super().fetch_display_data(entity_ids, field_keys)

        reader = RankingReader(
            store, registry, display_resolvers={"Player": SlowResolver()}, default_timeout=0.01
        )

        with pytest.raises(ResolverUnavailable) as exc_info:
            await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert isinstance(exc_info.value.original_error, asyncio.TimeoutError)

    async def test_missing_display_resolver(self, store, registry):
        store.seed("player.kills", {"p1": 3})
        reader = RankingReader(store, registry)

        with pytest.raises(ResolverUnavailable):
            await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)


@pytest.mark.asyncio
class TestQueryValidation:
    """Unknown metrics and store failures."""

    async def test_unknown_field(self, reader, store):
        with pytest.raises(UnknownMetric):
            await reader.get_leaderboard("Player", "deaths", 0, AddressingMode.PAGE)

        assert store.range_calls == []

    async def test_display_only_field_is_unknown(self, reader):
        with pytest.raises(UnknownMetric):
            await reader.get_leaderboard("Player", "prefix", 0, AddressingMode.PAGE)

    async def test_unknown_entity_type(self, reader):
        with pytest.raises(UnknownMetric):
            await reader.get_leaderboard("Guild", "wins", 0, AddressingMode.PAGE)

    async def test_unknown_metric_checked_before_input(self, reader):
        with pytest.raises(UnknownMetric):
            await reader.get_leaderboard("Player", "deaths", -5, AddressingMode.PAGE)

    async def test_store_failure_propagates(self, reader, store, display_resolver):
        store.fail_with = TimeoutError()

        with pytest.raises(StoreUnavailable):
            await reader.get_leaderboard("Player", "kills", 0, AddressingMode.PAGE)

        assert display_resolver.calls == []
