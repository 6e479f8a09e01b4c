"""
Tests for the permanent historical cache and key classification.

Run with:
    pytest tests/test_historical.py -v
"""
import json

import pytest

from gandalf.data.cache import (
    FileBackend,
    FreshnessOracle,
    FreshnessState,
    HistoricalCacheStore,
    InMemoryBackend,
)
from gandalf.data.cache.historical import compare_seasons
from gandalf.data.cache.keys import (
    classify_data_type,
    extract_season_week,
    key_from_record_name,
    record_name,
)

from .conftest import FakeStateSource


# =============================================================================
# Key classification
# =============================================================================

class TestKeys:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("user_42_leagues_nfl_2023", "leagues"),
            ("draft_987", "drafts"),
            ("draft_987_picks", "drafts"),
            ("league_1_week_3_matchups", "matchups"),
            ("league_1_week_3_transactions", "transactions"),
            ("league_1_rosters", "rosters"),
            ("players_nfl", "general"),
        ],
    )
    def test_classify_data_type(self, key, expected):
        assert classify_data_type(key) == expected

    def test_extract_season_and_week(self):
        assert extract_season_week("league_1_2023_week_7_matchups") == ("2023", 7)
        assert extract_season_week("user_42_leagues_nfl_2023") == ("2023", None)
        assert extract_season_week("league_1_week_3_matchups") == (None, 3)
        assert extract_season_week("players_nfl") == (None, None)

    def test_record_name(self):
        assert record_name("league_1") == "league_1.json"
        assert record_name("a/b\\c") == "a%2Fb%5Cc.json"
        assert record_name("a_b_c") == "a_b_c.json"
        assert record_name("..") == "%2E..json"
        assert key_from_record_name(record_name("players/nfl:all")) == "players/nfl:all"
        with pytest.raises(ValueError):
            record_name("")

    def test_compare_seasons(self):
        assert compare_seasons("2023", "2024") < 0
        assert compare_seasons("2024", "2024") == 0
        assert compare_seasons("2025", "2024") > 0
        # Numeric, not lexical, for plain years
        assert compare_seasons("999", "2024") < 0


# =============================================================================
# Historical classification
# =============================================================================

class TestIsHistoricalData:
    """Current state is season 2024, week 10."""

    @pytest.mark.asyncio
    async def test_previous_season_is_historical(self, historical):
        assert await historical.is_historical_data("2023") is True

    @pytest.mark.asyncio
    async def test_earlier_week_of_current_season(self, historical):
        assert await historical.is_historical_data("2024", 5) is True

    @pytest.mark.asyncio
    async def test_later_week_of_current_season(self, historical):
        assert await historical.is_historical_data("2024", 12) is False

    @pytest.mark.asyncio
    async def test_current_week_is_live(self, historical):
        assert await historical.is_historical_data("2024", 10) is False

    @pytest.mark.asyncio
    async def test_current_season_without_week_is_live(self, historical):
        assert await historical.is_historical_data("2024") is False

    @pytest.mark.asyncio
    async def test_future_season_is_live(self, historical):
        assert await historical.is_historical_data("2025", 1) is False

    @pytest.mark.asyncio
    async def test_unknown_state_is_never_historical(self, file_backend, clock):
        source = FakeStateSource()
        source.error = ConnectionError("sleeper down")
        store = HistoricalCacheStore(file_backend, oracle=FreshnessOracle(source), clock=clock)

        assert await store.is_historical_data("2019") is False
        assert await store.is_historical_data("2024", 1) is False

    @pytest.mark.asyncio
    async def test_no_oracle_is_never_historical(self, file_backend):
        store = HistoricalCacheStore(file_backend)
        assert await store.is_historical_data("2019") is False
        assert await store.get_current_state() is None

    @pytest.mark.asyncio
    async def test_current_state_passthrough(self, historical):
        state = await historical.get_current_state()
        assert state == FreshnessState(season="2024", week=10)


# =============================================================================
# Permanent records
# =============================================================================

class TestHistoricalRecords:

    @pytest.mark.asyncio
    async def test_loader_runs_once(self, historical, clock):
        calls = 0

        async def loader():
            nonlocal calls
            calls += 1
            return [{"roster_id": 1, "points": 121.4}]

        first = await historical.get_or_set_historical("k", loader, "matchups", "2022", 3)
        clock.advance(10 * 365 * 24 * 3600)
        second = await historical.get_or_set_historical("k", loader, "matchups", "2022", 3)

        assert calls == 1
        assert first == second == [{"roster_id": 1, "points": 121.4}]
        assert await historical.get_historical("k") == first

    @pytest.mark.asyncio
    async def test_record_layout_and_schema(self, historical, cache_root):
        await historical.get_or_set_historical(
            "league_1_2023_week_4_matchups", _value("m"), "matchups", "2023", 4
        )

        path = cache_root / "historical" / "matchups" / "2023" / "league_1_2023_week_4_matchups.json"
        record = json.loads(path.read_text())
        assert record["value"] == "m"
        assert record["dataType"] == "matchups"
        assert record["season"] == "2023"
        assert record["week"] == 4
        assert "expiresAt" not in record

    @pytest.mark.asyncio
    async def test_drafts_are_not_season_partitioned(self, historical, cache_root):
        await historical.set_historical("draft_55", {"rounds": 15}, "drafts", "2023")

        assert (cache_root / "historical" / "drafts" / "draft_55.json").exists()
        assert await historical.get_historical("draft_55") == {"rounds": 15}

    @pytest.mark.asyncio
    async def test_unknown_type_goes_to_catch_all(self, historical, cache_root):
        await historical.set_historical("players_nfl_2022", ["a"], "players", "2022")

        assert (cache_root / "historical" / "players_nfl_2022.json").exists()
        assert await historical.get_historical("players_nfl_2022") == ["a"]

    @pytest.mark.asyncio
    async def test_season_partition_without_season(self, historical, cache_root):
        await historical.set_historical("league_1_rosters", [], "rosters")

        assert (cache_root / "historical" / "rosters" / "unknown" / "league_1_rosters.json").exists()
        assert await historical.get_historical("league_1_rosters") == []

    @pytest.mark.asyncio
    async def test_get_historical_derives_location_from_key(self, historical):
        await historical.set_historical(
            "user_42_leagues_nfl_2023", [{"league_id": "1"}], "leagues", "2023"
        )
        assert await historical.get_historical("user_42_leagues_nfl_2023") == [{"league_id": "1"}]

    @pytest.mark.asyncio
    async def test_similar_keys_get_separate_records(self, historical):
        await historical.set_historical("draft_9/picks", "slash", "drafts")
        await historical.set_historical("draft_9_picks", "underscore", "drafts")

        assert await historical.get_historical("draft_9/picks") == "slash"
        assert await historical.get_historical("draft_9_picks") == "underscore"

    @pytest.mark.asyncio
    async def test_missing_record(self, historical):
        assert await historical.get_historical("league_9_2021_week_1_matchups") is None
        assert await historical.get_historical("x", default=[]) == []

    @pytest.mark.asyncio
    async def test_loader_error_propagates(self, historical):
        async def failing():
            raise RuntimeError("upstream 500")

        with pytest.raises(RuntimeError):
            await historical.get_or_set_historical("k", failing, "matchups", "2022", 1)
        assert await historical.get_historical("k") is None

    @pytest.mark.asyncio
    async def test_corrupt_record_is_a_miss(self, historical, cache_root):
        path = cache_root / "historical" / "drafts" / "draft_1.json"
        path.write_text("{broken")

        assert await historical.get_historical("draft_1") is None
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_survives_restart(self, cache_root, oracle, clock):
        first = HistoricalCacheStore(FileBackend(cache_root), oracle=oracle, clock=clock)
        await first.set_historical("draft_7", {"type": "snake"}, "drafts")

        second = HistoricalCacheStore(FileBackend(cache_root), oracle=oracle, clock=clock)
        assert await second.get_historical("draft_7") == {"type": "snake"}

    @pytest.mark.asyncio
    async def test_works_on_in_memory_backend(self, oracle, clock):
        backend = InMemoryBackend()
        store = HistoricalCacheStore(backend, oracle=oracle, clock=clock)

        assert backend.directory_exists(("historical", "matchups"))
        await store.set_historical("league_1_2022_week_2_matchups", 1, "matchups", "2022", 2)
        assert await backend.list_records(("historical", "matchups", "2022")) == [
            ("historical", "matchups", "2022", "league_1_2022_week_2_matchups.json")
        ]


# =============================================================================
# Wipe
# =============================================================================

class TestClearHistorical:

    @pytest.mark.asyncio
    async def test_full_wipe_keeps_skeleton(self, historical, cache_root):
        await historical.set_historical("league_1_2022_week_1_matchups", 1, "matchups", "2022", 1)
        await historical.set_historical("draft_1", 2, "drafts")

        await historical.clear_historical()

        assert await historical.get_historical("league_1_2022_week_1_matchups") is None
        assert await historical.get_historical("draft_1") is None
        for subdir in ("leagues", "drafts", "matchups", "transactions", "rosters"):
            assert (cache_root / "historical" / subdir).is_dir()
        assert (cache_root / "current").is_dir()

        # Writes work straight away
        await historical.set_historical("draft_2", 3, "drafts")
        assert await historical.get_historical("draft_2") == 3

    @pytest.mark.asyncio
    async def test_pattern_clear_deletes_nothing(self, historical):
        await historical.set_historical("draft_1", 2, "drafts")

        await historical.clear_historical("draft_")

        assert await historical.get_historical("draft_1") == 2

    @pytest.mark.asyncio
    async def test_wipe_leaves_ephemeral_records(self, historical, file_store):
        await file_store.set("players_nfl", [1], 60)
        await historical.clear_historical()

        file_store.clear()
        assert await file_store.get("players_nfl") == [1]


def _value(v):
    async def loader():
        return v

    return loader
