"""Tests for FreshnessOracle memoization and fallback."""
import pytest

from gandalf.data.cache import FreshnessOracle, FreshnessState

from .conftest import FakeStateSource


class TestFreshnessOracle:

    @pytest.mark.asyncio
    async def test_memoizes_within_ttl(self, oracle, state_source, monotonic):
        first = await oracle.get_current_state()
        monotonic.advance(3599)
        second = await oracle.get_current_state()

        assert first == second == FreshnessState(season="2024", week=10)
        assert state_source.calls == 1

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(self, oracle, state_source, monotonic):
        await oracle.get_current_state()
        state_source.state = FreshnessState(season="2024", week=11)
        monotonic.advance(3600)

        state = await oracle.get_current_state()

        assert state.week == 11
        assert state_source.calls == 2

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_last_known(self, oracle, state_source, monotonic):
        await oracle.get_current_state()
        state_source.error = ConnectionError("timeout")
        monotonic.advance(7200)

        state = await oracle.get_current_state()

        assert state == FreshnessState(season="2024", week=10)
        assert oracle.last_known_state == state

    @pytest.mark.asyncio
    async def test_failure_with_nothing_known(self, monotonic):
        source = FakeStateSource()
        source.error = RuntimeError("boom")
        oracle = FreshnessOracle(source, clock=monotonic)

        assert await oracle.get_current_state() is None
        assert oracle.last_known_state is None

    @pytest.mark.asyncio
    async def test_failed_fetch_is_retried_next_call(self, monotonic):
        source = FakeStateSource(FreshnessState(season="2023", week=18))
        source.error = RuntimeError("boom")
        oracle = FreshnessOracle(source, clock=monotonic)

        assert await oracle.get_current_state() is None
        source.error = None
        assert (await oracle.get_current_state()).season == "2023"
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_empty_answer_keeps_last_state(self, oracle, state_source, monotonic):
        await oracle.get_current_state()
        state_source.state = None
        monotonic.advance(3600)

        assert await oracle.get_current_state() == FreshnessState(season="2024", week=10)

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, oracle, state_source):
        await oracle.get_current_state()
        oracle.invalidate()
        await oracle.get_current_state()

        assert state_source.calls == 2

    def test_state_from_sleeper_payload(self):
        state = FreshnessState.from_payload(
            {
                "week": 10,
                "season": 2024,
                "season_type": "regular",
                "display_week": 10,
                "league_season": "2024",
            }
        )

        assert state.season == "2024"
        assert state.week == 10
        assert state.season_type == "regular"
        assert state.display_week == 10
