"""
Shared fixtures for cache tests.

Provides a temporary cache root, a controllable clock and a fake NFL
state source so no test touches the network or depends on wall time.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from gandalf.data.cache import (
    CacheStore,
    FileBackend,
    FreshnessOracle,
    FreshnessState,
    HistoricalCacheStore,
    InMemoryBackend,
)


class FakeClock:
    """Callable UTC clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 11, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeMonotonic:
    """Callable monotonic clock for the freshness oracle."""

    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeStateSource:
    """Stands in for SleeperClient.get_nfl_state()."""

    def __init__(self, state: Optional[FreshnessState] = None):
        self.state = state
        self.error: Optional[Exception] = None
        self.calls = 0

    async def get_nfl_state(self) -> Optional[FreshnessState]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.state


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def cache_root(tmp_path):
    root = tmp_path / "gandalf-cache"
    return root


@pytest.fixture
def file_backend(cache_root):
    backend = FileBackend(cache_root)
    backend.ensure_directories()
    return backend


@pytest.fixture
def memory_backend():
    return InMemoryBackend()


@pytest.fixture
def file_store(file_backend, clock):
    return CacheStore(file_backend, max_entries=100, clock=clock)


@pytest.fixture
def memory_store(memory_backend, clock):
    return CacheStore(memory_backend, max_entries=100, clock=clock)


@pytest.fixture
def state_source():
    return FakeStateSource(FreshnessState(season="2024", week=10))


@pytest.fixture
def oracle(state_source, monotonic):
    return FreshnessOracle(state_source, ttl_seconds=3600, clock=monotonic)


@pytest.fixture
def historical(file_backend, oracle, clock):
    return HistoricalCacheStore(file_backend, oracle=oracle, clock=clock)
