"""
Caching layer for the fantasy football tools.

Provides:
- CacheStore: expiring two-tier cache (LRU memory + disk records)
- HistoricalCacheStore: permanent records for concluded seasons/weeks
- FreshnessOracle: current NFL season/week with graceful degradation
- FileBackend / InMemoryBackend: record persistence
"""
from .cache_store import CacheStore, SweepResult
from .errors import (
    CacheError,
    CacheInitializationError,
    CorruptRecordError,
    LoaderTimeoutError,
)
from .freshness import FreshnessOracle, StateSource
from .historical import HistoricalCacheStore
from .persistence import FileBackend, InMemoryBackend, PersistenceBackend
from .records import CacheEntry, FreshnessState, HistoricalCacheEntry

__all__ = [
    # Stores
    "CacheStore",
    "SweepResult",
    "HistoricalCacheStore",
    "FreshnessOracle",
    "StateSource",
    # Persistence
    "PersistenceBackend",
    "FileBackend",
    "InMemoryBackend",
    # Records
    "CacheEntry",
    "HistoricalCacheEntry",
    "FreshnessState",
    # Errors
    "CacheError",
    "CacheInitializationError",
    "CorruptRecordError",
    "LoaderTimeoutError",
]
