"""
Gandalf - caching and data-freshness layer for fantasy football tools.

Keeps upstream fantasy data in a two-tier expiring cache and stores
concluded seasons and weeks permanently.
"""
from gandalf.data.cache import CacheStore, FreshnessOracle, HistoricalCacheStore
from gandalf.data.runtime import CacheRuntime

__version__ = "1.0.0"

__all__ = [
    "CacheRuntime",
    "CacheStore",
    "HistoricalCacheStore",
    "FreshnessOracle",
]
