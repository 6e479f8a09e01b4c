"""
Data layer for the fantasy football tools.

- cache: expiring and historical caches plus the freshness oracle
- sources: upstream clients (Sleeper NFL state)
- runtime: CacheRuntime, which wires the above together
"""
from .cache import CacheStore, FreshnessOracle, HistoricalCacheStore

__all__ = [
    "CacheStore",
    "FreshnessOracle",
    "HistoricalCacheStore",
]
