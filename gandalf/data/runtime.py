"""
Composition root for the cache subsystem.

Builds the persistence backend, both stores, the freshness oracle, its
upstream client and the background sweeper from settings, and owns their
lifecycle. Consumers receive a CacheRuntime (or its parts) explicitly
instead of reaching for module-level singletons.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from gandalf.config.settings import Settings, get_settings
from gandalf.scheduler.sweeper import CacheSweeper

from .cache.cache_store import CacheStore
from .cache.freshness import FreshnessOracle, StateSource
from .cache.historical import HistoricalCacheStore
from .cache.persistence import FileBackend, PersistenceBackend
from .sources.base import BaseDataSource, DataSourceStatus
from .sources.sleeper_client import SleeperClient


@dataclass
class RuntimeHealth:
    """Overall health of the cache runtime."""

    status: str  # healthy, degraded, unhealthy
    components: dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)


class CacheRuntime:
    """
    Owns one isolated set of cache components.

    Example:
        >>> runtime = CacheRuntime.from_settings(get_settings())
        >>> await runtime.start()
        >>> players = await runtime.cache.get_or_set("players_nfl", load_players, 86400)
        >>> if await runtime.historical.is_historical_data("2023"):
        ...     ...
        >>> await runtime.close()
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        cache: CacheStore,
        historical: HistoricalCacheStore,
        oracle: FreshnessOracle,
        state_source: StateSource,
        sweeper: Optional[CacheSweeper] = None,
    ):
        self.backend = backend
        self.cache = cache
        self.historical = historical
        self.oracle = oracle
        self.state_source = state_source
        self.sweeper = sweeper
        self.logger = logger.bind(component="runtime")
        self._started = False
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        backend: Optional[PersistenceBackend] = None,
        state_source: Optional[StateSource] = None,
        enable_sweeper: bool = True,
    ) -> "CacheRuntime":
        """
        Build every component from settings.

        Raises:
            CacheInitializationError: If the cache root or its layout cannot
                be created; the process should not continue
        """
        settings = settings or get_settings()

        if backend is None:
            root = settings.resolve_cache_root()
            backend = FileBackend(root)
            logger.bind(component="runtime").info(f"Cache root: {root}")

        state_source = state_source or SleeperClient.from_settings(settings)
        oracle = FreshnessOracle.from_settings(settings, state_source)

        cache = CacheStore.from_settings(settings, backend=backend)
        historical = HistoricalCacheStore.from_settings(settings, oracle=oracle, backend=backend)
        sweeper = CacheSweeper.from_settings(settings, cache) if enable_sweeper else None

        return cls(
            backend=backend,
            cache=cache,
            historical=historical,
            oracle=oracle,
            state_source=state_source,
            sweeper=sweeper,
        )

    @classmethod
    def for_directory(
        cls,
        root: Path,
        state_source: StateSource,
        settings: Optional[Settings] = None,
        enable_sweeper: bool = False,
    ) -> "CacheRuntime":
        """Build a runtime rooted at an explicit directory."""
        return cls.from_settings(
            settings or Settings(),
            backend=FileBackend(root),
            state_source=state_source,
            enable_sweeper=enable_sweeper,
        )

    @property
    def is_running(self) -> bool:
        return self._started and not self._closed

    async def start(self) -> None:
        """Start background work. Call from inside the running event loop."""
        if self._closed:
            raise RuntimeError("CacheRuntime has been closed")
        if self._started:
            return
        if self.sweeper is not None:
            self.sweeper.start()
        self._started = True
        self.logger.info("Cache runtime started")

    async def close(self) -> None:
        """Stop the sweeper and release every component. Idempotent."""
        if self._closed:
            return
        self._closed = True

        if self.sweeper is not None:
            self.sweeper.stop()
        await self.cache.close()
        if isinstance(self.state_source, BaseDataSource):
            await self.state_source.close()
        await self.backend.close()
        self.logger.info("Cache runtime closed")

    async def __aenter__(self) -> "CacheRuntime":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def health_check(self) -> RuntimeHealth:
        """Report health of the disk tier, the state source and the sweeper."""
        components: dict[str, Any] = {
            "cache": await self.cache.health_check(),
            "cache_stats": self.cache.get_stats(),
            "historical_stats": self.historical.get_stats(),
        }

        state = self.oracle.last_known_state
        components["nfl_state"] = (
            {"season": state.season, "week": state.week} if state else None
        )

        source_ok = True
        if isinstance(self.state_source, BaseDataSource):
            source_health = self.state_source.get_health()
            components["state_source"] = {
                "name": source_health.source_name,
                "status": source_health.status.value,
                "error": source_health.error_message,
            }
            source_ok = source_health.status in (
                DataSourceStatus.HEALTHY,
                DataSourceStatus.DISABLED,
            )

        if self.sweeper is not None:
            components["sweeper"] = self.sweeper.get_status()

        if components["cache"]["status"] == "unhealthy":
            status = "unhealthy"
        elif components["cache"]["status"] == "degraded" or not source_ok:
            status = "degraded"
        else:
            status = "healthy"

        return RuntimeHealth(status=status, components=components)
