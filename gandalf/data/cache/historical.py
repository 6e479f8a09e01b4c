"""
Permanent cache for concluded seasons and weeks.

Once an NFL week is over, its matchups, rosters and transactions never
change, so they are stored without expiry:

    historical/leagues/{season}/{key}.json
    historical/matchups/{season}/{key}.json
    historical/transactions/{season}/{key}.json
    historical/rosters/{season}/{key}.json
    historical/drafts/{key}.json
    historical/{key}.json              (anything else)

The partitioning keeps directories small and allows deleting a season by
hand; lookups are driven by the key.
"""
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from gandalf.config.constants import (
    CURRENT_DIR,
    HISTORICAL_DIR,
    HISTORICAL_SUBDIRS,
    SEASON_PARTITIONED_TYPES,
    UNKNOWN_SEASON,
    HistoricalDataType,
)

from .errors import CorruptRecordError
from .freshness import FreshnessOracle
from .keys import classify_data_type, extract_season_week, record_name
from .persistence import FileBackend, PersistenceBackend, RecordPath
from .records import FreshnessState, HistoricalCacheEntry, utcnow

_MISSING = object()


def compare_seasons(left: str, right: str) -> int:
    """Compare season labels numerically when possible, else lexically."""
    left, right = str(left), str(right)
    if left.isdigit() and right.isdigit():
        a, b = int(left), int(right)
    else:
        a, b = left, right
    return (a > b) - (a < b)


class HistoricalCacheStore:
    """
    Never-expiring record store for historical fantasy data.

    Example:
        >>> if await historical.is_historical_data("2023", 5):
        ...     matchups = await historical.get_or_set_historical(
        ...         "league_1_2023_week_5_matchups",
        ...         lambda: client.get_matchups("1", 5),
        ...         "matchups", "2023", 5,
        ...     )
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        oracle: Optional[FreshnessOracle] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the store and provision its directory layout.

        Raises:
            CacheInitializationError: If the layout cannot be created
        """
        self.backend = backend
        self.oracle = oracle
        self._clock = clock
        self._stats = {"hits": 0, "misses": 0, "writes": 0, "write_failures": 0}
        self.logger = logger.bind(component="historical_cache")
        self.ensure_layout()

    @classmethod
    def from_settings(
        cls,
        settings,
        oracle: Optional[FreshnessOracle] = None,
        backend: Optional[PersistenceBackend] = None,
    ) -> "HistoricalCacheStore":
        """Create a store based on application settings."""
        return cls(backend or FileBackend(settings.resolve_cache_root()), oracle=oracle)

    def ensure_layout(self) -> None:
        """Create current/ and historical/{type}/ directories."""
        self.backend.ensure_directories(
            (CURRENT_DIR,),
            (HISTORICAL_DIR,),
            *[(HISTORICAL_DIR, subdir) for subdir in HISTORICAL_SUBDIRS],
        )

    def _path(self, key: str, data_type: str, season: Optional[str] = None) -> RecordPath:
        name = record_name(key)
        if data_type in SEASON_PARTITIONED_TYPES:
            return (HISTORICAL_DIR, data_type, season or UNKNOWN_SEASON, name)
        if data_type == HistoricalDataType.DRAFTS.value:
            return (HISTORICAL_DIR, data_type, name)
        return (HISTORICAL_DIR, name)

    # -------------------------------------------------------------------------
    # Freshness
    # -------------------------------------------------------------------------

    async def get_current_state(self) -> Optional[FreshnessState]:
        """Current NFL season and week, or None if unknown."""
        if self.oracle is None:
            return None
        return await self.oracle.get_current_state()

    async def is_historical_data(self, season: str, week: Optional[int] = None) -> bool:
        """
        Decide whether a season/week has concluded.

        Earlier seasons are historical. Within the current season only weeks
        before the current week are. With no known current state the answer
        is False, so live data is never cached permanently.
        """
        state = await self.get_current_state()
        if state is None:
            return False

        order = compare_seasons(season, state.season)
        if order < 0:
            return True
        if order == 0:
            return week is not None and week < state.week
        return False

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    async def _read(self, path: RecordPath) -> Optional[HistoricalCacheEntry]:
        location = "/".join(path)
        try:
            record = await self.backend.read(path)
            if record is None:
                return None
            return HistoricalCacheEntry.from_record(record, location)
        except CorruptRecordError as e:
            self.logger.warning(f"Dropping corrupt historical record: {e}")
            try:
                await self.backend.delete(path)
            except OSError as delete_error:
                self.logger.warning(f"Failed to delete {location}: {delete_error}")
            return None
        except OSError as e:
            self.logger.warning(f"Failed to read historical cache {location}: {e}")
            return None

    async def _lookup(
        self,
        key: str,
        data_type: Optional[str] = None,
        season: Optional[str] = None,
    ) -> Any:
        key_type = classify_data_type(key)
        key_season, _ = extract_season_week(key)

        candidates = []
        if data_type:
            candidates.append(self._path(key, data_type, season or key_season))
        candidates.append(self._path(key, key_type, key_season))

        for path in dict.fromkeys(candidates):
            entry = await self._read(path)
            if entry is not None:
                self._stats["hits"] += 1
                self.logger.debug(
                    f"Historical cache hit: {key} (cached at: {entry.cached_at.isoformat()})"
                )
                return entry.value

        # Written under a layout the key does not describe
        try:
            found = await self.backend.find((HISTORICAL_DIR,), record_name(key))
        except OSError as e:
            self.logger.warning(f"Historical cache scan failed for {key}: {e}")
            found = []
        for path in found:
            if path in candidates:
                continue
            entry = await self._read(path)
            if entry is not None:
                self._stats["hits"] += 1
                self.logger.debug(f"Historical cache hit: {key} at {'/'.join(path)}")
                return entry.value

        self._stats["misses"] += 1
        self.logger.debug(f"Historical cache miss: {key}")
        return _MISSING

    async def get_historical(self, key: str, default: Any = None) -> Any:
        """
        Retrieve historical data by key alone.

        The data type, season and week are inferred from the key's naming
        pattern; keys that match no pattern map to historical/{key}.json.
        """
        value = await self._lookup(key)
        return default if value is _MISSING else value

    async def set_historical(
        self,
        key: str,
        value: Any,
        data_type: str,
        season: Optional[str] = None,
        week: Optional[int] = None,
    ) -> None:
        """Store a permanent record. Write failures are logged, not raised."""
        key_season, _ = extract_season_week(key)
        path = self._path(key, data_type, season or key_season)
        entry = HistoricalCacheEntry(
            value=value,
            cached_at=self._clock(),
            data_type=data_type,
            season=season,
            week=week,
        )

        try:
            await self.backend.write(path, entry.to_record())
            self._stats["writes"] += 1
            self.logger.info(f"Historical cache set: {key} -> {'/'.join(path)}")
        except (OSError, TypeError, ValueError) as e:
            self._stats["write_failures"] += 1
            self.logger.warning(f"Failed to save historical cache for {key}: {e}")

    async def get_or_set_historical(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        data_type: str,
        season: Optional[str] = None,
        week: Optional[int] = None,
    ) -> Any:
        """
        Return the stored record for key, or load, store and return it.

        Loader errors propagate and nothing is stored.
        """
        value = await self._lookup(key, data_type, season)
        if value is not _MISSING:
            return value

        self.logger.info(f"Fetching and caching historical data: {key}")
        value = await loader()
        await self.set_historical(key, value, data_type, season, week)
        return value

    async def clear_historical(self, pattern: Optional[str] = None) -> None:
        """
        Delete all historical records and recreate the directory layout.

        Pattern-scoped clearing is not supported: with a pattern nothing is
        deleted.
        """
        if pattern:
            self.logger.warning(
                f"Pattern-scoped historical clear is not supported, nothing removed: {pattern}"
            )
            return

        try:
            await self.backend.remove_tree((HISTORICAL_DIR,))
            self.logger.info("Cleared all historical cache")
        except OSError as e:
            self.logger.warning(f"Failed to clear historical cache: {e}")
        self.ensure_layout()

    def get_stats(self) -> dict[str, Any]:
        """Get historical cache statistics."""
        return dict(self._stats)
