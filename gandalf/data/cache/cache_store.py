"""
Two-tier expiring cache.

A bounded LRU memory tier sits in front of a PersistenceBackend. Reads go
memory -> disk -> loader; writes go to both tiers. Disk is the durable copy
that survives restarts, memory is the hot working set.

- TTL expiry checked lazily on read and eagerly by sweep()
- LRU eviction of exactly one entry when a new key would exceed capacity
- Optional single-flight loading and loader deadlines for get_or_set()
"""
import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger

from gandalf.config.constants import DEFAULT_TTLS

from .errors import CorruptRecordError, LoaderTimeoutError
from .keys import key_from_record_name, record_name
from .persistence import FileBackend, InMemoryBackend, PersistenceBackend, RecordPath
from .records import CacheEntry, utcnow

Loader = Callable[[], Awaitable[Any]]

# Distinguishes "not cached" from a cached None
_MISSING = object()

_HEALTH_CHECK_KEY = "_health_check"


@dataclass
class SweepResult:
    """Outcome of one sweep pass."""

    memory_removed: int = 0
    disk_removed: int = 0
    disk_errors: int = 0


class CacheStore:
    """
    Async key -> value cache with a memory tier and a disk tier.

    Example:
        >>> store = CacheStore.create_file_store("~/.gandalf-cache")
        >>> players = await store.get_or_set("players_nfl", client.get_players, 86400)
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        max_entries: int = 1000,
        loader_timeout: Optional[float] = None,
        single_flight: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the cache store.

        Args:
            backend: Durable record storage (the disk tier)
            max_entries: Memory tier capacity
            loader_timeout: Default deadline in seconds for get_or_set loaders
            single_flight: Share one loader call between concurrent misses
            clock: Source of the current UTC time
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.backend = backend
        self.max_entries = max_entries
        self.loader_timeout = loader_timeout
        self.single_flight = single_flight
        self._clock = clock

        self._memory: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._in_flight: dict[str, asyncio.Future] = {}
        # Bumped by set() and delete(); a disk read that spans a write is not
        # loaded into memory
        self._writes = 0

        self._stats = {
            "hits_memory": 0,
            "hits_disk": 0,
            "misses": 0,
            "evictions": 0,
            "loader_calls": 0,
            "coalesced": 0,
            "write_failures": 0,
            "sweeps": 0,
        }

        self.logger = logger.bind(component="cache")

    @classmethod
    def create_memory_store(cls, max_entries: int = 1000, **kwargs) -> "CacheStore":
        """Create a store whose disk tier lives in process memory."""
        return cls(InMemoryBackend(), max_entries=max_entries, **kwargs)

    @classmethod
    def create_file_store(
        cls, root: Union[str, Path], max_entries: int = 1000, **kwargs
    ) -> "CacheStore":
        """
        Create a store backed by JSON files under `root`.

        Raises:
            CacheInitializationError: If the root cannot be created
        """
        backend = FileBackend(Path(root).expanduser())
        backend.ensure_directories()
        return cls(backend, max_entries=max_entries, **kwargs)

    @classmethod
    def from_settings(
        cls, settings, backend: Optional[PersistenceBackend] = None
    ) -> "CacheStore":
        """Create a store based on application settings."""
        if backend is None:
            backend = FileBackend(settings.resolve_cache_root())
            backend.ensure_directories()
        return cls(
            backend,
            max_entries=settings.cache.max_memory_entries,
            loader_timeout=settings.cache.loader_timeout_seconds,
            single_flight=settings.cache.single_flight,
        )

    def _path(self, key: str) -> RecordPath:
        """Ephemeral records live flat under the root."""
        return (record_name(key),)

    def _get_ttl(self, data_type: str, ttl_seconds: Optional[int] = None) -> int:
        """Get TTL for a data type."""
        if ttl_seconds is not None:
            return ttl_seconds
        return DEFAULT_TTLS.get(data_type, DEFAULT_TTLS["default"])

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Get a value from cache.

        Memory first; on a memory miss the disk record is loaded back into
        memory with whatever TTL it has left.
        """
        value = await self._lookup(key)
        return default if value is _MISSING else value

    async def exists(self, key: str) -> bool:
        """Check if a live entry exists for key."""
        return await self._lookup(key) is not _MISSING

    async def get_ttl(self, key: str) -> Optional[int]:
        """Get remaining TTL for a key in whole seconds, or None if absent."""
        if await self._lookup(key) is _MISSING:
            return None
        entry = self._memory.get(key)
        if entry is None:
            return None
        return int(entry.remaining_seconds(self._clock()))

    def _peek_memory(self, key: str) -> Any:
        entry = self._memory.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return _MISSING
        return entry.value

    async def _lookup(self, key: str) -> Any:
        path = self._path(key)
        now = self._clock()

        async with self._lock:
            entry = self._memory.get(key)
            if entry is not None:
                if not entry.is_expired(now):
                    entry.touch()
                    self._memory.move_to_end(key)
                    self._stats["hits_memory"] += 1
                    self.logger.debug(f"Cache hit (memory): {key}")
                    return entry.value
                del self._memory[key]
            writes_before = self._writes

        entry = await self._read_disk(path, now)
        if entry is None:
            self._stats["misses"] += 1
            self.logger.debug(f"Cache miss: {key}")
            return _MISSING

        async with self._lock:
            current = self._memory.get(key)
            if current is not None and not current.is_expired(now):
                # Filled while disk was being read; memory is never older
                current.touch()
                self._memory.move_to_end(key)
                self._stats["hits_memory"] += 1
                return current.value
            if self._writes == writes_before:
                self._insert(key, entry)
        self._stats["hits_disk"] += 1
        self.logger.debug(
            f"Cache hit (disk): {key} [{entry.remaining_seconds(now):.0f}s left]"
        )
        return entry.value

    async def _read_disk(self, path: RecordPath, now: datetime) -> Optional[CacheEntry]:
        location = "/".join(path)
        try:
            record = await self.backend.read(path)
            if record is None:
                return None
            entry = CacheEntry.from_record(record, location)
        except CorruptRecordError as e:
            self.logger.warning(f"Dropping corrupt cache record: {e}")
            await self._discard(path)
            return None
        except OSError as e:
            self.logger.warning(f"Cache read error for {location}: {e}")
            return None

        if entry.is_expired(now):
            self.logger.debug(f"Disk record expired: {location}")
            await self._discard(path)
            return None
        return entry

    async def _discard(self, path: RecordPath) -> None:
        try:
            await self.backend.delete(path)
        except OSError as e:
            self.logger.warning(f"Failed to delete cache record {'/'.join(path)}: {e}")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _insert(self, key: str, entry: CacheEntry) -> None:
        """Put an entry in the memory tier. Caller holds the lock."""
        if key in self._memory:
            self._memory[key] = entry
            self._memory.move_to_end(key)
        else:
            while len(self._memory) >= self.max_entries:
                self._evict_one()
            self._memory[key] = entry
        entry.touch()

    def _evict_one(self) -> None:
        """Drop the least recently used memory entry. Its disk record stays."""
        evicted_key, _ = self._memory.popitem(last=False)
        self._stats["evictions"] += 1
        self.logger.debug(f"Evicted from memory (LRU): {evicted_key}")

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        data_type: str = "default",
    ) -> None:
        """
        Set a value in both tiers.

        A failed disk write is logged and swallowed; the memory copy stays
        valid for its TTL.
        """
        path = self._path(key)
        ttl = self._get_ttl(data_type, ttl_seconds)
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")

        now = self._clock()
        entry = CacheEntry(value=value, cached_at=now, expires_at=now + timedelta(seconds=ttl))

        async with self._lock:
            self._insert(key, entry)
            self._writes += 1

        try:
            await self.backend.write(path, entry.to_record())
            self.logger.debug(f"Cache set: {key} (TTL: {ttl}s)")
        except (OSError, TypeError, ValueError) as e:
            self._stats["write_failures"] += 1
            self.logger.warning(f"Failed to persist cache entry for {key}: {e}")

    async def get_or_set(
        self,
        key: str,
        loader: Loader,
        ttl_seconds: Optional[int] = None,
        data_type: str = "default",
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Get value from cache or compute and store it.

        Args:
            key: Cache key
            loader: Async callable to compute value if not cached
            ttl_seconds: Optional TTL override
            data_type: Data type for default TTL lookup
            timeout: Loader deadline; falls back to the store default

        Returns:
            Cached or computed value

        Raises:
            LoaderTimeoutError: If the loader misses its deadline
            Exception: Anything the loader raises, unchanged
        """
        ttl = self._get_ttl(data_type, ttl_seconds)
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")

        value = await self._lookup(key)
        if value is not _MISSING:
            return value

        if not self.single_flight:
            return await self._load_and_store(key, loader, ttl, timeout)

        # Another caller may have filled memory while we were on disk
        value = self._peek_memory(key)
        if value is not _MISSING:
            return value

        pending = self._in_flight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._load_and_store(key, loader, ttl, timeout))
            self._in_flight[key] = pending
            pending.add_done_callback(lambda fut, k=key: self._finish_flight(k, fut))
        else:
            self._stats["coalesced"] += 1
            self.logger.debug(f"Joining in-flight load for {key}")

        # A cancelled caller must not cancel the shared load
        return await asyncio.shield(pending)

    def _finish_flight(self, key: str, future: asyncio.Future) -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]
        if not future.cancelled():
            # Mark retrieved even if every waiter went away
            future.exception()

    async def _load_and_store(
        self,
        key: str,
        loader: Loader,
        ttl: int,
        timeout: Optional[float],
    ) -> Any:
        deadline = timeout if timeout is not None else self.loader_timeout
        self._stats["loader_calls"] += 1
        self.logger.debug(f"Loading value for {key}")

        if deadline is None:
            value = await loader()
        else:
            try:
                value = await asyncio.wait_for(loader(), timeout=deadline)
            except asyncio.TimeoutError:
                self.logger.warning(f"Loader for {key} timed out after {deadline}s")
                raise LoaderTimeoutError(key, deadline) from None

        await self.set(key, value, ttl)
        return value

    async def delete(self, key: str) -> None:
        """Delete a key from both tiers."""
        path = self._path(key)
        async with self._lock:
            self._memory.pop(key, None)
            self._writes += 1
        await self._discard(path)
        self.logger.debug(f"Cache delete: {key}")

    def clear(self) -> int:
        """
        Clear the memory tier.

        Disk records are left alone and will be served again on the next
        read until they expire.

        Returns:
            Number of entries cleared
        """
        count = len(self._memory)
        self._memory.clear()
        self.logger.info(f"Cleared {count} memory cache entries")
        return count

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def sweep(self) -> SweepResult:
        """
        Remove expired entries from memory, then expired or unparseable
        records from disk. A failure on one file does not stop the scan.
        """
        now = self._clock()
        result = SweepResult()

        async with self._lock:
            expired = [key for key, entry in self._memory.items() if entry.is_expired(now)]
            for key in expired:
                del self._memory[key]
        result.memory_removed = len(expired)

        try:
            paths = await self.backend.list_records(())
        except OSError as e:
            self.logger.warning(f"Failed to list cache records: {e}")
            result.disk_errors += 1
            paths = []

        for path in paths:
            location = "/".join(path)
            try:
                record = await self.backend.read(path)
                if record is None:
                    continue
                if CacheEntry.from_record(record, location).is_expired(now):
                    if self._rewritten(path, now):
                        continue
                    await self.backend.delete(path)
                    result.disk_removed += 1
            except CorruptRecordError:
                if self._rewritten(path, now):
                    continue
                try:
                    await self.backend.delete(path)
                    result.disk_removed += 1
                except OSError as e:
                    result.disk_errors += 1
                    self.logger.warning(f"Failed to delete corrupt record {location}: {e}")
            except OSError as e:
                result.disk_errors += 1
                self.logger.warning(f"Sweep skipped {location}: {e}")

        self._stats["sweeps"] += 1
        if result.memory_removed or result.disk_removed:
            self.logger.info(
                f"Sweep removed {result.memory_removed} memory and "
                f"{result.disk_removed} disk entries"
            )
        return result

    def _rewritten(self, path: RecordPath, now: datetime) -> bool:
        """True if set() stored a live value for this record since it was read."""
        entry = self._memory.get(key_from_record_name(path[-1]))
        return entry is not None and not entry.is_expired(now)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total_hits = self._stats["hits_memory"] + self._stats["hits_disk"]
        total_requests = total_hits + self._stats["misses"]
        hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "entries": len(self._memory),
            "max_entries": self.max_entries,
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "in_flight": len(self._in_flight),
        }

    async def health_check(self) -> dict:
        """Check that the disk tier accepts writes and reads them back."""
        path = self._path(_HEALTH_CHECK_KEY)
        try:
            await self.backend.write(path, {"value": "ok"})
            record = await self.backend.read(path)
            await self.backend.delete(path)

            return {
                "status": "healthy" if record and record.get("value") == "ok" else "degraded",
                "backend": self.backend.name,
                "entries": len(self._memory),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "backend": self.backend.name,
                "error": str(e),
            }

    async def close(self) -> None:
        """Drop the memory tier and any pending loads."""
        for pending in list(self._in_flight.values()):
            pending.cancel()
        self._in_flight.clear()
        self._memory.clear()
