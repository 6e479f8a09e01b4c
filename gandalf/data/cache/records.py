"""
Cache record data structures.

Entries live in memory as dataclasses and on disk as JSON objects:

    ephemeral:  {"value", "cachedAt", "expiresAt"}
    historical: {"value", "cachedAt", "dataType", "season"?, "week"?}
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
import time

from .errors import CorruptRecordError


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as ISO-8601 UTC with a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str):
        raise ValueError(f"expected ISO-8601 string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CacheEntry:
    """
    An ephemeral cached value with expiry and LRU bookkeeping.

    `last_accessed` is a monotonic timestamp and is never persisted.
    """

    value: Any
    cached_at: datetime
    expires_at: datetime
    last_accessed: float = field(default_factory=time.monotonic)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def remaining_seconds(self, now: datetime) -> float:
        return max(0.0, (self.expires_at - now).total_seconds())

    def touch(self) -> None:
        self.last_accessed = time.monotonic()

    def to_record(self) -> dict:
        return {
            "value": self.value,
            "cachedAt": format_timestamp(self.cached_at),
            "expiresAt": format_timestamp(self.expires_at),
        }

    @classmethod
    def from_record(cls, record: dict, location: str = "<record>") -> "CacheEntry":
        try:
            return cls(
                value=record["value"],
                cached_at=parse_timestamp(record["cachedAt"]),
                expires_at=parse_timestamp(record["expiresAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptRecordError(location, e) from e


@dataclass
class HistoricalCacheEntry:
    """A permanent cached value for a concluded season/week."""

    value: Any
    cached_at: datetime
    data_type: str
    season: Optional[str] = None
    week: Optional[int] = None

    def to_record(self) -> dict:
        record = {
            "value": self.value,
            "cachedAt": format_timestamp(self.cached_at),
            "dataType": self.data_type,
        }
        if self.season is not None:
            record["season"] = self.season
        if self.week is not None:
            record["week"] = self.week
        return record

    @classmethod
    def from_record(cls, record: dict, location: str = "<record>") -> "HistoricalCacheEntry":
        try:
            week = record.get("week")
            return cls(
                value=record["value"],
                cached_at=parse_timestamp(record["cachedAt"]),
                data_type=str(record["dataType"]),
                season=record.get("season"),
                week=int(week) if week is not None else None,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CorruptRecordError(location, e) from e


@dataclass(frozen=True)
class FreshnessState:
    """Best current knowledge of the live NFL season and week."""

    season: str
    week: int
    season_type: Optional[str] = None
    display_week: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "FreshnessState":
        """Build from a Sleeper `state/nfl` payload."""
        display_week = payload.get("display_week")
        return cls(
            season=str(payload["season"]),
            week=int(payload["week"]),
            season_type=payload.get("season_type"),
            display_week=int(display_week) if display_week is not None else None,
        )
