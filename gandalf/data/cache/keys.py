"""
Cache key helpers.

Keys are opaque strings chosen by callers. By convention they encode the
data category, season and week, e.g. ``league_123_week_4_matchups`` or
``user_9_leagues_nfl_2023``; the historical store relies on that convention
to locate records when only the key is known.
"""
from typing import Optional
from urllib.parse import quote, unquote

from gandalf.config.constants import (
    ENCODED_LEADING_DOT,
    RECORD_SUFFIX,
    SEASON_IN_KEY,
    WEEK_IN_KEY,
    HistoricalDataType,
)


def record_name(key: str) -> str:
    """
    Deterministic file name for a cache key.

    Percent-encoding is one-to-one, so distinct keys never share a file:
    ``players/nfl`` -> ``players%2Fnfl.json``, ``players_nfl`` -> ``players_nfl.json``.
    """
    if not key:
        raise ValueError("cache key must be a non-empty string")
    safe = quote(key, safe="")
    if safe.startswith("."):
        safe = ENCODED_LEADING_DOT + safe[1:]
    return f"{safe}{RECORD_SUFFIX}"


def key_from_record_name(name: str) -> str:
    """Inverse of record_name()."""
    if name.endswith(RECORD_SUFFIX):
        name = name[: -len(RECORD_SUFFIX)]
    return unquote(name)


def classify_data_type(key: str) -> str:
    """Derive the historical data type from a key's naming pattern."""
    if "_leagues_" in key:
        return HistoricalDataType.LEAGUES.value
    if key.startswith("draft_"):
        return HistoricalDataType.DRAFTS.value
    if "_matchups" in key:
        return HistoricalDataType.MATCHUPS.value
    if "_transactions" in key:
        return HistoricalDataType.TRANSACTIONS.value
    if "_rosters" in key:
        return HistoricalDataType.ROSTERS.value
    return HistoricalDataType.GENERAL.value


def extract_season_week(key: str) -> tuple[Optional[str], Optional[int]]:
    """Pull an embedded four-digit season and ``week_N`` out of a key."""
    season_match = SEASON_IN_KEY.search(key)
    week_match = WEEK_IN_KEY.search(key)
    season = season_match.group(1) if season_match else None
    week = int(week_match.group(1)) if week_match else None
    return season, week
