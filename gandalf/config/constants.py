"""
Constants for the cache subsystem.

Contains directory names, historical data types and key patterns.
"""
import re
from enum import Enum
from typing import Final


# =============================================================================
# CACHE ROOT
# =============================================================================
CACHE_HOME_DIRNAME: Final[str] = ".gandalf-cache"
FALLBACK_CACHE_DIRNAME: Final[str] = "cache"

RECORD_SUFFIX: Final[str] = ".json"

CURRENT_DIR: Final[str] = "current"
HISTORICAL_DIR: Final[str] = "historical"

# Placeholder partition for season-partitioned data written without a season
UNKNOWN_SEASON: Final[str] = "unknown"


# =============================================================================
# HISTORICAL DATA TYPES
# =============================================================================
class HistoricalDataType(str, Enum):
    """Categories of historical data, each with its own directory."""

    LEAGUES = "leagues"
    DRAFTS = "drafts"
    MATCHUPS = "matchups"
    TRANSACTIONS = "transactions"
    ROSTERS = "rosters"
    GENERAL = "general"


# Data types stored as historical/{type}/{season}/{key}.json
SEASON_PARTITIONED_TYPES: Final[frozenset[str]] = frozenset(
    {
        HistoricalDataType.LEAGUES.value,
        HistoricalDataType.MATCHUPS.value,
        HistoricalDataType.TRANSACTIONS.value,
        HistoricalDataType.ROSTERS.value,
    }
)

# Directories provisioned under historical/ at startup and after a wipe
HISTORICAL_SUBDIRS: Final[tuple[str, ...]] = (
    HistoricalDataType.LEAGUES.value,
    HistoricalDataType.DRAFTS.value,
    HistoricalDataType.MATCHUPS.value,
    HistoricalDataType.TRANSACTIONS.value,
    HistoricalDataType.ROSTERS.value,
)


# =============================================================================
# KEY PATTERNS
# =============================================================================
SEASON_IN_KEY: Final[re.Pattern] = re.compile(r"_(\d{4})(?:_|$)")
WEEK_IN_KEY: Final[re.Pattern] = re.compile(r"week_(\d+)")

# Record names never start with a dot (temp files and dotfiles do)
ENCODED_LEADING_DOT: Final[str] = "%2E"


# =============================================================================
# DEFAULT TTLS (seconds)
# =============================================================================
DEFAULT_TTLS: Final[dict[str, int]] = {
    "nfl_state": 3600,  # 1 hour
    "players": 86400,  # 24 hours
    "trending": 3600,  # 1 hour
    "league": 1800,  # 30 minutes
    "rosters": 300,  # 5 minutes
    "matchups": 300,  # 5 minutes
    "transactions": 300,  # 5 minutes
    "intelligence": 1800,  # 30 minutes
    "default": 3600,  # 1 hour
}
