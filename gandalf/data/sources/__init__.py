"""
Upstream data source clients.

Available sources:
- SleeperClient: current NFL season/week (feeds FreshnessOracle)
"""
from .base import (
    AuthenticationError,
    BaseDataSource,
    CircuitBreaker,
    DataNotAvailableError,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RateLimitError,
    RetryConfig,
)
from .sleeper_client import SleeperClient

__all__ = [
    # Base classes
    "BaseDataSource",
    "CircuitBreaker",
    "DataSourceError",
    "DataSourceHealth",
    "DataSourceStatus",
    "RateLimitError",
    "AuthenticationError",
    "DataNotAvailableError",
    "RetryConfig",
    # Clients
    "SleeperClient",
]
