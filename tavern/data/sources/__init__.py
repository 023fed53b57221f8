"""
Data source clients.

Available sources:
- SleeperClient: Sleeper fantasy API for league, rosters, and matchups
"""
from .base import (
    BaseDataSource,
    CachedDataSource,
    CircuitBreakerConfig,
    DataNotAvailableError,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RateLimitError,
    RetryConfig,
)
from .sleeper import SleeperClient

__all__ = [
    # Base classes
    "BaseDataSource",
    "CachedDataSource",
    "CircuitBreakerConfig",
    "DataNotAvailableError",
    "DataSourceError",
    "DataSourceHealth",
    "DataSourceStatus",
    "RateLimitError",
    "RetryConfig",
    # Clients
    "SleeperClient",
]
