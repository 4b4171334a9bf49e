"""
Utility modules for the trade ingester.
"""

from trade_ingest.utils.logging_config import close_file_logging, get_logger, setup_file_logging
from trade_ingest.utils.exceptions import (
    TradeIngestError,
    VenueError,
    VenueAPIError,
    RateLimitExceededError,
    NetworkTimeoutError,
    VenueUnavailableError,
    MalformedResponseError,
    PersistenceError,
    NoResultError,
    ConfigError,
)
from trade_ingest.utils.retry import backoff_delay, retry, retry_from_config

__all__ = [
    "get_logger",
    "setup_file_logging",
    "close_file_logging",
    "TradeIngestError",
    "VenueError",
    "VenueAPIError",
    "RateLimitExceededError",
    "NetworkTimeoutError",
    "VenueUnavailableError",
    "MalformedResponseError",
    "PersistenceError",
    "NoResultError",
    "ConfigError",
    "backoff_delay",
    "retry",
    "retry_from_config",
]
