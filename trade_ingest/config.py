"""
Configuration loader for the trade ingester.
Loads settings from config.json with fallback defaults.
"""

import json
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from trade_ingest.utils.exceptions import ConfigError


@dataclass
class RateLimitsConfig:
    """Admission window: at most `queries` task starts per `window_seconds`."""
    queries: int = 1
    window_seconds: float = 1.0


@dataclass
class WorkersConfig:
    """Worker pool configuration."""
    fetch: int = 2


@dataclass
class ApiConfig:
    """Venue API configuration."""
    base_url: str = "https://api-pub.bitfinex.com/v2"
    timeout: float = 30.0
    connect_timeout: float = 10.0
    page_limit: int = 1000


@dataclass
class DatabaseConfig:
    """DuckDB persistence configuration."""
    path: str = "data/trades.duckdb"
    query_batch_size: int = 20


@dataclass
class VenueConfig:
    """Venue and the listings to ingest from it."""
    name: str = "BITFINEX"
    listings: List[Tuple[str, str]] = field(default_factory=lambda: [
        ("BTC", "USD"),
        ("LTC", "USD"),
        ("LTC", "BTC"),
    ])


@dataclass
class QueuesConfig:
    """Trade saver buffering configuration."""
    trade_threshold: int = 500
    flush_interval: float = 5.0


@dataclass
class RetryConfig:
    """Retry configuration for venue calls within one fetch cycle."""
    max_attempts: int = 2
    base_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0


@dataclass
class Config:
    """Root configuration object."""
    rate_limits: RateLimitsConfig = field(default_factory=RateLimitsConfig)
    workers: WorkersConfig = field(default_factory=WorkersConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    venue: VenueConfig = field(default_factory=VenueConfig)
    queues: QueuesConfig = field(default_factory=QueuesConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from JSON file.
    
    Args:
        config_path: Path to config.json. If None, uses default location.
    
    Returns:
        Config dataclass populated from JSON.
    
    Raises:
        ConfigError: If the file exists but is not valid JSON or has bad values
    """
    if config_path is None:
        config_path = Path(__file__).parent / "config.json"
    config_path = Path(config_path)
    
    config = Config()
    
    if not config_path.exists():
        return config
    
    try:
        with open(config_path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config: {e}", config_file=str(config_path))
    
    # Rate limits
    if "rate_limits" in data:
        rl = data["rate_limits"]
        config.rate_limits = RateLimitsConfig(
            queries=rl.get("queries", 1),
            window_seconds=rl.get("window_seconds", 1.0),
        )
    
    # Workers
    if "workers" in data:
        w = data["workers"]
        config.workers = WorkersConfig(
            fetch=w.get("fetch", 2),
        )
    
    # API
    if "api" in data:
        api = data["api"]
        config.api = ApiConfig(
            base_url=api.get("base_url", "https://api-pub.bitfinex.com/v2"),
            timeout=api.get("timeout", 30.0),
            connect_timeout=api.get("connect_timeout", 10.0),
            page_limit=api.get("page_limit", 1000),
        )
    
    # Database
    if "database" in data:
        db = data["database"]
        config.database = DatabaseConfig(
            path=db.get("path", "data/trades.duckdb"),
            query_batch_size=db.get("query_batch_size", 20),
        )
    
    # Venue
    if "venue" in data:
        v = data["venue"]
        listings = v.get("listings")
        config.venue = VenueConfig(name=v.get("name", "BITFINEX"))
        if listings is not None:
            try:
                config.venue.listings = [(base, quote) for base, quote in listings]
            except (TypeError, ValueError):
                raise ConfigError(
                    "venue.listings must be a list of [base, quote] pairs",
                    config_file=str(config_path)
                )
    
    # Queues
    if "queues" in data:
        q = data["queues"]
        config.queues = QueuesConfig(
            trade_threshold=q.get("trade_threshold", 500),
            flush_interval=q.get("flush_interval", 5.0),
        )
    
    # Retry
    if "retry" in data:
        r = data["retry"]
        config.retry = RetryConfig(
            max_attempts=r.get("max_attempts", 2),
            base_delay=r.get("base_delay", 0.5),
            max_delay=r.get("max_delay", 5.0),
            exponential_base=r.get("exponential_base", 2.0),
        )
    
    if config.rate_limits.queries < 1 or config.rate_limits.window_seconds <= 0:
        raise ConfigError(
            "rate_limits.queries must be >= 1 and rate_limits.window_seconds > 0",
            config_file=str(config_path)
        )
    
    if config.retry.max_attempts < 1:
        raise ConfigError("retry.max_attempts must be >= 1", config_file=str(config_path))

    return config


# Global config singleton
_config: Optional[Config] = None


def get_config() -> Config:
    """Get global config singleton, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Set global config singleton (for testing)."""
    global _config
    _config = config
