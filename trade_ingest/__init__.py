"""
Trade Ingest - incremental trade poller for market venues

Polls a market venue for new trades on every listing, forwards trades it has
not seen before to an in-process event bus and keeps polling forever, at a
rate bounded across all listings.

Usage:
    # Run until Ctrl-C
    python -m trade_ingest.main
    
    # Fresh database with the default listings
    python -m trade_ingest.main --reset-db

Architecture:
    IngestionCoordinator → FetchTradesTask (one per listing)
                                ↓  submit / self-requeue
                           RateLimiter (N starts per window, worker pool)
                                ↓  fetch since cursor
                           BitfinexClient
                                ↓  publish Trade / MarketDataError
                           EventBus → TradeSaver → PersistenceStore (DuckDB)

Resume:
    Each task recovers its cursor (highest trade time, highest trade id)
    from the stored trades when it is created; only trades with a higher
    id are forwarded.
"""

from trade_ingest.config import get_config, set_config, load_config, Config
from trade_ingest.coordination import IngestionCoordinator
from trade_ingest.cursors import TradeCursor, recover_cursor
from trade_ingest.events import EventBus, Publisher, TradeSaver
from trade_ingest.persistence import (
    PersistenceStore,
    ListingRepository,
    TradeRepository,
    SwappableQueue,
)
from trade_ingest.schema import (
    InitMode,
    Listing,
    Trade,
    VenueTrade,
    MarketDataError,
    SeedRegistry,
    default_seed,
)
from trade_ingest.workers import (
    RateLimiter,
    AdmissionWindow,
    VenueClient,
    BitfinexClient,
    create_venue_client,
    FetchTradesTask,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "get_config",
    "set_config",
    "load_config",
    "Config",
    
    # Coordination
    "IngestionCoordinator",
    
    # Cursors
    "TradeCursor",
    "recover_cursor",
    
    # Events
    "EventBus",
    "Publisher",
    "TradeSaver",
    
    # Persistence
    "PersistenceStore",
    "ListingRepository",
    "TradeRepository",
    "SwappableQueue",
    
    # Schema
    "InitMode",
    "Listing",
    "Trade",
    "VenueTrade",
    "MarketDataError",
    "SeedRegistry",
    "default_seed",
    
    # Workers
    "RateLimiter",
    "AdmissionWindow",
    "VenueClient",
    "BitfinexClient",
    "create_venue_client",
    "FetchTradesTask",
]
