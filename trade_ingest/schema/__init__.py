"""
Schema module - entities and default reference data.
"""

from trade_ingest.schema.entities import (
    EntityBase,
    InitMode,
    Listing,
    Trade,
    VenueTrade,
    MarketDataError,
)
from trade_ingest.schema.seed import SeedRegistry, default_seed, BITFINEX

__all__ = [
    "EntityBase",
    "InitMode",
    "Listing",
    "Trade",
    "VenueTrade",
    "MarketDataError",
    "SeedRegistry",
    "default_seed",
    "BITFINEX",
]
