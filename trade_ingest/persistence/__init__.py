"""
Persistence module for the trade ingester.
"""

from trade_ingest.persistence.swappable_queue import SwappableQueue
from trade_ingest.persistence.store import PersistenceStore, DEFAULT_BATCH_SIZE
from trade_ingest.persistence.repository import ListingRepository, TradeRepository

__all__ = [
    "SwappableQueue",
    "PersistenceStore",
    "DEFAULT_BATCH_SIZE",
    "ListingRepository",
    "TradeRepository",
]
