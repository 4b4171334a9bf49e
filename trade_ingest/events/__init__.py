"""
Event publishing for the trade ingester.
"""

from trade_ingest.events.bus import EventBus, Publisher
from trade_ingest.events.trade_saver import TradeSaver

__all__ = [
    "EventBus",
    "Publisher",
    "TradeSaver",
]
