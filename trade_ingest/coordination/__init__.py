"""
Coordination module for the trade ingester.
"""

from trade_ingest.coordination.coordinator import IngestionCoordinator

__all__ = [
    "IngestionCoordinator",
]
