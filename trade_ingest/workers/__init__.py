"""
Workers module - rate limiter, venue client and per-listing fetch tasks.

Exports:
    - RateLimiter: Admission-controlled scheduler all fetch tasks run on
    - AdmissionWindow: Sliding-window admission counter
    - VenueClient, BitfinexClient: Venue market-data source
    - create_venue_client: Client for the configured venue
    - FetchTradesTask: Self-requeuing poller for one listing
"""

from trade_ingest.workers.rate_limiter import RateLimiter, AdmissionWindow
from trade_ingest.workers.venue_client import (
    VenueClient,
    BitfinexClient,
    VENUE_CLIENTS,
    create_venue_client,
)
from trade_ingest.workers.fetch_task import FetchTradesTask

__all__ = [
    "RateLimiter",
    "AdmissionWindow",
    "VenueClient",
    "BitfinexClient",
    "VENUE_CLIENTS",
    "create_venue_client",
    "FetchTradesTask",
]
