"""
Integration tests against the live Bitfinex public API.

These tests make REAL API calls to verify connectivity and response format.
Run with: pytest tests/integration -m integration -v
"""

import pytest

from trade_ingest.config import Config
from trade_ingest.schema import Listing
from trade_ingest.workers import BitfinexClient

pytestmark = pytest.mark.integration


@pytest.fixture
def venue():
    with BitfinexClient(config=Config()) as client:
        yield client


class TestTradesEndpoint:
    """Tests for the trade history endpoint."""
    
    def test_fetch_recent_trades(self, venue):
        """Verify recent BTC/USD trades parse into ascending records."""
        trades = venue.fetch_trades(Listing("BITFINEX", "BTC", "USD"), 0)
        
        assert isinstance(trades, list)
        if trades:
            times = [t.timestamp_ms for t in trades]
            assert times == sorted(times)
            assert all(t.remote_id.isdigit() for t in trades)
            assert all(t.quantity >= 0 for t in trades)
    
    def test_since_bound_respected(self, venue):
        listing = Listing("BITFINEX", "LTC", "USD")
        first = venue.fetch_trades(listing, 0)
        if not first:
            pytest.skip("No trades returned")
        
        since = first[-1].timestamp_ms
        later = venue.fetch_trades(listing, since)
        
        assert all(t.timestamp_ms >= since for t in later)
