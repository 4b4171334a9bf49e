"""
Unit tests for ListingRepository and TradeRepository.
"""

from unittest.mock import MagicMock

import pytest

from conftest import stored_trade
from trade_ingest.persistence import ListingRepository, TradeRepository
from trade_ingest.schema import InitMode, Listing
from trade_ingest.utils.exceptions import PersistenceError


class TestListingRepository:
    """Test listing lookup and creation."""
    
    def test_build_normalizes_symbols(self):
        listing = ListingRepository.build("bitfinex", "btc", "usd")
        assert listing == Listing("BITFINEX", "BTC", "USD")
    
    def test_find_missing(self, listing_repository):
        assert listing_repository.find("BITFINEX", "BTC", "USD") is None
    
    def test_find_or_create_creates_once(self, listing_repository, store):
        first = listing_repository.find_or_create("BITFINEX", "btc", "usd")
        second = listing_repository.find_or_create("BITFINEX", "BTC", "USD")
        
        assert first == second == Listing("BITFINEX", "BTC", "USD")
        assert store.scalar("SELECT COUNT(*) FROM listings") == 1
    
    def test_seeding_mode_does_not_touch_database(self):
        """Test SEEDING mode builds the listing without any store access."""
        store = MagicMock()
        repo = ListingRepository(store)
        
        listing = repo.find_or_create("BITFINEX", "LTC", "BTC", mode=InitMode.SEEDING)
        
        assert listing == Listing("BITFINEX", "LTC", "BTC")
        assert store.method_calls == []
    
    def test_find_by_venue_ordered(self, listing_repository):
        for base, quote in [("LTC", "USD"), ("BTC", "USD"), ("LTC", "BTC")]:
            listing_repository.find_or_create("BITFINEX", base, quote)
        listing_repository.find_or_create("OTHER", "ETH", "USD")
        
        listings = listing_repository.find_by_venue("bitfinex")
        
        assert [l.symbol for l in listings] == ["BTC.USD", "LTC.BTC", "LTC.USD"]


class TestTradeRepository:
    """Test trade history queries."""
    
    def test_latest_trades_returns_rows_at_max_time(self, trade_repository, btc_usd):
        trade_repository.save([
            stored_trade(btc_usd, 100, "1"),
            stored_trade(btc_usd, 300, "4"),
            stored_trade(btc_usd, 300, "3"),
            stored_trade(btc_usd, 200, "9"),
        ])
        
        latest = trade_repository.latest_trades(btc_usd)
        
        assert [(t.time_ms, t.remote_key) for t in latest] == [(300, "3"), (300, "4")]
    
    def test_latest_trades_scoped_to_listing(self, trade_repository, btc_usd):
        ltc_usd = Listing("BITFINEX", "LTC", "USD")
        trade_repository.save([
            stored_trade(btc_usd, 100, "1"),
            stored_trade(ltc_usd, 900, "2"),
        ])
        
        assert [t.remote_key for t in trade_repository.latest_trades(btc_usd)] == ["1"]
    
    def test_latest_trades_spanning_several_batches(self, trade_repository, btc_usd):
        """Test more same-time rows than the batch size are all returned."""
        trade_repository.save([stored_trade(btc_usd, 500, str(i)) for i in range(7)])
        
        assert len(trade_repository.latest_trades(btc_usd)) == 7
    
    def test_latest_trades_empty(self, trade_repository, btc_usd):
        assert trade_repository.latest_trades(btc_usd) == []
    
    def test_find_trades_since_and_limit(self, trade_repository, btc_usd):
        trade_repository.save([stored_trade(btc_usd, t, str(t)) for t in (10, 20, 30, 40, 50)])
        
        assert [t.time_ms for t in trade_repository.find_trades(btc_usd, since_ms=30)] == [30, 40, 50]
        assert [t.time_ms for t in trade_repository.find_trades(btc_usd, limit=4)] == [10, 20, 30, 40]
        assert trade_repository.find_trades(btc_usd, limit=0) == []
    
    def test_count(self, trade_repository, btc_usd):
        assert trade_repository.count(btc_usd) == 0
        assert trade_repository.save([stored_trade(btc_usd, 1, "1"), stored_trade(btc_usd, 2, "2")]) == 2
        assert trade_repository.count(btc_usd) == 2
    
    def test_save_empty(self, trade_repository):
        assert trade_repository.save([]) == 0
    
    def test_save_failure_writes_nothing(self, trade_repository, btc_usd):
        trade_repository.save([stored_trade(btc_usd, 1, "1")])
        
        with pytest.raises(PersistenceError):
            trade_repository.save([stored_trade(btc_usd, 2, "2"), stored_trade(btc_usd, 3, "1")])
        
        assert trade_repository.count(btc_usd) == 1
    
    def test_batch_size_passed_to_store(self, btc_usd):
        store = MagicMock()
        TradeRepository(store, batch_size=7).latest_trades(btc_usd)
        
        assert store.query_each.call_args.kwargs["batch_size"] == 7
