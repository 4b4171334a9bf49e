"""
Unit tests for BitfinexClient.

Tests request building, response parsing and HTTP error mapping.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from trade_ingest.workers import VENUE_CLIENTS, BitfinexClient, create_venue_client
from trade_ingest.schema import Listing, VenueTrade
from trade_ingest.utils.exceptions import (
    ConfigError,
    MalformedResponseError,
    NetworkTimeoutError,
    RateLimitExceededError,
    VenueAPIError,
    VenueError,
    VenueUnavailableError,
)

URL = "https://api-pub.bitfinex.com/v2/trades/tBTCUSD/hist"


def make_response(status_code=200, json=None, text=None):
    """Build a real httpx response bound to a request."""
    request = httpx.Request("GET", URL)
    if json is not None:
        return httpx.Response(status_code, json=json, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


@pytest.fixture
def client(test_config):
    """Client whose HTTP transport is a mock."""
    venue = BitfinexClient(config=test_config)
    venue.client.close()
    venue.client = MagicMock()
    yield venue
    venue.close()


class TestBitfinexClientInit:
    """Test client construction."""
    
    def test_symbol_for(self, btc_usd):
        assert BitfinexClient.symbol_for(btc_usd) == "tBTCUSD"
        assert BitfinexClient.symbol_for(Listing("BITFINEX", "LTC", "BTC")) == "tLTCBTC"
    
    def test_context_manager_closes_client(self, test_config):
        with BitfinexClient(config=test_config) as venue:
            assert not venue.client.is_closed
        assert venue.client.is_closed
    
    def test_custom_timeout(self, test_config):
        with BitfinexClient(timeout=1.5, config=test_config) as venue:
            assert venue.client.timeout.read == 1.5
            assert venue.client.timeout.connect == test_config.api.connect_timeout


class TestBitfinexClientFetchTrades:
    """Test fetch_trades parsing."""
    
    def test_request_parameters(self, client, btc_usd, test_config):
        client.client.get.return_value = make_response(json=[])
        
        client.fetch_trades(btc_usd, 1700000000000)
        
        args, kwargs = client.client.get.call_args
        assert args[0] == URL
        assert kwargs["params"] == {
            "start": 1700000000000,
            "limit": test_config.api.page_limit,
            "sort": 1,
        }
    
    def test_parses_rows(self, client, btc_usd):
        client.client.get.return_value = make_response(json=[
            [401597393, 1574694475039, 0.005, 7244.9],
            [401597394, 1574694478808, -0.041, 7245.3],
        ])
        
        trades = client.fetch_trades(btc_usd, 0)
        
        assert trades == [
            VenueTrade("401597393", 1574694475039, Decimal("7244.9"), Decimal("0.005")),
            VenueTrade("401597394", 1574694478808, Decimal("7245.3"), Decimal("0.041")),
        ]
    
    def test_empty_response(self, client, btc_usd):
        client.client.get.return_value = make_response(json=[])
        assert client.fetch_trades(btc_usd, 0) == []
    
    @pytest.mark.parametrize("payload", [
        {"error": "nope"},
        [[1, 2]],
        [[1, "not-a-time", 0.1, 100.0]],
        [["a", 1, None, 100.0]],
    ])
    def test_malformed_payload(self, client, btc_usd, payload):
        client.client.get.return_value = make_response(json=payload)
        
        with pytest.raises(MalformedResponseError):
            client.fetch_trades(btc_usd, 0)
    
    def test_non_json_body(self, client, btc_usd):
        client.client.get.return_value = make_response(text="<html>maintenance</html>")
        
        with pytest.raises(MalformedResponseError):
            client.fetch_trades(btc_usd, 0)


class TestBitfinexClientErrors:
    """Test HTTP and transport error mapping."""
    
    def test_rate_limit(self, client, btc_usd):
        client.client.get.return_value = make_response(429, text="ratelimit: error")
        
        with pytest.raises(RateLimitExceededError) as excinfo:
            client.fetch_trades(btc_usd, 0)
        assert excinfo.value.status_code == 429
    
    def test_server_error(self, client, btc_usd):
        client.client.get.return_value = make_response(500, text="boom")
        
        with pytest.raises(VenueAPIError) as excinfo:
            client.fetch_trades(btc_usd, 0)
        assert excinfo.value.status_code == 500
        assert excinfo.value.response_body == "boom"
        assert not isinstance(excinfo.value, RateLimitExceededError)
    
    def test_timeout(self, client, btc_usd):
        client.client.get.side_effect = httpx.ReadTimeout("timed out")
        
        with pytest.raises(NetworkTimeoutError):
            client.fetch_trades(btc_usd, 0)
    
    def test_connection_error(self, client, btc_usd):
        client.client.get.side_effect = httpx.ConnectError("refused")
        
        with pytest.raises(VenueUnavailableError):
            client.fetch_trades(btc_usd, 0)
    
    def test_all_errors_are_venue_errors(self):
        for error_type in (RateLimitExceededError, VenueAPIError, NetworkTimeoutError,
                           VenueUnavailableError, MalformedResponseError):
            assert issubclass(error_type, VenueError)
    
    def test_rate_limit_retried(self, test_config, btc_usd):
        """Test a 429 is retried when retries are configured."""
        test_config.retry.max_attempts = 2
        with BitfinexClient(config=test_config) as venue:
            venue.client = MagicMock()
            venue.client.get.side_effect = [
                make_response(429, text="ratelimit: error"),
                make_response(json=[[5, 1000, 1.0, 10.0]]),
            ]
            
            trades = venue.fetch_trades(btc_usd, 0)
        
        assert [t.remote_id for t in trades] == ["5"]
        assert venue.client.get.call_count == 2
    
    def test_server_error_not_retried(self, test_config, btc_usd):
        test_config.retry.max_attempts = 3
        with BitfinexClient(config=test_config) as venue:
            venue.client = MagicMock()
            venue.client.get.return_value = make_response(503, text="down")
            
            with pytest.raises(VenueAPIError):
                venue.fetch_trades(btc_usd, 0)
        
        assert venue.client.get.call_count == 1


class TestCreateVenueClient:
    """Test client lookup by venue name."""
    
    def test_bitfinex(self, test_config):
        test_config.venue.name = "bitfinex"
        venue = create_venue_client(test_config)
        try:
            assert isinstance(venue, BitfinexClient)
        finally:
            venue.close()
    
    def test_unknown_venue(self, test_config):
        test_config.venue.name = "NOWHERE"
        
        with pytest.raises(ConfigError):
            create_venue_client(test_config)
    
    def test_registry_lists_bitfinex(self):
        assert VENUE_CLIENTS["BITFINEX"] is BitfinexClient
