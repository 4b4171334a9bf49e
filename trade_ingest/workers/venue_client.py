"""
Venue client for the Bitfinex public REST API.
Fetches trade history for a listing since a given time.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Protocol

import httpx

from trade_ingest.config import Config, get_config
from trade_ingest.schema.entities import Listing, VenueTrade
from trade_ingest.utils.exceptions import (
    ConfigError,
    MalformedResponseError,
    NetworkTimeoutError,
    RateLimitExceededError,
    VenueAPIError,
    VenueUnavailableError,
)
from trade_ingest.utils.logging_config import get_logger
from trade_ingest.utils.retry import retry_from_config

logger = get_logger("venue_client")


class VenueClient(Protocol):
    """Market-data source consumed by fetch tasks."""

    def fetch_trades(self, listing: Listing, since_ms: int) -> List[VenueTrade]:
        """
        All trades for a listing with time >= since_ms, oldest first.

        Raises:
            VenueError: On network or venue-side failure
        """
        ...


class BitfinexClient:
    """
    Fetches trades from the Bitfinex v2 public API.

    Trade rows come back as [ID, MTS, AMOUNT, PRICE]; a negative AMOUNT marks
    a sell, so the traded quantity is its absolute value.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        config: Optional[Config] = None,
    ):
        """
        Initialize the client.

        Args:
            timeout: Request timeout in seconds
            config: Config object
        """
        self._config = config or get_config()

        if timeout is None:
            timeout = self._config.api.timeout

        self._timeout = timeout
        self._base_url = self._config.api.base_url.rstrip("/")
        self._page_limit = self._config.api.page_limit

        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=self._config.api.connect_timeout),
            headers={
                "User-Agent": "TradeIngest/1.0",
                "Accept": "application/json",
            }
        )

        self._get = retry_from_config(self._config.retry)(self._request)

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    @staticmethod
    def symbol_for(listing: Listing) -> str:
        """Bitfinex trading pair symbol, e.g. tBTCUSD."""
        return f"t{listing.base}{listing.quote}"

    def fetch_trades(self, listing: Listing, since_ms: int) -> List[VenueTrade]:
        """
        Fetch trades for a listing with time >= since_ms, oldest first.

        Args:
            listing: Listing to fetch
            since_ms: Lower time bound (Unix ms, inclusive)

        Returns:
            List of VenueTrade in the order the venue returned them
        """
        endpoint = f"/trades/{self.symbol_for(listing)}/hist"
        params = {
            "start": since_ms,
            "limit": self._page_limit,
            "sort": 1,
        }
        payload = self._get(endpoint, params)
        trades = self._parse_trades(payload, endpoint)
        logger.debug(f"Fetched {len(trades)} trades for {listing} since {since_ms}")
        return trades

    def _request(self, endpoint: str, params: dict) -> Any:
        try:
            response = self.client.get(f"{self._base_url}{endpoint}", params=params)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                logger.warning(f"Rate limit exceeded on {endpoint}")
                raise RateLimitExceededError(endpoint=endpoint, response_body=e.response.text)
            logger.error(f"HTTP error on {endpoint}: {e.response.status_code}")
            raise VenueAPIError(
                f"Failed to fetch {endpoint}: {e.response.status_code}",
                status_code=e.response.status_code,
                endpoint=endpoint,
                response_body=e.response.text,
            )

        except httpx.TimeoutException as e:
            logger.error(f"Timeout on {endpoint}: {e}")
            raise NetworkTimeoutError(endpoint=endpoint, timeout=self._timeout)

        except httpx.TransportError as e:
            logger.error(f"Transport error on {endpoint}: {e}")
            raise VenueUnavailableError(f"Venue unreachable: {e}", endpoint=endpoint)

        except ValueError as e:
            raise MalformedResponseError(f"Response is not JSON: {e}", endpoint=endpoint)

    @staticmethod
    def _parse_trades(payload: Any, endpoint: str) -> List[VenueTrade]:
        if not isinstance(payload, list):
            raise MalformedResponseError(
                f"Expected a list of trades, got {type(payload).__name__}",
                endpoint=endpoint,
                payload=payload,
            )

        trades = []
        for row in payload:
            if not isinstance(row, (list, tuple)) or len(row) < 4:
                raise MalformedResponseError(f"Bad trade row: {row!r}", endpoint=endpoint, payload=payload)
            trade_id, mts, amount, price = row[:4]
            try:
                trades.append(VenueTrade(
                    remote_id=str(trade_id),
                    timestamp_ms=int(mts),
                    price=Decimal(str(price)),
                    quantity=abs(Decimal(str(amount))),
                ))
            except (TypeError, ValueError, InvalidOperation):
                raise MalformedResponseError(f"Bad trade row: {row!r}", endpoint=endpoint, payload=payload)
        return trades


# Venue name (as in config.venue.name) -> client class
VENUE_CLIENTS = {
    "BITFINEX": BitfinexClient,
}


def create_venue_client(config: Optional[Config] = None) -> VenueClient:
    """
    Build the client for the configured venue.

    Raises:
        ConfigError: If no client is registered for config.venue.name
    """
    config = config or get_config()
    name = config.venue.name.upper()
    client_class = VENUE_CLIENTS.get(name)
    if client_class is None:
        raise ConfigError(
            f"Unknown venue {config.venue.name!r}; supported venues: "
            f"{', '.join(sorted(VENUE_CLIENTS))}"
        )
    logger.info(f"Using {client_class.__name__} for venue {name}")
    return client_class(config=config)
