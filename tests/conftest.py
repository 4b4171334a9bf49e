"""
Shared pytest fixtures for trade ingest tests.

Provides test configurations, a throwaway DuckDB store, a scripted venue
and recording collaborators for unit tests.
"""

import threading
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from trade_ingest.config import (
    ApiConfig,
    Config,
    DatabaseConfig,
    QueuesConfig,
    RateLimitsConfig,
    RetryConfig,
    VenueConfig,
    WorkersConfig,
    set_config,
)
from trade_ingest.persistence import ListingRepository, PersistenceStore, TradeRepository
from trade_ingest.schema import Listing, Trade, VenueTrade


# =============================================================================
# Test Doubles
# =============================================================================

class RecordingPublisher:
    """Publisher that keeps every event it receives."""

    def __init__(self, fail_on: Optional[Callable[[Any], bool]] = None):
        self.events: List[Any] = []
        self._fail_on = fail_on
        self._lock = threading.Lock()

    def publish(self, event: Any) -> None:
        if self._fail_on is not None and self._fail_on(event):
            raise RuntimeError(f"publish failed for {event}")
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: type) -> List[Any]:
        with self._lock:
            return [e for e in self.events if isinstance(e, event_type)]


class RecordingScheduler:
    """Scheduler that records submissions instead of running them."""

    def __init__(self, accept: bool = True):
        self.submitted: List[Any] = []
        self.accept = accept

    def submit(self, task) -> bool:
        if not self.accept:
            return False
        self.submitted.append(task)
        return True

    def run_next(self) -> None:
        """Run the oldest submitted task, as the rate limiter would."""
        self.submitted.pop(0)()


class ScriptedVenue:
    """
    Venue client returning scripted responses in order.

    Each script entry is a list of VenueTrade or an exception to raise.
    Once the script is exhausted every call returns an empty list.
    """

    def __init__(self, script: Optional[List[Union[List[VenueTrade], Exception]]] = None):
        self.script = list(script or [])
        self.calls: List[Dict[str, Any]] = []

    def fetch_trades(self, listing: Listing, since_ms: int) -> List[VenueTrade]:
        self.calls.append({"listing": listing, "since_ms": since_ms})
        if not self.script:
            return []
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return list(step)


def venue_trade(remote_id: Union[int, str], timestamp_ms: int, price: str = "100.0", quantity: str = "0.5") -> VenueTrade:
    return VenueTrade(
        remote_id=str(remote_id),
        timestamp_ms=timestamp_ms,
        price=Decimal(price),
        quantity=Decimal(quantity),
    )


def stored_trade(listing: Listing, time_ms: int, remote_key: str, price: str = "100.0", amount: str = "0.5") -> Trade:
    return Trade(
        listing=listing,
        time_ms=time_ms,
        remote_key=remote_key,
        price=Decimal(price),
        amount=Decimal(amount),
    )


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def test_config(tmp_path) -> Config:
    """Create a test configuration with fast windows and a temp database."""
    return Config(
        rate_limits=RateLimitsConfig(
            queries=5,
            window_seconds=0.1  # Fast for testing
        ),
        workers=WorkersConfig(fetch=2),
        api=ApiConfig(
            base_url="https://api-pub.bitfinex.com/v2",
            timeout=5.0,
            connect_timeout=2.0,
            page_limit=100,
        ),
        database=DatabaseConfig(
            path=str(tmp_path / "trades.duckdb"),
            query_batch_size=3,  # Small for testing pagination
        ),
        venue=VenueConfig(
            name="BITFINEX",
            listings=[("BTC", "USD"), ("LTC", "USD")],
        ),
        queues=QueuesConfig(
            trade_threshold=10,
            flush_interval=0.05,
        ),
        retry=RetryConfig(
            max_attempts=1,
            base_delay=0.0,
        ),
    )


# =============================================================================
# Persistence Fixtures
# =============================================================================

@pytest.fixture
def store(test_config) -> PersistenceStore:
    """Create an initialized store in a temp directory."""
    store = PersistenceStore(test_config.database.path)
    store.init_schema()
    return store


@pytest.fixture
def listing_repository(store) -> ListingRepository:
    return ListingRepository(store)


@pytest.fixture
def trade_repository(store, test_config) -> TradeRepository:
    return TradeRepository(store, batch_size=test_config.database.query_batch_size)


# =============================================================================
# Domain Fixtures
# =============================================================================

@pytest.fixture
def btc_usd() -> Listing:
    return Listing("BITFINEX", "BTC", "USD")


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


# =============================================================================
# Cleanup Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def cleanup_global_state():
    """Clean up global state after each test."""
    yield
    set_config(None)
