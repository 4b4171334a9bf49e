"""
IngestionCoordinator - bootstraps listings and runs one fetch task per listing.

Startup:
    1. Make sure every configured listing exists in the store
    2. Enumerate the venue's listings and create a FetchTradesTask for each,
       recovering its cursor (a listing whose recovery fails is skipped)
    3. Submit every task to the shared RateLimiter; from then on each task
       keeps itself scheduled

Shutdown:
    stop() stops the limiter (no more admissions, self-requeues rejected),
    flushes the trade saver and closes the venue client.
"""

import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from trade_ingest.config import Config, get_config
from trade_ingest.events.bus import EventBus
from trade_ingest.events.trade_saver import TradeSaver
from trade_ingest.persistence.repository import ListingRepository, TradeRepository
from trade_ingest.persistence.store import PersistenceStore
from trade_ingest.schema.entities import InitMode, Listing, MarketDataError
from trade_ingest.utils.exceptions import PersistenceError
from trade_ingest.utils.logging_config import get_logger
from trade_ingest.workers.fetch_task import FetchTradesTask
from trade_ingest.workers.rate_limiter import RateLimiter
from trade_ingest.workers.venue_client import VenueClient, create_venue_client

logger = get_logger("coordinator")


class IngestionCoordinator:
    """
    Wires store, venue client, event bus, trade saver and rate limiter
    together and owns their lifecycle.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[PersistenceStore] = None,
        venue_client: Optional[VenueClient] = None,
        bus: Optional[EventBus] = None,
        save_trades: bool = True,
    ):
        """
        Initialize the coordinator with configuration.

        Args:
            config: Configuration object. If None, uses global config.
            store: Persistence store. If None, opens config.database.path.
            venue_client: Venue client. If None, one is created for
                config.venue.name.
            bus: Event bus. If None, a new one is created.
            save_trades: Persist published trades through a TradeSaver

        Raises:
            ConfigError: If no venue client is given and config.venue.name
                names an unsupported venue
        """
        self._config = config or get_config()
        self._store = store or PersistenceStore(Path(self._config.database.path))
        self._owns_venue = venue_client is None
        self._venue = venue_client or create_venue_client(self._config)
        self.bus = bus or EventBus()

        self._listings = ListingRepository(self._store)
        self._trades = TradeRepository(self._store, batch_size=self._config.database.query_batch_size)

        self._limiter = RateLimiter(config=self._config, name="FetchLimiter")
        self._saver: Optional[TradeSaver] = None
        if save_trades:
            self._saver = TradeSaver(
                self.bus,
                self._trades,
                threshold=self._config.queues.trade_threshold,
                check_interval=self._config.queues.flush_interval,
            )

        self._tasks: List[FetchTradesTask] = []
        self._failed_listings: Dict[str, str] = {}
        self._errors_seen = 0
        self._errors_lock = threading.Lock()
        self.bus.subscribe(MarketDataError, self._on_error)

    @property
    def tasks(self) -> List[FetchTradesTask]:
        return list(self._tasks)

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def failed_listings(self) -> Dict[str, str]:
        """Listings whose setup was aborted, with the reason."""
        return dict(self._failed_listings)

    def bootstrap_listings(self, mode: InitMode = InitMode.NORMAL) -> List[Listing]:
        """
        Look up or create every configured listing.

        Args:
            mode: InitMode.SEEDING builds the listings without touching the
                store, for inclusion in a seed registry

        Returns:
            The configured listings
        """
        venue = self._config.venue.name
        return [
            self._listings.find_or_create(venue, base, quote, mode=mode)
            for base, quote in self._config.venue.listings
        ]

    def create_tasks(self) -> List[FetchTradesTask]:
        """
        Create one fetch task per listing on the configured venue.

        A listing whose cursor cannot be recovered is logged and skipped;
        the other listings still start.
        """
        self._store.init_schema()
        self.bootstrap_listings()

        tasks = []
        for listing in self._listings.find_by_venue(self._config.venue.name):
            try:
                task = FetchTradesTask(
                    listing=listing,
                    venue=self._venue,
                    publisher=self.bus,
                    scheduler=self._limiter,
                    trades=self._trades,
                )
            except PersistenceError as e:
                logger.error(f"Could not recover cursor for {listing}, not polling it: {e}")
                self._failed_listings[str(listing)] = str(e)
                continue
            tasks.append(task)

        self._tasks = tasks
        logger.info(f"Created {len(tasks)} fetch tasks for {self._config.venue.name}")
        return tasks

    def start(self) -> None:
        """Create tasks (if not done yet) and start polling."""
        if not self._tasks:
            self.create_tasks()

        if self._saver is not None:
            self._saver.start()
        self._limiter.start()
        for task in self._tasks:
            self._limiter.submit(task)

    def run(self, duration: Optional[float] = None, stop_event: Optional[threading.Event] = None) -> dict:
        """
        Start polling and block until the duration elapses or stop_event is set.

        Args:
            duration: Seconds to run; None runs until stop_event is set
            stop_event: External stop signal

        Returns:
            Dict with statistics from the run
        """
        stop_event = stop_event or threading.Event()
        start_time = time.time()
        self.start()
        try:
            stop_event.wait(duration)
        finally:
            self.stop()

        stats = self.get_stats()
        stats["elapsed_seconds"] = time.time() - start_time
        logger.info(f"Ingestion stopped after {stats['elapsed_seconds']:.2f}s")
        return stats

    def stop(self) -> None:
        """Stop polling, flush saved trades and release the venue client."""
        self._limiter.stop(wait=True)
        if self._saver is not None:
            self._saver.stop(flush=True)
        if self._owns_venue and hasattr(self._venue, "close"):
            self._venue.close()

    def get_stats(self) -> dict:
        stats = {
            "listings": len(self._tasks),
            "failed_listings": len(self._failed_listings),
            "errors": self._errors_seen,
            "limiter": self._limiter.get_stats(),
            "tasks": [task.get_stats() for task in self._tasks],
        }
        if self._saver is not None:
            stats["trades_saved"] = self._saver.items_written
        return stats

    def _on_error(self, error: MarketDataError) -> None:
        with self._errors_lock:
            self._errors_seen += 1
