"""
Fetch task - polls one listing for new trades.

Lifecycle:
    __init__   recover the resume cursor from stored trades (errors propagate)
    run()      fetch since the cursor, forward trades with a higher id,
               advance the cursor per forwarded trade, then resubmit to the
               rate limiter whether the cycle succeeded or not
"""

import threading
from typing import Optional

from trade_ingest.cursors.recovery import TradeCursor, parse_remote_id, recover_cursor
from trade_ingest.events.bus import Publisher
from trade_ingest.persistence.repository import TradeRepository
from trade_ingest.schema.entities import Listing, MarketDataError, Trade, VenueTrade
from trade_ingest.utils.exceptions import VenueError
from trade_ingest.utils.logging_config import get_logger
from trade_ingest.workers.rate_limiter import RateLimiter
from trade_ingest.workers.venue_client import VenueClient

logger = get_logger("fetch_task")


class FetchTradesTask:
    """
    Self-requeuing poller for a single listing.

    The cursor is owned by this task alone. Cycles never overlap: the task is
    resubmitted only after a cycle ends, and a duplicate admission while a
    cycle is running is dropped.
    """

    def __init__(
        self,
        listing: Listing,
        venue: VenueClient,
        publisher: Publisher,
        scheduler: RateLimiter,
        trades: Optional[TradeRepository] = None,
        cursor: Optional[TradeCursor] = None,
    ):
        """
        Initialize the task and recover its cursor.

        Args:
            listing: Listing to poll
            venue: Venue client used to fetch trades
            publisher: Receives Trade and MarketDataError events
            scheduler: Rate limiter the task resubmits itself to
            trades: Trade repository to recover the cursor from
            cursor: Explicit starting cursor (skips recovery)

        Raises:
            PersistenceError: If the cursor cannot be recovered
        """
        if cursor is None and trades is None:
            raise ValueError("Either a trade repository or a cursor is required")

        self.listing = listing
        self._venue = venue
        self._publisher = publisher
        self._scheduler = scheduler
        self._cursor = cursor if cursor is not None else recover_cursor(trades, listing)
        self._running = threading.Lock()

        self._cycles = 0
        self._forwarded = 0
        self._failures = 0
        self._consecutive_failures = 0
        self._skipped = 0

    @property
    def cursor(self) -> TradeCursor:
        """Snapshot of the current cursor."""
        return self._cursor.copy()

    def __call__(self) -> None:
        self.run()

    def __repr__(self) -> str:
        return f"FetchTradesTask({self.listing.venue}:{self.listing})"

    def run(self) -> None:
        """Execute one fetch cycle and requeue."""
        if not self._running.acquire(blocking=False):
            logger.debug(f"{self!r} already running, dropping duplicate admission")
            return

        try:
            self._cycle()
        finally:
            self._running.release()
            self._requeue()

    def _cycle(self) -> None:
        self._cycles += 1
        try:
            received = self._venue.fetch_trades(self.listing, self._cursor.last_trade_time)
        except VenueError as e:
            logger.warning(f"Could not get {self.listing.venue} trades for {self.listing}: {e}")
            self._fail(e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error fetching trades for {self.listing}")
            self._fail(e)
            return

        try:
            forwarded = 0
            for venue_trade in received:
                if self._forward(venue_trade):
                    forwarded += 1
        except Exception as e:
            logger.exception(f"Error forwarding trades for {self.listing}")
            self._fail(e)
            return

        self._consecutive_failures = 0
        if forwarded:
            logger.debug(f"Forwarded {forwarded} new trades for {self.listing}")

    def _forward(self, venue_trade: VenueTrade) -> bool:
        remote_id = parse_remote_id(venue_trade.remote_id)
        if remote_id is None:
            self._skipped += 1
            logger.warning(
                f"Skipping {self.listing} trade with non-numeric id {venue_trade.remote_id!r}"
            )
            return False

        if not self._cursor.accepts(remote_id):
            return False

        trade = Trade(
            listing=self.listing,
            time_ms=venue_trade.timestamp_ms,
            remote_key=venue_trade.remote_id,
            price=venue_trade.price,
            amount=venue_trade.quantity,
        )
        self._publisher.publish(trade)
        self._cursor.advance(venue_trade.timestamp_ms, remote_id)
        self._forwarded += 1
        return True

    def _fail(self, cause: BaseException) -> None:
        self._failures += 1
        self._consecutive_failures += 1
        self._publisher.publish(MarketDataError(listing=self.listing, cause=cause))

    def _requeue(self) -> None:
        if not self._scheduler.submit(self):
            logger.info(f"Scheduler stopped, {self!r} will not run again")

    def get_stats(self) -> dict:
        return {
            "listing": str(self.listing),
            "cycles": self._cycles,
            "forwarded": self._forwarded,
            "skipped": self._skipped,
            "failures": self._failures,
            "consecutive_failures": self._consecutive_failures,
            "last_trade_time": self._cursor.last_trade_time,
            "last_trade_id": self._cursor.last_trade_id,
        }
