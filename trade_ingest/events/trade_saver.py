"""
Trade saver - persists published trades in batches.

Subscribes to Trade events on the bus, buffers them in a SwappableQueue and
runs a daemon thread that writes a batch whenever the buffer reaches its
threshold or the check interval elapses. Saved trades are what cursor
recovery reads on the next start.
"""

import threading
from typing import List, Optional

from trade_ingest.events.bus import EventBus
from trade_ingest.persistence.repository import TradeRepository
from trade_ingest.persistence.swappable_queue import SwappableQueue
from trade_ingest.schema.entities import Trade
from trade_ingest.utils.exceptions import PersistenceError
from trade_ingest.utils.logging_config import get_logger

logger = get_logger("trade_saver")


class TradeSaver:
    """
    Daemon thread that drains published trades into the trade repository.
    """

    def __init__(
        self,
        bus: EventBus,
        trades: TradeRepository,
        threshold: int = 500,
        check_interval: float = 5.0,
    ):
        """
        Args:
            bus: Event bus to subscribe to
            trades: Repository the batches are written to
            threshold: Buffered trade count that triggers an early write
            check_interval: Maximum seconds between writes of a partial batch
        """
        self._bus = bus
        self._trades = trades
        self._queue = SwappableQueue(threshold=threshold)
        self._check_interval = check_interval

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._write_lock = threading.Lock()
        self._items_written = 0
        self._batches_written = 0
        self._failed_batches = 0

    @property
    def items_written(self) -> int:
        return self._items_written

    @property
    def failed_batches(self) -> int:
        return self._failed_batches

    def pending(self) -> int:
        return self._queue.size()

    def on_trade(self, trade: Trade) -> None:
        """Bus handler."""
        self._queue.put(trade)

    def start(self) -> None:
        """Subscribe to the bus and start the writer thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._bus.subscribe(Trade, self.on_trade)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="TradeSaver")
        self._thread.start()
        logger.info("Started trade saver")

    def stop(self, flush: bool = True) -> None:
        """
        Stop the writer thread.

        Args:
            flush: If True, write any remaining trades before returning
        """
        self._bus.unsubscribe(Trade, self.on_trade)
        self._stop_event.set()
        self._queue.shutdown()

        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

        if flush:
            self.flush()

        logger.info(
            f"Stopped trade saver. Total: {self._items_written} trades "
            f"in {self._batches_written} batches, {self._failed_batches} failed"
        )

    def flush(self) -> int:
        """Write whatever is buffered now. Returns the number written."""
        items = self._queue.swap()
        if not items:
            return 0
        return self._write_batch(items)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self._queue.wait_for_threshold(timeout=self._check_interval)
            if self._stop_event.is_set():
                break
            self.flush()

    def _write_batch(self, items: List[Trade]) -> int:
        with self._write_lock:
            try:
                written = self._trades.save(items)
            except PersistenceError as e:
                self._failed_batches += 1
                logger.error(f"Dropping batch of {len(items)} trades: {e}")
                return 0
            self._items_written += written
            self._batches_written += 1
            logger.debug(f"Saved {written} trades")
            return written
