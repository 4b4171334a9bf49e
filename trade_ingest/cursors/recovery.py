"""
Resume cursors for per-listing trade polling.

A cursor is never stored on its own: it is re-derived from the trade history
every time a fetch task is created.

Cursor fields:
    - last_trade_time: highest trade time seen (Unix ms), bounds the venue query
    - last_trade_id: highest remote trade id seen, the de-dup key
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from trade_ingest.persistence.repository import TradeRepository
from trade_ingest.schema.entities import Listing, Trade
from trade_ingest.utils.logging_config import get_logger

logger = get_logger("cursors")

BEGINNING_OF_TIME = 0


@dataclass
class TradeCursor:
    """Resume point for one listing."""
    last_trade_time: int = BEGINNING_OF_TIME
    last_trade_id: int = BEGINNING_OF_TIME

    def is_empty(self) -> bool:
        return self.last_trade_time == BEGINNING_OF_TIME and self.last_trade_id == BEGINNING_OF_TIME

    def accepts(self, remote_id: int) -> bool:
        """True if a trade with this id has not been forwarded yet."""
        return remote_id > self.last_trade_id

    def advance(self, time_ms: int, remote_id: int) -> None:
        """
        Move to a forwarded trade.

        The time is taken as-is even if it is earlier than the current one;
        only the id is guaranteed to increase.
        """
        self.last_trade_time = time_ms
        self.last_trade_id = remote_id

    def copy(self) -> "TradeCursor":
        return TradeCursor(self.last_trade_time, self.last_trade_id)


def parse_remote_id(remote_key: object) -> Optional[int]:
    """Parse a venue trade id as an integer, or None if it is not one."""
    if isinstance(remote_key, bool):
        return None
    if isinstance(remote_key, int):
        return remote_key
    try:
        return int(str(remote_key).strip())
    except (TypeError, ValueError):
        return None


def cursor_from_trades(trades: Iterable[Trade]) -> TradeCursor:
    """
    Build a cursor from trade rows, taking the maximum time and the maximum
    id independently of each other.
    """
    cursor = TradeCursor()
    for trade in trades:
        if trade.time_ms > cursor.last_trade_time:
            cursor.last_trade_time = trade.time_ms
        remote_id = parse_remote_id(trade.remote_key)
        if remote_id is None:
            logger.warning(f"Ignoring stored trade with non-numeric id {trade.remote_key!r}")
            continue
        if remote_id > cursor.last_trade_id:
            cursor.last_trade_id = remote_id
    return cursor


def recover_cursor(trades: TradeRepository, listing: Listing) -> TradeCursor:
    """
    Derive the resume cursor for a listing from its most recent stored trades.

    Raises:
        PersistenceError: If the history query fails. Callers must not start
            polling the listing without a resume point.
    """
    cursor = cursor_from_trades(trades.latest_trades(listing))
    if cursor.is_empty():
        logger.info(f"No trade history for {listing}, starting from the beginning")
    else:
        logger.info(
            f"Recovered cursor for {listing}: "
            f"time={cursor.last_trade_time} id={cursor.last_trade_id}"
        )
    return cursor
