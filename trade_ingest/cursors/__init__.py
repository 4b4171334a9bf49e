"""
Cursor recovery for the trade ingester.
"""

from trade_ingest.cursors.recovery import (
    TradeCursor,
    BEGINNING_OF_TIME,
    cursor_from_trades,
    parse_remote_id,
    recover_cursor,
)

__all__ = [
    "TradeCursor",
    "BEGINNING_OF_TIME",
    "cursor_from_trades",
    "parse_remote_id",
    "recover_cursor",
]
