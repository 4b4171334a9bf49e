"""
Typed repositories over the persistence store.

Named query methods return entities; callers never build SQL themselves.
"""

from typing import Iterable, List, Optional

from trade_ingest.persistence.store import DEFAULT_BATCH_SIZE, PersistenceStore
from trade_ingest.schema.entities import InitMode, Listing, Trade
from trade_ingest.utils.exceptions import PersistenceError
from trade_ingest.utils.logging_config import get_logger

logger = get_logger("repository")


class ListingRepository:
    """
    Lookup and creation of listings.

    Usage:
        listings = ListingRepository(store)
        btc_usd = listings.find_or_create("BITFINEX", "BTC", "USD")
        for listing in listings.find_by_venue("BITFINEX"):
            ...
    """

    def __init__(self, store: PersistenceStore):
        self._store = store

    @staticmethod
    def build(venue: str, base: str, quote: str) -> Listing:
        """Build an unsaved listing with normalized symbols."""
        return Listing(venue=venue.upper(), base=base.upper(), quote=quote.upper())

    def find(self, venue: str, base: str, quote: str) -> Optional[Listing]:
        """Get a listing by its venue and pair, or None."""
        listing = self.build(venue, base, quote)
        return self._store.query_zero_one(
            Listing,
            f"SELECT {Listing.select_columns()} FROM listings "
            "WHERE venue = ? AND base = ? AND quote = ?",
            list(listing.to_row())
        )

    def find_by_venue(self, venue: str) -> List[Listing]:
        """All listings on a venue, ordered by pair."""
        return self._store.query_list(
            Listing,
            f"SELECT {Listing.select_columns()} FROM listings "
            "WHERE venue = ? ORDER BY base, quote",
            [venue.upper()]
        )

    def find_or_create(
        self,
        venue: str,
        base: str,
        quote: str,
        mode: InitMode = InitMode.NORMAL,
    ) -> Listing:
        """
        Return the stored listing, creating it if missing.

        Args:
            venue: Venue identifier
            base: Base symbol
            quote: Quote symbol
            mode: InitMode.SEEDING builds the listing without touching the
                database, for use while the database itself is being seeded

        Returns:
            The listing
        """
        if mode is InitMode.SEEDING:
            return self.build(venue, base, quote)

        existing = self.find(venue, base, quote)
        if existing is not None:
            return existing

        listing = self.build(venue, base, quote)
        self._store.insert(listing)
        logger.info(f"Created listing {listing} on {listing.venue}")
        return listing


class TradeRepository:
    """
    Trade history queries and writes.

    Usage:
        trades = TradeRepository(store)
        latest = trades.latest_trades(listing)
        trades.save(new_trades)
    """

    def __init__(self, store: PersistenceStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self._store = store
        self._batch_size = batch_size

    def latest_trades(self, listing: Listing) -> List[Trade]:
        """
        Trades sharing the listing's most recent timestamp.

        Several trades can execute in the same millisecond, so this can
        return more than one row.
        """
        rows: List[Trade] = []

        def collect(trade: Trade) -> bool:
            rows.append(trade)
            return True

        self._store.query_each(
            Trade,
            collect,
            f"SELECT {Trade.select_columns('t')} FROM trades t "
            "WHERE t.venue = ? AND t.base = ? AND t.quote = ? "
            "AND t.time_ms = (SELECT MAX(time_ms) FROM trades "
            "WHERE venue = ? AND base = ? AND quote = ?) "
            "ORDER BY t.remote_key",
            list(listing.to_row()) * 2,
            batch_size=self._batch_size,
        )
        return rows

    def find_trades(self, listing: Listing, since_ms: int = 0, limit: Optional[int] = None) -> List[Trade]:
        """Trades for a listing at or after since_ms, oldest first."""
        query = (
            f"SELECT {Trade.select_columns()} FROM trades "
            "WHERE venue = ? AND base = ? AND quote = ? AND time_ms >= ? "
            "ORDER BY time_ms, remote_key"
        )
        params = list(listing.to_row()) + [since_ms]
        if limit is None:
            return self._store.query_list(Trade, query, params)

        rows: List[Trade] = []

        def collect(trade: Trade) -> bool:
            rows.append(trade)
            return len(rows) < limit

        if limit > 0:
            self._store.query_each(Trade, collect, query, params, batch_size=self._batch_size)
        return rows

    def count(self, listing: Listing) -> int:
        """Number of stored trades for a listing."""
        result = self._store.scalar(
            "SELECT COUNT(*) FROM trades WHERE venue = ? AND base = ? AND quote = ?",
            list(listing.to_row())
        )
        return int(result or 0)

    def save(self, trades: Iterable[Trade]) -> int:
        """
        Persist trades in one transaction.

        Returns:
            Number of trades written

        Raises:
            PersistenceError: If the write failed; nothing was written
        """
        batch = list(trades)
        if not batch:
            return 0
        try:
            self._store.insert(*batch)
        except PersistenceError:
            logger.error(f"Failed to save {len(batch)} trades")
            raise
        return len(batch)
