"""
DuckDB-backed persistence store.

Every call opens its own connection and closes it before returning, whether
the call succeeds or fails, so connections are never shared between tasks.

Primitives:
    insert(*entities)           - all-or-nothing transactional write
    query_one(type, sql, ...)   - exactly one row, NoResultError otherwise
    query_zero_one(...)         - one row or None
    query_list(...)             - all rows
    query_each(type, handler, sql, ..., batch_size=20)
                                - LIMIT/OFFSET pagination, handler(row) -> continue?
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Sequence, Type, TypeVar, Union

import duckdb

from trade_ingest.schema.entities import EntityBase, Listing, Trade
from trade_ingest.utils.exceptions import NoResultError, PersistenceError
from trade_ingest.utils.logging_config import get_logger

logger = get_logger("store")

E = TypeVar("E", bound=EntityBase)

DEFAULT_BATCH_SIZE = 20


# =============================================================================
# SCHEMA DEFINITIONS
# =============================================================================

LISTINGS_DDL = """
    CREATE TABLE IF NOT EXISTS listings (
        venue VARCHAR NOT NULL,
        base VARCHAR NOT NULL,
        quote VARCHAR NOT NULL,
        PRIMARY KEY (venue, base, quote)
    )
"""

TRADES_DDL = """
    CREATE TABLE IF NOT EXISTS trades (
        venue VARCHAR NOT NULL,
        base VARCHAR NOT NULL,
        quote VARCHAR NOT NULL,
        time_ms BIGINT NOT NULL,       -- Execution time, Unix ms
        remote_key VARCHAR NOT NULL,   -- Venue-assigned trade id
        price DECIMAL(38, 12) NOT NULL,
        amount DECIMAL(38, 12) NOT NULL,
        PRIMARY KEY (venue, base, quote, remote_key)
    )
"""

TRADES_INDEX_DDL = """
    CREATE INDEX IF NOT EXISTS idx_trades_listing_time
    ON trades (venue, base, quote, time_ms)
"""

TABLES = (Trade.table_name, Listing.table_name)


class PersistenceStore:
    """
    Connection-per-call access to a DuckDB database file.

    Usage:
        store = PersistenceStore("data/trades.duckdb")
        store.init_schema()
        store.insert(listing)
        row = store.query_zero_one(Listing, "SELECT ... WHERE base = ?", ["BTC"])
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Args:
            db_path: Path to the DuckDB file. Must be a file; an in-memory
                database would not survive between per-call connections.
        """
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def connection(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Open a connection scoped to the with-block."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = duckdb.connect(str(self._db_path))
        except duckdb.Error as e:
            raise PersistenceError(f"Could not open database {self._db_path}: {e}")
        try:
            yield conn
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def init_schema(self) -> None:
        """Create tables if they don't exist."""
        with self.connection() as conn:
            try:
                conn.execute(LISTINGS_DDL)
                conn.execute(TRADES_DDL)
                conn.execute(TRADES_INDEX_DDL)
            except duckdb.Error as e:
                raise PersistenceError(f"Could not initialize schema: {e}")

    def reset_database(self, seed: Optional[Sequence[EntityBase]] = None) -> int:
        """
        Drop and recreate all tables, then insert the seed entities.

        Args:
            seed: Reference entities to persist (e.g. a SeedRegistry)

        Returns:
            Number of seed entities inserted
        """
        with self.connection() as conn:
            try:
                for table in TABLES:
                    conn.execute(f"DROP TABLE IF EXISTS {table}")
            except duckdb.Error as e:
                raise PersistenceError(f"Could not reset database: {e}")

        self.init_schema()

        entities = list(seed or [])
        if entities:
            self.insert(*entities)
        logger.info(f"Database reset at {self._db_path} with {len(entities)} seed rows")
        return len(entities)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert(self, *entities: EntityBase) -> None:
        """
        Insert entities in a single transaction. Nothing is written if any
        row fails.
        """
        if not entities:
            return

        grouped = {}
        for entity in entities:
            grouped.setdefault(type(entity), []).append(entity.to_row())

        with self.connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")
                for entity_type, rows in grouped.items():
                    placeholders = ", ".join("?" for _ in entity_type.columns)
                    conn.executemany(
                        f"INSERT INTO {entity_type.table_name} "
                        f"({', '.join(entity_type.columns)}) VALUES ({placeholders})",
                        rows
                    )
                conn.execute("COMMIT")
            except duckdb.Error as e:
                logger.error(f"Insert of {len(entities)} entities failed, rolling back: {e}")
                conn.execute("ROLLBACK")
                raise PersistenceError(f"Insert failed: {e}")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def query_list(self, result_type: Type[E], query: str, params: Optional[Sequence[Any]] = None) -> List[E]:
        """Return all rows of a query as entities."""
        with self.connection() as conn:
            rows = self._fetch(conn, query, params)
        return [result_type.from_row(r) for r in rows]

    def query_one(self, result_type: Type[E], query: str, params: Optional[Sequence[Any]] = None) -> E:
        """
        Return a single entity.

        Raises:
            NoResultError: If the query matched no rows
            PersistenceError: If it matched more than one
        """
        with self.connection() as conn:
            rows = self._fetch(conn, query, params, limit=2)
        if not rows:
            raise NoResultError(f"No {result_type.__name__} found", query=query)
        if len(rows) > 1:
            raise PersistenceError(f"Expected one {result_type.__name__}, got several", query=query)
        return result_type.from_row(rows[0])

    def query_zero_one(
        self,
        result_type: Type[E],
        query: str,
        params: Optional[Sequence[Any]] = None
    ) -> Optional[E]:
        """Return a single entity or None if not found."""
        try:
            return self.query_one(result_type, query, params)
        except NoResultError:
            return None

    def query_each(
        self,
        result_type: Type[E],
        handler: Callable[[E], bool],
        query: str,
        params: Optional[Sequence[Any]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Page through a query in fixed-size batches, calling handler per row.

        Iteration stops when the handler returns a falsy value or a batch
        comes back empty. The query should carry an ORDER BY so pages are
        stable.

        Args:
            result_type: Entity type to build from each row
            handler: Called with each entity; return True to continue
            query: SQL without LIMIT/OFFSET
            params: Positional parameters
            batch_size: Rows per page

        Returns:
            Number of rows handed to the handler
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        handled = 0
        with self.connection() as conn:
            start = 0
            while True:
                rows = self._fetch(conn, query, params, limit=batch_size, offset=start)
                if not rows:
                    return handled
                for row in rows:
                    handled += 1
                    if not handler(result_type.from_row(row)):
                        return handled
                start += batch_size

    def scalar(self, query: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Run an ad hoc query and return the first column of the first row."""
        with self.connection() as conn:
            rows = self._fetch(conn, query, params, limit=1)
        return rows[0][0] if rows else None

    @staticmethod
    def _fetch(
        conn: duckdb.DuckDBPyConnection,
        query: str,
        params: Optional[Sequence[Any]],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[tuple]:
        sql = query
        args = list(params or [])
        if limit is not None:
            sql = f"{query} LIMIT ? OFFSET ?"
            args.extend([limit, offset])
        try:
            return conn.execute(sql, args).fetchall()
        except duckdb.Error as e:
            raise PersistenceError(f"Query failed: {e}", query=query)
