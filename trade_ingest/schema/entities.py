"""
Entity definitions for listings, trades and market data events.

Entities describe their own table layout (`table_name`, `columns`) so the
persistence store can insert and materialize them without reflection.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Sequence, Tuple


class InitMode(Enum):
    """How reference entities are resolved during initialization."""
    NORMAL = "normal"      # Look up or create rows in the database
    SEEDING = "seeding"    # Build in memory; the database is being (re)populated


class EntityBase:
    """
    Mixin for dataclasses stored by the persistence store.

    Subclasses set `table_name` and `columns` and implement `to_row()` /
    `from_row()` in column order.
    """
    table_name: ClassVar[str] = ""
    columns: ClassVar[Tuple[str, ...]] = ()

    def to_row(self) -> Tuple[Any, ...]:
        raise NotImplementedError

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "EntityBase":
        raise NotImplementedError

    @classmethod
    def select_columns(cls, alias: str = "") -> str:
        """Comma separated column list, optionally prefixed with a table alias."""
        prefix = f"{alias}." if alias else ""
        return ", ".join(f"{prefix}{col}" for col in cls.columns)


@dataclass(frozen=True)
class Listing(EntityBase):
    """A tradable base/quote pair on a specific venue."""
    venue: str
    base: str
    quote: str

    table_name: ClassVar[str] = "listings"
    columns: ClassVar[Tuple[str, ...]] = ("venue", "base", "quote")

    @property
    def symbol(self) -> str:
        return f"{self.base}.{self.quote}"

    def to_row(self) -> Tuple[Any, ...]:
        return (self.venue, self.base, self.quote)

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Listing":
        return cls(venue=row[0], base=row[1], quote=row[2])

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class Trade(EntityBase):
    """
    A single executed trade on a listing.

    `remote_key` is the venue-assigned identifier kept verbatim as text;
    `time_ms` is the execution time in Unix milliseconds.
    """
    listing: Listing
    time_ms: int
    remote_key: str
    price: Decimal
    amount: Decimal

    table_name: ClassVar[str] = "trades"
    columns: ClassVar[Tuple[str, ...]] = (
        "venue", "base", "quote", "time_ms", "remote_key", "price", "amount",
    )

    @property
    def time(self) -> datetime:
        return datetime.fromtimestamp(self.time_ms / 1000, tz=timezone.utc)

    def to_row(self) -> Tuple[Any, ...]:
        return (
            self.listing.venue,
            self.listing.base,
            self.listing.quote,
            self.time_ms,
            self.remote_key,
            self.price,
            self.amount,
        )

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Trade":
        return cls(
            listing=Listing(venue=row[0], base=row[1], quote=row[2]),
            time_ms=int(row[3]),
            remote_key=str(row[4]),
            price=Decimal(str(row[5])),
            amount=Decimal(str(row[6])),
        )


@dataclass(frozen=True)
class VenueTrade:
    """Raw trade record as returned by a venue client."""
    remote_id: str
    timestamp_ms: int
    price: Decimal
    quantity: Decimal


@dataclass(frozen=True)
class MarketDataError:
    """Published when a fetch cycle for a listing fails."""
    listing: Listing
    cause: BaseException
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"MarketDataError({self.listing}: {self.cause!r})"
