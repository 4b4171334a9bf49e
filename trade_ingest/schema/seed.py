"""
Default reference data.

The seed registry lists every entity a fresh database starts with. It is
built explicitly rather than discovered, so the rows a reset writes are
exactly the rows listed here.
"""

from typing import Iterable, Iterator, List

from trade_ingest.schema.entities import EntityBase, Listing

BITFINEX = "BITFINEX"


class SeedRegistry:
    """
    Ordered collection of reference entities to persist on database reset.

    Usage:
        seed = SeedRegistry()
        seed.add(Listing("BITFINEX", "BTC", "USD"))
        store.reset_database(seed)
    """

    def __init__(self, entities: Iterable[EntityBase] = ()):
        self._entities: List[EntityBase] = []
        for entity in entities:
            self.add(entity)

    def add(self, entity: EntityBase) -> EntityBase:
        """Register an entity; duplicates are ignored. Returns the entity."""
        if entity not in self._entities:
            self._entities.append(entity)
        return entity

    def extend(self, entities: Iterable[EntityBase]) -> None:
        for entity in entities:
            self.add(entity)

    def of_type(self, entity_type: type) -> List[EntityBase]:
        return [e for e in self._entities if isinstance(e, entity_type)]

    def __iter__(self) -> Iterator[EntityBase]:
        return iter(list(self._entities))

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity: object) -> bool:
        return entity in self._entities


def default_seed() -> SeedRegistry:
    """The listings every fresh database is populated with."""
    return SeedRegistry([
        Listing(BITFINEX, "BTC", "USD"),
        Listing(BITFINEX, "LTC", "USD"),
        Listing(BITFINEX, "LTC", "BTC"),
    ])
