"""
Read-only access to pre-loaded domain records.

The authorization layer never fetches records itself. Callers hand it a
DomainLookup; InMemoryDomainLookup serves records that were loaded before
the authorization check started.
"""

from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from .records import StoreRecord, FranchiseRecord, PetRecord, OrderRecord


@runtime_checkable
class DomainLookup(Protocol):
    """Record lookups needed to build the entity graph."""

    def get_store(self, store_id: str, value: str) -> Optional[StoreRecord]:
        ...

    def find_stores_by_id(self, store_id: str) -> List[StoreRecord]:
        ...

    def get_franchise(self, franchise_id: str) -> Optional[FranchiseRecord]:
        ...

    def list_franchise_stores(self, franchise_id: str) -> List[StoreRecord]:
        ...

    def get_pet(self, pet_id: str) -> Optional[PetRecord]:
        ...

    def get_order(self, order_number: str) -> Optional[OrderRecord]:
        ...


def resolve_store_code(lookup: DomainLookup, store_code: str, separator: str = "#") -> Optional[StoreRecord]:
    """Resolve a store code, either composite (id#value) or a bare store id."""
    parts = store_code.split(separator)
    if len(parts) == 2:
        return lookup.get_store(parts[0], parts[1])

    stores = lookup.find_stores_by_id(store_code)
    return stores[0] if stores else None


class InMemoryDomainLookup:
    """DomainLookup over records held in memory."""

    def __init__(
        self,
        stores: Iterable[StoreRecord] = (),
        franchises: Iterable[FranchiseRecord] = (),
        pets: Iterable[PetRecord] = (),
        orders: Iterable[OrderRecord] = ()
    ):
        self._stores: Dict[tuple, StoreRecord] = {(s.id, s.value): s for s in stores}
        self._franchises: Dict[str, FranchiseRecord] = {f.id: f for f in franchises}
        self._pets: Dict[str, PetRecord] = {p.id: p for p in pets}
        self._orders: Dict[str, OrderRecord] = {o.order_number: o for o in orders}

    def get_store(self, store_id: str, value: str) -> Optional[StoreRecord]:
        return self._stores.get((store_id, value))

    def find_stores_by_id(self, store_id: str) -> List[StoreRecord]:
        return [store for key, store in self._stores.items() if key[0] == store_id]

    def get_franchise(self, franchise_id: str) -> Optional[FranchiseRecord]:
        return self._franchises.get(franchise_id)

    def list_franchise_stores(self, franchise_id: str) -> List[StoreRecord]:
        return [store for store in self._stores.values() if store.franchise_id == franchise_id]

    def get_pet(self, pet_id: str) -> Optional[PetRecord]:
        return self._pets.get(pet_id)

    def get_order(self, order_number: str) -> Optional[OrderRecord]:
        return self._orders.get(order_number)
