"""
Entity graph construction for the Authorization Service.

Turns identity claims and domain records into the entities a policy can
reason about: the principal with its groups and employment sets, the stores
and franchises the principal works for, and the requested resource together
with its store and franchise ancestry.

Records that cannot be resolved are logged and left out. A missing entity
can only make a permit fail to match, so the graph always fails closed.
"""

from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from shared.config import AuthorizationConfig, get_config
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..actions import ActionFamily, effective_family
from ..domain.claims import IdentityClaims
from ..domain.lookup import DomainLookup, resolve_store_code
from ..domain.records import StoreRecord, FranchiseRecord
from .models import (
    Entity, EntityCollection, EntityIdentifier, EntityRef, EntityRefSet, Scalar,
    USER_TYPE, GROUP_TYPE, STORE_TYPE, FRANCHISE_TYPE, PET_TYPE, ORDER_TYPE, APPLICATION_TYPE,
)


logger = get_logger("authorization.entity_builder")

EMPLOYMENT_STORE_CODES = "employment_store_codes"
EMPLOYMENT_FRANCHISE_CODES = "employment_franchise_codes"

RESOURCE_TYPES = {
    ActionFamily.PET: PET_TYPE,
    ActionFamily.ORDER: ORDER_TYPE,
    ActionFamily.STORE: STORE_TYPE,
    ActionFamily.APPLICATION: APPLICATION_TYPE,
}


def principal_identifier(claims: IdentityClaims) -> EntityIdentifier:
    return EntityIdentifier(USER_TYPE, claims.user_id)


def group_identifier(group: str) -> EntityIdentifier:
    return EntityIdentifier(GROUP_TYPE, group)


def build_principal_entity(claims: IdentityClaims, store_codes: Optional[Iterable[str]] = None) -> Entity:
    """User entity with employment sets and one parent per group.

    store_codes replaces the claimed employment store codes, e.g. with
    their resolved composite keys.
    """
    if store_codes is None:
        store_codes = claims.employment_store_codes
    return Entity(
        identifier=principal_identifier(claims),
        attributes={
            EMPLOYMENT_STORE_CODES: EntityRefSet.of(STORE_TYPE, store_codes),
            EMPLOYMENT_FRANCHISE_CODES: EntityRefSet.of(FRANCHISE_TYPE, claims.employment_franchise_codes),
        },
        parents=tuple(group_identifier(group) for group in claims.groups)
    )


def build_group_entities(claims: IdentityClaims) -> List[Entity]:
    """One leaf Group entity per group claim."""
    return [Entity(identifier=group_identifier(group)) for group in dict.fromkeys(claims.groups)]


def build_store_entity(store_record: StoreRecord, separator: str = "#") -> Entity:
    """Store entity keyed by its composite key, child of its franchise."""
    parents: Tuple[EntityIdentifier, ...] = ()
    if store_record.franchise_id:
        parents = (EntityIdentifier(FRANCHISE_TYPE, store_record.franchise_id),)

    return Entity(
        identifier=EntityIdentifier(STORE_TYPE, store_record.unique_id(separator)),
        attributes={
            "location": Scalar(store_record.address or "unknown"),
            "name": Scalar(store_record.name),
        },
        parents=parents
    )


def build_franchise_entity(
    franchise_record: FranchiseRecord,
    owned_stores: List[StoreRecord],
    separator: str = "#"
) -> Entity:
    """Franchise entity listing its stores."""
    return Entity(
        identifier=EntityIdentifier(FRANCHISE_TYPE, franchise_record.id),
        attributes={
            "name": Scalar(franchise_record.name),
            "stores": EntityRefSet.of(STORE_TYPE, [store.unique_id(separator) for store in owned_stores]),
        }
    )


def _store_reference(
    store_code: Optional[str],
    domain_lookup: DomainLookup,
    separator: str
) -> Tuple[Optional[EntityIdentifier], Optional[StoreRecord]]:
    """Identifier of a contextual store, canonical when the record resolves."""
    if not store_code:
        return None, None

    record = resolve_store_code(domain_lookup, store_code, separator)
    if record is None:
        logger.warning("Store not found for resource", store_code=store_code)
        return EntityIdentifier(STORE_TYPE, store_code), None

    return EntityIdentifier(STORE_TYPE, record.unique_id(separator)), record


def _store_ancestry(
    record: Optional[StoreRecord],
    domain_lookup: DomainLookup,
    separator: str
) -> List[Entity]:
    """Store entity and, when it resolves, its franchise entity."""
    if record is None:
        return []

    entities = [build_store_entity(record, separator)]
    if record.franchise_id:
        franchise = domain_lookup.get_franchise(record.franchise_id)
        if franchise is None:
            logger.warning("Franchise not found for store", franchise_id=record.franchise_id)
        else:
            owned = domain_lookup.list_franchise_stores(franchise.id)
            entities.append(build_franchise_entity(franchise, owned, separator))
    return entities


def resolve_resource(
    action: str,
    path_params: Optional[Mapping[str, str]],
    domain_lookup: DomainLookup,
    separator: str = "#",
    application_id: str = "PetStore"
) -> Tuple[EntityIdentifier, List[Entity]]:
    """Resource identifier of an action and the entities describing it.

    The entities are the resource itself (when it could be built) followed
    by its store and franchise ancestry.
    """
    params = path_params or {}
    family = effective_family(action, params)

    if family is ActionFamily.PET:
        pet_id = params["petId"]
        pet = domain_lookup.get_pet(pet_id)
        if pet is None:
            logger.warning("Pet not found, using path store", pet_id=pet_id)
        store_id, store_record = _store_reference(
            pet.store_id if pet else params.get("storeId"), domain_lookup, separator
        )
        attributes = {"store": EntityRef(store_id)} if store_id else {}
        resource = Entity(EntityIdentifier(PET_TYPE, pet_id), attributes)
        return resource.identifier, [resource] + _store_ancestry(store_record, domain_lookup, separator)

    if family is ActionFamily.ORDER:
        order_number = params["orderNumber"]
        order = domain_lookup.get_order(order_number)
        if order is None:
            logger.warning("Order not found, owner unknown", order_number=order_number)
        store_id, store_record = _store_reference(
            order.store_id if order else params.get("storeId"), domain_lookup, separator
        )
        attributes = {}
        if store_id:
            attributes["store"] = EntityRef(store_id)
        if order:
            attributes["owner"] = EntityRef(EntityIdentifier(USER_TYPE, order.customer_id))
        resource = Entity(EntityIdentifier(ORDER_TYPE, order_number), attributes)
        return resource.identifier, [resource] + _store_ancestry(store_record, domain_lookup, separator)

    if family is ActionFamily.STORE:
        # The store is the resource
        store_id, store_record = _store_reference(params["storeId"], domain_lookup, separator)
        return store_id, _store_ancestry(store_record, domain_lookup, separator)

    store_id, store_record = _store_reference(params.get("storeId"), domain_lookup, separator)
    attributes = {"store": EntityRef(store_id)} if store_id else {}
    resource = Entity(EntityIdentifier(APPLICATION_TYPE, application_id), attributes)
    return resource.identifier, [resource] + _store_ancestry(store_record, domain_lookup, separator)


def build_resource_identifier(
    action: str,
    path_params: Optional[Mapping[str, str]],
    domain_lookup: DomainLookup,
    separator: str = "#",
    application_id: str = "PetStore"
) -> EntityIdentifier:
    """Identifier of the resource an action targets."""
    return resolve_resource(action, path_params, domain_lookup, separator, application_id)[0]


def build_resource_entities(
    action: str,
    path_params: Optional[Mapping[str, str]],
    domain_lookup: DomainLookup,
    separator: str = "#",
    application_id: str = "PetStore"
) -> List[Entity]:
    """Resource entity for an action plus its store/franchise ancestry."""
    return resolve_resource(action, path_params, domain_lookup, separator, application_id)[1]


class _GuardedLookup:
    """DomainLookup wrapper that turns lookup failures into resolution gaps."""

    def __init__(self, inner: DomainLookup, metrics: Optional[MetricsCollector] = None):
        self._inner = inner
        self._metrics = metrics

    def _call(self, kind: str, fetch: Callable[..., Any], *args, empty: Any = None, gap: bool = True):
        try:
            result = fetch(*args)
        except Exception as e:
            logger.warning("Domain lookup failed", kind=kind, args=list(args), error=str(e))
            result = empty

        if gap and self._metrics and (result is None or result == []):
            self._metrics.record_resolution_gap(kind)
        return result

    def get_store(self, store_id: str, value: str) -> Optional[StoreRecord]:
        return self._call("store", self._inner.get_store, store_id, value)

    def find_stores_by_id(self, store_id: str) -> List[StoreRecord]:
        return self._call("store", self._inner.find_stores_by_id, store_id, empty=[])

    def get_franchise(self, franchise_id: str) -> Optional[FranchiseRecord]:
        return self._call("franchise", self._inner.get_franchise, franchise_id)

    def list_franchise_stores(self, franchise_id: str) -> List[StoreRecord]:
        # A franchise without stores is not a gap
        return self._call("franchise_stores", self._inner.list_franchise_stores, franchise_id, empty=[], gap=False)

    def get_pet(self, pet_id: str):
        return self._call("pet", self._inner.get_pet, pet_id)

    def get_order(self, order_number: str):
        return self._call("order", self._inner.get_order, order_number)


class EntityBuilder:
    """Builds the entity collection of one authorization request."""

    def __init__(
        self,
        domain_lookup: DomainLookup,
        config: Optional[AuthorizationConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config or get_config()
        self.lookup = _GuardedLookup(domain_lookup, metrics)
        self.logger = logger

    def build(
        self,
        claims: IdentityClaims,
        action: str,
        path_params: Optional[Mapping[str, str]] = None
    ) -> Tuple[EntityCollection, EntityIdentifier]:
        """Build the request's entities and the resource identifier."""
        separator = self.config.store_key_separator
        entities = EntityCollection()

        store_codes: List[str] = []
        store_entities: List[Entity] = []
        for store_code in claims.employment_store_codes:
            store = resolve_store_code(self.lookup, store_code, separator)
            if store is None:
                self.logger.warning("Employment store not found", store_code=store_code)
                store_codes.append(store_code)
                continue
            store_codes.append(store.unique_id(separator))
            store_entities.append(build_store_entity(store, separator))

        entities.add(build_principal_entity(claims, store_codes))
        entities.extend(build_group_entities(claims))
        for store_entity in store_entities:
            self._add_once(entities, store_entity)

        for franchise_code in claims.employment_franchise_codes:
            franchise = self.lookup.get_franchise(franchise_code)
            if franchise is None:
                self.logger.warning("Employment franchise not found", franchise_code=franchise_code)
                continue
            owned = self.lookup.list_franchise_stores(franchise.id)
            self._add_once(entities, build_franchise_entity(franchise, owned, separator))

        resource, resource_entities = resolve_resource(
            action, path_params, self.lookup, separator, self.config.application_resource_id
        )
        for entity in resource_entities:
            self._add_once(entities, entity)

        self.logger.debug(
            "Entities built",
            principal=claims.user_id,
            action=action,
            resource=str(resource),
            entity_count=len(entities)
        )
        return entities, resource

    @staticmethod
    def _add_once(entities: EntityCollection, entity: Entity) -> None:
        if entity.identifier not in entities:
            entities.add(entity)
