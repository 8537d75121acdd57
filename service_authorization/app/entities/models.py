"""
Entity data models for the Authorization Service.

Entities are the nodes of the per-request authorization graph. Attribute
values form a closed union (Scalar, EntityRef, EntityRefSet) so that the
condition evaluator can dispatch on their type without probing.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Set, Tuple, Union, Iterable
from dataclasses import dataclass, field
from types import MappingProxyType

from shared.errors import ValidationError, DuplicateEntityError


# Entity types of the pet store namespace
USER_TYPE = "PetStore::User"
GROUP_TYPE = "PetStore::Group"
STORE_TYPE = "PetStore::Store"
FRANCHISE_TYPE = "PetStore::StoreFranchise"
PET_TYPE = "PetStore::Pet"
ORDER_TYPE = "PetStore::Order"
APPLICATION_TYPE = "PetStore::Application"
ACTION_TYPE = "PetStore::Action"


def _require_text(value, field_name: str):
    if not isinstance(value, str) or not value:
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            {"field": field_name, "value": repr(value)}
        )


@dataclass(frozen=True)
class EntityIdentifier:
    """Type/id pair naming one entity."""
    entity_type: str
    entity_id: str

    def __post_init__(self):
        _require_text(self.entity_type, "entity_type")
        _require_text(self.entity_id, "entity_id")

    def __str__(self) -> str:
        return f'{self.entity_type}::"{self.entity_id}"'


@dataclass(frozen=True)
class ActionIdentifier:
    """Type/id pair naming one action."""
    action_type: str
    action_id: str

    def __post_init__(self):
        _require_text(self.action_type, "action_type")
        _require_text(self.action_id, "action_id")

    def __str__(self) -> str:
        return f'{self.action_type}::"{self.action_id}"'


@dataclass(frozen=True)
class Scalar:
    """Plain attribute value."""
    value: Union[str, int, float, bool]


@dataclass(frozen=True)
class EntityRef:
    """Attribute pointing at one entity."""
    identifier: EntityIdentifier


@dataclass(frozen=True)
class EntityRefSet:
    """Attribute holding an ordered, duplicate-free set of entity references."""
    identifiers: Tuple[EntityIdentifier, ...] = ()

    def __post_init__(self):
        # Keep first occurrence order, drop repeats
        object.__setattr__(self, "identifiers", tuple(dict.fromkeys(self.identifiers)))

    @classmethod
    def of(cls, entity_type: str, entity_ids: Iterable[str]) -> "EntityRefSet":
        """Build a set of references that all share one entity type."""
        return cls(tuple(EntityIdentifier(entity_type, entity_id) for entity_id in entity_ids))

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.identifiers

    def __iter__(self) -> Iterator[EntityIdentifier]:
        return iter(self.identifiers)

    def __len__(self) -> int:
        return len(self.identifiers)


AttributeValue = Union[Scalar, EntityRef, EntityRefSet]


@dataclass(frozen=True)
class Entity:
    """One node of the authorization graph."""
    identifier: EntityIdentifier
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)
    parents: Tuple[EntityIdentifier, ...] = ()

    def __post_init__(self):
        if not isinstance(self.identifier, EntityIdentifier):
            raise ValidationError("Entity identifier must be an EntityIdentifier")
        for name, value in self.attributes.items():
            if not isinstance(value, (Scalar, EntityRef, EntityRefSet)):
                raise ValidationError(
                    f"Unsupported attribute value for '{name}'",
                    {"attribute": name, "type": type(value).__name__}
                )
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))
        object.__setattr__(self, "parents", tuple(dict.fromkeys(self.parents)))

    def get_attribute(self, name: str) -> Optional[AttributeValue]:
        """Get an attribute value, None when absent."""
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        """Check whether the attribute is present."""
        return self.attributes.get(name) is not None


class EntityCollection:
    """Request-scoped set of entities keyed by identifier."""

    def __init__(self, entities: Optional[Iterable[Entity]] = None):
        self._entities: Dict[EntityIdentifier, Entity] = {}
        for entity in entities or ():
            self.add(entity)

    def add(self, entity: Entity) -> None:
        """Add an entity; identifiers must be unique."""
        if entity.identifier in self._entities:
            raise DuplicateEntityError(entity.identifier.entity_type, entity.identifier.entity_id)
        self._entities[entity.identifier] = entity

    def extend(self, entities: Iterable[Entity]) -> None:
        """Add several entities."""
        for entity in entities:
            self.add(entity)

    def get(self, identifier: EntityIdentifier) -> Optional[Entity]:
        """Get an entity by identifier."""
        return self._entities.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entities

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)

    def identifiers(self) -> List[EntityIdentifier]:
        """All identifiers in insertion order."""
        return list(self._entities)

    def ancestors(self, identifier: EntityIdentifier) -> List[EntityIdentifier]:
        """Transitive parents of an entity.

        Only parents that resolve to entities of this collection are followed
        and reported.
        """
        result: List[EntityIdentifier] = []
        seen: Set[EntityIdentifier] = {identifier}
        entity = self._entities.get(identifier)
        pending = list(entity.parents) if entity else []

        while pending:
            parent = pending.pop(0)
            if parent in seen:
                continue
            seen.add(parent)
            parent_entity = self._entities.get(parent)
            if parent_entity is None:
                continue
            result.append(parent)
            pending.extend(parent_entity.parents)

        return result

    def is_member_of(self, identifier: EntityIdentifier, group: EntityIdentifier) -> bool:
        """Check whether an entity is, directly or transitively, under a group."""
        return group in self.ancestors(identifier)
