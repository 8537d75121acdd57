"""
Policy data models for the Authorization Service.
"""

from typing import Any, List, Optional, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum

from shared.errors import ValidationError
from ..entities.models import ActionIdentifier, EntityCollection, EntityIdentifier


class Effect(str, Enum):
    """Policy effect."""
    PERMIT = "permit"
    FORBID = "forbid"


class Decision(str, Enum):
    """Authorization decision."""
    ALLOW = "ALLOW"
    DENY = "DENY"


class PatternKind(str, Enum):
    """How a policy pattern selects principals, actions or resources."""
    ANY = "any"
    EXACT = "exact"
    IN_GROUP = "in_group"
    ONE_OF = "one_of"


@dataclass(frozen=True)
class PrincipalPattern:
    """Principal selector: any, exact type/id, or member of a group."""
    kind: PatternKind = PatternKind.ANY
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    group: Optional[EntityIdentifier] = None

    def __post_init__(self):
        if self.kind is PatternKind.IN_GROUP and self.group is None:
            raise ValidationError("Group pattern needs a group identifier")
        if self.kind is PatternKind.EXACT and not self.entity_type:
            raise ValidationError("Exact principal pattern needs an entity type")
        if self.kind is PatternKind.ONE_OF:
            raise ValidationError("Principal patterns do not support one_of")

    @classmethod
    def any(cls) -> "PrincipalPattern":
        return cls()

    @classmethod
    def exact(cls, entity_type: str, entity_id: Optional[str] = None) -> "PrincipalPattern":
        return cls(PatternKind.EXACT, entity_type=entity_type, entity_id=entity_id)

    @classmethod
    def in_group(cls, group: EntityIdentifier) -> "PrincipalPattern":
        return cls(PatternKind.IN_GROUP, group=group)


@dataclass(frozen=True)
class ActionPattern:
    """Action selector: any, exact type (and id), or one of several ids."""
    kind: PatternKind = PatternKind.ANY
    action_type: Optional[str] = None
    action_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "action_ids", tuple(self.action_ids))
        if self.kind is PatternKind.IN_GROUP:
            raise ValidationError("Action patterns do not support group membership")
        if self.kind is PatternKind.EXACT and not self.action_type:
            raise ValidationError("Exact action pattern needs an action type")
        if self.kind is PatternKind.EXACT and len(self.action_ids) > 1:
            raise ValidationError("Exact action pattern takes at most one action id")
        if self.kind is PatternKind.ONE_OF and not self.action_ids:
            raise ValidationError("one_of action pattern needs action ids")

    @classmethod
    def any(cls) -> "ActionPattern":
        return cls()

    @classmethod
    def exact(cls, action_type: str, action_id: Optional[str] = None) -> "ActionPattern":
        return cls(PatternKind.EXACT, action_type=action_type, action_ids=(action_id,) if action_id else ())

    @classmethod
    def one_of(cls, action_type: str, *action_ids: str) -> "ActionPattern":
        return cls(PatternKind.ONE_OF, action_type=action_type, action_ids=action_ids)


@dataclass(frozen=True)
class ResourcePattern:
    """Resource selector: any, or exact type (and id)."""
    kind: PatternKind = PatternKind.ANY
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    def __post_init__(self):
        if self.kind not in (PatternKind.ANY, PatternKind.EXACT):
            raise ValidationError(f"Resource patterns do not support {self.kind.value}")
        if self.kind is PatternKind.EXACT and not self.entity_type:
            raise ValidationError("Exact resource pattern needs an entity type")

    @classmethod
    def any(cls) -> "ResourcePattern":
        return cls()

    @classmethod
    def exact(cls, entity_type: str, entity_id: Optional[str] = None) -> "ResourcePattern":
        return cls(PatternKind.EXACT, entity_type=entity_type, entity_id=entity_id)


# Condition tree

@dataclass(frozen=True)
class Ref:
    """Dotted context path, e.g. "principal" or "resource.owner"."""
    path: str

    def __post_init__(self):
        root = self.path.split(".", 1)[0]
        if root not in ("principal", "action", "resource"):
            raise ValidationError(f"Context path must start at principal, action or resource: {self.path}")


@dataclass(frozen=True)
class Value:
    """Literal operand."""
    value: Any


Operand = Union[Ref, Value]


@dataclass(frozen=True)
class Equal:
    left: Operand
    right: Operand


@dataclass(frozen=True)
class HasAttribute:
    """Principal carries the attribute."""
    name: str


@dataclass(frozen=True)
class InSet:
    """Resource (or its store) belongs to a principal's reference set."""
    name: str


@dataclass(frozen=True)
class And:
    children: Tuple["ConditionNode", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class Or:
    children: Tuple["ConditionNode", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))


ConditionNode = Union[Equal, HasAttribute, InSet, And, Or]


@dataclass(frozen=True)
class Policy:
    """Authorization policy."""
    policy_id: str
    effect: Effect
    principal: PrincipalPattern = field(default_factory=PrincipalPattern)
    action: ActionPattern = field(default_factory=ActionPattern)
    resource: ResourcePattern = field(default_factory=ResourcePattern)
    condition: Optional[ConditionNode] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.policy_id, str) or not self.policy_id:
            raise ValidationError("Policy id must be a non-empty string")
        if not isinstance(self.effect, Effect):
            raise ValidationError("Policy effect must be an Effect", {"policy_id": self.policy_id})


@dataclass(frozen=True)
class AuthorizationContext:
    """Everything one authorization decision is made from."""
    principal: EntityIdentifier
    action: ActionIdentifier
    resource: EntityIdentifier
    entities: EntityCollection


@dataclass
class AuthorizationResult:
    """Result of an authorization decision."""
    decision: Decision
    determining_policy_ids: List[str] = field(default_factory=list)
    message: str = ""
    errors: List[str] = field(default_factory=list)
    evaluation_time_ms: float = field(default=0.0, compare=False)

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW
