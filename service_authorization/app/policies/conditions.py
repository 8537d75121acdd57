"""
Condition evaluation for the Authorization Service.

Conditions are evaluated against the request context only. Evaluation is
total: an absent entity or attribute makes the condition false instead of
raising.
"""

from typing import Any, Optional, Set

from shared.logging import get_logger
from ..entities.models import (
    AttributeValue, EntityIdentifier, EntityRef, EntityRefSet, Scalar,
)
from .models import (
    AuthorizationContext, ConditionNode, Equal, HasAttribute, InSet, And, Or, Operand, Ref, Value,
)


logger = get_logger("authorization.conditions")


def evaluate(condition: ConditionNode, context: AuthorizationContext) -> bool:
    """Evaluate a condition tree against a context."""
    if isinstance(condition, And):
        return all(evaluate(child, context) for child in condition.children)

    elif isinstance(condition, Or):
        return any(evaluate(child, context) for child in condition.children)

    elif isinstance(condition, HasAttribute):
        return _has_attribute(condition.name, context)

    elif isinstance(condition, InSet):
        return _in_set(condition.name, context)

    elif isinstance(condition, Equal):
        left = resolve_operand(condition.left, context)
        right = resolve_operand(condition.right, context)
        return left is not None and right is not None and left == right

    else:
        logger.warning("Unsupported condition type", condition_type=type(condition).__name__)
        return False


def _has_attribute(name: str, context: AuthorizationContext) -> bool:
    principal = context.entities.get(context.principal)
    return principal is not None and principal.has_attribute(name)


def _in_set(name: str, context: AuthorizationContext) -> bool:
    """Check the resource against one of the principal's reference sets.

    A reference matches when it is the resource, when it is the resource's
    store, or when it names an ancestor of the resource or of that store.
    Type and id must both agree.
    """
    principal = context.entities.get(context.principal)
    if principal is None:
        return False

    references = principal.get_attribute(name)
    if not isinstance(references, EntityRefSet) or not references:
        return False

    store = _resource_store(context)
    lineage: Set[EntityIdentifier] = set(context.entities.ancestors(context.resource))
    if store is not None:
        lineage.update(context.entities.ancestors(store))

    for reference in references:
        if reference == context.resource:
            return True
        if store is not None and reference == store:
            return True
        if reference in lineage:
            return True

    return False


def _resource_store(context: AuthorizationContext) -> Optional[EntityIdentifier]:
    resource = context.entities.get(context.resource)
    if resource is None:
        return None
    store = resource.get_attribute("store")
    return store.identifier if isinstance(store, EntityRef) else None


def resolve_operand(operand: Operand, context: AuthorizationContext) -> Any:
    """Resolve an operand to a comparable value, None when unresolvable."""
    if isinstance(operand, Value):
        return operand.value
    if isinstance(operand, Ref):
        return _resolve_path(operand.path, context)
    return None


def _resolve_path(path: str, context: AuthorizationContext) -> Any:
    root, *attributes = path.split(".")
    roots = {
        "principal": context.principal,
        "action": context.action,
        "resource": context.resource,
    }
    current: Any = roots.get(root)

    for attribute in attributes:
        # Only entities carry attributes
        if not isinstance(current, EntityIdentifier):
            return None
        entity = context.entities.get(current)
        if entity is None:
            return None
        current = _unwrap(entity.get_attribute(attribute))
        if current is None:
            return None

    return current


def _unwrap(value: Optional[AttributeValue]) -> Any:
    if isinstance(value, Scalar):
        return value.value
    if isinstance(value, EntityRef):
        return value.identifier
    if isinstance(value, EntityRefSet):
        return frozenset(value.identifiers)
    return None
