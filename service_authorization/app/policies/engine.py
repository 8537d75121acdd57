"""
Policy decision engine for the Authorization Service.
"""

import time
from collections import Counter
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from shared.config import EvaluationMode
from shared.errors import InvalidContextError, ValidationError
from shared.logging import get_logger

from ..actions import UNKNOWN_ACTION
from ..entities.models import ActionIdentifier, EntityCollection, EntityIdentifier
from .conditions import evaluate
from .models import (
    Policy, Effect, Decision, PatternKind,
    PrincipalPattern, ActionPattern, ResourcePattern,
    AuthorizationContext, AuthorizationResult,
)


logger = get_logger("authorization.decision_engine")

DEFAULT_DENY_MESSAGE = "no matching policy — default deny"
EVALUATION_FAILED_MESSAGE = "Authorization evaluation failed"


def validate_context(context: AuthorizationContext) -> None:
    """Reject structurally invalid contexts before any policy is evaluated."""
    if not isinstance(context, AuthorizationContext):
        raise InvalidContextError("Context must be an AuthorizationContext")
    if not isinstance(context.principal, EntityIdentifier):
        raise InvalidContextError("Principal must be an EntityIdentifier", {"principal": repr(context.principal)})
    if not isinstance(context.action, ActionIdentifier):
        raise InvalidContextError("Action must be an ActionIdentifier", {"action": repr(context.action)})
    if not isinstance(context.resource, EntityIdentifier):
        raise InvalidContextError("Resource must be an EntityIdentifier", {"resource": repr(context.resource)})
    if not isinstance(context.entities, EntityCollection):
        raise InvalidContextError("Entities must be an EntityCollection")


def matches_principal(pattern: PrincipalPattern, principal: EntityIdentifier, entities: EntityCollection) -> bool:
    """Match a principal pattern; group membership is transitive."""
    if pattern.kind is PatternKind.ANY:
        return True

    if pattern.kind is PatternKind.IN_GROUP:
        return entities.is_member_of(principal, pattern.group)

    if pattern.kind is PatternKind.EXACT:
        if pattern.entity_type != principal.entity_type:
            return False
        return pattern.entity_id is None or pattern.entity_id == principal.entity_id

    return False


def matches_action(pattern: ActionPattern, action: ActionIdentifier) -> bool:
    """Match an action pattern; the unknown action never matches."""
    if action.action_id == UNKNOWN_ACTION:
        return False

    if pattern.kind is PatternKind.ANY:
        return True

    if pattern.action_type and pattern.action_type != action.action_type:
        return False

    if pattern.kind is PatternKind.EXACT:
        return not pattern.action_ids or action.action_id in pattern.action_ids

    if pattern.kind is PatternKind.ONE_OF:
        return action.action_id in pattern.action_ids

    return False


def matches_resource(pattern: ResourcePattern, resource: EntityIdentifier) -> bool:
    """Match a resource pattern."""
    if pattern.kind is PatternKind.ANY:
        return True

    if pattern.kind is PatternKind.EXACT:
        if pattern.entity_type != resource.entity_type:
            return False
        return pattern.entity_id is None or pattern.entity_id == resource.entity_id

    return False


def policy_applies(policy: Policy, context: AuthorizationContext) -> bool:
    """Check patterns, then the condition, of one policy."""
    if not matches_principal(policy.principal, context.principal, context.entities):
        return False

    if not matches_action(policy.action, context.action):
        return False

    if not matches_resource(policy.resource, context.resource):
        return False

    if policy.condition is not None and not evaluate(policy.condition, context):
        return False

    return True


def _result_for(policy: Policy) -> AuthorizationResult:
    if policy.effect is Effect.PERMIT:
        return AuthorizationResult(
            decision=Decision.ALLOW,
            determining_policy_ids=[policy.policy_id],
            message=f"Access granted by policy {policy.policy_id}"
        )
    return AuthorizationResult(
        decision=Decision.DENY,
        determining_policy_ids=[policy.policy_id],
        message=f"Access denied by policy {policy.policy_id}"
    )


def _default_deny() -> AuthorizationResult:
    return AuthorizationResult(decision=Decision.DENY, message=DEFAULT_DENY_MESSAGE)


def _decide_first_match(context: AuthorizationContext, policies: Iterable[Policy]) -> AuthorizationResult:
    for policy in policies:
        if policy_applies(policy, context):
            return _result_for(policy)
    return _default_deny()


def _decide_forbid_first(context: AuthorizationContext, policies: Iterable[Policy]) -> AuthorizationResult:
    applicable = [policy for policy in policies if policy_applies(policy, context)]

    forbidding = [policy.policy_id for policy in applicable if policy.effect is Effect.FORBID]
    if forbidding:
        return AuthorizationResult(
            decision=Decision.DENY,
            determining_policy_ids=forbidding,
            message=f"Access denied by policy {', '.join(forbidding)}"
        )

    for policy in applicable:
        if policy.effect is Effect.PERMIT:
            return _result_for(policy)

    return _default_deny()


def decide(
    context: AuthorizationContext,
    policies: Iterable[Policy],
    mode: Union[EvaluationMode, str] = EvaluationMode.FIRST_MATCH
) -> AuthorizationResult:
    """Decide a request against an ordered policy list.

    FIRST_MATCH returns the effect of the first applicable policy in list
    order. FORBID_FIRST denies when any applicable policy forbids and
    otherwise allows on the first applicable permit. Both deny by default.
    """
    validate_context(context)
    mode = EvaluationMode(mode)
    start_time = time.time()

    try:
        if mode is EvaluationMode.FORBID_FIRST:
            result = _decide_forbid_first(context, policies)
        else:
            result = _decide_first_match(context, policies)
    except Exception as e:
        logger.error("Policy evaluation error", error=str(e), principal=str(context.principal))
        result = AuthorizationResult(
            decision=Decision.DENY,
            message=EVALUATION_FAILED_MESSAGE,
            errors=[str(e)]
        )

    result.evaluation_time_ms = (time.time() - start_time) * 1000
    return result


class DecisionEngine:
    """Evaluates a static, ordered policy list."""

    def __init__(
        self,
        policies: Iterable[Policy],
        mode: Union[EvaluationMode, str] = EvaluationMode.FIRST_MATCH
    ):
        self.logger = logger
        self.policies: Tuple[Policy, ...] = tuple(policies)
        self.mode = EvaluationMode(mode)

        duplicates = [pid for pid, count in Counter(p.policy_id for p in self.policies).items() if count > 1]
        if duplicates:
            raise ValidationError("Duplicate policy ids", {"policy_ids": sorted(duplicates)})
        self._by_id: Dict[str, Policy] = {policy.policy_id: policy for policy in self.policies}

        self.logger.info("Decision engine initialized", policy_count=len(self.policies), mode=self.mode.value)

    def decide(self, context: AuthorizationContext) -> AuthorizationResult:
        """Decide one request."""
        result = decide(context, self.policies, self.mode)

        self.logger.debug(
            "Policy evaluation result",
            principal=str(context.principal),
            action=context.action.action_id,
            resource=str(context.resource),
            decision=result.decision.value,
            policies=result.determining_policy_ids
        )
        return result

    def get_policy(self, policy_id: str) -> Optional[Policy]:
        """Get a policy by id."""
        return self._by_id.get(policy_id)

    def get_engine_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        return {
            "total_policies": len(self.policies),
            "permit_policies": len([p for p in self.policies if p.effect is Effect.PERMIT]),
            "forbid_policies": len([p for p in self.policies if p.effect is Effect.FORBID]),
            "conditional_policies": len([p for p in self.policies if p.condition is not None]),
            "mode": self.mode.value,
            "policy_ids": [p.policy_id for p in self.policies],
        }
