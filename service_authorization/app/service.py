"""
Authorization service: claims and domain records in, decision out.
"""

from typing import Iterable, Mapping, Optional

from shared.config import AuthorizationConfig, get_config
from shared.logging import clear_user_context, configure_logging, get_logger, set_user_context
from shared.metrics import MetricsCollector, get_metrics_collector

from .actions import resolve_action
from .domain.claims import IdentityClaims
from .domain.lookup import DomainLookup
from .entities.builder import EntityBuilder, principal_identifier
from .entities.models import ActionIdentifier, ACTION_TYPE
from .policies.engine import DecisionEngine
from .policies.models import AuthorizationContext, AuthorizationResult, Policy
from .policies.store_policies import DEFAULT_POLICIES


class AuthorizationService:
    """Builds request contexts and decides them against the policy set."""

    def __init__(
        self,
        domain_lookup: DomainLookup,
        policies: Iterable[Policy] = DEFAULT_POLICIES,
        config: Optional[AuthorizationConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config or get_config()
        configure_logging("authorization", self.config.log_level)
        self.logger = get_logger("authorization.service")
        self.metrics = metrics or get_metrics_collector("authorization")
        self.builder = EntityBuilder(domain_lookup, self.config, self.metrics)
        self.engine = DecisionEngine(policies, self.config.evaluation_mode)

        self.logger.info(
            "Authorization service initialized",
            policy_count=len(self.engine.policies),
            mode=self.engine.mode.value
        )

    def build_context(
        self,
        claims: IdentityClaims,
        action: str,
        path_params: Optional[Mapping[str, str]] = None
    ) -> AuthorizationContext:
        """Assemble the authorization context of one request."""
        entities, resource = self.builder.build(claims, action, path_params)
        return AuthorizationContext(
            principal=principal_identifier(claims),
            action=ActionIdentifier(ACTION_TYPE, action),
            resource=resource,
            entities=entities
        )

    def is_authorized(
        self,
        claims: IdentityClaims,
        action: str,
        path_params: Optional[Mapping[str, str]] = None
    ) -> AuthorizationResult:
        """Decide whether the claims' principal may perform an action."""
        set_user_context(claims.user_id)
        try:
            self.logger.debug("Authorization check", user_id=claims.user_id, action=action, path_params=dict(path_params or {}))

            with self.metrics.time_evaluation():
                context = self.build_context(claims, action, path_params)
                result = self.engine.decide(context)

            policy_id = result.determining_policy_ids[0] if result.determining_policy_ids else None
            self.metrics.record_decision(result.decision.value, policy_id)
            if result.errors:
                self.metrics.record_error("evaluation_error")

            log = self.logger.info if result.allowed else self.logger.warning
            log(
                f"Authorization {result.decision.value}",
                user_id=claims.user_id,
                action=action,
                resource=str(context.resource),
                policies=result.determining_policy_ids,
                reason=result.message,
                evaluation_time_ms=round(result.evaluation_time_ms, 3)
            )
            return result
        finally:
            clear_user_context()

    def authorize_route(
        self,
        claims: IdentityClaims,
        method: str,
        path_template: str,
        path_params: Optional[Mapping[str, str]] = None
    ) -> AuthorizationResult:
        """Resolve the action of a route, then decide it."""
        return self.is_authorized(claims, resolve_action(method, path_template), path_params)
