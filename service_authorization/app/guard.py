"""
FastAPI authorization guard.

The guard runs after authentication: it expects the authentication layer to
have put the caller's claims on ``request.state.user`` and turns the
authorization decision into either a grant or an HTTP 403.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request

from shared.errors import AuthorizationError
from shared.logging import clear_context, get_logger, set_request_id

from .actions import effective_family, normalize_route, resolve_action, resource_id_for
from .domain.claims import IdentityClaims
from .entities.builder import RESOURCE_TYPES
from .service import AuthorizationService


@dataclass
class AuthorizationGrant:
    """What a request was authorized for."""
    action: str
    resource_type: str
    resource_id: str
    policies: List[str] = field(default_factory=list)


class AuthorizationGuard:
    """FastAPI dependency enforcing an authorization decision."""

    def __init__(self, service: AuthorizationService, action: Optional[str] = None):
        self.service = service
        self.action = action
        self.logger = get_logger("authorization.guard")

    async def __call__(self, request: Request) -> AuthorizationGrant:
        set_request_id(request.headers.get("X-Request-ID"))
        try:
            return self.authorize(request)
        finally:
            clear_context()

    def authorize(self, request: Request) -> AuthorizationGrant:
        """Decide the request, raising a 403 on denial."""
        user = getattr(request.state, "user", None)
        if not user:
            self.logger.warning("No user context found in request")
            raise self._forbidden("User authentication required before authorization")

        try:
            action = self.action or self.derive_action(request)
            path_params = dict(request.path_params)
            resource_type = RESOURCE_TYPES[effective_family(action, path_params)]
            resource_id = resource_id_for(action, path_params)
            claims = IdentityClaims.from_request_user(user, self.service.config.claims_delimiter)

            result = self.service.is_authorized(claims, action, path_params)
        except Exception as e:
            self.logger.error("Authorization check failed", error=str(e), path=request.url.path)
            raise self._forbidden("Authorization check failed")

        if not result.allowed:
            raise self._forbidden(result.message, {
                "action": action,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "determining_policies": result.determining_policy_ids,
            })

        grant = AuthorizationGrant(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            policies=result.determining_policy_ids
        )
        request.state.auth_context = grant
        return grant

    def derive_action(self, request: Request) -> str:
        """Action of the matched route template."""
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        return resolve_action(request.method, normalize_route(path, self.service.config.api_prefix))

    @staticmethod
    def _forbidden(message: str, details: Optional[Dict[str, Any]] = None) -> HTTPException:
        error = AuthorizationError(message, details)
        return HTTPException(status_code=403, detail=error.to_response().model_dump())
