"""
Unit tests for the FastAPI authorization guard.
"""

import pytest
from unittest.mock import patch
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from shared.logging import clear_context, request_id_var, user_id_var
from service_authorization.app.guard import AuthorizationGrant, AuthorizationGuard
from service_authorization.app.policies.engine import DEFAULT_DENY_MESSAGE
from service_authorization.app.service import AuthorizationService


USERS = {
    "customer": {
        "sub": "customer-1",
        "email": "c1@petstore.com",
        "cognito:groups": ["Customer"],
    },
    "store-owner": {
        "sub": "owner-1",
        "email": "owner@petstore.com",
        "cognito:groups": ["StoreOwnerRole"],
        "custom:employmentStoreCode": "store-001#main",
    },
    "api-key": {
        "id": "key-1",
        "role": "api_client",
        "isApiKeyAuth": True,
    },
}


def create_app(service: AuthorizationService) -> FastAPI:
    """Pet store routes behind the guard."""
    app = FastAPI()
    guard = AuthorizationGuard(service)

    @app.middleware("http")
    async def attach_user(request: Request, call_next):
        # Stands in for the authentication layer
        user = USERS.get(request.headers.get("X-Test-User", ""))
        if user:
            request.state.user = user
        return await call_next(request)

    @app.get("/api/v1/store/{storeId}/orders")
    async def list_orders(storeId: str, grant: AuthorizationGrant = Depends(guard)):
        return {"storeId": storeId, "action": grant.action, "policies": grant.policies}

    @app.get("/api/v1/store/{storeId}/order/get/{orderNumber}")
    async def get_order(request: Request, storeId: str, orderNumber: str, grant: AuthorizationGrant = Depends(guard)):
        return {
            "resource_type": grant.resource_type,
            "resource_id": request.state.auth_context.resource_id,
            "policies": grant.policies,
        }

    @app.post("/api/v1/store/{storeId}/order/submit", dependencies=[Depends(AuthorizationGuard(service, action="PlaceOrder"))])
    async def submit_order(storeId: str):
        return {"status": "placed"}

    @app.get("/api/v1/admin/stats", dependencies=[Depends(guard)])
    async def admin_stats():
        return {"status": "ok"}

    return app


class TestAuthorizationGuard:
    """Test cases for AuthorizationGuard."""

    @pytest.fixture
    def service(self, domain_lookup, config, metrics):
        return AuthorizationService(domain_lookup, config=config, metrics=metrics)

    @pytest.fixture
    def client(self, service):
        return TestClient(create_app(service))

    def test_requires_user(self, client):
        """Requests without a user are rejected."""
        response = client.get("/api/v1/store/store-001/orders")

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["code"] == "AUTHORIZATION_ERROR"
        assert detail["message"] == "User authentication required before authorization"

    def test_store_owner_allowed(self, client):
        response = client.get("/api/v1/store/store-001/orders", headers={"X-Test-User": "store-owner"})

        assert response.status_code == 200
        assert response.json() == {"storeId": "store-001", "action": "ListOrders", "policies": ["StoreOwnerPolicy1"]}

    def test_store_owner_denied_elsewhere(self, client):
        """Denials carry the action and resource."""
        response = client.get(
            "/api/v1/store/store-002/orders",
            headers={"X-Test-User": "store-owner", "X-Request-ID": "req-42"}
        )

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["message"] == DEFAULT_DENY_MESSAGE
        assert detail["request_id"] == "req-42"
        assert detail["details"] == {
            "action": "ListOrders",
            "resource_type": "PetStore::Store",
            "resource_id": "store-002",
            "determining_policies": [],
        }

    def test_customer_reads_own_order(self, client):
        """The grant is also exposed on request state."""
        response = client.get("/api/v1/store/store-001/order/get/order-1", headers={"X-Test-User": "customer"})

        assert response.status_code == 200
        assert response.json() == {
            "resource_type": "PetStore::Order",
            "resource_id": "order-1",
            "policies": ["CustomerPolicy2"],
        }

    def test_customer_denied_foreign_order(self, client):
        response = client.get("/api/v1/store/store-002/order/get/order-2", headers={"X-Test-User": "customer"})

        assert response.status_code == 403

    def test_explicit_action(self, client):
        """A guard with a fixed action ignores the route table."""
        allowed = client.post("/api/v1/store/store-001/order/submit", headers={"X-Test-User": "customer"})
        denied = client.post("/api/v1/store/store-001/order/submit", headers={"X-Test-User": "api-key"})

        assert allowed.status_code == 200
        assert denied.status_code == 403

    def test_unmapped_route_denied(self, client):
        """Routes outside the action table are denied."""
        response = client.get("/api/v1/admin/stats", headers={"X-Test-User": "store-owner"})

        assert response.status_code == 403
        assert response.json()["detail"]["details"]["action"] == "UnknownAction"

    def test_api_key_client_denied(self, client):
        response = client.get("/api/v1/store/store-001/orders", headers={"X-Test-User": "api-key"})

        assert response.status_code == 403

    def test_service_error_is_forbidden(self, client, service):
        """Unexpected failures become a 403."""
        with patch.object(service, "is_authorized", side_effect=RuntimeError("boom")):
            response = client.get("/api/v1/store/store-001/orders", headers={"X-Test-User": "store-owner"})

        assert response.status_code == 403
        assert response.json()["detail"]["message"] == "Authorization check failed"

    @pytest.mark.parametrize("user,path", [
        ("store-owner", "/api/v1/store/store-001/orders"),
        ("store-owner", "/api/v1/store/store-002/orders"),
    ])
    def test_correlation_context_is_cleared(self, client, user, path):
        """Allowed and denied requests both clear the logging context."""
        with patch("service_authorization.app.guard.clear_context", wraps=clear_context) as cleared:
            client.get(path, headers={"X-Test-User": user, "X-Request-ID": "req-7"})

        cleared.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_guard_leaves_no_context(self, service):
        """Calling the guard directly leaves no request or user id behind."""
        guard = AuthorizationGuard(service, action="ListOrders")
        request = Request({
            "type": "http",
            "method": "GET",
            "path": "/api/v1/store/store-001/orders",
            "headers": [(b"x-request-id", b"req-9")],
            "path_params": {"storeId": "store-001"},
            "query_string": b"",
            "state": {"user": USERS["store-owner"]},
        })

        grant = await guard(request)

        assert grant.policies == ["StoreOwnerPolicy1"]
        assert request_id_var.get() is None
        assert user_id_var.get() is None
