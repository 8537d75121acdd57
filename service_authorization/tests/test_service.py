"""
Unit tests for AuthorizationService.
"""

import pytest
from unittest.mock import MagicMock, patch

from shared.config import AuthorizationConfig, EvaluationMode
from shared.logging import user_id_var
from service_authorization.app.domain.claims import IdentityClaims
from service_authorization.app.entities.models import (
    EntityIdentifier, ActionIdentifier, USER_TYPE, STORE_TYPE, ORDER_TYPE, ACTION_TYPE,
)
from service_authorization.app.policies.engine import DEFAULT_DENY_MESSAGE
from service_authorization.app.policies.models import Decision, Effect, Policy, ActionPattern
from service_authorization.app.policies.store_policies import DEFAULT_POLICIES
from service_authorization.app.service import AuthorizationService


class TestAuthorizationService:
    """Test cases for AuthorizationService."""

    @pytest.fixture
    def service(self, domain_lookup, config, metrics):
        """Create AuthorizationService instance."""
        return AuthorizationService(domain_lookup, config=config, metrics=metrics)

    def test_build_context(self, service, store_owner_claims):
        """Contexts carry principal, action, resource and entities."""
        context = service.build_context(store_owner_claims, "ListOrders", {"storeId": "store-001#main"})

        assert context.principal == EntityIdentifier(USER_TYPE, "owner-1")
        assert context.action == ActionIdentifier(ACTION_TYPE, "ListOrders")
        assert context.resource == EntityIdentifier(STORE_TYPE, "store-001#main")
        assert context.principal in context.entities

    def test_customer_searches_pets(self, service, customer_claims):
        result = service.is_authorized(customer_claims, "SearchPets", {"storeId": "store-002#main"})

        assert result.allowed is True
        assert result.determining_policy_ids == ["CustomerPolicy1"]

    def test_customer_orders(self, service, customer_claims):
        """Customers read their own orders only."""
        own = service.is_authorized(customer_claims, "GetOrder", {"storeId": "store-001#main", "orderNumber": "order-1"})
        foreign = service.is_authorized(customer_claims, "GetOrder", {"storeId": "store-002#main", "orderNumber": "order-2"})
        unknown = service.is_authorized(customer_claims, "GetOrder", {"storeId": "store-001#main", "orderNumber": "order-x"})

        assert own.determining_policy_ids == ["CustomerPolicy2"]
        assert foreign.decision is Decision.DENY
        assert unknown.decision is Decision.DENY

    def test_store_owner(self, service, store_owner_claims):
        """Store owners act on their stores and the orders placed there."""
        own_store = service.is_authorized(store_owner_claims, "ListOrders", {"storeId": "store-001#main"})
        bare_id = service.is_authorized(store_owner_claims, "GetStoreInventory", {"storeId": "store-001"})
        other_store = service.is_authorized(store_owner_claims, "ListOrders", {"storeId": "store-002#main"})
        own_order = service.is_authorized(store_owner_claims, "GetOrder", {"storeId": "store-001#main", "orderNumber": "order-1"})
        other_order = service.is_authorized(store_owner_claims, "GetOrder", {"storeId": "store-002#main", "orderNumber": "order-2"})

        assert own_store.determining_policy_ids == ["StoreOwnerPolicy1"]
        assert bare_id.determining_policy_ids == ["StoreOwnerPolicy1"]
        assert other_store.decision is Decision.DENY
        assert own_order.determining_policy_ids == ["StoreOwnerPolicy2"]
        assert other_order.decision is Decision.DENY

    def test_store_owner_pets(self, service, store_owner_claims):
        """The pet record decides which store a pet belongs to."""
        own_pet = service.is_authorized(store_owner_claims, "UpdatePet", {"storeId": "store-001#main", "petId": "pet-1"})
        other_pet = service.is_authorized(store_owner_claims, "UpdatePet", {"storeId": "store-001#main", "petId": "pet-2"})

        assert own_pet.determining_policy_ids == ["StoreOwnerPolicy3"]
        assert other_pet.decision is Decision.DENY

    def test_store_owner_with_bare_employment_code(self, service):
        """A bare employment store code grants the same store as its composite key."""
        claims = IdentityClaims(user_id="owner-2", groups=["StoreOwnerRole"], employment_store_codes=["store-001"])

        orders = service.is_authorized(claims, "ListOrders", {"storeId": "store-001"})
        order = service.is_authorized(claims, "GetOrder", {"storeId": "store-001", "orderNumber": "order-1"})
        other = service.is_authorized(claims, "ListOrders", {"storeId": "store-002"})

        assert orders.determining_policy_ids == ["StoreOwnerPolicy1"]
        assert order.determining_policy_ids == ["StoreOwnerPolicy2"]
        assert other.decision is Decision.DENY

    def test_user_context_is_reset(self, service, store_owner_claims):
        """The logging user context does not outlive a check."""
        service.is_authorized(store_owner_claims, "ListOrders", {"storeId": "store-001#main"})

        assert user_id_var.get() is None

    def test_user_context_is_reset_on_error(self, service, store_owner_claims):
        with patch.object(service.engine, "decide", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                service.is_authorized(store_owner_claims, "ListOrders", {"storeId": "store-001#main"})

        assert user_id_var.get() is None

    def test_franchise_owner(self, service, franchise_owner_claims):
        """Franchise owners act on every store of their franchise."""
        branch = service.is_authorized(franchise_owner_claims, "ListOrders", {"storeId": "store-003#branch"})
        order = service.is_authorized(franchise_owner_claims, "GetOrder", {"storeId": "store-001#main", "orderNumber": "order-1"})
        other = service.is_authorized(franchise_owner_claims, "ListOrders", {"storeId": "store-002#main"})
        independent = service.is_authorized(franchise_owner_claims, "ListOrders", {"storeId": "store-004#outlet"})

        assert branch.determining_policy_ids == ["FranchiseOwnerPolicy1"]
        assert order.determining_policy_ids == ["FranchiseOwnerPolicy2"]
        assert other.decision is Decision.DENY
        assert independent.decision is Decision.DENY

    def test_unknown_store(self, service, store_owner_claims):
        """Unresolvable resources deny instead of raising."""
        result = service.is_authorized(store_owner_claims, "ListOrders", {"storeId": "store-999#main"})

        assert result.decision is Decision.DENY
        assert result.message == DEFAULT_DENY_MESSAGE

    def test_groupless_principal(self, service, groupless_claims):
        result = service.is_authorized(groupless_claims, "SearchPets", {"storeId": "store-001#main"})

        assert result.decision is Decision.DENY
        assert result.determining_policy_ids == []

    def test_authorize_route(self, service, store_owner_claims):
        """Routes resolve to actions before the decision."""
        allowed = service.authorize_route(store_owner_claims, "GET", "/store/{storeId}/orders", {"storeId": "store-001#main"})
        unknown = service.authorize_route(store_owner_claims, "GET", "/admin/stats", {"storeId": "store-001#main"})

        assert allowed.allowed is True
        assert unknown.decision is Decision.DENY
        assert unknown.message == DEFAULT_DENY_MESSAGE

    def test_decisions_are_counted(self, service, customer_claims, metrics):
        """Each decision increments the decision counter."""
        service.is_authorized(customer_claims, "SearchPets", {"storeId": "store-001#main"})
        service.is_authorized(customer_claims, "ListOrders", {"storeId": "store-001#main"})

        assert metrics.get_sample_value(
            "authorization_decisions_total", {"decision": "ALLOW", "policy": "CustomerPolicy1"}
        ) == 1.0
        assert metrics.get_sample_value(
            "authorization_decisions_total", {"decision": "DENY", "policy": "default"}
        ) == 1.0
        assert metrics.get_sample_value("authorization_evaluation_seconds_count") == 2.0

    @pytest.fixture
    def failing_lookup(self):
        lookup = MagicMock()
        for method in ("get_store", "find_stores_by_id", "get_franchise", "list_franchise_stores", "get_pet", "get_order"):
            getattr(lookup, method).side_effect = ConnectionError("database unavailable")
        return lookup

    def test_failing_lookup_denies_ownership(self, failing_lookup, config, metrics, customer_claims):
        """Without the order record there is no owner to match."""
        service = AuthorizationService(failing_lookup, config=config, metrics=metrics)

        result = service.is_authorized(customer_claims, "GetOrder", {"storeId": "store-001#main", "orderNumber": "order-1"})

        assert result.decision is Decision.DENY
        assert result.errors == []
        assert metrics.get_sample_value("authorization_resolution_gaps_total", {"kind": "order"}) == 1.0

    def test_failing_lookup_keeps_path_store(self, failing_lookup, config, metrics, store_owner_claims):
        """The raw path store still matches the employment claim."""
        service = AuthorizationService(failing_lookup, config=config, metrics=metrics)

        result = service.is_authorized(store_owner_claims, "ListOrders", {"storeId": "store-001#main"})

        assert result.determining_policy_ids == ["StoreOwnerPolicy1"]
        assert metrics.get_sample_value("authorization_resolution_gaps_total", {"kind": "store"}) == 2.0

    def test_forbid_first_configuration(self, domain_lookup, metrics, customer_claims):
        """A configured forbid-first mode lets a later forbid override a permit."""
        config = AuthorizationConfig(evaluation_mode=EvaluationMode.FORBID_FIRST)
        freeze = Policy(
            policy_id="FreezeOrdering",
            effect=Effect.FORBID,
            action=ActionPattern.exact(ACTION_TYPE, "PlaceOrder")
        )
        service = AuthorizationService(domain_lookup, DEFAULT_POLICIES + (freeze,), config, metrics)

        ordering = service.is_authorized(customer_claims, "PlaceOrder", {"storeId": "store-001#main"})
        searching = service.is_authorized(customer_claims, "SearchPets", {"storeId": "store-001#main"})

        assert ordering.decision is Decision.DENY
        assert ordering.determining_policy_ids == ["FreezeOrdering"]
        assert searching.determining_policy_ids == ["CustomerPolicy1"]
        assert metrics.get_sample_value(
            "authorization_decisions_total", {"decision": "DENY", "policy": "FreezeOrdering"}
        ) == 1.0

    def test_order_resource_identifier(self, service, customer_claims):
        context = service.build_context(customer_claims, "CancelOrder", {"storeId": "store-001#main", "orderNumber": "order-1"})

        assert context.resource == EntityIdentifier(ORDER_TYPE, "order-1")
