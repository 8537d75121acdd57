"""
Shared fixtures for Authorization Service tests.
"""

import pytest

from shared.config import AuthorizationConfig
from shared.metrics import MetricsCollector
from service_authorization.app.domain.claims import IdentityClaims
from service_authorization.app.domain.lookup import InMemoryDomainLookup
from service_authorization.app.domain.records import (
    StoreRecord, FranchiseRecord, PetRecord, OrderRecord
)


@pytest.fixture
def stores():
    """Stores of two franchises."""
    return [
        StoreRecord(id="store-001", value="main", name="Downtown", address="1 Main St", franchise_id="franchise-001"),
        StoreRecord(id="store-002", value="main", name="Uptown", franchise_id="franchise-002"),
        StoreRecord(id="store-003", value="branch", name="Harbor", address="9 Pier Rd", franchise_id="franchise-001"),
        StoreRecord(id="store-004", value="outlet", name="Independent"),
    ]


@pytest.fixture
def franchises():
    return [
        FranchiseRecord(id="franchise-001", name="Happy Paws", stores=["store-001", "store-003"]),
        FranchiseRecord(id="franchise-002", name="Fur Friends", stores=["store-002"]),
    ]


@pytest.fixture
def domain_lookup(stores, franchises):
    """Pre-loaded domain records."""
    return InMemoryDomainLookup(
        stores=stores,
        franchises=franchises,
        pets=[
            PetRecord(id="pet-1", store_id="store-001#main", name="Rex"),
            PetRecord(id="pet-2", store_id="store-002#main", name="Tom"),
        ],
        orders=[
            OrderRecord(order_number="order-1", store_id="store-001#main", customer_id="customer-1", pet_id="pet-1"),
            OrderRecord(order_number="order-2", store_id="store-002#main", customer_id="customer-2", pet_id="pet-2"),
        ]
    )


@pytest.fixture
def config():
    return AuthorizationConfig()


@pytest.fixture
def metrics():
    return MetricsCollector("authorization-test")


@pytest.fixture
def customer_claims():
    return IdentityClaims(user_id="customer-1", email="c1@petstore.com", groups=["Customer"])


@pytest.fixture
def store_owner_claims():
    return IdentityClaims(
        user_id="owner-1",
        email="owner@petstore.com",
        groups=["StoreOwnerRole"],
        employment_store_codes=["store-001#main"],
        role="store_owner"
    )


@pytest.fixture
def franchise_owner_claims():
    return IdentityClaims(
        user_id="franchisee-1",
        email="franchisee@petstore.com",
        groups=["FranchiseOwnerRole"],
        employment_franchise_codes=["franchise-001"],
        role="franchise_owner"
    )


@pytest.fixture
def groupless_claims():
    return IdentityClaims(user_id="nobody", email="nobody@petstore.com")
