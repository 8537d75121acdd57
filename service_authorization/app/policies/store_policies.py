"""
Pet store policy set.

Policies are evaluated in the order listed here. The tuple is built once
at import and never mutated.
"""

from typing import Tuple

from ..entities.builder import EMPLOYMENT_FRANCHISE_CODES, EMPLOYMENT_STORE_CODES, group_identifier
from ..entities.models import ACTION_TYPE, STORE_TYPE, ORDER_TYPE, PET_TYPE
from .models import (
    Policy, Effect, PrincipalPattern, ActionPattern, ResourcePattern,
    Equal, HasAttribute, InSet, And, Ref,
)


CUSTOMER_GROUP = "Customer"
FRANCHISE_OWNER_GROUP = "FranchiseOwnerRole"
STORE_OWNER_GROUP = "StoreOwnerRole"


def _franchise_employee() -> And:
    return And((HasAttribute(EMPLOYMENT_FRANCHISE_CODES), InSet(EMPLOYMENT_FRANCHISE_CODES)))


def build_default_policies() -> Tuple[Policy, ...]:
    """Build the pet store policies in evaluation order."""
    customer = PrincipalPattern.in_group(group_identifier(CUSTOMER_GROUP))
    franchise_owner = PrincipalPattern.in_group(group_identifier(FRANCHISE_OWNER_GROUP))
    store_owner = PrincipalPattern.in_group(group_identifier(STORE_OWNER_GROUP))

    any_action = ActionPattern.exact(ACTION_TYPE)
    get_order = ActionPattern.exact(ACTION_TYPE, "GetOrder")
    pet_changes = ActionPattern.one_of(ACTION_TYPE, "UpdatePet", "DeletePet")

    stores = ResourcePattern.exact(STORE_TYPE)
    orders = ResourcePattern.exact(ORDER_TYPE)
    pets = ResourcePattern.exact(PET_TYPE)

    return (
        Policy(
            policy_id="CustomerPolicy1",
            effect=Effect.PERMIT,
            principal=customer,
            action=ActionPattern.one_of(ACTION_TYPE, "SearchPets", "PlaceOrder"),
            resource=stores,
            description="Customers search pets and place orders in any store"
        ),
        Policy(
            policy_id="CustomerPolicy2",
            effect=Effect.PERMIT,
            principal=customer,
            action=get_order,
            resource=orders,
            condition=Equal(Ref("principal"), Ref("resource.owner")),
            description="Customers read their own orders"
        ),
        Policy(
            policy_id="FranchiseOwnerPolicy1",
            effect=Effect.PERMIT,
            principal=franchise_owner,
            action=any_action,
            resource=stores,
            condition=_franchise_employee(),
            description="Franchise owners manage the stores of their franchise"
        ),
        Policy(
            policy_id="FranchiseOwnerPolicy2",
            effect=Effect.PERMIT,
            principal=franchise_owner,
            action=get_order,
            resource=orders,
            condition=_franchise_employee(),
            description="Franchise owners read orders placed in their franchise"
        ),
        Policy(
            policy_id="StoreOwnerPolicy1",
            effect=Effect.PERMIT,
            principal=store_owner,
            action=any_action,
            resource=stores,
            condition=InSet(EMPLOYMENT_STORE_CODES),
            description="Store owners manage their stores"
        ),
        Policy(
            policy_id="StoreOwnerPolicy2",
            effect=Effect.PERMIT,
            principal=store_owner,
            action=get_order,
            resource=orders,
            condition=InSet(EMPLOYMENT_STORE_CODES),
            description="Store owners read orders placed in their stores"
        ),
        Policy(
            policy_id="StoreOwnerPolicy3",
            effect=Effect.PERMIT,
            principal=store_owner,
            action=pet_changes,
            resource=pets,
            condition=InSet(EMPLOYMENT_STORE_CODES),
            description="Store owners update and remove pets of their stores"
        ),
        Policy(
            policy_id="FranchiseOwnerPolicy3",
            effect=Effect.PERMIT,
            principal=franchise_owner,
            action=pet_changes,
            resource=pets,
            condition=_franchise_employee(),
            description="Franchise owners update and remove pets of their franchise"
        ),
    )


DEFAULT_POLICIES: Tuple[Policy, ...] = build_default_policies()
