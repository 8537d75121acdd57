"""
Route to action resolution for the Authorization Service.
"""

import re
from enum import Enum
from typing import Dict, Mapping, Optional

from shared.config import get_config


UNKNOWN_ACTION = "UnknownAction"

# METHOD + path template -> action name
ACTION_MAP: Dict[str, str] = {
    "GET/store/{storeId}/pets": "SearchPets",
    "POST/store/{storeId}/pet/create": "AddPet",
    "POST/store/{storeId}/order/create": "PlaceOrder",
    "POST/store/{storeId}/pet/update/{petId}": "UpdatePet",
    "DELETE/store/{storeId}/pet/{petId}": "DeletePet",
    "GET/store/{storeId}/order/get/{orderNumber}": "GetOrder",
    "POST/store/{storeId}/order/cancel/{orderNumber}": "CancelOrder",
    "GET/store/{storeId}/orders": "ListOrders",
    "GET/store/{storeId}/inventory": "GetStoreInventory",
}


class ActionFamily(str, Enum):
    """Shape of the resource an action is performed on."""
    PET = "pet"
    ORDER = "order"
    STORE = "store"
    APPLICATION = "application"


ACTION_FAMILIES: Dict[str, ActionFamily] = {
    "UpdatePet": ActionFamily.PET,
    "DeletePet": ActionFamily.PET,
    "GetOrder": ActionFamily.ORDER,
    "CancelOrder": ActionFamily.ORDER,
    "ListOrders": ActionFamily.STORE,
    "GetStoreInventory": ActionFamily.STORE,
    "SearchPets": ActionFamily.STORE,
    "AddPet": ActionFamily.STORE,
    "PlaceOrder": ActionFamily.STORE,
}

_EXPRESS_PARAM = re.compile(r":(\w+)")


def resolve_action(method: str, path_template: str) -> str:
    """Map an HTTP method and path template to an action name."""
    key = f"{method.upper()}{path_template}"
    return ACTION_MAP.get(key, UNKNOWN_ACTION)


def normalize_route(path: str, api_prefix: Optional[str] = None) -> str:
    """Strip the API prefix and turn :param placeholders into {param}."""
    prefix = get_config().api_prefix if api_prefix is None else api_prefix
    if prefix and path.startswith(prefix):
        path = path[len(prefix):]
    return _EXPRESS_PARAM.sub(r"{\1}", path)


def action_family(action: str) -> ActionFamily:
    """Resource family of an action; anything unmapped is application-wide."""
    return ACTION_FAMILIES.get(action, ActionFamily.APPLICATION)


def effective_family(action: str, path_params: Optional[Mapping[str, str]]) -> ActionFamily:
    """Family actually usable with the given path parameters.

    Pet and order actions without their id parameter fall back to the
    application resource.
    """
    params = path_params or {}
    family = action_family(action)

    if family is ActionFamily.PET and not params.get("petId"):
        return ActionFamily.APPLICATION
    if family is ActionFamily.ORDER and not params.get("orderNumber"):
        return ActionFamily.APPLICATION
    if family is ActionFamily.STORE and not params.get("storeId"):
        return ActionFamily.APPLICATION
    return family


def resource_id_for(action: str, path_params: Optional[Mapping[str, str]]) -> str:
    """Resource id reported for an action, from the path parameters."""
    params = path_params or {}
    family = effective_family(action, params)

    if family is ActionFamily.PET:
        return params["petId"]
    if family is ActionFamily.ORDER:
        return params["orderNumber"]
    if params.get("storeId"):
        return params["storeId"]
    if params.get("franchiseId"):
        return params["franchiseId"]
    return get_config().application_resource_id
