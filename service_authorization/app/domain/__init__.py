"""
Inputs handed over by the authentication and data-access layers.
"""

from .claims import IdentityClaims, parse_code_list
from .lookup import DomainLookup, InMemoryDomainLookup, resolve_store_code
from .records import StoreRecord, FranchiseRecord, PetRecord, OrderRecord

__all__ = [
    "IdentityClaims",
    "parse_code_list",
    "DomainLookup",
    "InMemoryDomainLookup",
    "resolve_store_code",
    "StoreRecord",
    "FranchiseRecord",
    "PetRecord",
    "OrderRecord",
]
