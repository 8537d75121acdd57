"""
Domain records handed to the authorization layer by the data-access layer.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoreRecord(BaseModel):
    """Store row; (id, value) is its composite natural key."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Store partition key, e.g. store-001")
    value: str = Field(..., min_length=1, description="Store sort key, e.g. main")
    name: str = Field("", description="Store display name")
    address: Optional[str] = Field(None, description="Physical address")
    franchise_id: Optional[str] = Field(None, description="Owning franchise")

    def unique_id(self, separator: str = "#") -> str:
        """Composite key, e.g. store-001#main."""
        return f"{self.id}{separator}{self.value}"


class FranchiseRecord(BaseModel):
    """Franchise row."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Franchise id, e.g. franchise-001")
    name: str = Field(..., description="Franchise business name")
    location: Optional[str] = None
    stores: List[str] = Field(default_factory=list, description="Store ids of the franchise")


class PetRecord(BaseModel):
    """Pet row."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    store_id: str = Field(..., min_length=1, description="Code of the store holding the pet")
    name: Optional[str] = None


class OrderRecord(BaseModel):
    """Order row."""
    model_config = ConfigDict(frozen=True)

    order_number: str = Field(..., min_length=1)
    store_id: str = Field(..., min_length=1, description="Code of the store the order was placed at")
    customer_id: str = Field(..., min_length=1, description="User id of the ordering customer")
    pet_id: Optional[str] = None
