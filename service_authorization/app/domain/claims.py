"""
Identity claims of an already-authenticated caller.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from shared.config import get_config
from shared.errors import ValidationError


def parse_code_list(raw: Any, delimiter: str = ",") -> List[str]:
    """Parse a claim list that may arrive delimiter-encoded.

    An empty string is an empty list. Blank items are dropped.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(delimiter)
    elif isinstance(raw, (list, tuple, set, frozenset)):
        items = list(raw)
    else:
        raise ValueError(f"unsupported claim list type: {type(raw).__name__}")

    return [str(item).strip() for item in items if str(item).strip()]


class IdentityClaims(BaseModel):
    """Claims the authorization layer needs about the principal."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Subject id")
    email: str = Field("", description="Email address")
    groups: List[str] = Field(default_factory=list, description="Group names")
    employment_store_codes: List[str] = Field(default_factory=list, description="Store codes the user works for")
    employment_franchise_codes: List[str] = Field(default_factory=list, description="Franchise codes the user works for")
    role: str = Field("customer", description="Coarse role label")

    @field_validator("groups", "employment_store_codes", "employment_franchise_codes", mode="before")
    @classmethod
    def _split_delimited(cls, value: Any, info: ValidationInfo) -> List[str]:
        delimiter = (info.context or {}).get("delimiter") or get_config().claims_delimiter
        return parse_code_list(value, delimiter)

    @classmethod
    def from_jwt_payload(cls, payload: Mapping[str, Any], delimiter: Optional[str] = None) -> "IdentityClaims":
        """Build claims from a verified JWT payload."""
        user_id = payload.get("sub") or payload.get("userId")
        if not user_id:
            raise ValidationError("JWT payload carries no subject", {"claims": sorted(payload.keys())})

        data: Dict[str, Any] = {
            "user_id": user_id,
            "email": payload.get("email") or "",
            "groups": payload.get("cognito:groups") or payload.get("groups") or [],
            "employment_store_codes": payload.get("custom:employmentStoreCode") or payload.get("employmentStoreCodes") or "",
            "employment_franchise_codes": payload.get("custom:franchiseCode") or payload.get("franchiseCodes") or "",
            "role": payload.get("role") or "customer",
        }
        return cls.model_validate(data, context={"delimiter": delimiter})

    @classmethod
    def from_api_key(cls, user: Mapping[str, Any]) -> "IdentityClaims":
        """Build the restricted identity of an API-key client."""
        role = user.get("role") or "api_client"
        return cls(
            user_id=user.get("id") or "api-client",
            email=user.get("email") or "api@petstore.com",
            groups=["AdminRole"] if role == "admin" else ["ApiClientRole"],
            employment_store_codes=[],
            employment_franchise_codes=[],
            role=role,
        )

    @classmethod
    def from_request_user(cls, user: Mapping[str, Any], delimiter: Optional[str] = None) -> "IdentityClaims":
        """Build claims from whatever the authentication layer attached."""
        if user.get("isApiKeyAuth"):
            return cls.from_api_key(user)
        if user.get("email"):
            return cls.from_jwt_payload(user, delimiter)

        user_id = user.get("id") or user.get("sub") or "unknown"
        return cls.model_validate({
            "user_id": user_id,
            "email": user.get("email") or "unknown@petstore.com",
            "groups": user.get("groups") or [],
            "employment_store_codes": user.get("employmentStoreCodes") or [],
            "employment_franchise_codes": user.get("franchiseCodes") or [],
            "role": user.get("role") or "customer",
        }, context={"delimiter": delimiter})
