"""
Shared error handling for the Pet Store authorization layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class PetStoreAuthzException(Exception):
    """Base exception for the authorization layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthorizationError(PetStoreAuthzException):
    """Access was denied for a request."""

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class ValidationError(PetStoreAuthzException):
    """Structurally invalid input handed over by the caller."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidContextError(ValidationError):
    """Malformed authorization context, raised before any policy is evaluated."""

    def __init__(self, message: str = "Invalid authorization context", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "INVALID_CONTEXT"


class DuplicateEntityError(ValidationError):
    """Two entities with the same identifier in one collection."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"Entity {entity_type}::{entity_id} already present in collection",
            {"entity_type": entity_type, "entity_id": entity_id}
        )
        self.code = "DUPLICATE_ENTITY"
