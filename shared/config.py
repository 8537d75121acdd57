"""
Shared configuration management for the Pet Store authorization layer.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EvaluationMode(str, Enum):
    """How the decision engine resolves several applicable policies."""
    FIRST_MATCH = "first_match"
    FORBID_FIRST = "forbid_first"


class AuthorizationConfig(BaseSettings):
    """Authorization engine settings, read from AUTHZ_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="AUTHZ_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Decision engine
    evaluation_mode: EvaluationMode = Field(default=EvaluationMode.FIRST_MATCH)

    # Entity building
    claims_delimiter: str = Field(default=",", min_length=1)
    store_key_separator: str = Field(default="#", min_length=1)
    application_resource_id: str = Field(default="PetStore")

    # Routing
    api_prefix: str = Field(default="/api/v1")


@lru_cache(maxsize=1)
def get_config() -> AuthorizationConfig:
    """Get the process-wide authorization configuration."""
    return AuthorizationConfig()
