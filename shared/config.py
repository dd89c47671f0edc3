"""
Shared configuration management for the access-control policy engine.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="ACCESS_ENV")
    log_level: str = Field(default="info", validation_alias="ACCESS_LOG_LEVEL")


class AccessControlSettings(BaseSettings):
    """Policy engine settings, read from ACCESS_CONTROL_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_CONTROL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    policy_key_prefix: str = "policy_"
    policy_listing: Literal["full_scan", "prefix"] = "full_scan"

    # Compatibility switches; defaults keep the ledger's historical behaviour
    reindex_on_update: bool = False
    enforce_object_location: bool = False

    # Commit conflict handling in the ledger host
    commit_retry_attempts: int = Field(default=3, ge=1)
    commit_retry_base_delay: float = Field(default=0.05, ge=0.0)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"
    access_control: AccessControlSettings = Field(default_factory=AccessControlSettings)

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
