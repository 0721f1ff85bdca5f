"""
Shared configuration management for the Dashboard Control layer.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="DASHBOARD_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_format: Literal["json", "console"] = Field(default="json")

    # Snapshot cache
    redis_url: str = Field(default="redis://localhost:6379/0")
    snapshot_cache_enabled: bool = Field(default=True)

    # Snapshots
    snapshot_ttl_seconds: int = Field(default=3600, ge=0)
    max_snapshot_ttl_seconds: int = Field(default=86400, ge=1)
    checksum_algorithm: Literal["sha256", "rolling32"] = Field(default="sha256")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
