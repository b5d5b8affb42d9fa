"""Pydantic configuration schema for azguard."""

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator

AuthMethod = Literal["cli", "service_principal", "managed_identity"]


def expand_home(path: str) -> str:
    """Expand a leading ``~`` or ``$HOME`` in a path."""
    if path.startswith("~"):
        return os.path.expanduser(path)
    if path.startswith("$HOME"):
        return os.path.expanduser("~") + path[len("$HOME"):]
    return path


class AzureConfig(BaseModel):
    """Azure subscription and authentication configuration."""

    auth_method: AuthMethod = "cli"
    subscription_id: str | None = None
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None  # Prefer AZURE_CLIENT_SECRET over the config file
    management_url: str = "https://management.azure.com"
    api_version: str = "2023-03-01"


class StorageConfig(BaseModel):
    """Local database configuration."""

    path: str = "~/.azguard/data.db"

    @field_validator("path")
    @classmethod
    def _expand_path(cls, value: str) -> str:
        return expand_home(value)


class HTTPConfig(BaseModel):
    """Outbound HTTP configuration."""

    timeout_seconds: float = Field(default=60.0, gt=0, le=300)


class AnalysisConfig(BaseModel):
    """Trend, history and report settings."""

    stable_threshold_percent: float = Field(default=5.0, ge=0)  # +/- band treated as stable
    average_months: int = Field(default=6, ge=1, le=24)
    top_services: int = Field(default=5, ge=1)
    history_days: int = Field(default=30, ge=1)


class Config(BaseModel):
    """Root configuration for azguard."""

    default_currency: str = "USD"

    azure: AzureConfig = Field(default_factory=AzureConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
