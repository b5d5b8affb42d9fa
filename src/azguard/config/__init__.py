"""Configuration management for azguard."""

from azguard.config.schema import (
    AnalysisConfig,
    AzureConfig,
    Config,
    HTTPConfig,
    StorageConfig,
)
from azguard.config.loader import (
    apply_overrides,
    get_setting,
    load_config,
    validate_subscription_id,
)

__all__ = [
    "Config",
    "AzureConfig",
    "StorageConfig",
    "HTTPConfig",
    "AnalysisConfig",
    "load_config",
    "apply_overrides",
    "get_setting",
    "validate_subscription_id",
]
