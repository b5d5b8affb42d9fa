"""Configuration loader for azguard."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from azguard.config.schema import Config
from azguard.exceptions import ConfigurationError

DEFAULT_CONFIG_DIR = "~/.azguard"

_GUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

_PLACEHOLDER_SUBSCRIPTIONS = (
    "providers",
    "YOUR_SUBSCRIPTION_ID",
    "YOUR_SUB_ID",
    "<subscription-id>",
    "subscription-id",
)

_MISSING = object()


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir() -> Path:
    """Find the config directory from AZGUARD_CONFIG_DIR or the home default."""
    if config_dir := os.environ.get("AZGUARD_CONFIG_DIR"):
        return Path(config_dir).expanduser()
    return Path(DEFAULT_CONFIG_DIR).expanduser()


def _read_yaml(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_config(
    config_path: str | Path | None = None,
    profile: str | None = None,
) -> Config:
    """
    Load configuration from YAML files.

    Loads config.yaml as base, then merges profile-specific overrides
    (e.g., config.work.yaml), then environment variables.

    Args:
        config_path: Path to config directory. If None, uses AZGUARD_CONFIG_DIR
                    or ~/.azguard.
        profile: Optional profile name. If None, uses the AZGUARD_PROFILE
                environment variable when set.

    Returns:
        Config: Validated configuration object.

    Raises:
        ConfigurationError: If a file cannot be parsed or fails validation.
    """
    config_dir = Path(config_path).expanduser() if config_path else _find_config_dir()
    profile = profile or os.environ.get("AZGUARD_PROFILE")

    config_data: dict = {}

    base_config_path = config_dir / "config.yaml"
    if base_config_path.exists():
        config_data = _read_yaml(base_config_path)

    if profile:
        profile_config_path = config_dir / f"config.{profile}.yaml"
        if profile_config_path.exists():
            config_data = _deep_merge(config_data, _read_yaml(profile_config_path))

    config_data = _apply_env_overrides(config_data)

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration."""
    env_mappings = {
        "AZURE_SUBSCRIPTION_ID": ("azure", "subscription_id"),
        "AZURE_TENANT_ID": ("azure", "tenant_id"),
        "AZURE_CLIENT_ID": ("azure", "client_id"),
        "AZURE_CLIENT_SECRET": ("azure", "client_secret"),
        "AZGUARD_AUTH_METHOD": ("azure", "auth_method"),
        "AZGUARD_STORAGE_PATH": ("storage", "path"),
    }

    for env_var, path in env_mappings.items():
        if value := os.environ.get(env_var):
            _set_path(config_data, path, value)

    return config_data


def _set_path(data: dict, path: tuple[str, ...], value: Any) -> None:
    current = data
    for key in path[:-1]:
        current = current.setdefault(key, {})
    current[path[-1]] = value


def apply_overrides(config: Config, overrides: dict[str, str]) -> Config:
    """
    Layer stored key/value overrides on top of a loaded config.

    Keys are dotted paths into the config tree (e.g. ``azure.subscription_id``).
    Keys that do not name a known setting are ignored, since the store may hold
    arbitrary user keys.

    Raises:
        ConfigurationError: If an override produces an invalid config.
    """
    if not overrides:
        return config

    data = config.model_dump()
    for key, value in overrides.items():
        path = tuple(key.split("."))
        if _lookup(data, path) is _MISSING:
            continue
        _set_path(data, path, value)

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid stored configuration override: {e}") from e


def _lookup(data: Any, path: tuple[str, ...]) -> Any:
    current = data
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def get_setting(config: Config, key: str) -> Any | None:
    """Look up a dotted key in the config, returning None when it does not exist."""
    value = _lookup(config.model_dump(), tuple(key.split(".")))
    return None if value is _MISSING else value


def validate_subscription_id(subscription_id: str | None) -> str:
    """
    Check that a subscription ID looks like a real Azure subscription GUID.

    Returns:
        The subscription ID, unchanged.

    Raises:
        ConfigurationError: If the ID is empty, a placeholder, or not a GUID.
    """
    if not subscription_id:
        raise ConfigurationError("subscription ID is empty")

    for placeholder in _PLACEHOLDER_SUBSCRIPTIONS:
        if subscription_id.lower() == placeholder.lower():
            raise ConfigurationError(
                f"subscription ID appears to be a placeholder value ('{subscription_id}'). "
                "Run 'azguard config set azure.subscription_id YOUR_ACTUAL_SUBSCRIPTION_ID' "
                "or 'az login' to configure"
            )

    if not _GUID_PATTERN.match(subscription_id):
        raise ConfigurationError(
            f"subscription ID '{subscription_id}' does not match the expected GUID format. "
            "Run 'az account list' to find your subscription ID"
        )

    return subscription_id
