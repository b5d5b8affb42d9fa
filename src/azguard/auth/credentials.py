"""Azure bearer token sources.

Three ways of obtaining a management-plane token are supported, each modelled
as its own small frozen dataclass with an ``acquire()`` method that delegates
to the matching azure-identity credential:

- ``CLISession``: a logged-in Azure CLI (``AzureCliCredential``)
- ``ServicePrincipal``: client-credentials exchange (``ClientSecretCredential``)
- ``ManagedIdentity``: the identity of an Azure host (``ManagedIdentityCredential``)

``create_token_source`` is the only place that maps a configured auth method
name onto one of these.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Protocol, Union

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError
from azure.identity import AzureCliCredential, ClientSecretCredential, ManagedIdentityCredential

from azguard.config.schema import AzureConfig
from azguard.exceptions import ConfigurationError, TokenError

logger = logging.getLogger(__name__)

MANAGEMENT_SCOPE = "https://management.azure.com/.default"
DEFAULT_TOKEN_TIMEOUT = 30.0


class TokenSource(Protocol):
    """Anything that can hand out a bearer token."""

    def acquire(self) -> str:
        ...


def _get_token(credential: TokenCredential, description: str) -> str:
    try:
        token = credential.get_token(MANAGEMENT_SCOPE).token
    except AzureError as e:
        raise TokenError(f"{description} token request failed: {e}") from e
    if not token:
        raise TokenError(f"{description} returned an empty token")
    return token


@dataclass(frozen=True)
class CLISession:
    """Token from the Azure CLI's current login session."""

    timeout: float = DEFAULT_TOKEN_TIMEOUT

    def credential(self) -> AzureCliCredential:
        return AzureCliCredential(process_timeout=int(self.timeout))

    def acquire(self) -> str:
        return _get_token(self.credential(), "Azure CLI")


@dataclass(frozen=True)
class ServicePrincipal:
    """Token from an OAuth client-credentials exchange."""

    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)

    def credential(self) -> ClientSecretCredential:
        return ClientSecretCredential(
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )

    def acquire(self) -> str:
        return _get_token(self.credential(), "Service principal")


@dataclass(frozen=True)
class ManagedIdentity:
    """Token from the managed identity of an Azure-hosted machine."""

    client_id: str | None = None  # User-assigned identity; None means system-assigned

    def credential(self) -> ManagedIdentityCredential:
        if self.client_id:
            return ManagedIdentityCredential(client_id=self.client_id)
        return ManagedIdentityCredential()

    def acquire(self) -> str:
        return _get_token(self.credential(), "Managed identity")


AzureCredential = Union[CLISession, ServicePrincipal, ManagedIdentity]


def create_token_source(
    auth_method: str,
    azure: AzureConfig,
    timeout: float = DEFAULT_TOKEN_TIMEOUT,
) -> AzureCredential:
    """
    Build the token source for a configured auth method.

    Args:
        auth_method: One of "cli", "service_principal", "managed_identity".
        azure: Azure configuration carrying tenant/client settings.
        timeout: Timeout in seconds for the Azure CLI process.

    Raises:
        ConfigurationError: For an unknown method or missing credentials.
    """
    if auth_method == "cli":
        return CLISession(timeout=timeout)

    if auth_method == "service_principal":
        missing = [
            name
            for name in ("tenant_id", "client_id", "client_secret")
            if not getattr(azure, name)
        ]
        if missing:
            raise ConfigurationError(
                f"service_principal auth requires azure.{', azure.'.join(missing)}"
            )
        return ServicePrincipal(
            tenant_id=azure.tenant_id,
            client_id=azure.client_id,
            client_secret=azure.client_secret,
        )

    if auth_method == "managed_identity":
        return ManagedIdentity(client_id=azure.client_id)

    raise ConfigurationError(f"unknown auth method: {auth_method}")


def get_subscription_id_from_cli(timeout: float = DEFAULT_TOKEN_TIMEOUT) -> str:
    """
    Get the default subscription ID from the Azure CLI.

    Raises:
        TokenError: If the CLI is unavailable or not logged in.
    """
    output = _run_az(["account", "show", "--output", "json"], timeout=timeout)
    subscription_id = output.get("id")
    if not subscription_id:
        raise TokenError("no subscription ID found in Azure CLI output")
    return subscription_id


def _run_az(args: list[str], timeout: float) -> dict:
    """Run an ``az`` command and parse its JSON output."""
    logger.debug("Running az %s", " ".join(args))
    try:
        result = subprocess.run(
            ["az", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except FileNotFoundError as e:
        raise TokenError("Azure CLI ('az') is not installed or not on PATH") from e
    except subprocess.TimeoutExpired as e:
        raise TokenError(f"Azure CLI timed out after {timeout:.0f}s") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise TokenError(f"Azure CLI command failed (run 'az login' first): {stderr}") from e

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise TokenError(f"Failed to parse Azure CLI output: {e}") from e


@dataclass(frozen=True)
class DeferredTokenSource:
    """
    Build the real token source on first use.

    Commands that only read the local store never call acquire(), so an
    incomplete auth configuration does not affect them.
    """

    auth_method: str
    azure: AzureConfig
    timeout: float = DEFAULT_TOKEN_TIMEOUT

    def acquire(self) -> str:
        return create_token_source(self.auth_method, self.azure, self.timeout).acquire()
