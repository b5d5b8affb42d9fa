"""Authentication helpers: bearer token sources."""

from azguard.auth.credentials import (
    AzureCredential,
    CLISession,
    DeferredTokenSource,
    ManagedIdentity,
    ServicePrincipal,
    TokenSource,
    create_token_source,
    get_subscription_id_from_cli,
)

__all__ = [
    "TokenSource",
    "AzureCredential",
    "CLISession",
    "DeferredTokenSource",
    "ServicePrincipal",
    "ManagedIdentity",
    "create_token_source",
    "get_subscription_id_from_cli",
]
