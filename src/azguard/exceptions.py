"""Error types raised by azguard."""

from __future__ import annotations


class AzGuardError(Exception):
    """Base class for all azguard errors."""

    pass


class ConfigurationError(AzGuardError):
    """Invalid or missing configuration (account id, thresholds, auth method)."""

    pass


class AuthenticationError(AzGuardError):
    """Could not authenticate against the cloud provider."""

    pass


class TokenError(AuthenticationError):
    """A token source failed to produce a bearer token."""

    pass


class SubscriptionNotConfiguredError(ConfigurationError, AuthenticationError):
    """No subscription id is configured, so no provider call can be made."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "subscription ID is not configured; run "
            "'azguard config set azure.subscription_id YOUR_SUBSCRIPTION_ID'"
        )


class UpstreamError(AzGuardError):
    """The billing or forecast endpoint returned an error or could not be reached."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class StorageError(AzGuardError):
    """A local storage operation failed (connection, schema, constraint)."""

    pass
