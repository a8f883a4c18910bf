"""Custom exception hierarchy for asset-tracker."""

from typing import Any


class AssetTrackerError(Exception):
    """Base exception for all asset-tracker errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(AssetTrackerError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value (redacted for secrets)
    """


class ProviderError(AssetTrackerError):
    """A quote provider failed to return prices.

    Policy: fail that provider's fetch for the cycle. The other asset class
    is still fetched and persisted.

    Context keys:
        provider (str): the provider name
        status_code (int | None): HTTP status code if applicable
        url (str | None): the URL that was being fetched
    """


class ProviderConfigError(ProviderError):
    """A provider is unconfigured or missing its credentials.

    Raised before any network call. Never retried within a cycle.

    Context keys:
        provider (str): the provider name or asset class
        field (str): the missing setting ("api_key", "name", ...)
    """


class StorageError(AssetTrackerError):
    """Database operation failed.

    Policy: report and continue. Both price write paths are always attempted.

    Context keys:
        operation (str): "insert", "upsert", "query", "migrate", etc.
        table (str): the table involved
    """


class RefreshError(AssetTrackerError):
    """One refresh cycle finished with one or more independent failures.

    Every write that could succeed was still performed. ``errors`` holds the
    original exceptions in the order they occurred.
    """

    def __init__(
        self,
        errors: list[Exception],
        context: dict[str, Any] | None = None,
    ):
        self.errors = list(errors)
        message = "\n".join(str(e) for e in self.errors) or "refresh failed"
        super().__init__(message, context=context)
