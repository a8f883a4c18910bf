"""asset_tracker.core: foundation types, config, and exceptions."""

from asset_tracker.core.config import (
    ProviderConfig,
    StorageConfig,
    TrackerConfig,
    WorkerConfig,
    load_config,
)
from asset_tracker.core.exceptions import (
    AssetTrackerError,
    ConfigError,
    ProviderConfigError,
    ProviderError,
    RefreshError,
    StorageError,
)
from asset_tracker.core.models import (
    AppSettings,
    AssetID,
    AssetQuote,
    AssetType,
    CryptoProviderKind,
    CurrentPrice,
    DueAsset,
    LookupKey,
    PriceUpdate,
    ProviderName,
    RefreshResult,
    StockProviderKind,
    TrackedAsset,
)

__all__ = [
    # Type aliases
    "AssetID",
    "LookupKey",
    "ProviderName",
    # Enums
    "AssetType",
    "StockProviderKind",
    "CryptoProviderKind",
    # Models
    "AppSettings",
    "TrackedAsset",
    "AssetQuote",
    "PriceUpdate",
    "CurrentPrice",
    "DueAsset",
    "RefreshResult",
    # Config
    "TrackerConfig",
    "StorageConfig",
    "ProviderConfig",
    "WorkerConfig",
    "load_config",
    # Exceptions
    "AssetTrackerError",
    "ConfigError",
    "ProviderError",
    "ProviderConfigError",
    "StorageError",
    "RefreshError",
]
