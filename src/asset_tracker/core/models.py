"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# --- Type Aliases ---

AssetID = int
LookupKey = str
ProviderName = str

# --- Enumerations ---


class AssetType(StrEnum):
    """Asset classes the refresh engine knows how to price."""

    STOCK = "stock"
    CRYPTO = "crypto"


class StockProviderKind(StrEnum):
    """Supported stock quote providers."""

    YAHOO = "yahoo"


class CryptoProviderKind(StrEnum):
    """Supported crypto quote providers."""

    MOBULA = "mobula"
    COINGECKO = "coingecko"
    COINGECKO_PRO = "coingecko-pro"


# --- Store Models ---


class AppSettings(BaseModel):
    """Global refresh interval bounds, read once per cycle."""

    model_config = ConfigDict(frozen=True)

    min_refresh_interval_sec: int
    max_refresh_interval_sec: int

    @field_validator("min_refresh_interval_sec")
    @classmethod
    def min_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"min_refresh_interval_sec must be > 0, got {v}")
        return v

    @model_validator(mode="after")
    def min_lte_max(self) -> AppSettings:
        if self.min_refresh_interval_sec > self.max_refresh_interval_sec:
            raise ValueError(
                f"min_refresh_interval_sec ({self.min_refresh_interval_sec}) "
                f"must be <= max_refresh_interval_sec ({self.max_refresh_interval_sec})"
            )
        return self


class TrackedAsset(BaseModel):
    """An asset held by at least one user's lot.

    ``type`` stays a plain string so that classes the engine does not know
    about can be read from the store and skipped instead of failing the read.
    """

    model_config = ConfigDict(frozen=True)

    id: AssetID
    symbol: str
    market_data_id: str = ""
    lookup_blockchain: str = ""
    lookup_address: str = ""
    type: str
    min_user_refresh_sec: int


class AssetQuote(BaseModel):
    """A single price returned by a provider for one lookup key."""

    model_config = ConfigDict(frozen=True)

    lookup_key: LookupKey
    price: float
    provider: ProviderName


class PriceUpdate(BaseModel):
    """A matched quote, written to both current prices and snapshots."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetID
    price: float
    fetched_at: datetime
    provider: ProviderName


class CurrentPrice(BaseModel):
    """The latest stored price for an asset."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetID
    price: float
    fetched_at: datetime
    provider: ProviderName


# --- Scheduling Models ---


class DueAsset(BaseModel):
    """A tracked asset selected for this cycle, with its resolved interval."""

    model_config = ConfigDict(frozen=True)

    asset: TrackedAsset
    interval: timedelta

    @property
    def id(self) -> AssetID:
        return self.asset.id

    @property
    def type(self) -> str:
        return self.asset.type


class RefreshResult(BaseModel):
    """Summary of one completed refresh cycle."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime
    tracked_count: int = 0
    due_count: int = 0
    requested: dict[str, list[LookupKey]] = {}
    updates: list[PriceUpdate] = []

    @property
    def update_count(self) -> int:
        return len(self.updates)

    @property
    def is_noop(self) -> bool:
        return self.due_count == 0
