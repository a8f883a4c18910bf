"""Shared pytest fixtures for asset-tracker."""

from datetime import datetime, timezone

import pytest

from asset_tracker.core.models import AppSettings, AssetQuote, PriceUpdate, TrackedAsset


class FakeStore:
    """In-memory stand-in for the price store that records every write."""

    def __init__(self, settings=None, tracked=None):
        self.settings = settings or AppSettings(
            min_refresh_interval_sec=60, max_refresh_interval_sec=3600
        )
        self.tracked = list(tracked or [])
        self.settings_error = None
        self.tracked_error = None
        self.upsert_error = None
        self.snapshot_error = None
        self.upsert_calls: list[list[PriceUpdate]] = []
        self.snapshot_calls: list[list[PriceUpdate]] = []

    async def fetch_app_settings(self):
        if self.settings_error is not None:
            raise self.settings_error
        return self.settings

    async def fetch_tracked_assets(self):
        if self.tracked_error is not None:
            raise self.tracked_error
        return list(self.tracked)

    async def upsert_current_prices(self, updates):
        self.upsert_calls.append(list(updates))
        if self.upsert_error is not None:
            raise self.upsert_error

    async def insert_price_snapshots(self, updates):
        self.snapshot_calls.append(list(updates))
        if self.snapshot_error is not None:
            raise self.snapshot_error


class FakeProvider:
    """Quote provider returning canned quotes and recording requested keys."""

    def __init__(self, name="fake", quotes=None, error=None):
        self.name = name
        self.quotes = list(quotes or [])
        self.error = error
        self.calls: list[list[str]] = []

    async def fetch_quotes(self, lookup_keys):
        self.calls.append(list(lookup_keys))
        if self.error is not None:
            raise self.error
        return list(self.quotes)


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(min_refresh_interval_sec=60, max_refresh_interval_sec=3600)


@pytest.fixture
def cycle_start() -> datetime:
    return datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_asset():
    """Factory for TrackedAsset with overridable defaults."""

    def _make(**overrides):
        defaults = dict(
            id=1,
            symbol="AAPL",
            market_data_id="",
            type="stock",
            min_user_refresh_sec=120,
        )
        defaults.update(overrides)
        return TrackedAsset(**defaults)

    return _make


@pytest.fixture
def stock_asset(make_asset) -> TrackedAsset:
    return make_asset(id=1, symbol="AAPL", type="stock", min_user_refresh_sec=120)


@pytest.fixture
def crypto_asset(make_asset) -> TrackedAsset:
    return make_asset(
        id=2,
        symbol="BTC",
        market_data_id="bitcoin",
        type="crypto",
        min_user_refresh_sec=30,
    )


@pytest.fixture
def fake_store(stock_asset, crypto_asset) -> FakeStore:
    return FakeStore(tracked=[stock_asset, crypto_asset])


@pytest.fixture
def stock_provider() -> FakeProvider:
    return FakeProvider(
        name="stock-test",
        quotes=[AssetQuote(lookup_key="AAPL", price=190.0, provider="stock-test")],
    )


@pytest.fixture
def crypto_provider() -> FakeProvider:
    return FakeProvider(
        name="crypto-test",
        quotes=[AssetQuote(lookup_key="bitcoin", price=50000.0, provider="crypto-test")],
    )


@pytest.fixture
def make_store():
    """Factory for FakeStore instances."""
    return FakeStore


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider
