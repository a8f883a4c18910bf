"""Tests for asset_tracker.core.models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from asset_tracker.core.models import (
    AppSettings,
    AssetQuote,
    AssetType,
    CryptoProviderKind,
    DueAsset,
    PriceUpdate,
    RefreshResult,
    StockProviderKind,
    TrackedAsset,
)

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestEnums:
    def test_asset_type_values(self):
        assert AssetType.STOCK == "stock"
        assert AssetType("crypto") is AssetType.CRYPTO

    def test_provider_kinds(self):
        assert StockProviderKind.YAHOO == "yahoo"
        assert {k.value for k in CryptoProviderKind} == {
            "mobula",
            "coingecko",
            "coingecko-pro",
        }


class TestAppSettings:
    def test_valid(self):
        s = AppSettings(min_refresh_interval_sec=60, max_refresh_interval_sec=3600)
        assert s.min_refresh_interval_sec == 60

    def test_min_must_be_positive(self):
        with pytest.raises(ValidationError, match="must be > 0"):
            AppSettings(min_refresh_interval_sec=0, max_refresh_interval_sec=10)

    def test_min_not_above_max(self):
        with pytest.raises(ValidationError, match="must be <= max_refresh_interval_sec"):
            AppSettings(min_refresh_interval_sec=100, max_refresh_interval_sec=10)

    def test_frozen(self):
        s = AppSettings(min_refresh_interval_sec=1, max_refresh_interval_sec=1)
        with pytest.raises(ValidationError):
            s.min_refresh_interval_sec = 5


class TestTrackedAsset:
    def test_optional_lookup_fields_default_blank(self):
        a = TrackedAsset(id=1, symbol="AAPL", type="stock", min_user_refresh_sec=60)
        assert a.market_data_id == ""
        assert a.lookup_blockchain == ""
        assert a.lookup_address == ""

    def test_unknown_type_accepted(self):
        a = TrackedAsset(id=1, symbol="X", type="bond", min_user_refresh_sec=60)
        assert a.type == "bond"


class TestDueAsset:
    def test_shortcuts(self):
        asset = TrackedAsset(id=7, symbol="BTC", type="crypto", min_user_refresh_sec=60)
        due = DueAsset(asset=asset, interval=timedelta(seconds=60))
        assert due.id == 7
        assert due.type == "crypto"


class TestRefreshResult:
    def test_noop(self):
        r = RefreshResult(started_at=NOW, tracked_count=3)
        assert r.is_noop
        assert r.update_count == 0

    def test_counts_updates(self):
        update = PriceUpdate(asset_id=1, price=1.0, fetched_at=NOW, provider="p")
        r = RefreshResult(started_at=NOW, due_count=2, updates=[update])
        assert not r.is_noop
        assert r.update_count == 1


class TestAssetQuote:
    def test_price_coerced(self):
        q = AssetQuote(lookup_key="bitcoin", price=5, provider="p")
        assert q.price == 5.0
