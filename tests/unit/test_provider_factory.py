"""Tests for provider construction and the missing-provider placeholder."""

from __future__ import annotations

import pytest

from asset_tracker.core.config import ProviderConfig, TrackerConfig
from asset_tracker.core.exceptions import ProviderConfigError, ProviderError
from asset_tracker.providers import (
    CoinGeckoProvider,
    MissingProvider,
    MobulaProvider,
    ProviderSet,
    QuoteProvider,
    YahooFinanceProvider,
    build_crypto_provider,
    build_providers,
    build_stock_provider,
)
from asset_tracker.providers.coingecko import COINGECKO_PRO_BASE_URL, COINGECKO_PUBLIC_BASE_URL


class TestMissingProvider:
    async def test_empty_request_succeeds(self):
        assert await MissingProvider("stock").fetch_quotes([]) == []

    async def test_non_empty_request_fails(self):
        provider = MissingProvider("crypto")
        with pytest.raises(ProviderConfigError, match="crypto provider not configured"):
            await provider.fetch_quotes(["bitcoin"])

    async def test_is_a_provider_error(self):
        with pytest.raises(ProviderError):
            await MissingProvider("stock").fetch_quotes(["AAPL"])

    def test_name(self):
        assert MissingProvider("stock").name == "missing-stock"

    def test_satisfies_protocol(self):
        assert isinstance(MissingProvider("stock"), QuoteProvider)


class TestBuildStockProvider:
    async def test_yahoo(self):
        provider = build_stock_provider(ProviderConfig(name="Yahoo"))
        try:
            assert isinstance(provider, YahooFinanceProvider)
        finally:
            await provider.close()

    @pytest.mark.parametrize("name", ["", "   ", "http", "bloomberg"])
    def test_unknown_or_blank_is_missing(self, name):
        provider = build_stock_provider(ProviderConfig(name=name))
        assert isinstance(provider, MissingProvider)
        assert provider.kind == "stock"


class TestBuildCryptoProvider:
    async def test_mobula(self):
        provider = build_crypto_provider(
            ProviderConfig(name="mobula", api_key="k", base_url="https://mobula.test")
        )
        try:
            assert isinstance(provider, MobulaProvider)
            assert provider.base_url == "https://mobula.test"
        finally:
            await provider.close()

    async def test_coingecko_public(self):
        provider = build_crypto_provider(ProviderConfig(name="coingecko", api_key="k"))
        try:
            assert isinstance(provider, CoinGeckoProvider)
            assert provider.base_url == COINGECKO_PUBLIC_BASE_URL
            assert provider.api_key_header == "x-cg-demo-api-key"
        finally:
            await provider.close()

    async def test_coingecko_pro(self):
        provider = build_crypto_provider(
            ProviderConfig(name=" CoinGecko-Pro ", api_key="k")
        )
        try:
            assert provider.base_url == COINGECKO_PRO_BASE_URL
            assert provider.api_key_header == "x-cg-pro-api-key"
        finally:
            await provider.close()

    def test_unknown_is_missing(self):
        provider = build_crypto_provider(ProviderConfig(name="binance"))
        assert isinstance(provider, MissingProvider)
        assert provider.kind == "crypto"


class TestBuildProviders:
    async def test_builds_pair(self):
        config = TrackerConfig(
            stock_provider=ProviderConfig(name="yahoo"),
            crypto_provider=ProviderConfig(name="mobula", api_key="k"),
        )
        async with build_providers(config) as providers:
            assert isinstance(providers, ProviderSet)
            assert isinstance(providers.stock, YahooFinanceProvider)
            assert isinstance(providers.crypto, MobulaProvider)

    async def test_defaults_are_missing(self):
        async with build_providers(TrackerConfig()) as providers:
            assert isinstance(providers.stock, MissingProvider)
            assert isinstance(providers.crypto, MissingProvider)


class _ClosingProvider:
    def __init__(self, name: str, closed: list[str], error: Exception | None = None):
        self.name = name
        self._closed = closed
        self._error = error

    async def fetch_quotes(self, lookup_keys):
        return []

    async def close(self) -> None:
        if self._error is not None:
            raise self._error
        self._closed.append(self.name)


class TestProviderSetClose:
    async def test_closes_both(self):
        closed: list[str] = []
        providers = ProviderSet(
            stock=_ClosingProvider("stock", closed),
            crypto=_ClosingProvider("crypto", closed),
        )
        await providers.close()
        assert closed == ["stock", "crypto"]

    async def test_crypto_closed_when_stock_close_fails(self):
        closed: list[str] = []
        providers = ProviderSet(
            stock=_ClosingProvider("stock", closed, error=RuntimeError("close failed")),
            crypto=_ClosingProvider("crypto", closed),
        )
        with pytest.raises(RuntimeError, match="close failed"):
            async with providers:
                pass
        assert closed == ["crypto"]

    async def test_provider_without_close_is_skipped(self):
        class NoClose:
            name = "no-close"

            async def fetch_quotes(self, lookup_keys):
                return []

        closed: list[str] = []
        providers = ProviderSet(
            stock=NoClose(),
            crypto=_ClosingProvider("crypto", closed),
        )
        await providers.close()
        assert closed == ["crypto"]
