"""Resolve provider configuration into one stock and one crypto adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from asset_tracker.core.config import ProviderConfig, TrackerConfig
from asset_tracker.core.models import AssetType, CryptoProviderKind, StockProviderKind
from asset_tracker.providers.base import QuoteProvider
from asset_tracker.providers.coingecko import CoinGeckoProvider, coingecko_default_base_url
from asset_tracker.providers.missing import MissingProvider
from asset_tracker.providers.mobula import MobulaProvider
from asset_tracker.providers.yahoo import YahooFinanceProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderSet:
    """The pair of adapters the refresh service talks to."""

    stock: QuoteProvider
    crypto: QuoteProvider

    async def __aenter__(self) -> ProviderSet:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close both adapters, even when the first close fails."""
        try:
            await _close_provider(self.stock)
        finally:
            await _close_provider(self.crypto)


async def _close_provider(provider: QuoteProvider) -> None:
    close = getattr(provider, "close", None)
    if close is not None:
        await close()


def _provider_kind(config: ProviderConfig) -> str:
    return config.name.strip().lower()


def build_stock_provider(config: ProviderConfig) -> QuoteProvider:
    kind = _provider_kind(config)
    if kind == StockProviderKind.YAHOO:
        return YahooFinanceProvider(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=config.timeout_seconds,
            rate_limit=config.rate_limit,
        )
    if kind:
        logger.warning("Unknown stock provider %r, stock prices disabled", config.name)
    return MissingProvider(AssetType.STOCK.value)


def build_crypto_provider(config: ProviderConfig) -> QuoteProvider:
    kind = _provider_kind(config)
    options = dict(
        api_key=config.api_key,
        timeout=config.timeout_seconds,
        rate_limit=config.rate_limit,
    )
    if kind == CryptoProviderKind.MOBULA:
        return MobulaProvider(base_url=config.base_url, **options)
    if kind == CryptoProviderKind.COINGECKO:
        return CoinGeckoProvider(
            base_url=config.base_url or coingecko_default_base_url("public"),
            **options,
        )
    if kind == CryptoProviderKind.COINGECKO_PRO:
        return CoinGeckoProvider(
            base_url=config.base_url or coingecko_default_base_url("pro"),
            **options,
        )
    if kind:
        logger.warning("Unknown crypto provider %r, crypto prices disabled", config.name)
    return MissingProvider(AssetType.CRYPTO.value)


def build_providers(config: TrackerConfig) -> ProviderSet:
    """Build the provider set once at startup."""
    return ProviderSet(
        stock=build_stock_provider(config.stock_provider),
        crypto=build_crypto_provider(config.crypto_provider),
    )
