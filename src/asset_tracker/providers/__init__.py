"""Quote provider adapters.

Each upstream pricing source gets one adapter implementing
``QuoteProvider.fetch_quotes(lookup_keys)``:

- ``YahooFinanceProvider``: stock prices, symbols keep their case.
- ``CoinGeckoProvider``: crypto prices, coin ids lower-cased.
- ``MobulaProvider``: crypto prices, multi-shape response parsing.
- ``MissingProvider``: placeholder for an unconfigured asset class.

``build_providers`` turns configuration into a ``ProviderSet``.
"""

from asset_tracker.providers.base import HTTPQuoteProvider, QuoteProvider
from asset_tracker.providers.coingecko import CoinGeckoProvider
from asset_tracker.providers.factory import (
    ProviderSet,
    build_crypto_provider,
    build_providers,
    build_stock_provider,
)
from asset_tracker.providers.missing import MissingProvider
from asset_tracker.providers.mobula import MobulaProvider
from asset_tracker.providers.yahoo import YahooFinanceProvider

__all__ = [
    "QuoteProvider",
    "HTTPQuoteProvider",
    "YahooFinanceProvider",
    "CoinGeckoProvider",
    "MobulaProvider",
    "MissingProvider",
    "ProviderSet",
    "build_providers",
    "build_stock_provider",
    "build_crypto_provider",
]
