"""CoinGecko crypto quote provider.

Uses the ``/simple/price`` endpoint, which prices many coin ids in one
request. Coin ids are lower-case slugs (``bitcoin``, ``ethereum``).
"""

from __future__ import annotations

import logging

import httpx

from asset_tracker.core.exceptions import ProviderError
from asset_tracker.core.models import AssetQuote
from asset_tracker.providers.base import (
    DEFAULT_RATE_LIMIT,
    DEFAULT_TIMEOUT,
    HTTPQuoteProvider,
    dedupe_keys,
)

logger = logging.getLogger(__name__)

COINGECKO_PUBLIC_BASE_URL = "https://api.coingecko.com/api/v3"
COINGECKO_PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"
_PRO_HOST = "pro-api.coingecko.com"
_PRICE_PATH = "/simple/price"


def coingecko_default_base_url(plan: str) -> str:
    """Return the API root for the ``public`` or ``pro`` plan."""
    if plan.strip().lower() == "pro":
        return COINGECKO_PRO_BASE_URL
    return COINGECKO_PUBLIC_BASE_URL


def normalize_coin_id(value: str) -> str:
    return value.strip().lower()


class CoinGeckoProvider(HTTPQuoteProvider):
    """Fetches crypto prices from CoinGecko.

    Parameters
    ----------
    base_url : str
        API root. Defaults to the public plan when blank. The pro host
        switches the API key header to ``x-cg-pro-api-key``.
    api_key : str
        Demo or pro API key. Required.
    vs_currency : str
        Quote currency. Default: ``usd``.
    """

    name = "coingecko"

    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        vs_currency: str = "usd",
        timeout: float = DEFAULT_TIMEOUT,
        rate_limit: int = DEFAULT_RATE_LIMIT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            base_url or COINGECKO_PUBLIC_BASE_URL,
            api_key=api_key,
            timeout=timeout,
            rate_limit=rate_limit,
            client=client,
        )
        self._vs_currency = vs_currency
        if _PRO_HOST in self._base_url:
            self._api_key_header = "x-cg-pro-api-key"
        else:
            self._api_key_header = "x-cg-demo-api-key"

    @property
    def api_key_header(self) -> str:
        return self._api_key_header

    async def fetch_quotes(self, lookup_keys: list[str]) -> list[AssetQuote]:
        ids = dedupe_keys(lookup_keys, normalize_coin_id)
        if not ids:
            return []
        self._require_api_key()

        payload = await self._get_json(
            _PRICE_PATH,
            params={"ids": ",".join(ids), "vs_currencies": self._vs_currency},
            headers={self._api_key_header: self._api_key},
        )
        if not isinstance(payload, dict):
            raise ProviderError(
                f"coingecko returned unexpected payload type {type(payload).__name__}",
                context={"provider": self.name},
            )

        requested = set(ids)
        quotes: list[AssetQuote] = []
        for coin_id, values in payload.items():
            if coin_id not in requested or not isinstance(values, dict):
                continue
            price = values.get(self._vs_currency)
            if price is None:
                continue
            try:
                quotes.append(
                    AssetQuote(lookup_key=coin_id, price=float(price), provider=self.name)
                )
            except (TypeError, ValueError):
                logger.warning("Skipping coingecko price for %s: %r", coin_id, price)

        logger.debug("coingecko priced %d of %d ids", len(quotes), len(ids))
        return quotes
