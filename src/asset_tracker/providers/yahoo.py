"""Yahoo Finance stock quote provider over plain HTTP.

Uses the unauthenticated ``/v8/finance/chart/`` endpoint via httpx. The
chart ``meta`` block carries ``regularMarketPrice``, the latest traded
price, so a one-day range is enough to price a symbol.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

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

_PROVIDER_NAME = "yahoo_finance"
YAHOO_DEFAULT_BASE_URL = "https://query2.finance.yahoo.com"
_CHART_PATH = "/v8/finance/chart"
_USER_AGENT = "Mozilla/5.0 (compatible; asset-tracker/0.1)"


def normalize_symbol(value: str) -> str:
    """Stock symbols are trimmed but keep their case."""
    return value.strip()


def chart_error(payload: Any) -> Any:
    """Return the ``chart.error`` entry of a response, or None."""
    if not isinstance(payload, dict):
        return None
    chart = payload.get("chart")
    if not isinstance(chart, dict):
        return None
    return chart.get("error") or None


def extract_price(payload: Any, symbol: str, url: str = "") -> float | None:
    """Pull ``regularMarketPrice`` out of a chart response.

    Returns None when the response reports an API-level error or carries
    no usable price.

    Raises:
        ProviderError: the body is not a chart document.
    """
    chart = payload.get("chart") if isinstance(payload, dict) else None
    if not isinstance(chart, dict):
        raise ProviderError(
            f"{_PROVIDER_NAME} returned an unexpected body for {symbol}",
            context={"provider": _PROVIDER_NAME, "url": url},
        )

    err = chart_error(payload)
    if err:
        logger.warning(
            "Yahoo Finance API error for %s: %s %s",
            symbol,
            err.get("code") if isinstance(err, dict) else err,
            err.get("description") if isinstance(err, dict) else "",
        )
        return None

    results = chart.get("result")
    if results is None:
        results = []
    if not isinstance(results, list):
        raise ProviderError(
            f"{_PROVIDER_NAME} returned a non-list chart result for {symbol}",
            context={"provider": _PROVIDER_NAME, "url": url},
        )
    if not results or not isinstance(results[0], dict):
        logger.warning("Yahoo Finance returned no results for %s", symbol)
        return None

    meta = results[0].get("meta")
    price = meta.get("regularMarketPrice") if isinstance(meta, dict) else None
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        logger.warning("Yahoo Finance returned no price for %s", symbol)
        return None
    return float(price)


class YahooFinanceProvider(HTTPQuoteProvider):
    """Fetches stock prices from Yahoo Finance's chart API.

    Makes one rate-limited request per symbol. The endpoint needs no
    credentials, so ``api_key`` is accepted for interface symmetry and
    otherwise ignored.

    A 404 whose body carries ``chart.error`` only drops that symbol. Any
    other non-2xx status fails the whole batch.
    """

    name = _PROVIDER_NAME

    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        rate_limit: int = DEFAULT_RATE_LIMIT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            base_url or YAHOO_DEFAULT_BASE_URL,
            api_key=api_key,
            timeout=timeout,
            rate_limit=rate_limit,
            client=client,
        )

    async def fetch_quotes(self, lookup_keys: list[str]) -> list[AssetQuote]:
        symbols = dedupe_keys(lookup_keys, normalize_symbol)
        quotes: list[AssetQuote] = []
        for symbol in symbols:
            path = f"{_CHART_PATH}/{quote(symbol, safe='')}"
            response = await self._get(
                path,
                params={"interval": "1d", "range": "1d"},
                headers={"User-Agent": _USER_AGENT},
            )
            # Unknown and delisted symbols come back as 404 with a chart.error body
            if response.status_code == 404 and self._is_symbol_miss(response):
                logger.warning("Yahoo Finance has no chart for %s", symbol)
                continue
            self._raise_for_status(response, path)
            payload = self._decode_json(response, path)
            price = extract_price(payload, symbol, url=f"{self.base_url}{path}")
            if price is None:
                continue
            quotes.append(AssetQuote(lookup_key=symbol, price=price, provider=self.name))
        return quotes

    @staticmethod
    def _is_symbol_miss(response: httpx.Response) -> bool:
        try:
            payload = response.json()
        except ValueError:
            return False
        return chart_error(payload) is not None
