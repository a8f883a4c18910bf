"""Quote provider protocol and the shared HTTP adapter base.

Architecture
------------
Every upstream pricing source is wrapped by an adapter that speaks one
contract:

    lookup keys → QuoteProvider.fetch_quotes → list[AssetQuote]

Adapters absorb their source's response shape, key casing rules and
authentication. The refresh service depends only on ``QuoteProvider``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol, runtime_checkable

import httpx
from aiolimiter import AsyncLimiter

from asset_tracker.core.exceptions import ProviderConfigError, ProviderError
from asset_tracker.core.models import AssetQuote

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_RATE_LIMIT = 5
# Upper bound on the response body excerpt carried in error messages
MAX_ERROR_BODY = 2048


@runtime_checkable
class QuoteProvider(Protocol):
    """Consumer-facing interface for fetching current prices.

    Implementations must return ``[]`` without any network call when the
    normalized key list is empty, and must never return a quote for a key
    that was not requested.
    """

    name: str

    async def fetch_quotes(self, lookup_keys: list[str]) -> list[AssetQuote]: ...


def dedupe_keys(keys: Iterable[str], normalize: Callable[[str], str]) -> list[str]:
    """Normalize keys, drop blanks and duplicates, keep first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for key in keys:
        value = normalize(key)
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


class HTTPQuoteProvider:
    """Base class for adapters backed by a JSON HTTP API.

    Owns one ``httpx.AsyncClient`` with a mandatory per-request timeout and
    an ``AsyncLimiter`` token bucket. Use via ``async with`` or call
    ``close()`` when done.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        rate_limit: int = DEFAULT_RATE_LIMIT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.strip().rstrip("/")
        self._api_key = api_key.strip()
        self._limiter = AsyncLimiter(max_rate=rate_limit, time_period=1.0)
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )

    async def __aenter__(self) -> HTTPQuoteProvider:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _require_api_key(self) -> None:
        if not self._api_key:
            raise ProviderConfigError(
                f"{self.name} api key is not set",
                context={"provider": self.name, "field": "api_key"},
            )

    async def _get_json(
        self,
        path: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET ``base_url + path`` and decode the JSON body.

        Raises:
            ProviderError: transport failure, non-2xx status, or a body
                that is not valid JSON.
        """
        response = await self._get(path, params=params, headers=headers)
        self._raise_for_status(response, path)
        return self._decode_json(response, path)

    async def _get(
        self,
        path: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Rate-limited GET that only fails on transport errors."""
        url = f"{self._base_url}{path}"
        await self._limiter.acquire()
        try:
            return await self._client.get(url, params=params, headers=headers)
        except httpx.RequestError as e:
            raise ProviderError(
                f"{self.name} request failed: {e}",
                context={"provider": self.name, "url": url},
            ) from e

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        if response.is_success:
            return
        excerpt = response.text[:MAX_ERROR_BODY].strip()
        raise ProviderError(
            f"{self.name} error: status {response.status_code}: {excerpt}",
            context={
                "provider": self.name,
                "url": f"{self._base_url}{path}",
                "status_code": response.status_code,
            },
        )

    def _decode_json(self, response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProviderError(
                f"{self.name} returned malformed JSON: {e}",
                context={"provider": self.name, "url": f"{self._base_url}{path}"},
            ) from e
