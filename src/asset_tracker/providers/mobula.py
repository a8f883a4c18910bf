"""Mobula crypto quote provider.

The ``/api/1/market/multi-data`` endpoint is loosely typed: depending on
the query it returns rows as a JSON array, as a single object, or as an
object keyed by the requested asset, and a row's ``id`` may be a string,
an integer or a float. Parsing is an explicit chain of shape parsers tried
in a fixed order (see ``ROW_SHAPES``).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

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

MOBULA_DEFAULT_BASE_URL = "https://api.mobula.io"
_MULTI_DATA_PATH = "/api/1/market/multi-data"


@dataclass(frozen=True)
class MobulaRow:
    """One asset row as returned by Mobula, before identity resolution."""

    key: str
    id: Any
    price: float | None


# --- Key normalization ---


def is_numeric_id(value: str) -> bool:
    return bool(value) and value.isascii() and value.isdigit()


def normalize_lookup_key(key: str) -> str:
    """Trim; lower-case asset names but leave numeric ids untouched."""
    key = key.strip()
    if not key or is_numeric_id(key):
        return key
    return key.lower()


def partition_lookup_keys(keys: list[str]) -> tuple[list[str], list[str]]:
    """Split normalized keys into (numeric ids, asset names)."""
    ids = [k for k in keys if is_numeric_id(k)]
    names = [k for k in keys if not is_numeric_id(k)]
    return ids, names


def parse_mobula_id(raw: Any) -> str:
    """Render a row ``id`` (string, integer or float) as a lookup key.

    Raises:
        ValueError: the id is of any other type.
    """
    if isinstance(raw, str):
        return raw.strip()
    if isinstance(raw, bool):
        raise ValueError(f"invalid mobula id: {raw!r}")
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if raw.is_integer():
            return str(int(raw))
        return format(Decimal(repr(raw)), "f")
    raise ValueError(f"invalid mobula id: {raw!r}")


# --- Row shape parsers ---


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _row_from_mapping(raw: dict) -> MobulaRow | None:
    """Build a row from an object, or None if its field types are wrong."""
    key = raw.get("key")
    price = raw.get("price")
    if key is not None and not isinstance(key, str):
        return None
    if price is not None and not _is_number(price):
        return None
    return MobulaRow(
        key=key or "",
        id=raw.get("id"),
        price=float(price) if price is not None else None,
    )


def parse_array_rows(raw: Any) -> list[MobulaRow] | None:
    """Shape 1: ``[{"key": ..., "id": ..., "price": ...}, ...]``."""
    if not isinstance(raw, list):
        return None
    rows: list[MobulaRow] = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        row = _row_from_mapping(item)
        if row is None:
            return None
        rows.append(row)
    return rows


def parse_single_row(raw: Any) -> list[MobulaRow] | None:
    """Shape 2: one row object that declares an ``id`` or a ``key``."""
    if not isinstance(raw, dict):
        return None
    row = _row_from_mapping(raw)
    if row is None:
        return None
    if "id" not in raw and not row.key.strip():
        return None
    return [row]


def _parse_keyed_value(key: str, value: Any) -> MobulaRow | None:
    key = key.strip()
    if not key:
        return None
    if isinstance(value, dict):
        row = _row_from_mapping(value)
        if row is None:
            return None
        return MobulaRow(
            key=row.key or key,
            id=row.id if "id" in value else key,
            price=row.price,
        )
    if _is_number(value):
        return MobulaRow(key=key, id=key, price=float(value))
    return None


def parse_keyed_rows(raw: Any) -> list[MobulaRow] | None:
    """Shape 3: ``{"bitcoin": {...row...} | price, ...}``.

    Entries that are neither a row object nor a bare price are skipped.
    """
    if not isinstance(raw, dict):
        return None
    rows: list[MobulaRow] = []
    for key, value in raw.items():
        row = _parse_keyed_value(key, value)
        if row is not None:
            rows.append(row)
    return rows


# Tried in order; the first parser that recognizes the shape wins.
ROW_SHAPES: tuple[Callable[[Any], list[MobulaRow] | None], ...] = (
    parse_array_rows,
    parse_single_row,
    parse_keyed_rows,
)


def parse_rows(raw: Any) -> list[MobulaRow]:
    """Parse a ``data`` / ``dataArray`` value into rows.

    Absent or null data is an empty result. Data present in a shape none
    of the parsers recognize raises ``ProviderError``.
    """
    if raw is None:
        return []
    for parser in ROW_SHAPES:
        rows = parser(raw)
        if rows is not None:
            return rows
    raise ProviderError(
        "unsupported mobula data shape",
        context={"provider": MobulaProvider.name, "shape": type(raw).__name__},
    )


def _row_lookup_key(row: MobulaRow) -> str:
    key = row.key.strip()
    if not key:
        try:
            key = parse_mobula_id(row.id)
        except ValueError:
            return ""
    return normalize_lookup_key(key)


class MobulaProvider(HTTPQuoteProvider):
    """Fetches crypto prices from Mobula's multi-data endpoint.

    Numeric lookup keys are sent as Mobula asset ids (``ids=``), all other
    keys as asset names (``assets=``); each group costs one request.
    """

    name = "mobula"

    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        rate_limit: int = DEFAULT_RATE_LIMIT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            base_url or MOBULA_DEFAULT_BASE_URL,
            api_key=api_key,
            timeout=timeout,
            rate_limit=rate_limit,
            client=client,
        )

    async def fetch_quotes(self, lookup_keys: list[str]) -> list[AssetQuote]:
        keys = dedupe_keys(lookup_keys, normalize_lookup_key)
        if not keys:
            return []
        self._require_api_key()

        numeric_ids, asset_names = partition_lookup_keys(keys)
        rows: list[MobulaRow] = []
        if numeric_ids:
            rows.extend(await self._fetch_rows("ids", numeric_ids))
        if asset_names:
            rows.extend(await self._fetch_rows("assets", asset_names))

        by_key: dict[str, AssetQuote] = {}
        for row in rows:
            lookup_key = _row_lookup_key(row)
            if not lookup_key or row.price is None:
                continue
            by_key[lookup_key] = AssetQuote(
                lookup_key=lookup_key, price=row.price, provider=self.name
            )

        quotes = [by_key.pop(key) for key in keys if key in by_key]
        if by_key:
            logger.debug("Dropping unrequested mobula rows: %s", sorted(by_key))
        return quotes

    async def _fetch_rows(self, query_param: str, keys: list[str]) -> list[MobulaRow]:
        payload = await self._get_json(
            _MULTI_DATA_PATH,
            params={query_param: ",".join(keys)},
            headers={"Authorization": self._api_key},
        )
        if not isinstance(payload, dict):
            raise ProviderError(
                f"mobula returned unexpected payload type {type(payload).__name__}",
                context={"provider": self.name},
            )

        rows = parse_rows(payload.get("data"))
        if not rows:
            rows = parse_rows(payload.get("dataArray"))
        return rows
