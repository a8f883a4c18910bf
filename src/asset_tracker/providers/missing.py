"""Placeholder provider used when an asset class has no configured source."""

from __future__ import annotations

from asset_tracker.core.exceptions import ProviderConfigError
from asset_tracker.core.models import AssetQuote


class MissingProvider:
    """Fails fast on any non-empty request."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.name = f"missing-{kind}"

    async def __aenter__(self) -> MissingProvider:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        return None

    async def fetch_quotes(self, lookup_keys: list[str]) -> list[AssetQuote]:
        if not lookup_keys:
            return []
        raise ProviderConfigError(
            f"{self.kind} provider not configured",
            context={"provider": self.kind, "field": "name"},
        )
