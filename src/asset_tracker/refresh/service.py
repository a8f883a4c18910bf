"""One refresh cycle: load → reconcile → fetch → match → persist → advance.

Failures are isolated per step. A failing provider does not stop the other
asset class, a failing write does not stop the other write, and every
failure is reported together at the end of the cycle in a single
``RefreshError``. Only a failure to load settings or tracked assets aborts
the cycle outright.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from asset_tracker.core.exceptions import RefreshError
from asset_tracker.core.models import (
    AssetQuote,
    AssetType,
    DueAsset,
    LookupKey,
    PriceUpdate,
    RefreshResult,
    TrackedAsset,
)
from asset_tracker.providers.base import QuoteProvider
from asset_tracker.refresh.reconciler import RefreshReconciler
from asset_tracker.storage.store import PriceStoreProtocol

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def lookup_key_for_asset(asset: TrackedAsset) -> LookupKey:
    """Provider-facing key for an asset.

    Crypto prefers the market data id over the symbol and is lower-cased.
    Everything else uses the symbol with its case preserved.
    """
    if asset.type == AssetType.CRYPTO:
        if asset.market_data_id.strip():
            return asset.market_data_id.strip().lower()
        return asset.symbol.strip().lower()
    return asset.symbol.strip()


def partition_by_class(
    due: list[DueAsset],
) -> dict[AssetType, dict[LookupKey, DueAsset]]:
    """Group due assets into per-class ``lookup key -> asset`` maps.

    When two assets share a key the later one replaces the earlier one, so
    only one of them is requested and updated this cycle. Unknown asset
    classes and blank keys are dropped.
    """
    groups: dict[AssetType, dict[LookupKey, DueAsset]] = {
        AssetType.STOCK: {},
        AssetType.CRYPTO: {},
    }
    for item in due:
        key = lookup_key_for_asset(item.asset)
        if not key:
            continue
        if item.type == AssetType.STOCK:
            groups[AssetType.STOCK][key] = item
        elif item.type == AssetType.CRYPTO:
            groups[AssetType.CRYPTO][key] = item
        else:
            logger.debug("Skipping asset %d with unknown type %r", item.id, item.type)
    return groups


def match_quotes(
    quotes: list[AssetQuote],
    assets: dict[LookupKey, DueAsset],
    fetched_at: datetime,
) -> list[PriceUpdate]:
    """Turn quotes into updates; quotes for unrequested keys are ignored."""
    updates: list[PriceUpdate] = []
    for quote in quotes:
        item = assets.get(quote.lookup_key)
        if item is None:
            continue
        updates.append(
            PriceUpdate(
                asset_id=item.id,
                price=quote.price,
                fetched_at=fetched_at,
                provider=quote.provider,
            )
        )
    return updates


class PriceRefreshService:
    """Runs refresh cycles against a store and a stock/crypto provider pair.

    Owns the ``RefreshReconciler`` state, so a single instance must not run
    overlapping cycles.
    """

    def __init__(
        self,
        store: PriceStoreProtocol,
        stock: QuoteProvider,
        crypto: QuoteProvider,
        reconciler: RefreshReconciler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._providers: dict[AssetType, QuoteProvider] = {
            AssetType.STOCK: stock,
            AssetType.CRYPTO: crypto,
        }
        self.reconciler = reconciler or RefreshReconciler()
        self._clock = clock

    async def refresh(self) -> RefreshResult:
        """Run one complete refresh cycle.

        Returns:
            A summary of the cycle when every step succeeded.

        Raises:
            StorageError: settings or tracked assets could not be loaded.
            RefreshError: one or more providers or writes failed. Any
                updates that could be written were written; the cycle
                summary is in ``context["result"]``.
            asyncio.CancelledError: the cycle was cancelled.
        """
        now = self._clock()

        settings = await self._store.fetch_app_settings()
        tracked = await self._store.fetch_tracked_assets()

        due = self.reconciler.reconcile(now, settings, tracked)
        if not due:
            logger.debug("No assets due (%d tracked)", len(tracked))
            return RefreshResult(started_at=now, tracked_count=len(tracked))

        groups = partition_by_class(due)
        errors: list[Exception] = []
        updates: list[PriceUpdate] = []
        requested: dict[str, list[LookupKey]] = {}

        for asset_type, assets in groups.items():
            if not assets:
                continue
            keys = list(assets)
            requested[asset_type.value] = keys
            provider = self._providers[asset_type]
            try:
                quotes = await provider.fetch_quotes(keys)
            except Exception as e:
                logger.warning("%s quote fetch failed: %s", asset_type.value, e)
                errors.append(e)
                continue
            updates.extend(match_quotes(quotes, assets, now))

        if updates:
            errors.extend(await self._persist(updates))
            for update in updates:
                self.reconciler.advance(update.asset_id, now)

        result = RefreshResult(
            started_at=now,
            tracked_count=len(tracked),
            due_count=len(due),
            requested=requested,
            updates=updates,
        )
        logger.info(
            "Refresh cycle: %d tracked, %d due, %d updated, %d errors",
            len(tracked), len(due), len(updates), len(errors),
        )

        if errors:
            raise RefreshError(errors, context={"result": result})
        return result

    async def _persist(self, updates: list[PriceUpdate]) -> list[Exception]:
        """Write updates, letting an in-flight write finish on cancellation."""
        task = asyncio.ensure_future(self._write_updates(updates))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            await asyncio.wait([task])
            raise

    async def _write_updates(self, updates: list[PriceUpdate]) -> list[Exception]:
        errors: list[Exception] = []
        try:
            await self._store.upsert_current_prices(updates)
        except Exception as e:
            logger.error("Failed to upsert %d current prices: %s", len(updates), e)
            errors.append(e)
        try:
            await self._store.insert_price_snapshots(updates)
        except Exception as e:
            logger.error("Failed to insert %d price snapshots: %s", len(updates), e)
            errors.append(e)
        return errors
