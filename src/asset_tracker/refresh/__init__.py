"""Adaptive price refresh: scheduling state, the refresh cycle, the runner."""

from asset_tracker.refresh.reconciler import AssetSchedule, RefreshReconciler, clamp_interval
from asset_tracker.refresh.scheduler import Scheduler
from asset_tracker.refresh.service import (
    PriceRefreshService,
    lookup_key_for_asset,
    match_quotes,
    partition_by_class,
)

__all__ = [
    "AssetSchedule",
    "RefreshReconciler",
    "clamp_interval",
    "PriceRefreshService",
    "lookup_key_for_asset",
    "partition_by_class",
    "match_quotes",
    "Scheduler",
]
