"""Per-asset refresh scheduling state.

Each tracked asset gets an effective refresh interval, clamped into the
global bounds, and a next-due time. State lives only in memory: a restart
makes every asset due again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from asset_tracker.core.models import AppSettings, AssetID, DueAsset, TrackedAsset

logger = logging.getLogger(__name__)


@dataclass
class AssetSchedule:
    """Mutable scheduling state for one asset."""

    interval: timedelta
    next_due: datetime


def clamp_interval(value: int, settings: AppSettings) -> int:
    """Clamp a requested interval (seconds) into the global bounds.

    A non-positive request means "use the global minimum".
    """
    interval = value if value > 0 else settings.min_refresh_interval_sec
    interval = max(interval, settings.min_refresh_interval_sec)
    return min(interval, settings.max_refresh_interval_sec)


class RefreshReconciler:
    """Decides which tracked assets are due on a given cycle.

    Not safe for concurrent use; cycles are expected to run one at a time.
    """

    def __init__(self) -> None:
        self._state: dict[AssetID, AssetSchedule] = {}

    def __len__(self) -> int:
        return len(self._state)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._state

    def get(self, asset_id: AssetID) -> AssetSchedule | None:
        return self._state.get(asset_id)

    def reconcile(
        self,
        now: datetime,
        settings: AppSettings,
        tracked: list[TrackedAsset],
    ) -> list[DueAsset]:
        """Sync state with ``tracked`` and return the due assets in order.

        New assets are due immediately. A changed interval is stored without
        moving ``next_due``. Assets missing from ``tracked`` are forgotten.
        """
        seen: set[AssetID] = set()
        due: list[DueAsset] = []

        for asset in tracked:
            seen.add(asset.id)
            interval = timedelta(
                seconds=clamp_interval(asset.min_user_refresh_sec, settings)
            )

            schedule = self._state.get(asset.id)
            if schedule is None:
                schedule = AssetSchedule(interval=interval, next_due=now)
                self._state[asset.id] = schedule
            elif schedule.interval != interval:
                logger.debug(
                    "Asset %d interval changed %s -> %s",
                    asset.id, schedule.interval, interval,
                )
                schedule.interval = interval

            if now >= schedule.next_due:
                due.append(DueAsset(asset=asset, interval=interval))

        stale = [asset_id for asset_id in self._state if asset_id not in seen]
        for asset_id in stale:
            del self._state[asset_id]
        if stale:
            logger.debug("Stopped tracking %d assets: %s", len(stale), stale)

        return due

    def advance(self, asset_id: AssetID, now: datetime) -> None:
        """Push an asset's next due time one interval past ``now``."""
        schedule = self._state.get(asset_id)
        if schedule is not None:
            schedule.next_due = now + schedule.interval
