"""Storage backend: Protocol definition, SQLite implementation, factory."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from asset_tracker.core.config import StorageConfig
from asset_tracker.core.exceptions import StorageError
from asset_tracker.core.models import (
    AppSettings,
    AssetID,
    CurrentPrice,
    PriceUpdate,
    TrackedAsset,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_REFRESH_SEC = 60
DEFAULT_MAX_REFRESH_SEC = 3600


@runtime_checkable
class PriceStoreProtocol(Protocol):
    """What the refresh engine needs from persistence."""

    async def fetch_app_settings(self) -> AppSettings: ...
    async def fetch_tracked_assets(self) -> list[TrackedAsset]: ...
    async def upsert_current_prices(self, updates: list[PriceUpdate]) -> None: ...
    async def insert_price_snapshots(self, updates: list[PriceUpdate]) -> None: ...


class SqliteStore:
    """SQLite implementation of the price store.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS app_settings (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    min_refresh_interval_sec INTEGER NOT NULL,
                    max_refresh_interval_sec INTEGER NOT NULL,
                    CHECK (min_refresh_interval_sec > 0),
                    CHECK (min_refresh_interval_sec <= max_refresh_interval_sec)
                )""",
                f"""INSERT OR IGNORE INTO app_settings
                    (id, min_refresh_interval_sec, max_refresh_interval_sec)
                    VALUES (1, {DEFAULT_MIN_REFRESH_SEC}, {DEFAULT_MAX_REFRESH_SEC})""",
                """CREATE TABLE IF NOT EXISTS assets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL DEFAULT '',
                    type TEXT NOT NULL,
                    market_data_id TEXT,
                    lookup_blockchain TEXT,
                    lookup_address TEXT,
                    created_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS user_settings (
                    user_id TEXT PRIMARY KEY,
                    refresh_interval_sec INTEGER NOT NULL,
                    created_at TEXT DEFAULT (datetime('now')),
                    updated_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS lots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    asset_id INTEGER NOT NULL REFERENCES assets(id),
                    quantity REAL NOT NULL,
                    unit_cost REAL NOT NULL,
                    purchased_at TEXT NOT NULL,
                    created_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS prices_current (
                    asset_id INTEGER PRIMARY KEY REFERENCES assets(id),
                    price REAL NOT NULL,
                    fetched_at TEXT NOT NULL,
                    provider TEXT NOT NULL
                )""",
                """CREATE TABLE IF NOT EXISTS price_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    asset_id INTEGER NOT NULL REFERENCES assets(id),
                    price REAL NOT NULL,
                    fetched_at TEXT NOT NULL,
                    provider TEXT NOT NULL
                )""",
                "CREATE INDEX IF NOT EXISTS idx_lots_asset_id ON lots(asset_id)",
                "CREATE INDEX IF NOT EXISTS idx_lots_user_id ON lots(user_id)",
                "CREATE INDEX IF NOT EXISTS idx_snapshots_asset_fetched ON price_snapshots(asset_id, fetched_at)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL + FK, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA foreign_keys=ON")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SqliteStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Refresh Engine Reads ---

    async def fetch_app_settings(self) -> AppSettings:
        try:
            async with self._db.execute(
                """SELECT min_refresh_interval_sec, max_refresh_interval_sec
                   FROM app_settings WHERE id = 1"""
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                raise StorageError(
                    "app_settings row is missing",
                    context={"operation": "query", "table": "app_settings"},
                )
            return AppSettings(
                min_refresh_interval_sec=row["min_refresh_interval_sec"],
                max_refresh_interval_sec=row["max_refresh_interval_sec"],
            )
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to fetch app settings: {e}",
                context={"operation": "query", "table": "app_settings"},
            ) from e

    async def fetch_tracked_assets(self) -> list[TrackedAsset]:
        """Assets with at least one lot, with the lowest owner refresh interval."""
        try:
            async with self._db.execute(
                """SELECT a.id, a.symbol,
                          COALESCE(a.market_data_id, '') AS market_data_id,
                          COALESCE(a.lookup_blockchain, '') AS lookup_blockchain,
                          COALESCE(a.lookup_address, '') AS lookup_address,
                          a.type,
                          MIN(us.refresh_interval_sec) AS min_refresh_interval_sec
                   FROM assets a
                   JOIN lots l ON l.asset_id = a.id
                   JOIN user_settings us ON us.user_id = l.user_id
                   GROUP BY a.id
                   ORDER BY a.id"""
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_tracked_asset(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to fetch tracked assets: {e}",
                context={"operation": "query", "table": "assets"},
            ) from e

    # --- Refresh Engine Writes ---

    async def upsert_current_prices(self, updates: list[PriceUpdate]) -> None:
        """One row per asset; the last write wins."""
        if not updates:
            return
        try:
            await self._db.executemany(
                """INSERT INTO prices_current (asset_id, price, fetched_at, provider)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT (asset_id) DO UPDATE SET
                       price = excluded.price,
                       fetched_at = excluded.fetched_at,
                       provider = excluded.provider""",
                [self._update_params(u) for u in updates],
            )
            await self._db.commit()
        except Exception as e:
            await self._rollback()
            raise StorageError(
                f"Failed to upsert current prices: {e}",
                context={"operation": "upsert", "table": "prices_current"},
            ) from e

    async def insert_price_snapshots(self, updates: list[PriceUpdate]) -> None:
        """Append one immutable snapshot row per update."""
        if not updates:
            return
        try:
            await self._db.executemany(
                """INSERT INTO price_snapshots (asset_id, price, fetched_at, provider)
                   VALUES (?, ?, ?, ?)""",
                [self._update_params(u) for u in updates],
            )
            await self._db.commit()
        except Exception as e:
            await self._rollback()
            raise StorageError(
                f"Failed to insert price snapshots: {e}",
                context={"operation": "insert", "table": "price_snapshots"},
            ) from e

    # --- Portfolio Records ---

    async def save_asset(
        self,
        symbol: str,
        asset_type: str,
        name: str = "",
        market_data_id: str | None = None,
        lookup_blockchain: str | None = None,
        lookup_address: str | None = None,
    ) -> AssetID:
        try:
            cursor = await self._db.execute(
                """INSERT INTO assets
                   (symbol, name, type, market_data_id, lookup_blockchain, lookup_address)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (symbol, name, asset_type, market_data_id, lookup_blockchain, lookup_address),
            )
            await self._db.commit()
            return cursor.lastrowid
        except Exception as e:
            await self._rollback()
            raise StorageError(
                f"Failed to save asset: {e}",
                context={"operation": "insert", "table": "assets", "symbol": symbol},
            ) from e

    async def save_user_settings(self, user_id: str, refresh_interval_sec: int) -> None:
        try:
            await self._db.execute(
                """INSERT INTO user_settings (user_id, refresh_interval_sec)
                   VALUES (?, ?)
                   ON CONFLICT (user_id) DO UPDATE SET
                       refresh_interval_sec = excluded.refresh_interval_sec,
                       updated_at = datetime('now')""",
                (user_id, refresh_interval_sec),
            )
            await self._db.commit()
        except Exception as e:
            await self._rollback()
            raise StorageError(
                f"Failed to save user settings: {e}",
                context={"operation": "upsert", "table": "user_settings", "user_id": user_id},
            ) from e

    async def save_lot(
        self,
        user_id: str,
        asset_id: AssetID,
        quantity: float,
        unit_cost: float,
        purchased_at: datetime | None = None,
    ) -> int:
        purchased_at = purchased_at or datetime.now(timezone.utc)
        try:
            cursor = await self._db.execute(
                """INSERT INTO lots (user_id, asset_id, quantity, unit_cost, purchased_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (user_id, asset_id, quantity, unit_cost, purchased_at.isoformat()),
            )
            await self._db.commit()
            return cursor.lastrowid
        except Exception as e:
            await self._rollback()
            raise StorageError(
                f"Failed to save lot: {e}",
                context={"operation": "insert", "table": "lots", "asset_id": asset_id},
            ) from e

    async def delete_lot(self, lot_id: int) -> bool:
        try:
            cursor = await self._db.execute("DELETE FROM lots WHERE id = ?", (lot_id,))
            await self._db.commit()
            return cursor.rowcount > 0
        except Exception as e:
            await self._rollback()
            raise StorageError(
                f"Failed to delete lot: {e}",
                context={"operation": "delete", "table": "lots", "lot_id": lot_id},
            ) from e

    async def update_app_settings(self, settings: AppSettings) -> None:
        try:
            await self._db.execute(
                """UPDATE app_settings
                   SET min_refresh_interval_sec = ?, max_refresh_interval_sec = ?
                   WHERE id = 1""",
                (settings.min_refresh_interval_sec, settings.max_refresh_interval_sec),
            )
            await self._db.commit()
        except Exception as e:
            await self._rollback()
            raise StorageError(
                f"Failed to update app settings: {e}",
                context={"operation": "update", "table": "app_settings"},
            ) from e

    async def get_current_prices(self) -> dict[AssetID, CurrentPrice]:
        try:
            async with self._db.execute(
                "SELECT * FROM prices_current ORDER BY asset_id"
            ) as cursor:
                rows = await cursor.fetchall()
            return {
                row["asset_id"]: CurrentPrice(
                    asset_id=row["asset_id"],
                    price=row["price"],
                    fetched_at=datetime.fromisoformat(row["fetched_at"]),
                    provider=row["provider"],
                )
                for row in rows
            }
        except Exception as e:
            raise StorageError(
                f"Failed to get current prices: {e}",
                context={"operation": "query", "table": "prices_current"},
            ) from e

    async def list_snapshots(
        self,
        asset_id: AssetID | None = None,
        limit: int | None = None,
    ) -> list[PriceUpdate]:
        try:
            query = "SELECT * FROM price_snapshots WHERE 1=1"
            params: list = []
            if asset_id is not None:
                query += " AND asset_id = ?"
                params.append(asset_id)
            query += " ORDER BY fetched_at ASC, id ASC"
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            async with self._db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
            return [
                PriceUpdate(
                    asset_id=row["asset_id"],
                    price=row["price"],
                    fetched_at=datetime.fromisoformat(row["fetched_at"]),
                    provider=row["provider"],
                )
                for row in rows
            ]
        except Exception as e:
            raise StorageError(
                f"Failed to list snapshots: {e}",
                context={"operation": "query", "table": "price_snapshots"},
            ) from e

    # --- Helpers ---

    async def _rollback(self) -> None:
        if self._db is not None:
            await self._db.rollback()

    @staticmethod
    def _update_params(update: PriceUpdate) -> tuple:
        return (
            update.asset_id,
            update.price,
            update.fetched_at.isoformat(),
            update.provider,
        )

    @staticmethod
    def _row_to_tracked_asset(row: aiosqlite.Row) -> TrackedAsset:
        return TrackedAsset(
            id=row["id"],
            symbol=row["symbol"],
            market_data_id=row["market_data_id"],
            lookup_blockchain=row["lookup_blockchain"],
            lookup_address=row["lookup_address"],
            type=row["type"],
            min_user_refresh_sec=row["min_refresh_interval_sec"],
        )


async def create_store(config: StorageConfig) -> SqliteStore:
    """Create and initialize the store from configuration."""
    store = SqliteStore(config)
    await store.initialize()
    return store
