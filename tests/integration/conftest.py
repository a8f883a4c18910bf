"""Integration test fixtures: real SQLite I/O, HTTP mocked with respx."""

from __future__ import annotations

from pathlib import Path

import pytest

from asset_tracker.core.config import StorageConfig
from asset_tracker.storage.store import SqliteStore


@pytest.fixture
async def integration_store(tmp_path: Path) -> SqliteStore:
    """An initialized SqliteStore backed by a file."""
    store = SqliteStore(StorageConfig(sqlite_path=str(tmp_path / "integration.db")))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def portfolio(integration_store: SqliteStore) -> dict:
    """Alice holds AAPL and bitcoin; Bob holds ETH by symbol only."""
    aapl = await integration_store.save_asset("AAPL", "stock", name="Apple Inc.")
    btc = await integration_store.save_asset("BTC", "crypto", market_data_id="bitcoin")
    eth = await integration_store.save_asset(" Eth ", "crypto")
    await integration_store.save_user_settings("alice", 120)
    await integration_store.save_user_settings("bob", 30)
    await integration_store.save_lot("alice", aapl, 10, 150.0)
    await integration_store.save_lot("alice", btc, 0.5, 30000.0)
    await integration_store.save_lot("bob", eth, 2, 2000.0)
    return {"aapl": aapl, "btc": btc, "eth": eth}
