"""Persistence for tracked assets, refresh settings, and prices."""

from asset_tracker.storage.store import PriceStoreProtocol, SqliteStore, create_store

__all__ = [
    "PriceStoreProtocol",
    "SqliteStore",
    "create_store",
]
