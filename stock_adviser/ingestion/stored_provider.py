"""
Market data served from the local snapshot table.

``stock-adviser ingest`` writes snapshots; generation runs then read them
here without touching the network.
"""

from __future__ import annotations

from typing import Optional

from stock_adviser.models.stock import StockSnapshot
from stock_adviser.storage.base import MarketDataProvider
from stock_adviser.storage.sqlite_store import SqliteStore


class StoredSnapshotProvider(MarketDataProvider):
    """Returns the most recently ingested snapshot per symbol."""

    def __init__(self, store: SqliteStore) -> None:
        self.store = store

    def get_snapshot(self, symbol: str) -> Optional[StockSnapshot]:
        return self.store.latest_snapshot(symbol)
