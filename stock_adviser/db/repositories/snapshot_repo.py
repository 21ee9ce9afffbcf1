"""
Repository for ``stock_snapshots``: the latest market data ingested per symbol.

Each ingestion appends a row; readers take the newest one per symbol. The
full snapshot (indicators and fundamentals included) lives in ``payload`` as
pydantic JSON; ``symbol``, ``captured_at`` and ``price`` are broken out for
querying.
"""

from __future__ import annotations

import logging
from typing import Optional

from stock_adviser.db.repositories.base import BaseRepository
from stock_adviser.models.stock import StockSnapshot

logger = logging.getLogger(__name__)


class SnapshotRepository(BaseRepository):
    """Read/write access to the ``stock_snapshots`` table."""

    def insert(self, snapshot: StockSnapshot) -> int:
        """Append a snapshot and return its ``snapshot_id``."""
        self.execute(
            """
            INSERT INTO stock_snapshots (symbol, captured_at, price, payload)
            VALUES (?, ?, ?, ?);
            """,
            (
                snapshot.symbol,
                snapshot.timestamp.isoformat(),
                str(snapshot.price),
                snapshot.model_dump_json(),
            ),
        )
        return self.last_insert_rowid()

    def get_latest(self, symbol: str) -> Optional[StockSnapshot]:
        """Return the most recently captured snapshot for ``symbol``, or ``None``."""
        row = self.fetchone(
            """
            SELECT payload FROM stock_snapshots
            WHERE symbol = ?
            ORDER BY captured_at DESC, snapshot_id DESC
            LIMIT 1;
            """,
            (symbol.upper(),),
        )
        return StockSnapshot.model_validate_json(row["payload"]) if row else None
