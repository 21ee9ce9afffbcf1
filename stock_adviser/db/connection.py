"""
SQLite connection management for the recommendation store.

``SqliteStore`` opens one short-lived connection per operation through
``get_connection()``, and the generation pool runs several of those at once
for a single user. Each connection therefore:
  - Enforces foreign keys, so a recommendation can never outlive its user.
  - Runs in WAL journal mode, letting pool threads read active
    recommendations while another thread inserts one.
  - Waits ``busy_timeout_ms`` on a locked database instead of failing fast.
  - Uses the ``sqlite3.Row`` factory so repositories read columns by name.
  - Commits on clean exit and rolls back on exception.

Usage::

    from stock_adviser.db.connection import get_connection

    with get_connection("data/db/stock_adviser.db") as conn:
        RecommendationRepository(conn).get_active("user-1")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file (and any parent directories) are created if missing.

    Args:
        db_path: Path to the SQLite database file. ``":memory:"`` gives a
            private database that disappears when the connection closes;
            WAL is skipped for it since nothing else can share it.
        wal_mode: If ``True``, switch a file database to WAL journal mode.
            When the filesystem refuses WAL a warning is logged and the
            connection falls back to SQLite's default rollback journal.
        busy_timeout_ms: Milliseconds to wait on a locked database before
            raising ``OperationalError``.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or stays
            locked past the busy timeout.
    """
    in_memory = db_path == MEMORY_DB
    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")

        if wal_mode and not in_memory:
            journal = conn.execute("PRAGMA journal_mode = WAL;").fetchone()[0]
            if journal != "wal":
                # Readers now block behind the single writer in the generation pool.
                logger.warning(
                    "WAL unavailable, using %s journal | db_path=%s", journal, db_path
                )

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        logger.debug("Rolled back | db_path=%s", db_path)
        raise

    finally:
        conn.close()
