"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Table creation order respects foreign key dependencies:
  1. users                   (no FKs)
  2. stock_snapshots         (no FKs)
  3. recommendations         (→ users)
  4. recommendation_history  (→ recommendations, users)

Decimals are stored as TEXT so values round-trip exactly. Timestamps are
ISO-8601 UTC strings, which sort chronologically as text.

``uq_recommendations_active`` is a partial unique index: at most one row per
(user_id, symbol) may have ``status = 'active'``. It is what makes concurrent
generation for one user safe.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_USERS = """
CREATE TABLE IF NOT EXISTS users (
    user_id           TEXT    PRIMARY KEY,
    email             TEXT    NOT NULL DEFAULT '',
    display_name      TEXT    NOT NULL DEFAULT '',
    trading_strategy  TEXT    NOT NULL,
    created_at        TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_STOCK_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS stock_snapshots (
    snapshot_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol        TEXT    NOT NULL,
    captured_at   TEXT    NOT NULL,
    price         TEXT    NOT NULL,
    payload       TEXT    NOT NULL,
    created_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_STOCK_SNAPSHOTS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_snapshots_symbol_time
    ON stock_snapshots(symbol, captured_at DESC);
"""

_DDL_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS recommendations (
    recommendation_id  TEXT    PRIMARY KEY,
    user_id            TEXT    NOT NULL REFERENCES users(user_id),
    symbol             TEXT    NOT NULL,
    action             TEXT    NOT NULL,
    confidence         TEXT    NOT NULL,
    target_price       TEXT    NOT NULL,
    stop_loss          TEXT    NOT NULL,
    reasoning          TEXT    NOT NULL,
    key_factors        TEXT    NOT NULL DEFAULT '[]',
    risk_level         TEXT    NOT NULL,
    time_horizon       TEXT    NOT NULL,
    created_at         TEXT    NOT NULL,
    valid_until        TEXT    NOT NULL,
    status             TEXT    NOT NULL DEFAULT 'active'
                               CHECK (status IN ('active', 'executed', 'expired', 'cancelled')),
    technical_score    TEXT    NOT NULL,
    fundamental_score  TEXT    NOT NULL,
    sentiment_score    TEXT    NOT NULL,
    overall_score      TEXT    NOT NULL,
    actual_action      TEXT,
    actual_price       TEXT,
    executed_at        TEXT
);
"""

_DDL_RECOMMENDATIONS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_recommendations_user_time
    ON recommendations(user_id, created_at DESC);
CREATE UNIQUE INDEX IF NOT EXISTS uq_recommendations_active
    ON recommendations(user_id, symbol) WHERE status = 'active';
"""

_DDL_RECOMMENDATION_HISTORY = """
CREATE TABLE IF NOT EXISTS recommendation_history (
    history_id              TEXT    PRIMARY KEY,
    recommendation_id       TEXT    NOT NULL REFERENCES recommendations(recommendation_id),
    user_id                 TEXT    NOT NULL REFERENCES users(user_id),
    symbol                  TEXT    NOT NULL,
    original_action         TEXT    NOT NULL,
    original_price          TEXT    NOT NULL,
    actual_action           TEXT,
    actual_price            TEXT,
    outcome                 TEXT    NOT NULL,
    profit_loss             TEXT,
    profit_loss_percentage  TEXT,
    created_at              TEXT    NOT NULL,
    closed_at               TEXT    NOT NULL
);
"""

_DDL_RECOMMENDATION_HISTORY_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_history_user_closed
    ON recommendation_history(user_id, closed_at DESC);
"""

# ── Ordered list of all DDL to apply ──────────────────────────────────────────

_ALL_DDL: list[str] = [
    _DDL_USERS,
    _DDL_STOCK_SNAPSHOTS,
    _DDL_STOCK_SNAPSHOTS_INDEXES,
    _DDL_RECOMMENDATIONS,
    _DDL_RECOMMENDATIONS_INDEXES,
    _DDL_RECOMMENDATION_HISTORY,
    _DDL_RECOMMENDATION_HISTORY_INDEXES,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "users",
    "stock_snapshots",
    "recommendations",
    "recommendation_history",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent — safe to call on an already-initialized database.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            if statement.strip():
                conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return index names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
