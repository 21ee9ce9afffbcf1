"""
Repository for ``users``.

The trading strategy is stored as a JSON document: it is only ever read and
written whole, never queried by field.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from stock_adviser.db.repositories.base import BaseRepository
from stock_adviser.models.user import TradingStrategy, User

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository):
    """Read/write access to the ``users`` table."""

    def upsert(self, user: User) -> None:
        """Insert a user, or replace profile and strategy of an existing one."""
        self.execute(
            """
            INSERT INTO users (user_id, email, display_name, trading_strategy)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                email            = excluded.email,
                display_name     = excluded.display_name,
                trading_strategy = excluded.trading_strategy;
            """,
            (
                user.user_id,
                user.email,
                user.display_name,
                user.trading_strategy.model_dump_json(),
            ),
        )

    def get_by_id(self, user_id: str) -> Optional[User]:
        row = self.fetchone("SELECT * FROM users WHERE user_id = ?;", (user_id,))
        return _row_to_user(row) if row else None

    def get_all(self) -> list[User]:
        rows = self.fetchall("SELECT * FROM users ORDER BY user_id;")
        return [_row_to_user(r) for r in rows]


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=row["user_id"],
        email=row["email"],
        display_name=row["display_name"],
        trading_strategy=TradingStrategy.model_validate_json(row["trading_strategy"]),
    )
