"""
SQLite-backed ``RecommendationStore`` plus the ingested-snapshot table.

Every operation opens its own connection via ``get_connection()``, so one
store instance can be shared by the generation thread pool. The partial
unique index on active recommendations turns a lost race into an
``IntegrityError``, which is surfaced as ``DuplicateActiveRecommendationError``.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

from stock_adviser.config import DatabaseConfig
from stock_adviser.db.connection import get_connection
from stock_adviser.db.repositories.recommendation_repo import (
    RecommendationHistoryRepository,
    RecommendationRepository,
)
from stock_adviser.db.repositories.snapshot_repo import SnapshotRepository
from stock_adviser.db.repositories.user_repo import UserRepository
from stock_adviser.db.schema import apply_schema
from stock_adviser.exceptions import (
    DuplicateActiveRecommendationError,
    RecommendationNotActionableError,
)
from stock_adviser.models.recommendation import Recommendation, RecommendationHistory
from stock_adviser.models.stock import StockSnapshot
from stock_adviser.models.user import User
from stock_adviser.storage.base import RecommendationStore
from stock_adviser.taxonomy.recommendation_taxonomy import RecommendationStatus

logger = logging.getLogger(__name__)


class SqliteStore(RecommendationStore):
    """``RecommendationStore`` over a SQLite database file.

    Args:
        config:      Database settings (path, WAL mode, busy timeout).
        init_schema: Apply the schema on construction (idempotent).
    """

    def __init__(self, config: DatabaseConfig, init_schema: bool = True) -> None:
        if config.db_path == ":memory:":
            raise ValueError(
                "SqliteStore opens a connection per operation and needs a file "
                "path; use InMemoryStore for a throwaway store."
            )
        self.config = config
        if init_schema:
            with self._connect() as conn:
                apply_schema(conn)

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        with get_connection(
            self.config.db_path,
            wal_mode=self.config.wal_mode,
            busy_timeout_ms=self.config.busy_timeout_ms,
        ) as conn:
            yield conn

    # ── Users ────────────────────────────────────────────────────────────────

    def get_user(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            return UserRepository(conn).get_by_id(user_id)

    def list_users(self) -> list[User]:
        with self._connect() as conn:
            return UserRepository(conn).get_all()

    def save_user(self, user: User) -> User:
        with self._connect() as conn:
            UserRepository(conn).upsert(user)
        return user

    # ── Recommendations ──────────────────────────────────────────────────────

    def get_recommendation(self, user_id: str, recommendation_id: str) -> Optional[Recommendation]:
        with self._connect() as conn:
            return RecommendationRepository(conn).get_by_id(user_id, recommendation_id)

    def get_active_recommendations(self, user_id: str) -> list[Recommendation]:
        with self._connect() as conn:
            return RecommendationRepository(conn).get_active(user_id)

    def list_recommendations(self, user_id: str, limit: int = 50) -> list[Recommendation]:
        with self._connect() as conn:
            return RecommendationRepository(conn).get_recent(user_id, limit)

    def create_recommendation(self, recommendation: Recommendation) -> Recommendation:
        try:
            with self._connect() as conn:
                RecommendationRepository(conn).insert(recommendation)
        except sqlite3.IntegrityError as exc:
            if "recommendations.user_id, recommendations.symbol" in str(exc):
                raise DuplicateActiveRecommendationError(
                    recommendation.user_id, recommendation.symbol
                ) from exc
            raise
        return recommendation

    def update_recommendation(self, recommendation: Recommendation) -> Recommendation:
        with self._connect() as conn:
            RecommendationRepository(conn).upsert(recommendation)
        return recommendation

    def transition_recommendation(
        self,
        recommendation: Recommendation,
        expected: RecommendationStatus = RecommendationStatus.ACTIVE,
    ) -> Recommendation:
        with self._connect() as conn:
            repo = RecommendationRepository(conn)
            if repo.transition(recommendation, expected):
                return recommendation
            current = repo.get_by_id(recommendation.user_id, recommendation.id)
        status = current.status.value if current is not None else "missing"
        logger.debug(
            "Transition refused | id=%s | expected=%s | current=%s",
            recommendation.id, expected.value, status,
        )
        raise RecommendationNotActionableError(recommendation.id, status)

    # ── History ──────────────────────────────────────────────────────────────

    def create_history(self, history: RecommendationHistory) -> RecommendationHistory:
        with self._connect() as conn:
            RecommendationHistoryRepository(conn).insert(history)
        return history

    def list_history(self, user_id: str, limit: int = 100) -> list[RecommendationHistory]:
        with self._connect() as conn:
            return RecommendationHistoryRepository(conn).get_recent(user_id, limit)

    # ── Snapshots ────────────────────────────────────────────────────────────

    def save_snapshot(self, snapshot: StockSnapshot) -> int:
        """Append an ingested snapshot; returns its row ID."""
        with self._connect() as conn:
            return SnapshotRepository(conn).insert(snapshot)

    def latest_snapshot(self, symbol: str) -> Optional[StockSnapshot]:
        with self._connect() as conn:
            return SnapshotRepository(conn).get_latest(symbol)

