"""
Repositories for ``recommendations`` and ``recommendation_history``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from stock_adviser.db.repositories.base import (
    BaseRepository,
    dec_or_none,
    dt_or_none,
    to_dec,
    to_dt,
)
from stock_adviser.models.recommendation import Recommendation, RecommendationHistory
from stock_adviser.taxonomy.recommendation_taxonomy import (
    RecommendationAction,
    RecommendationOutcome,
    RecommendationStatus,
    RiskLevel,
    TimeHorizon,
)

logger = logging.getLogger(__name__)

_REC_COLUMNS = (
    "recommendation_id", "user_id", "symbol", "action", "confidence",
    "target_price", "stop_loss", "reasoning", "key_factors", "risk_level",
    "time_horizon", "created_at", "valid_until", "status", "technical_score",
    "fundamental_score", "sentiment_score", "overall_score", "actual_action",
    "actual_price", "executed_at",
)


class RecommendationRepository(BaseRepository):
    """Read/write access to the ``recommendations`` table."""

    def insert(self, rec: Recommendation) -> None:
        """Insert a new recommendation.

        Raises:
            sqlite3.IntegrityError: If the ID exists or an active row already
                covers the same (user_id, symbol).
        """
        placeholders = ", ".join("?" for _ in _REC_COLUMNS)
        self.execute(
            f"INSERT INTO recommendations ({', '.join(_REC_COLUMNS)}) VALUES ({placeholders});",
            _rec_to_params(rec),
        )

    def upsert(self, rec: Recommendation) -> None:
        """Insert a recommendation, or overwrite every mutable column by ID."""
        placeholders = ", ".join("?" for _ in _REC_COLUMNS)
        updates = ", ".join(
            f"{col} = excluded.{col}" for col in _REC_COLUMNS if col != "recommendation_id"
        )
        self.execute(
            f"""
            INSERT INTO recommendations ({', '.join(_REC_COLUMNS)}) VALUES ({placeholders})
            ON CONFLICT(recommendation_id) DO UPDATE SET {updates};
            """,
            _rec_to_params(rec),
        )

    def transition(self, rec: Recommendation, expected: RecommendationStatus) -> bool:
        """Write the lifecycle columns of ``rec`` if its row still has ``expected`` status.

        Returns:
            True when the row was updated, False when it was missing or had
            already moved to another status.
        """
        cursor = self.execute(
            """
            UPDATE recommendations
            SET status = ?, actual_action = ?, actual_price = ?, executed_at = ?
            WHERE recommendation_id = ? AND user_id = ? AND status = ?;
            """,
            (
                rec.status.value,
                rec.actual_action.value if rec.actual_action else None,
                dec_or_none(rec.actual_price),
                dt_or_none(rec.executed_at),
                rec.id,
                rec.user_id,
                expected.value,
            ),
        )
        return cursor.rowcount == 1

    def get_by_id(self, user_id: str, recommendation_id: str) -> Optional[Recommendation]:
        row = self.fetchone(
            "SELECT * FROM recommendations WHERE user_id = ? AND recommendation_id = ?;",
            (user_id, recommendation_id),
        )
        return _row_to_recommendation(row) if row else None

    def get_active(self, user_id: str) -> list[Recommendation]:
        rows = self.fetchall(
            """
            SELECT * FROM recommendations
            WHERE user_id = ? AND status = ?
            ORDER BY created_at DESC;
            """,
            (user_id, RecommendationStatus.ACTIVE.value),
        )
        return [_row_to_recommendation(r) for r in rows]

    def get_recent(self, user_id: str, limit: int = 50) -> list[Recommendation]:
        rows = self.fetchall(
            """
            SELECT * FROM recommendations
            WHERE user_id = ?
            ORDER BY created_at DESC
            LIMIT ?;
            """,
            (user_id, limit),
        )
        return [_row_to_recommendation(r) for r in rows]


class RecommendationHistoryRepository(BaseRepository):
    """Read/write access to the ``recommendation_history`` table."""

    def insert(self, history: RecommendationHistory) -> None:
        self.execute(
            """
            INSERT INTO recommendation_history (
                history_id, recommendation_id, user_id, symbol,
                original_action, original_price, actual_action, actual_price,
                outcome, profit_loss, profit_loss_percentage,
                created_at, closed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                history.id,
                history.recommendation_id,
                history.user_id,
                history.symbol,
                history.original_action.value,
                str(history.original_price),
                history.actual_action.value if history.actual_action else None,
                dec_or_none(history.actual_price),
                history.outcome.value,
                dec_or_none(history.profit_loss),
                dec_or_none(history.profit_loss_percentage),
                history.created_at.isoformat(),
                history.closed_at.isoformat(),
            ),
        )

    def get_recent(self, user_id: str, limit: int = 100) -> list[RecommendationHistory]:
        rows = self.fetchall(
            """
            SELECT * FROM recommendation_history
            WHERE user_id = ?
            ORDER BY closed_at DESC
            LIMIT ?;
            """,
            (user_id, limit),
        )
        return [_row_to_history(r) for r in rows]


# ── Row mappers ───────────────────────────────────────────────────────────────

def _rec_to_params(rec: Recommendation) -> tuple:
    return (
        rec.id,
        rec.user_id,
        rec.symbol,
        rec.action.value,
        str(rec.confidence),
        str(rec.target_price),
        str(rec.stop_loss),
        rec.reasoning,
        json.dumps(list(rec.key_factors)),
        rec.risk_level.value,
        rec.time_horizon.value,
        rec.created_at.isoformat(),
        rec.valid_until.isoformat(),
        rec.status.value,
        str(rec.technical_score),
        str(rec.fundamental_score),
        str(rec.sentiment_score),
        str(rec.overall_score),
        rec.actual_action.value if rec.actual_action else None,
        dec_or_none(rec.actual_price),
        dt_or_none(rec.executed_at),
    )


def _row_to_recommendation(row: sqlite3.Row) -> Recommendation:
    return Recommendation(
        id=row["recommendation_id"],
        user_id=row["user_id"],
        symbol=row["symbol"],
        action=RecommendationAction(row["action"]),
        confidence=to_dec(row["confidence"]),
        target_price=to_dec(row["target_price"]),
        stop_loss=to_dec(row["stop_loss"]),
        reasoning=row["reasoning"],
        key_factors=tuple(json.loads(row["key_factors"])),
        risk_level=RiskLevel(row["risk_level"]),
        time_horizon=TimeHorizon(row["time_horizon"]),
        created_at=to_dt(row["created_at"]),
        valid_until=to_dt(row["valid_until"]),
        status=RecommendationStatus(row["status"]),
        technical_score=to_dec(row["technical_score"]),
        fundamental_score=to_dec(row["fundamental_score"]),
        sentiment_score=to_dec(row["sentiment_score"]),
        overall_score=to_dec(row["overall_score"]),
        actual_action=(
            RecommendationAction(row["actual_action"]) if row["actual_action"] else None
        ),
        actual_price=to_dec(row["actual_price"]),
        executed_at=to_dt(row["executed_at"]),
    )


def _row_to_history(row: sqlite3.Row) -> RecommendationHistory:
    return RecommendationHistory(
        id=row["history_id"],
        recommendation_id=row["recommendation_id"],
        user_id=row["user_id"],
        symbol=row["symbol"],
        original_action=RecommendationAction(row["original_action"]),
        original_price=to_dec(row["original_price"]),
        actual_action=(
            RecommendationAction(row["actual_action"]) if row["actual_action"] else None
        ),
        actual_price=to_dec(row["actual_price"]),
        outcome=RecommendationOutcome(row["outcome"]),
        profit_loss=to_dec(row["profit_loss"]),
        profit_loss_percentage=to_dec(row["profit_loss_percentage"]),
        created_at=to_dt(row["created_at"]),
        closed_at=to_dt(row["closed_at"]),
    )
