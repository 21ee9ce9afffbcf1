"""
Outcome tracking: lifecycle transitions after a recommendation is created.

Transitions
-----------
    active ──execute──▶ executed   (optionally writes one history record)
    active ──cancel───▶ cancelled
    active ──expire───▶ expired    (only once now > valid_until)

Only ``active`` recommendations may transition. Attempting a transition on a
terminal recommendation raises ``RecommendationNotActionableError`` and
leaves storage untouched. The store re-checks the status at write time, so a
transition that lost a race to another trigger fails the same way.

The module-level functions are pure and return new ``Recommendation``
instances. ``OutcomeTracker`` wires them to a ``RecommendationStore`` and a
clock.

Profit/loss
-----------
    profit_loss            = actual_price - target_price
    profit_loss_percentage = profit_loss / target_price * 100   (4 places)

Both are ``None`` when the target price is not positive or no actual price
was recorded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Callable, Optional

from stock_adviser.exceptions import (
    RecommendationNotActionableError,
    RecommendationNotFoundError,
)
from stock_adviser.models.recommendation import Recommendation, RecommendationHistory
from stock_adviser.storage.base import RecommendationStore
from stock_adviser.taxonomy.recommendation_taxonomy import (
    RecommendationAction,
    RecommendationOutcome,
    RecommendationStatus,
)
from stock_adviser.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

_PERCENT_PLACES = Decimal("0.0001")


# ── Pure transitions ──────────────────────────────────────────────────────────

def _require_active(rec: Recommendation) -> None:
    if rec.status is not RecommendationStatus.ACTIVE:
        raise RecommendationNotActionableError(rec.id, rec.status.value)


def execute_recommendation(
    rec: Recommendation,
    actual_action: RecommendationAction,
    actual_price: Optional[Decimal],
    now: datetime,
) -> Recommendation:
    """Return an executed copy of ``rec``.

    Raises:
        RecommendationNotActionableError: If ``rec`` is not active.
    """
    _require_active(rec)
    return rec.model_copy(
        update={
            "status": RecommendationStatus.EXECUTED,
            "actual_action": actual_action,
            "actual_price": actual_price,
            "executed_at": ensure_utc(now),
        }
    )


def cancel_recommendation(rec: Recommendation) -> Recommendation:
    """Return a cancelled copy of ``rec``.

    Raises:
        RecommendationNotActionableError: If ``rec`` is not active.
    """
    _require_active(rec)
    return rec.model_copy(update={"status": RecommendationStatus.CANCELLED})


def is_expired(rec: Recommendation, now: datetime) -> bool:
    """True when ``rec`` is still active but its validity window has passed."""
    return rec.status is RecommendationStatus.ACTIVE and ensure_utc(now) > rec.valid_until


def expire(rec: Recommendation, now: datetime) -> Recommendation:
    """Return an expired copy of ``rec``, or ``rec`` itself when not yet expired."""
    if not is_expired(rec, now):
        return rec
    return rec.model_copy(update={"status": RecommendationStatus.EXPIRED})


def build_history(
    rec: Recommendation,
    outcome: RecommendationOutcome,
    now: datetime,
) -> RecommendationHistory:
    """Build the closing history record for an executed recommendation."""
    profit_loss: Optional[Decimal] = None
    profit_loss_pct: Optional[Decimal] = None

    if rec.target_price > 0 and rec.actual_price is not None:
        profit_loss = rec.actual_price - rec.target_price
        profit_loss_pct = (profit_loss / rec.target_price * 100).quantize(
            _PERCENT_PLACES, rounding=ROUND_HALF_EVEN
        )

    return RecommendationHistory(
        recommendation_id=rec.id,
        user_id=rec.user_id,
        symbol=rec.symbol,
        original_action=rec.action,
        original_price=rec.target_price,
        actual_action=rec.actual_action,
        actual_price=rec.actual_price,
        outcome=outcome,
        profit_loss=profit_loss,
        profit_loss_percentage=profit_loss_pct,
        created_at=rec.created_at,
        closed_at=ensure_utc(now),
    )


# ── Store-backed tracker ──────────────────────────────────────────────────────

@dataclass
class ExecutionResult:
    """Outcome of ``OutcomeTracker.execute``.

    Attributes:
        recommendation: The executed recommendation as persisted.
        history:        The history record, when an outcome was supplied.
    """

    recommendation: Recommendation
    history:        Optional[RecommendationHistory] = None


class OutcomeTracker:
    """Applies lifecycle transitions against a ``RecommendationStore``.

    Args:
        store: Persistence collaborator.
        clock: Returns the current UTC time. Injected for tests.
    """

    def __init__(
        self,
        store: RecommendationStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.clock = clock

    def _load(self, user_id: str, recommendation_id: str) -> Recommendation:
        rec = self.store.get_recommendation(user_id, recommendation_id)
        if rec is None:
            raise RecommendationNotFoundError(user_id, recommendation_id)
        return rec

    def execute(
        self,
        user_id: str,
        recommendation_id: str,
        actual_action: RecommendationAction,
        actual_price: Optional[Decimal],
        outcome: Optional[RecommendationOutcome] = None,
    ) -> ExecutionResult:
        """Mark a recommendation executed and, with an outcome, close it into history.

        Raises:
            RecommendationNotFoundError:      Unknown ``recommendation_id``.
            RecommendationNotActionableError: The recommendation is not active.
        """
        rec = self._load(user_id, recommendation_id)
        now = self.clock()
        executed = execute_recommendation(rec, actual_action, actual_price, now)
        self.store.transition_recommendation(executed)

        history: Optional[RecommendationHistory] = None
        if outcome is not None:
            history = self.store.create_history(build_history(executed, outcome, now))

        logger.info(
            "Executed recommendation | id=%s | user=%s | symbol=%s | "
            "action=%s | actual_action=%s | actual_price=%s | outcome=%s",
            executed.id, user_id, executed.symbol, executed.action.value,
            actual_action.value, actual_price,
            outcome.value if outcome is not None else None,
        )
        return ExecutionResult(recommendation=executed, history=history)

    def cancel(self, user_id: str, recommendation_id: str) -> Recommendation:
        """Cancel an active recommendation.

        Raises:
            RecommendationNotFoundError:      Unknown ``recommendation_id``.
            RecommendationNotActionableError: The recommendation is not active.
        """
        rec = self._load(user_id, recommendation_id)
        cancelled = self.store.transition_recommendation(cancel_recommendation(rec))
        logger.info(
            "Cancelled recommendation | id=%s | user=%s | symbol=%s",
            cancelled.id, user_id, cancelled.symbol,
        )
        return cancelled

    def sweep_expired(self, user_id: str) -> list[Recommendation]:
        """Expire every active recommendation of ``user_id`` past its validity.

        A recommendation executed or cancelled between the read and the write
        keeps that status and is left out of the result.

        Returns:
            The recommendations that were transitioned, as persisted.
        """
        now = self.clock()
        swept: list[Recommendation] = []
        for rec in self.store.get_active_recommendations(user_id):
            if not is_expired(rec, now):
                continue
            try:
                swept.append(self.store.transition_recommendation(expire(rec, now)))
            except RecommendationNotActionableError as exc:
                logger.info(
                    "Skipped expiry, already closed | id=%s | user=%s | status=%s",
                    rec.id, user_id, exc.status,
                )

        if swept:
            logger.info(
                "Expired %d recommendation(s) | user=%s | symbols=%s",
                len(swept), user_id, [r.symbol for r in swept],
            )
        return swept
