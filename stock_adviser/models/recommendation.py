"""
Recommendation and recommendation-history models.

``Recommendation`` is the engine's output: a scored trading signal for one
(user, symbol) pair that stays ``active`` for a fixed validity window. Both
models are frozen. Lifecycle transitions (execute, cancel, expire) live in
``stock_adviser.recommendations.outcome`` and return new instances, so a
recommendation already handed to a caller is never mutated underneath it.

``RecommendationHistory`` is the closed record written once when an executed
recommendation is given an outcome.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stock_adviser.taxonomy.recommendation_taxonomy import (
    RecommendationAction,
    RecommendationOutcome,
    RecommendationStatus,
    RiskLevel,
    TimeHorizon,
)
from stock_adviser.utils.time_utils import ensure_utc

_SCORE_MIN = Decimal("0")
_SCORE_MAX = Decimal("100")


def new_id() -> str:
    """Return a fresh UUID4 string identifier."""
    return str(uuid4())


class Recommendation(BaseModel):
    """A trading signal for one user and symbol.

    Attributes:
        id: UUID4 string.
        user_id: Owner of the recommendation (storage partition key).
        symbol: Ticker.
        action: Suggested action.
        confidence: Composite score on the 0–100 scale.
        target_price: Price the signal expects, rounded to 2 places.
        stop_loss: Exit price from the user's stop-loss percentage.
        reasoning: ``"; "``-joined explanation clauses.
        key_factors: Short labels, in rule order.
        risk_level: Risk classification.
        time_horizon: Expected holding period.
        created_at: UTC creation time.
        valid_until: UTC expiry time; always after ``created_at``.
        status: Lifecycle state.
        technical_score / fundamental_score / sentiment_score: Sub-scores.
        overall_score: Composite score (equal to ``confidence``).
        actual_action / actual_price / executed_at: Set on execution.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    symbol: str
    action: RecommendationAction
    confidence: Decimal
    target_price: Decimal
    stop_loss: Decimal
    reasoning: str
    key_factors: tuple[str, ...] = ()
    risk_level: RiskLevel
    time_horizon: TimeHorizon
    created_at: datetime
    valid_until: datetime
    status: RecommendationStatus = RecommendationStatus.ACTIVE
    technical_score: Decimal
    fundamental_score: Decimal
    sentiment_score: Decimal
    overall_score: Decimal
    actual_action: Optional[RecommendationAction] = None
    actual_price: Optional[Decimal] = None
    executed_at: Optional[datetime] = None

    @field_validator(
        "confidence",
        "technical_score",
        "fundamental_score",
        "sentiment_score",
        "overall_score",
    )
    @classmethod
    def validate_score_range(cls, v: Decimal) -> Decimal:
        if not _SCORE_MIN <= v <= _SCORE_MAX:
            raise ValueError(f"Scores must be in [0, 100], got {v}.")
        return v

    @field_validator("target_price", "stop_loss")
    @classmethod
    def validate_price_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Prices must be non-negative.")
        return v

    @field_validator("created_at", "valid_until", "executed_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_lifecycle(self) -> "Recommendation":
        if self.valid_until <= self.created_at:
            raise ValueError(
                f"valid_until ({self.valid_until}) must be after "
                f"created_at ({self.created_at})."
            )
        if self.status is RecommendationStatus.EXECUTED and self.executed_at is None:
            raise ValueError("An executed recommendation must have executed_at set.")
        return self


class RecommendationHistory(BaseModel):
    """Closed record of an executed recommendation and how it turned out.

    Attributes:
        id: UUID4 string.
        recommendation_id: The recommendation this record closes.
        original_action: Action suggested at creation.
        original_price: Target price at creation.
        actual_action / actual_price: What the user actually did.
        outcome: User-supplied classification.
        profit_loss: ``actual_price - original_price``; ``None`` when undefined.
        profit_loss_percentage: ``profit_loss / original_price * 100``;
            ``None`` when ``original_price <= 0``.
        created_at: Creation time of the recommendation.
        closed_at: Time the history record was written.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    recommendation_id: str
    user_id: str
    symbol: str
    original_action: RecommendationAction
    original_price: Decimal
    actual_action: Optional[RecommendationAction] = None
    actual_price: Optional[Decimal] = None
    outcome: RecommendationOutcome
    profit_loss: Optional[Decimal] = None
    profit_loss_percentage: Optional[Decimal] = None
    created_at: datetime
    closed_at: datetime

    @field_validator("created_at", "closed_at")
    @classmethod
    def validate_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
