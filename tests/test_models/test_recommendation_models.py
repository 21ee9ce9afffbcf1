"""Tests for recommendation and recommendation-history models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from stock_adviser.models.recommendation import Recommendation, RecommendationHistory
from stock_adviser.taxonomy.recommendation_taxonomy import (
    RecommendationAction,
    RecommendationOutcome,
    RecommendationStatus,
    RiskLevel,
    TimeHorizon,
)

_T0 = datetime(2024, 9, 16, 14, 30, tzinfo=timezone.utc)


def _rec(**overrides) -> Recommendation:
    values = dict(
        user_id="user-1",
        symbol="AAPL",
        action=RecommendationAction.BUY,
        confidence=Decimal("78.00"),
        target_price=Decimal("115.00"),
        stop_loss=Decimal("90.00"),
        reasoning="RSI indicates oversold conditions",
        key_factors=("Oversold RSI",),
        risk_level=RiskLevel.LOW,
        time_horizon=TimeHorizon.SHORT_TERM,
        created_at=_T0,
        valid_until=_T0 + timedelta(days=7),
        technical_score=Decimal("85"),
        fundamental_score=Decimal("85"),
        sentiment_score=Decimal("50"),
        overall_score=Decimal("78.00"),
    )
    values.update(overrides)
    return Recommendation(**values)


class TestRecommendation:
    def test_valid_construction(self):
        rec = _rec()
        assert rec.status is RecommendationStatus.ACTIVE
        assert rec.actual_action is None
        assert rec.executed_at is None

    def test_ids_are_unique(self):
        assert _rec().id != _rec().id

    @pytest.mark.parametrize(
        "field", ["confidence", "technical_score", "fundamental_score", "sentiment_score", "overall_score"]
    )
    def test_score_out_of_range_raises(self, field):
        with pytest.raises(ValidationError, match="Scores"):
            _rec(**{field: Decimal("100.01")})

    def test_negative_target_raises(self):
        with pytest.raises(ValidationError, match="non-negative"):
            _rec(target_price=Decimal("-1"))

    def test_valid_until_must_follow_created_at(self):
        with pytest.raises(ValidationError, match="valid_until"):
            _rec(valid_until=_T0)

    def test_executed_requires_executed_at(self):
        with pytest.raises(ValidationError, match="executed_at"):
            _rec(status=RecommendationStatus.EXECUTED)

    def test_executed_with_timestamp_is_valid(self):
        rec = _rec(status=RecommendationStatus.EXECUTED, executed_at=_T0 + timedelta(days=1))
        assert rec.executed_at == _T0 + timedelta(days=1)

    def test_naive_datetimes_treated_as_utc(self):
        rec = _rec(
            created_at=datetime(2024, 9, 16, 14, 30),
            valid_until=datetime(2024, 9, 23, 14, 30),
        )
        assert rec.created_at == _T0
        assert rec.valid_until.tzinfo == timezone.utc

    def test_frozen(self):
        rec = _rec()
        with pytest.raises(ValidationError):
            rec.status = RecommendationStatus.CANCELLED

    def test_json_round_trip(self):
        rec = _rec(key_factors=("Oversold RSI", "Low P/E ratio"))
        assert Recommendation.model_validate_json(rec.model_dump_json()) == rec


class TestRecommendationHistory:
    def test_valid_construction(self):
        h = RecommendationHistory(
            recommendation_id="rec-1",
            user_id="user-1",
            symbol="AAPL",
            original_action=RecommendationAction.BUY,
            original_price=Decimal("115.00"),
            outcome=RecommendationOutcome.BREAKEVEN,
            created_at=_T0,
            closed_at=_T0 + timedelta(days=2),
        )
        assert h.profit_loss is None
        assert h.profit_loss_percentage is None
        assert h.closed_at > h.created_at

    def test_invalid_outcome_raises(self):
        with pytest.raises(ValidationError):
            RecommendationHistory(
                recommendation_id="rec-1",
                user_id="user-1",
                symbol="AAPL",
                original_action=RecommendationAction.BUY,
                original_price=Decimal("115.00"),
                outcome="jackpot",
                created_at=_T0,
                closed_at=_T0,
            )
