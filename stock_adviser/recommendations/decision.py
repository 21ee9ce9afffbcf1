"""
Decision engine: maps scores, snapshot and user strategy to an action,
target price, stop loss, risk level, time horizon, reasoning and key factors.

All functions are pure threshold tables checked top-down, first match wins.

Action (from overall score)
---------------------------
    >= 80  strong_buy     >= 65  buy     >= 35  hold     >= 20  sell
    else   strong_sell

Target price multiplier (from overall score)
--------------------------------------------
    >= 80  1.20     >= 65  1.15     >= 50  1.10     >= 35  1.05     else  0.95

Stop loss
---------
    price × (1 − stop_loss_percentage / 100), from the user's sell strategy.

Risk level (beta or overall score)
----------------------------------
    beta > 1.5 or score < 30  very_high
    beta > 1.2 or score < 40  high
    beta > 0.8 or score < 60  medium
    else                      low

Time horizon (overall score only)
---------------------------------
    > 70  short_term     > 50  medium_term     else  long_term

The user's own ``investment_horizon`` is deliberately not consulted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from stock_adviser.models.stock import StockSnapshot
from stock_adviser.models.user import TradingStrategy
from stock_adviser.recommendations.scorer import ScoreComponents
from stock_adviser.taxonomy.recommendation_taxonomy import (
    RecommendationAction,
    RiskLevel,
    TimeHorizon,
)

_CENTS = Decimal("0.01")

_ACTION_THRESHOLDS: tuple[tuple[Decimal, RecommendationAction], ...] = (
    (Decimal("80"), RecommendationAction.STRONG_BUY),
    (Decimal("65"), RecommendationAction.BUY),
    (Decimal("35"), RecommendationAction.HOLD),
    (Decimal("20"), RecommendationAction.SELL),
)

_TARGET_MULTIPLIERS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("80"), Decimal("1.20")),
    (Decimal("65"), Decimal("1.15")),
    (Decimal("50"), Decimal("1.10")),
    (Decimal("35"), Decimal("1.05")),
)
_FALLBACK_MULTIPLIER = Decimal("0.95")


@dataclass(frozen=True)
class Decision:
    """Everything the decision engine derives for one snapshot."""

    action:       RecommendationAction
    target_price: Decimal
    stop_loss:    Decimal
    risk_level:   RiskLevel
    time_horizon: TimeHorizon
    reasoning:    str
    key_factors:  tuple[str, ...]


def determine_action(score: Decimal) -> RecommendationAction:
    for threshold, action in _ACTION_THRESHOLDS:
        if score >= threshold:
            return action
    return RecommendationAction.STRONG_SELL


def calculate_target_price(current_price: Decimal, score: Decimal) -> Decimal:
    multiplier = _FALLBACK_MULTIPLIER
    for threshold, candidate in _TARGET_MULTIPLIERS:
        if score >= threshold:
            multiplier = candidate
            break
    return _round_cents(current_price * multiplier)


def calculate_stop_loss(current_price: Decimal, stop_loss_percentage: Decimal) -> Decimal:
    return _round_cents(current_price * (1 - stop_loss_percentage / 100))


def determine_risk_level(score: Decimal, beta: Decimal) -> RiskLevel:
    if beta > Decimal("1.5") or score < 30:
        return RiskLevel.VERY_HIGH
    if beta > Decimal("1.2") or score < 40:
        return RiskLevel.HIGH
    if beta > Decimal("0.8") or score < 60:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def determine_time_horizon(score: Decimal) -> TimeHorizon:
    if score > 70:
        return TimeHorizon.SHORT_TERM
    if score > 50:
        return TimeHorizon.MEDIUM_TERM
    return TimeHorizon.LONG_TERM


def build_reasoning(scores: ScoreComponents, snapshot: StockSnapshot) -> str:
    """Assemble the human-readable rationale.

    Clauses, in order, at most one per line:
      technical score > 60 / < 40,
      fundamental score > 60 / < 40,
      price change > +2 % / < −2 %.

    Returns:
        ``"; "``-joined clauses; empty when none apply.
    """
    reasons: list[str] = []

    if scores.technical_score > 60:
        reasons.append("Strong technical indicators suggest upward momentum")
    elif scores.technical_score < 40:
        reasons.append("Technical indicators indicate potential downside")

    if scores.fundamental_score > 60:
        reasons.append("Solid fundamentals with strong financial metrics")
    elif scores.fundamental_score < 40:
        reasons.append("Weak fundamentals raise concerns")

    change = snapshot.price_change_percentage
    if change > 2:
        reasons.append("Recent positive price movement supports bullish outlook")
    elif change < -2:
        reasons.append("Recent price decline may present buying opportunity")

    return "; ".join(reasons)


def build_key_factors(snapshot: StockSnapshot) -> tuple[str, ...]:
    """Short labels for the notable conditions in a snapshot, in rule order."""
    ind = snapshot.technical_indicators
    fund = snapshot.fundamentals
    factors: list[str] = []

    if ind.rsi < 30:
        factors.append("Oversold conditions (RSI)")
    if ind.rsi > 70:
        factors.append("Overbought conditions (RSI)")

    if snapshot.price > ind.sma20:
        factors.append("Price above 20-day SMA")
    if snapshot.price > ind.sma50:
        factors.append("Price above 50-day SMA")

    if fund.revenue_growth > Decimal("0.10"):
        factors.append("Strong revenue growth")
    if fund.return_on_equity > Decimal("0.15"):
        factors.append("High return on equity")

    if snapshot.pe_ratio < 20:
        factors.append("Attractive P/E ratio")
    if snapshot.dividend_yield > Decimal("0.02"):
        factors.append("Dividend income potential")

    return tuple(factors)


def decide(
    snapshot: StockSnapshot,
    scores: ScoreComponents,
    strategy: TradingStrategy,
) -> Decision:
    """Run every decision rule for one snapshot."""
    score = scores.overall_score
    return Decision(
        action=determine_action(score),
        target_price=calculate_target_price(snapshot.price, score),
        stop_loss=calculate_stop_loss(
            snapshot.price, strategy.sell_strategy.stop_loss_percentage
        ),
        risk_level=determine_risk_level(score, snapshot.beta),
        time_horizon=determine_time_horizon(score),
        reasoning=build_reasoning(scores, snapshot),
        key_factors=build_key_factors(snapshot),
    )


def _round_cents(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_EVEN)
