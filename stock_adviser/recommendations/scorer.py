"""
Recommendation scoring: turns a ``StockSnapshot`` into technical,
fundamental, sentiment and composite scores.

Score formula (weighted sum, 0–100)
-----------------------------------
    overall = round(
        technical_score     * 0.4
        + fundamental_score * 0.4
        + sentiment_score   * 0.2,
        2,
    )

The overall score is also the recommendation's confidence.

Technical score (additive, clamped to [0, 100] at the end)
---------------------------------------------------------
    RSI < 30                  +20     (oversold)
    30 <= RSI < 50            +10
    RSI > 70                  -20     (overbought)
    60 < RSI <= 70            -10
    price > SMA20             +15
    price > SMA50             +15
    price > SMA200            +10
    MACD > signal             +15
    histogram > 0             +10
    price <= Bollinger lower  +10
    price >= Bollinger upper  -10

Fundamental score (additive, clamped to [0, 100] at the end)
------------------------------------------------------------
    0 < P/E < 15              +20     15 <= P/E < 25           +10
    revenue growth > 15%      +15     > 10%  +10     > 5%      +5
    ROE > 20%                 +15     > 15%  +10     > 10%     +5
    net margin > 20%          +15     > 15%  +10     > 10%     +5
    debt/equity < 0.5         +10     < 1.0  +5
    dividend yield > 3%       +10     > 2%   +5

Sentiment score
---------------
Pluggable via ``SentimentScorer``. ``ConstantSentimentScorer`` returns a
neutral 50 for every symbol.

Intermediate sums may leave [0, 100]; only the final value is clamped.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from stock_adviser.models.stock import StockSnapshot

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

TECHNICAL_WEIGHT = Decimal("0.4")
FUNDAMENTAL_WEIGHT = Decimal("0.4")
SENTIMENT_WEIGHT = Decimal("0.2")


@dataclass(frozen=True)
class ScoreComponents:
    """All sub-scores for one snapshot, each in [0, 100].

    Attributes:
        technical_score:   From indicators and price.
        fundamental_score: From valuation and financial ratios.
        sentiment_score:   From the configured ``SentimentScorer``.
        overall_score:     Weighted composite, rounded to 2 places.
    """

    technical_score:   Decimal
    fundamental_score: Decimal
    sentiment_score:   Decimal
    overall_score:     Decimal

    @property
    def confidence(self) -> Decimal:
        return self.overall_score


class SentimentScorer(ABC):
    """Source of a per-symbol sentiment score in [0, 100]."""

    @abstractmethod
    def score(self, symbol: str) -> Decimal:
        ...


class ConstantSentimentScorer(SentimentScorer):
    """Returns the same sentiment for every symbol (neutral 50 by default)."""

    def __init__(self, value: Decimal = Decimal("50")) -> None:
        if not _ZERO <= value <= _HUNDRED:
            raise ValueError(f"Sentiment value must be in [0, 100], got {value}.")
        self.value = value

    def score(self, symbol: str) -> Decimal:
        return self.value


def technical_score(snapshot: StockSnapshot) -> Decimal:
    """Score price action and indicators. See module docstring for the rule table."""
    ind = snapshot.technical_indicators
    price = snapshot.price
    score = _ZERO

    if ind.rsi < 30:
        score += 20
    elif ind.rsi < 50:
        score += 10
    elif ind.rsi > 70:
        score -= 20
    elif ind.rsi > 60:
        score -= 10

    if price > ind.sma20:
        score += 15
    if price > ind.sma50:
        score += 15
    if price > ind.sma200:
        score += 10

    if ind.macd > ind.macd_signal:
        score += 15
    if ind.macd_histogram > 0:
        score += 10

    if price <= ind.bollinger_lower:
        score += 10
    elif price >= ind.bollinger_upper:
        score -= 10

    return _clamp(score)


def fundamental_score(snapshot: StockSnapshot) -> Decimal:
    """Score valuation and financial health. See module docstring for the rule table."""
    fund = snapshot.fundamentals
    pe = snapshot.pe_ratio
    score = _ZERO

    if 0 < pe < 15:
        score += 20
    elif 0 < pe < 25:
        score += 10

    score += _tiered(fund.revenue_growth, (("0.15", 15), ("0.10", 10), ("0.05", 5)))
    score += _tiered(fund.return_on_equity, (("0.20", 15), ("0.15", 10), ("0.10", 5)))
    score += _tiered(fund.net_margin, (("0.20", 15), ("0.15", 10), ("0.10", 5)))

    if fund.debt_to_equity < Decimal("0.5"):
        score += 10
    elif fund.debt_to_equity < Decimal("1.0"):
        score += 5

    score += _tiered(snapshot.dividend_yield, (("0.03", 10), ("0.02", 5)))

    return _clamp(score)


def composite_score(
    technical: Decimal,
    fundamental: Decimal,
    sentiment: Decimal,
) -> Decimal:
    """Weighted blend of the three sub-scores, rounded to 2 places."""
    blended = (
        technical     * TECHNICAL_WEIGHT
        + fundamental * FUNDAMENTAL_WEIGHT
        + sentiment   * SENTIMENT_WEIGHT
    )
    return blended.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)


def compute_scores(
    snapshot: StockSnapshot,
    sentiment_scorer: SentimentScorer,
) -> ScoreComponents:
    """Compute all score components for one snapshot."""
    technical = technical_score(snapshot)
    fundamental = fundamental_score(snapshot)
    sentiment = _clamp(sentiment_scorer.score(snapshot.symbol))

    return ScoreComponents(
        technical_score=technical,
        fundamental_score=fundamental,
        sentiment_score=sentiment,
        overall_score=composite_score(technical, fundamental, sentiment),
    )


# ── Helpers ────────────────────────────────────────────────────────────────────

def _tiered(value: Decimal, tiers: tuple[tuple[str, int], ...]) -> int:
    """Points for the first ``value > threshold`` tier, highest threshold first."""
    for threshold, points in tiers:
        if value > Decimal(threshold):
            return points
    return 0


def _clamp(value: Decimal) -> Decimal:
    return max(_ZERO, min(_HUNDRED, value))
