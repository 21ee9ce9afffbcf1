"""
Closed vocabularies for recommendations and user strategy.

  - ``RecommendationAction``  — what the engine suggests doing.
  - ``RiskLevel``             — how risky the position is judged to be.
  - ``TimeHorizon``           — how long the signal is expected to play out.
  - ``RecommendationStatus``  — lifecycle state; ``ACTIVE`` is the only
                                non-terminal value.
  - ``RecommendationOutcome`` — how an executed recommendation turned out.
  - ``RiskTolerance`` / ``InvestmentHorizon`` — user strategy preferences.

Values are lowercase snake_case strings, which is also their storage and
JSON representation.

This module has NO imports from any other ``stock_adviser`` package.
"""

from enum import StrEnum


class RecommendationAction(StrEnum):
    """Trading action, ordered from most bullish to most bearish."""

    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"


class RiskLevel(StrEnum):
    """Risk classification of a recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class TimeHorizon(StrEnum):
    """Expected holding period of a recommendation."""

    SHORT_TERM = "short_term"
    """1–4 weeks."""

    MEDIUM_TERM = "medium_term"
    """1–6 months."""

    LONG_TERM = "long_term"
    """6+ months."""


class RecommendationStatus(StrEnum):
    """Lifecycle state of a recommendation."""

    ACTIVE = "active"
    EXECUTED = "executed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True for every state a recommendation can never leave."""
        return self is not RecommendationStatus.ACTIVE


class RecommendationOutcome(StrEnum):
    """Result of acting on a recommendation."""

    PROFITABLE = "profitable"
    LOSS = "loss"
    BREAKEVEN = "breakeven"


class RiskTolerance(StrEnum):
    """User's appetite for risk."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InvestmentHorizon(StrEnum):
    """User's preferred holding period."""

    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"
