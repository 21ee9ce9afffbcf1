"""
User and trading strategy models.

A ``User`` owns exactly one ``TradingStrategy``. The engine reads the strategy
(preferred sectors for the watchlist, stop-loss percentage for the stop price)
but never modifies it.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator

from stock_adviser.taxonomy.recommendation_taxonomy import InvestmentHorizon, RiskTolerance


class SellStrategy(BaseModel):
    """Exit rules configured by the user. Percentages are in percent units."""

    model_config = ConfigDict(frozen=True)

    take_profit_percentage: Decimal = Decimal("20")
    stop_loss_percentage: Decimal = Decimal("10")
    trailing_stop_enabled: bool = False
    trailing_stop_percentage: Decimal = Decimal("5")

    @field_validator(
        "take_profit_percentage", "stop_loss_percentage", "trailing_stop_percentage"
    )
    @classmethod
    def validate_percentage(cls, v: Decimal) -> Decimal:
        if not Decimal("0") <= v <= Decimal("100"):
            raise ValueError(f"Percentages must be in [0, 100], got {v}.")
        return v


class TradingStrategy(BaseModel):
    """A user's investing preferences."""

    model_config = ConfigDict(frozen=True)

    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM
    investment_horizon: InvestmentHorizon = InvestmentHorizon.MEDIUM_TERM
    max_portfolio_size: int = 20
    preferred_sectors: tuple[str, ...] = ()
    sell_strategy: SellStrategy = SellStrategy()

    @field_validator("max_portfolio_size")
    @classmethod
    def validate_portfolio_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_portfolio_size must be >= 1, got {v}.")
        return v

    @field_validator("preferred_sectors")
    @classmethod
    def dedupe_sectors(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        # Sectors behave as a set, but keep the caller's order for the watchlist.
        return tuple(dict.fromkeys(s.strip() for s in v if s.strip()))


class User(BaseModel):
    """An account holder whose watchlist the engine analyses."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str = ""
    display_name: str = ""
    trading_strategy: TradingStrategy = TradingStrategy()

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("user_id must not be empty.")
        return v.strip()
