"""
Market snapshot models.

``StockSnapshot`` is the unit of market data the engine consumes: quote,
valuation ratios, one ``TechnicalIndicators`` and one ``Fundamentals`` block.
A snapshot is immutable once fetched; a newer snapshot for the same symbol
supersedes the old one rather than mutating it.

All numeric fields are ``Decimal`` so indicator and score arithmetic stays in
fixed point. A value of ``0`` in ``TechnicalIndicators`` means "unavailable"
(not enough price history), never an error.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stock_adviser.utils.time_utils import ensure_utc, utcnow

_ZERO = Decimal("0")


class TechnicalIndicators(BaseModel):
    """Indicators derived from a daily close series.

    Attributes:
        rsi: 14-period RSI in [0, 100].
        sma20 / sma50 / sma200: Simple moving averages.
        ema12 / ema26: Exponential moving averages.
        macd: ``ema12 - ema26`` (4 decimal places).
        macd_signal: EMA(9) of the MACD line.
        macd_histogram: ``macd - macd_signal``.
        bollinger_upper / bollinger_middle / bollinger_lower: 20-period, 2σ bands.
        volume_sma: 20-period SMA of daily volume.
    """

    model_config = ConfigDict(frozen=True)

    rsi: Decimal = _ZERO
    sma20: Decimal = _ZERO
    sma50: Decimal = _ZERO
    sma200: Decimal = _ZERO
    ema12: Decimal = _ZERO
    ema26: Decimal = _ZERO
    macd: Decimal = _ZERO
    macd_signal: Decimal = _ZERO
    macd_histogram: Decimal = _ZERO
    bollinger_upper: Decimal = _ZERO
    bollinger_middle: Decimal = _ZERO
    bollinger_lower: Decimal = _ZERO
    volume_sma: Decimal = _ZERO

    @classmethod
    def unavailable(cls) -> "TechnicalIndicators":
        """All-sentinel indicators for a series too short to analyse."""
        return cls()

    @property
    def is_available(self) -> bool:
        return any(value != _ZERO for value in self.model_dump().values())


class Fundamentals(BaseModel):
    """Company fundamentals as reported by the market-data source.

    Ratios are fractions (``0.15`` = 15 %). Only ``revenue_growth``,
    ``return_on_equity``, ``net_margin`` and ``debt_to_equity`` feed the
    fundamental score; the rest are carried through for display.
    """

    model_config = ConfigDict(frozen=True)

    revenue: Decimal = _ZERO
    revenue_growth: Decimal = _ZERO
    net_income: Decimal = _ZERO
    gross_margin: Decimal = _ZERO
    operating_margin: Decimal = _ZERO
    net_margin: Decimal = _ZERO
    debt_to_equity: Decimal = _ZERO
    return_on_equity: Decimal = _ZERO
    return_on_assets: Decimal = _ZERO
    current_ratio: Decimal = _ZERO
    quick_ratio: Decimal = _ZERO
    book_value_per_share: Decimal = _ZERO
    price_to_book: Decimal = _ZERO
    price_to_sales: Decimal = _ZERO


class StockSnapshot(BaseModel):
    """Point-in-time market state for one symbol.

    Attributes:
        symbol: Ticker, upper-cased on construction.
        price: Last traded price.
        price_change: Absolute change since previous close.
        price_change_percentage: Change in percent units (``2.5`` = 2.5 %).
        open / day_high / day_low: Session OHLC (close is ``price``).
        volume / average_volume: Session and average share volume.
        week52_high / week52_low: 52-week range.
        pe_ratio: Price/earnings; ``0`` when unknown or negative earnings.
        dividend_yield: Fraction (``0.03`` = 3 %).
        beta: Volatility relative to the market.
        eps: Earnings per share.
        market_cap: Market capitalisation.
        timestamp: UTC time the snapshot was taken.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    company_name: str = ""
    sector: str = "Unknown"
    industry: str = "Unknown"
    price: Decimal
    price_change: Decimal = _ZERO
    price_change_percentage: Decimal = _ZERO
    open: Decimal = _ZERO
    day_high: Decimal = _ZERO
    day_low: Decimal = _ZERO
    volume: int = 0
    average_volume: int = 0
    week52_high: Decimal = _ZERO
    week52_low: Decimal = _ZERO
    pe_ratio: Decimal = _ZERO
    dividend_yield: Decimal = _ZERO
    beta: Decimal = _ZERO
    eps: Decimal = _ZERO
    market_cap: Decimal = _ZERO
    timestamp: datetime = Field(default_factory=utcnow)
    technical_indicators: TechnicalIndicators = TechnicalIndicators()
    fundamentals: Fundamentals = Fundamentals()

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty.")
        return v

    @field_validator("price")
    @classmethod
    def validate_price_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("price must be non-negative.")
        return v

    @field_validator("volume", "average_volume")
    @classmethod
    def validate_volume_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Volume values must be non-negative.")
        return v

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
