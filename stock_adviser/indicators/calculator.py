"""
Technical indicators over an ascending daily close series.

All functions are pure: they take a sequence of ``Decimal`` closes (oldest
first) and return ``Decimal`` results. Nothing here raises on short input.
An indicator that cannot be computed returns the sentinel ``0``, and
``calculate_indicators()`` returns an all-sentinel ``TechnicalIndicators``
when the series is shorter than ``IndicatorConfig.min_history``.

Rounding
--------
Price-scale values (SMA, EMA, RSI, Bollinger) are rounded to 2 places and
MACD-scale values (MACD, signal, histogram) to 4, both half-to-even. The
scoring thresholds are tuned to these rounded values.

Formulas
--------
SMA(n)       mean of the last n closes.
EMA(n)       seeded with the first close of the supplied slice, then
             ema = price·k + ema·(1 − k) with k = 2 / (n + 1).
RSI(n)       simple (not Wilder-smoothed) average of the first n gains and
             first n losses; RSI = 100 − 100 / (1 + avg_gain / avg_loss),
             100 when avg_loss is 0.
MACD         EMA(last 12, 12) − EMA(last 26, 26).
             Signal, ``"history"`` mode: EMA(9) over the MACD line computed at
             every point from the 26th close onward.
             Signal, ``"latest"`` mode: EMA(9) of the single latest MACD value,
             which collapses to the MACD rounded to 2 places.
Bollinger    middle = SMA(20); upper/lower = middle ± 2·σ with σ the
             population standard deviation of the same window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Literal, Optional, Sequence

from stock_adviser.config import IndicatorConfig
from stock_adviser.models.stock import TechnicalIndicators

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_PRICE_PLACES = Decimal("0.01")
_MACD_PLACES = Decimal("0.0001")

MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
BOLLINGER_PERIOD = 20
BOLLINGER_K = Decimal("2")
VOLUME_SMA_PERIOD = 20

SignalMode = Literal["history", "latest"]


@dataclass(frozen=True)
class MacdResult:
    macd: Decimal
    signal: Decimal
    histogram: Decimal


@dataclass(frozen=True)
class BollingerBands:
    upper: Decimal
    middle: Decimal
    lower: Decimal


# ── Single indicators ─────────────────────────────────────────────────────────


def sma(series: Sequence[Decimal], period: int) -> Decimal:
    """Simple moving average of the last ``period`` values; ``0`` if too short."""
    _check_period(period)
    if len(series) < period:
        return _ZERO
    window = series[-period:]
    return _round_price(sum(window, _ZERO) / period)


def ema(series: Sequence[Decimal], period: int) -> Decimal:
    """Exponential moving average over the whole supplied slice; ``0`` if empty."""
    _check_period(period)
    return _round_price(_ema_raw(series, period))


def rsi(series: Sequence[Decimal], period: int = 14) -> Decimal:
    """Relative Strength Index in [0, 100]; ``0`` with fewer than ``period + 1`` points."""
    _check_period(period)
    if len(series) < period + 1:
        return _ZERO

    gains: list[Decimal] = []
    losses: list[Decimal] = []
    for prev, curr in zip(series, series[1:]):
        change = curr - prev
        gains.append(change if change > 0 else _ZERO)
        losses.append(-change if change < 0 else _ZERO)

    avg_gain = sum(gains[:period], _ZERO) / period
    avg_loss = sum(losses[:period], _ZERO) / period

    if avg_loss == 0:
        return _round_price(_HUNDRED)

    rs = avg_gain / avg_loss
    return _round_price(_HUNDRED - _HUNDRED / (1 + rs))


def macd(series: Sequence[Decimal], signal_mode: SignalMode = "history") -> MacdResult:
    """MACD line, signal line and histogram; all ``0`` with fewer than 26 points."""
    if len(series) < MACD_SLOW:
        return MacdResult(_ZERO, _ZERO, _ZERO)

    line = _macd_line(series)

    if signal_mode == "latest":
        signal = ema([line], MACD_SIGNAL)
    elif signal_mode == "history":
        history = [_macd_line(series[:end]) for end in range(MACD_SLOW, len(series) + 1)]
        signal = _ema_raw(history, MACD_SIGNAL)
    else:
        raise ValueError(f"Unknown MACD signal mode '{signal_mode}'.")

    return MacdResult(
        macd=_round_macd(line),
        signal=_round_macd(signal),
        histogram=_round_macd(line - signal),
    )


def bollinger_bands(
    series: Sequence[Decimal],
    period: int = BOLLINGER_PERIOD,
    k: Decimal = BOLLINGER_K,
) -> BollingerBands:
    """Bollinger Bands over the last ``period`` values; all ``0`` if too short."""
    _check_period(period)
    if len(series) < period:
        return BollingerBands(_ZERO, _ZERO, _ZERO)

    window = series[-period:]
    middle = sum(window, _ZERO) / period
    variance = sum(((x - middle) ** 2 for x in window), _ZERO) / period
    std = variance.sqrt()

    return BollingerBands(
        upper=_round_price(middle + std * k),
        middle=_round_price(middle),
        lower=_round_price(middle - std * k),
    )


# ── Full indicator set ────────────────────────────────────────────────────────


def calculate_indicators(
    closes: Sequence[Decimal],
    volumes: Optional[Sequence[int]] = None,
    config: Optional[IndicatorConfig] = None,
    symbol: str = "",
) -> TechnicalIndicators:
    """Compute every ``TechnicalIndicators`` field from a daily close series.

    Args:
        closes:  Daily closes, oldest first.
        volumes: Daily volumes aligned with ``closes``. When omitted,
                 ``volume_sma`` stays at its sentinel.
        config:  Indicator parameters; defaults to ``IndicatorConfig()``.
        symbol:  Used only for log messages.

    Returns:
        Populated indicators, or ``TechnicalIndicators.unavailable()`` when
        there are fewer than ``config.min_history`` closes.

    Raises:
        ValueError: If any close is not a finite number.
    """
    cfg = config or IndicatorConfig()
    series = _to_decimal_series(closes)

    if len(series) < cfg.min_history:
        logger.warning(
            "Insufficient price history for %s: %d point(s), need %d.",
            symbol or "<unknown>", len(series), cfg.min_history,
        )
        return TechnicalIndicators.unavailable()

    macd_result = macd(series, signal_mode=cfg.macd_signal_mode)
    bands = bollinger_bands(series)
    volume_series = _to_decimal_series(volumes) if volumes else []

    return TechnicalIndicators(
        rsi=rsi(series[-(cfg.rsi_period + 1):], cfg.rsi_period),
        sma20=sma(series, 20),
        sma50=sma(series, 50),
        sma200=sma(series, 200),
        ema12=ema(series[-MACD_FAST:], MACD_FAST),
        ema26=ema(series[-MACD_SLOW:], MACD_SLOW),
        macd=macd_result.macd,
        macd_signal=macd_result.signal,
        macd_histogram=macd_result.histogram,
        bollinger_upper=bands.upper,
        bollinger_middle=bands.middle,
        bollinger_lower=bands.lower,
        volume_sma=sma(volume_series, VOLUME_SMA_PERIOD),
    )


# ── Helpers ───────────────────────────────────────────────────────────────────


def _ema_raw(series: Sequence[Decimal], period: int) -> Decimal:
    if not series:
        return _ZERO
    k = Decimal(2) / Decimal(period + 1)
    value = series[0]
    for price in series[1:]:
        value = price * k + value * (1 - k)
    return value


def _macd_line(series: Sequence[Decimal]) -> Decimal:
    # Built from the 2-place EMAs so the line matches the stored ema12/ema26.
    return ema(series[-MACD_FAST:], MACD_FAST) - ema(series[-MACD_SLOW:], MACD_SLOW)


def _to_decimal_series(values: Sequence) -> list[Decimal]:
    series = [v if isinstance(v, Decimal) else Decimal(str(v)) for v in values]
    for v in series:
        if not v.is_finite():
            raise ValueError(f"Price series values must be finite, got {v}.")
    return series


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}.")


def _round_price(value: Decimal) -> Decimal:
    return value.quantize(_PRICE_PLACES, rounding=ROUND_HALF_EVEN)


def _round_macd(value: Decimal) -> Decimal:
    return value.quantize(_MACD_PLACES, rounding=ROUND_HALF_EVEN)
