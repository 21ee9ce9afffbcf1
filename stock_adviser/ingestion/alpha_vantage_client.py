"""
Alpha Vantage market-data client.

API:   https://www.alphavantage.co/query
Docs:  https://www.alphavantage.co/documentation/

Endpoints used (all ``GET`` with ``function=...&symbol=...&apikey=...``):
  GLOBAL_QUOTE        → price, change, change percent, OHLC, volume
  OVERVIEW            → company name, sector, industry, valuation and ratios
  TIME_SERIES_DAILY   → daily closes and volumes for the indicator calculator

Alpha Vantage reports most failures with HTTP 200 and a JSON body carrying
``"Error Message"``, ``"Note"`` (rate limit) or ``"Information"``. Those, like
non-2xx responses, transport errors and unparseable JSON, raise
``MarketDataError``. An empty ``"Global Quote"`` means the symbol is unknown
and yields ``None``.

Numeric fields arrive as strings; ``"None"``, ``"-"`` and missing values are
read as the sentinel ``0``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from stock_adviser.config import IndicatorConfig, MarketDataConfig
from stock_adviser.exceptions import MarketDataError
from stock_adviser.indicators.calculator import calculate_indicators
from stock_adviser.models.stock import Fundamentals, StockSnapshot, TechnicalIndicators
from stock_adviser.storage.base import MarketDataProvider
from stock_adviser.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_MISSING = {"", "None", "-", "null"}
_ERROR_KEYS = ("Error Message", "Note", "Information")


# ── Response types ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Quote:
    """Parsed ``GLOBAL_QUOTE`` payload."""

    symbol:                  str
    price:                   Decimal
    price_change:            Decimal
    price_change_percentage: Decimal
    open:                    Decimal
    day_high:                Decimal
    day_low:                 Decimal
    volume:                  int


@dataclass(frozen=True)
class DailySeries:
    """Parsed ``TIME_SERIES_DAILY`` payload, oldest first."""

    closes:  list[Decimal]
    volumes: list[int]


@dataclass
class BatchFetchResult:
    """Outcome of ``AlphaVantageProvider.fetch_snapshots``.

    Attributes:
        snapshots: Snapshots fetched, in request order.
        missing:   Symbols the API did not recognise.
        failures:  symbol → error message for symbols whose fetch raised.
    """

    snapshots: list[StockSnapshot] = field(default_factory=list)
    missing:   list[str]           = field(default_factory=list)
    failures:  dict[str, str]      = field(default_factory=dict)


# ── Client ─────────────────────────────────────────────────────────────────────

class AlphaVantageClient:
    """Thin typed wrapper over the three Alpha Vantage endpoints.

    Usage::

        client = AlphaVantageClient(config.market_data)
        quote = client.fetch_quote("AAPL")

    Args:
        config:    Market-data settings. ``config.api_key`` must be set.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: MarketDataConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not config.api_key:
            raise MarketDataError(
                "Alpha Vantage API key is missing. Set ALPHA_VANTAGE_API_KEY in .env."
            )
        self.config = config
        self._client = httpx.Client(
            timeout=config.timeout_seconds,
            headers={"User-Agent": "stock-adviser/0.1"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AlphaVantageClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Endpoints ──────────────────────────────────────────────────────────────

    def fetch_quote(self, symbol: str) -> Optional[Quote]:
        """Fetch the latest quote, or ``None`` when the symbol is unknown."""
        data = self._get("GLOBAL_QUOTE", symbol)
        quote = data.get("Global Quote") or {}
        if not quote or not quote.get("05. price"):
            return None

        return Quote(
            symbol=quote.get("01. symbol", symbol),
            price=_to_decimal(quote.get("05. price")),
            price_change=_to_decimal(quote.get("09. change")),
            price_change_percentage=_to_decimal(
                str(quote.get("10. change percent", "")).rstrip("%")
            ),
            open=_to_decimal(quote.get("02. open")),
            day_high=_to_decimal(quote.get("03. high")),
            day_low=_to_decimal(quote.get("04. low")),
            volume=_to_int(quote.get("06. volume")),
        )

    def fetch_overview(self, symbol: str) -> dict[str, Any]:
        """Fetch the company overview. Returns ``{}`` when none is published."""
        data = self._get("OVERVIEW", symbol)
        return data if data.get("Symbol") else {}

    def fetch_daily_series(self, symbol: str) -> DailySeries:
        """Fetch daily closes and volumes, oldest first."""
        data = self._get("TIME_SERIES_DAILY", symbol, outputsize=self.config.outputsize)
        series = data.get("Time Series (Daily)") or {}
        if not isinstance(series, dict):
            raise MarketDataError("Malformed TIME_SERIES_DAILY payload.", symbol=symbol)

        closes: list[Decimal] = []
        volumes: list[int] = []
        # ISO dates sort chronologically as strings.
        for day in sorted(series):
            bar = series[day]
            if not isinstance(bar, dict):
                raise MarketDataError(f"Malformed TIME_SERIES_DAILY bar for {day}.", symbol=symbol)
            closes.append(_to_decimal(bar.get("4. close")))
            volumes.append(_to_int(bar.get("5. volume")))
        return DailySeries(closes=closes, volumes=volumes)

    # ── Transport ──────────────────────────────────────────────────────────────

    def _get(self, function: str, symbol: str, **extra: str) -> dict[str, Any]:
        params = {"function": function, "symbol": symbol, "apikey": self.config.api_key, **extra}
        try:
            resp = self._client.get(self.config.base_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise MarketDataError(
                f"{function} returned HTTP {exc.response.status_code}.", symbol=symbol
            ) from exc
        except httpx.HTTPError as exc:
            raise MarketDataError(f"{function} request failed: {exc}", symbol=symbol) from exc
        except ValueError as exc:
            raise MarketDataError(f"{function} returned invalid JSON.", symbol=symbol) from exc

        if not isinstance(data, dict):
            raise MarketDataError(f"{function} returned a non-object payload.", symbol=symbol)
        for key in _ERROR_KEYS:
            if key in data:
                raise MarketDataError(f"{function}: {data[key]}", symbol=symbol)
        return data


# ── Provider ───────────────────────────────────────────────────────────────────

class AlphaVantageProvider(MarketDataProvider):
    """Builds full ``StockSnapshot``s from live Alpha Vantage data.

    Args:
        client:            Configured ``AlphaVantageClient``.
        indicator_config:  Parameters for the indicator calculator.
    """

    def __init__(
        self,
        client: AlphaVantageClient,
        indicator_config: Optional[IndicatorConfig] = None,
    ) -> None:
        self.client = client
        self.indicator_config = indicator_config or IndicatorConfig()

    def get_snapshot(self, symbol: str) -> Optional[StockSnapshot]:
        symbol = symbol.strip().upper()
        logger.info("Fetching market data | symbol=%s", symbol)

        quote = self.client.fetch_quote(symbol)
        if quote is None:
            logger.warning("No quote data | symbol=%s", symbol)
            return None

        overview = self.client.fetch_overview(symbol)
        series = self.client.fetch_daily_series(symbol)
        indicators = (
            calculate_indicators(
                series.closes, series.volumes, config=self.indicator_config, symbol=symbol
            )
            if series.closes
            else TechnicalIndicators.unavailable()
        )

        try:
            return _build_snapshot(symbol, quote, overview, series, indicators)
        except ValidationError as exc:
            raise MarketDataError(f"Invalid market data: {exc}", symbol=symbol) from exc

    def fetch_snapshots(self, symbols: list[str]) -> BatchFetchResult:
        """Fetch many symbols in batches, pausing between batches.

        A failing symbol is logged and recorded; the rest of the batch and
        later batches still run.
        """
        cfg = self.client.config
        result = BatchFetchResult()
        batches = [symbols[i:i + cfg.batch_size] for i in range(0, len(symbols), cfg.batch_size)]

        with ThreadPoolExecutor(max_workers=cfg.batch_size) as pool:
            for index, batch in enumerate(batches):
                futures = [(s, pool.submit(self.get_snapshot, s)) for s in batch]
                for symbol, future in futures:
                    try:
                        snapshot = future.result()
                    except Exception as exc:
                        logger.error("Market data fetch failed | symbol=%s | error=%s", symbol, exc)
                        result.failures[symbol] = str(exc)
                        continue
                    if snapshot is None:
                        result.missing.append(symbol)
                    else:
                        result.snapshots.append(snapshot)

                if index < len(batches) - 1 and cfg.batch_pause_seconds > 0:
                    time.sleep(cfg.batch_pause_seconds)

        logger.info(
            "Batch fetch complete | requested=%d | fetched=%d | missing=%d | failed=%d",
            len(symbols), len(result.snapshots), len(result.missing), len(result.failures),
        )
        return result


# ── Parsing helpers ────────────────────────────────────────────────────────────

def _to_decimal(value: Any) -> Decimal:
    if value is None or str(value).strip() in _MISSING:
        return _ZERO
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise MarketDataError(f"Unparseable numeric value: {value!r}") from exc
    return parsed if parsed.is_finite() else _ZERO


def _to_int(value: Any) -> int:
    return int(_to_decimal(value))


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    return numerator / denominator if denominator > 0 else _ZERO


def _build_fundamentals(overview: dict[str, Any]) -> Fundamentals:
    if not overview:
        return Fundamentals()

    revenue = _to_decimal(overview.get("RevenueTTM"))
    profit_margin = _to_decimal(overview.get("ProfitMargin"))
    return Fundamentals(
        revenue=revenue,
        revenue_growth=_to_decimal(overview.get("QuarterlyRevenueGrowthYOY")),
        net_income=revenue * profit_margin,
        gross_margin=_ratio(_to_decimal(overview.get("GrossProfitTTM")), revenue),
        operating_margin=_to_decimal(overview.get("OperatingMarginTTM")),
        net_margin=profit_margin,
        debt_to_equity=_to_decimal(overview.get("DebtToEquityRatio")),
        return_on_equity=_to_decimal(overview.get("ReturnOnEquityTTM")),
        return_on_assets=_to_decimal(overview.get("ReturnOnAssetsTTM")),
        current_ratio=_to_decimal(overview.get("CurrentRatio")),
        quick_ratio=_to_decimal(overview.get("QuickRatio")),
        book_value_per_share=_to_decimal(overview.get("BookValue")),
        price_to_book=_to_decimal(overview.get("PriceToBookRatio")),
        price_to_sales=_to_decimal(overview.get("PriceToSalesRatioTTM")),
    )


def _build_snapshot(
    symbol: str,
    quote: Quote,
    overview: dict[str, Any],
    series: DailySeries,
    indicators: TechnicalIndicators,
) -> StockSnapshot:
    recent_volumes = series.volumes[-50:]
    average_volume = sum(recent_volumes) // len(recent_volumes) if recent_volumes else 0

    return StockSnapshot(
        symbol=symbol,
        company_name=overview.get("Name") or symbol,
        sector=overview.get("Sector") or "Unknown",
        industry=overview.get("Industry") or "Unknown",
        price=quote.price,
        price_change=quote.price_change,
        price_change_percentage=quote.price_change_percentage,
        open=quote.open,
        day_high=quote.day_high,
        day_low=quote.day_low,
        volume=quote.volume,
        average_volume=average_volume,
        week52_high=_to_decimal(overview.get("52WeekHigh")),
        week52_low=_to_decimal(overview.get("52WeekLow")),
        pe_ratio=_to_decimal(overview.get("PERatio")),
        dividend_yield=_to_decimal(overview.get("DividendYield")),
        beta=_to_decimal(overview.get("Beta")),
        eps=_to_decimal(overview.get("EPS")),
        market_cap=_to_decimal(overview.get("MarketCapitalization")),
        timestamp=utcnow(),
        technical_indicators=indicators,
        fundamentals=_build_fundamentals(overview),
    )
