"""
Shared pytest fixtures for the Stock Adviser test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``sqlite_store``: A ``SqliteStore`` over a temporary database file.
  - ``memory_store``: An empty ``InMemoryStore``.
  - ``fixed_clock``: A controllable clock for lifecycle tests.
  - Sample domain object factories for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

import pytest

from stock_adviser.config import DatabaseConfig
from stock_adviser.db.schema import apply_schema
from stock_adviser.models.stock import Fundamentals, StockSnapshot, TechnicalIndicators
from stock_adviser.models.user import TradingStrategy, User
from stock_adviser.storage.memory import InMemoryStore
from stock_adviser.storage.sqlite_store import SqliteStore

T0 = datetime(2024, 9, 16, 14, 30, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def sqlite_store(tmp_path) -> SqliteStore:
    return SqliteStore(DatabaseConfig(db_path=str(tmp_path / "adviser.db")))


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock()


# ── Sample domain object factories ────────────────────────────────────────────

def make_indicators(**overrides) -> TechnicalIndicators:
    """Bullish indicators for price 100: RSI 25, price above every SMA, inside the bands."""
    values = dict(
        rsi=Decimal("25"),
        sma20=Decimal("95"),
        sma50=Decimal("90"),
        sma200=Decimal("80"),
        ema12=Decimal("97"),
        ema26=Decimal("95.5"),
        macd=Decimal("1.5"),
        macd_signal=Decimal("1.0"),
        macd_histogram=Decimal("0.5"),
        bollinger_upper=Decimal("110"),
        bollinger_middle=Decimal("100"),
        bollinger_lower=Decimal("90"),
        volume_sma=Decimal("1000000"),
    )
    values.update(overrides)
    return TechnicalIndicators(**values)


def make_fundamentals(**overrides) -> Fundamentals:
    """Strong fundamentals: growth 18 %, ROE 22 %, margin 25 %, D/E 0.3."""
    values = dict(
        revenue_growth=Decimal("0.18"),
        return_on_equity=Decimal("0.22"),
        net_margin=Decimal("0.25"),
        debt_to_equity=Decimal("0.3"),
    )
    values.update(overrides)
    return Fundamentals(**values)


def make_snapshot(symbol: str = "AAPL", **overrides) -> StockSnapshot:
    """Snapshot scoring technical 85 / fundamental 85 (composite 78 with neutral sentiment)."""
    values = dict(
        symbol=symbol,
        company_name=f"{symbol} Inc.",
        sector="Technology",
        price=Decimal("100"),
        pe_ratio=Decimal("12"),
        dividend_yield=Decimal("0.035"),
        timestamp=T0,
        technical_indicators=make_indicators(),
        fundamentals=make_fundamentals(),
    )
    values.update(overrides)
    return StockSnapshot(**values)


def make_weak_snapshot(symbol: str = "XOM") -> StockSnapshot:
    """Snapshot with sentinel indicators and empty fundamentals (composite 34)."""
    return StockSnapshot(symbol=symbol, price=Decimal("100"), timestamp=T0)


@pytest.fixture
def strong_snapshot() -> StockSnapshot:
    return make_snapshot()


@pytest.fixture
def sample_user() -> User:
    return User(
        user_id="user-1",
        email="trader@example.com",
        display_name="Trader",
        trading_strategy=TradingStrategy(),
    )


@pytest.fixture
def snapshot_factory():
    """``make_snapshot`` as a fixture: tests call it with field overrides."""
    return make_snapshot


@pytest.fixture
def weak_snapshot_factory():
    return make_weak_snapshot


@pytest.fixture
def indicators_factory():
    return make_indicators


@pytest.fixture
def fundamentals_factory():
    return make_fundamentals
