"""Tests for market snapshot models (indicators, fundamentals, snapshot)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from stock_adviser.models.stock import Fundamentals, StockSnapshot, TechnicalIndicators


class TestTechnicalIndicators:
    def test_defaults_are_sentinels(self):
        ind = TechnicalIndicators()
        assert ind.rsi == Decimal("0")
        assert ind.macd_histogram == Decimal("0")
        assert not ind.is_available

    def test_unavailable_equals_default(self):
        assert TechnicalIndicators.unavailable() == TechnicalIndicators()

    def test_any_nonzero_value_is_available(self):
        assert TechnicalIndicators(sma20=Decimal("10")).is_available

    def test_frozen(self, indicators_factory):
        ind = indicators_factory()
        with pytest.raises(ValidationError):
            ind.rsi = Decimal("50")


class TestFundamentals:
    def test_defaults_zero(self):
        f = Fundamentals()
        assert f.revenue_growth == Decimal("0")
        assert f.debt_to_equity == Decimal("0")

    def test_string_values_coerced(self):
        f = Fundamentals(net_margin="0.25")
        assert f.net_margin == Decimal("0.25")


class TestStockSnapshot:
    def test_valid_construction(self, strong_snapshot):
        assert strong_snapshot.symbol == "AAPL"
        assert strong_snapshot.price == Decimal("100")
        assert strong_snapshot.technical_indicators.rsi == Decimal("25")

    def test_symbol_normalized(self):
        snap = StockSnapshot(symbol="  msft ", price=Decimal("1"))
        assert snap.symbol == "MSFT"

    def test_empty_symbol_raises(self):
        with pytest.raises(ValidationError, match="symbol"):
            StockSnapshot(symbol="   ", price=Decimal("1"))

    def test_negative_price_raises(self):
        with pytest.raises(ValidationError, match="price"):
            StockSnapshot(symbol="AAPL", price=Decimal("-1"))

    def test_zero_price_is_valid(self):
        assert StockSnapshot(symbol="AAPL", price=Decimal("0")).price == Decimal("0")

    def test_negative_volume_raises(self):
        with pytest.raises(ValidationError):
            StockSnapshot(symbol="AAPL", price=Decimal("1"), volume=-5)

    def test_naive_timestamp_treated_as_utc(self):
        snap = StockSnapshot(
            symbol="AAPL", price=Decimal("1"), timestamp=datetime(2024, 9, 16, 12, 0)
        )
        assert snap.timestamp.tzinfo == timezone.utc
        assert snap.timestamp.hour == 12

    def test_aware_timestamp_converted_to_utc(self):
        est = timezone(timedelta(hours=-5))
        snap = StockSnapshot(
            symbol="AAPL", price=Decimal("1"), timestamp=datetime(2024, 9, 16, 9, 0, tzinfo=est)
        )
        assert snap.timestamp == datetime(2024, 9, 16, 14, 0, tzinfo=timezone.utc)

    def test_default_blocks_are_empty(self):
        snap = StockSnapshot(symbol="AAPL", price=Decimal("1"))
        assert not snap.technical_indicators.is_available
        assert snap.fundamentals == Fundamentals()
        assert snap.sector == "Unknown"

    def test_json_round_trip(self, strong_snapshot):
        restored = StockSnapshot.model_validate_json(strong_snapshot.model_dump_json())
        assert restored == strong_snapshot
