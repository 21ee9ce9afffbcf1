"""
Tests for stock_adviser/recommendations/watchlist.py.

What we test
------------
  - No preferred sectors → the 18 core symbols in order.
  - Sector symbols follow the core list, in sector order, de-duplicated.
  - Unknown sectors contribute nothing.
  - The result is capped at max_size.
"""

from __future__ import annotations

import pytest

from stock_adviser.models.user import TradingStrategy
from stock_adviser.recommendations.watchlist import (
    CORE_SYMBOLS,
    SECTOR_SYMBOLS,
    build_watchlist,
    symbols_for_sectors,
)


class TestBuildWatchlist:
    def test_core_only(self):
        result = build_watchlist(TradingStrategy())
        assert result == list(CORE_SYMBOLS)
        assert len(result) == 18

    def test_sector_symbols_appended_without_duplicates(self):
        result = build_watchlist(TradingStrategy(preferred_sectors=("Technology",)))
        assert result[:18] == list(CORE_SYMBOLS)
        # AAPL, MSFT, GOOGL, META, NVDA are already core.
        assert result[18:] == ["ADBE", "CRM", "NFLX"]
        assert len(result) == len(set(result))

    def test_sector_order_preserved(self):
        result = build_watchlist(
            TradingStrategy(preferred_sectors=("Energy", "Finance"))
        )
        assert result[18:] == ["CVX", "COP", "EOG", "SLB", "WFC", "GS", "MS", "C", "AXP"]

    def test_unknown_sector_ignored(self):
        result = build_watchlist(TradingStrategy(preferred_sectors=("Crypto",)))
        assert result == list(CORE_SYMBOLS)

    def test_capped(self):
        every_sector = tuple(SECTOR_SYMBOLS)
        assert len(build_watchlist(TradingStrategy(preferred_sectors=every_sector), 20)) == 20

    def test_all_sectors_fit_under_default_cap(self):
        result = build_watchlist(TradingStrategy(preferred_sectors=tuple(SECTOR_SYMBOLS)))
        assert len(result) <= 50
        assert len(result) == len(set(result))

    def test_rejects_non_positive_cap(self):
        with pytest.raises(ValueError, match="max_size"):
            build_watchlist(TradingStrategy(), 0)


def test_symbols_for_sectors_concatenates():
    assert symbols_for_sectors(["Energy", "Nope"]) == list(SECTOR_SYMBOLS["Energy"])
