"""
Watchlist resolution: which symbols a generation pass looks at for a user.

The watchlist is the fixed core universe followed by the symbols of each
preferred sector, in sector order, de-duplicated (first occurrence wins) and
capped. Unknown sector names contribute nothing.
"""

from __future__ import annotations

from stock_adviser.models.user import TradingStrategy

CORE_SYMBOLS: tuple[str, ...] = (
    "AAPL", "MSFT", "GOOGL", "AMZN", "TSLA", "META", "NVDA", "JPM",
    "JNJ", "V", "PG", "UNH", "HD", "MA", "BAC", "XOM", "PFE", "CSCO",
)

SECTOR_SYMBOLS: dict[str, tuple[str, ...]] = {
    "Technology": ("AAPL", "MSFT", "GOOGL", "META", "NVDA", "ADBE", "CRM", "NFLX"),
    "Healthcare": ("JNJ", "PFE", "UNH", "ABT", "MRK", "MDT"),
    "Finance":    ("JPM", "BAC", "WFC", "GS", "MS", "C", "AXP"),
    "Consumer":   ("AMZN", "HD", "MCD", "NKE", "SBUX", "LOW", "TGT"),
    "Energy":     ("XOM", "CVX", "COP", "EOG", "SLB"),
}

DEFAULT_MAX_WATCHLIST_SIZE = 50


def symbols_for_sectors(sectors: tuple[str, ...] | list[str]) -> list[str]:
    """Concatenate the symbol lists of every known sector, in the given order."""
    result: list[str] = []
    for sector in sectors:
        result.extend(SECTOR_SYMBOLS.get(sector, ()))
    return result


def build_watchlist(
    strategy: TradingStrategy,
    max_size: int = DEFAULT_MAX_WATCHLIST_SIZE,
) -> list[str]:
    """Return the ordered, de-duplicated, capped watchlist for a strategy.

    Raises:
        ValueError: If ``max_size`` is not positive.
    """
    if max_size < 1:
        raise ValueError(f"max_size must be >= 1, got {max_size}.")
    symbols = list(CORE_SYMBOLS) + symbols_for_sectors(strategy.preferred_sectors)
    return list(dict.fromkeys(symbols))[:max_size]
