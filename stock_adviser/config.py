"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``STOCK_ADVISER_*`` prefix, plus
                                    ``ALPHA_VANTAGE_API_KEY``

Entry point: ``load_config(config_path=None) -> AppConfig``

The orchestrator, ingestion client and CLI commands all receive an
``AppConfig`` (or one of its sections), never raw dicts or scattered
``os.environ`` lookups.
"""

from __future__ import annotations

import os
import tomllib
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/stock_adviser.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class MarketDataConfig(BaseModel):
    """Alpha Vantage market-data client settings.

    ``outputsize`` defaults to ``"full"``: the ``"compact"`` series holds only
    100 daily closes, which is below ``IndicatorConfig.min_history`` and would
    leave every indicator at its sentinel value.
    """

    model_config = ConfigDict(frozen=True)

    api_key: Optional[str] = None
    base_url: str = "https://www.alphavantage.co/query"
    timeout_seconds: float = 30.0
    outputsize: Literal["compact", "full"] = "full"
    batch_size: int = 5
    batch_pause_seconds: float = 0.2

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"batch_size must be >= 1, got {v}.")
        return v


class IndicatorConfig(BaseModel):
    """Technical indicator parameters."""

    model_config = ConfigDict(frozen=True)

    min_history: int = 200
    rsi_period: int = 14
    macd_signal_mode: Literal["history", "latest"] = "history"


class RecommendationConfig(BaseModel):
    """Recommendation generation settings.

    ``min_confidence`` is on the same 0–100 scale as the composite score.
    """

    model_config = ConfigDict(frozen=True)

    min_confidence: Decimal = Decimal("60")
    validity_days: int = 7
    max_watchlist_size: int = 50
    batch_size: int = 5
    batch_pause_seconds: float = 0.2
    sentiment_baseline: Decimal = Decimal("50")

    @field_validator("min_confidence", "sentiment_baseline")
    @classmethod
    def validate_score_scale(cls, v: Decimal) -> Decimal:
        if not Decimal("0") <= v <= Decimal("100"):
            raise ValueError(f"Score settings must be in [0, 100], got {v}.")
        return v

    @field_validator("validity_days", "max_watchlist_size", "batch_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/stock_adviser.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    market_data: MarketDataConfig = MarketDataConfig()
    indicators: IndicatorConfig = IndicatorConfig()
    recommendations: RecommendationConfig = RecommendationConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides to the raw config dict.

    Supported overrides:
      STOCK_ADVISER_DB_PATH    → raw["database"]["db_path"]
      STOCK_ADVISER_LOG_LEVEL  → raw["logging"]["level"]
      STOCK_ADVISER_DEBUG      → raw["debug"]
      ALPHA_VANTAGE_API_KEY    → raw["market_data"]["api_key"]
    """
    if db_path := os.environ.get("STOCK_ADVISER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("STOCK_ADVISER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("STOCK_ADVISER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    if api_key := os.environ.get("ALPHA_VANTAGE_API_KEY"):
        raw.setdefault("market_data", {})["api_key"] = api_key

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        market_data=MarketDataConfig(**raw.get("market_data", {})),
        indicators=IndicatorConfig(**raw.get("indicators", {})),
        recommendations=RecommendationConfig(**raw.get("recommendations", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", False),
    )
