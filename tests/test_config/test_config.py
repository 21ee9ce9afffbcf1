"""
Tests for stock_adviser/config.py.

Covers:
  - The committed config/default.toml loads and matches the model defaults.
  - config/local.toml next to the chosen file is deep-merged on top.
  - STOCK_ADVISER_* and ALPHA_VANTAGE_API_KEY environment overrides.
  - Validation failures surface as pydantic ValidationError.
  - Missing config file → FileNotFoundError.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from stock_adviser.config import (
    AppConfig,
    LoggingConfig,
    MarketDataConfig,
    RecommendationConfig,
    _deep_merge,
    load_config,
)

_ENV_VARS = (
    "STOCK_ADVISER_DB_PATH",
    "STOCK_ADVISER_LOG_LEVEL",
    "STOCK_ADVISER_DEBUG",
    "ALPHA_VANTAGE_API_KEY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_default_file_loads(self):
        config = load_config()
        assert isinstance(config, AppConfig)
        assert config.recommendations.min_confidence == Decimal("60")
        assert config.recommendations.validity_days == 7
        assert config.indicators.min_history == 200
        assert config.indicators.macd_signal_mode == "history"
        assert config.market_data.outputsize == "full"

    def test_model_defaults_match_file(self, tmp_path):
        config = load_config(_write(tmp_path / "empty.toml", ""))
        assert config.recommendations == RecommendationConfig()
        assert config.market_data == MarketDataConfig()


class TestLayering:
    def test_local_toml_merged(self, tmp_path):
        base = _write(
            tmp_path / "app.toml",
            "[recommendations]\nmin_confidence = 70\nvalidity_days = 5\n",
        )
        _write(tmp_path / "local.toml", "[recommendations]\nvalidity_days = 3\n")

        config = load_config(base)

        assert config.recommendations.min_confidence == Decimal("70")
        assert config.recommendations.validity_days == 3

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STOCK_ADVISER_DB_PATH", str(tmp_path / "x.db"))
        monkeypatch.setenv("STOCK_ADVISER_LOG_LEVEL", "debug")
        monkeypatch.setenv("STOCK_ADVISER_DEBUG", "true")
        monkeypatch.setenv("ALPHA_VANTAGE_API_KEY", "secret")

        config = load_config(_write(tmp_path / "app.toml", ""))

        assert config.database.db_path == str(tmp_path / "x.db")
        assert config.logging.level == "DEBUG"
        assert config.debug is True
        assert config.market_data.api_key == "secret"

    def test_deep_merge_keeps_siblings(self):
        merged = _deep_merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}


class TestValidation:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_threshold_out_of_range(self, tmp_path):
        path = _write(tmp_path / "app.toml", "[recommendations]\nmin_confidence = 0.6\nsentiment_baseline = 150\n")
        with pytest.raises(ValidationError, match="Score settings"):
            load_config(path)

    @pytest.mark.parametrize("field", ["validity_days", "max_watchlist_size", "batch_size"])
    def test_non_positive_ints(self, field):
        with pytest.raises(ValidationError):
            RecommendationConfig(**{field: 0})

    def test_bad_log_level(self):
        with pytest.raises(ValidationError, match="Log level"):
            LoggingConfig(level="LOUD")

    def test_bad_outputsize(self):
        with pytest.raises(ValidationError):
            MarketDataConfig(outputsize="huge")

    def test_frozen(self):
        with pytest.raises(ValidationError):
            RecommendationConfig().validity_days = 3
