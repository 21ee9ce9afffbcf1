"""
End-to-end tests for the ``stock-adviser`` CLI.

Every test runs against a throwaway config and SQLite file under ``tmp_path``.
``ingest`` is exercised with ``fetch_snapshots`` patched out; nothing touches
the network.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path

import pytest
from typer.testing import CliRunner

from stock_adviser.cli import app
from stock_adviser.config import DatabaseConfig
from stock_adviser.ingestion.alpha_vantage_client import AlphaVantageProvider, BatchFetchResult
from stock_adviser.storage.sqlite_store import SqliteStore
from stock_adviser.taxonomy.recommendation_taxonomy import RecommendationStatus

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("STOCK_ADVISER_DB_PATH", "STOCK_ADVISER_LOG_LEVEL", "ALPHA_VANTAGE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Commands reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "cli.db")


@pytest.fixture
def config_path(tmp_path, db_path) -> str:
    path = tmp_path / "cli.toml"
    path.write_text(
        f'[database]\ndb_path = "{Path(db_path).as_posix()}"\n'
        '[market_data]\napi_key = "test-key"\nbatch_pause_seconds = 0\n'
        "[recommendations]\nbatch_pause_seconds = 0\n"
        '[logging]\nlevel = "WARNING"\nlog_file = ""\n',
        encoding="utf-8",
    )
    return str(path)


def _invoke(config_path: str, *args: str):
    return runner.invoke(app, [*args, "--config", config_path])


def _store(db_path: str) -> SqliteStore:
    return SqliteStore(DatabaseConfig(db_path=db_path))


@pytest.fixture
def seeded(config_path, db_path, strong_snapshot) -> SqliteStore:
    """A database with user ``alice`` and one strong AAPL snapshot."""
    result = _invoke(config_path, "add-user", "alice", "--sector", "Energy")
    assert result.exit_code == 0, result.output
    store = _store(db_path)
    store.save_snapshot(strong_snapshot)
    return store


class TestSetupCommands:
    def test_init_db(self, config_path, db_path):
        result = _invoke(config_path, "init-db")
        assert result.exit_code == 0, result.output
        assert "[OK] Database ready." in result.output
        assert Path(db_path).exists()

    def test_validate_config_masks_key(self, config_path):
        result = _invoke(config_path, "validate-config", "--full")
        assert result.exit_code == 0, result.output
        assert "API key set:       True" in result.output
        assert "test-key" not in result.output
        assert '"api_key": "***"' in result.output

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1

    def test_add_user(self, config_path, db_path):
        result = _invoke(
            config_path, "add-user", "bob", "--sector", "Finance", "--sector", "Energy",
            "--stop-loss", "7.5",
        )
        assert result.exit_code == 0, result.output
        user = _store(db_path).get_user("bob")
        assert user.trading_strategy.preferred_sectors == ("Finance", "Energy")
        assert user.trading_strategy.sell_strategy.stop_loss_percentage == Decimal("7.5")

    def test_add_user_invalid_percentage(self, config_path):
        result = _invoke(config_path, "add-user", "bob", "--stop-loss", "150")
        assert result.exit_code == 1


class TestIngest:
    def test_stores_fetched_snapshots(self, config_path, db_path, strong_snapshot, monkeypatch):
        requested: list[list[str]] = []

        def fake_fetch(self, symbols):
            requested.append(symbols)
            return BatchFetchResult(snapshots=[strong_snapshot], missing=["ZZZZ"])

        monkeypatch.setattr(AlphaVantageProvider, "fetch_snapshots", fake_fetch)
        result = _invoke(config_path, "ingest", "aapl", "zzzz")

        assert result.exit_code == 0, result.output
        assert requested == [["AAPL", "ZZZZ"]]
        assert "Stored 1 snapshot(s); 1 missing, 0 failed." in result.output
        assert _store(db_path).latest_snapshot("AAPL") == strong_snapshot

    def test_all_failed_exits_nonzero(self, config_path, monkeypatch):
        monkeypatch.setattr(
            AlphaVantageProvider,
            "fetch_snapshots",
            lambda self, symbols: BatchFetchResult(failures={"AAPL": "rate limited"}),
        )
        result = _invoke(config_path, "ingest", "AAPL")
        assert result.exit_code == 1


class TestGenerate:
    def test_requires_user_or_all(self, config_path):
        result = _invoke(config_path, "generate")
        assert result.exit_code == 1

    def test_unknown_user(self, config_path):
        result = _invoke(config_path, "generate", "ghost")
        assert result.exit_code == 1

    def test_generates_and_dedups(self, config_path, seeded):
        first = _invoke(config_path, "generate", "alice")
        assert first.exit_code == 0, first.output
        assert "created=1" in first.output
        assert "AAPL" in first.output

        second = _invoke(config_path, "generate", "--all")
        assert second.exit_code == 0, second.output
        assert "created=0" in second.output
        assert len(seeded.get_active_recommendations("alice")) == 1

    def test_generate_symbol(self, config_path, seeded):
        result = _invoke(config_path, "generate-symbol", "alice", "aapl")
        assert result.exit_code == 0, result.output
        assert "Reasoning:" in result.output

        missing = _invoke(config_path, "generate-symbol", "alice", "MSFT")
        assert "No recommendation for MSFT" in missing.output


class TestLifecycle:
    def _rec_id(self, config_path, store) -> str:
        assert _invoke(config_path, "generate", "alice").exit_code == 0
        return store.get_active_recommendations("alice")[0].id

    def test_execute_with_outcome(self, config_path, seeded):
        rec_id = self._rec_id(config_path, seeded)
        result = _invoke(
            config_path, "execute", "alice", rec_id,
            "--action", "buy", "--price", "120", "--outcome", "profitable",
        )
        assert result.exit_code == 0, result.output
        assert "profit_loss=5.00" in result.output
        assert seeded.get_recommendation("alice", rec_id).status is RecommendationStatus.EXECUTED

        history = _invoke(config_path, "history", "alice")
        assert "outcome=profitable" in history.output

    def test_execute_invalid_action(self, config_path, seeded):
        rec_id = self._rec_id(config_path, seeded)
        result = _invoke(config_path, "execute", "alice", rec_id, "--action", "hodl")
        assert result.exit_code == 1

    def test_cancel_twice(self, config_path, seeded):
        rec_id = self._rec_id(config_path, seeded)
        assert _invoke(config_path, "cancel", "alice", rec_id).exit_code == 0
        again = _invoke(config_path, "cancel", "alice", rec_id)
        assert again.exit_code == 1

    def test_unknown_recommendation(self, config_path, seeded):
        result = _invoke(config_path, "cancel", "alice", "no-such-id")
        assert result.exit_code == 1

    def test_list_and_expire(self, config_path, seeded):
        self._rec_id(config_path, seeded)
        listed = _invoke(config_path, "list-recommendations", "alice", "--active")
        assert "AAPL" in listed.output

        # Nothing is past its validity window yet.
        swept = _invoke(config_path, "expire")
        assert swept.exit_code == 0, swept.output
        assert "Expired 0 recommendation(s)" in swept.output

    def test_empty_listings(self, config_path, seeded):
        assert "No recommendations for alice" in _invoke(config_path, "list-recommendations", "alice").output
        assert "No history for alice" in _invoke(config_path, "history", "alice").output
