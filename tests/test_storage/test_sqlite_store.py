"""
Tests for stock_adviser/storage/sqlite_store.py and the stored-snapshot provider.

What we test
------------
  - ":memory:" is rejected.
  - Schema is applied on construction and reopening is harmless.
  - Users, recommendations and history round-trip through a file database.
  - The partial unique index surfaces as DuplicateActiveRecommendationError.
  - Other integrity errors (missing user) propagate unchanged.
  - The full execute → history flow via OutcomeTracker.
  - An execute landing inside an expiry sweep keeps its executed status.
  - StoredSnapshotProvider returns the newest ingested snapshot.
"""

from __future__ import annotations

import sqlite3
from datetime import timedelta
from decimal import Decimal

import pytest

from stock_adviser.config import DatabaseConfig
from stock_adviser.exceptions import (
    DuplicateActiveRecommendationError,
    RecommendationNotActionableError,
)
from stock_adviser.ingestion.stored_provider import StoredSnapshotProvider
from stock_adviser.models.user import TradingStrategy
from stock_adviser.recommendations.orchestrator import RecommendationOrchestrator
from stock_adviser.recommendations.outcome import OutcomeTracker
from stock_adviser.storage.memory import InMemoryMarketData, InMemoryStore
from stock_adviser.storage.sqlite_store import SqliteStore
from stock_adviser.taxonomy.recommendation_taxonomy import (
    RecommendationAction,
    RecommendationOutcome,
    RecommendationStatus,
)


def _analyzed(strong_snapshot, clock, user_id="user-1"):
    orch = RecommendationOrchestrator(
        market_data=InMemoryMarketData(), store=InMemoryStore(), clock=clock
    )
    return orch.analyze(strong_snapshot, TradingStrategy(), user_id)


class TestConstruction:
    def test_memory_path_rejected(self):
        with pytest.raises(ValueError, match="file path"):
            SqliteStore(DatabaseConfig(db_path=":memory:"))

    def test_reopen_is_idempotent(self, tmp_path, sample_user):
        config = DatabaseConfig(db_path=str(tmp_path / "a.db"))
        SqliteStore(config).save_user(sample_user)
        assert SqliteStore(config).get_user("user-1") == sample_user


class TestRecommendations:
    def test_round_trip(self, sqlite_store, sample_user, strong_snapshot, fixed_clock):
        sqlite_store.save_user(sample_user)
        rec = _analyzed(strong_snapshot, fixed_clock)
        sqlite_store.create_recommendation(rec)

        assert sqlite_store.get_recommendation("user-1", rec.id) == rec
        assert sqlite_store.get_active_recommendations("user-1") == [rec]
        assert sqlite_store.list_recommendations("user-1") == [rec]

    def test_duplicate_active_mapped(self, sqlite_store, sample_user, strong_snapshot, fixed_clock):
        sqlite_store.save_user(sample_user)
        sqlite_store.create_recommendation(_analyzed(strong_snapshot, fixed_clock))
        with pytest.raises(DuplicateActiveRecommendationError):
            sqlite_store.create_recommendation(_analyzed(strong_snapshot, fixed_clock))

    def test_missing_user_is_integrity_error(self, sqlite_store, strong_snapshot, fixed_clock):
        with pytest.raises(sqlite3.IntegrityError):
            sqlite_store.create_recommendation(_analyzed(strong_snapshot, fixed_clock, "ghost"))

    def test_execute_with_history(self, sqlite_store, sample_user, strong_snapshot, fixed_clock):
        sqlite_store.save_user(sample_user)
        rec = sqlite_store.create_recommendation(_analyzed(strong_snapshot, fixed_clock))
        fixed_clock.advance(days=2)

        tracker = OutcomeTracker(sqlite_store, fixed_clock)
        result = tracker.execute(
            "user-1", rec.id, RecommendationAction.BUY, Decimal("120.00"),
            RecommendationOutcome.PROFITABLE,
        )

        stored = sqlite_store.get_recommendation("user-1", rec.id)
        assert stored.status is RecommendationStatus.EXECUTED
        assert stored.actual_price == Decimal("120.00")
        assert stored.executed_at == fixed_clock.now

        history = sqlite_store.list_history("user-1")
        assert history == [result.history]
        assert history[0].profit_loss == Decimal("5.00")
        assert history[0].profit_loss_percentage == Decimal("4.3478")

    def test_expired_row_does_not_block(self, sqlite_store, sample_user, strong_snapshot, fixed_clock):
        sqlite_store.save_user(sample_user)
        sqlite_store.create_recommendation(_analyzed(strong_snapshot, fixed_clock))
        fixed_clock.advance(days=8)

        swept = OutcomeTracker(sqlite_store, fixed_clock).sweep_expired("user-1")
        assert len(swept) == 1

        sqlite_store.create_recommendation(_analyzed(strong_snapshot, fixed_clock))
        assert len(sqlite_store.get_active_recommendations("user-1")) == 1
        assert len(sqlite_store.list_recommendations("user-1")) == 2

    def test_execute_during_sweep_survives(self, tmp_path, sample_user, strong_snapshot, fixed_clock):
        config = DatabaseConfig(db_path=str(tmp_path / "race.db"))
        other = SqliteStore(config)
        other.save_user(sample_user)
        rec = other.create_recommendation(_analyzed(strong_snapshot, fixed_clock))
        fixed_clock.advance(days=8)

        class _ExecuteOnReadStore(SqliteStore):
            """Executes the recommendation from another store right after the active read."""

            def get_active_recommendations(self, user_id):
                active = super().get_active_recommendations(user_id)
                OutcomeTracker(other, fixed_clock).execute(
                    user_id, rec.id, RecommendationAction.BUY, Decimal("120.00")
                )
                return active

        store = _ExecuteOnReadStore(config)
        swept = OutcomeTracker(store, fixed_clock).sweep_expired("user-1")

        assert swept == []
        stored = store.get_recommendation("user-1", rec.id)
        assert stored.status is RecommendationStatus.EXECUTED
        assert stored.executed_at == fixed_clock.now
        assert stored.actual_price == Decimal("120.00")

    def test_transition_refused_once_closed(self, sqlite_store, sample_user, strong_snapshot, fixed_clock):
        sqlite_store.save_user(sample_user)
        rec = sqlite_store.create_recommendation(_analyzed(strong_snapshot, fixed_clock))
        sqlite_store.transition_recommendation(
            rec.model_copy(update={"status": RecommendationStatus.CANCELLED})
        )

        with pytest.raises(RecommendationNotActionableError) as exc_info:
            sqlite_store.transition_recommendation(
                rec.model_copy(update={"status": RecommendationStatus.EXPIRED})
            )
        assert exc_info.value.status == "cancelled"
        assert sqlite_store.get_recommendation("user-1", rec.id).status is RecommendationStatus.CANCELLED


class TestSnapshots:
    def test_stored_provider_returns_latest(self, sqlite_store, snapshot_factory, fixed_clock):
        sqlite_store.save_snapshot(snapshot_factory(price=Decimal("100")))
        sqlite_store.save_snapshot(
            snapshot_factory(price=Decimal("101"), timestamp=fixed_clock.now + timedelta(hours=1))
        )

        provider = StoredSnapshotProvider(sqlite_store)
        assert provider.get_snapshot("AAPL").price == Decimal("101")
        assert provider.get_snapshot("MSFT") is None

    def test_generation_from_stored_snapshots(self, sqlite_store, sample_user, strong_snapshot, fixed_clock):
        sqlite_store.save_user(sample_user)
        sqlite_store.save_snapshot(strong_snapshot)

        orch = RecommendationOrchestrator(
            market_data=StoredSnapshotProvider(sqlite_store),
            store=sqlite_store,
            clock=fixed_clock,
        )
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("stock_adviser.recommendations.orchestrator.time.sleep", lambda _: None)
            result = orch.generate_for_user("user-1")

        assert [r.symbol for r in result.created] == ["AAPL"]
        assert sqlite_store.get_active_recommendations("user-1") == result.created
