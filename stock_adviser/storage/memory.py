"""
In-memory implementations of the storage collaborators.

Each instance owns its own dictionaries, guarded by one lock, so stores never
share state across tests or runs. Useful for tests, demos and any caller that
keeps its own persistence elsewhere.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from stock_adviser.exceptions import (
    DuplicateActiveRecommendationError,
    RecommendationNotActionableError,
)
from stock_adviser.models.recommendation import Recommendation, RecommendationHistory
from stock_adviser.models.stock import StockSnapshot
from stock_adviser.models.user import User
from stock_adviser.storage.base import MarketDataProvider, RecommendationStore
from stock_adviser.taxonomy.recommendation_taxonomy import RecommendationStatus


class InMemoryStore(RecommendationStore):
    """Thread-safe dictionary-backed ``RecommendationStore``."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {u.user_id: u for u in users}
        # user_id -> recommendation_id -> Recommendation
        self._recommendations: dict[str, dict[str, Recommendation]] = {}
        self._history: dict[str, list[RecommendationHistory]] = {}

    # ── Users ────────────────────────────────────────────────────────────────

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def list_users(self) -> list[User]:
        with self._lock:
            return list(self._users.values())

    def save_user(self, user: User) -> User:
        with self._lock:
            self._users[user.user_id] = user
        return user

    # ── Recommendations ──────────────────────────────────────────────────────

    def get_recommendation(self, user_id: str, recommendation_id: str) -> Optional[Recommendation]:
        with self._lock:
            return self._recommendations.get(user_id, {}).get(recommendation_id)

    def get_active_recommendations(self, user_id: str) -> list[Recommendation]:
        with self._lock:
            recs = [
                r for r in self._recommendations.get(user_id, {}).values()
                if r.status is RecommendationStatus.ACTIVE
            ]
        return sorted(recs, key=lambda r: r.created_at, reverse=True)

    def list_recommendations(self, user_id: str, limit: int = 50) -> list[Recommendation]:
        with self._lock:
            recs = list(self._recommendations.get(user_id, {}).values())
        return sorted(recs, key=lambda r: r.created_at, reverse=True)[:limit]

    def create_recommendation(self, recommendation: Recommendation) -> Recommendation:
        with self._lock:
            partition = self._recommendations.setdefault(recommendation.user_id, {})
            if recommendation.status is RecommendationStatus.ACTIVE and any(
                r.symbol == recommendation.symbol
                and r.status is RecommendationStatus.ACTIVE
                for r in partition.values()
            ):
                raise DuplicateActiveRecommendationError(
                    recommendation.user_id, recommendation.symbol
                )
            partition[recommendation.id] = recommendation
        return recommendation

    def update_recommendation(self, recommendation: Recommendation) -> Recommendation:
        with self._lock:
            partition = self._recommendations.setdefault(recommendation.user_id, {})
            partition[recommendation.id] = recommendation
        return recommendation

    def transition_recommendation(
        self,
        recommendation: Recommendation,
        expected: RecommendationStatus = RecommendationStatus.ACTIVE,
    ) -> Recommendation:
        with self._lock:
            partition = self._recommendations.get(recommendation.user_id, {})
            current = partition.get(recommendation.id)
            if current is None or current.status is not expected:
                status = current.status.value if current is not None else "missing"
                raise RecommendationNotActionableError(recommendation.id, status)
            partition[recommendation.id] = recommendation
        return recommendation

    # ── History ──────────────────────────────────────────────────────────────

    def create_history(self, history: RecommendationHistory) -> RecommendationHistory:
        with self._lock:
            self._history.setdefault(history.user_id, []).append(history)
        return history

    def list_history(self, user_id: str, limit: int = 100) -> list[RecommendationHistory]:
        with self._lock:
            records = list(self._history.get(user_id, []))
        return sorted(records, key=lambda h: h.closed_at, reverse=True)[:limit]


class InMemoryMarketData(MarketDataProvider):
    """``MarketDataProvider`` over a caller-supplied set of snapshots."""

    def __init__(self, snapshots: Iterable[StockSnapshot] = ()) -> None:
        self._lock = threading.Lock()
        self._snapshots: dict[str, StockSnapshot] = {s.symbol: s for s in snapshots}

    def put(self, snapshot: StockSnapshot) -> None:
        """Add a snapshot, superseding any earlier one for the same symbol."""
        with self._lock:
            self._snapshots[snapshot.symbol] = snapshot

    def get_snapshot(self, symbol: str) -> Optional[StockSnapshot]:
        with self._lock:
            return self._snapshots.get(symbol.upper())
