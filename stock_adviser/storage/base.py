"""
Collaborator interfaces the engine depends on.

``RecommendationStore`` is the persistence collaborator and
``MarketDataProvider`` the market-data collaborator. The orchestrator and
outcome tracker receive instances of these at construction and hold no other
state, so every test and every run owns its own data.

Contract for implementations
----------------------------
- Lookups return ``None`` (or an empty list) for missing entities, never raise.
- Recommendations and history are partitioned by ``user_id``; snapshots by
  symbol.
- ``create_recommendation`` must refuse a second ``active`` recommendation for
  the same (user_id, symbol) by raising ``DuplicateActiveRecommendationError``.
  The orchestrator checks before it writes, but concurrent generation triggers
  for one user can interleave. This conditional write closes that race.
- ``transition_recommendation`` is the lifecycle write. It only succeeds while
  the stored status still matches, so execute, cancel and expire never
  clobber one another.
- All methods must be safe to call from several threads at once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from stock_adviser.models.recommendation import Recommendation, RecommendationHistory
from stock_adviser.models.stock import StockSnapshot
from stock_adviser.models.user import User
from stock_adviser.taxonomy.recommendation_taxonomy import RecommendationStatus


class RecommendationStore(ABC):
    """Persistence for users, recommendations and recommendation history."""

    # ── Users ────────────────────────────────────────────────────────────────

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def list_users(self) -> list[User]:
        ...

    @abstractmethod
    def save_user(self, user: User) -> User:
        """Insert or replace a user by ``user_id``."""
        ...

    # ── Recommendations ──────────────────────────────────────────────────────

    @abstractmethod
    def get_recommendation(self, user_id: str, recommendation_id: str) -> Optional[Recommendation]:
        ...

    @abstractmethod
    def get_active_recommendations(self, user_id: str) -> list[Recommendation]:
        """All ``active`` recommendations for a user, newest first.

        Includes recommendations whose ``valid_until`` has passed but which
        have not yet been swept to ``expired``.
        """
        ...

    @abstractmethod
    def list_recommendations(self, user_id: str, limit: int = 50) -> list[Recommendation]:
        """Recommendations of any status for a user, newest first."""
        ...

    @abstractmethod
    def create_recommendation(self, recommendation: Recommendation) -> Recommendation:
        """Persist a new recommendation.

        Raises:
            DuplicateActiveRecommendationError: If an active recommendation
                already exists for the same (user_id, symbol).
        """
        ...

    @abstractmethod
    def update_recommendation(self, recommendation: Recommendation) -> Recommendation:
        """Upsert a recommendation by ``id``."""
        ...

    @abstractmethod
    def transition_recommendation(
        self,
        recommendation: Recommendation,
        expected: RecommendationStatus = RecommendationStatus.ACTIVE,
    ) -> Recommendation:
        """Write ``recommendation`` only if the stored row is still ``expected``.

        The status check and the write happen atomically, so an execute and
        an expiry sweep racing on the same recommendation cannot overwrite
        each other.

        Raises:
            RecommendationNotActionableError: If the stored recommendation is
                missing or no longer has status ``expected``.
        """
        ...

    # ── History ──────────────────────────────────────────────────────────────

    @abstractmethod
    def create_history(self, history: RecommendationHistory) -> RecommendationHistory:
        ...

    @abstractmethod
    def list_history(self, user_id: str, limit: int = 100) -> list[RecommendationHistory]:
        """History records for a user, most recently closed first."""
        ...


class MarketDataProvider(ABC):
    """Source of point-in-time market snapshots."""

    @abstractmethod
    def get_snapshot(self, symbol: str) -> Optional[StockSnapshot]:
        """Return the latest snapshot for ``symbol``, or ``None`` if unavailable.

        Absence is an expected outcome (unknown or delisted symbol, no data
        yet). Transport failures raise ``MarketDataError``.
        """
        ...
