"""
Recommendation generation for a user's watchlist.

``RecommendationOrchestrator.generate_for_user`` runs one deterministic pass:

  Step 1 — Load user:      Missing user raises ``UserNotFoundError``.
  Step 2 — Lazy expiry:    Active recommendations past ``valid_until`` are
                           moved to ``expired`` so they stop blocking.
  Step 3 — Watchlist:      Core symbols + preferred sectors, de-duplicated,
                           capped (see ``watchlist.build_watchlist``).
  Step 4 — Skip existing:  Symbols with a live active recommendation are skipped.
  Step 5 — Analyse:        Remaining symbols in batches on a thread pool, with a
                           pause between batches to respect provider limits.
  Step 6 — Persist:        Only recommendations with confidence >= min_confidence.

Failure isolation
-----------------
- Missing snapshot:          Logged, counted in ``skipped_no_data``.
- Any per-symbol exception:  Logged, recorded as a ``SymbolFailure``; the run
                             continues with the next symbol.
- Duplicate on create:       Another trigger for the same user won the race;
                             counted in ``skipped_existing``.

The orchestrator holds no state beyond its collaborators, so concurrent runs
for different users are independent. Runs for the same user are serialised
only by the store's uniqueness guarantee.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from stock_adviser.config import RecommendationConfig
from stock_adviser.exceptions import DuplicateActiveRecommendationError, UserNotFoundError
from stock_adviser.models.recommendation import Recommendation
from stock_adviser.models.stock import StockSnapshot
from stock_adviser.models.user import TradingStrategy, User
from stock_adviser.recommendations.decision import decide
from stock_adviser.recommendations.outcome import OutcomeTracker, is_expired
from stock_adviser.recommendations.scorer import (
    ConstantSentimentScorer,
    SentimentScorer,
    compute_scores,
)
from stock_adviser.recommendations.watchlist import build_watchlist
from stock_adviser.storage.base import MarketDataProvider, RecommendationStore
from stock_adviser.utils.time_utils import utcnow, valid_until

logger = logging.getLogger(__name__)

# Per-symbol outcome tags
_CREATED = "created"
_EXISTING = "existing"
_NO_DATA = "no_data"
_BELOW_THRESHOLD = "below_threshold"


# ── Result types ──────────────────────────────────────────────────────────────

@dataclass
class SymbolFailure:
    """A symbol whose analysis raised.

    Attributes:
        symbol: Ticker that failed.
        error:  Exception message.
    """

    symbol: str
    error:  str


@dataclass
class GenerationResult:
    """Complete result of one generation pass for a user.

    Attributes:
        user_id:          User the pass ran for.
        started_at:       UTC time the pass started.
        finished_at:      UTC time the pass finished.
        created:          Newly persisted recommendations, in watchlist order.
        expired:          Stale actives moved to ``expired`` by lazy expiry.
        skipped_existing: Symbols that already had a live active recommendation.
        skipped_no_data:  Symbols with no snapshot available.
        below_threshold:  Symbols analysed but not persisted (low confidence).
        failures:         Symbols whose analysis raised.
        error:            Set when the whole pass failed (``generate_for_all_users``).
    """

    user_id:          str
    started_at:       Optional[datetime]    = None
    finished_at:      Optional[datetime]    = None
    created:          list[Recommendation]  = field(default_factory=list)
    expired:          list[Recommendation]  = field(default_factory=list)
    skipped_existing: list[str]             = field(default_factory=list)
    skipped_no_data:  list[str]             = field(default_factory=list)
    below_threshold:  list[str]             = field(default_factory=list)
    failures:         list[SymbolFailure]   = field(default_factory=list)
    error:            Optional[str]         = None


# ── Orchestrator ──────────────────────────────────────────────────────────────

class RecommendationOrchestrator:
    """Generates and persists recommendations for users.

    Args:
        market_data:      Snapshot source.
        store:            Persistence for users and recommendations.
        sentiment_scorer: Defaults to a constant scorer at
                          ``config.sentiment_baseline``.
        config:           Generation settings; defaults to ``RecommendationConfig()``.
        clock:            Returns the current UTC time. Injected for tests.
    """

    def __init__(
        self,
        market_data: MarketDataProvider,
        store: RecommendationStore,
        sentiment_scorer: Optional[SentimentScorer] = None,
        config: Optional[RecommendationConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.market_data = market_data
        self.store = store
        self.config = config or RecommendationConfig()
        self.sentiment_scorer = sentiment_scorer or ConstantSentimentScorer(
            self.config.sentiment_baseline
        )
        self.clock = clock
        self._tracker = OutcomeTracker(store, clock)

    # ── Public API ────────────────────────────────────────────────────────────

    def analyze(
        self,
        snapshot: StockSnapshot,
        strategy: TradingStrategy,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Recommendation:
        """Build an (unpersisted) active recommendation for one snapshot."""
        created_at = now or self.clock()
        scores = compute_scores(snapshot, self.sentiment_scorer)
        decision = decide(snapshot, scores, strategy)

        return Recommendation(
            user_id=user_id,
            symbol=snapshot.symbol,
            action=decision.action,
            confidence=scores.confidence,
            target_price=decision.target_price,
            stop_loss=decision.stop_loss,
            reasoning=decision.reasoning,
            key_factors=decision.key_factors,
            risk_level=decision.risk_level,
            time_horizon=decision.time_horizon,
            created_at=created_at,
            valid_until=valid_until(created_at, self.config.validity_days),
            technical_score=scores.technical_score,
            fundamental_score=scores.fundamental_score,
            sentiment_score=scores.sentiment_score,
            overall_score=scores.overall_score,
        )

    def generate_for_user(self, user_id: str) -> GenerationResult:
        """Run a full generation pass over the user's watchlist.

        Raises:
            UserNotFoundError: If the store has no such user.
        """
        user = self._load_user(user_id)
        result = GenerationResult(user_id=user_id, started_at=self.clock())

        result.expired = self._tracker.sweep_expired(user_id)

        active_symbols = {r.symbol for r in self.store.get_active_recommendations(user_id)}
        watchlist = build_watchlist(user.trading_strategy, self.config.max_watchlist_size)

        pending: list[str] = []
        for symbol in watchlist:
            if symbol in active_symbols:
                result.skipped_existing.append(symbol)
            else:
                pending.append(symbol)

        logger.info(
            "Generating recommendations | user=%s | watchlist=%d | pending=%d | "
            "existing=%d | expired=%d",
            user_id, len(watchlist), len(pending),
            len(result.skipped_existing), len(result.expired),
        )

        self._run_batches(user, pending, result)

        result.finished_at = self.clock()
        logger.info(
            "Generation complete | user=%s | created=%d | below_threshold=%d | "
            "no_data=%d | failures=%d",
            user_id, len(result.created), len(result.below_threshold),
            len(result.skipped_no_data), len(result.failures),
        )
        return result

    def generate_for_symbol(self, user_id: str, symbol: str) -> Optional[Recommendation]:
        """Return the live recommendation for one symbol, generating it if needed.

        Returns:
            The existing active recommendation, a newly persisted one, or
            ``None`` when no snapshot is available or confidence is too low.

        Raises:
            UserNotFoundError: If the store has no such user.
        """
        user = self._load_user(user_id)
        symbol = symbol.strip().upper()

        self._tracker.sweep_expired(user_id)
        existing = self._find_active(user_id, symbol)
        if existing is not None:
            logger.debug("Active recommendation exists | user=%s | symbol=%s", user_id, symbol)
            return existing

        tag, rec = self._process_symbol(user, symbol)
        if tag == _EXISTING:
            return self._find_active(user_id, symbol)
        return rec if tag == _CREATED else None

    def generate_for_all_users(self) -> dict[str, GenerationResult]:
        """Run ``generate_for_user`` for every stored user, isolating failures."""
        results: dict[str, GenerationResult] = {}
        for user in self.store.list_users():
            try:
                results[user.user_id] = self.generate_for_user(user.user_id)
            except Exception as exc:
                logger.error("Generation failed | user=%s | error=%s", user.user_id, exc)
                results[user.user_id] = GenerationResult(
                    user_id=user.user_id,
                    started_at=self.clock(),
                    finished_at=self.clock(),
                    error=str(exc),
                )
        return results

    # ── Internals ─────────────────────────────────────────────────────────────

    def _load_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _find_active(self, user_id: str, symbol: str) -> Optional[Recommendation]:
        now = self.clock()
        for rec in self.store.get_active_recommendations(user_id):
            if rec.symbol == symbol and not is_expired(rec, now):
                return rec
        return None

    def _run_batches(self, user: User, symbols: list[str], result: GenerationResult) -> None:
        batch_size = self.config.batch_size
        batches = [symbols[i:i + batch_size] for i in range(0, len(symbols), batch_size)]

        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            for index, batch in enumerate(batches):
                futures = [(s, pool.submit(self._process_symbol, user, s)) for s in batch]

                # Collect in watchlist order so results are deterministic.
                for symbol, future in futures:
                    try:
                        tag, rec = future.result()
                    except Exception as exc:
                        logger.error(
                            "Analysis failed | user=%s | symbol=%s | error=%s",
                            user.user_id, symbol, exc,
                        )
                        result.failures.append(SymbolFailure(symbol=symbol, error=str(exc)))
                        continue

                    if tag == _CREATED and rec is not None:
                        result.created.append(rec)
                    elif tag == _EXISTING:
                        result.skipped_existing.append(symbol)
                    elif tag == _NO_DATA:
                        result.skipped_no_data.append(symbol)
                    else:
                        result.below_threshold.append(symbol)

                if index < len(batches) - 1 and self.config.batch_pause_seconds > 0:
                    time.sleep(self.config.batch_pause_seconds)

    def _process_symbol(self, user: User, symbol: str) -> tuple[str, Optional[Recommendation]]:
        snapshot = self.market_data.get_snapshot(symbol)
        if snapshot is None:
            logger.warning("No market data | user=%s | symbol=%s", user.user_id, symbol)
            return _NO_DATA, None

        rec = self.analyze(snapshot, user.trading_strategy, user.user_id)
        if rec.confidence < self.config.min_confidence:
            logger.debug(
                "Below confidence threshold | user=%s | symbol=%s | confidence=%s",
                user.user_id, symbol, rec.confidence,
            )
            return _BELOW_THRESHOLD, rec

        try:
            saved = self.store.create_recommendation(rec)
        except DuplicateActiveRecommendationError:
            logger.info(
                "Active recommendation created concurrently | user=%s | symbol=%s",
                user.user_id, symbol,
            )
            return _EXISTING, None

        logger.info(
            "Created recommendation | id=%s | user=%s | symbol=%s | action=%s | confidence=%s",
            saved.id, user.user_id, symbol, saved.action.value, saved.confidence,
        )
        return _CREATED, saved
