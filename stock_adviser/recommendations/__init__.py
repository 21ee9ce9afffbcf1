"""
Recommendation engine: converts market snapshots into scored
strong_buy/buy/hold/sell/strong_sell recommendations and tracks what
happened to them.

Modules
-------
scorer       : ScoreComponents dataclass + technical/fundamental/composite
               scoring + SentimentScorer — pure functions, no I/O.
decision     : Decision dataclass + action, target, stop loss, risk, horizon,
               reasoning and key factors.
watchlist    : Core and sector symbol tables + build_watchlist().
orchestrator : RecommendationOrchestrator — batched per-user generation.
outcome      : Lifecycle transitions + OutcomeTracker (execute, cancel, expire).
"""
