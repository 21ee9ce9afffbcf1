"""
Domain exceptions.

Every exception carries the identifiers a caller needs to retry the operation
or show it to an operator (``user_id``, ``symbol``, ``recommendation_id``),
both as attributes and in the message.

"Not found" at a storage boundary is an ``Optional`` return, not an
exception. These types are raised one level up, where absence becomes an
error for the operation being attempted.
"""

from __future__ import annotations

from typing import Optional


class AdviserError(RuntimeError):
    """Base class for all stock adviser errors."""


class UserNotFoundError(AdviserError):
    """Raised when a generation or lookup names a user the store does not have.

    Attributes:
        user_id: The missing user's ID.
    """

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class RecommendationNotFoundError(AdviserError):
    """Raised when a recommendation ID does not exist for the given user.

    Attributes:
        user_id:           Owner the lookup was partitioned by.
        recommendation_id: The missing recommendation's ID.
    """

    def __init__(self, user_id: str, recommendation_id: str) -> None:
        self.user_id = user_id
        self.recommendation_id = recommendation_id
        super().__init__(
            f"Recommendation not found: {recommendation_id} (user_id={user_id})"
        )


class RecommendationNotActionableError(AdviserError):
    """Raised when a lifecycle transition is attempted on a non-active recommendation.

    Attributes:
        recommendation_id: The recommendation that was targeted.
        status:            Its current (terminal) status.
    """

    def __init__(self, recommendation_id: str, status: str) -> None:
        self.recommendation_id = recommendation_id
        self.status = status
        super().__init__(
            f"Recommendation {recommendation_id} is not actionable: "
            f"status is '{status}', expected 'active'."
        )


class DuplicateActiveRecommendationError(AdviserError):
    """Raised by a store when a second active recommendation would be created
    for the same (user, symbol).

    Attributes:
        user_id: Owner of the existing active recommendation.
        symbol:  Symbol it covers.
    """

    def __init__(self, user_id: str, symbol: str) -> None:
        self.user_id = user_id
        self.symbol = symbol
        super().__init__(
            f"An active recommendation already exists for symbol={symbol} "
            f"user_id={user_id}."
        )


class MarketDataError(AdviserError):
    """Raised when the market-data source fails or returns an unusable payload.

    Attributes:
        symbol: The symbol being fetched, if any.
    """

    def __init__(self, message: str, symbol: Optional[str] = None) -> None:
        self.symbol = symbol
        prefix = f"[{symbol}] " if symbol else ""
        super().__init__(f"{prefix}{message}")
