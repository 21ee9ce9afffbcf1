"""
Time helpers shared by the recommendation lifecycle.

Every timestamp in the system is a timezone-aware UTC ``datetime``. Naive
datetimes coming back from storage are interpreted as UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def valid_until(created_at: datetime, validity_days: int) -> datetime:
    """Return the expiry timestamp for a recommendation created at ``created_at``.

    Raises:
        ValueError: If ``validity_days`` is not positive.
    """
    if validity_days < 1:
        raise ValueError(f"validity_days must be >= 1, got {validity_days}.")
    return created_at + timedelta(days=validity_days)
