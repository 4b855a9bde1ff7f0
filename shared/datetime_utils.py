"""
Date/time helpers — framework-agnostic.

Every timestamp stored by the service is timezone-aware UTC. MongoDB hands
back naive datetimes unless the client is created with ``tz_aware=True``,
so comparisons always go through :func:`ensure_utc`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC ``datetime``."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as aware UTC. Naive datetimes are assumed to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def expires_in(seconds: int, *, now: Optional[datetime] = None) -> datetime:
    """Return the instant ``seconds`` after *now* (defaults to the current time)."""
    return (now or utc_now()) + timedelta(seconds=seconds)


def is_past(instant: Optional[datetime], *, now: Optional[datetime] = None) -> bool:
    """True when *instant* is set and strictly before *now*.

    ``None`` means "never expires" and is never in the past.
    """
    if instant is None:
        return False
    return ensure_utc(instant) < (now or utc_now())

