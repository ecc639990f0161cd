"""Utility Functions for the Insurance Module.

Rounding, date arithmetic and keyword helpers shared by the scoring stages.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

import numpy as np


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity.

    ``round()`` uses banker's rounding (``round(2.5) == 2``); scores use the
    conventional rule so that 62.5 scores 63.

    Args:
        value: Number to round.

    Returns:
        Rounded integer.
    """
    return int(math.floor(value + 0.5))


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> int:
    """Round half up and clamp to ``[low, high]``."""
    return int(np.clip(round_half_up(value), low, high))


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def days_between(start: datetime, end: datetime) -> float:
    """Signed number of days from ``start`` to ``end`` (fractional).

    Example:
        >>> days_between(datetime(2024, 1, 1), datetime(2024, 1, 3, 12))
        2.5
    """
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 86400.0


def whole_days_between(start: datetime, end: datetime) -> int:
    """Signed whole days from ``start`` to ``end``, rounded up when late.

    A deadline missed by one hour counts as one day late.
    """
    return math.ceil(days_between(start, end))


def contains_any(text: str | None, keywords: list[str] | tuple[str, ...]) -> bool:
    """Case-insensitive substring match of any keyword."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def count_matches(text: str | None, keywords: list[str] | tuple[str, ...]) -> int:
    """Number of distinct keywords that occur in ``text``."""
    if not text:
        return 0
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def format_currency(amount: float) -> str:
    """Format a dollar amount for explanations (``$12,345.00``)."""
    return f"${amount:,.2f}"
