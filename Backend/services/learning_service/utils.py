"""
Shared helpers for the learning service: clock, date strings and rounding.
Keeps the flow modules small and testable.
"""

import math
from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_yyyy_mm_dd(value) -> str:
    """Standardize date strings for Firestore documents and UI consistency."""
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).strftime("%Y-%m-%d")
    return value.strftime("%Y-%m-%d")


def utc_date(dt: Optional[datetime] = None) -> date:
    return (dt or utc_now()).astimezone(timezone.utc).date()


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, rounding halves up (2/3 -> 67, 1/8 -> 13)."""
    if whole <= 0:
        return 0
    return int(math.floor(part * 100 / whole + 0.5))
