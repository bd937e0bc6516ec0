# services/learning_service/progression.py
"""
Profile progression: levels derived from points and daily quiz streaks.

Level Progression:
- Level 1 at 0 points, one more level per 100 points, capped at 100.

Streaks:
- Completing a quiz on the day after the last completion extends the streak.
- Completing another quiz on the same day leaves it unchanged.
- Any longer gap starts a new streak at 1.
- Every 7th consecutive day pays a streak bonus.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict

from .models import Profile

# ============================================================================
# Configuration
# ============================================================================

POINTS_PER_LEVEL = 100
MAX_LEVEL = 100
STREAK_BONUS_EVERY = 7
STREAK_BONUS_POINTS = 25

# ============================================================================
# Level Calculation
# ============================================================================

def calculate_level(points: int) -> int:
    """
    Calculate level from cumulative points.

    - Level 1 = 0..99 points
    - Level 2 = 100..199 points
    - Level 10 = 900..999 points
    """
    if points <= 0:
        return 1
    return min(points // POINTS_PER_LEVEL + 1, MAX_LEVEL)

def points_for_level(level: int) -> int:
    """Points needed to reach a specific level"""
    if level <= 1:
        return 0
    return (min(level, MAX_LEVEL) - 1) * POINTS_PER_LEVEL

def points_to_next_level(points: int) -> int:
    """Points still missing before the next level (0 at max level)"""
    level = calculate_level(points)
    if level >= MAX_LEVEL:
        return 0
    return points_for_level(level + 1) - max(points, 0)

# ============================================================================
# Streaks
# ============================================================================

@dataclass
class StreakUpdate:
    new_streak: int
    longest_streak: int
    is_new_record: bool
    streak_bonus: int
    last_quiz_date: date


def update_streak(profile: Profile, completed_on: date) -> StreakUpdate:
    """
    Recompute the streak for a quiz completed on `completed_on`.
    Only the first completion of a day can earn a bonus.
    """
    last = profile.last_quiz_date
    current = profile.current_streak

    if last == completed_on and current > 0:
        new_streak = current
        extended = False
    elif last is not None and last == completed_on - timedelta(days=1):
        new_streak = current + 1
        extended = True
    else:
        new_streak = 1
        extended = True

    is_new_record = new_streak > profile.longest_streak
    longest = max(new_streak, profile.longest_streak)

    bonus = 0
    if extended and new_streak % STREAK_BONUS_EVERY == 0:
        bonus = STREAK_BONUS_POINTS

    return StreakUpdate(
        new_streak=new_streak,
        longest_streak=longest,
        is_new_record=is_new_record,
        streak_bonus=bonus,
        last_quiz_date=completed_on,
    )

# ============================================================================
# Public API
# ============================================================================

def profile_summary(profile: Profile) -> Dict[str, Any]:
    """
    Profile as shown in the dashboard header and settings page.

    Returns:
    {
        "ok": true,
        "username": "sam",
        "total_points": 240,
        "level": 3,
        "current_streak": 2,
        "longest_streak": 5,
        "last_quiz_date": "2026-10-16",
        "next_level": {"level": 4, "points_needed": 60}
    }
    """
    level = calculate_level(profile.total_points)
    result = {
        "ok": True,
        "username": profile.username,
        "total_points": profile.total_points,
        "level": level,
        "current_streak": profile.current_streak,
        "longest_streak": profile.longest_streak,
        "last_quiz_date": profile.last_quiz_date.isoformat() if profile.last_quiz_date else None,
    }
    if level < MAX_LEVEL:
        result["next_level"] = {
            "level": level + 1,
            "points_needed": points_to_next_level(profile.total_points),
        }
    else:
        result["next_level"] = None
    return result
