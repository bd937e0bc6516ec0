# services/learning_service/rewards.py
"""
Reward catalog and redemption.

Redemption reads the balance, checks affordability, writes the ledger entry
and deducts the cost inside a single transaction, so a stale balance on the
client or two concurrent redemptions cannot spend the same points twice.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from firebase_admin import firestore

from .errors import InsufficientPoints, ProfileNotFound
from .models import Profile, Reward
from .progression import calculate_level
from .utils import utc_now

logger = logging.getLogger(__name__)


def can_afford(points: int, reward: Reward) -> bool:
    return points >= reward.points_cost


def catalog(rewards: List[Reward], points: int) -> List[Dict[str, Any]]:
    """Active rewards (already sorted by cost) with the player's affordability."""
    return [
        {**reward.model_dump(), "can_afford": can_afford(points, reward)}
        for reward in rewards
    ]


def list_rewards(store, points: int) -> List[Dict[str, Any]]:
    return catalog(store.list_active_rewards(), points)


def list_redemptions(store, uid: str) -> List[Dict[str, Any]]:
    return [r.model_dump(mode="json") for r in store.list_redemptions(uid)]


def next_reward(rewards: List[Reward], points: int) -> Optional[Dict[str, Any]]:
    """
    The first reward the player cannot afford yet, or the most expensive one
    once everything is affordable.
    """
    if not rewards:
        return None
    target = next((r for r in rewards if r.points_cost > points), rewards[-1])
    if target.points_cost > 0:
        progress = min(points / target.points_cost * 100, 100)
    else:
        progress = 100
    return {
        "reward": target.model_dump(),
        "progress": round(progress, 1),
        "points_to_go": max(target.points_cost - points, 0),
    }


def redeem(store, uid: str, reward_id: str) -> Dict[str, Any]:
    """
    Redeem reward_id for uid.

    Raises RewardNotFound, ProfileNotFound or InsufficientPoints; on any of
    those nothing is written.
    """
    reward = store.get_reward(reward_id)
    profile_ref = store.profile_ref(uid)
    ledger_ref = store.redemptions_col(uid).document()

    def _redeem(transaction):
        snap = profile_ref.get(transaction=transaction)
        if not snap.exists:
            raise ProfileNotFound(f"Profile for {uid} not found.")
        profile = Profile.from_snapshot(snap)

        if not can_afford(profile.total_points, reward):
            raise InsufficientPoints(
                f"Not enough points: {reward.title} costs {reward.points_cost}, "
                f"you have {profile.total_points}."
            )

        remaining = profile.total_points - reward.points_cost
        transaction.set(ledger_ref, {
            "reward_id": reward.id,
            "reward_title": reward.title,
            "points_cost": reward.points_cost,
            "redeemed_at": utc_now(),
        })
        transaction.update(profile_ref, {
            "total_points": remaining,
            "current_level": calculate_level(remaining),
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        return remaining

    remaining = store.run_transaction(_redeem)
    logger.info("[rewards/redeem] %s redeemed %s for %d points", uid, reward.id, reward.points_cost)
    return {
        "ok": True,
        "redemption_id": ledger_ref.id,
        "reward": reward.model_dump(),
        "total_points": remaining,
        "message": f"{reward.title} redeemed! Check your email for details.",
    }
