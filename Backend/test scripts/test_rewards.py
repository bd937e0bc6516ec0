from datetime import datetime, timezone

import pytest
from google.api_core.exceptions import ServiceUnavailable

from services.learning_service import quiz_flow, rewards
from services.learning_service.errors import InsufficientPoints, ProfileNotFound, RewardNotFound
from services.learning_service.models import Reward

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def _with_points(db, points):
    db.seed("profiles", "user-1", {"username": "sam", "total_points": points, "current_level": 1})


def test_catalog_is_active_and_sorted(seeded, store):
    items = rewards.list_rewards(store, 60)
    assert [r["id"] for r in items] == ["r-cheap", "r-mid"]
    assert [r["can_afford"] for r in items] == [True, False]


def test_one_point_short_is_rejected(seeded, store, db):
    _with_points(db, 99)
    with pytest.raises(InsufficientPoints):
        rewards.redeem(store, "user-1", "r-mid")
    assert db.doc("profiles/user-1")["total_points"] == 99
    assert db.docs_under("users/user-1/redemptions") == {}


def test_exact_balance_is_accepted(seeded, store, db):
    _with_points(db, 100)
    result = rewards.redeem(store, "user-1", "r-mid")
    assert result["total_points"] == 0
    assert db.doc("profiles/user-1")["total_points"] == 0


def test_earn_then_redeem(seeded, store, db):
    _with_points(db, 85)
    with pytest.raises(InsufficientPoints):
        rewards.redeem(store, "user-1", "r-mid")

    # q1 answered two of three right: 20 points, first day of a streak, no bonus
    db.seed("users/user-1/attempts", "q1", {"quiz_id": "q1", "question_index": 2, "phase": "feedback", "score": 20})
    earned = quiz_flow.complete_quiz(store, "user-1", store.get_quiz("q1"), now=NOW)
    assert earned["total_points"] == 105

    result = rewards.redeem(store, "user-1", "r-mid")

    assert result["total_points"] == 5
    ledger = list(db.docs_under("users/user-1/redemptions").values())
    assert len(ledger) == 1
    assert ledger[0]["reward_id"] == "r-mid"
    assert ledger[0]["points_cost"] == 100
    assert ledger[0]["reward_title"] == "Tote bag"


def test_inactive_or_missing_reward(seeded, store, db):
    _with_points(db, 500)
    with pytest.raises(RewardNotFound):
        rewards.redeem(store, "user-1", "r-old")
    with pytest.raises(RewardNotFound):
        rewards.redeem(store, "user-1", "nope")


def test_missing_profile(seeded, store):
    with pytest.raises(ProfileNotFound):
        rewards.redeem(store, "ghost", "r-cheap")


def test_failed_commit_spends_nothing(seeded, store, db):
    _with_points(db, 200)
    db.commit_error = ServiceUnavailable("firestore down")
    with pytest.raises(ServiceUnavailable):
        rewards.redeem(store, "user-1", "r-cheap")
    assert db.doc("profiles/user-1")["total_points"] == 200
    assert db.docs_under("users/user-1/redemptions") == {}


def test_redemption_history(seeded, store, db):
    _with_points(db, 200)
    rewards.redeem(store, "user-1", "r-cheap")
    rewards.redeem(store, "user-1", "r-mid")
    history = rewards.list_redemptions(store, "user-1")
    assert len(history) == 2
    assert {h["reward_id"] for h in history} == {"r-cheap", "r-mid"}


def test_next_reward():
    catalog = [
        Reward(id="a", title="A", points_cost=50),
        Reward(id="b", title="B", points_cost=200),
    ]
    nxt = rewards.next_reward(catalog, 150)
    assert nxt["reward"]["id"] == "b"
    assert nxt["progress"] == 75.0
    assert nxt["points_to_go"] == 50

    maxed = rewards.next_reward(catalog, 500)
    assert maxed["reward"]["id"] == "b"
    assert maxed["progress"] == 100
    assert maxed["points_to_go"] == 0

    assert rewards.next_reward([], 10) is None
