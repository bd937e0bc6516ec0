# services/learning_service/store.py
"""
Firestore access for quizzes, progress, profiles, rewards and redemptions.

One ProgressStore is built per request around the Firestore client of that
request, so flows receive their backend explicitly instead of reaching for a
module-level client.

Layout:
    quizzes/{quiz_id}
    rewards/{reward_id}
    profiles/{uid}
    users/{uid}/progress/{quiz_id}
    users/{uid}/attempts/{quiz_id}
    users/{uid}/redemptions/{auto_id}
"""

from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

from firebase_admin import firestore

from .errors import ProfileNotFound, QuizNotFound, RewardNotFound
from .models import Profile, Quiz, Reward, UserProgress, UserReward
from .utils import utc_now

logger = logging.getLogger(__name__)


class ProgressStore:
    def __init__(self, db):
        self.db = db

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------
    def quiz_ref(self, quiz_id: str):
        return self.db.collection("quizzes").document(quiz_id)

    def reward_ref(self, reward_id: str):
        return self.db.collection("rewards").document(reward_id)

    def profile_ref(self, uid: str):
        return self.db.collection("profiles").document(uid)

    def _user_ref(self, uid: str):
        return self.db.collection("users").document(uid)

    def progress_ref(self, uid: str, quiz_id: str):
        return self._user_ref(uid).collection("progress").document(quiz_id)

    def attempt_ref(self, uid: str, quiz_id: str):
        return self._user_ref(uid).collection("attempts").document(quiz_id)

    def redemptions_col(self, uid: str):
        return self._user_ref(uid).collection("redemptions")

    def run_transaction(self, fn: Callable[[Any], Any]):
        """Run fn(transaction) as one Firestore transaction and return its result."""
        return firestore.transactional(fn)(self.db.transaction())

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------
    def list_quizzes(self) -> List[Quiz]:
        """All quizzes in path order."""
        query = self.db.collection("quizzes").order_by("path_order")
        return [Quiz.from_snapshot(doc) for doc in query.stream()]

    def get_quiz(self, quiz_id: str) -> Quiz:
        snap = self.quiz_ref(quiz_id).get()
        if not snap.exists:
            raise QuizNotFound(f"Quiz {quiz_id} not found.")
        return Quiz.from_snapshot(snap)

    def quiz_at_order(self, path_order: int) -> Optional[Quiz]:
        query = self.db.collection("quizzes").where("path_order", "==", path_order).limit(1)
        for doc in query.stream():
            return Quiz.from_snapshot(doc)
        return None

    def max_path_order(self) -> int:
        query = (self.db.collection("quizzes")
                 .order_by("path_order", direction=firestore.Query.DESCENDING)
                 .limit(1))
        for doc in query.stream():
            return int((doc.to_dict() or {}).get("path_order", 0))
        return 0

    def add_quiz(self, document: Dict[str, Any]) -> str:
        ref = self.db.collection("quizzes").document()
        ref.set({**document, "created_at": utc_now()})
        return ref.id

    def update_quiz(self, quiz_id: str, fields: Dict[str, Any]) -> None:
        self.get_quiz(quiz_id)
        self.quiz_ref(quiz_id).set({**fields, "updatedAt": firestore.SERVER_TIMESTAMP}, merge=True)

    def delete_quiz(self, quiz_id: str) -> None:
        self.get_quiz(quiz_id)
        self.quiz_ref(quiz_id).delete()

    def swap_path_order(self, first: Quiz, second: Quiz) -> None:
        batch = self.db.batch()
        batch.update(self.quiz_ref(first.id), {"path_order": second.path_order})
        batch.update(self.quiz_ref(second.id), {"path_order": first.path_order})
        batch.commit()

    def shift_path_order(self, quizzes: List[Quiz], delta: int) -> None:
        if not quizzes:
            return
        batch = self.db.batch()
        for quiz in quizzes:
            batch.update(self.quiz_ref(quiz.id), {"path_order": quiz.path_order + delta})
        batch.commit()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------
    def list_progress(self, uid: str) -> Dict[str, UserProgress]:
        col = self._user_ref(uid).collection("progress")
        records = [UserProgress.from_snapshot(doc) for doc in col.stream()]
        return {p.quiz_id: p for p in records}

    def get_progress(self, uid: str, quiz_id: str) -> Optional[UserProgress]:
        snap = self.progress_ref(uid, quiz_id).get()
        return UserProgress.from_snapshot(snap) if snap.exists else None

    def ensure_progress(self, uid: str, quiz_id: str) -> UserProgress:
        """Create the progress row on first access to an unlocked quiz."""
        existing = self.get_progress(uid, quiz_id)
        if existing is not None:
            return existing
        record = UserProgress(quiz_id=quiz_id, score=0, completed_at=None, is_unlocked=True)
        self.progress_ref(uid, quiz_id).set({
            **record.model_dump(),
            "created_at": utc_now(),
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info("[progress/create] %s opened quiz %s", uid, quiz_id)
        return record

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def get_profile(self, uid: str) -> Profile:
        snap = self.profile_ref(uid).get()
        if not snap.exists:
            raise ProfileNotFound(f"Profile for {uid} not found.")
        return Profile.from_snapshot(snap)

    def ensure_profile(self, uid: str, username: str = "") -> Profile:
        snap = self.profile_ref(uid).get()
        if snap.exists:
            return Profile.from_snapshot(snap)
        profile = Profile(id=uid, username=username)
        self.profile_ref(uid).set({
            "username": profile.username,
            "total_points": 0,
            "current_level": 1,
            "current_streak": 0,
            "longest_streak": 0,
            "last_quiz_date": None,
            "created_at": utc_now(),
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info("[profile/create] created profile for %s", uid)
        return profile

    def update_username(self, uid: str, username: str) -> None:
        self.get_profile(uid)
        self.profile_ref(uid).update({
            "username": username,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })

    def delete_account(self, uid: str) -> int:
        """Delete the profile and everything stored under the user. Returns docs removed."""
        batch = self.db.batch()
        removed = 0
        for name in ("progress", "attempts", "redemptions"):
            for doc in self._user_ref(uid).collection(name).stream():
                batch.delete(doc.reference)
                removed += 1
        batch.delete(self.profile_ref(uid))
        batch.commit()
        return removed + 1

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------
    def list_active_rewards(self) -> List[Reward]:
        query = (self.db.collection("rewards")
                 .where("is_active", "==", True)
                 .order_by("points_cost"))
        return [Reward.from_snapshot(doc) for doc in query.stream()]

    def get_reward(self, reward_id: str) -> Reward:
        snap = self.reward_ref(reward_id).get()
        if not snap.exists:
            raise RewardNotFound(f"Reward {reward_id} not found.")
        reward = Reward.from_snapshot(snap)
        if not reward.is_active:
            raise RewardNotFound(f"Reward {reward_id} is no longer available.")
        return reward

    def list_redemptions(self, uid: str) -> List[UserReward]:
        query = self.redemptions_col(uid).order_by(
            "redeemed_at", direction=firestore.Query.DESCENDING
        )
        return [UserReward.from_snapshot(doc) for doc in query.stream()]
