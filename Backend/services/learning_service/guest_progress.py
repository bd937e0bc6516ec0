# services/learning_service/guest_progress.py
"""
Progress for players who have not signed in yet.

Records have the same shape as a user's progress rows and live as one JSON
list under a fixed key in a mutable mapping (the signed Flask session in the
app). On sign-up the list is merged into the new account and cleared.
"""

from __future__ import annotations
import json
import logging
from dataclasses import asdict, dataclass
from typing import List, MutableMapping, Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError

from .learning_path import next_quiz
from .models import Profile, Quiz, UserProgress
from .progression import calculate_level
from .utils import utc_now

logger = logging.getLogger(__name__)

GUEST_PROGRESS_KEY = "eco_rewards_guest_progress"


@dataclass
class TransferResult:
    success: bool
    transferred: int = 0
    points: int = 0
    error: Optional[str] = None

    def to_dict(self):
        return asdict(self)


class GuestProgressCache:
    def __init__(self, storage: MutableMapping, key: str = GUEST_PROGRESS_KEY):
        self.storage = storage
        self.key = key

    def read(self) -> List[UserProgress]:
        """Stored records; a missing or unreadable entry reads as no progress."""
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            items = json.loads(raw) if isinstance(raw, str) else raw
            return [UserProgress.model_validate(item) for item in items]
        except (ValueError, TypeError) as e:
            logger.warning("[guest/read] ignoring unreadable guest progress: %s", e)
            return []

    def _save(self, records: List[UserProgress]) -> None:
        self.storage[self.key] = json.dumps([r.to_json_dict() for r in records])

    def write(self, record: UserProgress) -> None:
        """Upsert by quiz id; the latest write for a quiz wins."""
        records = self.read()
        for i, existing in enumerate(records):
            if existing.quiz_id == record.quiz_id:
                records[i] = record
                break
        else:
            records.append(record)
        self._save(records)

    def progress_map(self):
        return {r.quiz_id: r for r in self.read()}

    def unlock_next(self, quiz: Quiz, quizzes: List[Quiz]) -> Optional[str]:
        """Unlock the quiz at path_order + 1 unless it already has a record."""
        nxt = next_quiz(quizzes, quiz)
        if nxt is None:
            return None
        if nxt.id in self.progress_map():
            return nxt.id
        self.write(UserProgress(quiz_id=nxt.id, score=0, completed_at=None, is_unlocked=True))
        return nxt.id

    def clear(self) -> None:
        self.storage.pop(self.key, None)

    def _trusted_records(self, quizzes: List[Quiz]) -> List[UserProgress]:
        by_id = {q.id: q for q in quizzes}
        records = []
        for record in self.read():
            quiz = by_id.get(record.quiz_id)
            if quiz is None:
                logger.warning("[guest/transfer] dropping record for unknown quiz %s", record.quiz_id)
                continue
            capped = max(0, min(record.score, quiz.max_score))
            if capped != record.score:
                logger.warning("[guest/transfer] capping score for %s: %d -> %d", quiz.id, record.score, capped)
                record = record.model_copy(update={"score": capped})
            records.append(record)
        return records

    def transfer(self, store, uid: str) -> TransferResult:
        """
        Copy guest records into uid's progress and add the points of completed
        records to the profile, in one transaction. Quizzes the account has
        already completed keep their stored record. The cache is cleared only
        after the transaction succeeds.

        The session is client-held, so records are checked against the quiz
        catalog: unknown quiz ids are dropped and each score is capped at the
        quiz's maximum.
        """
        records = self._trusted_records(store.list_quizzes())
        if not records:
            self.clear()
            return TransferResult(success=True, transferred=0, points=0)

        profile_ref = store.profile_ref(uid)

        def _merge(transaction):
            # Firestore transactions need every read before the first write
            profile_snap = profile_ref.get(transaction=transaction)
            existing = {
                r.quiz_id: store.progress_ref(uid, r.quiz_id).get(transaction=transaction)
                for r in records
            }

            written = 0
            points = 0
            for record in records:
                snap = existing[record.quiz_id]
                if snap.exists and UserProgress.from_snapshot(snap).completed:
                    continue
                transaction.set(store.progress_ref(uid, record.quiz_id), {
                    **record.model_dump(),
                    "created_at": utc_now(),
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                }, merge=True)
                written += 1
                if record.completed:
                    points += record.score

            if points > 0:
                if profile_snap.exists:
                    profile = Profile.from_snapshot(profile_snap)
                else:
                    profile = Profile(id=uid)
                new_total = profile.total_points + points
                transaction.set(profile_ref, {
                    "total_points": new_total,
                    "current_level": calculate_level(new_total),
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                }, merge=True)
            return written, points

        try:
            written, points = store.run_transaction(_merge)
        except GoogleAPICallError as e:
            logger.error("[guest/transfer] failed for %s, keeping guest progress: %s", uid, e)
            return TransferResult(success=False, error=str(e))

        self.clear()
        logger.info("[guest/transfer] moved %d records (%d points) to %s", written, points, uid)
        return TransferResult(success=True, transferred=written, points=points)
