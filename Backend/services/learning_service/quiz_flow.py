# services/learning_service/quiz_flow.py
from __future__ import annotations
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional

from firebase_admin import firestore

from . import learning_path
from .errors import AttemptStateError, LearningError, QuizLocked
from .guest_progress import GuestProgressCache
from .models import Profile, Quiz, UserProgress
from .progression import calculate_level, update_streak
from .utils import percent, to_yyyy_mm_dd, utc_date, utc_now

logger = logging.getLogger(__name__)

# ============================================================================
# Attempt state
# ============================================================================
ANSWERING = "answering"
FEEDBACK = "feedback"
COMPLETED = "completed"

FeedbackFn = Callable[[str, str, bool, str], str]


@dataclass
class QuizAttempt:
    """
    One pass through a quiz:
        answering(i) -> feedback(i) -> answering(i + 1) | completed
    """
    quiz_id: str
    question_index: int = 0
    phase: str = ANSWERING
    score: int = 0
    correct_answers: int = 0
    selected_index: Optional[int] = None
    last_correct: Optional[bool] = None
    feedback: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuizAttempt":
        fields = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**fields)


class FirestoreAttempts:
    """Attempts of a signed-in user, kept under users/{uid}/attempts."""

    def __init__(self, store, uid: str):
        self.store = store
        self.uid = uid

    def load(self, quiz_id: str) -> Optional[QuizAttempt]:
        snap = self.store.attempt_ref(self.uid, quiz_id).get()
        return QuizAttempt.from_dict(snap.to_dict() or {}) if snap.exists else None

    def save(self, attempt: QuizAttempt) -> None:
        self.store.attempt_ref(self.uid, attempt.quiz_id).set({
            **attempt.to_dict(),
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })

    def clear(self, quiz_id: str) -> None:
        self.store.attempt_ref(self.uid, quiz_id).delete()


class SessionAttempts:
    """Attempts of a guest, kept in the session next to the guest progress."""

    KEY = "quiz_attempts"

    def __init__(self, storage: MutableMapping):
        self.storage = storage

    def load(self, quiz_id: str) -> Optional[QuizAttempt]:
        data = (self.storage.get(self.KEY) or {}).get(quiz_id)
        return QuizAttempt.from_dict(data) if data else None

    def save(self, attempt: QuizAttempt) -> None:
        attempts = dict(self.storage.get(self.KEY) or {})
        attempts[attempt.quiz_id] = attempt.to_dict()
        self.storage[self.KEY] = attempts

    def clear(self, quiz_id: str) -> None:
        attempts = dict(self.storage.get(self.KEY) or {})
        attempts.pop(quiz_id, None)
        self.storage[self.KEY] = attempts

# ============================================================================
# State transitions
# ============================================================================

def is_stale(attempt: QuizAttempt, quiz: Quiz) -> bool:
    """The quiz was edited under the attempt and its question no longer exists."""
    return attempt.question_index >= quiz.total_questions


def _ensure_current(attempt: QuizAttempt, quiz: Quiz) -> None:
    if is_stale(attempt, quiz):
        raise AttemptStateError("Quiz changed, restart it.")


def start_attempt(
    quizzes: List[Quiz],
    progress: Mapping[str, UserProgress],
    quiz: Quiz,
    store=None,
    uid: Optional[str] = None,
) -> QuizAttempt:
    """
    Begin a fresh attempt on an unlocked quiz. For signed-in users the
    progress row is created on first access.
    """
    if not learning_path.can_start(quizzes, progress, quiz.id):
        raise QuizLocked(f"Quiz {quiz.id} is locked. Complete the previous quiz first.")
    if not quiz.questions:
        raise LearningError(f"Quiz {quiz.id} has no questions.")

    if store is not None and uid:
        store.ensure_progress(uid, quiz.id)
    return QuizAttempt(quiz_id=quiz.id)


def select_answer(attempt: QuizAttempt, quiz: Quiz, selected_index: int, feedback_fn: FeedbackFn) -> Dict[str, Any]:
    """
    Grade the answer for the current question and fetch feedback for it.
    Further selections are rejected until the player moves on.
    """
    if attempt.phase == COMPLETED:
        raise AttemptStateError("Quiz already completed.")
    if attempt.phase != ANSWERING:
        raise AttemptStateError(f"Question {attempt.question_index + 1} already answered.")
    _ensure_current(attempt, quiz)

    question = quiz.questions[attempt.question_index]
    if not 0 <= selected_index < len(question.options):
        raise LearningError(
            f"selected_index must be between 0 and {len(question.options) - 1}."
        )

    is_correct = selected_index == question.correct_index
    points_earned = quiz.points_per_question if is_correct else 0
    if is_correct:
        attempt.score += points_earned
        attempt.correct_answers += 1

    attempt.phase = FEEDBACK
    attempt.selected_index = selected_index
    attempt.last_correct = is_correct
    attempt.feedback = feedback_fn(
        question.question,
        question.options[selected_index],
        is_correct,
        question.context_for_ai,
    )

    return {
        "ok": True,
        "is_correct": is_correct,
        "selected_index": selected_index,
        "points_earned": points_earned,
        "score": attempt.score,
        "correct_answers": attempt.correct_answers,
        "feedback": attempt.feedback,
        "question_index": attempt.question_index,
        "total_questions": quiz.total_questions,
        "is_last_question": attempt.question_index == quiz.total_questions - 1,
    }


def advance(attempt: QuizAttempt, quiz: Quiz) -> bool:
    """Move past the feedback. Returns True when this finished the quiz."""
    if attempt.phase != FEEDBACK:
        raise AttemptStateError("Select an answer before moving on.")
    _ensure_current(attempt, quiz)

    if attempt.question_index < quiz.total_questions - 1:
        attempt.question_index += 1
        attempt.phase = ANSWERING
        attempt.selected_index = None
        attempt.last_correct = None
        attempt.feedback = None
        return False

    attempt.phase = COMPLETED
    return True


def attempt_view(attempt: QuizAttempt, quiz: Quiz) -> Dict[str, Any]:
    """What the player sees right now."""
    if attempt.phase != COMPLETED:
        _ensure_current(attempt, quiz)
    view = {
        "quiz_id": quiz.id,
        "title": quiz.title,
        "phase": attempt.phase,
        "question_index": attempt.question_index,
        "total_questions": quiz.total_questions,
        "score": attempt.score,
        "correct_answers": attempt.correct_answers,
        "progress": percent(attempt.question_index + 1, quiz.total_questions),
    }
    if attempt.phase != COMPLETED:
        view["question"] = quiz.questions[attempt.question_index].public_dict()
    if attempt.phase == FEEDBACK:
        view["selected_index"] = attempt.selected_index
        view["is_correct"] = attempt.last_correct
        view["feedback"] = attempt.feedback
    return view


def summarize(attempt: QuizAttempt, quiz: Quiz) -> Dict[str, Any]:
    return {
        "score": attempt.score,
        "correct_answers": attempt.correct_answers,
        "total_questions": quiz.total_questions,
        "percent": percent(attempt.correct_answers, quiz.total_questions),
    }

# ============================================================================
# Completion
# ============================================================================

def complete_quiz(store, uid: str, quiz: Quiz, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Record a finished quiz for a signed-in user, in one transaction:
    - stored attempt: must be answered on the last question; its score is
      used and the attempt is deleted, so a completion counts once
    - progress row: score, completed_at = now, is_unlocked
    - profile: points += score (+ streak bonus), level and streak recomputed
    - next quiz by path order unlocked, created with score 0 if absent
    """
    now = now or utc_now()
    nxt = store.quiz_at_order(quiz.path_order + 1)

    profile_ref = store.profile_ref(uid)
    progress_ref = store.progress_ref(uid, quiz.id)
    attempt_ref = store.attempt_ref(uid, quiz.id)
    next_ref = store.progress_ref(uid, nxt.id) if nxt else None

    def _complete(transaction):
        profile_snap = profile_ref.get(transaction=transaction)
        progress_snap = progress_ref.get(transaction=transaction)
        next_snap = next_ref.get(transaction=transaction) if next_ref else None
        attempt_snap = attempt_ref.get(transaction=transaction)

        attempt = QuizAttempt.from_dict(attempt_snap.to_dict() or {}) if attempt_snap.exists else None
        if attempt is None or attempt.quiz_id != quiz.id:
            raise AttemptStateError("No attempt in progress. Start the quiz first.")
        _ensure_current(attempt, quiz)
        if attempt.phase != FEEDBACK or attempt.question_index != quiz.total_questions - 1:
            raise AttemptStateError("Answer the last question before finishing the quiz.")
        score = attempt.score

        profile = Profile.from_snapshot(profile_snap) if profile_snap.exists else Profile(id=uid)
        streak = update_streak(profile, utc_date(now))
        new_total = profile.total_points + score + streak.streak_bonus
        old_level = calculate_level(profile.total_points)
        new_level = calculate_level(new_total)

        progress_doc = {
            "quiz_id": quiz.id,
            "score": score,
            "completed_at": now,
            "is_unlocked": True,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        if not progress_snap.exists:
            progress_doc["created_at"] = now
        transaction.set(progress_ref, progress_doc, merge=True)
        transaction.delete(attempt_ref)

        transaction.set(profile_ref, {
            "total_points": new_total,
            "current_level": new_level,
            "current_streak": streak.new_streak,
            "longest_streak": streak.longest_streak,
            "last_quiz_date": to_yyyy_mm_dd(streak.last_quiz_date),
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }, merge=True)

        if next_ref is not None:
            if next_snap.exists:
                transaction.update(next_ref, {
                    "is_unlocked": True,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                })
            else:
                transaction.set(next_ref, {
                    "quiz_id": nxt.id,
                    "score": 0,
                    "completed_at": None,
                    "is_unlocked": True,
                    "created_at": now,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                })

        return {
            "ok": True,
            "score": score,
            "streak_bonus": streak.streak_bonus,
            "total_points": new_total,
            "level": new_level,
            "level_up": new_level > old_level,
            "streak": {
                "current": streak.new_streak,
                "longest": streak.longest_streak,
                "is_new_record": streak.is_new_record,
            },
            "next_quiz_id": nxt.id if nxt else None,
        }

    result = store.run_transaction(_complete)
    logger.info("[quiz/complete] %s finished %s with %d points", uid, quiz.id, result["score"])
    return result


def complete_guest_quiz(
    cache: GuestProgressCache,
    quizzes: List[Quiz],
    quiz: Quiz,
    score: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Guests keep the same record in their session until they sign up."""
    now = now or utc_now()
    cache.write(UserProgress(quiz_id=quiz.id, score=score, completed_at=now, is_unlocked=True))
    next_id = cache.unlock_next(quiz, quizzes)
    return {
        "ok": True,
        "score": score,
        "guest": True,
        "next_quiz_id": next_id,
        "message": "Sign up to keep your progress and redeem rewards!",
    }
