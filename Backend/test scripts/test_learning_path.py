from datetime import datetime, timezone

from services.learning_service import learning_path
from services.learning_service.learning_path import COMPLETED, LOCKED, UNLOCKED
from services.learning_service.models import Quiz, UserProgress

DONE_AT = datetime(2026, 10, 1, tzinfo=timezone.utc)


def _quizzes(n=4):
    return [Quiz(id=f"q{i}", title=f"Quiz {i}", path_order=i) for i in range(1, n + 1)]


def _statuses(progress, n=4):
    return [s.status for s in learning_path.classify(_quizzes(n), progress)]


def test_first_quiz_unlocked_for_new_player():
    assert _statuses({}) == [UNLOCKED, LOCKED, LOCKED, LOCKED]


def test_completed_quiz_unlocks_the_next_one():
    progress = {"q1": UserProgress(quiz_id="q1", score=30, completed_at=DONE_AT, is_unlocked=True)}
    statuses = learning_path.classify(_quizzes(), progress)
    assert [s.status for s in statuses] == [COMPLETED, UNLOCKED, LOCKED, LOCKED]
    assert statuses[0].score == 30


def test_unlock_flag_alone_unlocks():
    progress = {"q3": UserProgress(quiz_id="q3", is_unlocked=True)}
    assert _statuses(progress) == [UNLOCKED, LOCKED, UNLOCKED, LOCKED]


def test_completion_wins_over_missing_unlock_flag():
    progress = {"q2": UserProgress(quiz_id="q2", score=10, completed_at=DONE_AT, is_unlocked=False)}
    assert _statuses(progress)[1] == COMPLETED


def test_classification_is_recomputed_from_inputs():
    quizzes = _quizzes()
    progress = {}
    assert not learning_path.can_start(quizzes, progress, "q2")
    progress["q1"] = UserProgress(quiz_id="q1", score=10, completed_at=DONE_AT, is_unlocked=True)
    assert learning_path.can_start(quizzes, progress, "q2")


def test_unknown_quiz_cannot_start():
    assert not learning_path.can_start(_quizzes(), {}, "missing")


def test_next_quiz_by_path_order():
    quizzes = _quizzes(3)
    assert learning_path.next_quiz(quizzes, quizzes[0]).id == "q2"
    assert learning_path.next_quiz(quizzes, quizzes[2]) is None


def test_path_summary():
    progress = {
        "q1": UserProgress(quiz_id="q1", score=30, completed_at=DONE_AT, is_unlocked=True),
        "q2": UserProgress(quiz_id="q2", score=20, completed_at=DONE_AT, is_unlocked=True),
    }
    summary = learning_path.path_summary(learning_path.classify(_quizzes(), progress))
    assert summary == {"total": 4, "completed": 2, "points_earned": 50, "current_quiz_id": "q3"}


def test_empty_path():
    assert learning_path.classify([], {}) == []
    assert learning_path.path_summary([])["current_quiz_id"] is None
