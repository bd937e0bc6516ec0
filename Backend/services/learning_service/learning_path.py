# services/learning_service/learning_path.py
"""
Classifies every quiz on the learning path as locked, unlocked or completed
for one player (signed in or guest). Pure functions over the ordered quiz
list and that player's progress records; call again whenever either changes.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .models import Quiz, UserProgress

LOCKED = "locked"
UNLOCKED = "unlocked"
COMPLETED = "completed"


@dataclass
class QuizStatus:
    quiz: Quiz
    status: str
    score: int = 0

    @property
    def unlocked(self) -> bool:
        return self.status != LOCKED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.quiz.id,
            "title": self.quiz.title,
            "description": self.quiz.description,
            "path_order": self.quiz.path_order,
            "points_per_question": self.quiz.points_per_question,
            "total_questions": self.quiz.total_questions,
            "status": self.status,
            "unlocked": self.unlocked,
            "score": self.score,
        }


def _status_at(quizzes: List[Quiz], progress: Mapping[str, UserProgress], index: int) -> QuizStatus:
    quiz = quizzes[index]
    record = progress.get(quiz.id)

    if record is not None and record.completed:
        return QuizStatus(quiz, COMPLETED, record.score)

    if index == 0 or (record is not None and record.is_unlocked):
        return QuizStatus(quiz, UNLOCKED)

    previous = progress.get(quizzes[index - 1].id)
    if previous is not None and previous.completed:
        return QuizStatus(quiz, UNLOCKED)

    return QuizStatus(quiz, LOCKED)


def classify(quizzes: List[Quiz], progress: Mapping[str, UserProgress]) -> List[QuizStatus]:
    """quizzes must already be sorted by path_order."""
    return [_status_at(quizzes, progress, i) for i in range(len(quizzes))]


def status_of(quizzes: List[Quiz], progress: Mapping[str, UserProgress], quiz_id: str) -> Optional[QuizStatus]:
    for i, quiz in enumerate(quizzes):
        if quiz.id == quiz_id:
            return _status_at(quizzes, progress, i)
    return None


def can_start(quizzes: List[Quiz], progress: Mapping[str, UserProgress], quiz_id: str) -> bool:
    status = status_of(quizzes, progress, quiz_id)
    return status is not None and status.unlocked


def next_quiz(quizzes: List[Quiz], quiz: Quiz) -> Optional[Quiz]:
    """The quiz at path_order + 1, if any."""
    for candidate in quizzes:
        if candidate.path_order == quiz.path_order + 1:
            return candidate
    return None


def path_summary(statuses: List[QuizStatus]) -> Dict[str, Any]:
    completed = [s for s in statuses if s.status == COMPLETED]
    current = next((s for s in statuses if s.status == UNLOCKED), None)
    return {
        "total": len(statuses),
        "completed": len(completed),
        "points_earned": sum(s.score for s in completed),
        "current_quiz_id": current.quiz.id if current else None,
    }
