# services/learning_service/authoring.py
"""
Quiz authoring for admins: validation of the quiz form / JSON import,
JSON export, and placement of quizzes on the learning path.

Accepted JSON document (import and export use the same shape):

{
    "title": "Ocean Conservation",
    "description": "What lives in the sea and how to protect it",
    "points_per_question": 10,            # or "pointsPerQuestion"
    "questions": [
        {
            "question": "Which gas do oceans absorb most?",
            "options": ["CO2", "O2", "N2", "He"],   # 2 to 6 options
            "correctAnswer": 0,                       # or "correct_index"
            "context_for_ai": "ocean acidification"   # optional
        }
    ]
}
"""

from __future__ import annotations
import logging
from typing import Annotated, Any, Dict, List

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    model_validator,
)

from .errors import QuizValidationError
from .models import Quiz

logger = logging.getLogger(__name__)

MOVE_DIRECTIONS = ("up", "down")

OptionText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]

# ============================================================================
# Schema
# ============================================================================

class QuestionDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    question: str = Field(..., min_length=5, max_length=500)
    options: List[OptionText] = Field(..., min_length=2, max_length=6)
    correct_index: int = Field(
        ..., ge=0, validation_alias=AliasChoices("correctAnswer", "correct_index")
    )
    context_for_ai: str = Field("", max_length=1000)

    @model_validator(mode="after")
    def _correct_index_in_range(self):
        if self.correct_index >= len(self.options):
            raise ValueError(
                f"correct answer {self.correct_index} is out of range for {len(self.options)} options"
            )
        return self


class QuizDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    points_per_question: int = Field(
        10, ge=1, le=100, validation_alias=AliasChoices("points_per_question", "pointsPerQuestion")
    )
    questions: List[QuestionDraft] = Field(..., min_length=1, max_length=50)

    def to_document(self, path_order: int) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "path_order": path_order,
            "points_per_question": self.points_per_question,
            "questions": [q.model_dump() for q in self.questions],
        }


def _first_error(exc: ValidationError) -> str:
    """Only the first failing rule is reported, like the authoring form does."""
    err = exc.errors()[0]
    where = ".".join(str(part) for part in err.get("loc", ()))
    msg = err.get("msg", "invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{where}: {msg}" if where else msg


def validate_draft(payload: Any) -> QuizDraft:
    if not isinstance(payload, dict):
        raise QuizValidationError("Quiz JSON must be an object.")
    try:
        return QuizDraft.model_validate(payload)
    except ValidationError as e:
        raise QuizValidationError(_first_error(e)) from e


def _quiz_json(source) -> Dict[str, Any]:
    """JSON document shared by import and export; source is a QuizDraft or a Quiz."""
    return {
        "title": source.title,
        "description": source.description,
        "points_per_question": source.points_per_question,
        "questions": [
            {
                "question": q.question,
                "options": list(q.options),
                "correctAnswer": q.correct_index,
                "context_for_ai": q.context_for_ai,
            }
            for q in source.questions
        ],
    }


def parse_import(payload: Any) -> Dict[str, Any]:
    """Validate an imported JSON document and return it in the form's shape."""
    return _quiz_json(validate_draft(payload))


def export_quiz(quiz: Quiz) -> Dict[str, Any]:
    return _quiz_json(quiz)

# ============================================================================
# Learning path placement
# ============================================================================

def create_quiz(store, payload: Any) -> Quiz:
    """New quizzes go to the end of the path (max path_order + 1)."""
    draft = validate_draft(payload)
    next_order = store.max_path_order() + 1
    quiz_id = store.add_quiz(draft.to_document(next_order))
    logger.info("[admin/create] quiz %s created at position %d", quiz_id, next_order)
    return store.get_quiz(quiz_id)


def update_quiz(store, quiz_id: str, payload: Any) -> Quiz:
    """Replace a quiz's content; its place on the path is unchanged."""
    draft = validate_draft(payload)
    current = store.get_quiz(quiz_id)
    store.update_quiz(quiz_id, draft.to_document(current.path_order))
    return store.get_quiz(quiz_id)


def delete_quiz(store, quiz_id: str) -> None:
    """Remove a quiz and close the gap it leaves in the path order."""
    quiz = store.get_quiz(quiz_id)
    later = [q for q in store.list_quizzes() if q.path_order > quiz.path_order]
    store.delete_quiz(quiz_id)
    store.shift_path_order(later, -1)
    logger.info("[admin/delete] quiz %s removed, %d quizzes moved up", quiz_id, len(later))


def move_quiz(store, quiz_id: str, direction: str) -> List[Quiz]:
    """Swap a quiz with its neighbour. Moving past either end is a no-op."""
    if direction not in MOVE_DIRECTIONS:
        raise QuizValidationError("direction must be 'up' or 'down'.")

    quizzes = store.list_quizzes()
    index = next((i for i, q in enumerate(quizzes) if q.id == quiz_id), None)
    if index is None:
        store.get_quiz(quiz_id)  # raises QuizNotFound

    neighbour = index - 1 if direction == "up" else index + 1
    if neighbour < 0 or neighbour >= len(quizzes):
        return quizzes

    store.swap_path_order(quizzes[index], quizzes[neighbour])
    return store.list_quizzes()
