# services/learning_service/models.py
"""
Typed records for everything the learning service reads from or writes to
Firestore. Documents are validated here on the way in, so the rest of the
service never handles raw dict shapes.
"""

from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_snapshot(cls, snap):
        """Build a record from a Firestore DocumentSnapshot (doc id -> `id`)."""
        data = snap.to_dict() or {}
        if "id" in cls.model_fields:
            data = {**data, "id": snap.id}
        return cls.model_validate(data)


class Question(_Record):
    question: str
    options: List[str] = Field(..., min_length=2, max_length=6)
    correct_index: int = Field(
        ..., ge=0, validation_alias=AliasChoices("correct_index", "correctAnswer")
    )
    context_for_ai: str = ""

    @model_validator(mode="after")
    def _correct_index_in_range(self):
        if self.correct_index >= len(self.options):
            raise ValueError(
                f"correct index {self.correct_index} is out of range for {len(self.options)} options"
            )
        return self

    def public_dict(self) -> Dict[str, Any]:
        """Question as sent to players, without the answer."""
        return {"question": self.question, "options": list(self.options)}


class Quiz(_Record):
    id: str
    title: str
    description: str = ""
    path_order: int
    points_per_question: int = Field(10, ge=0)
    questions: List[Question] = Field(
        default_factory=list, validation_alias=AliasChoices("questions", "questions_json")
    )
    created_at: Optional[datetime] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def max_score(self) -> int:
        return self.points_per_question * self.total_questions

    def public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "path_order": self.path_order,
            "points_per_question": self.points_per_question,
            "total_questions": self.total_questions,
            "questions": [q.public_dict() for q in self.questions],
        }


class UserProgress(_Record):
    """Per (user, quiz) progress. Guests keep the same shape in their session."""
    quiz_id: str
    score: int = 0
    completed_at: Optional[datetime] = None
    is_unlocked: bool = False

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Profile(_Record):
    id: str
    username: str = ""
    total_points: int = 0
    current_level: int = 1
    current_streak: int = 0
    longest_streak: int = 0
    last_quiz_date: Optional[date] = None


class Reward(_Record):
    id: str
    title: str
    description: str = ""
    points_cost: int = Field(..., ge=0)
    is_active: bool = True
    image_url: Optional[str] = None


class UserReward(_Record):
    id: Optional[str] = None
    reward_id: str
    reward_title: str = ""
    points_cost: int = 0
    redeemed_at: Optional[datetime] = None
