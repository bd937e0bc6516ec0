import pytest
from firebase_admin import firestore

import auth_middleware
from fake_firestore import FakeFirestore, fake_transactional
from services.learning_service.store import ProgressStore

USER_UID = "user-1"
ADMIN_UID = "admin-1"


def _verify_id_token(token):
    """Tokens look like "<uid>" or "admin:<uid>"; "bad" is rejected."""
    if token == "bad":
        raise ValueError("Token expired")
    if token.startswith("admin:"):
        uid = token.split(":", 1)[1]
        return {"uid": uid, "email": f"{uid}@example.com", "admin": True}
    return {"uid": token, "email": f"{token}@example.com", "name": "Sam"}


@pytest.fixture(autouse=True)
def _fake_transactions(monkeypatch):
    monkeypatch.setattr(firestore, "transactional", fake_transactional)


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def store(db):
    return ProgressStore(db)


def make_quiz_doc(title, path_order, questions=3, points=10):
    return {
        "title": title,
        "description": f"Learn about {title.lower()}",
        "path_order": path_order,
        "points_per_question": points,
        "questions": [
            {
                "question": f"{title} question {i + 1}?",
                "options": ["A", "B", "C", "D"],
                "correct_index": i % 4,
                "context_for_ai": title,
            }
            for i in range(questions)
        ],
    }


@pytest.fixture
def seeded(db):
    """Three quizzes on the path and three rewards, one of them inactive."""
    db.seed("quizzes", "q1", make_quiz_doc("Recycling", 1))
    db.seed("quizzes", "q2", make_quiz_doc("Energy", 2))
    db.seed("quizzes", "q3", make_quiz_doc("Water", 3))
    db.seed("rewards", "r-cheap", {"title": "Sticker", "description": "Eco sticker", "points_cost": 50, "is_active": True})
    db.seed("rewards", "r-mid", {"title": "Tote bag", "description": "Cotton tote", "points_cost": 100, "is_active": True})
    db.seed("rewards", "r-old", {"title": "Mug", "description": "Retired", "points_cost": 10, "is_active": False})
    return db


@pytest.fixture
def app(db, monkeypatch):
    from app import create_app

    monkeypatch.setattr(auth_middleware.fb_auth, "verify_id_token", _verify_id_token)
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "FIRESTORE_CLIENT": db,
        "AI_API_KEY": None,
        "ADMIN_UIDS": [ADMIN_UID],
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def bearer(token=USER_UID):
    return {"Authorization": f"Bearer {token}"}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload
