import json
from datetime import datetime, timezone

from google.api_core.exceptions import ServiceUnavailable

from services.learning_service.guest_progress import GUEST_PROGRESS_KEY, GuestProgressCache
from services.learning_service.models import Quiz, UserProgress

DONE_AT = datetime(2026, 10, 16, 9, 30, tzinfo=timezone.utc)


def _done(quiz_id, score):
    return UserProgress(quiz_id=quiz_id, score=score, completed_at=DONE_AT, is_unlocked=True)


def test_missing_key_reads_empty():
    assert GuestProgressCache({}).read() == []


def test_corrupt_storage_reads_empty():
    assert GuestProgressCache({GUEST_PROGRESS_KEY: "{not json"}).read() == []
    assert GuestProgressCache({GUEST_PROGRESS_KEY: json.dumps([{"score": 3}])}).read() == []


def test_write_is_an_upsert_by_quiz():
    storage = {}
    cache = GuestProgressCache(storage)
    cache.write(_done("q1", 10))
    cache.write(_done("q1", 30))
    records = cache.read()
    assert len(records) == 1
    assert records[0].score == 30
    assert isinstance(storage[GUEST_PROGRESS_KEY], str)


def test_unlock_next_does_not_overwrite():
    quizzes = [Quiz(id="q1", title="One", path_order=1), Quiz(id="q2", title="Two", path_order=2)]
    cache = GuestProgressCache({})
    cache.write(_done("q2", 20))

    assert cache.unlock_next(quizzes[0], quizzes) == "q2"
    assert cache.progress_map()["q2"].score == 20
    assert cache.unlock_next(quizzes[1], quizzes) is None


def test_clear():
    storage = {}
    cache = GuestProgressCache(storage)
    cache.write(_done("q1", 10))
    cache.clear()
    assert GUEST_PROGRESS_KEY not in storage
    cache.clear()


def test_transfer_with_empty_cache_leaves_profile_alone(store, db):
    result = GuestProgressCache({}).transfer(store, "user-1")
    assert result.success
    assert result.transferred == 0
    assert db.doc("profiles/user-1") is None


def test_transfer_writes_rows_and_points(seeded, store, db):
    store.ensure_profile("user-1", "sam")
    storage = {}
    cache = GuestProgressCache(storage)
    cache.write(_done("q1", 30))
    cache.write(_done("q2", 20))
    cache.write(UserProgress(quiz_id="q3", is_unlocked=True))

    result = cache.transfer(store, "user-1")

    assert result.success
    assert result.transferred == 3
    assert result.points == 50
    rows = db.docs_under("users/user-1/progress")
    assert set(rows) == {"q1", "q2", "q3"}
    assert rows["q3"]["completed_at"] is None
    profile = db.doc("profiles/user-1")
    assert profile["total_points"] == 50
    assert GUEST_PROGRESS_KEY not in storage


def test_transfer_keeps_completed_account_rows(seeded, store, db):
    db.seed("profiles", "user-1", {"username": "sam", "total_points": 100})
    db.seed("users/user-1/progress", "q1", {"quiz_id": "q1", "score": 40, "completed_at": DONE_AT, "is_unlocked": True})
    cache = GuestProgressCache({})
    cache.write(_done("q1", 10))

    result = cache.transfer(store, "user-1")

    assert result.success
    assert result.transferred == 0
    assert db.doc("users/user-1/progress/q1")["score"] == 40
    assert db.doc("profiles/user-1")["total_points"] == 100


def test_failed_transfer_keeps_cache(seeded, store, db):
    store.ensure_profile("user-1", "sam")
    storage = {}
    cache = GuestProgressCache(storage)
    cache.write(_done("q1", 30))
    db.commit_error = ServiceUnavailable("firestore down")

    result = cache.transfer(store, "user-1")

    assert not result.success
    assert "firestore down" in result.error
    assert [r.quiz_id for r in cache.read()] == ["q1"]
    assert db.docs_under("users/user-1/progress") == {}
    assert db.doc("profiles/user-1")["total_points"] == 0


def test_transfer_caps_forged_scores(seeded, store, db):
    store.ensure_profile("user-1", "sam")
    storage = {GUEST_PROGRESS_KEY: json.dumps([
        {"quiz_id": "q1", "score": 1_000_000, "completed_at": DONE_AT.isoformat(), "is_unlocked": True},
        {"quiz_id": "q2", "score": -50, "completed_at": DONE_AT.isoformat(), "is_unlocked": True},
    ])}

    result = GuestProgressCache(storage).transfer(store, "user-1")

    assert result.success
    assert result.points == 30
    assert db.doc("users/user-1/progress/q1")["score"] == 30
    assert db.doc("users/user-1/progress/q2")["score"] == 0
    assert db.doc("profiles/user-1")["total_points"] == 30


def test_transfer_drops_unknown_quizzes(seeded, store, db):
    store.ensure_profile("user-1", "sam")
    storage = {}
    cache = GuestProgressCache(storage)
    cache.write(_done("q1", 20))
    cache.write(_done("made-up", 500))

    result = cache.transfer(store, "user-1")

    assert result.transferred == 1
    assert result.points == 20
    assert set(db.docs_under("users/user-1/progress")) == {"q1"}
    assert GUEST_PROGRESS_KEY not in storage
