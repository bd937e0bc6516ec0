# services/learning_service/routes.py
import logging

from flask import Blueprint, request, jsonify
from google.api_core.exceptions import GoogleAPICallError

from auth_middleware import optional_auth, require_auth

from . import learning_path
from . import quiz_flow
from . import rewards
from .context import attempts_for, current_gateway, current_store, current_uid, display_name, guest_cache
from .errors import AttemptStateError, LearningError
from .feedback import get_feedback
from .progression import profile_summary

logger = logging.getLogger(__name__)

learning_bp = Blueprint("learning_bp", __name__)

USERNAME_MAX = 50


def _player(store):
    """(uid, progress by quiz id) for the caller. Signed-in users get a profile on first use."""
    uid = current_uid()
    if uid:
        store.ensure_profile(uid, display_name())
        return uid, store.list_progress(uid)
    return None, guest_cache().progress_map()


def _feedback_fn():
    gateway = current_gateway()

    def _fn(question, user_answer, correct, context):
        return get_feedback(gateway, question, user_answer, correct, context)
    return _fn


def _load_attempt(attempts, quiz):
    attempt = attempts.load(quiz.id)
    if attempt is None:
        raise AttemptStateError("No attempt in progress. Start the quiz first.")
    _discard_if_stale(attempts, attempt, quiz)
    return attempt


def _discard_if_stale(attempts, attempt, quiz):
    if quiz_flow.is_stale(attempt, quiz):
        attempts.clear(quiz.id)
        raise AttemptStateError("Quiz changed, restart it.")

# -------------------- Learning path --------------------

@learning_bp.get("/path")
@optional_auth
def get_path():
    """
    Response:
    {
        "ok": true,
        "guest": false,
        "quizzes": [{"id": "...", "title": "...", "path_order": 1, "status": "completed", "score": 30, ...}],
        "summary": {"total": 5, "completed": 1, "points_earned": 30, "current_quiz_id": "..."}
    }
    """
    store = current_store()
    uid, progress = _player(store)
    statuses = learning_path.classify(store.list_quizzes(), progress)
    return jsonify({
        "ok": True,
        "guest": uid is None,
        "quizzes": [s.to_dict() for s in statuses],
        "summary": learning_path.path_summary(statuses),
    }), 200

@learning_bp.get("/quizzes/<quiz_id>")
@optional_auth
def get_quiz(quiz_id):
    store = current_store()
    _, progress = _player(store)
    quiz = store.get_quiz(quiz_id)
    status = learning_path.status_of(store.list_quizzes(), progress, quiz_id)
    return jsonify({
        "ok": True,
        "quiz": quiz.public_dict(),
        "status": status.status if status else learning_path.LOCKED,
    }), 200

# -------------------- Quiz attempt --------------------

@learning_bp.post("/quizzes/<quiz_id>/start")
@optional_auth
def start_quiz(quiz_id):
    store = current_store()
    uid, progress = _player(store)
    quiz = store.get_quiz(quiz_id)
    attempt = quiz_flow.start_attempt(store.list_quizzes(), progress, quiz, store=store, uid=uid)
    attempts_for(store, uid).save(attempt)
    logger.info("[quiz/start] %s started %s", uid or "guest", quiz_id)
    return jsonify({"ok": True, **quiz_flow.attempt_view(attempt, quiz)}), 200

@learning_bp.post("/quizzes/<quiz_id>/answer")
@optional_auth
def answer_quiz(quiz_id):
    """
    Request body:
    {
        "selected_index": 2
    }

    Response:
    {
        "ok": true,
        "is_correct": false,
        "selected_index": 2,
        "points_earned": 0,
        "score": 10,
        "correct_answers": 1,
        "feedback": "...",
        "question_index": 1,
        "total_questions": 3,
        "is_last_question": false
    }
    """
    data = request.get_json(silent=True) or {}
    selected_index = data.get("selected_index")
    if selected_index is None:
        return jsonify({"ok": False, "error": "selected_index required"}), 400
    if not isinstance(selected_index, int) or isinstance(selected_index, bool):
        return jsonify({"ok": False, "error": "selected_index must be an integer"}), 400

    store = current_store()
    uid = current_uid()
    quiz = store.get_quiz(quiz_id)
    attempts = attempts_for(store, uid)
    attempt = _load_attempt(attempts, quiz)

    result = quiz_flow.select_answer(attempt, quiz, selected_index, _feedback_fn())
    attempts.save(attempt)
    return jsonify(result), 200

@learning_bp.post("/quizzes/<quiz_id>/next")
@optional_auth
def next_question(quiz_id):
    """Move past the feedback; the last question records the completion."""
    store = current_store()
    uid = current_uid()
    quiz = store.get_quiz(quiz_id)
    attempts = attempts_for(store, uid)
    attempt = _load_attempt(attempts, quiz)

    if not quiz_flow.advance(attempt, quiz):
        attempts.save(attempt)
        return jsonify({"ok": True, "completed": False, **quiz_flow.attempt_view(attempt, quiz)}), 200

    summary = quiz_flow.summarize(attempt, quiz)
    if uid:
        # the stored attempt is checked and removed inside the completion transaction
        store.ensure_profile(uid, display_name())
        result = quiz_flow.complete_quiz(store, uid, quiz)
    else:
        result = quiz_flow.complete_guest_quiz(guest_cache(), store.list_quizzes(), quiz, attempt.score)
        attempts.clear(quiz_id)
    return jsonify({**result, "completed": True, "summary": summary}), 200

@learning_bp.get("/quizzes/<quiz_id>/attempt")
@optional_auth
def get_attempt(quiz_id):
    store = current_store()
    quiz = store.get_quiz(quiz_id)
    attempts = attempts_for(store, current_uid())
    attempt = attempts.load(quiz_id)
    if attempt is None:
        return jsonify({"ok": True, "attempt": None}), 200
    _discard_if_stale(attempts, attempt, quiz)
    return jsonify({"ok": True, "attempt": quiz_flow.attempt_view(attempt, quiz)}), 200

# -------------------- Profile --------------------

@learning_bp.get("/profile")
@require_auth
def get_profile():
    uid = request.user["uid"]
    store = current_store()
    profile = store.ensure_profile(uid, display_name())
    return jsonify({**profile_summary(profile), "email": request.user.get("email")}), 200

@learning_bp.patch("/profile")
@require_auth
def update_profile():
    uid = request.user["uid"]
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    if not isinstance(username, str) or not username.strip():
        return jsonify({"ok": False, "error": "username required"}), 400
    username = username.strip()
    if len(username) > USERNAME_MAX:
        return jsonify({"ok": False, "error": f"username must be at most {USERNAME_MAX} characters"}), 400

    store = current_store()
    store.ensure_profile(uid, display_name())
    store.update_username(uid, username)
    logger.info("[profile/update] %s renamed", uid)
    return jsonify(profile_summary(store.get_profile(uid))), 200

@learning_bp.delete("/profile")
@require_auth
def delete_profile():
    uid = request.user["uid"]
    removed = current_store().delete_account(uid)
    guest_cache().clear()
    logger.info("[profile/delete] %s deleted (%d documents)", uid, removed)
    return jsonify({"ok": True, "deleted": removed}), 200

# -------------------- Rewards --------------------

@learning_bp.get("/rewards")
@optional_auth
def list_rewards():
    store = current_store()
    uid = current_uid()
    points = store.ensure_profile(uid, display_name()).total_points if uid else 0
    return jsonify({
        "ok": True,
        "total_points": points,
        "rewards": rewards.list_rewards(store, points),
    }), 200

@learning_bp.get("/rewards/next")
@require_auth
def next_reward():
    uid = request.user["uid"]
    store = current_store()
    points = store.ensure_profile(uid, display_name()).total_points
    return jsonify({
        "ok": True,
        "total_points": points,
        "next": rewards.next_reward(store.list_active_rewards(), points),
    }), 200

@learning_bp.post("/rewards/<reward_id>/redeem")
@require_auth
def redeem_reward(reward_id):
    uid = request.user["uid"]
    store = current_store()
    store.ensure_profile(uid, display_name())
    return jsonify(rewards.redeem(store, uid, reward_id)), 200

@learning_bp.get("/rewards/redeemed")
@require_auth
def redeemed_rewards():
    uid = request.user["uid"]
    return jsonify({"ok": True, "redemptions": rewards.list_redemptions(current_store(), uid)}), 200

# -------------------- Guest progress --------------------

@learning_bp.get("/guest/progress")
def get_guest_progress():
    records = guest_cache().read()
    return jsonify({"ok": True, "progress": [r.to_json_dict() for r in records]}), 200

@learning_bp.delete("/guest/progress")
def clear_guest_progress():
    guest_cache().clear()
    return jsonify({"ok": True}), 200

@learning_bp.post("/guest/transfer")
@require_auth
def transfer_guest_progress():
    """Merge the session's guest progress into the signed-in account."""
    uid = request.user["uid"]
    store = current_store()
    store.ensure_profile(uid, display_name())
    result = guest_cache().transfer(store, uid)
    status = 200 if result.success else 503
    return jsonify({"ok": result.success, **result.to_dict()}), status

# -------------------- AI feedback --------------------

@learning_bp.post("/feedback")
@optional_auth
def answer_feedback():
    """
    Request body:
    {
        "question": "...",
        "userAnswer": "...",
        "correct": true,
        "context": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    question = data.get("question")
    user_answer = data.get("userAnswer", data.get("user_answer"))
    if not question or user_answer is None:
        return jsonify({"ok": False, "error": "question and userAnswer required"}), 400

    feedback = get_feedback(
        current_gateway(),
        question,
        str(user_answer),
        bool(data.get("correct")),
        data.get("context") or "",
    )
    return jsonify({"ok": True, "feedback": feedback}), 200


def register_error_handlers(app):
    """Domain errors and store outages share the blueprint's JSON error shape."""
    @app.errorhandler(LearningError)
    def handle_learning_error(e):
        return jsonify({"ok": False, "error": e.message}), e.status_code

    @app.errorhandler(GoogleAPICallError)
    def handle_store_error(e):
        logger.error("[store] Firestore call failed: %s", e)
        return jsonify({"ok": False, "error": "Data store unavailable, please try again."}), 503
