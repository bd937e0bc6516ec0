# routes/admin.py
import json
import logging
import re

from flask import Blueprint, Response, request, jsonify

from auth_middleware import require_admin
from services.learning_service import authoring
from services.learning_service.context import current_gateway, current_store
from services.learning_service.errors import QuizValidationError
from services.learning_service.question_generator import generate_questions

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin_bp", __name__)


def _quiz_json(quiz):
    return quiz.model_dump(mode="json")


def _export_filename(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return f"{slug or 'quiz'}.json"

# -------------------- Quiz CRUD --------------------

@admin_bp.get("/quizzes")
@require_admin
def list_quizzes():
    quizzes = current_store().list_quizzes()
    return jsonify({"ok": True, "quizzes": [_quiz_json(q) for q in quizzes]}), 200

@admin_bp.post("/quizzes")
@require_admin
def create_quiz():
    quiz = authoring.create_quiz(current_store(), request.get_json(silent=True))
    return jsonify({"ok": True, "quiz": _quiz_json(quiz)}), 201

@admin_bp.put("/quizzes/<quiz_id>")
@require_admin
def update_quiz(quiz_id):
    quiz = authoring.update_quiz(current_store(), quiz_id, request.get_json(silent=True))
    return jsonify({"ok": True, "quiz": _quiz_json(quiz)}), 200

@admin_bp.delete("/quizzes/<quiz_id>")
@require_admin
def delete_quiz(quiz_id):
    authoring.delete_quiz(current_store(), quiz_id)
    return jsonify({"ok": True}), 200

@admin_bp.post("/quizzes/<quiz_id>/move")
@require_admin
def move_quiz(quiz_id):
    """
    Request body:
    {
        "direction": "up"    # or "down"
    }
    """
    data = request.get_json(silent=True) or {}
    quizzes = authoring.move_quiz(current_store(), quiz_id, data.get("direction"))
    return jsonify({"ok": True, "quizzes": [_quiz_json(q) for q in quizzes]}), 200

# -------------------- Import / export --------------------

@admin_bp.post("/quizzes/import")
@require_admin
def import_quiz():
    """
    Validate a quiz JSON document, sent either as the request body or as an
    uploaded `file`. Nothing is saved; the form is filled from the result.
    """
    upload = request.files.get("file")
    if upload is not None:
        try:
            payload = json.load(upload.stream)
        except ValueError as e:
            raise QuizValidationError("Invalid JSON file.") from e
    else:
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({"ok": False, "error": "Quiz JSON required"}), 400

    return jsonify({"ok": True, "quiz": authoring.parse_import(payload)}), 200

@admin_bp.get("/quizzes/<quiz_id>/export")
@require_admin
def export_quiz(quiz_id):
    quiz = current_store().get_quiz(quiz_id)
    body = json.dumps(authoring.export_quiz(quiz), indent=2)
    return Response(
        body,
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="{_export_filename(quiz.title)}"'},
    )

# -------------------- AI question generation --------------------

@admin_bp.post("/generate")
@require_admin
def generate():
    """
    Request body:
    {
        "title": "Ocean Conservation",
        "description": "...",
        "numberOfQuestions": 3,
        "pointsPerQuestion": 10,
        "additionalContext": "",
        "theme": "",
        "mode": "add",               # or "edit"
        "existingQuestions": []
    }

    Response:
    {
        "ok": true,
        "questions": [{"question": "...", "options": [...], "correctAnswer": 0, "context_for_ai": "..."}]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        number_of_questions = int(data.get("numberOfQuestions", 3))
        points_per_question = int(data.get("pointsPerQuestion", 10))
    except (TypeError, ValueError):
        return jsonify({"ok": False, "error": "numberOfQuestions and pointsPerQuestion must be integers"}), 400

    questions = generate_questions(
        current_gateway(),
        title=data.get("title") or "",
        description=data.get("description") or "",
        number_of_questions=number_of_questions,
        points_per_question=points_per_question,
        additional_context=data.get("additionalContext") or "",
        theme=data.get("theme") or "",
        mode=data.get("mode") or "add",
        existing_questions=data.get("existingQuestions") or [],
    )
    logger.info("[admin/generate] %s generated %d questions", request.user["uid"], len(questions))
    return jsonify({"ok": True, "questions": questions}), 200
