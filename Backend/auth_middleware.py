# auth_middleware.py
from functools import wraps
from flask import request, jsonify, current_app
from firebase_admin import auth as fb_auth


def _decode_bearer(hdr: str) -> dict:
    token = hdr.split(" ", 1)[1]
    decoded = fb_auth.verify_id_token(token)
    return {
        "uid": decoded["uid"],
        "email": decoded.get("email"),
        "name": decoded.get("name"),
        "admin": bool(decoded.get("admin", False)),
    }


def require_auth(fn):
    """
    Verify Firebase ID token from 'Authorization: Bearer <token>'.
    Sets request.user = {"uid": ..., "email": ..., "name": ..., "admin": ...}
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        hdr = request.headers.get("Authorization", "")
        if not hdr.startswith("Bearer "):
            return jsonify({"error": "Missing Firebase ID token"}), 401
        try:
            request.user = _decode_bearer(hdr)
        except Exception as e:
            return jsonify({"error": f"Invalid or expired token: {e}"}), 401
        return fn(*args, **kwargs)
    return wrapper


def optional_auth(fn):
    """
    Like require_auth, but a request without a token is served as a guest
    (request.user = None). A token that is present but invalid is still a 401.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        hdr = request.headers.get("Authorization", "")
        if not hdr:
            request.user = None
            return fn(*args, **kwargs)
        if not hdr.startswith("Bearer "):
            return jsonify({"error": "Malformed Authorization header"}), 401
        try:
            request.user = _decode_bearer(hdr)
        except Exception as e:
            return jsonify({"error": f"Invalid or expired token: {e}"}), 401
        return fn(*args, **kwargs)
    return wrapper


def require_admin(fn):
    """
    require_auth plus an admin check: the token carries an `admin` custom
    claim, or the uid is listed in ADMIN_UIDS. With ADMIN_UIDS empty any
    signed-in user may author quizzes.
    """
    @wraps(fn)
    @require_auth
    def wrapper(*args, **kwargs):
        admins = current_app.config.get("ADMIN_UIDS") or []
        user = request.user
        if admins and not user.get("admin") and user["uid"] not in admins:
            return jsonify({"error": "Admin access required"}), 403
        return fn(*args, **kwargs)
    return wrapper
