# app.py
"""
Main Flask application entrypoint.

- Loads env/config
- Initializes Firebase Admin (token verification + Firestore)
- Enables CORS for /api/*
- Registers blueprints: Learning (quizzes, rewards, profile, guest progress), Admin (authoring, AI generation)
"""

from __future__ import annotations
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS

# ---- Load .env early ----
load_dotenv()

# Backend/ holds config, auth_middleware, routes and services
sys.path.insert(0, str(Path(__file__).resolve().parent / "Backend"))

# ---- Config & blueprints ----
from config import Config
from routes.admin import admin_bp
from services.firebase import init_firebase_admin
from services.learning_service.routes import learning_bp, register_error_handlers

logger = logging.getLogger(__name__)

DEV_SECRET_KEY = "dev-only-change-me"


# ---------------------------------------------------------------------
# App Factory
# ---------------------------------------------------------------------
def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Guest progress rides in the signed session cookie
    if not app.config.get("SECRET_KEY"):
        if not (app.config.get("TESTING") or app.config.get("DEBUG")):
            raise RuntimeError("FLASK_SECRET_KEY is not set. Set it, or FLASK_DEBUG=1 for local development.")
        logger.warning("[app] FLASK_SECRET_KEY not set, using an insecure development key")
        app.config["SECRET_KEY"] = DEV_SECRET_KEY

    # require_auth runs before any Firestore calls, so initialize Admin up front
    if not app.config.get("TESTING"):
        init_firebase_admin()

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    # --- Register blueprints ---
    app.register_blueprint(learning_bp, url_prefix="/api/learning")   # guests allowed on quiz routes
    app.register_blueprint(admin_bp, url_prefix="/api/admin")         # require_admin inside routes/admin.py
    register_error_handlers(app)

    # --- Health (public) ---
    @app.get("/api/health")
    def health():
        return jsonify({"ok": True, "service": "flask", "version": "2.0.0"})

    # --- JSON error handlers ---
    @app.errorhandler(400)
    def handle_400(err):
        return jsonify({"ok": False, "error": str(err)}), 400

    @app.errorhandler(404)
    def handle_404(err):
        return jsonify({"ok": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def handle_500(err):
        logger.exception("[app] unhandled error: %s", err)
        return jsonify({"ok": False, "error": "Internal server error"}), 500

    return app


# ---------------------------------------------------------------------
# Dev Server Launcher
# ---------------------------------------------------------------------
if __name__ == "__main__":
    app = create_app({"DEBUG": True})
    port = int(os.getenv("PORT", "5001"))
    app.run(host="0.0.0.0", port=port, debug=True)
