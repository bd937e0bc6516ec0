# services/learning_service/context.py
"""Per-request wiring: Firestore-backed store, AI gateway and guest session cache."""

from flask import current_app, request, session

from services.firebase import get_db

from .ai_gateway import AIGateway
from .guest_progress import GUEST_PROGRESS_KEY, GuestProgressCache
from .quiz_flow import FirestoreAttempts, SessionAttempts
from .store import ProgressStore


def current_store() -> ProgressStore:
    # Tests inject an in-memory client through FIRESTORE_CLIENT
    db = current_app.config.get("FIRESTORE_CLIENT") or get_db()
    return ProgressStore(db)


def current_gateway() -> AIGateway:
    return AIGateway.from_config(current_app.config)


def guest_cache() -> GuestProgressCache:
    return GuestProgressCache(session, current_app.config.get("GUEST_PROGRESS_KEY") or GUEST_PROGRESS_KEY)


def current_uid():
    """uid of the signed-in caller, None for guests."""
    user = getattr(request, "user", None)
    return user["uid"] if user else None


def display_name() -> str:
    user = getattr(request, "user", None) or {}
    return user.get("name") or user.get("email") or ""


def attempts_for(store: ProgressStore, uid):
    return FirestoreAttempts(store, uid) if uid else SessionAttempts(session)
