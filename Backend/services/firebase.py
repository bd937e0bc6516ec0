# services/firebase.py
import os, json
import logging

import firebase_admin
from firebase_admin import credentials, firestore

from config import Config

logger = logging.getLogger(__name__)

_db = None


def _resolve_cred():
    """FIREBASE_SERVICE_ACCOUNT_JSON (the full JSON blob) wins over a credential file."""
    json_blob = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON")
    if json_blob:
        try:
            info = json.loads(json_blob)
        except ValueError as e:
            raise RuntimeError(f"Invalid FIREBASE_SERVICE_ACCOUNT_JSON: {e}") from e
        return credentials.Certificate(info)

    cred_path = Config._resolve_firebase_cred_path()
    if cred_path:
        return credentials.Certificate(cred_path)
    return None


def init_firebase_admin():
    """Initialize the default Firebase Admin app once per process."""
    if firebase_admin._apps:
        return firebase_admin.get_app()
    cred = _resolve_cred()
    if cred is not None:
        logger.info("Initializing Firebase with service account credentials")
        app = firebase_admin.initialize_app(cred)
    else:
        logger.info("Initializing Firebase with application default credentials")
        app = firebase_admin.initialize_app()
    logger.info("Firebase initialized successfully")
    return app


def get_db():
    global _db
    if _db is not None:
        return _db
    init_firebase_admin()
    _db = firestore.client()
    return _db
