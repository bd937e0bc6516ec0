import pytest

from services import firebase


def test_missing_secret_key_refuses_to_start():
    from app import create_app

    with pytest.raises(RuntimeError, match="FLASK_SECRET_KEY"):
        create_app({"SECRET_KEY": None, "TESTING": False, "DEBUG": False})


def test_testing_falls_back_to_dev_key(db):
    from app import DEV_SECRET_KEY, create_app

    app = create_app({"SECRET_KEY": None, "TESTING": True, "FIRESTORE_CLIENT": db})
    assert app.config["SECRET_KEY"] == DEV_SECRET_KEY


def test_invalid_service_account_blob(monkeypatch):
    monkeypatch.setenv("FIREBASE_SERVICE_ACCOUNT_JSON", "{not json")
    with pytest.raises(RuntimeError, match="FIREBASE_SERVICE_ACCOUNT_JSON"):
        firebase._resolve_cred()
