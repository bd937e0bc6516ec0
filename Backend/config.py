# config.py
import os
from pathlib import Path


def _csv(name: str, default: str = "") -> list:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    # Signs the session that carries guest progress; required outside debug and testing
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY")
    DEBUG = os.getenv("FLASK_DEBUG", "").lower() in ("1", "true", "yes")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # CORS for mobile/web dev; lock down origins in production
    CORS_ORIGINS = _csv("CORS_ORIGINS", "*")

    # OpenAI-compatible chat completions gateway used for feedback and generation
    AI_GATEWAY_URL = os.getenv("AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1/chat/completions")
    AI_API_KEY = os.getenv("AI_API_KEY") or os.getenv("LOVABLE_API_KEY")
    AI_MODEL = os.getenv("AI_MODEL", "google/gemini-2.5-flash")
    AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "15"))

    # Empty list means every signed-in user may author quizzes
    ADMIN_UIDS = _csv("ADMIN_UIDS")

    GUEST_PROGRESS_KEY = os.getenv("GUEST_PROGRESS_KEY", "eco_rewards_guest_progress")

    # Tests inject an in-memory client here; None means services.firebase.get_db()
    FIRESTORE_CLIENT = None

    @staticmethod
    def _resolve_firebase_cred_path() -> str | None:
        """
        Finds a service account file:
          1) GOOGLE_APPLICATION_CREDENTIALS (absolute or relative file path)
             - If relative or not found, try <repo>/firebase/credentials/<basename>
          2) First *.json found under <repo>/firebase/credentials
        Returns a string path if a file exists, or None when application
        default credentials should be used. A FIREBASE_SERVICE_ACCOUNT_JSON
        blob is handled by services.firebase before this is consulted.
        """
        repo_root = Path(__file__).resolve().parent
        p = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
        if p:
            p = p.strip().strip('"').strip("'")
            p = os.path.expanduser(os.path.expandvars(p))
            path = Path(p)
            if path.exists():
                return str(path)

            fallback = repo_root / "firebase" / "credentials" / path.name
            if fallback.exists():
                return str(fallback)

            rel_try = (repo_root / p).resolve()
            if rel_try.exists():
                return str(rel_try)

            raise FileNotFoundError(
                "Firebase credential file not found. Tried:\n"
                f" - {path}\n - {fallback}\n - {rel_try}\n"
                "Set FIREBASE_SERVICE_ACCOUNT_JSON or GOOGLE_APPLICATION_CREDENTIALS."
            )

        cred_dir = repo_root / "firebase" / "credentials"
        if cred_dir.exists():
            matches = sorted(cred_dir.glob("*.json"))
            if matches:
                return str(matches[0])

        # On Cloud Run, default credentials (attached service account) will work
        return None
