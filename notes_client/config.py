import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_SESSION_DB = "session.db"
DEFAULT_TIMEOUT = 30.0
DEFAULT_LOGIN_PATH = "/login"


def get_api_url() -> str:
    return os.getenv("NOTES_API_URL", DEFAULT_API_URL).rstrip("/")


def get_session_db_path() -> Optional[str]:
    """Path of the session database, or None when durable storage is disabled."""
    path = os.getenv("NOTES_SESSION_DB", DEFAULT_SESSION_DB)
    return path or None


def get_request_timeout() -> float:
    raw = os.getenv("NOTES_REQUEST_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"NOTES_REQUEST_TIMEOUT must be a number, got {raw!r}")


def get_login_path() -> str:
    return os.getenv("NOTES_LOGIN_PATH", DEFAULT_LOGIN_PATH)
