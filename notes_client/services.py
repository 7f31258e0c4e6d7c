import contextlib
import logging
import sqlite3
import threading
from typing import Any, Callable, Dict, List, Optional

import httpx

from . import config
from .domain import APIError, AuthExpired, NetworkError
from .models import Note

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


class SessionStore:
    """Holds the session token. Subclasses decide where it lives."""

    def get(self) -> Optional[str]:
        raise NotImplementedError

    def set(self, token: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    """Keeps the token in process memory only."""

    def __init__(self, token: Optional[str] = None):
        self.data: Dict[str, str] = {}
        if token:
            self.data[TOKEN_KEY] = token

    def get(self) -> Optional[str]:
        return self.data.get(TOKEN_KEY) or None

    def set(self, token: str) -> None:
        if not token:
            self.clear()
            return
        self.data[TOKEN_KEY] = token

    def clear(self) -> None:
        self.data.pop(TOKEN_KEY, None)


class SqliteSessionStore(SessionStore):
    """
    Persists the session token in a small SQLite key/value table.

    The token survives process restarts, so a client built on the same
    database file picks up the previous session. When no durable storage is
    available (db_path is None, or the file cannot be opened) the store acts
    as permanently empty: get() returns None and writes are dropped with a
    warning.

    Attributes:
        db_path (Optional[str]): Path to the SQLite database file
        lock (threading.Lock): Serializes writes from concurrent requests
        available (bool): Whether the database could be initialized
    """

    def __init__(self, db_path: Optional[str] = config.DEFAULT_SESSION_DB):
        self.db_path = db_path
        self.lock = threading.Lock()
        self.available = False
        if not db_path:
            logger.warning("No session database configured, sessions will not persist")
            return
        try:
            self._init_database()
            self.available = True
        except sqlite3.Error as e:
            logger.warning("Session storage unavailable at %s: %s", db_path, e)

    @contextlib.contextmanager
    def _get_db_connection(self):
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        try:
            yield conn
        finally:
            conn.close()

    def _init_database(self):
        with self._get_db_connection() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS storage (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """)
            conn.commit()

    def get(self) -> Optional[str]:
        if not self.available:
            return None
        try:
            with self._get_db_connection() as conn:
                row = conn.execute("SELECT value FROM storage WHERE key=?", (TOKEN_KEY,)).fetchone()
        except sqlite3.Error as e:
            logger.warning("Could not read session token: %s", e)
            return None
        return row[0] if row and row[0] else None

    def set(self, token: str) -> None:
        if not token:
            self.clear()
            return
        self._write("INSERT OR REPLACE INTO storage (key, value) VALUES (?, ?)", (TOKEN_KEY, token))

    def clear(self) -> None:
        self._write("DELETE FROM storage WHERE key=?", (TOKEN_KEY,))

    def _write(self, sql: str, params: tuple) -> None:
        if not self.available:
            logger.warning("Session storage unavailable, change not persisted")
            return
        with self.lock:
            try:
                with self._get_db_connection() as conn:
                    try:
                        conn.execute(sql, params)
                        conn.commit()
                    except sqlite3.Error:
                        conn.rollback()
                        raise
            except sqlite3.Error as e:
                logger.warning("Could not write session token: %s", e)


class ResponseInterceptor:
    """
    Invalidates the local session when the server answers 401.

    The transition only fires while the store still holds the token the
    failing request carried, so repeated or concurrent 401s clear the store
    and redirect once, and a 401 from a request sent before a fresh login
    does not log the new session out.
    """

    def __init__(self, store: SessionStore, redirect: Optional[Callable[[str], None]] = None,
                 login_path: Optional[str] = None):
        self.store = store
        self.redirect = redirect
        self.login_path = login_path or config.get_login_path()
        self.lock = threading.Lock()

    def handle(self, response: httpx.Response, sent_token: Optional[str]) -> bool:
        """Inspect a response; return True if it ended the session."""
        if response.status_code != 401:
            return False
        return self.invalidate(sent_token)

    def invalidate(self, sent_token: Optional[str]) -> bool:
        with self.lock:
            current = self.store.get()
            if not current or current != sent_token:
                return False
            self.store.clear()
        logger.info("Session rejected by server, redirecting to %s", self.login_path)
        if self.redirect is not None:
            self.redirect(self.login_path)
        return True


class ApiClient:
    """Issues every request to the notes API and maps failures to client errors."""

    def __init__(self, store: SessionStore, interceptor: Optional[ResponseInterceptor] = None,
                 base_url: Optional[str] = None, http: Optional[httpx.Client] = None,
                 timeout: Optional[float] = None):
        self.store = store
        self.interceptor = interceptor or ResponseInterceptor(store)
        if http is None:
            http = httpx.Client(
                base_url=base_url or config.get_api_url(),
                timeout=timeout or config.get_request_timeout(),
            )
        self.http = http

    def _headers(self, token: Optional[str], multipart: bool) -> Dict[str, str]:
        headers = {}
        # multipart bodies need the boundary httpx generates
        if not multipart:
            headers["Content-Type"] = "application/json"
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(self, path: str, method: str = "GET", json: Optional[Any] = None,
                files: Optional[Dict[str, Any]] = None, params: Optional[Dict[str, Any]] = None,
                default_error: str = "Request failed") -> Any:
        token = self.store.get()
        headers = self._headers(token, files is not None)
        try:
            response = self.http.request(method, path, json=json, files=files,
                                         params=params, headers=headers)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError() from e

        logger.debug("%s %s -> %s", method, path, response.status_code)
        self.interceptor.handle(response, token)

        if not response.is_success:
            payload = _json_or_none(response)
            message = default_error
            if isinstance(payload, dict) and payload.get("error"):
                message = str(payload["error"])
            if response.status_code == 401:
                raise AuthExpired(message, response.status_code, payload)
            raise APIError(message, response.status_code, payload)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise APIError("Invalid JSON response", response.status_code, response.text)

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def _json_or_none(response: httpx.Response) -> Optional[Any]:
    try:
        return response.json()
    except ValueError:
        return None


class NoteListing:
    """Local copy of the notes listing, newest first."""

    def __init__(self):
        self.notes: List[Note] = []
        self.lock = threading.Lock()

    def replace(self, notes: List[Note]) -> None:
        with self.lock:
            self.notes = list(notes)

    def add(self, note: Note) -> None:
        with self.lock:
            self.notes = [note] + [n for n in self.notes if n.id != note.id]

    def update(self, note: Note) -> None:
        with self.lock:
            self.notes = [note if n.id == note.id else n for n in self.notes]

    def remove(self, note_id: int) -> bool:
        with self.lock:
            kept = [n for n in self.notes if n.id != note_id]
            removed = len(kept) != len(self.notes)
            self.notes = kept
            return removed

    def get(self, note_id: int) -> Optional[Note]:
        return next((n for n in self.notes if n.id == note_id), None)

    def all(self) -> List[Note]:
        return list(self.notes)
