from .domain import APIError, AuthExpired, NetworkError, NotesClientError, ValidationError
from .main import NotesAPI, build_api
from .models import Note, User
from .services import ApiClient, MemorySessionStore, NoteListing, ResponseInterceptor, SessionStore, SqliteSessionStore

__all__ = [
    "APIError",
    "ApiClient",
    "AuthExpired",
    "MemorySessionStore",
    "NetworkError",
    "Note",
    "NoteListing",
    "NotesAPI",
    "NotesClientError",
    "ResponseInterceptor",
    "SessionStore",
    "SqliteSessionStore",
    "User",
    "ValidationError",
    "build_api",
]
