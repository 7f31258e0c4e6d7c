from typing import Any, Optional

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
MAX_IMAGE_SIZE = 5 * 1024 * 1024


class NotesClientError(Exception):
    """Base class for every error raised by the notes client."""
    pass


class ValidationError(NotesClientError):
    """Input rejected on the client before any request was sent."""
    pass


class NetworkError(NotesClientError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str = "Network error, please try again"):
        super().__init__(message)
        self.message = message


class APIError(NotesClientError):
    """The server answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int, payload: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        return f"{self.message} (HTTP {self.status_code})"


class AuthExpired(APIError):
    """401 from the server; the local session has already been invalidated."""
    pass
