import logging
from typing import Callable, List, Optional

import pydantic

from . import config
from .domain import ValidationError
from .models import Credentials, Note, NoteData, Registration, TokenResponse, UploadResponse, User
from .services import ApiClient, NoteListing, ResponseInterceptor, SessionStore, SqliteSessionStore
from .utils import ImageSource, check_image, guess_content_type, read_image, token_claims

logger = logging.getLogger(__name__)


class NotesAPI:
    """
    Named operations of the notes service.

    Every operation maps to exactly one call through the ApiClient. Notes
    returned by list/create/update/delete are mirrored in `listing`, a local
    cache a UI can render from without refetching.

    Attributes:
        client (ApiClient): Request issuer carrying the session token
        store (SessionStore): Where the session token lives
        listing (NoteListing): Last known notes listing
    """

    def __init__(self, client: ApiClient):
        self.client = client
        self.store = client.store
        self.listing = NoteListing()

    # -------------------------------
    # Session
    # -------------------------------

    def register(self, username: str, email: str, password: str) -> User:
        """
        Create a new account. Does not log in.

        Raises:
            ValidationError: If a field is blank or the email is malformed
            APIError: If the server refuses, e.g. "Username already exists"
        """
        _require(username=username, email=email, password=password)
        try:
            data = Registration(username=username.strip(), email=email.strip(), password=password)
        except pydantic.ValidationError as e:
            raise ValidationError(_first_error(e))
        payload = self.client.request("/auth/register", "POST", json=data.model_dump(),
                                      default_error="Registration failed")
        return User.model_validate(payload)

    def login(self, username: str, password: str) -> str:
        """
        Exchange credentials for a session token and keep it in the store.

        Returns:
            str: The token exactly as the server issued it
        """
        _require(username=username, password=password)
        data = Credentials(username=username, password=password)
        payload = self.client.request("/auth/login", "POST", json=data.model_dump(),
                                      default_error="Login failed")
        token = TokenResponse.model_validate(payload).token
        self.store.set(token)
        logger.info("Logged in as %s", username)
        return token

    def logout(self) -> None:
        self.store.clear()
        self.listing.replace([])
        logger.info("Logged out")

    def is_authenticated(self) -> bool:
        return bool(self.store.get())

    def current_user(self) -> Optional[User]:
        """User described by the session token's claims, or None when logged out."""
        claims = token_claims(self.store.get())
        if not claims or "user_id" not in claims:
            return None
        try:
            return User(id=claims["user_id"], username=claims.get("username", ""))
        except pydantic.ValidationError:
            return None

    # -------------------------------
    # Notes
    # -------------------------------

    def list_notes(self) -> List[Note]:
        payload = self.client.request("/notes", default_error="Failed to fetch notes")
        notes = [Note.model_validate(item) for item in payload or []]
        self.listing.replace(notes)
        return notes

    def get_note(self, note_id: int) -> Note:
        payload = self.client.request(f"/notes/{note_id}", default_error="Note not found")
        return Note.model_validate(payload)

    def create_note(self, title: str, content: str, image_url: Optional[str] = None) -> Note:
        data = _note_data(title, content, image_url)
        payload = self.client.request("/notes", "POST", json=data,
                                      default_error="Failed to create note")
        note = Note.model_validate(payload)
        self.listing.add(note)
        return note

    def update_note(self, note_id: int, title: str, content: str,
                    image_url: Optional[str] = None) -> Note:
        """
        Replace a note's title, content and cover image.

        The server overwrites every field, so passing no image_url removes
        an existing cover image. Pass the current URL to keep it.
        """
        data = _note_data(title, content, image_url)
        payload = self.client.request(f"/notes/{note_id}", "PATCH", json=data,
                                      default_error="Failed to update note")
        note = Note.model_validate(payload)
        self.listing.update(note)
        return note

    def delete_note(self, note_id: int) -> None:
        self.client.request(f"/notes/{note_id}", "DELETE", default_error="Failed to delete note")
        self.listing.remove(note_id)

    # -------------------------------
    # Images
    # -------------------------------

    def upload_image(self, source: ImageSource, filename: Optional[str] = None,
                     content_type: Optional[str] = None) -> str:
        """
        Upload a cover image and return the URL the server hosts it at.

        The file is checked locally first: only JPEG, PNG, GIF and WEBP up to
        5MB are sent. The content type is guessed from the filename when not
        given.

        Args:
            source: Raw bytes, a filesystem path, or a binary file object
            filename (str): Name sent with the multipart part
            content_type (str): MIME type of the image

        Raises:
            ValidationError: If the type or size is not accepted
        """
        data, name = read_image(source, filename)
        content_type = content_type or guess_content_type(name)
        check_image(data, content_type)
        payload = self.client.request("/upload/image", "POST",
                                      files={"image": (name, data, content_type)},
                                      default_error="Failed to upload image")
        return UploadResponse.model_validate(payload).url

    def delete_image(self, url: str) -> None:
        _require(url=url)
        self.client.request("/upload/image", "DELETE", params={"url": url},
                            default_error="Failed to delete image")


REQUIRED_MESSAGES = {
    "username": "Please enter a username",
    "email": "Please enter an email address",
    "password": "Please enter a password",
    "title": "Please enter a title",
    "content": "Please enter some content",
    "url": "Please provide an image URL",
}


def _require(**fields):
    for name, value in fields.items():
        if value is None or not str(value).strip():
            raise ValidationError(REQUIRED_MESSAGES.get(name, f"Please enter {name}"))


def _note_data(title: str, content: str, image_url: Optional[str]) -> dict:
    _require(title=title, content=content)
    data = NoteData(title=title, content=content, image_url=image_url or None)
    return data.model_dump(exclude_none=True)


def _first_error(error: pydantic.ValidationError) -> str:
    details = error.errors()
    if not details:
        return "Invalid input"
    field = ".".join(str(part) for part in details[0].get("loc", ()))
    return f"{field}: {details[0].get('msg', 'invalid value')}" if field else details[0].get("msg", "Invalid input")


def build_api(redirect: Optional[Callable[[str], None]] = None,
              store: Optional[SessionStore] = None) -> NotesAPI:
    """Wire a NotesAPI from environment configuration."""
    store = store or SqliteSessionStore(config.get_session_db_path())
    interceptor = ResponseInterceptor(store, redirect=redirect)
    client = ApiClient(store, interceptor)
    return NotesAPI(client)
