"""
In-memory notes service speaking the same REST contract as the real backend.

Used by the end-to-end tests through FastAPI's TestClient, which is an
httpx.Client and can be handed straight to ApiClient.
"""

import base64
import itertools
import threading
import uuid
from datetime import datetime, timedelta, UTC
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from pydantic import BaseModel, EmailStr

SECRET_KEY = "test-secret"
ALGORITHM = "HS256"
MAX_FILE_SIZE = 5 * 1024 * 1024
ALLOWED_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


def time_now() -> str:
    return datetime.now(UTC).isoformat()


class AuthError(Exception):
    pass


class AuthService:
    """Registers users and issues/validates signed session tokens."""

    def __init__(self):
        self.users: Dict[str, Dict] = {}
        self.revoked = set()
        self.ids = itertools.count(1)
        self.lock = threading.Lock()

    def add_user(self, username: str, email: str, password: str) -> Dict:
        with self.lock:
            if username in self.users:
                raise AuthError("Username already exists")
            user = {"id": next(self.ids), "username": username, "email": email,
                    "password": password, "created_at": time_now()}
            self.users[username] = user
            return user

    def login(self, username: str, password: str) -> str:
        user = self.users.get(username)
        if not user or user["password"] != password:
            raise AuthError("Invalid username or password")
        claims = {"user_id": user["id"], "username": username, "jti": uuid.uuid4().hex,
                  "exp": datetime.now(UTC) + timedelta(hours=24)}
        return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)

    def validate(self, authorization: Optional[str]) -> Dict:
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthError("Missing or invalid token")
        token = authorization[7:]
        if token in self.revoked:
            raise AuthError("Invalid or expired token")
        try:
            return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise AuthError("Invalid or expired token")

    def revoke(self, token: str):
        self.revoked.add(token)


class Storage:
    """Stores notes in memory, keyed by id."""

    def __init__(self):
        self.notes: Dict[int, Dict] = {}
        self.ids = itertools.count(1)
        self.lock = threading.Lock()

    def add_note(self, user: Dict, title: str, content: str, image_url: Optional[str]) -> Dict:
        with self.lock:
            now = time_now()
            note = {"id": next(self.ids), "title": title, "content": content,
                    "image_url": image_url, "user_id": user["user_id"],
                    "username": user["username"], "created_at": now, "updated_at": now}
            self.notes[note["id"]] = note
            return note

    def list_notes(self) -> List[Dict]:
        return sorted(self.notes.values(), key=lambda n: n["id"], reverse=True)

    def get_note(self, note_id: int) -> Optional[Dict]:
        return self.notes.get(note_id)

    def delete_note(self, note_id: int) -> bool:
        with self.lock:
            return self.notes.pop(note_id, None) is not None


class NoteData(BaseModel):
    title: str
    content: str
    image_url: Optional[str] = None


class Registration(BaseModel):
    username: str
    email: EmailStr
    password: str


class Credentials(BaseModel):
    username: str
    password: str


def create_app() -> FastAPI:
    app = FastAPI(title="Notes API (test double)")
    auth = AuthService()
    store = Storage()
    app.state.auth = auth
    app.state.store = store
    app.state.requests = []

    @app.middleware("http")
    async def record_request(request, call_next):
        app.state.requests.append((request.method, request.url.path, dict(request.headers)))
        return await call_next(request)

    @app.exception_handler(HTTPException)
    async def error_body(request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def invalid_input(request, exc):
        return JSONResponse(status_code=400, content={"error": "Invalid input"})

    def current_user(authorization: Optional[str] = Header(None)) -> Dict:
        try:
            return auth.validate(authorization)
        except AuthError as e:
            raise HTTPException(status_code=401, detail=str(e))

    def owned_note(note_id: int, user: Dict) -> Dict:
        note = store.get_note(note_id)
        if not note:
            raise HTTPException(status_code=404, detail="Note not found")
        if note["user_id"] != user["user_id"]:
            raise HTTPException(status_code=403, detail="You can only modify your own notes")
        return note

    @app.post("/auth/register", status_code=201)
    async def register(data: Registration):
        try:
            user = auth.add_user(data.username, data.email, data.password)
        except AuthError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {k: user[k] for k in ("id", "username", "email", "created_at")}

    @app.post("/auth/login")
    async def login(creds: Credentials):
        try:
            return {"token": auth.login(creds.username, creds.password)}
        except AuthError as e:
            raise HTTPException(status_code=401, detail=str(e))

    @app.get("/notes")
    async def list_notes():
        return store.list_notes()

    @app.get("/notes/{note_id}")
    async def get_note(note_id: int):
        note = store.get_note(note_id)
        if not note:
            raise HTTPException(status_code=404, detail="Note not found")
        return note

    @app.post("/notes", status_code=201)
    async def create_note(data: NoteData, user: Dict = Depends(current_user)):
        return store.add_note(user, data.title, data.content, data.image_url)

    @app.patch("/notes/{note_id}")
    async def update_note(note_id: int, data: NoteData, user: Dict = Depends(current_user)):
        note = owned_note(note_id, user)
        with store.lock:
            note.update(title=data.title, content=data.content,
                        image_url=data.image_url or "", updated_at=time_now())
        return note

    @app.delete("/notes/{note_id}", status_code=204)
    async def delete_note(note_id: int, user: Dict = Depends(current_user)):
        owned_note(note_id, user)
        store.delete_note(note_id)
        return Response(status_code=204)

    @app.post("/upload/image")
    async def upload_image(image: UploadFile = File(...), user: Dict = Depends(current_user)):
        content = await image.read()
        if len(content) > MAX_FILE_SIZE:
            raise HTTPException(status_code=400, detail="File size exceeds 5MB limit")
        if image.content_type not in ALLOWED_TYPES:
            raise HTTPException(status_code=400, detail="Invalid file type. Only JPG, PNG, GIF, and WEBP are allowed")
        encoded = base64.b64encode(content).decode()
        return {"url": f"data:{image.content_type};base64,{encoded}"}

    @app.delete("/upload/image", status_code=204)
    async def delete_image(url: str, user: Dict = Depends(current_user)):
        return Response(status_code=204)

    return app
