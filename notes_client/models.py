from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr

class Note(BaseModel):
    id: int
    title: str
    content: str
    image_url: Optional[str] = None
    user_id: int
    username: str
    created_at: datetime
    updated_at: datetime

class User(BaseModel):
    id: int
    username: str
    email: Optional[EmailStr] = None
    created_at: Optional[datetime] = None

class Registration(BaseModel):
    username: str
    email: EmailStr
    password: str

class Credentials(BaseModel):
    username: str
    password: str

class NoteData(BaseModel):
    title: str
    content: str
    image_url: Optional[str] = None

class TokenResponse(BaseModel):
    token: str

class UploadResponse(BaseModel):
    url: str
