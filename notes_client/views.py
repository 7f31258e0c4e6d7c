"""
Presentation helpers for note listings.

Pure functions of note data and the authenticated user's id; nothing here
touches the network.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from . import config
from .models import Note

EXCERPT_LENGTH = 150


def format_date(value: Union[datetime, str]) -> str:
    """Format a timestamp as e.g. 'Jan 2, 2024'."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def image_src(image_url: Optional[str], api_url: Optional[str] = None) -> Optional[str]:
    """Resolve a note's image reference to something an <img> tag can load."""
    if not image_url:
        return None
    if image_url.startswith(("data:", "http://", "https://")):
        return image_url
    base = (api_url or config.get_api_url()).rstrip("/")
    return f"{base}/{image_url.lstrip('/')}"


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


def note_card(note: Note, current_user_id: Optional[int] = None,
              api_url: Optional[str] = None) -> Dict[str, Any]:
    is_owner = current_user_id is not None and current_user_id == note.user_id
    return {
        "id": note.id,
        "title": note.title,
        "excerpt": excerpt(note.content),
        "image": image_src(note.image_url, api_url),
        "author": note.username,
        "author_initial": note.username[:1].upper(),
        "date": format_date(note.created_at),
        "link": f"/notes/{note.id}",
        "can_edit": is_owner,
        "can_delete": is_owner,
    }


def navbar_links(authenticated: bool) -> List[Tuple[str, str]]:
    if authenticated:
        return [("Notes", "/notes"), ("Create Note", "/notes/create"), ("Logout", "/logout")]
    return [("Notes", "/notes"), ("Login", "/login"), ("Register", "/register")]
