import mimetypes
import os
from typing import Any, Dict, Optional, Tuple, Union, BinaryIO

from jose import JWTError, jwt

from .domain import ALLOWED_IMAGE_TYPES, MAX_IMAGE_SIZE, ValidationError

ImageSource = Union[bytes, str, os.PathLike, BinaryIO]


def token_claims(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the unverified JWT claims of a session token, or None if it is not a JWT."""
    if not token:
        return None
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def read_image(source: ImageSource, filename: Optional[str] = None) -> Tuple[bytes, str]:
    """Load an upload source into memory, returning its bytes and a filename."""
    if isinstance(source, (bytes, bytearray)):
        return bytes(source), filename or "image"
    if isinstance(source, (str, os.PathLike)):
        path = os.fspath(source)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise ValidationError(f"Cannot read image file: {e}")
        return data, filename or os.path.basename(path)
    data = source.read()
    name = filename or os.path.basename(getattr(source, "name", "") or "image")
    return data, name


def guess_content_type(filename: str) -> Optional[str]:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type


def check_image(data: bytes, content_type: Optional[str]) -> None:
    """Reject images the server would refuse: wrong MIME type or larger than 5MB."""
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only JPG, PNG, GIF, and WEBP images are allowed")
    if len(data) > MAX_IMAGE_SIZE:
        raise ValidationError("File size must be less than 5MB")
