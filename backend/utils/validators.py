import re
import uuid
from dataclasses import dataclass
from typing import Optional

from config import settings
from utils.errors import InvalidInputError

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


@dataclass
class ImageUpload:
    """An uploaded image already read into memory."""
    data: bytes
    content_type: str
    filename: str


def parse_uuid(value) -> str:
    if not isinstance(value, str):
        raise InvalidInputError(f"Invalid UUID format: expected string, received {type(value).__name__}")
    if not value.strip():
        raise InvalidInputError("UUID cannot be empty")
    try:
        parsed = uuid.UUID(value)
    except ValueError:
        raise InvalidInputError(f"Invalid UUID format: {value}")
    # stored ids are the lowercase hyphenated form
    return str(parsed)


def validate_image(image: Optional[ImageUpload], max_size: Optional[int] = None) -> Optional[ImageUpload]:
    """Check type, size and extension; no image is fine (it's optional)."""
    if image is None:
        return None
    max_size = max_size or settings.MAX_IMAGE_SIZE_BYTES

    if image.content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidInputError("Invalid file type. Only JPEG, PNG, WebP, and GIF are allowed.")
    if len(image.data) > max_size:
        raise InvalidInputError(f"File size too large. Maximum size is {max_size // (1024 * 1024)}MB.")
    if not _IMAGE_EXT_RE.search(image.filename or ""):
        raise InvalidInputError("Invalid file extension. Only .jpg, .jpeg, .png, .gif, .webp are allowed.")
    return image
