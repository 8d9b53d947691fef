"""Helpers to classify uploads and move image bytes in and out of data URLs."""

import base64
import re
from pathlib import PurePath
from typing import Optional, Tuple

from models.processed_file import FileKind
from utils.constants import INLINE_IMAGE_PREFIX

WORD_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME_TYPES = {"text/plain", "text/markdown", "text/x-markdown"}
TEXT_EXTENSIONS = {".txt", ".md"}

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<b64>.*)$", re.DOTALL)


def _normalize_mime(content_type: Optional[str]) -> str:
    return (content_type or "").lower().split(";", 1)[0].strip()


def detect_file_kind(filename: str, content_type: Optional[str]) -> FileKind:
    """Classify an upload by MIME type, falling back to its extension."""
    mime = _normalize_mime(content_type)
    extension = PurePath(filename or "").suffix.lower()
    if mime.startswith("image/"):
        return FileKind.IMAGE
    if mime == "application/pdf" or extension == ".pdf":
        return FileKind.PDF
    if mime == WORD_MIME_TYPE or extension == ".docx":
        return FileKind.WORD
    if mime in TEXT_MIME_TYPES or extension in TEXT_EXTENSIONS:
        return FileKind.TEXT
    return FileKind.OTHER


def to_image_data_url(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode raw image bytes as an inline data URL."""
    b64_str = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{b64_str}"


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """Return `(mime_type, raw_bytes)` for a base64 data URL.

    Raises:
        ValueError: If the string is not a base64 data URL.
    """
    match = _DATA_URL_RE.match(data_url or "")
    if not match:
        raise ValueError("Not a base64 data URL.")
    try:
        raw = base64.b64decode(match.group("b64"), validate=True)
    except Exception as exc:
        raise ValueError("Invalid base64 payload in data URL") from exc
    return match.group("mime"), raw


def is_inline_image(value: object) -> bool:
    return isinstance(value, str) and value.startswith(INLINE_IMAGE_PREFIX)


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"
