"""Local-disk object storage for attachment images.

Blobs are written under `BLOB_DIR` with generated names and addressed by
public URLs of the form `<base>/storage/blobs/<name>`. The path segment is what
marks a reference as storage-backed; inline `data:image/` URLs are never
written here.
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import aiofiles
import aiofiles.os

from utils.constants import STORAGE_PATH_SEGMENT

_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9]{1,5}$")

EXTENSIONS_BY_MIME = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/bmp": "bmp",
}


class BlobStoreError(RuntimeError):
    """Raised when a blob cannot be written, read or deleted."""


def is_storage_url(value: object) -> bool:
    return isinstance(value, str) and STORAGE_PATH_SEGMENT in value


def blob_name_from_url(url: str) -> str:
    """Return the stored file name addressed by a storage-backed URL."""
    path = urlparse(url).path
    _, _, name = path.partition(STORAGE_PATH_SEGMENT)
    if not name:
        raise BlobStoreError(f"Not a storage URL: {url}")
    return name


class LocalBlobStore:
    """Put, fetch and delete blobs in a flat directory."""

    def __init__(self, root_dir: Path | str, public_base_url: str) -> None:
        self.root_dir = Path(root_dir).expanduser()
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def url_for(self, name: str) -> str:
        return f"{self.public_base_url}{STORAGE_PATH_SEGMENT}{name}"

    def path_for(self, name: str) -> Path:
        """Resolve a blob name to its file, rejecting anything that is not a plain name."""
        if not _SAFE_NAME_RE.match(name or ""):
            raise BlobStoreError(f"Invalid blob name: {name!r}")
        return self.root_dir / name

    async def put(self, data: bytes, suggested_name: str = "", content_type: Optional[str] = None) -> str:
        """Store `data` and return its public URL.

        The stored name is always generated; `suggested_name` only contributes
        its extension when the content type is unknown.
        """
        if not data:
            raise BlobStoreError("Cannot store an empty blob.")
        ext = EXTENSIONS_BY_MIME.get((content_type or "").lower())
        if ext is None:
            suffix = Path(suggested_name or "").suffix.lower().lstrip(".")
            ext = suffix if suffix.isalnum() and len(suffix) <= 5 else "bin"
        name = f"{uuid.uuid4()}.{ext}"
        path = self.path_for(name)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            raise BlobStoreError(f"Failed to write blob {name}") from exc
        logging.info("Stored blob %s (%d bytes)", name, len(data))
        return self.url_for(name)

    async def read(self, name: str) -> bytes:
        path = self.path_for(name)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise BlobStoreError(f"Failed to read blob {name}") from exc

    async def delete(self, url: str) -> bool:
        """Delete the blob behind `url`. Returns False when it did not exist."""
        path = self.path_for(blob_name_from_url(url))
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise BlobStoreError(f"Failed to delete blob {path.name}") from exc
        return True
