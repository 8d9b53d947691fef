"""Validation and normalization of user attachments.

`validate` decides whether a staged file can be used as-is, needs the user to
confirm truncation, or must be rejected. `materialize` turns an accepted file
into a `ProcessedFile`. Extraction failures never abort a send: they become a
placeholder text attachment describing the error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from models.processed_file import (
    AttachmentKind,
    ConfirmationKind,
    FileKind,
    ProcessedFile,
    UploadedFile,
    ValidationResult,
)
from services.ingestion.extractors import ExtractionError, extract_content
from services.ingestion.image_resizer import ImageResizer
from utils.constants import MAX_FILE_SIZE, MAX_TEXT_CONTENT_SIZE, TRUNCATION_MARKER
from utils.media_validation import decode_data_url, detect_file_kind, format_file_size, to_image_data_url

EAGER_TEXT_KINDS = (FileKind.PDF, FileKind.WORD, FileKind.TEXT)


def text_byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def truncate_text(
    text: str,
    max_bytes: int = MAX_TEXT_CONTENT_SIZE,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """Cut `text` so that, marker included, it fits in `max_bytes` UTF-8 bytes.

    The cut backs up to the previous newline when that newline lies within the
    last 20% of the kept text.
    """
    if text_byte_length(text) <= max_bytes:
        return text
    budget = max(0, max_bytes - text_byte_length(marker))
    kept = text.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
    newline = kept.rfind("\n")
    if newline > 0 and newline >= len(kept) * 0.8:
        kept = kept[:newline]
    return kept + marker


def error_placeholder(name: str, error: Exception) -> ProcessedFile:
    return ProcessedFile(
        kind=AttachmentKind.TEXT,
        name=name,
        content=f"[Error reading {name}: {error}]",
    )


class FilePipeline:
    """Validate and materialize one uploaded file at a time."""

    def __init__(
        self,
        resizer: Optional[ImageResizer] = None,
        max_file_size: int = MAX_FILE_SIZE,
        max_text_size: int = MAX_TEXT_CONTENT_SIZE,
    ) -> None:
        self.resizer = resizer or ImageResizer()
        self.max_file_size = max_file_size
        self.max_text_size = max_text_size

    async def validate(self, upload: UploadedFile) -> ValidationResult:
        """Check size limits, extracting text eagerly for text-bearing kinds."""
        kind = detect_file_kind(upload.name, upload.content_type)
        size_formatted = format_file_size(upload.size)

        if upload.size > self.max_file_size:
            return ValidationResult(
                file_kind=kind,
                accepted=False,
                error=f"File exceeds the {format_file_size(self.max_file_size)} limit ({size_formatted})",
                size_formatted=size_formatted,
            )

        if kind not in EAGER_TEXT_KINDS:
            # Images are accepted as-is; other kinds are read at send time.
            return ValidationResult(file_kind=kind, size_formatted=size_formatted)

        try:
            extracted = await extract_content(kind, upload.data, upload.name)
        except ExtractionError as exc:
            logging.warning("Extraction failed for %s: %s", upload.name, exc)
            extracted = error_placeholder(upload.name, exc).content

        text_size = text_byte_length(extracted)
        if text_size > self.max_text_size:
            return ValidationResult(
                file_kind=kind,
                needs_confirmation=True,
                confirmation_kind=ConfirmationKind.TEXT_TRUNCATION,
                extracted_content=extracted,
                size_formatted=f"{text_size / 1024:.0f} KB",
            )
        return ValidationResult(file_kind=kind, extracted_content=extracted, size_formatted=size_formatted)

    async def materialize(self, upload: UploadedFile, validation: Optional[ValidationResult] = None) -> ProcessedFile:
        """Produce the attachment record, truncating or resizing where needed."""
        kind = validation.file_kind if validation else detect_file_kind(upload.name, upload.content_type)
        try:
            if kind is FileKind.IMAGE:
                return await self._materialize_image(upload)
            content = validation.extracted_content if validation else None
            if content is None:
                content = await extract_content(kind, upload.data, upload.name)
        except (ExtractionError, ValueError) as exc:
            logging.warning("Could not process attachment %s: %s", upload.name, exc)
            return error_placeholder(upload.name, exc)

        truncated = text_byte_length(content) > self.max_text_size
        if truncated:
            content = truncate_text(content, self.max_text_size)
        return ProcessedFile(
            kind=AttachmentKind.TEXT,
            name=upload.name,
            content=content,
            was_truncated=truncated,
        )

    async def _materialize_image(self, upload: UploadedFile) -> ProcessedFile:
        data_url = await extract_content(FileKind.IMAGE, upload.data, upload.name)
        mime_type, raw = decode_data_url(data_url)
        resized = await asyncio.to_thread(self.resizer.needs_resize, raw)
        if resized:
            raw = await asyncio.to_thread(self.resizer.resize, raw)
            mime_type = "image/jpeg"
            data_url = to_image_data_url(raw, mime_type)
        return ProcessedFile(
            kind=AttachmentKind.IMAGE,
            name=upload.name,
            content=data_url,
            was_resized=resized,
            mime_type=mime_type,
        )

    async def resize_image(self, processed: ProcessedFile) -> ProcessedFile:
        """Explicitly downsize an inline image attachment and re-encode it as JPEG."""
        if processed.kind is not AttachmentKind.IMAGE:
            raise ValueError("Only image attachments can be resized.")
        _, raw = decode_data_url(processed.content)
        jpeg = await asyncio.to_thread(self.resizer.resize, raw)
        return ProcessedFile(
            kind=AttachmentKind.IMAGE,
            name=processed.name,
            content=to_image_data_url(jpeg, "image/jpeg"),
            was_truncated=processed.was_truncated,
            was_resized=True,
            mime_type="image/jpeg",
        )
