"""Helpers to build, scan and filter conversation content parts."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from models.processed_file import AttachmentKind, ProcessedFile
from models.session_models import ContentPart, Message, StructuredContent
from services.storage.blob_store import is_storage_url
from utils.media_validation import is_inline_image

ATTACHED_DOCUMENTS_HEADER = "\n\nDocuments attachés :"


def text_part(text: str) -> ContentPart:
    return {"type": "text", "text": text}


def image_part(url: str) -> ContentPart:
    return {"type": "image_url", "image_url": {"url": url}}


def image_urls(content: StructuredContent) -> List[str]:
    """Return every image reference URL in one message's structured content."""
    if not isinstance(content, list):
        return []
    urls = []
    for part in content:
        if not isinstance(part, dict) or part.get("type") != "image_url":
            continue
        url = (part.get("image_url") or {}).get("url")
        if url:
            urls.append(url)
    return urls


def extract_storage_image_urls(messages: Iterable[Message]) -> List[str]:
    """Collect storage-backed image URLs across `messages`, skipping inline images."""
    return [url for message in messages for url in image_urls(message.structured_content) if is_storage_url(url)]


def _is_inline_image_part(part: object) -> bool:
    if not isinstance(part, dict) or part.get("type") != "image_url":
        return False
    return is_inline_image((part.get("image_url") or {}).get("url"))


def filter_for_storage(content: StructuredContent, fallback: str) -> StructuredContent:
    """Drop inline-encoded images so only text and storage references get persisted."""
    if not isinstance(content, list):
        return content
    kept = [part for part in content if not _is_inline_image_part(part)]
    return kept if kept else fallback


def compose_text(user_text: str, attachments: Sequence[ProcessedFile]) -> str:
    """Append every text attachment to the user's text as a named block."""
    text = user_text
    documents = [f for f in attachments if f.kind is AttachmentKind.TEXT]
    if documents:
        text += ATTACHED_DOCUMENTS_HEADER
        for document in documents:
            text += f"\n\n--- {document.name} ---\n{document.content}"
    return text


def build_display_content(
    user_text: str,
    attachments: Sequence[ProcessedFile],
    summaries: Optional[Dict[str, str]] = None,
) -> str:
    """Return the user-facing form of a turn with one compact line per attachment."""
    if not attachments:
        return user_text
    summaries = summaries or {}
    lines = []
    for attachment in attachments:
        if attachment.kind is AttachmentKind.IMAGE:
            line = f"[Image: {attachment.name}]"
            if attachment.was_resized:
                line += " (redimensionnée)"
        else:
            line = f"[Fichier: {summaries.get(attachment.name) or attachment.name}]"
            if attachment.was_truncated:
                line += " (tronqué)"
        lines.append(line)
    return (user_text + "\n\n" + "\n".join(lines)).strip()
