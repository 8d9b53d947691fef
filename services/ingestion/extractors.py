"""Per-file-kind content extraction.

Each extractor is a blocking function `(data, name) -> str` dispatched on
`FileKind`; `extract_content` runs it in a worker thread under a timeout so a
slow PDF cannot stall the event loop indefinitely.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Callable, Dict, List, Sequence, Tuple

import docx
from PIL import Image
from pypdf import PdfReader

from models.processed_file import FileKind
from utils.constants import FILE_PROCESSING_TIMEOUT, MIN_PDF_TEXT_LENGTH, PDF_PROCESSING_TIMEOUT
from utils.media_validation import to_image_data_url

# Vertical jump (in PDF user-space units) that starts a new line.
LINE_BREAK_THRESHOLD = 5.0

SCANNED_PDF_NOTE = (
    "\n\n[Note: this PDF contains very little extractable text. "
    "It may be a scanned document or consist mostly of images.]"
)


class ExtractionError(RuntimeError):
    """Raised when a single file cannot be read or decoded."""


def join_text_runs(runs: Sequence[Tuple[str, float]], threshold: float = LINE_BREAK_THRESHOLD) -> str:
    """Rebuild lines from positioned text runs.

    PDFs do not encode logical line breaks, so a new line is started whenever
    the vertical position moves by more than `threshold` between runs.
    """
    lines: List[List[str]] = []
    last_y = None
    for text, y in runs:
        chunk = (text or "").replace("\n", " ").strip()
        if not chunk:
            continue
        if last_y is None or abs(y - last_y) > threshold:
            lines.append([])
        lines[-1].append(chunk)
        last_y = y
    return "\n".join(" ".join(words) for words in lines)


def extract_pdf_text(data: bytes, name: str) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        total = len(reader.pages)
        sections = [f"[PDF Document: {name}]"]
        extracted_length = 0
        for number, page in enumerate(reader.pages, start=1):
            runs: List[Tuple[str, float]] = []

            def visitor(text, cm, tm, font_dict, font_size, runs=runs):
                runs.append((text, float(tm[5])))

            page.extract_text(visitor_text=visitor)
            page_text = join_text_runs(runs)
            extracted_length += len(page_text)
            sections.append(f"\n--- Page {number}/{total} ---\n{page_text}")
    except Exception as exc:
        raise ExtractionError(f"Could not read PDF: {exc}") from exc

    full_text = "\n".join(sections)
    if extracted_length < MIN_PDF_TEXT_LENGTH:
        full_text += SCANNED_PDF_NOTE
    return full_text


def extract_word_text(data: bytes, name: str) -> str:
    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as exc:
        raise ExtractionError(f"Could not read Word document: {exc}") from exc

    blocks = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            blocks.extend(cell.text for cell in row.cells)
    return f"[Document: {name}]\n\n" + "\n".join(blocks).strip()


def extract_plain_text(data: bytes, name: str) -> str:
    text = data.decode("utf-8-sig", errors="replace")
    return f"[File: {name}]\n\n{text}"


def extract_image(data: bytes, name: str) -> str:
    """Return an inline data URL after checking the bytes really are an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
            img.verify()
    except Exception as exc:
        raise ExtractionError("Invalid image format") from exc
    mime_type = Image.MIME.get(image_format or "", "image/png")
    return to_image_data_url(data, mime_type)


EXTRACTORS: Dict[FileKind, Callable[[bytes, str], str]] = {
    FileKind.IMAGE: extract_image,
    FileKind.PDF: extract_pdf_text,
    FileKind.WORD: extract_word_text,
    FileKind.TEXT: extract_plain_text,
    FileKind.OTHER: extract_plain_text,
}

TIMEOUTS: Dict[FileKind, float] = {FileKind.PDF: PDF_PROCESSING_TIMEOUT}


async def extract_content(kind: FileKind, data: bytes, name: str, timeout: float | None = None) -> str:
    """Run the extractor for `kind` off the event loop, bounded by a timeout.

    Raises:
        ExtractionError: On decode failure or when the timeout elapses.
    """
    extractor = EXTRACTORS[kind]
    limit = timeout if timeout is not None else TIMEOUTS.get(kind, FILE_PROCESSING_TIMEOUT)
    try:
        return await asyncio.wait_for(asyncio.to_thread(extractor, data, name), timeout=limit)
    except asyncio.TimeoutError as exc:
        logging.warning("Extraction of %s timed out after %.0fs", name, limit)
        raise ExtractionError(f"Timed out while reading {name}") from exc
