"""Attachment models produced by the file ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FileKind(str, Enum):
	"""Closed set of file kinds the ingestion pipeline dispatches on."""

	IMAGE = "image"
	PDF = "pdf"
	WORD = "word"
	TEXT = "text"
	OTHER = "other"


class AttachmentKind(str, Enum):
	IMAGE = "image"
	TEXT = "text"


class ConfirmationKind(str, Enum):
	TEXT_TRUNCATION = "text_truncation"


@dataclass
class UploadedFile:
	"""Raw bytes of a user-supplied file before ingestion."""

	name: str
	content_type: Optional[str]
	data: bytes

	@property
	def size(self) -> int:
		return len(self.data)


@dataclass
class ProcessedFile:
	"""A normalized attachment ready to be carried by a user turn.

	Attributes:
		kind: `image` or `text`.
		name: Original filename.
		content: Extracted text for text attachments; a storage URL or an
			inline `data:image/...` URL for images.
		was_truncated: The extracted text was cut to the size ceiling.
		was_resized: The image was downscaled before being attached.
		mime_type: MIME type of image content, when known.
	"""

	kind: AttachmentKind
	name: str
	content: str
	was_truncated: bool = False
	was_resized: bool = False
	mime_type: Optional[str] = None


@dataclass
class ValidationResult:
	"""Outcome of validating a staged file.

	A rejected file (`accepted=False`) has no confirmation path; the user must
	pick another file. `extracted_content` is set when text was extracted
	eagerly so that materialization does not extract twice.
	"""

	file_kind: FileKind
	accepted: bool = True
	needs_confirmation: bool = False
	confirmation_kind: Optional[ConfirmationKind] = None
	extracted_content: Optional[str] = None
	error: Optional[str] = None
	size_formatted: Optional[str] = None
