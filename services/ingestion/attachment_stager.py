"""Single-slot staging area for the attachment of the next user turn."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from models.processed_file import ProcessedFile, UploadedFile, ValidationResult
from services.ingestion.file_pipeline import FilePipeline


@dataclass
class PendingFile:
	upload: UploadedFile
	validation: ValidationResult


class AttachmentStager:
	"""Hold at most one attachment per send.

	Staging a new file always replaces the previous one, whether it was still
	waiting for confirmation or already processed.
	"""

	def __init__(self, pipeline: FilePipeline) -> None:
		self.pipeline = pipeline
		self.pending: Optional[PendingFile] = None
		self.ready: Optional[ProcessedFile] = None

	def clear(self) -> None:
		self.pending = None
		self.ready = None

	async def stage(self, uploads: Sequence[UploadedFile]) -> ValidationResult:
		"""Validate the last of `uploads` and stage it in place of any earlier file."""
		if not uploads:
			raise ValueError("At least one file is required.")
		self.clear()
		upload = uploads[-1]
		validation = await self.pipeline.validate(upload)
		if not validation.accepted:
			return validation
		if validation.needs_confirmation:
			self.pending = PendingFile(upload=upload, validation=validation)
			return validation
		self.ready = await self.pipeline.materialize(upload, validation)
		return validation

	async def confirm(self, accept: bool) -> Optional[ProcessedFile]:
		"""Resolve a pending confirmation; declining drops the file."""
		pending = self.pending
		if pending is None:
			raise LookupError("No file is waiting for confirmation.")
		self.pending = None
		if not accept:
			return None
		self.ready = await self.pipeline.materialize(pending.upload, pending.validation)
		return self.ready

	def take(self) -> List[ProcessedFile]:
		"""Hand the staged attachment to a send and empty the slot."""
		ready = [self.ready] if self.ready is not None else []
		self.clear()
		return ready
