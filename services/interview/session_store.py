"""Simple in-memory registry of active interview workspaces, one per user."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from dal.session_dal import SessionDAL
from services.ingestion.attachment_stager import AttachmentStager
from services.ingestion.file_pipeline import FilePipeline
from services.interview.orchestrator import InterviewOrchestrator
from services.interview.session_manager import SessionManager
from services.openai.chat_client import ChatCompletionClient
from services.openai.file_summarizer import FileSummarizer
from services.storage.blob_store import LocalBlobStore
from utils.constants import SAVE_DEBOUNCE_SECONDS


@dataclass
class InterviewWorkspace:
	"""Everything that belongs to one user's live interview."""

	session: SessionManager
	orchestrator: InterviewOrchestrator
	stager: AttachmentStager


class SessionStore:
	"""Load, cache and close interview workspaces."""

	def __init__(
		self,
		dal: SessionDAL,
		chat: ChatCompletionClient,
		blob_store: Optional[LocalBlobStore] = None,
		summarizer: Optional[FileSummarizer] = None,
		pipeline_factory: Callable[[], FilePipeline] = FilePipeline,
		debounce: float = SAVE_DEBOUNCE_SECONDS,
	) -> None:
		self.dal = dal
		self.chat = chat
		self.blob_store = blob_store
		self.summarizer = summarizer
		self.pipeline_factory = pipeline_factory
		self.debounce = debounce
		self._workspaces: Dict[str, InterviewWorkspace] = {}
		self._lock = asyncio.Lock()

	async def get_or_load(self, user_id: str) -> InterviewWorkspace:
		"""Return the cached workspace for a user, loading it from storage on first use.

		A failed load is not cached, so calling again is the retry.
		"""
		workspace = self._workspaces.get(user_id)
		if workspace is not None:
			return workspace
		async with self._lock:
			workspace = self._workspaces.get(user_id)
			if workspace is None:
				session = await SessionManager.load_or_create(user_id, self.dal, self.debounce)
				workspace = InterviewWorkspace(
					session=session,
					orchestrator=InterviewOrchestrator(session, self.chat, self.blob_store, self.summarizer),
					stager=AttachmentStager(self.pipeline_factory()),
				)
				self._workspaces[user_id] = workspace
			return workspace

	def get(self, user_id: str) -> InterviewWorkspace:
		"""Return a loaded workspace or raise KeyError if missing."""
		workspace = self._workspaces.get(user_id)
		if workspace is None:
			raise KeyError(f"Session for {user_id} not loaded")
		return workspace

	async def close(self) -> None:
		"""Abort in-flight calls and flush every session before shutdown."""
		for workspace in list(self._workspaces.values()):
			workspace.orchestrator.abort()
			await workspace.session.close()
		self._workspaces.clear()
