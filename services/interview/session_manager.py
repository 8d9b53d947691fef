"""Write-behind cache around one user's persisted interview session.

Mutations are applied in memory first and persisted after a short debounce.
Critical transitions (final spec, reset) call `flush`, which cancels any pending
debounced save and writes immediately. A save only happens when the serialized
state differs from the last successfully saved snapshot, so re-saving
identical state is a no-op and a stale debounced write can never overwrite a
newer immediate one.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from typing import Optional

from dal.session_dal import SessionDAL, SessionStoreError
from models.session_models import Message, Phase, Role, SessionState
from services.interview.message_utils import extract_storage_image_urls
from services.storage.blob_store import BlobStoreError, LocalBlobStore
from utils.constants import SAVE_DEBOUNCE_SECONDS

WELCOME_MESSAGE = (
    "Salut ! 👋 Je suis ton assistant IA, et je vais t'aider à affiner ton cahier des charges.\n\n"
    "Décris-moi ton projet en quelques phrases : quel problème veux-tu résoudre ? Pour qui ? "
    "Quelles sont les fonctionnalités principales que tu imagines ?\n\n"
    "Tu peux aussi joindre des fichiers (images, PDF, documents) si tu as déjà des maquettes "
    "ou des documents de référence."
)


def welcome_state(user_id: str) -> SessionState:
    return SessionState(
        user_id=user_id,
        messages=[Message(role=Role.ASSISTANT, display_content=WELCOME_MESSAGE, structured_content=WELCOME_MESSAGE)],
    )


class SessionManager:
    """Own the in-memory SessionState of one user and keep storage in sync."""

    def __init__(self, state: SessionState, dal: SessionDAL, debounce: float = SAVE_DEBOUNCE_SECONDS) -> None:
        self.state = state
        self._dal = dal
        self._debounce = debounce
        self._last_saved: Optional[str] = None
        self._pending: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self.last_save_error: Optional[str] = None

    @classmethod
    async def load_or_create(
        cls, user_id: str, dal: SessionDAL, debounce: float = SAVE_DEBOUNCE_SECONDS
    ) -> "SessionManager":
        """Load the persisted session, or start from the welcome state when there is none.

        Raises:
            SessionStoreError: If storage cannot be read; "not found" is not an error.
        """
        state = await dal.load(user_id)
        if state is None:
            logging.info("No stored session for %s, starting a new interview", user_id)
            manager = cls(welcome_state(user_id), dal, debounce)
            manager.schedule_save()
            return manager
        manager = cls(state, dal, debounce)
        manager._last_saved = manager.snapshot()
        return manager

    def snapshot(self) -> str:
        """Serialize the persisted fields of the current state."""
        state = self.state
        return json.dumps(
            {
                "messages": SessionDAL.serialize_messages(state.messages),
                "phase": state.phase.value,
                "question_count": state.question_count,
                "final_spec": state.final_spec,
                "is_modification_mode": state.is_modification_mode,
                "spec_message_count": state.spec_message_count,
            },
            ensure_ascii=False,
        )

    @property
    def dirty(self) -> bool:
        return self.snapshot() != self._last_saved

    @property
    def has_pending_save(self) -> bool:
        return self._pending is not None and not self._pending.done()

    # Mutations

    def append_message(self, message: Message) -> None:
        self.state.messages.append(message)
        self.schedule_save()

    def replace_last_synthetic(self, message: Message) -> None:
        """Drop the previous synthetic marker message, if any, and append `message`."""
        for index in range(len(self.state.messages) - 1, -1, -1):
            if self.state.messages[index].synthetic:
                del self.state.messages[index]
                break
        self.append_message(message)

    def set_phase(self, phase: Phase) -> None:
        self.state.phase = phase
        self.schedule_save()

    def set_modification_mode(self, enabled: bool) -> None:
        self.state.is_modification_mode = enabled
        self.schedule_save()

    def increment_question_count(self) -> None:
        self.state.question_count += 1
        self.schedule_save()

    async def set_final_spec(self, spec: str, message_count: Optional[int] = None) -> None:
        """Store the generated document and persist it without waiting for the debounce."""
        self.state.final_spec = spec
        self.state.spec_message_count = message_count if message_count is not None else len(self.state.messages)
        await self.flush()

    async def reset(self, blob_store: Optional[LocalBlobStore]) -> int:
        """Release stored attachment blobs, then go back to the welcome state.

        Individual delete failures are logged and do not stop the reset.
        Returns the number of blobs deleted.
        """
        deleted = 0
        if blob_store is not None:
            for url in extract_storage_image_urls(self.state.messages):
                try:
                    if await blob_store.delete(url):
                        deleted += 1
                except BlobStoreError as exc:
                    logging.warning("Could not delete blob %s during reset: %s", url, exc)
        self.state = welcome_state(self.state.user_id)
        await self.flush()
        return deleted

    # Persistence

    def schedule_save(self) -> None:
        """(Re)start the debounce timer if there is anything new to persist."""
        if not self.dirty:
            return
        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._debounced_save())

    async def flush(self) -> None:
        """Cancel any pending debounced save and write the current state now.

        Raises:
            SessionStoreError: If the write fails; the state stays dirty.
        """
        self._cancel_pending()
        await self._save_if_dirty()

    async def close(self) -> None:
        """Persist outstanding changes, logging instead of raising on failure."""
        try:
            await self.flush()
        except SessionStoreError as exc:
            logging.error("Final save failed for %s: %s", self.state.user_id, exc)

    def _cancel_pending(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done() and pending is not asyncio.current_task():
            pending.cancel()

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self._debounce)
        self._pending = None
        try:
            await self._save_if_dirty()
        except SessionStoreError as exc:
            logging.error("Debounced save failed for %s: %s", self.state.user_id, exc)

    async def _save_if_dirty(self) -> None:
        async with self._lock:
            snapshot = self.snapshot()
            if snapshot == self._last_saved:
                return
            frozen = dataclasses.replace(self.state, messages=list(self.state.messages))
            try:
                await self._dal.save(frozen)
            except SessionStoreError as exc:
                self.last_save_error = str(exc)
                raise
            self._last_saved = snapshot
            self.last_save_error = None
