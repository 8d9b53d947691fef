"""Async Data Access Layer for the interview_sessions table.

Provides SessionDAL with load/save compatible with
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional, Sequence

import aiosqlite

from models.session_models import Message, Phase, SessionState
from services.interview.message_utils import filter_for_storage
from utils.database_init import AsyncDatabaseInitializer


class SessionStoreError(RuntimeError):
    """Raised when the session table cannot be read or written."""


class SessionDAL:
    """Data access layer for persisted interview sessions.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "user_id",
        "messages",
        "phase",
        "question_count",
        "final_spec",
        "is_modification_mode",
        "spec_message_count",
        "updated_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def load(self, user_id: str) -> Optional[SessionState]:
        """Return the persisted session for `user_id`, or None if there is none.

        Raises:
            SessionStoreError: If the database cannot be read or the row is corrupt.
        """
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM interview_sessions WHERE user_id = ?",
                    (user_id,),
                )
                row = await cur.fetchone()
        except (aiosqlite.Error, OSError) as exc:
            logging.error("Session load failed for %s: %s", user_id, exc)
            raise SessionStoreError(f"Could not load session: {exc}") from exc
        if row is None:
            return None
        try:
            return self._row_to_state(row)
        except (ValueError, TypeError) as exc:
            raise SessionStoreError(f"Stored session for {user_id} is corrupt") from exc

    async def save(self, state: SessionState) -> None:
        """Insert or replace the row for `state.user_id`."""
        try:
            async with self._db.connection() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO interview_sessions ({self._COLUMN_LIST})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        messages = excluded.messages,
                        phase = excluded.phase,
                        question_count = excluded.question_count,
                        final_spec = excluded.final_spec,
                        is_modification_mode = excluded.is_modification_mode,
                        spec_message_count = excluded.spec_message_count,
                        updated_at = excluded.updated_at
                    """,
                    self._state_to_row(state),
                )
                await conn.commit()
        except (aiosqlite.Error, OSError) as exc:
            logging.error("Session save failed for %s: %s", state.user_id, exc)
            raise SessionStoreError(f"Could not save session: {exc}") from exc

    @staticmethod
    def serialize_messages(messages: Sequence[Message]) -> str:
        """Encode messages for storage, without any inline-encoded image."""
        payload = []
        for message in messages:
            data = message.to_dict()
            data["structured_content"] = filter_for_storage(message.structured_content, message.display_content)
            payload.append(data)
        return json.dumps(payload, ensure_ascii=False)

    @classmethod
    def _state_to_row(cls, state: SessionState) -> tuple:
        return (
            state.user_id,
            cls.serialize_messages(state.messages),
            state.phase.value,
            state.question_count,
            state.final_spec,
            int(state.is_modification_mode),
            state.spec_message_count,
            time.time(),
        )

    @staticmethod
    def _row_to_state(row: Sequence[object]) -> SessionState:
        """Convert a DB row tuple into a SessionState."""
        messages = [Message.from_dict(item) for item in json.loads(row[1] or "[]")]
        return SessionState(
            user_id=row[0],
            messages=messages,
            phase=Phase(row[2] or Phase.INTERVIEW.value),
            question_count=int(row[3] or 0),
            final_spec=row[4],
            is_modification_mode=bool(row[5]),
            spec_message_count=row[6],
        )
