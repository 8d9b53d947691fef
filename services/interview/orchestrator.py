"""Conversation orchestration for the specification interview.

One `InterviewOrchestrator` drives one user's session: it assembles the
outgoing turn (attachments included), calls the chat provider with the
retry-on-invalid policy, and applies the outcome to the session. A turn is
either completed, answered with an apology after exhausted retries, answered
with an error message, or aborted silently.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from dal.session_dal import SessionStoreError
from models.processed_file import AttachmentKind, ProcessedFile
from models.session_models import ContentPart, Message, Phase, Role, StructuredContent
from services.interview.message_utils import build_display_content, compose_text, image_part, text_part
from services.interview.session_manager import SessionManager
from services.markdown.parser import strip_audio_tags
from services.openai.chat_client import ChatCompletionClient, ProviderError, call_with_retry
from services.openai.file_summarizer import FileSummarizer
from services.openai.prompts import final_spec_request, interview_system_prompt
from services.storage.blob_store import BlobStoreError, LocalBlobStore
from utils.constants import MIN_QUESTIONS_BEFORE_SPEC, SPEC_COMPLETE_MARKER
from utils.media_validation import decode_data_url

APOLOGY_MESSAGE = (
    "⚠️ Oups ! J'ai eu un problème technique et ma réponse était incohérente. "
    "Peux-tu reformuler ta dernière réponse ou cliquer sur le bouton « Générer les specs » "
    "si tu penses qu'on a assez d'informations ?"
)
SPEC_GENERATED_MESSAGE = (
    "✅ Les spécifications ont été générées ! Tu peux les consulter, les télécharger au format Word "
    "ou revenir à l'entretien pour les modifier."
)
REGENERATE_HINT_MESSAGE = (
    "J'ai bien noté tes précisions. Clique sur « Régénérer les specs » quand tu veux "
    "mettre à jour le document."
)
GENERATION_FAILED_MESSAGE = "La génération des spécifications a échoué (réponse incohérente). Réessaie."

_FIRST_HEADING_RE = re.compile(r"^#{1,6}\s", re.MULTILINE)


def clean_final_spec(response: str) -> str:
    """Strip the completion marker, spoken summaries and any chatter before the first heading."""
    text = strip_audio_tags(response.replace(SPEC_COMPLETE_MARKER, ""))
    heading = _FIRST_HEADING_RE.search(text)
    if heading:
        text = text[heading.start():]
    return text.strip()


def modification_reply(response: str) -> str:
    """Keep only the conversational part of a reply that echoed the completion marker."""
    preamble = response.split(SPEC_COMPLETE_MARKER, 1)[0].strip()
    # A spoken summary alone leaves nothing in the written view.
    if not strip_audio_tags(preamble).strip():
        return REGENERATE_HINT_MESSAGE
    return preamble


@dataclass
class CancellationToken:
    """Handle on one in-flight provider call."""

    cancelled: bool = False
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


class InterviewOrchestrator:
    """Send user turns and spec requests for one session."""

    def __init__(
        self,
        session: SessionManager,
        chat: ChatCompletionClient,
        blob_store: Optional[LocalBlobStore] = None,
        summarizer: Optional[FileSummarizer] = None,
    ) -> None:
        self.session = session
        self.chat = chat
        self.blob_store = blob_store
        self.summarizer = summarizer
        self._token: Optional[CancellationToken] = None
        self.last_error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self._token is not None

    @property
    def can_generate_spec(self) -> bool:
        state = self.session.state
        return state.phase is Phase.INTERVIEW and state.question_count >= MIN_QUESTIONS_BEFORE_SPEC

    def abort(self) -> bool:
        """Cancel the in-flight provider call. Returns False when nothing was running."""
        token, self._token = self._token, None
        if token is None:
            return False
        token.cancel()
        logging.info("Aborted in-flight request for %s", self.session.state.user_id)
        return True

    async def send(self, user_text: str, attachments: Sequence[ProcessedFile] = ()) -> bool:
        """Send one user turn; returns True when an assistant turn was applied."""
        if (not (user_text or "").strip() and not attachments) or self.is_loading:
            return False

        token = self._begin()
        self.last_error = None
        try:
            turn = await self._build_user_turn(token, user_text or "", attachments)
            if turn is None or token.cancelled:
                return False
            structured, display = turn
            self.session.append_message(Message(role=Role.USER, display_content=display, structured_content=structured))

            result = await self._call(token, self._history())
            if result is None:
                return False
            response, is_valid = result
            if not is_valid:
                logging.error("Invalid completion after retries: %.200r", response)
                self.session.append_message(Message(role=Role.ASSISTANT, display_content=APOLOGY_MESSAGE, structured_content=APOLOGY_MESSAGE))
                return False

            await self._apply_response(response)
            return True
        except (ProviderError, BlobStoreError) as exc:
            return self._report_error(token, exc)
        except SessionStoreError as exc:
            logging.error("Session save failed after send: %s", exc)
            self.last_error = str(exc)
            return False
        except Exception as exc:
            logging.exception("Unexpected failure while sending a message")
            return self._report_error(token, exc)
        finally:
            self._end(token)

    async def generate_spec(self) -> bool:
        """Ask for the finished document, finalizing even in modification mode."""
        if self.is_loading:
            return False

        token = self._begin()
        self.last_error = None
        try:
            result = await self._call(token, self._history({"role": Role.USER.value, "content": final_spec_request()}))
            if result is None:
                return False
            response, is_valid = result
            if not is_valid:
                logging.error("Invalid specification completion after retries")
                self.last_error = GENERATION_FAILED_MESSAGE
                return False
            await self._finalize(response, replace_previous=True)
            return True
        except ProviderError as exc:
            logging.error("Specification generation failed: %s", exc)
            self.last_error = str(exc)
            return False
        except SessionStoreError as exc:
            logging.error("Final specification could not be saved: %s", exc)
            self.last_error = str(exc)
            return False
        finally:
            self._end(token)

    def back_to_interview(self) -> None:
        """Leave the complete phase; further answers no longer finalize on their own."""
        state = self.session.state
        self.session.set_phase(Phase.INTERVIEW)
        if state.final_spec:
            self.session.set_modification_mode(True)

    def _begin(self) -> CancellationToken:
        if self._token is not None:
            self._token.cancel()
        self._token = CancellationToken()
        return self._token

    def _end(self, token: CancellationToken) -> None:
        if self._token is token:
            self._token = None

    async def _under_token(self, token: CancellationToken, coro: Awaitable[Any]) -> Any:
        """Await `coro` as the cancellable task of `token`; None means it was aborted."""
        token.task = asyncio.ensure_future(coro)
        try:
            result = await token.task
        except asyncio.CancelledError:
            if token.cancelled:
                return None
            raise
        finally:
            token.task = None
        if token.cancelled:
            return None
        return result

    async def _call(self, token: CancellationToken, history: List[Dict[str, Any]]) -> Optional[Tuple[str, bool]]:
        """Run the provider call under `token`; None means it was aborted."""
        result = await self._under_token(token, call_with_retry(self.chat.complete, history))
        if result is None:
            return None
        return result.response, result.is_valid

    def _history(self, extra: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        history: List[Dict[str, Any]] = [{"role": Role.SYSTEM.value, "content": interview_system_prompt()}]
        history.extend({"role": m.role.value, "content": m.structured_content} for m in self.session.state.messages)
        if extra is not None:
            history.append(extra)
        return history

    async def _build_user_turn(
        self, token: CancellationToken, user_text: str, attachments: Sequence[ProcessedFile]
    ) -> Optional[Tuple[StructuredContent, str]]:
        """Return the structured and display forms of the turn, or None if aborted meanwhile."""
        if not attachments:
            return user_text, user_text

        parts: List[ContentPart] = []
        composed = compose_text(user_text, attachments)
        if composed.strip():
            parts.append(text_part(composed))
        for attachment in attachments:
            if attachment.kind is AttachmentKind.IMAGE:
                parts.append(image_part(await self._upload_image(attachment)))

        summaries = await self._under_token(token, self._summarize(attachments))
        if summaries is None:
            return None
        return parts, build_display_content(user_text, attachments, summaries)

    async def _summarize(self, attachments: Sequence[ProcessedFile]) -> Dict[str, str]:
        summaries: Dict[str, str] = {}
        if self.summarizer is not None:
            for attachment in attachments:
                if attachment.kind is AttachmentKind.TEXT:
                    summaries[attachment.name] = await self.summarizer.summarize(attachment.content, attachment.name)
        return summaries

    async def _upload_image(self, attachment: ProcessedFile) -> str:
        """Return a storage URL for the image, or its inline form when upload fails."""
        if self.blob_store is None:
            return attachment.content
        try:
            mime_type, raw = decode_data_url(attachment.content)
            return await self.blob_store.put(raw, attachment.name, mime_type)
        except (BlobStoreError, ValueError) as exc:
            logging.warning("Image upload failed for %s, keeping it inline: %s", attachment.name, exc)
            return attachment.content

    async def _apply_response(self, response: str) -> None:
        state = self.session.state
        if SPEC_COMPLETE_MARKER in response:
            if not state.is_modification_mode:
                await self._finalize(response, replace_previous=False)
                return
            response = modification_reply(response)
        self.session.append_message(Message(role=Role.ASSISTANT, display_content=response, structured_content=response))
        if state.phase is Phase.INTERVIEW:
            self.session.increment_question_count()

    async def _finalize(self, response: str, *, replace_previous: bool) -> None:
        spec = clean_final_spec(response)
        confirmation = Message(
            role=Role.ASSISTANT,
            display_content=SPEC_GENERATED_MESSAGE,
            structured_content=SPEC_GENERATED_MESSAGE,
            synthetic=True,
        )
        if replace_previous:
            self.session.replace_last_synthetic(confirmation)
        else:
            self.session.append_message(confirmation)
        self.session.set_phase(Phase.COMPLETE)
        self.session.set_modification_mode(False)
        await self.session.set_final_spec(spec, len(self.session.state.messages))
        logging.info("Final specification stored for %s (%d chars)", self.session.state.user_id, len(spec))

    def _report_error(self, token: CancellationToken, exc: Exception) -> bool:
        if token.cancelled:
            return False
        logging.error("Chat turn failed: %s", exc)
        self.last_error = str(exc)
        message = f"❌ Erreur: {exc}"
        self.session.append_message(Message(role=Role.ASSISTANT, display_content=message, structured_content=message))
        return False
