"""Spoken-summary preparation and speech synthesis built on OpenAI's TTS models."""

import logging
import re
from typing import Optional

from openai import AsyncOpenAI

from utils.constants import DEFAULT_TTS_MODEL, DEFAULT_TTS_VOICE, TTS_MAX_CHARS

AUDIO_SUMMARY_RE = re.compile(r"\[AUDIO\](.*?)\[/AUDIO\]", re.IGNORECASE | re.DOTALL)

_CLEANUP_PATTERNS = (
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"_([^_]+)_"), r"\1"),
    (re.compile(r"```[^`]*```"), ""),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"^#+\s*", re.MULTILINE), ""),
    (re.compile(r"^[-*]\s*", re.MULTILINE), ""),
    (re.compile("[\U0001F300-\U0001F6FF\u2600-\u27BF]"), ""),
)
_SENTENCE_END_RE = re.compile(r"[.!?]")


def extract_audio_summary(text: str) -> Optional[str]:
    """Return the content of the first `[AUDIO]...[/AUDIO]` span, if any."""
    match = AUDIO_SUMMARY_RE.search(text or "")
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def clean_text_for_speech(text: str) -> str:
    """Strip markdown syntax and emoji, collapsing whitespace to single spaces."""
    for pattern, replacement in _CLEANUP_PATTERNS:
        text = pattern.sub(replacement, text)
    return re.sub(r"\s+", " ", text).strip()


def prepare_tts_text(text: str) -> str:
    """Pick what should be read aloud for an assistant turn.

    The spoken summary wins when present; otherwise the first sentence of the
    cleaned text is used, capped at `TTS_MAX_CHARS` characters.
    """
    summary = extract_audio_summary(text)
    if summary:
        return clean_text_for_speech(summary)
    cleaned = clean_text_for_speech(text or "")
    first_sentence = _SENTENCE_END_RE.split(cleaned, 1)[0]
    if len(first_sentence) > 10:
        return first_sentence[:TTS_MAX_CHARS]
    return cleaned[:TTS_MAX_CHARS]


class SpeechSynthesizer:
    """Create MP3 audio from the spoken summary of a message."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_TTS_MODEL,
        voice: str = DEFAULT_TTS_VOICE,
    ) -> None:
        if client is None:
            raise ValueError("OpenAI client is required for speech synthesis.")
        self.client = client
        self.model = model
        self.voice = voice

    async def synthesize(self, text: str) -> bytes:
        """Return MP3 bytes for the prepared form of `text`.

        Raises:
            ValueError: If nothing speakable remains after preparation.
        """
        spoken = prepare_tts_text(text)
        if not spoken:
            raise ValueError("Text is empty after preparation for speech.")

        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=spoken,
                response_format="mp3",
            )
        except Exception as exc:
            logging.error("OpenAI speech request failed: %s", exc)
            raise

        audio = getattr(response, "content", None)
        if not audio:
            raise RuntimeError("Speech response did not include audio.")
        return audio
