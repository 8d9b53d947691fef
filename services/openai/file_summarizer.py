"""Short LLM-generated descriptions of attached documents."""

import logging

from openai import APIError, AsyncOpenAI

from services.openai.prompts import file_summary_system_prompt
from services.openai.response_parser import extract_text
from utils.constants import DEFAULT_CHAT_MODEL

SUMMARY_INPUT_CHARS = 2000
SUMMARY_MAX_TOKENS = 50


class FileSummarizer:
    """Describe a text attachment in about ten words."""

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_CHAT_MODEL) -> None:
        if client is None:
            raise ValueError("OpenAI AsyncOpenAI client is required.")
        self.client = client
        self.model = model

    async def summarize(self, content: str, file_name: str) -> str:
        """Return the summary, or `file_name` when the provider cannot produce one."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=SUMMARY_MAX_TOKENS,
                messages=[
                    {"role": "system", "content": file_summary_system_prompt()},
                    {
                        "role": "user",
                        "content": f"Fichier: {file_name}\n\nContenu:\n{content[:SUMMARY_INPUT_CHARS]}",
                    },
                ],
            )
        except APIError as exc:
            logging.warning("File summary failed for %s: %s", file_name, exc)
            return file_name

        summary = (extract_text(response) or "").strip()
        return summary or file_name
