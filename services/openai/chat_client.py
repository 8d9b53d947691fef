"""Chat completion client with retry on invalid completions."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List

from openai import APIError, AsyncOpenAI

from services.openai.response_parser import extract_text, extract_usage
from services.openai.response_validation import is_valid_response
from utils.constants import DEFAULT_CHAT_MODEL, MAX_RETRIES, MAX_TOKENS

ChatMessages = List[Dict[str, Any]]
CompletionFn = Callable[[ChatMessages], Awaitable[str]]


class ProviderError(RuntimeError):
    """The chat provider failed at the transport or HTTP level."""


@dataclass
class RetryResult:
    response: Any
    is_valid: bool
    attempts: int


class ChatCompletionClient:
    """Send a conversation to an OpenAI-compatible chat endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_CHAT_MODEL, max_tokens: int = MAX_TOKENS) -> None:
        if client is None:
            raise ValueError("OpenAI AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def complete(self, messages: ChatMessages) -> str:
        """Return the completion text for `messages`.

        A completion without text comes back as an empty string so that the
        retry policy treats it as an invalid response.

        Raises:
            ProviderError: If the request fails.
        """
        start = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=messages,
            )
        except APIError as exc:
            logging.error("Chat completion request failed: %s", exc)
            raise ProviderError(getattr(exc, "message", None) or "API request failed") from exc

        text = extract_text(response)
        if not isinstance(text, str):
            logging.warning("Chat completion returned no text")
            text = ""
        usage = extract_usage(response)
        logging.info(
            "Chat completion latency: %.3fs (input=%s, output=%s)",
            time.time() - start,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return text


async def call_with_retry(
    complete: CompletionFn,
    messages: ChatMessages,
    max_retries: int = MAX_RETRIES,
) -> RetryResult:
    """Call the provider, re-issuing the request while the completion is invalid.

    The provider is invoked at most `max_retries + 1` times. Transport errors
    are not retried and propagate to the caller.
    """
    response = await complete(messages)
    attempts = 1
    while not is_valid_response(response) and attempts <= max_retries:
        logging.warning("Incoherent completion detected (retry %d/%d)", attempts, max_retries)
        response = await complete(messages)
        attempts += 1
    return RetryResult(response=response, is_valid=is_valid_response(response), attempts=attempts)
