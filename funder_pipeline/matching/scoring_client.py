"""Anthropic client wrapper for the external scoring service."""

import logging
from typing import Optional

import anthropic
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 8000
DEFAULT_TEMPERATURE = 0.3

RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


class ScoringClient:
    """Sends one system instruction + one user message, returns the text reply.

    Build one per process and pass it to whatever needs scoring.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        client: Optional[anthropic.Anthropic] = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError(
                    "ANTHROPIC_API_KEY environment variable is not set. "
                    "Please set it in your .env file or environment."
                )
            client = anthropic.Anthropic(api_key=api_key)
        self._client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def complete(self, system: str, prompt: str) -> str:
        """Return the first text block of the model's reply.

        Raises:
            ParseError: the reply has no text block.
        """
        response = self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        raise ParseError("No text content in AI response")
