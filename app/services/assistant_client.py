"""
Anthropic client for the scheduling assistant.

Wraps AsyncAnthropic with exponential backoff on rate limits and
connection errors. Other API errors are raised as AssistantError.
"""

import asyncio
import logging
from typing import Any

from anthropic import APIConnectionError, APIError, AsyncAnthropic, RateLimitError

from app.core.config import settings
from app.core.exceptions import AssistantError

logger = logging.getLogger(__name__)


class AssistantClient:
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        max_retries: int = 3,
    ):
        self.api_key = api_key or settings.anthropic_api_key
        if not self.api_key:
            raise AssistantError("ANTHROPIC_API_KEY is not configured")
        self.model = model or settings.assistant_model
        self.max_tokens = max_tokens or settings.assistant_max_tokens
        self.max_retries = max_retries
        self._client = AsyncAnthropic(api_key=self.api_key)

    async def reply(self, system_prompt: str, messages: list[dict[str, str]]) -> str:
        """Assistant text for the next turn of the transcript."""
        response = await self._call_with_retry(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=messages,
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug(
            "Assistant reply: model=%s input_tokens=%s output_tokens=%s",
            self.model,
            getattr(response.usage, "input_tokens", None),
            getattr(response.usage, "output_tokens", None),
        )
        return text

    async def _call_with_retry(self, **kwargs: Any) -> Any:
        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                return await self._client.messages.create(**kwargs)
            except (RateLimitError, APIConnectionError) as e:
                last_error = e
                wait_time = 2**attempt
                logger.warning(
                    "Assistant call failed (%s), retrying in %ss (attempt %d)",
                    type(e).__name__,
                    wait_time,
                    attempt + 1,
                )
                await asyncio.sleep(wait_time)
            except APIError as e:
                raise AssistantError(f"Assistant API error: {e}") from e
        raise AssistantError(f"Assistant call failed after {self.max_retries} attempts") from last_error

    async def close(self) -> None:
        await self._client.close()


_assistant: AssistantClient | None = None


def get_assistant_client() -> AssistantClient:
    global _assistant
    if _assistant is None:
        _assistant = AssistantClient()
    return _assistant
