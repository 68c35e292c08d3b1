"""LLM client for OpenAI-compatible APIs used by the analyzers."""

import logging
import os
from dataclasses import dataclass

from group_insight.config import Settings
from group_insight.llm.retry import EmptyResponseError, RetryHandler
from group_insight.models import TokenUsage

_langfuse_host = os.getenv("LANGFUSE_HOST", "")
if _langfuse_host:
    from langfuse.openai import AsyncOpenAI
else:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    content: str
    usage: TokenUsage


class LLMClient:
    """Async client for single-prompt completions with retry and timeout."""

    def __init__(self, settings: Settings, retry_handler: RetryHandler | None = None):
        """
        Initialize LLM client.

        Args:
            settings: Application settings
            retry_handler: Retry policy (built from settings when omitted)
        """
        self.settings = settings
        self.client = AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            # Timeout is enforced per attempt by the retry handler
            timeout=settings.llm_timeout,
            max_retries=0,
        )
        self.retry_handler = retry_handler or RetryHandler(
            max_retries=settings.llm_retries,
            backoff=settings.llm_backoff,
            timeout=settings.llm_timeout,
        )

    @property
    def model(self) -> str:
        return self.settings.llm_model

    async def chat(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """
        Send a single user prompt and return the completion.

        Args:
            prompt: Full prompt text
            max_tokens: Completion token limit (settings default when omitted)
            temperature: Sampling temperature (settings default when omitted)

        Returns:
            Response content and token usage

        Raises:
            LLMCallError: When all attempts failed
        """
        async def make_request() -> LLMResponse:
            response = await self.client.chat.completions.create(
                model=self.settings.llm_model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens or self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature if temperature is None else temperature,
            )
            content = response.choices[0].message.content if response.choices else None
            if not content:
                raise EmptyResponseError("LLM returned empty content")
            usage = response.usage
            return LLMResponse(
                content=content,
                usage=TokenUsage(
                    prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                    completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                    total_tokens=getattr(usage, "total_tokens", 0) or 0,
                ),
            )

        result = await self.retry_handler.execute(make_request)
        logger.info(f"LLM call succeeded ({self.settings.llm_model}, tokens: {result.usage.total_tokens})")
        return result

    async def close(self) -> None:
        await self.client.close()
