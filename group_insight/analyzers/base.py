"""Base class for LLM-backed analyzers."""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import tzinfo
from typing import Any

from group_insight.llm.client import LLMClient, LLMResponse
from group_insight.models import AnalysisResult, Message
from group_insight.utils.timezone import local_datetime, resolve_tz

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class AnalysisError(Exception):
    """Raised when an analyzer cannot turn the model output into results."""


def parse_json_array(content: str) -> list[Any]:
    """
    Extract a JSON array from model output.

    Accepts plain JSON, a fenced code block, or the outermost [...] span.

    Raises:
        AnalysisError: If no JSON array can be recovered
    """
    candidates = [content.strip()]
    fenced = _FENCED_BLOCK.search(content)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = content.find("["), content.rfind("]")
    if start != -1 and end > start:
        candidates.append(content[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            return parsed

    logger.debug(f"Unparseable LLM content: {content[:200]}...")
    raise AnalysisError("LLM response is not a JSON array")


class BaseAnalyzer(ABC):
    """Common prompt formatting and LLM calling for analyzers."""

    name = "analyzer"
    max_tokens = 2000
    temperature = 0.7

    def __init__(self, llm: LLMClient, tz: tzinfo | str | None = None):
        self.llm = llm
        self.tz = tz if isinstance(tz, tzinfo) else resolve_tz(tz)

    async def call(self, prompt: str) -> tuple[list[Any], LLMResponse]:
        """Call the LLM and parse its JSON array answer."""
        logger.debug(f"Running {self.name} analysis ({len(prompt)} prompt chars)")
        response = await self.llm.chat(prompt, self.max_tokens, self.temperature)
        try:
            items = parse_json_array(response.content)
        except AnalysisError as e:
            raise AnalysisError(f"{self.name}: {e}") from e
        logger.debug(f"{self.name} analysis returned {len(items)} raw items")
        return items, response

    def format_messages(
        self,
        messages: list[Message],
        include_time: bool = True,
        use_user_id: bool = False,
    ) -> str:
        lines = []
        for msg in messages:
            parts = []
            if include_time:
                parts.append(f"[{local_datetime(msg.timestamp, self.tz):%H:%M}]")
            parts.append(f"[{msg.user_id}]:" if use_user_id else f"{msg.nickname}:")
            parts.append(msg.text)
            lines.append(" ".join(parts))
        return "\n".join(lines)

    @abstractmethod
    async def analyze(self, messages: list[Message], stats: dict[str, Any]) -> AnalysisResult:
        """
        Analyze messages.

        Args:
            messages: Messages to analyze (leading context included)
            stats: Statistics computed over the same messages

        Returns:
            Parsed items and token usage

        Raises:
            LLMCallError: When the LLM call failed after retries
            AnalysisError: When the response could not be parsed
        """
