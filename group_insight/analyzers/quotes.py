"""Golden quote extraction."""

import logging
import re
from datetime import tzinfo
from typing import Any

from group_insight.analyzers.base import BaseAnalyzer
from group_insight.llm.client import LLMClient
from group_insight.models import AnalysisResult, Contributor, Message, Quote

logger = logging.getLogger(__name__)

_COMMAND_PREFIXES = ("#", "/", ".")
_NUMBERS_ONLY = re.compile(r"^[\d\s]+$")
_LINK_ONLY = re.compile(r"^https?://")
_PUNCTUATION_ONLY = re.compile(r"^[?!。,.、\s]+$")

QUOTE_PROMPT = """You pick the most memorable lines from a group chat.

Choose at most {max_quotes} "golden quotes" from the chat log below. A good quote is
funny, insightful, surprising, relatable, or says a lot in few words.

Rules:
- Prefer complete, self-contained lines that need little context
- Skip small talk, reactions and bot commands
- Give a short reason for each pick (under 20 words)
- If nothing qualifies, return an empty array []

Chat log format: nickname: message

Chat log:
{messages}

---

Return ONLY a JSON array, without explanations or code fences:
[
  {{
    "quote": "The quote",
    "sender": "Sender nickname",
    "reason": "Why it stands out"
  }}
]"""


class GoldenQuoteAnalyzer(BaseAnalyzer):
    """Extracts notable quotes with their senders."""

    name = "golden_quotes"
    max_tokens = 1500
    temperature = 0.8

    def __init__(
        self,
        llm: LLMClient,
        tz: tzinfo | str | None = None,
        max_quotes: int = 5,
        min_length: int = 5,
        max_length: int = 100,
    ):
        super().__init__(llm, tz)
        self.max_quotes = max_quotes
        self.min_length = min_length
        self.max_length = max_length

    def is_candidate(self, text: str) -> bool:
        text = text.strip()
        if not self.min_length <= len(text) <= self.max_length:
            return False
        if text.startswith(_COMMAND_PREFIXES):
            return False
        if _NUMBERS_ONLY.match(text) or _LINK_ONLY.match(text) or _PUNCTUATION_ONLY.match(text):
            return False
        return True

    async def analyze(self, messages: list[Message], stats: dict[str, Any]) -> AnalysisResult:
        candidates = [msg for msg in messages if self.is_candidate(msg.text)]
        if not candidates:
            logger.warning("No quote candidates left after filtering")
            return AnalysisResult(items=[])

        logger.info(f"{len(candidates)} quote candidates after filtering")

        prompt = QUOTE_PROMPT.format(
            max_quotes=self.max_quotes,
            messages=self.format_messages(candidates, include_time=False),
        )
        raw_quotes, response = await self.call(prompt)

        nickname_to_user_id = {
            user["nickname"]: user["user_id"] for user in stats.get("users", [])
        }
        for msg in messages:
            nickname_to_user_id.setdefault(msg.nickname, msg.user_id)

        quotes = []
        for raw in raw_quotes:
            if not isinstance(raw, dict) or not all(raw.get(k) for k in ("quote", "sender", "reason")):
                continue
            sender = str(raw["sender"]).strip()
            quotes.append(
                Quote(
                    text=str(raw["quote"]).strip(),
                    sender=Contributor(user_id=nickname_to_user_id.get(sender), nickname=sender),
                    reason=str(raw["reason"]).strip(),
                )
            )
        quotes = quotes[: self.max_quotes]

        logger.info(f"Extracted {len(quotes)} golden quotes")
        return AnalysisResult(items=quotes, usage=response.usage)
