"""Topic extraction from group chat messages."""

import logging
import re
from typing import Any

from group_insight.analyzers.base import BaseAnalyzer
from group_insight.models import AnalysisResult, Contributor, Message, Topic

logger = logging.getLogger(__name__)

MAX_CONTRIBUTORS = 5
_USER_REFERENCE = re.compile(r"\[(\d+)\]")

TOPIC_PROMPT = """You summarize group chat discussions.

Extract every meaningful discussion topic from the chat log below. Do not
force a fixed number of topics, only keep what is worth reporting.

For each topic provide:
1. A short topic name (a few words)
2. The user ids of the main participants (at most 5, most active first)
3. A detailed description with the key points, who did what, and any conclusion

Rules:
- When mentioning a user in the description, use the [user_id] format, e.g. [123456789]
- Explain causes and consequences, not only conclusions
- Ignore small talk, spam and reaction-only messages
- If there is no clear topic, return an empty array []

Chat log format: [HH:MM] [user_id]: message

Chat log:
{messages}

---

Return ONLY a JSON array, without explanations or code fences:
[
  {{
    "topic": "Topic name",
    "contributors": ["123456789", "987654321"],
    "detail": "What was discussed, by whom ([123456789]) and what was concluded."
  }}
]"""


class TopicAnalyzer(BaseAnalyzer):
    """Extracts discussion topics with their contributors."""

    name = "topics"
    max_tokens = 2000
    temperature = 0.7

    async def analyze(self, messages: list[Message], stats: dict[str, Any]) -> AnalysisResult:
        if not messages:
            logger.warning("Topic analysis called with no messages")
            return AnalysisResult(items=[])

        user_map = {msg.user_id: msg.nickname for msg in messages}
        prompt = TOPIC_PROMPT.format(
            messages=self.format_messages(messages, include_time=True, use_user_id=True)
        )
        raw_topics, response = await self.call(prompt)

        topics = []
        for raw in raw_topics:
            if not isinstance(raw, dict) or not raw.get("topic") or not raw.get("detail"):
                continue
            contributors = []
            for user_id in raw.get("contributors") or []:
                user_id = str(user_id).strip()
                contributors.append(
                    Contributor(
                        user_id=user_id if user_id in user_map else None,
                        nickname=user_map.get(user_id, user_id),
                    )
                )
            topics.append(
                Topic(
                    name=str(raw["topic"]).strip(),
                    contributors=contributors[:MAX_CONTRIBUTORS],
                    detail=self._resolve_user_references(str(raw["detail"]).strip(), user_map),
                )
            )

        logger.info(f"Extracted {len(topics)} topics")
        return AnalysisResult(items=topics, usage=response.usage)

    @staticmethod
    def _resolve_user_references(detail: str, user_map: dict[str, str]) -> str:
        """Replace [user_id] references with @nickname, leaving unknown ids as-is."""
        def replace(match: re.Match) -> str:
            nickname = user_map.get(match.group(1))
            return f"@{nickname}" if nickname else match.group(0)

        return _USER_REFERENCE.sub(replace, detail)
