"""Per-user title and MBTI assignment based on activity statistics."""

import logging
from datetime import tzinfo
from typing import Any

from group_insight.analyzers.base import BaseAnalyzer
from group_insight.llm.client import LLMClient
from group_insight.models import AnalysisResult, Message, UserTitle

logger = logging.getLogger(__name__)

MAX_USERS_DESCRIBED = 20

TITLE_PROMPT = """You analyze chat behaviour and hand out playful titles.

Pick at most {max_titles} of the most distinctive users below and give each one
a creative title and a guessed MBTI type.

Title rules:
- Funny and fitting, based on the behaviour data
- Short: 1-4 words
- Varied: avoid repeating the same pattern
- Friendly: nothing offensive

MBTI hints:
- Many messages and replies -> E, mostly lurking -> I
- Long, abstract messages -> N, short concrete ones -> S
- Rational tone -> T, emotional tone -> F
- Regular hours -> J, random hours -> P

User behaviour:
{users}

---

Return ONLY a JSON array, without explanations or code fences:
[
  {{
    "user": "Nickname",
    "title": "Creative title",
    "mbti": "ENFP",
    "reason": "Why (under 30 words)"
  }}
]"""


class UserTitleAnalyzer(BaseAnalyzer):
    """Assigns titles to the most active users."""

    name = "user_titles"
    max_tokens = 2500
    temperature = 0.9

    def __init__(
        self,
        llm: LLMClient,
        tz: tzinfo | str | None = None,
        max_titles: int = 8,
        min_messages: int = 5,
    ):
        super().__init__(llm, tz)
        self.max_titles = max_titles
        self.min_messages = min_messages

    def describe_users(self, users: list[dict[str, Any]]) -> list[dict[str, Any]]:
        top_count = users[0]["message_count"] if users else 0
        descriptions = []
        for user in users:
            tags = [
                tag
                for tag, present in (
                    ("night owl", user["night_ratio"] > 0.3),
                    ("emoji lover", user["emoji_ratio"] > 0.5),
                    ("talkative", user["message_count"] > top_count * 0.5),
                    ("long messages", user["avg_length"] > 50),
                    ("active replier", user["reply_ratio"] > 0.3),
                )
                if present
            ]
            descriptions.append({**user, "tags": tags})
        return descriptions

    def _format_users(self, descriptions: list[dict[str, Any]]) -> str:
        blocks = []
        for i, user in enumerate(descriptions, 1):
            blocks.append(
                f"{i}. {user['nickname']}\n"
                f"   - messages: {user['message_count']}\n"
                f"   - average length: {user['avg_length']} chars\n"
                f"   - emoji ratio: {user['emoji_ratio']:.0%}\n"
                f"   - reply ratio: {user['reply_ratio']:.0%}\n"
                f"   - night activity: {user['night_ratio']:.0%}\n"
                f"   - most active hour: {user['most_active_hour']}:00\n"
                f"   - tags: {', '.join(user['tags']) or 'regular'}"
            )
        return "\n\n".join(blocks)

    async def analyze(self, messages: list[Message], stats: dict[str, Any]) -> AnalysisResult:
        active = sorted(
            (u for u in stats.get("users", []) if u["message_count"] >= self.min_messages),
            key=lambda u: u["message_count"],
            reverse=True,
        )[:MAX_USERS_DESCRIBED]

        if not active:
            logger.warning("No active users to assign titles to")
            return AnalysisResult(items=[])

        logger.info(f"Assigning titles for {len(active)} active users")

        descriptions = self.describe_users(active)
        prompt = TITLE_PROMPT.format(
            max_titles=self.max_titles,
            users=self._format_users(descriptions),
        )
        raw_titles, response = await self.call(prompt)

        nickname_to_user_id = {d["nickname"]: d["user_id"] for d in descriptions}
        titles = []
        for raw in raw_titles:
            if not isinstance(raw, dict) or not all(raw.get(k) for k in ("user", "title", "mbti", "reason")):
                continue
            nickname = str(raw["user"]).strip()
            titles.append(
                UserTitle(
                    nickname=nickname,
                    user_id=nickname_to_user_id.get(nickname),
                    title=str(raw["title"]).strip(),
                    mbti=str(raw["mbti"]).strip().upper(),
                    reason=str(raw["reason"]).strip(),
                )
            )
        titles = titles[: self.max_titles]

        logger.info(f"Generated {len(titles)} user titles")
        return AnalysisResult(items=titles, usage=response.usage)
