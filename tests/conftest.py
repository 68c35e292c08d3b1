import json
from typing import Callable

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis

from group_insight.analysis.statistics import StatisticsService
from group_insight.llm.client import LLMResponse
from group_insight.models import AnalysisResult, Contributor, Message, Quote, Topic, TokenUsage
from group_insight.storage.messages import MessageStorage

GROUP_ID = "-100123"
DATE = "2024-05-01"
DAY_START = 1714521600  # 2024-05-01 00:00 UTC


@pytest_asyncio.fixture
async def redis():
    client = FakeAsyncRedis()
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def statistics() -> StatisticsService:
    return StatisticsService(tz="UTC")


def make_messages(count: int, users: int = 3, start: int = DAY_START) -> list[Message]:
    return [
        Message(
            user_id=str(1000 + i % users),
            nickname=f"user{i % users}",
            text=f"message number {i}",
            timestamp=start + i,
        )
        for i in range(count)
    ]


async def seed_messages(redis, messages: list[Message], group_id: str = GROUP_ID, date: str = DATE) -> None:
    storage = MessageStorage(redis)
    await redis.rpush(
        storage._make_key(group_id, date),
        *[json.dumps(m.to_dict()) for m in messages],
    )


def contains(messages: list[Message], index: int) -> bool:
    return any(m.text == f"message number {index}" for m in messages)


USAGE = TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)


class ScriptedAnalyzer:
    """Analyzer stand-in: one shared item plus one item named after the last message."""

    def __init__(self, kind: str, fail_when: Callable[[list[Message]], bool] | None = None):
        self.kind = kind
        self.fail_when = fail_when or (lambda messages: False)
        self.calls: list[list[Message]] = []

    async def analyze(self, messages, stats) -> AnalysisResult:
        self.calls.append(messages)
        if self.fail_when(messages):
            raise RuntimeError(f"{self.kind} analysis failed")

        last = messages[-1]
        sender = Contributor(user_id=last.user_id, nickname=last.nickname)
        if self.kind == "topics":
            items = [
                Topic(name="daily chatter", contributors=[sender], detail=f"until {last.text}"),
                Topic(name=f"topic of {last.text}", contributors=[sender], detail="details"),
            ]
        else:
            shared = Contributor(user_id="1000", nickname="user0")
            items = [
                Quote(text="same joke every day", sender=shared, reason="classic"),
                Quote(text=last.text, sender=sender, reason="last word"),
            ]
        return AnalysisResult(items=items, usage=USAGE)

    def calls_containing(self, index: int) -> int:
        return sum(1 for call in self.calls if contains(call, index))


class FailOnce:
    """Predicate that matches a message index only the first time it is seen."""

    def __init__(self, index: int):
        self.index = index
        self.failed = False

    def __call__(self, messages: list[Message]) -> bool:
        if not self.failed and contains(messages, self.index):
            self.failed = True
            return True
        return False


class FakeLLM:
    """LLM client stand-in returning scripted completions."""

    def __init__(self, *contents: str):
        self.contents = list(contents)
        self.prompts: list[str] = []

    async def chat(self, prompt, max_tokens=None, temperature=None) -> LLMResponse:
        self.prompts.append(prompt)
        return LLMResponse(content=self.contents.pop(0), usage=USAGE)
