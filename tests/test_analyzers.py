import json

import pytest

from group_insight.analyzers.base import AnalysisError, parse_json_array
from group_insight.analyzers.quotes import GoldenQuoteAnalyzer
from group_insight.analyzers.titles import UserTitleAnalyzer
from group_insight.analyzers.topics import TopicAnalyzer
from group_insight.models import Message

from conftest import DAY_START, FakeLLM, make_messages


def test_parse_plain_json():
    assert parse_json_array('[{"a": 1}]') == [{"a": 1}]


def test_parse_fenced_block():
    content = 'Here you go:\n```json\n[{"a": 1}]\n```\nEnjoy'
    assert parse_json_array(content) == [{"a": 1}]


def test_parse_embedded_array():
    assert parse_json_array('Result: [1, 2, 3] done') == [1, 2, 3]


def test_parse_rejects_non_array():
    with pytest.raises(AnalysisError):
        parse_json_array('{"topic": "x"}')
    with pytest.raises(AnalysisError):
        parse_json_array("no json at all")


@pytest.mark.asyncio
async def test_topic_contributors_and_references(statistics):
    messages = make_messages(6)
    llm = FakeLLM(json.dumps([
        {
            "topic": "Release plan",
            "contributors": ["1000", "1001", "999"],
            "detail": "[1000] proposed Friday, [1001] agreed, [42] was absent",
        },
        {"topic": "", "detail": "dropped"},
    ]))

    result = await TopicAnalyzer(llm, "UTC").analyze(messages, statistics.analyze(messages))

    assert len(result.items) == 1
    topic = result.items[0]
    assert [c.nickname for c in topic.contributors] == ["user0", "user1", "999"]
    assert topic.contributors[2].user_id is None
    assert topic.detail == "@user0 proposed Friday, @user1 agreed, [42] was absent"
    assert result.usage.total_tokens == 15
    assert "[00:00] [1000]: message number 0" in llm.prompts[0]


@pytest.mark.asyncio
async def test_topics_with_no_messages_skip_llm():
    llm = FakeLLM()
    result = await TopicAnalyzer(llm).analyze([], {})
    assert result.items == []
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_topic_parse_error_propagates(statistics):
    messages = make_messages(3)
    with pytest.raises(AnalysisError, match="^topics: "):
        await TopicAnalyzer(FakeLLM("sorry, I can't")).analyze(messages, statistics.analyze(messages))


@pytest.mark.parametrize(
    "text,expected",
    [
        ("that is a great idea", True),
        ("hey", False),
        ("/start analysis", False),
        ("#hashtag only", False),
        ("123 456 789", False),
        ("https://example.com/page", False),
        ("?!?!?!", False),
        ("x" * 101, False),
    ],
)
def test_quote_candidates(text, expected):
    assert GoldenQuoteAnalyzer(FakeLLM()).is_candidate(text) is expected


@pytest.mark.asyncio
async def test_quotes_resolve_sender_and_cap(statistics):
    messages = [
        Message(user_id="7", nickname="alice", text="deploy on friday, what could go wrong", timestamp=DAY_START),
        Message(user_id="8", nickname="bob", text="ok", timestamp=DAY_START + 1),
    ]
    llm = FakeLLM(json.dumps([
        {"quote": "deploy on friday, what could go wrong", "sender": "alice", "reason": "famous last words"},
        {"quote": "second", "sender": "stranger", "reason": "r"},
        {"quote": "third", "sender": "alice", "reason": "r"},
    ]))

    analyzer = GoldenQuoteAnalyzer(llm, max_quotes=2)
    result = await analyzer.analyze(messages, statistics.analyze(messages))

    assert len(result.items) == 2
    assert result.items[0].sender.user_id == "7"
    assert result.items[1].sender.user_id is None
    assert "bob: ok" not in llm.prompts[0]


@pytest.mark.asyncio
async def test_quotes_without_candidates_skip_llm(statistics):
    messages = [Message(user_id="1", nickname="a", text="ok", timestamp=DAY_START)]
    llm = FakeLLM()

    result = await GoldenQuoteAnalyzer(llm).analyze(messages, statistics.analyze(messages))

    assert result.items == []
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_titles_for_active_users(statistics):
    messages = make_messages(12, users=2) + [
        Message(user_id="9", nickname="lurker", text="hi all", timestamp=DAY_START + 100)
    ]
    llm = FakeLLM(json.dumps([
        {"user": "user0", "title": "Chief Talker", "mbti": "enfp", "reason": "never stops"},
        {"user": "user1", "title": "Echo", "mbti": "istj"},
    ]))

    analyzer = UserTitleAnalyzer(llm, min_messages=5)
    result = await analyzer.analyze(messages, statistics.analyze(messages))

    assert len(result.items) == 1
    title = result.items[0]
    assert title.mbti == "ENFP"
    assert title.user_id == "1000"
    assert "lurker" not in llm.prompts[0]


@pytest.mark.asyncio
async def test_titles_without_active_users_skip_llm(statistics):
    messages = make_messages(3)
    llm = FakeLLM()

    result = await UserTitleAnalyzer(llm, min_messages=5).analyze(messages, statistics.analyze(messages))

    assert result.items == []
    assert llm.prompts == []
