from group_insight.analysis.merge import merge_golden_quotes, merge_topics, resolve_quote_senders, sum_usage
from group_insight.constants import TOPIC_CONTINUATION_LABEL
from group_insight.models import Contributor, Quote, Topic, TokenUsage

ALICE = Contributor(user_id="1", nickname="alice")
BOB = Contributor(user_id="2", nickname="bob")
CAROL = Contributor(user_id=None, nickname="carol")


def test_merge_with_empty_is_identity():
    topics = [Topic("release", [ALICE], "shipping v2"), Topic("lunch", [BOB], "pizza")]
    quotes = [Quote("ship it", ALICE, "bold"), Quote("ship it", BOB, "echo")]

    assert merge_topics(topics, []) == topics
    assert merge_golden_quotes(quotes, []) == quotes


def test_same_quote_appears_once():
    first = [Quote("ship it", ALICE, "bold")]
    second = [Quote("ship it", ALICE, "said again"), Quote("later", BOB, "calm")]

    merged = merge_golden_quotes(first, second)

    assert [q.text for q in merged] == ["ship it", "later"]
    assert merged[0].reason == "bold"


def test_quotes_from_different_senders_are_kept():
    merged = merge_golden_quotes([Quote("hi", ALICE, "")], [Quote("hi", BOB, "")])
    assert len(merged) == 2


def test_quote_sender_without_id_uses_nickname():
    merged = merge_golden_quotes([Quote("hi", CAROL, "")], [Quote("hi", Contributor(None, "carol"), "")])
    assert len(merged) == 1


def test_same_named_topic_is_extended():
    existing = [Topic("release", [ALICE, BOB], "planning")]
    incoming = [Topic("release", [BOB, CAROL], "shipped")]

    merged = merge_topics(existing, incoming)

    assert len(merged) == 1
    topic = merged[0]
    assert topic.detail.startswith("planning")
    assert f"{TOPIC_CONTINUATION_LABEL} shipped" in topic.detail
    identities = [c.identity for c in topic.contributors]
    assert identities == ["1", "2", "carol"]
    assert len(set(identities)) == len(identities)


def test_new_topics_are_appended_in_order():
    merged = merge_topics([Topic("a", [], "x")], [Topic("b", [], "y"), Topic("c", [], "z")])
    assert [t.name for t in merged] == ["a", "b", "c"]


def test_merge_does_not_mutate_inputs():
    existing = [Topic("release", [ALICE], "planning")]
    merge_topics(existing, [Topic("release", [BOB], "shipped")])
    assert existing[0].detail == "planning"
    assert existing[0].contributors == [ALICE]


def test_sum_usage_ignores_missing():
    total = sum_usage(TokenUsage(1, 2, 3), None, TokenUsage(10, 20, 30))
    assert total == TokenUsage(11, 22, 33)


def test_resolved_senders_collapse_duplicates():
    quotes = [
        Quote("ship it", Contributor(None, "alice"), "bold"),
        Quote("ship it", ALICE, "again"),
        Quote("who knows", CAROL, "shrug"),
    ]

    resolved = resolve_quote_senders(quotes, {"alice": "1", "bob": "2"})

    assert [(q.text, q.sender.user_id) for q in resolved] == [("ship it", "1"), ("who knows", None)]
    assert resolved[0].reason == "bold"
    assert quotes[0].sender.user_id is None
