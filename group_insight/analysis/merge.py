"""Merging of partial analysis results from different batches."""

from group_insight.constants import TOPIC_CONTINUATION_LABEL
from group_insight.models import Contributor, Quote, Topic, TokenUsage


def _union_contributors(
    existing: list[Contributor],
    incoming: list[Contributor],
) -> list[Contributor]:
    seen = {c.identity for c in existing}
    merged = list(existing)
    for contributor in incoming:
        if contributor.identity not in seen:
            seen.add(contributor.identity)
            merged.append(contributor)
    return merged


def merge_topics(existing: list[Topic], incoming: list[Topic]) -> list[Topic]:
    """
    Merge topics by exact name.

    A topic already present keeps its detail as a prefix and gets the
    incoming detail appended as a continuation. Existing topics come first,
    new ones are appended in arrival order. The detail order depends on the
    call order, so the operation is not strictly commutative.
    """
    merged: dict[str, Topic] = {topic.name: topic for topic in existing}

    for topic in incoming:
        current = merged.get(topic.name)
        if current is None:
            merged[topic.name] = topic
            continue
        merged[topic.name] = Topic(
            name=current.name,
            contributors=_union_contributors(current.contributors, topic.contributors),
            detail=f"{current.detail}\n\n{TOPIC_CONTINUATION_LABEL} {topic.detail}",
        )

    return list(merged.values())


def merge_golden_quotes(existing: list[Quote], incoming: list[Quote]) -> list[Quote]:
    """Concatenate quotes, keeping the first occurrence of each (sender, text) pair."""
    seen: set[tuple[str, str]] = set()
    merged = []
    for quote in [*existing, *incoming]:
        if quote.key in seen:
            continue
        seen.add(quote.key)
        merged.append(quote)
    return merged


def sum_usage(*usages: TokenUsage | None) -> TokenUsage:
    total = TokenUsage()
    for usage in usages:
        total = total + usage
    return total


def resolve_quote_senders(quotes: list[Quote], user_ids: dict[str, str]) -> list[Quote]:
    """Fill in missing sender ids from a nickname -> user id map, then drop duplicates."""
    resolved = []
    for quote in quotes:
        sender = quote.sender
        if sender.user_id is None and sender.nickname in user_ids:
            sender = Contributor(user_id=user_ids[sender.nickname], nickname=sender.nickname)
        resolved.append(Quote(text=quote.text, sender=sender, reason=quote.reason))
    return merge_golden_quotes(resolved, [])
