"""Batch analysis with per-batch caching and a single retry per day."""

import logging
from dataclasses import dataclass, field

from group_insight.analysis.batching import BatchPlan, slice_batch
from group_insight.analysis.merge import merge_golden_quotes, merge_topics, sum_usage
from group_insight.analysis.statistics import StatisticsService
from group_insight.analyzers.quotes import GoldenQuoteAnalyzer
from group_insight.analyzers.topics import TopicAnalyzer
from group_insight.models import Message, Quote, Topic, TokenUsage
from group_insight.storage.batch_cache import BatchCacheEntry, BatchCacheStore, BatchState

logger = logging.getLogger(__name__)


@dataclass
class ContentResult:
    """Topics and quotes extracted from one slice of messages."""

    topics: list[Topic] = field(default_factory=list)
    quotes: list[Quote] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class BatchResolution:
    topics: list[Topic] = field(default_factory=list)
    quotes: list[Quote] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    analyzed: list[int] = field(default_factory=list)
    cached: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    def absorb(self, topics: list[Topic], quotes: list[Quote], usage: TokenUsage) -> None:
        self.topics = merge_topics(self.topics, topics)
        self.quotes = merge_golden_quotes(self.quotes, quotes)
        self.usage = sum_usage(self.usage, usage)


class BatchAnalyzer:
    """Runs topic and quote analysis over batches and records each outcome in the cache."""

    def __init__(
        self,
        cache: BatchCacheStore,
        statistics: StatisticsService,
        topic_analyzer: TopicAnalyzer | None,
        quote_analyzer: GoldenQuoteAnalyzer | None,
        overlap: int = 20,
    ):
        """
        Initialize batch analyzer.

        Args:
            cache: Batch cache store
            statistics: Statistics service used for per-slice stats
            topic_analyzer: Topic analyzer, None when disabled
            quote_analyzer: Golden quote analyzer, None when disabled
            overlap: Number of preceding messages passed as context
        """
        self.cache = cache
        self.statistics = statistics
        self.topic_analyzer = topic_analyzer
        self.quote_analyzer = quote_analyzer
        self.overlap = overlap

    async def analyze_messages(self, messages: list[Message]) -> ContentResult:
        """
        Extract topics and quotes from a slice of messages.

        Analyzers run one after another and both must succeed.

        Raises:
            LLMCallError: When an LLM call failed after retries
            AnalysisError: When a response could not be parsed
        """
        stats = self.statistics.analyze(messages)
        result = ContentResult()

        if self.topic_analyzer:
            topics = await self.topic_analyzer.analyze(messages, stats)
            result.topics = topics.items
            result.usage = sum_usage(result.usage, topics.usage)

        if self.quote_analyzer:
            quotes = await self.quote_analyzer.analyze(messages, stats)
            result.quotes = quotes.items
            result.usage = sum_usage(result.usage, quotes.usage)

        return result

    async def analyze_batch(
        self,
        group_id: str,
        date: str,
        messages: list[Message],
        plan: BatchPlan,
        batch_index: int,
        prior: BatchCacheEntry | None = None,
    ) -> BatchCacheEntry:
        """
        Analyze one batch and write its outcome to the cache.

        Failures are recorded, never raised. The attempt counter continues
        from the prior entry, so a failed retry becomes final.

        Args:
            group_id: Group ID
            date: Date (YYYY-MM-DD)
            messages: All messages of the day, in order
            plan: Batch plan for the day
            batch_index: Index of the batch to analyze
            prior: Cached entry that triggered this attempt, if any

        Returns:
            The entry written to the cache
        """
        batch = slice_batch(messages, plan, batch_index, self.overlap)
        attempts = prior.attempts + 1 if prior else 1

        try:
            result = await self.analyze_messages(batch.for_analysis)
        except Exception as e:
            state = BatchState.after_failure(attempts)
            logger.warning(
                f"Batch {batch_index} of {group_id}/{date} failed "
                f"(attempt {attempts}, now {state.value}): {e}"
            )
            entry = BatchCacheEntry(
                batch_index=batch_index,
                start_index=batch.start,
                end_index=batch.end,
                message_count=len(batch.messages),
                state=state,
                attempts=attempts,
                error=str(e),
            )
        else:
            entry = BatchCacheEntry(
                batch_index=batch_index,
                start_index=batch.start,
                end_index=batch.end,
                message_count=len(batch.messages),
                state=BatchState.SUCCEEDED,
                attempts=attempts,
                topics=result.topics,
                quotes=result.quotes,
                token_usage=result.usage,
            )
            logger.info(
                f"Batch {batch_index} of {group_id}/{date} analyzed: "
                f"{len(result.topics)} topics, {len(result.quotes)} quotes"
            )

        await self.cache.put(group_id, date, batch_index, entry)
        return entry

    async def resolve(
        self,
        group_id: str,
        date: str,
        messages: list[Message],
        plan: BatchPlan,
        force_regenerate: bool = False,
    ) -> BatchResolution:
        """
        Resolve every completed batch in index order.

        Cached successes are reused, unseen and retryable batches are
        analyzed, final failures are skipped.
        """
        resolution = BatchResolution()

        for batch_index in range(plan.completed_batches):
            state, entry = await self.cache.get_state(group_id, date, batch_index, force_regenerate)

            if state is BatchState.SUCCEEDED:
                resolution.cached.append(batch_index)
                resolution.absorb(entry.topics, entry.quotes, entry.token_usage)
                continue

            if state is BatchState.FAILED_FINAL:
                logger.info(f"Skipping batch {batch_index} of {group_id}/{date}: already retried")
                resolution.skipped.append(batch_index)
                continue

            if state is BatchState.FAILED_RETRYABLE:
                logger.info(f"Retrying batch {batch_index} of {group_id}/{date}")

            entry = await self.analyze_batch(group_id, date, messages, plan, batch_index, prior=entry)
            resolution.analyzed.append(batch_index)
            if entry.success:
                resolution.absorb(entry.topics, entry.quotes, entry.token_usage)
            else:
                resolution.failed.append(batch_index)

        logger.info(
            f"Resolved {plan.completed_batches} batches for {group_id}/{date}: "
            f"cached={len(resolution.cached)} analyzed={len(resolution.analyzed)} "
            f"failed={len(resolution.failed)} skipped={len(resolution.skipped)}"
        )
        return resolution
