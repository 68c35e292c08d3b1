"""Report assembly: statistics, batched analysis, remainder pass and merge."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from group_insight.analysis.batch_analyzer import BatchAnalyzer
from group_insight.analysis.batching import plan_batches, slice_remainder
from group_insight.analysis.merge import merge_golden_quotes, merge_topics, resolve_quote_senders, sum_usage
from group_insight.analysis.statistics import StatisticsService
from group_insight.analyzers.titles import UserTitleAnalyzer
from group_insight.constants import NOT_ENOUGH_MESSAGES_MESSAGE
from group_insight.models import Message, Report, UserTitle, TokenUsage
from group_insight.storage.batch_cache import BatchCacheEntry, BatchState
from group_insight.storage.messages import MessageStorage
from group_insight.storage.reports import ReportStorage

logger = logging.getLogger(__name__)


class PipelineFailure(Exception):
    """The full pass or the remainder pass failed; no report is produced."""


class PipelinePath(str, Enum):
    SKIPPED = "skipped"
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass
class BatchStatus:
    index: int
    state: BatchState
    attempts: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        return {"index": self.index, "state": self.state.value, "attempts": self.attempts, "error": self.error}


@dataclass
class BatchOverview:
    total_messages: int
    batch_size: int
    batches: list[BatchStatus] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_messages": self.total_messages,
            "batch_size": self.batch_size,
            "completed_batches": len(self.batches),
            "batches": [b.to_dict() for b in self.batches],
        }


class ReportAssembler:
    """Builds and persists the daily report of a group."""

    def __init__(
        self,
        messages: MessageStorage,
        reports: ReportStorage,
        statistics: StatisticsService,
        batch_analyzer: BatchAnalyzer,
        title_analyzer: UserTitleAnalyzer | None = None,
        min_messages_threshold: int = 20,
        batch_size: int = 1000,
        overlap: int = 20,
    ):
        self.messages = messages
        self.reports = reports
        self.statistics = statistics
        self.batch_analyzer = batch_analyzer
        self.title_analyzer = title_analyzer
        self.min_messages_threshold = min_messages_threshold
        self.batch_size = batch_size
        self.overlap = overlap

    def choose_path(self, total: int) -> PipelinePath:
        if total < self.min_messages_threshold:
            return PipelinePath.SKIPPED
        if total <= self.batch_size:
            return PipelinePath.FULL
        return PipelinePath.INCREMENTAL

    async def build_report(
        self,
        group_id: str,
        date: str,
        force_regenerate: bool = False,
    ) -> Report | None:
        """
        Build the report for a group and date.

        Args:
            group_id: Group ID
            date: Date (YYYY-MM-DD)
            force_regenerate: Ignore cached batch results

        Returns:
            The report (a stats-only skipped report below the threshold, not
            persisted), or None when the analysis failed
        """
        messages = await self.load_messages(group_id, date)
        stats = self.statistics.analyze(messages)
        path = self.choose_path(len(messages))

        logger.info(f"Building report for {group_id}/{date}: {len(messages)} messages, path={path.value}")

        if path is PipelinePath.SKIPPED:
            return Report(
                group_id=group_id,
                date=date,
                stats=stats,
                message_count=len(messages),
                skipped=True,
                skip_reason=NOT_ENOUGH_MESSAGES_MESSAGE.format(threshold=self.min_messages_threshold),
            )

        try:
            if path is PipelinePath.FULL:
                topics, quotes, usage = await self._full_pass(messages)
            else:
                topics, quotes, usage = await self._incremental_pass(group_id, date, messages, force_regenerate)
        except PipelineFailure as e:
            logger.error(f"Report for {group_id}/{date} failed: {e}", exc_info=e.__cause__)
            return None

        # Batches resolve senders from their own slice only
        quotes = resolve_quote_senders(quotes, {u["nickname"]: u["user_id"] for u in stats["users"]})

        user_titles, title_usage = await self._user_titles(messages, stats)

        report = Report(
            group_id=group_id,
            date=date,
            stats=stats,
            topics=topics,
            quotes=quotes,
            user_titles=user_titles,
            message_count=len(messages),
            token_usage=sum_usage(usage, title_usage),
            incremental=path is PipelinePath.INCREMENTAL,
        )
        await self.reports.save_report(report)
        logger.info(
            f"Report for {group_id}/{date} ready: {len(topics)} topics, {len(quotes)} quotes, "
            f"{len(user_titles)} titles, {report.token_usage.total_tokens} tokens"
        )
        return report

    async def load_messages(self, group_id: str, date: str) -> list[Message]:
        messages = await self.messages.get_messages(group_id, date)
        messages.sort(key=lambda m: m.timestamp)
        return messages

    async def batch_overview(self, group_id: str, date: str) -> BatchOverview:
        """
        Describe the cached state of every completed batch of the day.

        Args:
            group_id: Group ID
            date: Date (YYYY-MM-DD)

        Returns:
            Message totals plus one status per completed batch
        """
        total = await self.messages.count_messages(group_id, date)
        plan = plan_batches(total, self.batch_size)
        overview = BatchOverview(total_messages=total, batch_size=self.batch_size)
        for batch_index in range(plan.completed_batches):
            state, entry = await self.batch_analyzer.cache.get_state(group_id, date, batch_index)
            overview.batches.append(
                BatchStatus(
                    index=batch_index,
                    state=state,
                    attempts=entry.attempts if entry else 0,
                    error=entry.error if entry else None,
                )
            )
        return overview

    async def reanalyze_batch(self, group_id: str, date: str, batch_index: int) -> BatchCacheEntry:
        """
        Analyze one completed batch again, whatever its cached state.

        The new entry counts as a first attempt.

        Raises:
            IndexError: If the day has no completed batch with this index
        """
        messages = await self.load_messages(group_id, date)
        plan = plan_batches(len(messages), self.batch_size)
        plan.bounds(batch_index)
        logger.info(f"Re-analyzing batch {batch_index} of {group_id}/{date} on request")
        return await self.batch_analyzer.analyze_batch(group_id, date, messages, plan, batch_index)

    async def _full_pass(self, messages: list[Message]):
        # Only the most recent batch_size messages are ever sent in one pass
        try:
            result = await self.batch_analyzer.analyze_messages(messages[-self.batch_size :])
        except Exception as e:
            raise PipelineFailure(f"full analysis failed: {e}") from e
        return result.topics, result.quotes, result.usage

    async def _incremental_pass(
        self,
        group_id: str,
        date: str,
        messages: list[Message],
        force_regenerate: bool,
    ):
        plan = plan_batches(len(messages), self.batch_size)
        resolution = await self.batch_analyzer.resolve(group_id, date, messages, plan, force_regenerate)
        topics, quotes, usage = resolution.topics, resolution.quotes, resolution.usage

        if plan.remainder == 0:
            return topics, quotes, usage

        remainder = slice_remainder(messages, plan, self.overlap)
        logger.info(f"Analyzing {plan.remainder} remainder messages of {group_id}/{date} (+context)")
        try:
            result = await self.batch_analyzer.analyze_messages(remainder)
        except Exception as e:
            raise PipelineFailure(f"remainder analysis failed: {e}") from e

        return (
            merge_topics(topics, result.topics),
            merge_golden_quotes(quotes, result.quotes),
            sum_usage(usage, result.usage),
        )

    async def _user_titles(self, messages: list[Message], stats: dict) -> tuple[list[UserTitle], TokenUsage | None]:
        if not self.title_analyzer:
            return [], None
        try:
            result = await self.title_analyzer.analyze(messages, stats)
        except Exception as e:
            logger.warning(f"User title analysis failed, report will have no titles: {e}")
            return [], None
        return result.items, result.usage
