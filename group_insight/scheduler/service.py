"""Daily report scheduler using APScheduler."""

import logging
from collections import Counter
from dataclasses import dataclass, field

from apscheduler import AsyncScheduler
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.eventbrokers.redis import RedisEventBroker
from apscheduler.triggers.cron import CronTrigger

from group_insight.config import Settings
from group_insight.constants import DAILY_REPORT_SCHEDULE_ID, SCHEDULER_REQUESTER
from group_insight.report.generator import GenerationOutcome, GenerationStatus, ReportGenerator
from group_insight.scheduler.fanout import run_with_concurrency
from group_insight.services import ServiceHandle
from group_insight.storage.messages import MessageStorage
from group_insight.storage.reports import ReportStorage
from group_insight.telegram.delivery import TelegramReportDelivery
from group_insight.utils.timezone import resolve_tz, today

logger = logging.getLogger(__name__)


@dataclass
class GroupRunResult:
    group_id: str
    status: str  # success | skipped | failed | error
    reason: str = ""


@dataclass
class ScheduledRunSummary:
    date: str
    results: list[GroupRunResult] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return dict(Counter(r.status for r in self.results))

    def groups_with(self, status: str) -> list[str]:
        return [r.group_id for r in self.results if r.status == status]


def _map_outcome(group_id: str, outcome: GenerationOutcome) -> GroupRunResult:
    if outcome.status is GenerationStatus.GENERATED:
        return GroupRunResult(group_id, "success")
    if outcome.status in (GenerationStatus.SKIPPED, GenerationStatus.IN_PROGRESS, GenerationStatus.CACHED):
        return GroupRunResult(group_id, "skipped", outcome.reason or outcome.status.value)
    return GroupRunResult(group_id, "failed", outcome.reason)


class ReportScheduler:
    """Runs report generation for whitelisted groups once a day."""

    def __init__(
        self,
        settings: Settings,
        generator: ReportGenerator,
        messages: MessageStorage,
        reports: ReportStorage,
        delivery: ServiceHandle[TelegramReportDelivery],
    ):
        """
        Initialize report scheduler.

        Args:
            settings: Application settings (schedule section)
            generator: Report generator
            messages: Message storage, used for the cheap pre-check
            reports: Report storage, used for delivery
            delivery: Telegram delivery service handle
        """
        self.settings = settings
        self.generator = generator
        self.messages = messages
        self.reports = reports
        self.delivery = delivery
        self.scheduler: AsyncScheduler | None = None
        self._running = False

    async def start(self) -> None:
        """Start scheduler and register the daily run."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        event_broker = RedisEventBroker(client_or_url=self.settings.redis_url)
        data_store = MemoryDataStore()

        self.scheduler = AsyncScheduler(data_store, event_broker)
        await self.scheduler.__aenter__()
        await self.scheduler.start_in_background()
        self._running = True

        hour, minute = self.settings.schedule_hour, self.settings.schedule_minute
        await self.scheduler.add_schedule(
            self._scheduled_tick,
            CronTrigger(hour=hour, minute=minute, timezone=resolve_tz(self.settings.timezone)),
            id=DAILY_REPORT_SCHEDULE_ID,
        )
        logger.info(f"Scheduled daily reports at {hour:02d}:{minute:02d} {self.settings.timezone}")

    async def stop(self) -> None:
        """Stop scheduler gracefully."""
        if not self._running or not self.scheduler:
            return

        await self.scheduler.__aexit__(None, None, None)
        self._running = False
        logger.info("Report scheduler stopped")

    async def run_scheduled(
        self,
        whitelist: list[str],
        concurrency: int = 3,
        date: str | None = None,
    ) -> ScheduledRunSummary:
        """
        Generate reports for every whitelisted group.

        Each group is isolated: one failure never affects the others.

        Args:
            whitelist: Group IDs to process
            concurrency: Maximum groups processed at the same time
            date: Report date (today in the configured timezone when omitted)

        Returns:
            Per-group outcome summary
        """
        date = date or today(self.settings.timezone)
        logger.info(f"Scheduled run for {len(whitelist)} groups on {date} (concurrency {concurrency})")

        async def handle(group_id: str) -> GroupRunResult:
            count = await self.messages.count_messages(group_id, date)
            if count < self.settings.schedule_min_messages:
                return GroupRunResult(group_id, "skipped", "insufficient_messages")
            outcome = await self.generator.generate(
                group_id,
                date,
                requested_by=SCHEDULER_REQUESTER,
                privileged=True,
            )
            return _map_outcome(group_id, outcome)

        results = await run_with_concurrency(whitelist, handle, concurrency)

        summary = ScheduledRunSummary(date=date)
        for result in results:
            if result.ok:
                summary.results.append(result.value)
            else:
                summary.results.append(GroupRunResult(result.item, "error", str(result.error)))

        counts = summary.counts
        logger.info(
            f"Scheduled run {date} done: success={counts.get('success', 0)} "
            f"skipped={counts.get('skipped', 0)} failed={counts.get('failed', 0)} "
            f"error={counts.get('error', 0)}"
        )
        return summary

    async def deliver_reports(self, group_ids: list[str], date: str) -> list[str]:
        """
        Send saved reports to their groups, one at a time.

        Returns:
            Group IDs the report was delivered to
        """
        if not self.delivery.is_ready:
            logger.info(f"Report delivery is {self.delivery.status.value}, nothing sent")
            return []
        delivery = self.delivery.get()

        async def send(group_id: str) -> bool:
            report = await self.reports.get_report(group_id, date)
            if report is None:
                logger.warning(f"No report to deliver for {group_id}/{date}")
                return False
            await delivery.deliver(group_id, report)
            return True

        results = await run_with_concurrency(group_ids, send, limit=1)
        return [r.item for r in results if r.ok and r.value]

    async def _scheduled_tick(self) -> None:
        if not self.settings.schedule_enabled:
            logger.info("Scheduled reports disabled, skipping tick")
            return
        if not self.settings.schedule_whitelist:
            logger.info("Schedule whitelist is empty, skipping tick")
            return

        try:
            summary = await self.run_scheduled(
                self.settings.schedule_whitelist,
                self.settings.schedule_concurrency,
            )
            if self.settings.schedule_deliver:
                await self.deliver_reports(summary.groups_with("success"), summary.date)
        except Exception as e:
            logger.error(f"Scheduled report run failed: {e}", exc_info=True)
