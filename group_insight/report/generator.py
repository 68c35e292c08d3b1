"""Report generation entry point: cooldown, lock, build, mark."""

import logging
from dataclasses import dataclass
from enum import Enum

from group_insight.constants import (
    COOLDOWN_MESSAGE,
    GENERATION_FAILED_MESSAGE,
    GENERATION_IN_PROGRESS_MESSAGE,
)
from group_insight.models import Report
from group_insight.report.assembler import ReportAssembler
from group_insight.storage.batch_cache import BatchCacheEntry
from group_insight.storage.cooldown import CooldownGate
from group_insight.storage.locks import GenerationLock
from group_insight.storage.reports import ReportStorage

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    GENERATED = "generated"
    CACHED = "cached"
    IN_PROGRESS = "in_progress"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class GenerationOutcome:
    status: GenerationStatus
    report: Report | None = None
    reason: str = ""
    remaining_minutes: int = 0

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "remaining_minutes": self.remaining_minutes,
            "report": self.report.to_dict() if self.report else None,
        }


class ReportGenerator:
    """Guards report builds with the cooldown gate and the generation lock."""

    def __init__(
        self,
        assembler: ReportAssembler,
        reports: ReportStorage,
        lock: GenerationLock,
        cooldown: CooldownGate,
    ):
        self.assembler = assembler
        self.reports = reports
        self.lock = lock
        self.cooldown = cooldown

    async def generate(
        self,
        group_id: str,
        date: str,
        requested_by: str,
        privileged: bool = False,
        force_regenerate: bool = False,
    ) -> GenerationOutcome:
        """
        Generate (or serve) the report of a group for a date.

        Args:
            group_id: Group ID
            date: Date (YYYY-MM-DD)
            requested_by: Who asked, recorded in the cooldown record
            privileged: Admin or scheduler, bypasses the cooldown
            force_regenerate: Ignore cached batch results

        Returns:
            Tagged outcome; lock contention, cooldown and skips are not failures
        """
        status = await self.cooldown.check(group_id, date, bypass=privileged)
        if status.in_cooldown:
            cached = await self.reports.get_report(group_id, date)
            if cached:
                logger.info(f"Serving cached report for {group_id}/{date} ({status.remaining_minutes} min cooldown left)")
                return GenerationOutcome(
                    status=GenerationStatus.CACHED,
                    report=cached,
                    reason=COOLDOWN_MESSAGE.format(minutes=status.remaining_minutes),
                    remaining_minutes=status.remaining_minutes,
                )

        async with self.lock.hold(group_id, date) as acquired:
            if not acquired:
                return GenerationOutcome(
                    status=GenerationStatus.IN_PROGRESS,
                    reason=GENERATION_IN_PROGRESS_MESSAGE,
                )

            report = await self.assembler.build_report(group_id, date, force_regenerate)

            if report is None:
                return GenerationOutcome(status=GenerationStatus.FAILED, reason=GENERATION_FAILED_MESSAGE)

            if report.skipped:
                return GenerationOutcome(status=GenerationStatus.SKIPPED, report=report, reason=report.skip_reason)

            await self.cooldown.mark(group_id, date, requested_by, report.message_count)
            return GenerationOutcome(status=GenerationStatus.GENERATED, report=report)

    async def regenerate_batch(self, group_id: str, date: str, batch_index: int) -> BatchCacheEntry | None:
        """
        Re-analyze a single completed batch under the generation lock.

        Returns:
            The new cache entry, or None when another generation holds the lock

        Raises:
            IndexError: If the day has no completed batch with this index
        """
        async with self.lock.hold(group_id, date) as acquired:
            if not acquired:
                return None
            return await self.assembler.reanalyze_batch(group_id, date, batch_index)
