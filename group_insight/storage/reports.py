"""Report storage using Redis."""

import json
import logging

from redis.asyncio import Redis

from group_insight.models import Report

logger = logging.getLogger(__name__)


class ReportStorage:
    """Redis-based storage for daily group reports."""

    def __init__(self, redis: Redis, key_prefix: str = "group_insight", retention_days: int = 0):
        """
        Initialize report storage.

        Args:
            redis: Redis client instance
            key_prefix: Namespace for all keys
            retention_days: Days to keep a report (0 = forever)
        """
        self.redis = redis
        self.retention_days = retention_days
        self._prefix = f"{key_prefix}:report"

    def _make_key(self, group_id: str, date: str) -> str:
        """Generate Redis key for a group's report on a date."""
        return f"{self._prefix}:{group_id}:{date}"

    async def save_report(self, report: Report) -> None:
        """Save (overwrite) the report for its group and date."""
        key = self._make_key(report.group_id, report.date)
        ttl = self.retention_days * 24 * 60 * 60 if self.retention_days > 0 else None
        await self.redis.set(key, json.dumps(report.to_dict(), ensure_ascii=False), ex=ttl)
        logger.info(f"Saved report {key} ({report.message_count} messages)")

    async def get_report(self, group_id: str, date: str) -> Report | None:
        """
        Get a saved report.

        Returns:
            Report or None if not found or corrupt
        """
        key = self._make_key(group_id, date)
        data = await self.redis.get(key)
        if data is None:
            logger.debug(f"Report not found: {key}")
            return None
        try:
            return Report.from_dict(json.loads(data))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Corrupt report {key}: {e}")
            return None
