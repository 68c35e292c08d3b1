"""Cooldown gate: advisory rate limit on user-triggered regeneration."""

import json
import logging
import math
import time
from dataclasses import asdict, dataclass
from typing import Callable

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


@dataclass
class CooldownRecord:
    generated_at: float
    generated_by: str
    message_count: int


@dataclass
class CooldownStatus:
    in_cooldown: bool
    remaining_minutes: int = 0
    last_generated: CooldownRecord | None = None


class CooldownGate:
    """Reports whether a group/date is inside its cooldown window. Enforcement is up to the caller."""

    def __init__(
        self,
        redis: Redis,
        key_prefix: str = "group_insight",
        cooldown_minutes: int = 10,
        ttl_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cooldown gate.

        Args:
            redis: Redis client instance
            key_prefix: Namespace for all keys
            cooldown_minutes: Window after a generation during which users get the cached report
            ttl_seconds: Lifetime of the cooldown record (default: 24 hours)
            clock: Time source, seconds since epoch
        """
        self.redis = redis
        self.cooldown_minutes = cooldown_minutes
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._prefix = f"{key_prefix}:cooldown"

    def _make_key(self, group_id: str, date: str) -> str:
        return f"{self._prefix}:{group_id}:{date}"

    async def check(self, group_id: str, date: str, bypass: bool = False) -> CooldownStatus:
        """
        Check the cooldown state.

        Args:
            group_id: Group ID
            date: Date (YYYY-MM-DD)
            bypass: Privileged caller (admin or scheduler), never in cooldown

        Returns:
            Cooldown status with the last generation record if any
        """
        if bypass:
            return CooldownStatus(in_cooldown=False)

        key = self._make_key(group_id, date)
        data = await self.redis.get(key)
        if data is None:
            return CooldownStatus(in_cooldown=False)

        try:
            record = CooldownRecord(**json.loads(data))
        except (ValueError, TypeError) as e:
            logger.warning(f"Corrupt cooldown record {key}: {e}")
            return CooldownStatus(in_cooldown=False)

        window = self.cooldown_minutes * 60
        elapsed = self.clock() - record.generated_at
        if elapsed >= window:
            return CooldownStatus(in_cooldown=False, last_generated=record)

        return CooldownStatus(
            in_cooldown=True,
            remaining_minutes=max(1, math.ceil((window - elapsed) / 60)),
            last_generated=record,
        )

    async def mark(self, group_id: str, date: str, generated_by: str, message_count: int) -> CooldownRecord:
        """Record a generation, starting a new cooldown window."""
        record = CooldownRecord(
            generated_at=self.clock(),
            generated_by=generated_by,
            message_count=message_count,
        )
        key = self._make_key(group_id, date)
        await self.redis.set(key, json.dumps(asdict(record)), ex=self.ttl_seconds)
        logger.debug(f"Cooldown started for {key} by {generated_by}")
        return record
