"""Generation lock: one report build per group and date at a time."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL = 300  # 5 minutes


class GenerationLock:
    """Redis lease acquired with SET NX EX, released by delete."""

    def __init__(self, redis: Redis, key_prefix: str = "group_insight", ttl_seconds: int = DEFAULT_LOCK_TTL):
        """
        Initialize generation lock.

        Args:
            redis: Redis client instance
            key_prefix: Namespace for all keys
            ttl_seconds: Lease lifetime, bounds how long a crashed holder blocks others
        """
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self._prefix = f"{key_prefix}:generating"

    def _make_key(self, group_id: str, date: str) -> str:
        return f"{self._prefix}:{group_id}:{date}"

    async def acquire(self, group_id: str, date: str, ttl: int | None = None) -> bool:
        """
        Try to take the lock.

        Returns:
            True if acquired, False if another generation holds it
        """
        key = self._make_key(group_id, date)
        acquired = await self.redis.set(key, str(time.time()), nx=True, ex=ttl or self.ttl_seconds)
        if acquired:
            logger.debug(f"Acquired generation lock {key}")
        else:
            logger.info(f"Generation lock {key} is already held")
        return bool(acquired)

    async def release(self, group_id: str, date: str) -> None:
        key = self._make_key(group_id, date)
        await self.redis.delete(key)
        logger.debug(f"Released generation lock {key}")

    async def is_locked(self, group_id: str, date: str) -> bool:
        return bool(await self.redis.exists(self._make_key(group_id, date)))

    @asynccontextmanager
    async def hold(self, group_id: str, date: str) -> AsyncIterator[bool]:
        """Acquire for the duration of the block; yields whether it was acquired."""
        acquired = await self.acquire(group_id, date)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(group_id, date)
