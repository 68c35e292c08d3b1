"""Per-batch analysis cache using Redis."""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from redis.asyncio import Redis

from group_insight.models import Quote, Topic, TokenUsage

logger = logging.getLogger(__name__)

# Attempts allowed per batch per day: the first one plus a single retry
MAX_BATCH_ATTEMPTS = 2


class BatchState(str, Enum):
    """Lifecycle of one batch for one day."""

    UNSEEN = "unseen"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_FINAL = "failed_final"

    @classmethod
    def after_failure(cls, attempts: int) -> "BatchState":
        return cls.FAILED_FINAL if attempts >= MAX_BATCH_ATTEMPTS else cls.FAILED_RETRYABLE


@dataclass
class BatchCacheEntry:
    batch_index: int
    start_index: int
    end_index: int
    message_count: int
    state: BatchState
    attempts: int = 1
    topics: list[Topic] = field(default_factory=list)
    quotes: list[Quote] = field(default_factory=list)
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    analyzed_at: float = field(default_factory=time.time)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.state is BatchState.SUCCEEDED

    @property
    def retried(self) -> bool:
        return self.attempts > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "message_count": self.message_count,
            "state": self.state.value,
            "attempts": self.attempts,
            "success": self.success,
            "retried": self.retried,
            "topics": [t.to_dict() for t in self.topics],
            "quotes": [q.to_dict() for q in self.quotes],
            "token_usage": self.token_usage.to_dict(),
            "analyzed_at": self.analyzed_at,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchCacheEntry":
        return cls(
            batch_index=int(data["batch_index"]),
            start_index=int(data["start_index"]),
            end_index=int(data["end_index"]),
            message_count=int(data["message_count"]),
            state=BatchState(data["state"]),
            attempts=int(data.get("attempts", 1)),
            topics=[Topic.from_dict(t) for t in data.get("topics", [])],
            quotes=[Quote.from_dict(q) for q in data.get("quotes", [])],
            token_usage=TokenUsage.from_dict(data.get("token_usage")),
            analyzed_at=float(data.get("analyzed_at", 0)),
            error=data.get("error"),
        )


class BatchCacheStore:
    """Redis-based storage for batch analysis outcomes."""

    def __init__(self, redis: Redis, key_prefix: str = "group_insight", ttl_seconds: int = 86400):
        """
        Initialize batch cache.

        Args:
            redis: Redis client instance
            key_prefix: Namespace for all keys
            ttl_seconds: Entry lifetime (default: 24 hours)
        """
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self._prefix = f"{key_prefix}:batch"

    def _make_key(self, group_id: str, date: str, batch_index: int) -> str:
        """Generate Redis key for a batch entry."""
        return f"{self._prefix}:{group_id}:{date}:{batch_index}"

    async def get(self, group_id: str, date: str, batch_index: int) -> BatchCacheEntry | None:
        """
        Get a cached batch entry.

        Returns:
            The entry, or None if absent or unreadable
        """
        key = self._make_key(group_id, date, batch_index)
        data = await self.redis.get(key)
        if data is None:
            return None
        try:
            return BatchCacheEntry.from_dict(json.loads(data))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Corrupt batch cache entry {key}, treating as missing: {e}")
            return None

    async def put(
        self,
        group_id: str,
        date: str,
        batch_index: int,
        entry: BatchCacheEntry,
        ttl: int | None = None,
    ) -> None:
        key = self._make_key(group_id, date, batch_index)
        await self.redis.set(
            key,
            json.dumps(entry.to_dict(), ensure_ascii=False),
            ex=ttl or self.ttl_seconds,
        )
        logger.debug(f"Cached batch {key} state={entry.state.value} attempts={entry.attempts}")

    async def get_state(
        self,
        group_id: str,
        date: str,
        batch_index: int,
        force_regenerate: bool = False,
    ) -> tuple[BatchState, BatchCacheEntry | None]:
        """
        Classify a batch from its cached entry.

        With force_regenerate every batch is reported as unseen and the
        existing entry is ignored.
        """
        if force_regenerate:
            return BatchState.UNSEEN, None
        entry = await self.get(group_id, date, batch_index)
        if entry is None:
            return BatchState.UNSEEN, None
        return entry.state, entry
