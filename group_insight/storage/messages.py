"""Daily group message storage using Redis lists."""

import json
import logging

from redis.asyncio import Redis

from group_insight.models import Message

logger = logging.getLogger(__name__)


class MessageStorage:
    """Redis-based storage for a group's messages, one list per day."""

    def __init__(self, redis: Redis, key_prefix: str = "group_insight", retention_days: int = 7):
        """
        Initialize message storage.

        Args:
            redis: Redis client instance
            key_prefix: Namespace for all keys
            retention_days: Days a daily list is kept after its first message
        """
        self.redis = redis
        self._prefix = f"{key_prefix}:msg"
        self.retention_seconds = retention_days * 24 * 60 * 60

    def _make_key(self, group_id: str, date: str) -> str:
        """Generate Redis key for a group's messages on a date."""
        return f"{self._prefix}:{group_id}:{date}"

    async def append_message(self, group_id: str, date: str, message: Message) -> None:
        """
        Append a message to the group's list for the date.

        Expiry is set once, when the list is first created, so new messages
        do not keep extending it.
        """
        key = self._make_key(group_id, date)
        await self.redis.rpush(key, json.dumps(message.to_dict(), ensure_ascii=False))

        if self.retention_seconds > 0 and await self.redis.ttl(key) == -1:
            await self.redis.expire(key, self.retention_seconds)
            logger.debug(f"Set expiry on {key} ({self.retention_seconds}s)")

    async def get_messages(self, group_id: str, date: str) -> list[Message]:
        """
        Get all messages of a group for a date, in arrival order.

        Args:
            group_id: Group ID
            date: Date (YYYY-MM-DD)

        Returns:
            List of messages (unparseable entries are skipped)
        """
        key = self._make_key(group_id, date)
        raw_messages = await self.redis.lrange(key, 0, -1)

        messages = []
        for raw in raw_messages:
            try:
                messages.append(Message.from_dict(json.loads(raw)))
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Failed to parse message in {key}: {e}")
        return messages

    async def count_messages(self, group_id: str, date: str) -> int:
        return await self.redis.llen(self._make_key(group_id, date))
