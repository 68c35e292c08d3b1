"""Usage statistics computed from a list of messages (no LLM involved)."""

from collections import Counter
from datetime import tzinfo
from typing import Any

from group_insight.models import Message
from group_insight.utils.timezone import local_datetime, resolve_tz

HOURS = 24


class StatisticsService:
    """Computes group and per-user activity statistics."""

    def __init__(
        self,
        night_start_hour: int = 0,
        night_end_hour: int = 6,
        tz: tzinfo | str | None = None,
    ):
        """
        Initialize statistics service.

        Args:
            night_start_hour: First hour (inclusive) counted as night
            night_end_hour: Last hour (exclusive) counted as night
            tz: Timezone used to bucket messages by hour
        """
        self.night_start_hour = night_start_hour
        self.night_end_hour = night_end_hour
        self.tz = tz if isinstance(tz, tzinfo) else resolve_tz(tz)

    def analyze(self, messages: list[Message]) -> dict[str, Any]:
        """
        Build the statistics block of a report.

        Args:
            messages: Messages of one group for one day

        Returns:
            JSON-serializable statistics dictionary
        """
        if not messages:
            return self.empty_stats()

        users: dict[str, dict[str, Any]] = {}
        hourly_count = [0] * HOURS
        link_sources: Counter[str] = Counter()
        total_chars = 0
        total_emojis = 0
        total_replies = 0
        total_links = 0
        total_videos = 0

        for msg in messages:
            hour = local_datetime(msg.timestamp, self.tz).hour
            length = len(msg.text)

            total_chars += length
            total_emojis += msg.emoji_count
            total_videos += msg.videos
            total_links += len(msg.links)
            link_sources.update(source or "unknown" for source in msg.links)
            if msg.has_reply:
                total_replies += 1
            hourly_count[hour] += 1

            user = users.get(msg.user_id)
            if user is None:
                user = users[msg.user_id] = {
                    "user_id": msg.user_id,
                    "nickname": msg.nickname,
                    "message_count": 0,
                    "char_count": 0,
                    "emoji_count": 0,
                    "reply_count": 0,
                    "night_count": 0,
                    "link_count": 0,
                    "video_count": 0,
                    "hourly_distribution": [0] * HOURS,
                }
            user["message_count"] += 1
            user["char_count"] += length
            user["emoji_count"] += msg.emoji_count
            user["link_count"] += len(msg.links)
            user["video_count"] += msg.videos
            user["hourly_distribution"][hour] += 1
            if msg.has_reply:
                user["reply_count"] += 1
            if self.is_night_hour(hour):
                user["night_count"] += 1

        count = len(messages)
        first = local_datetime(min(m.timestamp for m in messages), self.tz)
        last = local_datetime(max(m.timestamp for m in messages), self.tz)

        user_stats = []
        for user in users.values():
            n = user["message_count"]
            user["avg_length"] = round(user["char_count"] / n, 1)
            user["emoji_ratio"] = round(user["emoji_count"] / n, 2)
            user["reply_ratio"] = round(user["reply_count"] / n, 2)
            user["night_ratio"] = round(user["night_count"] / n, 2)
            user["share_ratio"] = round((user["link_count"] + user["video_count"]) / n, 2)
            user["most_active_hour"] = self.find_peak_hour(user["hourly_distribution"])
            user_stats.append(user)

        peak_hour = self.find_peak_hour(hourly_count)
        peak_count = hourly_count[peak_hour]

        return {
            "basic": {
                "total_messages": count,
                "total_users": len(users),
                "total_chars": total_chars,
                "total_emojis": total_emojis,
                "total_replies": total_replies,
                "reply_ratio": round(total_replies / count, 2),
                "avg_chars_per_msg": round(total_chars / count, 1),
                "date_range": {
                    "start": first.date().isoformat(),
                    "end": last.date().isoformat(),
                },
            },
            "users": user_stats,
            "hourly": {
                "hourly_count": hourly_count,
                "hourly_activity": [self._activity_level(c, peak_count) for c in hourly_count],
                "peak_hour": peak_hour,
                "peak_count": peak_count,
                "peak_period": self.hour_range(peak_hour),
            },
            "emoji": {"total": total_emojis},
            "links": {"total": total_links, "by_source": dict(link_sources)},
            "videos": total_videos,
            "top_users": self.rank_users(user_stats),
        }

    def is_night_hour(self, hour: int) -> bool:
        return self.night_start_hour <= hour < self.night_end_hour

    @staticmethod
    def find_peak_hour(hourly_count: list[int]) -> int:
        # First hour with the highest count wins ties
        peak_hour = 0
        for hour, count in enumerate(hourly_count):
            if count > hourly_count[peak_hour]:
                peak_hour = hour
        return peak_hour

    @staticmethod
    def hour_range(hour: int) -> str:
        return f"{hour:02d}:00-{(hour + 1) % HOURS:02d}:00"

    @staticmethod
    def rank_users(user_stats: list[dict[str, Any]]) -> list[dict[str, Any]]:
        ranked = sorted(user_stats, key=lambda u: u["message_count"], reverse=True)
        return [
            {
                "user_id": u["user_id"],
                "nickname": u["nickname"],
                "message_count": u["message_count"],
                "rank": i,
            }
            for i, u in enumerate(ranked, 1)
        ]

    @staticmethod
    def _activity_level(count: int, peak_count: int) -> str:
        if count == 0:
            return "none"
        ratio = count / peak_count
        if ratio >= 0.7:
            return "high"
        if ratio >= 0.4:
            return "medium"
        return "low"

    def empty_stats(self) -> dict[str, Any]:
        return {
            "basic": {
                "total_messages": 0,
                "total_users": 0,
                "total_chars": 0,
                "total_emojis": 0,
                "total_replies": 0,
                "reply_ratio": 0,
                "avg_chars_per_msg": 0,
                "date_range": {"start": "", "end": ""},
            },
            "users": [],
            "hourly": {
                "hourly_count": [0] * HOURS,
                "hourly_activity": ["none"] * HOURS,
                "peak_hour": 0,
                "peak_count": 0,
                "peak_period": self.hour_range(0),
            },
            "emoji": {"total": 0},
            "links": {"total": 0, "by_source": {}},
            "videos": 0,
            "top_users": [],
        }
