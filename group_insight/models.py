"""Data models shared by the analysis pipeline."""

import time
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class Message:
    """A normalized group chat message, as written by the collector."""

    user_id: str
    nickname: str
    text: str
    timestamp: int  # unix seconds
    images: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)  # source label per shared link/card
    videos: int = 0
    emoji_count: int = 0
    has_reply: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            user_id=str(data["user_id"]),
            nickname=data.get("nickname") or str(data["user_id"]),
            text=data.get("text", ""),
            timestamp=int(data["timestamp"]),
            images=list(data.get("images", [])),
            links=list(data.get("links", [])),
            videos=int(data.get("videos", 0)),
            emoji_count=int(data.get("emoji_count", 0)),
            has_reply=bool(data.get("has_reply", False)),
        )


@dataclass(frozen=True)
class Contributor:
    user_id: str | None
    nickname: str

    @property
    def identity(self) -> str:
        """Key used to deduplicate people across batches."""
        return self.user_id or self.nickname

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Contributor":
        user_id = data.get("user_id")
        return cls(
            user_id=str(user_id) if user_id else None,
            nickname=data.get("nickname", ""),
        )


@dataclass
class Topic:
    name: str
    contributors: list[Contributor]
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Topic":
        return cls(
            name=data["name"],
            contributors=[Contributor.from_dict(c) for c in data.get("contributors", [])],
            detail=data.get("detail", ""),
        )


@dataclass
class Quote:
    text: str
    sender: Contributor
    reason: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.sender.identity, self.text)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Quote":
        return cls(
            text=data["text"],
            sender=Contributor.from_dict(data.get("sender", {})),
            reason=data.get("reason", ""),
        )


@dataclass
class UserTitle:
    nickname: str
    user_id: str | None
    title: str
    mbti: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserTitle":
        return cls(
            nickname=data["nickname"],
            user_id=data.get("user_id"),
            title=data.get("title", ""),
            mbti=data.get("mbti", ""),
            reason=data.get("reason", ""),
        )


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage | None") -> "TokenUsage":
        if other is None:
            return TokenUsage(self.prompt_tokens, self.completion_tokens, self.total_tokens)
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TokenUsage":
        data = data or {}
        return cls(
            prompt_tokens=int(data.get("prompt_tokens", 0)),
            completion_tokens=int(data.get("completion_tokens", 0)),
            total_tokens=int(data.get("total_tokens", 0)),
        )


@dataclass
class AnalysisResult:
    """Output of one analyzer call: parsed items plus the tokens spent."""

    items: list[Any]
    usage: TokenUsage | None = None


@dataclass
class Report:
    group_id: str
    date: str
    stats: dict[str, Any]
    topics: list[Topic] = field(default_factory=list)
    quotes: list[Quote] = field(default_factory=list)
    user_titles: list[UserTitle] = field(default_factory=list)
    message_count: int = 0
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    saved_at: float = field(default_factory=time.time)
    incremental: bool = False
    skipped: bool = False
    skip_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "date": self.date,
            "stats": self.stats,
            "topics": [t.to_dict() for t in self.topics],
            "quotes": [q.to_dict() for q in self.quotes],
            "user_titles": [u.to_dict() for u in self.user_titles],
            "message_count": self.message_count,
            "token_usage": self.token_usage.to_dict(),
            "saved_at": self.saved_at,
            "incremental": self.incremental,
            "skipped": self.skipped,
            "skip_reason": self.skip_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Report":
        return cls(
            group_id=str(data["group_id"]),
            date=data["date"],
            stats=data.get("stats", {}),
            topics=[Topic.from_dict(t) for t in data.get("topics", [])],
            quotes=[Quote.from_dict(q) for q in data.get("quotes", [])],
            user_titles=[UserTitle.from_dict(u) for u in data.get("user_titles", [])],
            message_count=int(data.get("message_count", 0)),
            token_usage=TokenUsage.from_dict(data.get("token_usage")),
            saved_at=float(data.get("saved_at", 0)),
            incremental=bool(data.get("incremental", False)),
            skipped=bool(data.get("skipped", False)),
            skip_reason=data.get("skip_reason", ""),
        )
