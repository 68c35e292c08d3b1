"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Telegram Bot (report delivery only)
    telegram_bot_token: str | None = None

    # LLM Provider (OpenAI-compatible)
    llm_api_key: str | None = None
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2000
    # One analyzer call takes at most (llm_retries + 1) * llm_timeout plus backoff,
    # which must stay below generation_lock_ttl_seconds (3 * 60 + 6 < 300)
    llm_timeout: float = 60.0  # seconds per attempt
    llm_retries: int = 2
    llm_backoff: float = 2.0  # linear: backoff * attempt

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "group_insight"
    message_retention_days: int = 7

    # Analysis
    min_messages_threshold: int = 20
    batch_size: int = 1000
    batch_overlap: int = 20
    batch_cache_ttl_seconds: int = 86400  # 24 hours
    topic_enabled: bool = True
    golden_quote_enabled: bool = True
    user_title_enabled: bool = True
    max_golden_quotes: int = 5
    min_quote_length: int = 5
    max_quote_length: int = 100
    max_user_titles: int = 8
    min_messages_for_title: int = 5
    night_start_hour: int = 0
    night_end_hour: int = 6

    # Reports
    report_retention_days: int = 0  # 0 = keep forever

    # Generation control
    generation_lock_ttl_seconds: int = 300  # must exceed the worst-case analyzer call, see llm_timeout
    cooldown_minutes: int = 10
    cooldown_ttl_seconds: int = 86400

    # Schedule
    schedule_enabled: bool = True
    schedule_whitelist: list[str] = []
    schedule_min_messages: int = 99
    schedule_concurrency: int = 3
    schedule_hour: int = 23
    schedule_minute: int = 55
    schedule_deliver: bool = False
    timezone: str = "UTC"

    # HTTP
    admin_token: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
