"""Composition root: builds every component from settings and a Redis client."""

import logging

from redis.asyncio import Redis

from group_insight.analysis.batch_analyzer import BatchAnalyzer
from group_insight.analysis.statistics import StatisticsService
from group_insight.analyzers.quotes import GoldenQuoteAnalyzer
from group_insight.analyzers.titles import UserTitleAnalyzer
from group_insight.analyzers.topics import TopicAnalyzer
from group_insight.config import Settings
from group_insight.llm.client import LLMClient
from group_insight.report.assembler import ReportAssembler
from group_insight.report.generator import ReportGenerator
from group_insight.scheduler.service import ReportScheduler
from group_insight.services import ServiceHandle
from group_insight.storage.batch_cache import BatchCacheStore
from group_insight.storage.cooldown import CooldownGate
from group_insight.storage.locks import GenerationLock
from group_insight.storage.messages import MessageStorage
from group_insight.storage.reports import ReportStorage
from group_insight.telegram.bot import create_bot
from group_insight.telegram.delivery import TelegramReportDelivery

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Owns the application's components and their lifecycle."""

    def __init__(self, settings: Settings, redis: Redis):
        self.redis = redis
        self._started = False
        self._build(settings)

    def _build(self, settings: Settings) -> None:
        self.settings = settings
        prefix = settings.key_prefix

        self.messages = MessageStorage(redis=self.redis, key_prefix=prefix, retention_days=settings.message_retention_days)
        self.reports = ReportStorage(redis=self.redis, key_prefix=prefix, retention_days=settings.report_retention_days)
        self.batch_cache = BatchCacheStore(redis=self.redis, key_prefix=prefix, ttl_seconds=settings.batch_cache_ttl_seconds)
        self.lock = GenerationLock(redis=self.redis, key_prefix=prefix, ttl_seconds=settings.generation_lock_ttl_seconds)
        self.cooldown = CooldownGate(
            redis=self.redis,
            key_prefix=prefix,
            cooldown_minutes=settings.cooldown_minutes,
            ttl_seconds=settings.cooldown_ttl_seconds,
        )
        self.statistics = StatisticsService(
            night_start_hour=settings.night_start_hour,
            night_end_hour=settings.night_end_hour,
            tz=settings.timezone,
        )

        self.llm = self._build_llm(settings)
        self.delivery = self._build_delivery(settings)

        llm = self.llm.instance
        self.batch_analyzer = BatchAnalyzer(
            cache=self.batch_cache,
            statistics=self.statistics,
            topic_analyzer=TopicAnalyzer(llm, settings.timezone) if llm and settings.topic_enabled else None,
            quote_analyzer=GoldenQuoteAnalyzer(
                llm,
                settings.timezone,
                max_quotes=settings.max_golden_quotes,
                min_length=settings.min_quote_length,
                max_length=settings.max_quote_length,
            ) if llm and settings.golden_quote_enabled else None,
            overlap=settings.batch_overlap,
        )
        self.assembler = ReportAssembler(
            messages=self.messages,
            reports=self.reports,
            statistics=self.statistics,
            batch_analyzer=self.batch_analyzer,
            title_analyzer=UserTitleAnalyzer(
                llm,
                settings.timezone,
                max_titles=settings.max_user_titles,
                min_messages=settings.min_messages_for_title,
            ) if llm and settings.user_title_enabled else None,
            min_messages_threshold=settings.min_messages_threshold,
            batch_size=settings.batch_size,
            overlap=settings.batch_overlap,
        )
        self.generator = ReportGenerator(
            assembler=self.assembler,
            reports=self.reports,
            lock=self.lock,
            cooldown=self.cooldown,
        )
        self.scheduler = ReportScheduler(
            settings=settings,
            generator=self.generator,
            messages=self.messages,
            reports=self.reports,
            delivery=self.delivery,
        )

    def _build_llm(self, settings: Settings) -> ServiceHandle[LLMClient]:
        if not settings.llm_api_key:
            logger.warning("LLM_API_KEY not set, report analysis is disabled")
            return ServiceHandle.disabled("llm", "LLM_API_KEY not set")
        try:
            client = LLMClient(settings)
        except Exception as e:
            logger.error(f"Failed to initialize LLM client: {e}")
            return ServiceHandle.failed("llm", str(e))
        logger.info(f"LLM client initialized (model: {settings.llm_model})")
        return ServiceHandle.ready("llm", client)

    def _build_delivery(self, settings: Settings) -> ServiceHandle[TelegramReportDelivery]:
        if not settings.telegram_bot_token:
            return ServiceHandle.disabled("delivery", "TELEGRAM_BOT_TOKEN not set")
        try:
            bot = create_bot(settings)
        except Exception as e:
            logger.error(f"Failed to create Telegram bot: {e}")
            return ServiceHandle.failed("delivery", str(e))
        return ServiceHandle.ready("delivery", TelegramReportDelivery(bot))

    async def start(self) -> None:
        if self._started:
            return
        if self.llm.is_ready:
            await self.scheduler.start()
        else:
            logger.warning(f"Report scheduler not started: llm is {self.llm.status.value}")
        self._started = True
        logger.info("Service container started")

    async def stop(self) -> None:
        if self._started:
            await self.scheduler.stop()
            self._started = False
        if self.llm.is_ready:
            await self.llm.get().close()
        if self.delivery.is_ready:
            await self.delivery.get().close()
        logger.info("Service container stopped")

    async def reconfigure(self, settings: Settings) -> None:
        """Rebuild every component from new settings, restarting if running."""
        was_started = self._started
        await self.stop()
        self._build(settings)
        if was_started:
            await self.start()
        logger.info("Service container reconfigured")

    def status(self) -> dict[str, dict[str, str]]:
        return {
            "llm": self.llm.describe(),
            "delivery": self.delivery.describe(),
        }
