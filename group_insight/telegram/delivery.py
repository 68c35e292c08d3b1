"""Plain-text rendering and delivery of reports to Telegram groups."""

import logging

from aiogram import Bot

from group_insight.constants import TELEGRAM_MESSAGE_LIMIT
from group_insight.models import Report

logger = logging.getLogger(__name__)


def format_report_text(report: Report) -> str:
    """Render a report as plain text that fits in one Telegram message."""
    basic = report.stats.get("basic", {})
    hourly = report.stats.get("hourly", {})

    lines = [
        f"📊 Daily report {report.date}",
        "",
        f"Messages: {basic.get('total_messages', report.message_count)}",
        f"Participants: {basic.get('total_users', 0)}",
        f"Characters: {basic.get('total_chars', 0)}",
        f"Emoji: {basic.get('total_emojis', 0)}",
    ]
    if hourly.get("peak_count"):
        lines.append(f"Most active: {hourly.get('peak_period')}")

    if report.topics:
        lines += ["", "💬 Topics"]
        for i, topic in enumerate(report.topics, 1):
            names = ", ".join(c.nickname for c in topic.contributors)
            lines.append(f"{i}. {topic.name}" + (f" ({names})" if names else ""))
            lines.append(f"   {topic.detail}")

    if report.user_titles:
        lines += ["", "🏆 Titles"]
        for title in report.user_titles:
            lines.append(f"• {title.nickname}: {title.title} [{title.mbti}]")
            lines.append(f"   {title.reason}")

    if report.quotes:
        lines += ["", "✨ Quotes"]
        for quote in report.quotes:
            lines.append(f"“{quote.text}” (by {quote.sender.nickname})")
            lines.append(f"   {quote.reason}")

    text = "\n".join(lines)
    if len(text) > TELEGRAM_MESSAGE_LIMIT:
        text = text[: TELEGRAM_MESSAGE_LIMIT - 1] + "…"
    return text


class TelegramReportDelivery:
    """Sends rendered reports through an aiogram Bot."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def deliver(self, group_id: str, report: Report) -> None:
        await self.bot.send_message(chat_id=group_id, text=format_report_text(report))
        logger.info(f"Delivered report {report.date} to {group_id}")

    async def close(self) -> None:
        await self.bot.session.close()
