"""Telegram bot setup for report delivery."""

import logging

from aiogram import Bot

from group_insight.config import Settings

logger = logging.getLogger(__name__)


def create_bot(settings: Settings) -> Bot:
    """
    Create the Telegram bot used to send reports.

    Args:
        settings: Application settings (telegram_bot_token must be set)

    Returns:
        Bot instance
    """
    if not settings.telegram_bot_token:
        raise ValueError("telegram_bot_token is not configured")
    bot = Bot(token=settings.telegram_bot_token)
    logger.info("Telegram bot created")
    return bot
