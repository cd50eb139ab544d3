"""
Telegram notifications for newly ingested articles.

Each subscriber in ``user_preferences`` receives an article when its tags
intersect the subscriber's selected tags; an empty selection means the
subscriber receives everything. Without a bot token the notifier only
logs (graceful degradation).
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from opennews.crawler.models import ArticleRecord
from opennews.telegram.formatters import format_article_message, split_message
from opennews.utils.config import get_settings
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

PreferenceLoader = Callable[[], Awaitable[list[tuple[int, list[str]]]]]


def matches_preference(article_tags: list[str] | set[str], selected_tags: list[str]) -> bool:
    """True when the subscriber should receive an article with these tags."""
    if not selected_tags:
        return True
    return bool(set(article_tags) & set(selected_tags))


class TelegramNotifier:
    """Sends tag-matched article notifications through a Telegram bot."""

    def __init__(
        self,
        load_preferences: PreferenceLoader,
        token: str | None = None,
        bot: Any = None,
    ) -> None:
        self._load_preferences = load_preferences
        self._token = token if token is not None else get_settings().telegram_bot_token
        self._bot = bot
        self._enabled = bot is not None or bool(self._token)
        if not self._enabled:
            logger.warning("Telegram notifications disabled: no bot token")

    def _get_bot(self) -> Any:
        """Lazily create the Bot instance."""
        if self._bot is None:
            from telegram import Bot

            self._bot = Bot(token=self._token)
        return self._bot

    async def _send(self, chat_id: int, text: str) -> bool:
        try:
            bot = self._get_bot()
            for chunk in split_message(text):
                await bot.send_message(chat_id=chat_id, text=chunk)
            return True
        except Exception as exc:
            logger.error("Telegram send failed (chat_id=%s): %s", chat_id, exc)
            return False

    async def notify_article(self, record: ArticleRecord) -> int:
        """Notify every matching subscriber.

        Returns:
            Number of subscribers the message was delivered to.
        """
        if not self._enabled:
            logger.info("Telegram disabled - log only | %s: %s", record.source, record.title)
            return 0

        preferences = await self._load_preferences()
        recipients = [
            chat_id for chat_id, selected in preferences
            if matches_preference(record.tags, selected)
        ]
        if not recipients:
            return 0

        text = format_article_message(record)
        results = await asyncio.gather(*(self._send(chat_id, text) for chat_id in recipients))
        delivered = sum(1 for ok in results if ok)
        logger.info(
            "[%s] Notified %d/%d subscribers: %s",
            record.source, delivered, len(recipients), record.title,
        )
        return delivered
