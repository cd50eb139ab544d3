"""Tests for Telegram message formatting and subscriber notification."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from opennews.crawler.models import ArticleRecord
from opennews.monitoring.telegram_notifier import TelegramNotifier, matches_preference
from opennews.telegram.formatters import format_article_message, split_message

NOW = datetime(2026, 2, 14, 12, 0, tzinfo=timezone.utc)


def _record(tags=None) -> ArticleRecord:
    return ArticleRecord(
        url="https://news.test/a",
        title="Bitcoin ETF approved",
        source="CoinDesk",
        source_type="rss",
        published_at=NOW,
        scraped_at=NOW,
        tags=tags if tags is not None else ["etf", "BTC"],
    )


class TestFormatArticleMessage:
    def test_tag_line_sorted(self):
        assert format_article_message(_record()) == (
            "#BTC #etf\n\n\U0001f4f0 CoinDesk: Bitcoin ETF approved\n\nhttps://news.test/a"
        )

    def test_no_tags(self):
        assert format_article_message(_record(tags=[])).startswith("\U0001f4f0 CoinDesk")


class TestSplitMessage:
    def test_short_message_untouched(self):
        assert split_message("hello", max_len=10) == ["hello"]

    def test_prefers_paragraph_break(self):
        assert split_message("aaaa\n\nbbbb cc", max_len=8) == ["aaaa", "bbbb cc"]

    def test_hard_cut_without_separator(self):
        assert split_message("x" * 25, max_len=10) == ["x" * 10, "x" * 10, "x" * 5]

    def test_chunks_respect_limit(self):
        text = " ".join(f"word{i}" for i in range(500))
        chunks = split_message(text, max_len=100)
        assert all(len(c) <= 100 for c in chunks)
        assert " ".join(chunks) == text

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            split_message("x", max_len=0)


class TestMatchesPreference:
    def test_empty_selection_receives_everything(self):
        assert matches_preference(["hack"], [])

    def test_intersection(self):
        assert matches_preference({"BTC", "etf"}, ["etf"])
        assert not matches_preference(["ETH"], ["BTC"])


class TestTelegramNotifier:
    def test_sends_to_matching_subscribers(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        preferences = AsyncMock(return_value=[(1, ["BTC"]), (2, ["ETH"]), (3, [])])
        notifier = TelegramNotifier(preferences, token="t", bot=bot)

        delivered = asyncio.run(notifier.notify_article(_record()))

        assert delivered == 2
        chat_ids = sorted(c.kwargs["chat_id"] for c in bot.send_message.await_args_list)
        assert chat_ids == [1, 3]

    def test_send_failure_counted_not_raised(self):
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=[RuntimeError("blocked"), None])
        preferences = AsyncMock(return_value=[(1, []), (2, [])])
        notifier = TelegramNotifier(preferences, token="t", bot=bot)

        assert asyncio.run(notifier.notify_article(_record())) == 1

    def test_disabled_without_token(self):
        preferences = AsyncMock(return_value=[(1, [])])
        notifier = TelegramNotifier(preferences, token="")

        assert asyncio.run(notifier.notify_article(_record())) == 0
        preferences.assert_not_awaited()
