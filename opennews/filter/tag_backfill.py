"""
Tag backfill pass.

Finds recently scraped articles that still have no tags (push items that
arrived before the tag maps knew their topic, rows written by older
workers) and tags them from title plus summary/content.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from opennews.filter.tagger import TagExtractor
from opennews.utils.config import get_settings
from opennews.utils.logger import get_logger

logger = get_logger(__name__)


class TagBackfill:
    """Runs the tag extractor over untagged recent articles."""

    def __init__(
        self,
        article_store: Any,
        tagger: TagExtractor | None = None,
        window_hours: int | None = None,
        limit: int | None = None,
    ) -> None:
        settings = get_settings()
        self.article_store = article_store
        self.tagger = tagger or TagExtractor()
        self.window_hours = window_hours if window_hours is not None else settings.backfill_window_hours
        self.limit = limit if limit is not None else settings.backfill_limit

    async def run(self) -> dict[str, int]:
        """Tag a batch of articles.

        Returns:
            ``{"selected": n, "updated": n, "failed": n}``
        """
        since = datetime.now(timezone.utc) - timedelta(hours=self.window_hours)
        articles = await self.article_store.list_untagged_since(since, self.limit)
        logger.info("Tag backfill: %d untagged articles since %s", len(articles), since.isoformat())

        stats = {"selected": len(articles), "updated": 0, "failed": 0}
        for article in articles:
            try:
                analysis = self.tagger.analyze(
                    article.title, article.summary or article.content or ""
                )
                await self.article_store.update_tags(
                    article.id, sorted(analysis.tags), analysis.keywords
                )
                stats["updated"] += 1
            except Exception as exc:
                logger.error("Tag backfill failed for %s: %s", article.id, exc)
                stats["failed"] += 1

        logger.info(
            "Tag backfill done: %d updated, %d failed",
            stats["updated"], stats["failed"],
        )
        return stats
