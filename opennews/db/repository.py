"""
SQLAlchemy-backed stores used by the ingestion pipeline.

Each repository takes an optional session factory; by default it uses the
application-wide one from ``opennews.db.connection``.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Text, cast, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from opennews.crawler.exceptions import DuplicateArticleError
from opennews.crawler.models import ArticleRecord, SourceConfig
from opennews.db.connection import get_session
from opennews.db.models import Article, FeedSource, UserPreference
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

# JSON renderings of an empty tag list (SQLite text, PostgreSQL jsonb::text)
_EMPTY_JSON_TAGS: tuple[str, ...] = ("[]", "null")


class _Repository:
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._session_factory = session_factory

    def _session(self):
        return get_session(self._session_factory)


# ---------------------------------------------------------------------------
# Feed sources
# ---------------------------------------------------------------------------


class FeedSourceRepository(_Repository):
    """Reads configured sources and stamps them after a successful poll."""

    async def list_sources(self) -> list[SourceConfig]:
        async with self._session() as session:
            rows = (await session.execute(
                select(FeedSource).order_by(FeedSource.id)
            )).scalars().all()
        return [
            SourceConfig(
                name=row.name,
                feed_link=row.feed_link,
                kind=row.kind,
                processed_link=row.processed_link,
                last_scraped_at=row.last_scraped_at,
                id=row.id,
            )
            for row in rows
        ]

    async def mark_scraped(
        self, source_id: int, scraped_at: datetime, processed_link: str,
    ) -> None:
        """Stamp one source row after its own successful poll.

        Args:
            source_id: Primary key of the polled row. Rows sharing a feed
                link are stamped independently.
            scraped_at: Completion time of the poll.
            processed_link: URL the feed was actually served from.
        """
        async with self._session() as session:
            await session.execute(
                update(FeedSource)
                .where(FeedSource.id == source_id)
                .values(last_scraped_at=scraped_at, processed_link=processed_link)
            )

    async def get_by_feed_link(self, feed_link: str) -> FeedSource | None:
        async with self._session() as session:
            return (await session.execute(
                select(FeedSource).where(FeedSource.feed_link == feed_link)
            )).scalar_one_or_none()

    async def add_source(self, name: str, feed_link: str, kind: str = "rss") -> bool:
        """Insert a source unless one with the same feed link exists.

        Returns:
            True if a row was inserted.
        """
        if await self.get_by_feed_link(feed_link) is not None:
            return False
        async with self._session() as session:
            session.add(FeedSource(name=name, feed_link=feed_link, kind=kind))
        logger.info("Added feed source %s (%s)", name, feed_link)
        return True


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


class ArticleRepository(_Repository):
    """Article store: URL membership queries and unique-keyed inserts."""

    async def find_existing_urls(self, urls: list[str]) -> set[str]:
        if not urls:
            return set()
        async with self._session() as session:
            rows = await session.execute(
                select(Article.url).where(Article.url.in_(urls))
            )
            return {row[0] for row in rows}

    async def insert_article(self, record: ArticleRecord) -> None:
        """Insert one article.

        Raises:
            DuplicateArticleError: The URL already exists.
        """
        try:
            async with self._session() as session:
                session.add(Article(
                    url=record.url,
                    title=record.title,
                    source=record.source,
                    source_type=record.source_type,
                    published_at=record.published_at,
                    scraped_at=record.scraped_at,
                    tags=sorted(record.tags),
                    keywords=list(record.keywords),
                    content=record.content,
                ))
        except IntegrityError as exc:
            raise DuplicateArticleError(record.url) from exc

    async def list_untagged_since(self, since: datetime, limit: int) -> list[Article]:
        """Return up to ``limit`` recent articles whose tag list is empty, newest first."""
        untagged = or_(
            Article.tags.is_(None),
            cast(Article.tags, Text).in_(_EMPTY_JSON_TAGS),
        )
        async with self._session() as session:
            rows = (await session.execute(
                select(Article)
                .where(Article.scraped_at >= since, untagged)
                .order_by(Article.scraped_at.desc())
                .limit(limit)
            )).scalars().all()
        return list(rows)

    async def update_tags(self, article_id: str, tags: list[str], keywords: list[str]) -> None:
        async with self._session() as session:
            await session.execute(
                update(Article)
                .where(Article.id == article_id)
                .values(tags=tags, keywords=keywords)
            )


# ---------------------------------------------------------------------------
# User preferences
# ---------------------------------------------------------------------------


class UserPreferenceRepository(_Repository):
    async def list_preferences(self) -> list[tuple[int, list[str]]]:
        """Return ``(telegram_id, selected_tags)`` for every subscriber."""
        async with self._session() as session:
            rows = (await session.execute(select(UserPreference))).scalars().all()
        return [(row.telegram_id, list(row.selected_tags or [])) for row in rows]
