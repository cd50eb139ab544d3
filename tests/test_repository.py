"""Tests for the SQLAlchemy stores on a temporary SQLite database."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from opennews.crawler.crawl_engine import CrawlEngine
from opennews.crawler.exceptions import DuplicateArticleError
from opennews.crawler.models import ArticleRecord
from opennews.crawler.normalizer import FeedNormalizer
from opennews.db.models import Article, Base, FeedSource, UserPreference
from opennews.db.repository import (
    ArticleRepository,
    FeedSourceRepository,
    UserPreferenceRepository,
)
from opennews.filter.tag_backfill import TagBackfill
from tests.conftest import SAMPLE_RSS_XML, FakeCrawler, FakeScraper, rss_with_links

NOW = datetime(2026, 2, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'opennews-test.db'}"


def _record(url: str, source: str = "Alpha", tags=None, scraped_at=NOW) -> ArticleRecord:
    return ArticleRecord(
        url=url,
        title=f"Title for {url}",
        source=source,
        source_type="rss",
        published_at=NOW,
        scraped_at=scraped_at,
        tags=tags or [],
    )


def run(coro_fn, url: str):
    """Create the schema at ``url`` and run ``coro_fn(factory)`` against it."""
    async def _main():
        engine = create_async_engine(url)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
            return await coro_fn(factory)
        finally:
            await engine.dispose()
    return asyncio.run(_main())


async def _article_count(factory) -> int:
    async with factory() as session:
        return (await session.execute(select(func.count()).select_from(Article))).scalar_one()


class TestArticleRepository:
    def test_insert_and_find_existing(self, db_url):
        async def scenario(factory):
            repo = ArticleRepository(factory)
            await repo.insert_article(_record("https://x.test/1"))
            await repo.insert_article(_record("https://x.test/2"))
            return await repo.find_existing_urls(
                ["https://x.test/1", "https://x.test/2", "https://x.test/3"]
            )

        assert run(scenario, db_url) == {"https://x.test/1", "https://x.test/2"}

    def test_unique_url_rejected(self, db_url):
        async def scenario(factory):
            repo = ArticleRepository(factory)
            await repo.insert_article(_record("https://x.test/dup", source="One"))
            with pytest.raises(DuplicateArticleError):
                await repo.insert_article(_record("https://x.test/dup", source="Two"))
            return await _article_count(factory)

        assert run(scenario, db_url) == 1

    def test_empty_lookup(self, db_url):
        async def scenario(factory):
            return await ArticleRepository(factory).find_existing_urls([])

        assert run(scenario, db_url) == set()

    def test_untagged_selection_and_update(self, db_url):
        async def scenario(factory):
            repo = ArticleRepository(factory)
            recent = datetime.now(timezone.utc)
            await repo.insert_article(_record("https://x.test/old", scraped_at=recent - timedelta(days=2)))
            await repo.insert_article(_record("https://x.test/tagged", tags=["BTC"], scraped_at=recent))
            await repo.insert_article(_record("https://x.test/new", scraped_at=recent))
            selected = await repo.list_untagged_since(recent - timedelta(hours=4), 10)
            await repo.update_tags(selected[0].id, ["hack"], ["hack"])
            again = await repo.list_untagged_since(recent - timedelta(hours=4), 10)
            return [a.url for a in selected], again

        selected, again = run(scenario, db_url)
        assert selected == ["https://x.test/new"]
        assert again == []

    def test_untagged_selection_respects_limit(self, db_url):
        async def scenario(factory):
            repo = ArticleRepository(factory)
            recent = datetime.now(timezone.utc)
            for minutes in (30, 20, 10):
                await repo.insert_article(
                    _record(f"https://x.test/{minutes}", scraped_at=recent - timedelta(minutes=minutes))
                )
            selected = await repo.list_untagged_since(recent - timedelta(hours=1), 2)
            return [a.url for a in selected]

        assert run(scenario, db_url) == ["https://x.test/10", "https://x.test/20"]


class TestFeedSourceRepository:
    def test_add_list_and_mark(self, db_url):
        async def scenario(factory):
            repo = FeedSourceRepository(factory)
            assert await repo.add_source("Alpha", "https://a.test/rss")
            assert not await repo.add_source("Alpha again", "https://a.test/rss")
            (source,) = await repo.list_sources()
            await repo.mark_scraped(source.id, NOW, "https://a.test/feed.xml")
            return await repo.list_sources()

        (source,) = run(scenario, db_url)
        assert source.name == "Alpha"
        assert source.kind == "rss"
        assert source.id is not None
        assert source.processed_link == "https://a.test/feed.xml"
        assert source.last_scraped_at is not None

    def test_rows_sharing_a_link_are_stamped_independently(self, db_url):
        async def scenario(factory):
            async with factory() as session:
                session.add_all([
                    FeedSource(name="Mirror", feed_link="https://a.test/rss"),
                    FeedSource(name="Primary", feed_link="https://a.test/rss"),
                ])
                await session.commit()
            repo = FeedSourceRepository(factory)
            mirror, primary = await repo.list_sources()
            await repo.mark_scraped(primary.id, NOW, "https://a.test/rss")
            return await repo.list_sources()

        mirror, primary = run(scenario, db_url)
        assert mirror.last_scraped_at is None
        assert mirror.processed_link is None
        assert primary.last_scraped_at is not None
        assert primary.processed_link == "https://a.test/rss"


class TestUserPreferenceRepository:
    def test_list_preferences(self, db_url):
        async def scenario(factory):
            async with factory() as session:
                session.add_all([
                    UserPreference(telegram_id=1001, selected_tags=["BTC", "hack"]),
                    UserPreference(telegram_id=1002, selected_tags=[]),
                ])
                await session.commit()
            return sorted(await UserPreferenceRepository(factory).list_preferences())

        assert run(scenario, db_url) == [(1001, ["BTC", "hack"]), (1002, [])]


class TestEngineAgainstDatabase:
    def test_idempotent_runs_and_cross_source_collision(self, db_url):
        shared = rss_with_links(["https://shared.test/story"])

        async def scenario(factory):
            sources = FeedSourceRepository(factory)
            articles = ArticleRepository(factory)
            await sources.add_source("Alpha", "https://a.test/rss")
            await sources.add_source("One", "https://one.test/rss")
            await sources.add_source("Two", "https://two.test/rss")
            engine = CrawlEngine(
                source_store=sources,
                article_store=articles,
                crawler=FakeCrawler({
                    "https://a.test/rss": SAMPLE_RSS_XML,
                    "https://one.test/rss": shared,
                    "https://two.test/rss": shared,
                }),
                normalizer=FeedNormalizer(item_cap=30, uncapped_keywords=[], tail_keywords=[]),
                scraper=FakeScraper(),
                notify_on_insert=False,
            )
            first = await engine.run()
            second = await engine.run()
            return first, second, await _article_count(factory)

        first, second, count = run(scenario, db_url)
        assert first.total_inserted == 3
        assert second.total_inserted == 0
        assert count == 3


class TestTagBackfill:
    def test_backfill_tags_recent_untagged(self, db_url):
        async def scenario(factory):
            repo = ArticleRepository(factory)
            record = _record("https://x.test/b", scraped_at=datetime.now(timezone.utc))
            record.title = "Ethereum exploit drains bridge"
            await repo.insert_article(record)
            stats = await TagBackfill(repo, window_hours=4, limit=30).run()
            return stats, await repo.list_untagged_since(
                datetime.now(timezone.utc) - timedelta(hours=4), 30
            )

        stats, remaining = run(scenario, db_url)
        assert stats == {"selected": 1, "updated": 1, "failed": 0}
        assert remaining == []
