"""
Ingestion engine.

Drives each configured feed source through
fetch -> parse/normalize -> dedup -> {scrape + tag} -> persist -> stamp,
with all sources running concurrently. Failures are recovered at the
narrowest scope: one item never blocks its siblings, one source never
blocks the others, and only a failure to load the source list ends the run.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Protocol

from opennews.crawler.dedup import DedupGate
from opennews.crawler.exceptions import (
    DedupQueryError,
    DuplicateArticleError,
    FeedFetchError,
    FeedParseError,
    RateLimitedError,
    SourceLoadError,
    UnrecognizedFeedFormat,
)
from opennews.crawler.feed_document import parse_document
from opennews.crawler.models import (
    SOURCE_KIND_RSS,
    STATUS_DEDUP_FAILED,
    STATUS_ERROR,
    STATUS_FETCH_FAILED,
    STATUS_FORMAT_FAILED,
    STATUS_RATE_LIMITED,
    ArticleRecord,
    ArticleStore,
    RunReport,
    SourceConfig,
    SourceResult,
    SourceStore,
)
from opennews.crawler.normalizer import SOURCE_TYPE_RSS, FeedNormalizer, NormalizedItem
from opennews.crawler.rss_crawler import RSSCrawler
from opennews.crawler.scraper import ContentScraper
from opennews.filter.tagger import TagExtractor
from opennews.utils.config import get_settings
from opennews.utils.logger import get_logger

logger = get_logger(__name__)


class ArticleNotifier(Protocol):
    async def notify_article(self, record: ArticleRecord) -> int: ...


class CrawlEngine:
    """Runs one ingestion cycle over every configured source."""

    def __init__(
        self,
        source_store: SourceStore,
        article_store: ArticleStore,
        crawler: RSSCrawler | None = None,
        normalizer: FeedNormalizer | None = None,
        scraper: ContentScraper | None = None,
        tagger: TagExtractor | None = None,
        notifier: ArticleNotifier | None = None,
        dedup_batch_size: int | None = None,
        notify_on_insert: bool | None = None,
    ) -> None:
        self.source_store = source_store
        self.article_store = article_store
        self.crawler = crawler or RSSCrawler()
        self.normalizer = normalizer or FeedNormalizer()
        self.scraper = scraper or ContentScraper()
        self.tagger = tagger or TagExtractor()
        self.notifier = notifier
        self.dedup = DedupGate(article_store.find_existing_urls, dedup_batch_size)
        if notify_on_insert is None:
            notify_on_insert = get_settings().notify_on_insert
        self._notify = notify_on_insert and notifier is not None

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> RunReport:
        """Execute one cycle.

        Returns:
            A RunReport with one SourceResult per polled source.

        Raises:
            SourceLoadError: The configured sources could not be loaded.
        """
        report = RunReport(started_at=datetime.now(timezone.utc))
        start = time.monotonic()
        logger.info("========== INGESTION RUN START ==========")

        try:
            sources = await self.source_store.list_sources()
        except Exception as exc:
            logger.error("Failed to load feed sources: %s", exc, exc_info=True)
            raise SourceLoadError(f"Cannot load feed sources: {exc}") from exc

        polled = [s for s in sources if s.kind == SOURCE_KIND_RSS]
        skipped = len(sources) - len(polled)
        if skipped:
            logger.info("Skipping %d push-only sources", skipped)

        results = await asyncio.gather(
            *(self.process_source(s) for s in polled), return_exceptions=True
        )
        for source, result in zip(polled, results):
            if isinstance(result, BaseException):
                logger.error("[%s] Unhandled pipeline error: %s", source.name, result)
                result = SourceResult(
                    source=source.name, status=STATUS_ERROR, error=str(result)
                )
            report.sources.append(result)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "========== INGESTION RUN END: %d sources, %d inserted, %d failed (%.1fs) ==========",
            len(polled), report.total_inserted, len(report.failed_sources),
            time.monotonic() - start,
        )
        return report

    # ------------------------------------------------------------------
    # Per-source pipeline
    # ------------------------------------------------------------------

    async def process_source(self, source: SourceConfig) -> SourceResult:
        """Run the pipeline for one source. Never raises."""
        result = SourceResult(source=source.name)
        try:
            fetched = await self.crawler.fetch(source.feed_link, source.name)
        except RateLimitedError as exc:
            result.status, result.error = STATUS_RATE_LIMITED, str(exc)
            return result
        except FeedFetchError as exc:
            logger.warning("%s", exc)
            result.status, result.error = STATUS_FETCH_FAILED, str(exc)
            return result

        try:
            document = parse_document(fetched.body, source.name)
            items = self.normalizer.normalize(document, source.name)
        except (FeedParseError, UnrecognizedFeedFormat) as exc:
            logger.error("[%s] Invalid feed format: %s", source.name, exc)
            logger.info("[%s] Feed snippet: %s", source.name, exc.snippet)
            result.status, result.error = STATUS_FORMAT_FAILED, str(exc)
            return result

        result.candidates = len(items)
        if not items:
            logger.info("[%s] No items to process", source.name)
            await self._mark_scraped(source, fetched.url)
            return result

        try:
            new_urls = await self.dedup.filter_new(
                [item.url for item in items], source.name
            )
        except DedupQueryError as exc:
            result.status, result.error = STATUS_DEDUP_FAILED, str(exc)
            return result

        new_items = [item for item in items if item.url in new_urls]
        result.new = len(new_items)

        outcomes = await asyncio.gather(
            *(self.ingest_item(item, source.name) for item in new_items)
        )
        result.inserted = sum(1 for ok in outcomes if ok)
        result.failed = len(outcomes) - result.inserted

        await self._mark_scraped(source, fetched.url)
        logger.info(
            "[%s] Done: %d candidates, %d new, %d inserted, %d failed",
            source.name, result.candidates, result.new, result.inserted, result.failed,
        )
        return result

    async def _mark_scraped(self, source: SourceConfig, processed_link: str) -> None:
        try:
            await self.source_store.mark_scraped(
                source.id, datetime.now(timezone.utc), processed_link
            )
        except Exception as exc:
            logger.error("[%s] Failed to update last scraped time: %s", source.name, exc)

    # ------------------------------------------------------------------
    # Per-item pipeline
    # ------------------------------------------------------------------

    def build_record(self, item: NormalizedItem, source_name: str, scraped: str) -> ArticleRecord:
        """Assemble the stored record for a normalised item."""
        summary = item.raw_summary if item.is_academic else ""
        analysis = self.tagger.analyze(item.title, item.raw_summary)
        return ArticleRecord(
            url=item.url,
            title=item.title,
            source=source_name,
            source_type=item.source_type,
            published_at=item.published_at,
            scraped_at=datetime.now(timezone.utc),
            tags=sorted(analysis.tags),
            keywords=analysis.keywords,
            content=(summary or scraped or "") + item.content_extension,
        )

    async def ingest_item(self, item: NormalizedItem, source_name: str) -> bool:
        """Scrape, tag and persist one item. Returns True if inserted."""
        try:
            scraped = ""
            if (
                item.source_type == SOURCE_TYPE_RSS
                and not item.synthesized_url
                and not (item.is_academic and item.raw_summary)
            ):
                scraped = await self.scraper.scrape(item.url)

            record = self.build_record(item, source_name, scraped)
            await self.article_store.insert_article(record)
        except DuplicateArticleError:
            logger.warning("[%s] Article already stored: %s", source_name, item.url)
            return False
        except Exception as exc:
            logger.error("[%s] Failed to ingest %s: %s", source_name, item.url, exc)
            return False

        logger.debug("[%s] Inserted %s", source_name, item.url)
        if self._notify:
            await self._notify_article(record)
        return True

    async def _notify_article(self, record: ArticleRecord) -> None:
        try:
            await self.notifier.notify_article(record)
        except Exception as exc:
            logger.warning("[%s] Notification failed for %s: %s", record.source, record.url, exc)

    # ------------------------------------------------------------------
    # Push path
    # ------------------------------------------------------------------

    async def ingest_push_payload(self, payload: dict[str, Any]) -> bool:
        """Ingest one webhook item, bypassing fetch and batch dedup."""
        item = self.normalizer.normalize_push(payload)
        logger.info("[%s] Processing pushed item: %s", item.source_name, item.title)
        return await self.ingest_item(item, item.source_name)
