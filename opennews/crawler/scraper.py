"""
Best-effort article body scraper.

Fetches the article page and extracts text from the first structural
selector that yields content. Every failure mode returns an empty string;
nothing here is allowed to raise into the ingestion pipeline.
"""

from __future__ import annotations

import asyncio
import re

from bs4 import BeautifulSoup

from opennews.crawler.base_crawler import BaseCrawler
from opennews.utils.config import get_settings
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

CONTENT_SELECTORS: tuple[str, ...] = (
    "article",
    ".article-content",
    ".post-content",
    ".entry-content",
    "main",
    "#content",
    "#main",
    ".main-content",
)

_STRIP_TAGS: tuple[str, ...] = ("script", "style", "noscript", "template")
_WHITESPACE = re.compile(r"\s+")


def extract_text(html: str, selectors: tuple[str, ...] = CONTENT_SELECTORS) -> str:
    """Extract body text from HTML using the first non-empty selector match."""
    soup = BeautifulSoup(html, "html.parser")
    for elem in soup(list(_STRIP_TAGS)):
        elem.decompose()

    for selector in selectors:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = _WHITESPACE.sub(" ", node.get_text(separator=" ")).strip()
        if text:
            return text
    return ""


class ContentScraper(BaseCrawler):
    """Fetch-and-extract with bounded concurrency."""

    def __init__(
        self,
        timeout: float | None = None,
        concurrency: int | None = None,
    ) -> None:
        settings = get_settings()
        super().__init__(timeout if timeout is not None else settings.scrape_timeout_sec)
        self._semaphore = asyncio.Semaphore(
            concurrency if concurrency is not None else settings.scrape_concurrency
        )

    async def _fetch_html(self, url: str) -> str | None:
        session = await self.get_session()
        async with session.get(url, timeout=self.request_timeout()) as response:
            if not 200 <= response.status < 300:
                logger.warning("Scrape got HTTP %d for %s", response.status, url)
                return None
            return await response.text(errors="replace")

    async def scrape(self, url: str) -> str:
        """Return extracted article text, or ``""`` on any failure."""
        try:
            async with self._semaphore:
                html = await self._fetch_html(url)
            if not html:
                return ""
            text = extract_text(html)
            if not text:
                logger.debug("No content selector matched for %s", url)
            return text
        except asyncio.TimeoutError:
            logger.warning("Timeout scraping %s", url)
            return ""
        except Exception as exc:
            logger.warning("Content scraping failed for %s: %s", url, exc)
            return ""
