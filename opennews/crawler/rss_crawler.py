"""
RSS/Atom feed fetcher.

Downloads the raw feed body for one source. Parsing is left to
``feed_document`` and ``normalizer`` so that format failures and transport
failures are reported separately.
"""

from __future__ import annotations

import asyncio

import aiohttp

from opennews.crawler.base_crawler import BaseCrawler
from opennews.crawler.exceptions import FeedFetchError, RateLimitedError
from opennews.crawler.models import FetchedFeed
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

_ACCEPT_HEADER: str = (
    "application/rss+xml, application/atom+xml, application/xml;q=0.9, "
    "text/xml;q=0.9, application/json;q=0.8, */*;q=0.5"
)


class RSSCrawler(BaseCrawler):
    """Fetches feed payloads over the shared aiohttp session."""

    async def fetch(self, feed_link: str, source_name: str) -> FetchedFeed:
        """Fetch the raw feed body.

        Args:
            feed_link: URL to poll.
            source_name: Display name used in logs and errors.

        Returns:
            The response body as text and the URL it was served from
            (after redirects).

        Raises:
            RateLimitedError: The upstream answered 429.
            FeedFetchError: Any other non-2xx status, network error or timeout.
        """
        session = await self.get_session()
        try:
            async with session.get(
                feed_link,
                timeout=self.request_timeout(),
                headers={"Accept": _ACCEPT_HEADER},
            ) as response:
                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    logger.warning(
                        "[%s] Rate limited by %s (Retry-After=%s)",
                        source_name, feed_link, retry_after,
                    )
                    raise RateLimitedError(source_name, retry_after)
                if not 200 <= response.status < 300:
                    raise FeedFetchError(
                        source_name,
                        f"HTTP {response.status} from {feed_link}",
                        status=response.status,
                    )
                body = await response.text(errors="replace")
                final_url = str(response.url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise FeedFetchError(
                source_name, f"Failed to fetch {feed_link}: {exc!r}"
            ) from exc

        logger.debug("[%s] Fetched %d bytes from %s", source_name, len(body), final_url)
        return FetchedFeed(body=body, url=final_url)
