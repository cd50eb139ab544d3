"""Shared test fixtures for the OpenNews ingestion tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from opennews.crawler.exceptions import DuplicateArticleError, FeedFetchError
from opennews.crawler.models import ArticleRecord, FetchedFeed, SourceConfig


SAMPLE_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com</link>
    <description>A test RSS feed</description>
    <item>
      <title>Major Exchange Announces Bitcoin Listing</title>
      <link>https://example.com/article-1</link>
      <guid>article-1</guid>
      <description>Description of the first article</description>
      <pubDate>Thu, 13 Feb 2026 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Ethereum DeFi Protocol Suffers Major Hack, Funds Stolen</title>
      <link>https://example.com/article-2</link>
      <guid>article-2</guid>
      <description>Description of the second article</description>
      <pubDate>Thu, 13 Feb 2026 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Test Atom Feed</title>
  <link href="https://example.com"/>
  <entry>
    <title type="html">Atom Entry 1</title>
    <link rel="alternate" href="https://example.com/entry-1"/>
    <id>urn:uuid:entry-1</id>
    <summary>Summary of entry 1</summary>
    <updated>2026-02-13T10:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_RDF_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://example.com/rdf">
    <title>RDF Feed</title>
  </channel>
  <item rdf:about="https://example.com/rdf-1">
    <title>RDF Item</title>
    <link>https://example.com/rdf-1</link>
    <dc:date>2026-02-13T08:00:00+00:00</dc:date>
  </item>
</rdf:RDF>"""

SAMPLE_EMPTY_RDF_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/">
  <channel rdf:about="https://example.com/rdf">
    <title>Empty RDF Feed</title>
  </channel>
</rdf:RDF>"""

SAMPLE_ARXIV_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <title>arXiv Query</title>
  <entry>
    <id>http://arxiv.org/abs/2401.12345v1</id>
    <title>Scaling Laws for Tiny Models</title>
    <summary>  We study scaling
      laws for tiny models.  </summary>
    <published>2024-01-22T18:00:00Z</published>
    <author><name>Ada Lovelace</name></author>
    <author><name>Alan Turing</name></author>
    <link href="http://arxiv.org/abs/2401.12345v1" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/2401.12345v1" rel="related" type="application/pdf"/>
    <category term="cs.AI" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
</feed>"""

SAMPLE_SLOPPY_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Sloppy Feed</title>
    <item>
      <title>Bitcoin & Ethereum rally</title>
      <link>https://n.test/1</link>
    </item>
    <item>
      <title>Spot Bitcoin&nbsp;ETF inflows</title>
      <link>https://n.test/2?a=1&b=2</link>
    </item>
  </channel>
</rss>"""

SAMPLE_MALFORMED_JSON = '{"channel": {"item": ['

SAMPLE_UNKNOWN_XML = """<?xml version="1.0" encoding="UTF-8"?>
<html><body><p>Not a feed</p></body></html>"""


def rss_with_links(links: list[str]) -> str:
    """Build an RSS document with one item per link."""
    items = "".join(
        f"<item><title>Item {i}</title><link>{link}</link></item>"
        for i, link in enumerate(links)
    )
    return f'<rss version="2.0"><channel><title>Gen</title>{items}</channel></rss>'


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeSourceStore:
    """Keeps sources in memory; sources without an id get one by position."""

    def __init__(self, sources: list[SourceConfig] | None = None, fail: bool = False) -> None:
        self.sources = sources or []
        for index, source in enumerate(self.sources, start=1):
            if source.id is None:
                source.id = index
        self.fail = fail
        self.marked: dict[int, tuple[datetime, str]] = {}

    async def list_sources(self) -> list[SourceConfig]:
        if self.fail:
            raise ConnectionError("config store unreachable")
        return list(self.sources)

    async def mark_scraped(self, source_id: int, scraped_at: datetime, processed_link: str) -> None:
        self.marked[source_id] = (scraped_at, processed_link)

    @property
    def marked_links(self) -> set[str]:
        return {s.feed_link for s in self.sources if s.id in self.marked}

    @property
    def marked_names(self) -> set[str]:
        return {s.name for s in self.sources if s.id in self.marked}


class FakeArticleStore:
    def __init__(self, existing: set[str] | None = None) -> None:
        self.rows: dict[str, ArticleRecord] = {}
        self.existing = set(existing or ())
        self.queries: list[list[str]] = []
        self.fail_on_query: int | None = None
        self.fail_insert_urls: set[str] = set()

    async def find_existing_urls(self, urls: list[str]) -> set[str]:
        self.queries.append(list(urls))
        if self.fail_on_query is not None and len(self.queries) == self.fail_on_query:
            raise ConnectionError("query failed")
        stored = self.existing | set(self.rows)
        return {u for u in urls if u in stored}

    async def insert_article(self, record: ArticleRecord) -> None:
        if record.url in self.fail_insert_urls:
            raise RuntimeError("insert failed")
        if record.url in self.rows or record.url in self.existing:
            raise DuplicateArticleError(record.url)
        self.rows[record.url] = record


class FakeCrawler:
    """Returns canned payloads; raises configured errors.

    Payloads are looked up by source name first, then by feed link.
    """

    def __init__(self, payloads: dict[str, str | Exception]) -> None:
        self.payloads = payloads
        self.calls: list[str] = []

    async def fetch(self, feed_link: str, source_name: str) -> FetchedFeed:
        self.calls.append(feed_link)
        payload = self.payloads.get(source_name, self.payloads.get(feed_link))
        if payload is None:
            raise FeedFetchError(source_name, "HTTP 404", status=404)
        if isinstance(payload, Exception):
            raise payload
        return FetchedFeed(body=payload, url=feed_link)


class FakeScraper:
    def __init__(self, text: str = "Scraped body", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.calls: list[str] = []

    async def scrape(self, url: str) -> str:
        self.calls.append(url)
        if self.fail:
            # Mirrors ContentScraper: failures surface as an empty string
            return ""
        return self.text


@pytest.fixture
def source_store() -> FakeSourceStore:
    return FakeSourceStore()


@pytest.fixture
def article_store() -> FakeArticleStore:
    return FakeArticleStore()
