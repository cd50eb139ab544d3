"""
Feed ingestion subsystem.

Fetches configured RSS/Atom/RDF feeds, normalises their items, drops URLs
that are already stored, then scrapes, tags and persists the rest.
"""

from opennews.crawler.crawl_engine import CrawlEngine
from opennews.crawler.dedup import DedupGate
from opennews.crawler.normalizer import FeedNormalizer, NormalizedItem

__all__ = [
    "CrawlEngine",
    "DedupGate",
    "FeedNormalizer",
    "NormalizedItem",
]
