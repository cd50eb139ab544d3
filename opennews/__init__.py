"""OpenNews: crypto/AI news feed ingestion, deduplication and tagging."""

__version__ = "1.0.0"
