"""
Error taxonomy for the ingestion pipeline.

Each error maps to the scope it is recovered at:

  - item:   DuplicateArticleError
  - source: FeedFetchError, RateLimitedError, FeedParseError,
            UnrecognizedFeedFormat, DedupQueryError
  - run:    SourceLoadError (re-raised so the scheduler records the failure)
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for all ingestion pipeline errors."""


class FeedFetchError(IngestionError):
    """Raised when a feed cannot be downloaded (network error or non-2xx)."""

    def __init__(self, source: str, message: str, status: int | None = None) -> None:
        super().__init__(f"[{source}] {message}")
        self.source = source
        self.status = status


class RateLimitedError(FeedFetchError):
    """Raised when the upstream answers HTTP 429."""

    def __init__(self, source: str, retry_after: str | None = None) -> None:
        super().__init__(source, "Rate limited (429)", status=429)
        self.retry_after = retry_after


class FeedParseError(IngestionError):
    """Raised when a JSON feed body cannot be decoded."""

    def __init__(self, message: str, snippet: str = "") -> None:
        super().__init__(message)
        self.snippet = snippet


class UnrecognizedFeedFormat(IngestionError):
    """Raised when a parsed document has no known item collection."""

    def __init__(self, message: str, snippet: str = "") -> None:
        super().__init__(message)
        self.snippet = snippet


class DedupQueryError(IngestionError):
    """Raised when any dedup batch query fails. The whole source is skipped."""

    def __init__(self, batch_index: int, cause: BaseException) -> None:
        super().__init__(f"Dedup query failed in batch {batch_index}: {cause}")
        self.batch_index = batch_index
        self.cause = cause


class DuplicateArticleError(IngestionError):
    """Raised by the store when an article URL already exists."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Article already exists: {url}")
        self.url = url


class SourceLoadError(IngestionError):
    """Raised when the configured feed sources cannot be loaded."""
