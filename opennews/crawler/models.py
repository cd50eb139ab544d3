"""
Data carriers and store interfaces shared by the ingestion pipeline.

The engine talks to persistence only through the ``SourceStore`` and
``ArticleStore`` protocols so that tests can run it against in-memory
fakes and production can back it with SQLAlchemy repositories.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

# ---------------------------------------------------------------------------
# Source / article records
# ---------------------------------------------------------------------------

SOURCE_KIND_RSS: str = "rss"

STATUS_OK: str = "ok"
STATUS_FETCH_FAILED: str = "fetch_failed"
STATUS_RATE_LIMITED: str = "rate_limited"
STATUS_FORMAT_FAILED: str = "format_failed"
STATUS_DEDUP_FAILED: str = "dedup_failed"
STATUS_ERROR: str = "error"


@dataclass
class SourceConfig:
    """A configured upstream feed."""

    name: str
    feed_link: str
    kind: str = SOURCE_KIND_RSS
    processed_link: str | None = None
    last_scraped_at: datetime | None = None
    id: int | None = None


@dataclass
class FetchedFeed:
    """A downloaded feed body and the URL it was finally served from."""

    body: str
    url: str


@dataclass
class ArticleRecord:
    """A fully assembled article ready to be persisted."""

    url: str
    title: str
    source: str
    source_type: str
    published_at: datetime
    scraped_at: datetime
    tags: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    content: str = ""


@dataclass
class SourceResult:
    """Outcome of processing one source in a run."""

    source: str
    status: str = STATUS_OK
    candidates: int = 0
    new: int = 0
    inserted: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass
class RunReport:
    """Aggregate outcome of one ingestion run."""

    started_at: datetime
    finished_at: datetime | None = None
    sources: list[SourceResult] = field(default_factory=list)

    @property
    def total_inserted(self) -> int:
        return sum(s.inserted for s in self.sources)

    @property
    def failed_sources(self) -> list[str]:
        return [s.source for s in self.sources if not s.ok]

    def to_dict(self) -> dict:
        """Serialise the report for logs and API responses."""
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total_inserted": self.total_inserted,
            "failed_sources": self.failed_sources,
            "sources": {
                s.source: {
                    "status": s.status,
                    "candidates": s.candidates,
                    "new": s.new,
                    "inserted": s.inserted,
                    "failed": s.failed,
                    "error": s.error,
                }
                for s in self.sources
            },
        }


# ---------------------------------------------------------------------------
# Store interfaces
# ---------------------------------------------------------------------------


class SourceStore(Protocol):
    async def list_sources(self) -> list[SourceConfig]: ...

    async def mark_scraped(
        self, source_id: int | None, scraped_at: datetime, processed_link: str,
    ) -> None: ...


class ArticleStore(Protocol):
    async def find_existing_urls(self, urls: list[str]) -> set[str]: ...

    async def insert_article(self, record: ArticleRecord) -> None: ...
