"""
Deduplication gate.

Checks candidate URLs against the article store in fixed-size batches so
that no single query exceeds the store's IN-clause / request-size limit.
Any failed batch fails the whole check: the caller skips the source for
this cycle instead of inserting from an incomplete exclusion set.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable

from opennews.crawler.exceptions import DedupQueryError
from opennews.utils.config import get_settings
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

UrlLookup = Callable[[list[str]], Awaitable[set[str]]]


class DedupGate:
    """Batched existence check against the persisted article URLs."""

    def __init__(self, lookup: UrlLookup, batch_size: int | None = None) -> None:
        self._lookup = lookup
        self.batch_size = batch_size or get_settings().dedup_batch_size
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    def batches(self, urls: list[str]) -> list[list[str]]:
        return [urls[i:i + self.batch_size] for i in range(0, len(urls), self.batch_size)]

    async def existing_urls(self, urls: Iterable[str], source_name: str = "") -> set[str]:
        """Return the subset of ``urls`` already present in the store.

        Raises:
            DedupQueryError: A batch query failed.
        """
        candidates = list(dict.fromkeys(urls))
        existing: set[str] = set()
        for index, batch in enumerate(self.batches(candidates), start=1):
            try:
                found = await self._lookup(batch)
            except Exception as exc:
                logger.error(
                    "[%s] Dedup query failed in batch %d: %s",
                    source_name, index, exc,
                )
                raise DedupQueryError(index, exc) from exc
            existing.update(found)
        return existing

    async def filter_new(self, urls: Iterable[str], source_name: str = "") -> set[str]:
        """Return candidate URLs not yet present in the store.

        Raises:
            DedupQueryError: A batch query failed.
        """
        candidates = list(dict.fromkeys(urls))
        existing = await self.existing_urls(candidates, source_name)
        new_urls = set(candidates) - existing
        logger.info(
            "[%s] Dedup: %d candidates, %d existing, %d new",
            source_name, len(candidates), len(existing), len(new_urls),
        )
        return new_urls
