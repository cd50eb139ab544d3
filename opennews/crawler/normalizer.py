"""
Feed format normalizer.

Converts a parsed feed document (see ``feed_document.parse_document``)
into a list of ``NormalizedItem``. XML feeds arrive as feedparser results
and JSON feeds as plain dict trees; either way raw items are wrapped in
one of three dialect classes (``RSSItem``, ``AtomEntry``, ``PushPayload``),
each of which knows how to resolve its own link, timestamp, title and summary.
"""

from __future__ import annotations

import calendar
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import feedparser

from opennews.crawler.exceptions import UnrecognizedFeedFormat
from opennews.utils.config import get_settings
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Module constants
# ---------------------------------------------------------------------------

_NO_TITLE: str = "No Title"
_SNIPPET_LENGTH: int = 500
_PARSED_DATE_FIELDS: tuple[str, ...] = ("published_parsed", "updated_parsed")
_DATE_FIELDS: tuple[str, ...] = ("pubDate", "isoDate", "published", "updated", "dc:date")
_TITLE_FIELDS: tuple[str, ...] = ("title", "text", "news_title")
_PUSH_BASE_URL: str = "https://t.me"

SOURCE_TYPE_RSS: str = "rss"
SOURCE_TYPE_PUSH: str = "websocket"
DEFAULT_PUSH_SOURCE: str = "WebSocket Source"


@dataclass
class NormalizedItem:
    """Canonical shape of one feed entry.

    Attributes:
        title: Never empty (falls back to ``"No Title"``).
        url: Never empty; the dedup key.
        published_at: Timezone-aware UTC timestamp.
        raw_summary: Description/summary text, dialect-dependent.
        content_extension: Extra text appended to stored content (arXiv
            authors and categories).
        is_academic: True for arXiv-style sources whose summary doubles as
            the stored content.
        synthesized_url: True when ``url`` was built rather than read.
    """

    title: str
    url: str
    published_at: datetime
    raw_summary: str = ""
    content_extension: str = ""
    is_academic: bool = False
    synthesized_url: bool = False
    source_type: str = SOURCE_TYPE_RSS
    source_name: str = ""


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    """Return the text of a node: plain string, ``#text`` dict or feedparser ``value`` dict."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return _text(value.get("#text", value.get("value")))
    if isinstance(value, list) and value:
        return _text(value[0])
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def parse_timestamp(value: Any, now: datetime | None = None) -> datetime:
    """Parse an RFC 822 or ISO 8601 timestamp; fall back to ``now``.

    Naive results are assumed to be UTC.
    """
    fallback = now or datetime.now(timezone.utc)
    raw = _text(value)
    if not raw:
        return fallback

    parsed: datetime | None = None
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        parsed = None

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable timestamp %r, using processing time", raw)
            return fallback

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _resolve_title(raw: dict[str, Any]) -> str:
    for name in _TITLE_FIELDS:
        title = _text(raw.get(name))
        if title:
            return " ".join(title.split())
    return _NO_TITLE


def _resolve_published(raw: dict[str, Any], now: datetime) -> datetime:
    # feedparser has already normalised these to UTC struct_time
    for name in _PARSED_DATE_FIELDS:
        parsed = raw.get(name)
        if parsed:
            try:
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError):
                continue
    for name in _DATE_FIELDS:
        if _text(raw.get(name)):
            return parse_timestamp(raw.get(name), now)
    return now


def _link_href(link: Any) -> str:
    """Resolve one link node: string, ``href`` key, then ``@_href``."""
    if isinstance(link, str):
        return link.strip()
    if isinstance(link, dict):
        for key in ("href", "@_href"):
            href = link.get(key)
            if isinstance(href, str) and href.strip():
                return href.strip()
        return _text(link.get("#text"))
    return ""


def _rel(node: Any) -> str:
    if not isinstance(node, dict):
        return "alternate"
    return node.get("rel") or node.get("@_rel") or "alternate"


def _link_nodes(raw: dict[str, Any]) -> list[Any]:
    """All link nodes of an item: the ``link`` field, then feedparser ``links``."""
    link = raw.get("link")
    nodes = list(link) if isinstance(link, list) else []
    return nodes + [node for node in _as_list(raw.get("links")) if isinstance(node, dict)]


def _resolve_link(raw: dict[str, Any]) -> str:
    """Resolve a native link in order: string, href, @_href, link lists, then ``url``."""
    href = "" if isinstance(raw.get("link"), list) else _link_href(raw.get("link"))
    if href:
        return href

    nodes = _link_nodes(raw)
    preferred = [node for node in nodes if _rel(node) == "alternate"]
    for candidate in preferred or nodes:
        href = _link_href(candidate)
        if href:
            return href
    return _text(raw.get("url"))


def _resolve_arxiv_link(raw: dict[str, Any]) -> str:
    """arXiv entries: URL ``id`` first, then string link, then the ``/abs/`` link."""
    entry_id = _text(raw.get("id"))
    if entry_id.startswith(("http://", "https://")):
        return entry_id
    link = raw.get("link")
    if isinstance(link, str) and link.strip():
        return link.strip()
    nodes = _link_nodes(raw)
    for candidate in nodes:
        href = _link_href(candidate)
        if "/abs/" in href:
            return href
    if nodes:
        return _link_href(nodes[0])
    return _resolve_link(raw)


def _arxiv_extensions(raw: dict[str, Any]) -> str:
    extension = ""

    names = []
    for author in _as_list(raw.get("authors") or raw.get("author")):
        name = _text(author.get("name")) if isinstance(author, dict) else _text(author)
        if name:
            names.append(name)
    if not names:
        names = [_text(c) for c in _as_list(raw.get("dc:creator")) if _text(c)]
    if names:
        extension += f"\n\nAuthors: {', '.join(names)}"

    terms = []
    for category in _as_list(raw.get("tags") or raw.get("category")):
        if isinstance(category, dict):
            term = category.get("term") or category.get("@_term") or _text(category)
        else:
            term = _text(category)
        if term:
            terms.append(term)
    if terms:
        extension += f"\n\nArXiv Categories: {', '.join(terms)}"

    return extension


# ---------------------------------------------------------------------------
# Dialects
# ---------------------------------------------------------------------------


@dataclass
class RSSItem:
    """An RSS 2.0 / RSS 1.0 ``item``."""

    raw: dict[str, Any]

    def resolve_url(self, academic: bool) -> str:
        return _resolve_arxiv_link(self.raw) if academic else _resolve_link(self.raw)

    def resolve_summary(self) -> str:
        return _text(self.raw.get("description")) or _text(self.raw.get("summary"))


@dataclass
class AtomEntry:
    """An Atom ``entry``."""

    raw: dict[str, Any]

    def resolve_url(self, academic: bool) -> str:
        return _resolve_arxiv_link(self.raw) if academic else _resolve_link(self.raw)

    def resolve_summary(self) -> str:
        return _text(self.raw.get("summary")) or _text(self.raw.get("content"))


@dataclass
class PushPayload:
    """A single item delivered through the webhook (channel-shaped JSON)."""

    raw: dict[str, Any]

    @property
    def source_name(self) -> str:
        return _text(self.raw.get("source_name")) or DEFAULT_PUSH_SOURCE

    def resolve_url(self) -> tuple[str, bool]:
        """Return ``(url, synthesized)``."""
        native = _resolve_link(self.raw)
        if native:
            return native, False

        channel = (
            _text(self.raw.get("channel"))
            or _text(self.raw.get("source_channel"))
            or _text(self.raw.get("chat"))
            or _text(self.raw.get("source_name"))
            or "unknown"
        )
        message_id = _text(self.raw.get("message_id")) or _text(self.raw.get("id"))
        if not message_id:
            basis = _resolve_title(self.raw) + _text(self.raw.get("text"))
            message_id = hashlib.sha256(basis.encode("utf-8")).hexdigest()[:16]

        if channel.startswith(("http://", "https://")):
            return f"{channel.rstrip('/')}/{message_id}", True
        return f"{_PUSH_BASE_URL}/{channel.strip('@/')}/{message_id}", True

    def resolve_summary(self) -> str:
        return _text(self.raw.get("description")) or _text(self.raw.get("summary"))


RawFeedItem = RSSItem | AtomEntry | PushPayload


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class FeedNormalizer:
    """Detects the item collection of a feed document and normalises it.

    feedparser results are mapped by their ``version``. JSON trees are
    checked in order: ``rss.channel.item``, ``feed.entry``, ``channel.item``,
    then ``rdf:RDF.item``. A document that has a channel but no items is a
    valid empty feed.
    """

    def __init__(
        self,
        item_cap: int | None = None,
        uncapped_keywords: list[str] | None = None,
        tail_keywords: list[str] | None = None,
    ) -> None:
        settings = get_settings()
        self.item_cap = item_cap if item_cap is not None else settings.item_cap
        self.uncapped_keywords = [
            k.lower() for k in (uncapped_keywords
                                if uncapped_keywords is not None
                                else settings.uncapped_source_keywords)
        ]
        self.tail_keywords = [
            k.lower() for k in (tail_keywords
                                if tail_keywords is not None
                                else settings.tail_source_keywords)
        ]

    # -- source classification ---------------------------------------------

    def is_academic(self, source_name: str) -> bool:
        lowered = source_name.lower()
        return any(k in lowered for k in self.uncapped_keywords)

    def _is_tail(self, source_name: str) -> bool:
        lowered = source_name.lower()
        return any(k in lowered for k in self.tail_keywords)

    # -- detection -----------------------------------------------------------

    @staticmethod
    def extract_raw_items(document: dict[str, Any]) -> list[RawFeedItem]:
        """Locate the item collection and wrap each entry in its dialect.

        Raises:
            UnrecognizedFeedFormat: No known item collection was found.
        """
        if isinstance(document, feedparser.FeedParserDict):
            return FeedNormalizer._wrap_entries(document)

        rss = document.get("rss")
        if isinstance(rss, dict) and isinstance(rss.get("channel"), dict):
            channel = rss["channel"]
            return [RSSItem(i) for i in _as_list(channel.get("item")) if isinstance(i, dict)]

        feed = document.get("feed")
        if isinstance(feed, dict):
            return [AtomEntry(e) for e in _as_list(feed.get("entry")) if isinstance(e, dict)]

        channel = document.get("channel")
        if isinstance(channel, dict):
            return [RSSItem(i) for i in _as_list(channel.get("item")) if isinstance(i, dict)]

        rdf = document.get("rdf:RDF")
        if isinstance(rdf, dict) and ("item" in rdf or "channel" in rdf):
            return [RSSItem(i) for i in _as_list(rdf.get("item")) if isinstance(i, dict)]

        snippet = json.dumps(document, default=str)[:_SNIPPET_LENGTH]
        raise UnrecognizedFeedFormat("No recognized feed structure found", snippet)

    @staticmethod
    def _wrap_entries(feed: feedparser.FeedParserDict) -> list[RawFeedItem]:
        """Map a feedparser result onto dialects by ``version``.

        ``atom*`` entries are Atom; ``rss20``/``rss09*``/``rss10`` (RDF) and
        unversioned entries recovered from a broken document are RSS items.
        A recognised feed with no entries is a valid empty feed.
        """
        version = feed.get("version") or ""
        if not version and not feed.entries:
            raise UnrecognizedFeedFormat("No recognized feed structure found", "")
        dialect = AtomEntry if version.startswith("atom") else RSSItem
        return [dialect(entry) for entry in feed.entries]

    # -- capping ---------------------------------------------------------------

    def apply_cap(self, items: list[Any], source_name: str) -> list[Any]:
        """Bound the per-cycle work for frequently polled sources."""
        if self.is_academic(source_name) or len(items) <= self.item_cap:
            return items
        if self._is_tail(source_name):
            logger.info(
                "[%s] Feed has %d items, limiting to last %d (newest)",
                source_name, len(items), self.item_cap,
            )
            return items[-self.item_cap:]
        logger.info(
            "[%s] Feed has %d items, limiting to first %d",
            source_name, len(items), self.item_cap,
        )
        return items[: self.item_cap]

    # -- resolution ------------------------------------------------------------

    def resolve(
        self,
        raw_item: RawFeedItem,
        source_name: str,
        now: datetime | None = None,
    ) -> NormalizedItem | None:
        """Resolve one raw item. Returns None when no URL can be found."""
        now = now or datetime.now(timezone.utc)
        raw = raw_item.raw

        if isinstance(raw_item, PushPayload):
            return self._resolve_push(raw_item, source_name, now)

        academic = self.is_academic(source_name)
        url = raw_item.resolve_url(academic)
        if not url:
            return None

        item = NormalizedItem(
            title=_resolve_title(raw),
            url=url,
            published_at=_resolve_published(raw, now),
            is_academic=academic,
            source_name=source_name,
        )
        if academic:
            item.raw_summary = " ".join(raw_item.resolve_summary().split())
            item.content_extension = _arxiv_extensions(raw)
        else:
            item.raw_summary = raw_item.resolve_summary()
        return item

    @staticmethod
    def _resolve_push(
        raw_item: PushPayload, source_name: str, now: datetime,
    ) -> NormalizedItem:
        url, synthesized = raw_item.resolve_url()
        return NormalizedItem(
            title=_resolve_title(raw_item.raw),
            url=url,
            published_at=_resolve_published(raw_item.raw, now),
            raw_summary=raw_item.resolve_summary(),
            synthesized_url=synthesized,
            source_type=SOURCE_TYPE_PUSH,
            source_name=source_name or raw_item.source_name,
        )

    def normalize(
        self,
        document: dict[str, Any],
        source_name: str,
        now: datetime | None = None,
    ) -> list[NormalizedItem]:
        """Normalise a whole feed document.

        Items without a resolvable URL are dropped. Duplicate URLs inside
        one document are collapsed to the first occurrence.

        Raises:
            UnrecognizedFeedFormat: No known item collection was found.
        """
        raw_items = self.apply_cap(self.extract_raw_items(document), source_name)
        now = now or datetime.now(timezone.utc)

        items: list[NormalizedItem] = []
        seen: set[str] = set()
        for raw_item in raw_items:
            item = self.resolve(raw_item, source_name, now)
            if item is None:
                logger.debug("[%s] Dropping item without link: %s",
                             source_name, _resolve_title(raw_item.raw))
                continue
            if item.url in seen:
                continue
            seen.add(item.url)
            items.append(item)
        return items

    def normalize_push(
        self, payload: dict[str, Any], now: datetime | None = None,
    ) -> NormalizedItem:
        """Normalise one inbound push payload. Always yields a URL."""
        wrapped = PushPayload(payload)
        now = now or datetime.now(timezone.utc)
        return self._resolve_push(wrapped, wrapped.source_name, now)
