"""
Feed payload parsing.

XML feeds (RSS 0.9x/2.0, RSS 1.0/RDF, Atom) are parsed with feedparser,
which recovers from the everyday defects of real upstreams (bare ``&``,
HTML entities such as ``&nbsp;``, unclosed tags) instead of rejecting the
whole document. JSON bodies are decoded into a plain dict.
"""

from __future__ import annotations

import json
from typing import Any

import feedparser

from opennews.crawler.exceptions import FeedParseError, UnrecognizedFeedFormat
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

_SNIPPET_LENGTH: int = 500


def _strip(payload: str) -> str:
    return payload.lstrip("\ufeff \t\r\n")


def is_json_payload(payload: str) -> bool:
    return _strip(payload).startswith(("{", "["))


def parse_json(payload: str) -> dict[str, Any]:
    """Decode a JSON feed body. Non-object bodies are wrapped as ``{"items": ...}``.

    Raises:
        FeedParseError: The body is not valid JSON.
    """
    stripped = _strip(payload)
    try:
        data = json.loads(stripped)
    except ValueError as exc:
        raise FeedParseError(
            f"Invalid JSON payload: {exc}", stripped[:_SNIPPET_LENGTH]
        ) from exc
    if not isinstance(data, dict):
        return {"items": data}
    return data


def parse_feed(payload: str, source_name: str = "") -> feedparser.FeedParserDict:
    """Parse an XML feed leniently.

    A document feedparser recognises (``version`` set) is kept even when it
    is not well-formed; the recovery is logged. A document with neither a
    version nor any entries is not a feed.

    Raises:
        UnrecognizedFeedFormat: No feed dialect and no entries were found.
    """
    feed = feedparser.parse(payload)

    if not feed.get("version") and not feed.entries:
        detail = feed.get("bozo_exception")
        message = "No recognized feed structure found"
        if detail is not None:
            message = f"{message} ({detail})"
        raise UnrecognizedFeedFormat(message, _strip(payload)[:_SNIPPET_LENGTH])

    if feed.bozo:
        logger.warning(
            "[%s] Feed is not well-formed, parsed leniently: %s",
            source_name or "-", feed.get("bozo_exception"),
        )
    return feed


def parse_document(payload: str, source_name: str = "") -> dict[str, Any]:
    """Parse a fetched payload: JSON when it looks like JSON, otherwise XML."""
    if is_json_payload(payload):
        return parse_json(payload)
    return parse_feed(payload, source_name)
