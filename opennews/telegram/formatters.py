"""
Telegram message formatting.

Builds the per-article notification text and splits long messages into
chunks that fit Telegram's message size limit.
"""

from __future__ import annotations

from opennews.crawler.models import ArticleRecord

# Telegram's hard limit is 4096; keep a safety margin.
MAX_MESSAGE_LENGTH = 4000

_SPLIT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ")


def format_tag_line(tags: list[str] | set[str]) -> str:
    """Render tags as hashtags, sorted for stable output."""
    return " ".join(f"#{tag}" for tag in sorted(tags))


def format_article_message(record: ArticleRecord) -> str:
    """Render one article notification.

    Format::

        #tag1 #tag2

        📰 <source>: <title>

        <url>
    """
    body = f"\U0001f4f0 {record.source}: {record.title}\n\n{record.url}"
    tag_line = format_tag_line(record.tags)
    if tag_line:
        return f"{tag_line}\n\n{body}"
    return body


def split_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split ``text`` into chunks no longer than ``max_len``.

    Prefers paragraph breaks, then line breaks, then spaces; a run with no
    separator at all is cut hard at ``max_len``.
    """
    if max_len < 1:
        raise ValueError("max_len must be >= 1")

    chunks: list[str] = []
    remaining = text.strip()
    while len(remaining) > max_len:
        window = remaining[: max_len + 1]
        cut = -1
        for separator in _SPLIT_SEPARATORS:
            cut = window.rfind(separator)
            if cut > 0:
                break
        if cut <= 0:
            chunks.append(remaining[:max_len])
            remaining = remaining[max_len:].lstrip()
            continue
        chunks.append(remaining[:cut].rstrip())
        remaining = remaining[cut:].lstrip()
    if remaining:
        chunks.append(remaining)
    return chunks
