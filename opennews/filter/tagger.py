"""
Keyword-driven tag extractor.

Derives category tags (``hack``, ``listing``, ...) and coin tags
(``BTC``, ``ETH``, ...) from a title and optional summary:

  1. Extract candidate keywords (lowercase, stopwords removed, deduplicated;
     adjacent word pairs are kept too so two-word names like "binance coin"
     can match).
  2. Look each candidate up in the category and coin keyword maps.
  3. Only when step 2 found nothing, scan the raw lowercased text for every
     map keyword by substring containment.

The maps and the stopword list live in ``tag_config.json``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from opennews.utils.logger import get_logger

logger = get_logger(__name__)

_DEFAULT_CONFIG_PATH = str(Path(__file__).parent / "tag_config.json")

# Punctuation breaks phrases; whitespace separates tokens inside a phrase.
_PHRASE_SPLIT = re.compile(r"[^\w\s]+")


@dataclass
class TagResult:
    """Tags and keywords extracted from one text."""

    tags: set[str] = field(default_factory=set)
    keywords: list[str] = field(default_factory=list)


class TagExtractor:
    """Deterministic, side-effect-free tag extraction."""

    def __init__(self, config_path: Optional[str] = None) -> None:
        self.config: dict[str, Any] = self._load_config(
            config_path or _DEFAULT_CONFIG_PATH
        )
        self._stopwords: frozenset[str] = frozenset(
            w.lower() for w in self.config.get("stopwords", [])
        )
        self._min_length: int = self.config.get("min_token_length", 2)
        self._max_keywords: int = self.config.get("max_keywords", 8)

        # keyword -> tags, merged from both maps
        self._keyword_index: dict[str, set[str]] = {}
        for section in ("category_keywords", "coin_keywords"):
            for tag, keywords in self.config.get(section, {}).items():
                for kw in keywords:
                    self._keyword_index.setdefault(kw.lower(), set()).add(tag)

        logger.info(
            "TagExtractor initialized: %d categories, %d coins, %d keywords",
            len(self.config.get("category_keywords", {})),
            len(self.config.get("coin_keywords", {})),
            len(self._keyword_index),
        )

    @staticmethod
    def _load_config(config_path: str) -> dict[str, Any]:
        """Load tag maps from a JSON file."""
        path = Path(config_path)
        if not path.exists():
            logger.warning(
                "Tag config not found at %s, using empty config", config_path
            )
            return {}
        with open(path, encoding="utf-8") as f:
            config = json.load(f)
        logger.debug("Tag config loaded from %s", config_path)
        return config

    # ------------------------------------------------------------------
    # Keyword extraction
    # ------------------------------------------------------------------

    def _phrases(self, text: str) -> list[list[str]]:
        """Split lowercased text into runs of non-stopword tokens."""
        phrases: list[list[str]] = []
        for fragment in _PHRASE_SPLIT.split(text.lower()):
            current: list[str] = []
            for token in fragment.split():
                if token in self._stopwords or len(token) < self._min_length:
                    if current:
                        phrases.append(current)
                    current = []
                    continue
                current.append(token)
            if current:
                phrases.append(current)
        return phrases

    def candidate_keywords(self, text: str) -> list[str]:
        """Return deduplicated unigrams followed by adjacent bigrams."""
        unigrams: list[str] = []
        bigrams: list[str] = []
        for phrase in self._phrases(text):
            unigrams.extend(phrase)
            bigrams.extend(f"{a} {b}" for a, b in zip(phrase, phrase[1:]))
        return list(dict.fromkeys(unigrams + bigrams))

    def extract_keywords(self, text: str) -> list[str]:
        """Return up to ``max_keywords`` single-word keywords, in text order."""
        words = [
            kw for kw in self.candidate_keywords(text)
            if " " not in kw and not kw.isdigit()
        ]
        return words[: self._max_keywords]

    # ------------------------------------------------------------------
    # Tag extraction
    # ------------------------------------------------------------------

    def extract_tags(self, text: str) -> set[str]:
        """Return the set of tags for ``text`` (possibly empty)."""
        if not text or not text.strip():
            return set()

        tags: set[str] = set()
        for keyword in self.candidate_keywords(text):
            tags.update(self._keyword_index.get(keyword, ()))

        if tags:
            return tags

        lowered = text.lower()
        for keyword, mapped in self._keyword_index.items():
            if keyword in lowered:
                tags.update(mapped)
        if tags:
            logger.debug("Fallback scan matched %s", sorted(tags))
        return tags

    def analyze(self, title: str, summary: str = "") -> TagResult:
        """Extract tags and keywords from a title plus optional summary."""
        text = f"{title} {summary}".strip() if summary else title
        return TagResult(
            tags=self.extract_tags(text),
            keywords=self.extract_keywords(text),
        )


_default_extractor: TagExtractor | None = None


def extract_tags(text: str) -> set[str]:
    """Module-level shortcut using a shared default ``TagExtractor``."""
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = TagExtractor()
    return _default_extractor.extract_tags(text)
