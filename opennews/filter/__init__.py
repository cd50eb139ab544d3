"""
opennews.filter -- keyword-based article tagging.
"""

from opennews.filter.tag_backfill import TagBackfill
from opennews.filter.tagger import TagExtractor, TagResult

__all__ = ["TagBackfill", "TagExtractor", "TagResult"]
