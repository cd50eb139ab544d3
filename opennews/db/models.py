"""
SQLAlchemy ORM models for OpenNews.

Column types are portable: JSON columns become JSONB on PostgreSQL and
plain JSON elsewhere, so the same models back the production database
and the local SQLite store.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONList = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class FeedSource(Base):
    """An upstream feed polled by the ingestion worker.

    Rows are created by the admin surface; the worker only reads them and
    stamps ``last_scraped_at`` and ``processed_link`` (the URL the feed was
    served from after redirects) on the row by ``id`` after a successful poll.
    """

    __tablename__ = "feed_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    feed_link: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="rss")
    processed_link: Mapped[str | None] = mapped_column(Text)
    last_scraped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("idx_feed_sources_feed_link", "feed_link"),
    )


class Article(Base):
    __tablename__ = "articles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    url: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    title_translated: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False, default="rss")
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scraped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tags: Mapped[list[Any]] = mapped_column(JSONList, default=list)
    keywords: Mapped[list[Any]] = mapped_column(JSONList, default=list)
    summary: Mapped[str | None] = mapped_column(Text)
    summary_translated: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        Index("idx_articles_source_scraped", "source", "scraped_at"),
        Index("idx_articles_published_at", "published_at"),
    )


class UserPreference(Base):
    """Per-user topic subscription. An empty tag list means 'send everything'."""

    __tablename__ = "user_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    selected_tags: Mapped[list[Any]] = mapped_column(JSONList, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
