"""Data models for feed_filter.

This module defines the core data structures for feeds, articles, filter
rules and the results returned by the sync and retention passes.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional


def new_article_token() -> str:
    """Ephemeral id for a parsed article; storage assigns the real one."""
    return uuid.uuid4().hex


@dataclass
class Feed:
    """Represents a subscribed RSS/Atom feed."""

    id: int
    title: str
    url: str
    icon_url: Optional[str]
    order_no: int
    created_at: Optional[datetime]


@dataclass
class FeedMeta:
    """Channel-level metadata read from a feed document."""

    title: str
    icon_url: Optional[str] = None


@dataclass
class ParsedArticle:
    """An article as produced by the feed parser, before persistence."""

    title: str
    link: str
    published_at: str
    summary: Optional[str] = None
    thumbnail_url: Optional[str] = None
    feed_id: Optional[int] = None
    feed_name: str = ""
    is_read: bool = False
    id: str = field(default_factory=new_article_token)


@dataclass
class Article:
    """Represents a stored article."""

    id: int
    feed_id: int
    feed_name: str
    title: str
    link: str
    summary: Optional[str]
    thumbnail_url: Optional[str]
    published_at: Optional[datetime]
    fetched_at: Optional[datetime]
    is_read: bool
    is_starred: bool


@dataclass
class FilterRule:
    """A block keyword with optional comma-separated allow exceptions."""

    block_keyword: str
    allow_keyword: Optional[str] = None
    target_title: bool = True
    target_description: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class GlobalAllowKeyword:
    """A keyword that exempts an article from every filter rule."""

    id: int
    keyword: str
    created_at: Optional[datetime]


@dataclass
class KeywordResult:
    """Outcome of adding a global allow keyword.

    ``requires_pro`` distinguishes the quota case from ordinary validation
    failures so callers can route to an upgrade prompt.
    """

    success: bool
    message: Optional[str] = None
    id: Optional[int] = None
    requires_pro: bool = False


@dataclass
class SyncResult:
    """Aggregate counts of one sync pass."""

    fetched: int = 0
    new_articles: int = 0
    deleted: int = 0


@dataclass
class RetentionStats:
    """Counts of articles selected by a retention cutoff."""

    total: int = 0
    unread: int = 0
    read: int = 0
    starred: int = 0


@dataclass(frozen=True)
class RetentionCutoff:
    """Which articles a retention pass selects.

    ``days`` is None for "everything regardless of age"; otherwise articles
    fetched strictly before ``now - days`` are selected.
    """

    days: Optional[int] = None

    @classmethod
    def all(cls) -> "RetentionCutoff":
        return cls(days=None)

    @classmethod
    def older_than(cls, days: int) -> "RetentionCutoff":
        if days < 0:
            raise ValueError(f"days must be zero or positive, got {days}")
        return cls(days=days)

    @classmethod
    def from_days(cls, days: int) -> "RetentionCutoff":
        """Map the settings convention (negative means all) to a cutoff."""
        if days < 0:
            return cls.all()
        return cls.older_than(days)

    @property
    def is_all(self) -> bool:
        return self.days is None

    def cutoff_time(self, now: datetime) -> Optional[datetime]:
        if self.days is None:
            return None
        return now - timedelta(days=self.days)
