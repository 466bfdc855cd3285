"""Data models for feed_filter."""

from .schemas import (
    Article,
    Feed,
    FeedMeta,
    FilterRule,
    GlobalAllowKeyword,
    KeywordResult,
    ParsedArticle,
    RetentionCutoff,
    RetentionStats,
    SyncResult,
)

__all__ = [
    "Article",
    "Feed",
    "FeedMeta",
    "FilterRule",
    "GlobalAllowKeyword",
    "KeywordResult",
    "ParsedArticle",
    "RetentionCutoff",
    "RetentionStats",
    "SyncResult",
]
