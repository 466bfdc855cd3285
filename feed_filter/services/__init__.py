"""Services for feed_filter."""

from .encoding import detect_encoding, decode_feed
from .feed_discovery import discover_feed_url
from .feed_parser import parse_feed, parse_feed_meta, fetch_articles, fetch_feed_meta
from .filter_engine import evaluate, filter_articles
from .filters import GlobalAllowKeywordService
from .retention import prune_older_than, get_retention_stats, run_auto_prune
from .sync import SyncService, get_sync_service

__all__ = [
    "detect_encoding",
    "decode_feed",
    "discover_feed_url",
    "parse_feed",
    "parse_feed_meta",
    "fetch_articles",
    "fetch_feed_meta",
    "evaluate",
    "filter_articles",
    "GlobalAllowKeywordService",
    "prune_older_than",
    "get_retention_stats",
    "run_auto_prune",
    "SyncService",
    "get_sync_service",
]
