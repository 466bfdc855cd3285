"""Sync orchestrator.

One pass fetches every subscribed feed in order, stores articles it has not
seen before and then applies the retention period. A failing feed is logged
and skipped; the others still sync.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from feed_filter.config import ServerConfig, get_config
from feed_filter.logging_config import get_logger
from feed_filter.models.schemas import Feed, SyncResult
from feed_filter.services import preferences, retention
from feed_filter.services.encoding import decode_feed
from feed_filter.services.feed_parser import fetch_feed_bytes, parse_feed
from feed_filter.storage import database


Fetcher = Callable[[str], Awaitable[bytes]]


class SyncService:
    """Runs sync passes, at most one at a time.

    A ``refresh`` call made while another is running returns an empty
    result immediately instead of waiting.

    Args:
        config: Server configuration (sync interval default)
        fetcher: Coroutine returning the raw bytes of a feed URL
    """

    def __init__(self, config: Optional[ServerConfig] = None, fetcher: Optional[Fetcher] = None):
        self.config = config or get_config()
        self._fetch = fetcher or fetch_feed_bytes
        self._lock = asyncio.Lock()

    @property
    def is_refreshing(self) -> bool:
        return self._lock.locked()

    async def refresh(self) -> SyncResult:
        """Sync all feeds and prune old articles.

        Returns:
            SyncResult with feeds fetched, new articles and articles deleted
        """
        logger = get_logger(__name__)

        if self._lock.locked():
            logger.info("Already refreshing, skipping")
            return SyncResult()

        async with self._lock:
            result = SyncResult()
            feeds = await database.list_feeds()

            logger.info(f"Start syncing {len(feeds)} feeds")

            for feed in feeds:
                try:
                    added = await self._sync_feed(feed)
                except Exception as e:
                    logger.error(f"Failed to sync feed {feed.id} ({feed.title}): {e}")
                    continue

                result.fetched += 1
                result.new_articles += added

            result.deleted = await retention.run_auto_prune()
            await preferences.set_last_sync_time(datetime.now(timezone.utc))

            logger.info(
                f"Sync completed: {result.fetched}/{len(feeds)} feeds, "
                f"{result.new_articles} new articles, {result.deleted} deleted"
            )
            return result

    async def _sync_feed(self, feed: Feed) -> int:
        """Fetch, parse and store one feed. Returns the number of new articles."""
        logger = get_logger(__name__)

        raw = await self._fetch(feed.url)
        articles = parse_feed(decode_feed(raw, feed.url), feed.icon_url)
        logger.info(f"Fetched {len(articles)} articles from {feed.title}")

        existing = await database.get_existing_article_links(
            feed.id, [article.link for article in articles]
        )
        new_articles = [article for article in articles if article.link not in existing]
        for article in new_articles:
            article.feed_id = feed.id
            article.feed_name = feed.title

        added = 0
        if new_articles:
            added = await database.add_articles(feed.id, feed.title, new_articles)

        logger.info(f"Saved {added} new articles for {feed.title}")
        return added

    async def get_last_sync_time(self) -> Optional[datetime]:
        """When the last completed sync pass finished, if ever."""
        return await preferences.get_last_sync_time()

    async def should_sync(self, min_interval_ms: Optional[int] = None) -> bool:
        """Whether enough time has passed since the last sync.

        Advisory only: ``refresh`` does not consult it.

        Args:
            min_interval_ms: Minimum interval (defaults to the configured 30 minutes)
        """
        if min_interval_ms is None:
            interval = timedelta(minutes=self.config.sync_interval_minutes)
        else:
            interval = timedelta(milliseconds=min_interval_ms)

        last = await self.get_last_sync_time()
        if last is None:
            return True

        return datetime.now(timezone.utc) - last >= interval


_sync_service: Optional[SyncService] = None


def get_sync_service() -> SyncService:
    """The process-wide SyncService."""
    global _sync_service

    if _sync_service is None:
        _sync_service = SyncService()

    return _sync_service
