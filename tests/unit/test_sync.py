"""Unit tests for the sync orchestrator."""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from feed_filter.config import ServerConfig
from feed_filter.exceptions import FeedFetchError
from feed_filter.models.schemas import ParsedArticle, SyncResult
from feed_filter.services import preferences
from feed_filter.services.sync import SyncService
from feed_filter.storage import database


pytestmark = pytest.mark.anyio


def rss(*links: str) -> bytes:
    items = "".join(f"<item><title>{link}</title><link>{link}</link></item>" for link in links)
    return f'<rss version="2.0"><channel><title>T</title>{items}</channel></rss>'.encode("utf-8")


FEEDS = {
    "https://a.example/feed": rss("https://a.example/1", "https://a.example/2"),
    "https://b.example/feed": rss("https://b.example/1"),
}


async def fetch_from(url: str) -> bytes:
    return FEEDS[url]


def make_service(fetcher=fetch_from) -> SyncService:
    return SyncService(config=ServerConfig(), fetcher=fetcher)


class TestRefresh:
    """Tests for SyncService.refresh."""

    async def test_refresh_stores_articles(self, in_memory_db):
        await database.add_feed("A", "https://a.example/feed")
        await database.add_feed("B", "https://b.example/feed")

        result = await make_service().refresh()

        assert result == SyncResult(fetched=2, new_articles=3, deleted=0)
        articles = await database.list_articles()
        assert {a.feed_name for a in articles} == {"A", "B"}

    async def test_refresh_is_idempotent(self, in_memory_db):
        await database.add_feed("A", "https://a.example/feed")
        service = make_service()

        await service.refresh()
        before = sorted(a.link for a in await database.list_articles())
        second = await service.refresh()
        after = sorted(a.link for a in await database.list_articles())

        assert second.new_articles == 0
        assert before == after

    async def test_failing_feed_does_not_abort_pass(self, in_memory_db):
        await database.add_feed("Broken", "https://broken.example/feed")
        await database.add_feed("B", "https://b.example/feed")

        async def fetcher(url):
            if "broken" in url:
                raise FeedFetchError("Request timed out")
            return FEEDS[url]

        result = await make_service(fetcher).refresh()

        assert result.fetched == 1
        assert result.new_articles == 1

    async def test_unparseable_feed_is_skipped(self, in_memory_db):
        await database.add_feed("HTML", "https://html.example/")
        await database.add_feed("A", "https://a.example/feed")

        async def fetcher(url):
            if "html" in url:
                return b"<html><body>not a feed</body></html>"
            return FEEDS[url]

        result = await make_service(fetcher).refresh()

        assert result.fetched == 1
        assert result.new_articles == 2

    async def test_refresh_applies_retention(self, in_memory_db):
        feed = await database.add_feed("A", "https://a.example/feed")
        old = datetime.now(timezone.utc) - timedelta(days=40)
        await database.add_articles(
            feed.id,
            feed.title,
            [ParsedArticle(title="old", link="https://a.example/old", published_at="")],
            fetched_at=old,
        )

        result = await make_service().refresh()

        assert result.deleted == 1
        assert "https://a.example/old" not in {a.link for a in await database.list_articles()}

    async def test_refresh_records_last_sync_time(self, in_memory_db):
        service = make_service()
        assert await service.get_last_sync_time() is None

        await service.refresh()

        last = await service.get_last_sync_time()
        assert last is not None
        assert datetime.now(timezone.utc) - last < timedelta(minutes=1)

    async def test_no_feeds(self, in_memory_db):
        result = await make_service().refresh()
        assert result == SyncResult()


class TestReentrancy:
    """Only one refresh runs at a time."""

    async def test_second_call_returns_empty_result(self, in_memory_db):
        await database.add_feed("A", "https://a.example/feed")
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_fetch(url):
            started.set()
            await release.wait()
            return FEEDS[url]

        service = make_service(slow_fetch)
        first = asyncio.create_task(service.refresh())
        await started.wait()

        assert service.is_refreshing is True
        assert await service.refresh() == SyncResult()

        release.set()
        result = await first

        assert result.new_articles == 2
        assert service.is_refreshing is False

    async def test_locked_refresh_does_not_touch_storage(self):
        fetcher = AsyncMock()
        service = make_service(fetcher)

        async with service._lock:
            result = await service.refresh()

        assert result == SyncResult()
        fetcher.assert_not_called()


class TestShouldSync:
    """Tests for the advisory sync throttle."""

    async def test_never_synced(self, in_memory_db):
        assert await make_service().should_sync() is True

    async def test_recent_sync(self, in_memory_db):
        await preferences.set_last_sync_time(datetime.now(timezone.utc) - timedelta(minutes=5))

        service = make_service()
        assert await service.should_sync() is False
        assert await service.should_sync(min_interval_ms=60_000) is True

    async def test_old_sync(self, in_memory_db):
        await preferences.set_last_sync_time(datetime.now(timezone.utc) - timedelta(hours=1))

        assert await make_service().should_sync() is True
