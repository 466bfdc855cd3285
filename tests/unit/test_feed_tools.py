"""Unit tests for the MCP tool functions.

Tools are called directly; storage uses the in-memory database and HTTP
is mocked at the service boundary.
"""

import pytest
from unittest.mock import AsyncMock, patch

from feed_filter.config import ServerConfig
from feed_filter.decorators import exception_handler, tool_logger
from feed_filter.exceptions import FeedFormatError
from feed_filter.models.schemas import FeedMeta
from feed_filter.services.sync import SyncService
from feed_filter.tools import feed_tools as tools


pytestmark = pytest.mark.anyio


RSS_FEED = b"""<rss version="2.0"><channel><title>Example</title>
<item><title>FX news</title><link>https://example.com/1</link><pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate></item>
<item><title>React tips</title><link>https://example.com/2</link><pubDate>Tue, 02 Jan 2024 12:00:00 GMT</pubDate></item>
</channel></rss>"""


async def add_example_feed():
    with patch("feed_filter.services.feeds.fetch_feed_meta", AsyncMock(return_value=FeedMeta(title="Example"))):
        return await tools.add_feed("https://example.com/feed")


async def refresh():
    service = SyncService(config=ServerConfig(), fetcher=AsyncMock(return_value=RSS_FEED))
    with patch("feed_filter.tools.feed_tools.get_sync_service", return_value=service):
        return await tools.refresh_feeds()


class TestFeedTools:
    """Feed management tools."""

    async def test_add_and_list_feeds(self, in_memory_db):
        result = await add_example_feed()

        assert result["success"] is True
        assert result["feed"]["title"] == "Example"

        listed = await tools.list_feeds()
        assert listed["count"] == 1
        assert listed["feeds"][0]["total_articles"] == 0

    async def test_add_duplicate_feed(self, in_memory_db):
        await add_example_feed()

        result = await add_example_feed()

        assert result["success"] is False
        assert "already exists" in result["error"]

    async def test_add_feed_not_found(self, in_memory_db):
        with patch("feed_filter.services.feeds.fetch_feed_meta", AsyncMock(side_effect=FeedFormatError("html"))), \
             patch("feed_filter.services.feeds.discover_feed_url", AsyncMock(return_value=None)):
            result = await tools.add_feed("https://example.com")

        assert result["success"] is False

    async def test_remove_feed(self, in_memory_db):
        feed = (await add_example_feed())["feed"]
        await refresh()

        result = await tools.remove_feed(feed["id"])

        assert result == {"success": True, "articles_deleted": 2}
        assert (await tools.remove_feed(feed["id"]))["success"] is False

    async def test_reorder_feeds_validation(self, in_memory_db):
        feed = (await add_example_feed())["feed"]

        assert (await tools.reorder_feeds([feed["id"], 99]))["success"] is False
        assert (await tools.reorder_feeds([feed["id"]]))["success"] is True

    async def test_detect_feed(self):
        with patch("feed_filter.services.feeds.discover_feed_url", AsyncMock(return_value="https://example.com/feed")):
            result = await tools.detect_feed("example.com")

        assert result == {"success": True, "feed_url": "https://example.com/feed"}


class TestArticleTools:
    """Refreshing and reading articles."""

    async def test_refresh_and_list(self, in_memory_db):
        await add_example_feed()

        result = await refresh()

        assert result == {"success": True, "fetched": 1, "new_articles": 2, "deleted": 0}

        listed = await tools.list_articles()
        assert [a["title"] for a in listed["articles"]] == ["React tips", "FX news"]
        assert listed["articles"][0]["published_at"] == "2024-01-02T12:00:00+00:00"

    async def test_filters_hide_articles(self, in_memory_db):
        await add_example_feed()
        await refresh()
        await tools.add_filter("fx")

        listed = await tools.list_articles()
        assert [a["title"] for a in listed["articles"]] == ["React tips"]
        assert listed["hidden"] == 1

        unfiltered = await tools.list_articles(include_hidden=True)
        assert unfiltered["count"] == 2

    async def test_read_and_star(self, in_memory_db):
        await add_example_feed()
        await refresh()
        article_id = (await tools.list_articles())["articles"][0]["id"]

        assert (await tools.mark_article_read(article_id))["article"]["is_read"] is True
        assert (await tools.list_articles(include_read=False))["count"] == 1
        assert (await tools.mark_article_unread(article_id))["article"]["is_read"] is False
        assert (await tools.toggle_article_star(article_id))["article"]["is_starred"] is True
        assert (await tools.list_articles(starred_only=True))["count"] == 1
        assert (await tools.mark_all_read())["articles_marked_read"] == 2

    async def test_missing_article(self, in_memory_db):
        assert (await tools.mark_article_read(999))["success"] is False
        assert (await tools.toggle_article_star(999))["success"] is False
        assert (await tools.delete_article(999))["success"] is False


class TestFilterTools:
    """Filter rule and keyword tools."""

    async def test_add_update_remove_filter(self, in_memory_db):
        created = await tools.add_filter("FX", allow_keyword="React, web3")
        assert created["success"] is True
        assert created["filter"]["allow_keyword"] == "React,web3"

        updated = await tools.update_filter(created["filter"]["id"], "crypto", target_description=False)
        assert updated["filter"]["block_keyword"] == "crypto"
        assert updated["filter"]["allow_keyword"] is None
        assert updated["filter"]["target_description"] is False

        assert (await tools.list_filters())["count"] == 1
        assert (await tools.remove_filter(created["filter"]["id"]))["success"] is True
        assert (await tools.remove_filter(created["filter"]["id"]))["success"] is False

    async def test_invalid_filter(self, in_memory_db):
        result = await tools.add_filter("FX", target_title=False, target_description=False)

        assert result["success"] is False
        assert (await tools.list_filters())["count"] == 0

    async def test_global_allow_keyword_quota(self, in_memory_db):
        for keyword in ("a", "b", "c"):
            assert (await tools.add_global_allow_keyword(keyword))["success"] is True

        result = await tools.add_global_allow_keyword("d")

        assert result["success"] is False
        assert result["requires_pro"] is True

        listed = await tools.list_global_allow_keywords()
        assert listed["count"] == 3
        assert listed["remaining"] == 0

        assert (await tools.remove_global_allow_keyword(listed["keywords"][0]["id"]))["success"] is True
        assert (await tools.list_global_allow_keywords())["remaining"] == 1


class TestRetentionAndSettingsTools:
    """Retention preview, manual delete and settings."""

    async def test_retention_stats_and_delete_all(self, in_memory_db):
        await add_example_feed()
        await refresh()
        article_id = (await tools.list_articles())["articles"][0]["id"]
        await tools.toggle_article_star(article_id)

        stats = await tools.retention_stats()
        assert (stats["total"], stats["starred"]) == (1, 0)

        result = await tools.delete_old_articles(confirm=True)
        assert result["deleted"] == stats["total"]
        assert (await tools.list_articles())["count"] == 1

    async def test_delete_requires_confirmation(self, in_memory_db):
        await add_example_feed()
        await refresh()

        result = await tools.delete_old_articles()

        assert result["success"] is False
        assert result["would_delete"] == 2
        assert (await tools.list_articles())["count"] == 2

    async def test_recent_articles_survive_age_cutoff(self, in_memory_db):
        await add_example_feed()
        await refresh()

        assert (await tools.retention_stats(days=7))["total"] == 0
        assert (await tools.delete_old_articles(days=7, confirm=True))["deleted"] == 0

    async def test_settings(self, in_memory_db):
        settings = (await tools.get_settings())["settings"]
        assert settings["retention_days"] == 30

        result = await tools.update_settings(retention_days=0, auto_sync_on_startup="false")
        assert result["settings"]["retention_days"] == 0
        assert result["settings"]["auto_sync_on_startup"] is False

        assert (await tools.update_settings(retention_days=5))["success"] is False

    async def test_sync_status(self, in_memory_db):
        service = SyncService(config=ServerConfig())
        with patch("feed_filter.tools.feed_tools.get_sync_service", return_value=service):
            status = await tools.sync_status()

        assert status["last_sync_time"] is None
        assert status["should_sync"] is True
        assert status["is_refreshing"] is False


class TestDecorators:
    """Tests for the tool decorators."""

    async def test_exception_handler_converts_errors(self):
        async def failing():
            raise FeedFormatError("bad feed")

        assert await exception_handler(failing)() == {"success": False, "error": "bad feed"}

    async def test_exception_handler_unexpected_error(self):
        async def broken():
            raise RuntimeError("boom")

        result = await exception_handler(broken)()

        assert result["success"] is False
        assert "boom" in result["error"]

    async def test_tool_logger_passes_through(self):
        async def tool(value: int = 1):
            return {"success": True, "value": value}

        wrapped = tool_logger(tool)

        assert await wrapped(value=3) == {"success": True, "value": 3}
        assert wrapped.__name__ == "tool"
