"""Unit tests for database operations.

Tests for the storage layer using in-memory SQLite.
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone

from feed_filter.models.schemas import FilterRule, ParsedArticle, RetentionCutoff
from feed_filter.storage.database import (
    init_database,
    add_feed,
    get_feed,
    list_feeds,
    list_feeds_with_counts,
    update_feed,
    remove_feed,
    reorder_feeds,
    add_articles,
    get_existing_article_links,
    list_articles,
    mark_article_read,
    mark_article_unread,
    mark_all_read,
    toggle_article_starred,
    delete_article,
    get_old_articles_stats,
    delete_old_articles,
    add_filter,
    list_filters,
    update_filter,
    remove_filter,
    add_global_allow_keyword,
    list_global_allow_keywords,
    global_allow_keyword_exists,
    remove_global_allow_keyword,
    get_setting,
    set_setting,
    get_all_settings,
    to_db_time,
)


# Mark all tests as async
pytestmark = pytest.mark.anyio


def parsed(link: str, title: str = "Post", published_at: str = "2024-01-01T00:00:00+00:00") -> ParsedArticle:
    return ParsedArticle(title=title, link=link, published_at=published_at)


class BrokenArticle:
    """Parsed article whose fields cannot be read."""

    title = "Broken"
    published_at = ""

    @property
    def link(self):
        raise RuntimeError("corrupt article")


class TestDatabaseInitialization:
    """Tests for database schema initialization."""

    async def test_init_creates_tables(self, in_memory_db):
        """Test that initialization creates the required tables."""
        cursor = await in_memory_db.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )
        tables = [row[0] for row in await cursor.fetchall()]

        for table in ("feeds", "articles", "filters", "global_allow_keywords", "settings"):
            assert table in tables

    async def test_init_creates_indexes(self, in_memory_db):
        """Test that initialization creates indexes."""
        cursor = await in_memory_db.execute(
            "SELECT name FROM sqlite_master WHERE type='index'"
        )
        indexes = [row[0] for row in await cursor.fetchall()]

        assert "idx_articles_feed_id" in indexes
        assert "idx_articles_fetched_at" in indexes

    async def test_init_is_idempotent(self, in_memory_db):
        """Test that calling init multiple times doesn't cause errors."""
        await init_database(in_memory_db)
        await init_database(in_memory_db)


class TestFeedOperations:
    """Tests for feed CRUD operations."""

    async def test_add_feed(self, in_memory_db):
        feed = await add_feed("Example", "https://example.com/feed", "https://example.com/icon.png")

        assert feed.id is not None
        assert feed.title == "Example"
        assert feed.icon_url == "https://example.com/icon.png"
        assert feed.order_no == 1
        assert feed.created_at is not None

    async def test_add_feed_appends_to_order(self, in_memory_db):
        await add_feed("A", "https://a.example/feed")
        second = await add_feed("B", "https://b.example/feed")

        assert second.order_no == 2

    async def test_add_duplicate_url_raises(self, in_memory_db):
        await add_feed("A", "https://a.example/feed")

        with pytest.raises(ValueError, match="already exists"):
            await add_feed("Again", "https://a.example/feed")

    async def test_update_feed(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")

        updated = await update_feed(feed.id, "Renamed", "https://a.example/rss", None)

        assert updated.title == "Renamed"
        assert updated.url == "https://a.example/rss"

    async def test_update_missing_feed(self, in_memory_db):
        assert await update_feed(999, "X", "https://x.example", None) is None

    async def test_remove_feed_cascades_and_compacts_order(self, in_memory_db):
        first = await add_feed("A", "https://a.example/feed")
        second = await add_feed("B", "https://b.example/feed")
        await add_articles(first.id, first.title, [parsed("https://a.example/1"), parsed("https://a.example/2")])

        success, count = await remove_feed(first.id)

        assert success is True
        assert count == 2
        assert await get_feed(first.id) is None
        assert await list_articles() == []
        assert (await get_feed(second.id)).order_no == 1

    async def test_remove_missing_feed(self, in_memory_db):
        assert await remove_feed(999) == (False, 0)

    async def test_reorder_feeds(self, in_memory_db):
        a = await add_feed("A", "https://a.example/feed")
        b = await add_feed("B", "https://b.example/feed")
        c = await add_feed("C", "https://c.example/feed")

        await reorder_feeds([c.id, a.id, b.id])

        assert [feed.title for feed in await list_feeds()] == ["C", "A", "B"]

    async def test_list_feeds_with_counts(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        await add_feed("Empty", "https://empty.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/1"), parsed("https://a.example/2")])
        articles = await list_articles(feed_id=feed.id)
        await mark_article_read(articles[0].id)

        feeds = await list_feeds_with_counts()

        assert feeds[0]["total_articles"] == 2
        assert feeds[0]["unread_articles"] == 1
        assert feeds[1]["total_articles"] == 0
        assert feeds[1]["unread_articles"] == 0


class TestArticleOperations:
    """Tests for article operations."""

    async def test_add_articles_ignores_duplicates(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        batch = [parsed("https://a.example/1"), parsed("https://a.example/2")]

        assert await add_articles(feed.id, feed.title, batch) == 2
        assert await add_articles(feed.id, feed.title, batch) == 0
        assert len(await list_articles()) == 2

    async def test_same_link_in_different_feeds(self, in_memory_db):
        a = await add_feed("A", "https://a.example/feed")
        b = await add_feed("B", "https://b.example/feed")

        await add_articles(a.id, a.title, [parsed("https://shared.example/post")])
        await add_articles(b.id, b.title, [parsed("https://shared.example/post")])

        assert len(await list_articles()) == 2

    async def test_get_existing_article_links(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/1")])

        existing = await get_existing_article_links(
            feed.id, ["https://a.example/1", "https://a.example/new"]
        )

        assert existing == {"https://a.example/1"}
        assert await get_existing_article_links(feed.id, []) == set()

    async def test_list_articles_newest_first(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        await add_articles(feed.id, feed.title, [
            parsed("https://a.example/old", "Old", "2024-01-01T00:00:00+00:00"),
            parsed("https://a.example/new", "New", "2024-02-01T00:00:00+00:00"),
        ])

        articles = await list_articles()

        assert [a.title for a in articles] == ["New", "Old"]
        assert articles[0].feed_name == "A"
        assert articles[0].published_at == datetime(2024, 2, 1, tzinfo=timezone.utc)

    async def test_list_articles_filters(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        other = await add_feed("B", "https://b.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/1"), parsed("https://a.example/2")])
        await add_articles(other.id, other.title, [parsed("https://b.example/1")])
        first = (await list_articles(feed_id=feed.id))[0]
        await mark_article_read(first.id)
        await toggle_article_starred(first.id)

        assert len(await list_articles(feed_id=feed.id)) == 2
        assert len(await list_articles(include_read=False)) == 2
        assert [a.id for a in await list_articles(starred_only=True)] == [first.id]
        assert len(await list_articles(limit=1)) == 1

    async def test_mark_read_and_unread(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/1")])
        article = (await list_articles())[0]

        assert (await mark_article_read(article.id)).is_read is True
        assert (await mark_article_unread(article.id)).is_read is False
        assert await mark_article_read(999) is None

    async def test_mark_all_read(self, in_memory_db):
        a = await add_feed("A", "https://a.example/feed")
        b = await add_feed("B", "https://b.example/feed")
        await add_articles(a.id, a.title, [parsed("https://a.example/1"), parsed("https://a.example/2")])
        await add_articles(b.id, b.title, [parsed("https://b.example/1")])

        assert await mark_all_read(a.id) == 2
        assert await mark_all_read() == 1
        assert await mark_all_read() == 0

    async def test_toggle_starred(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/1")])
        article = (await list_articles())[0]

        assert (await toggle_article_starred(article.id)).is_starred is True
        assert (await toggle_article_starred(article.id)).is_starred is False

    async def test_delete_article(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/1")])
        article = (await list_articles())[0]

        assert await delete_article(article.id) is True
        assert await delete_article(article.id) is False

    async def test_failing_row_is_skipped(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        unbindable = ParsedArticle(title=object(), link="https://a.example/bad", published_at="")

        added = await add_articles(feed.id, feed.title, [
            parsed("https://a.example/1"),
            unbindable,
            parsed("https://a.example/2"),
        ])

        assert added == 2
        assert sorted(a.link for a in await list_articles()) == [
            "https://a.example/1",
            "https://a.example/2",
        ]

    async def test_unexpected_error_rolls_back_batch(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        batch = [parsed("https://a.example/1"), parsed("https://a.example/2"), BrokenArticle()]

        with pytest.raises(RuntimeError):
            await add_articles(feed.id, feed.title, batch)

        assert await list_articles() == []

    async def test_concurrent_write_does_not_commit_partial_batch(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        batch = [parsed(f"https://a.example/{n}") for n in range(3)] + [BrokenArticle()]

        results = await asyncio.gather(
            add_articles(feed.id, feed.title, batch),
            set_setting("read_display", "hide"),
            return_exceptions=True,
        )

        assert isinstance(results[0], RuntimeError)
        assert await list_articles() == []
        assert await get_setting("read_display") == "hide"


class TestRetentionQueries:
    """Stats and delete share one selection."""

    async def test_stats_match_delete(self, in_memory_db):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        feed = await add_feed("A", "https://a.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/old1"), parsed("https://a.example/old2")], fetched_at=now - timedelta(days=10))
        await add_articles(feed.id, feed.title, [parsed("https://a.example/new")], fetched_at=now)
        old = [a for a in await list_articles() if a.link.endswith("old1")][0]
        await mark_article_read(old.id)

        stats = await get_old_articles_stats(RetentionCutoff.older_than(7), now=now)

        assert (stats.total, stats.unread, stats.read, stats.starred) == (2, 1, 1, 0)
        assert await delete_old_articles(RetentionCutoff.older_than(7), now=now) == stats.total

    async def test_all_cutoff(self, in_memory_db):
        feed = await add_feed("A", "https://a.example/feed")
        await add_articles(feed.id, feed.title, [parsed("https://a.example/1"), parsed("https://a.example/2")])
        starred = (await list_articles())[0]
        await toggle_article_starred(starred.id)

        assert (await get_old_articles_stats(RetentionCutoff.all())).total == 1
        assert (await get_old_articles_stats(RetentionCutoff.all(), include_starred=True)).total == 2
        assert await delete_old_articles(RetentionCutoff.all()) == 1
        assert [a.id for a in await list_articles()] == [starred.id]


class TestFilterOperations:
    """Tests for filter rule storage."""

    async def test_add_and_list_filters(self, in_memory_db):
        first = await add_filter(FilterRule(block_keyword="FX", allow_keyword="React"))
        second = await add_filter(FilterRule(block_keyword="炎上", target_description=False))

        rules = await list_filters()

        assert [rule.id for rule in rules] == [second.id, first.id]
        assert rules[1].allow_keyword == "React"
        assert rules[0].target_description is False
        assert first.created_at is not None

    async def test_update_filter(self, in_memory_db):
        rule = await add_filter(FilterRule(block_keyword="FX"))
        rule.block_keyword = "crypto"
        rule.target_title = False

        updated = await update_filter(rule)

        assert updated.block_keyword == "crypto"
        assert updated.target_title is False

    async def test_update_missing_filter(self, in_memory_db):
        assert await update_filter(FilterRule(block_keyword="x", id=999)) is None

    async def test_remove_filter(self, in_memory_db):
        rule = await add_filter(FilterRule(block_keyword="FX"))

        assert await remove_filter(rule.id) is True
        assert await remove_filter(rule.id) is False


class TestGlobalAllowKeywordOperations:
    """Tests for global allow keyword storage."""

    async def test_add_and_list(self, in_memory_db):
        await add_global_allow_keyword(" React ")

        keywords = await list_global_allow_keywords()

        assert [k.keyword for k in keywords] == ["React"]
        assert await global_allow_keyword_exists("React") is True
        assert await global_allow_keyword_exists("Vue") is False

    async def test_duplicate_raises(self, in_memory_db):
        await add_global_allow_keyword("React")

        with pytest.raises(ValueError):
            await add_global_allow_keyword("React")

    async def test_remove(self, in_memory_db):
        keyword = await add_global_allow_keyword("React")

        assert await remove_global_allow_keyword(keyword.id) is True
        assert await list_global_allow_keywords() == []


class TestSettings:
    """Tests for the key-value settings table."""

    async def test_get_default(self, in_memory_db):
        assert await get_setting("missing") is None
        assert await get_setting("missing", "fallback") == "fallback"

    async def test_set_overwrites(self, in_memory_db):
        await set_setting("retention_days", "7")
        await set_setting("retention_days", "90")

        assert await get_setting("retention_days") == "90"
        assert await get_all_settings() == {"retention_days": "90"}


class TestTimeSerialization:
    """Tests for stored timestamps."""

    def test_naive_is_treated_as_utc(self):
        assert to_db_time(datetime(2024, 1, 1, 9, 0, 0)) == "2024-01-01T09:00:00+00:00"

    def test_converted_to_utc(self):
        jst = timezone(timedelta(hours=9))
        assert to_db_time(datetime(2024, 1, 1, 9, 0, 0, 123, tzinfo=jst)) == "2024-01-01T00:00:00+00:00"
