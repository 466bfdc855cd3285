"""Database storage for feed_filter.

This module provides async SQLite database operations for feeds, articles,
filter rules, global allow keywords and key-value settings.
Database location: ~/.feed_filter/feed_filter.db (or FEED_FILTER_DB_PATH env var)

Timestamps are stored as ISO-8601 UTC strings with second precision so they
compare correctly as text.
"""

import asyncio
import os
import aiosqlite
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from feed_filter.logging_config import get_logger
from feed_filter.models.schemas import (
    Article,
    Feed,
    FilterRule,
    GlobalAllowKeyword,
    ParsedArticle,
    RetentionCutoff,
    RetentionStats,
)


def _get_db_path() -> Path:
    """Get the database path, respecting FEED_FILTER_DB_PATH env var for testing."""
    env_path = os.environ.get("FEED_FILTER_DB_PATH")
    if env_path:
        return Path(env_path)
    return Path.home() / ".feed_filter" / "feed_filter.db"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: datetime) -> str:
    """Serialize a datetime for storage (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def _iso_to_db_time(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return to_db_time(datetime.fromisoformat(value))
    except ValueError:
        return None


def _from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# Singleton connection
_db_connection: Optional[aiosqlite.Connection] = None

# Every write transaction on the shared connection holds this lock, so no
# coroutine can commit or roll back another one's half-finished work.
_write_lock: Optional[asyncio.Lock] = None


def _writes() -> asyncio.Lock:
    global _write_lock

    if _write_lock is None:
        _write_lock = asyncio.Lock()
    return _write_lock


async def get_database() -> aiosqlite.Connection:
    """Get or create a singleton database connection.

    Returns:
        Active database connection
    """
    global _db_connection

    if _db_connection is None:
        db_path = _get_db_path()
        # Ensure directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)

        _db_connection = await aiosqlite.connect(db_path)
        _db_connection.row_factory = aiosqlite.Row
        await init_database(_db_connection)

    return _db_connection


async def init_database(db: Optional[aiosqlite.Connection] = None) -> None:
    """Initialize database tables if they don't exist.

    Args:
        db: Optional database connection (uses singleton if not provided)
    """
    if db is None:
        db = await get_database()

    await db.execute("PRAGMA foreign_keys = ON")

    await db.execute("""
        CREATE TABLE IF NOT EXISTS feeds (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL,
            url TEXT NOT NULL UNIQUE,
            icon_url TEXT,
            order_no INTEGER NOT NULL,
            created_at TIMESTAMP NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS articles (
            id INTEGER PRIMARY KEY,
            feed_id INTEGER NOT NULL,
            feed_name TEXT NOT NULL,
            title TEXT NOT NULL,
            link TEXT NOT NULL,
            description TEXT,
            thumbnail_url TEXT,
            published_at TIMESTAMP,
            fetched_at TIMESTAMP NOT NULL,
            is_read BOOLEAN NOT NULL DEFAULT 0,
            is_starred BOOLEAN NOT NULL DEFAULT 0,
            UNIQUE (feed_id, link),
            FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS filters (
            id INTEGER PRIMARY KEY,
            block_keyword TEXT NOT NULL,
            allow_keyword TEXT,
            target_title BOOLEAN NOT NULL DEFAULT 1,
            target_description BOOLEAN NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS global_allow_keywords (
            id INTEGER PRIMARY KEY,
            keyword TEXT NOT NULL UNIQUE,
            created_at TIMESTAMP NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)

    # Create indexes for faster lookups
    await db.execute("CREATE INDEX IF NOT EXISTS idx_feeds_order_no ON feeds(order_no)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_articles_feed_id ON articles(feed_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles(published_at)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_articles_fetched_at ON articles(fetched_at)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_articles_is_read ON articles(is_read)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_filters_created_at ON filters(created_at)")

    await db.commit()


# ---------------------------------------------------------------------------
# Feeds
# ---------------------------------------------------------------------------


def _row_to_feed(row) -> Feed:
    return Feed(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        icon_url=row["icon_url"],
        order_no=row["order_no"],
        created_at=_from_db_time(row["created_at"]),
    )


async def add_feed(title: str, url: str, icon_url: Optional[str] = None) -> Feed:
    """Add a new feed at the end of the display order.

    Args:
        title: Display title
        url: Feed URL (unique)
        icon_url: Optional icon URL

    Returns:
        The created Feed object

    Raises:
        ValueError: If a feed with the same URL already exists
    """
    db = await get_database()
    created_at = to_db_time(_utcnow())

    async with _writes():
        try:
            cursor = await db.execute(
                """
                INSERT INTO feeds (title, url, icon_url, order_no, created_at)
                VALUES (?, ?, ?, (SELECT COALESCE(MAX(order_no), 0) + 1 FROM feeds), ?)
                """,
                (title, url, icon_url, created_at),
            )
            await db.commit()
        except aiosqlite.IntegrityError as e:
            raise ValueError(f"Feed with URL '{url}' already exists") from e

        cursor = await db.execute("SELECT * FROM feeds WHERE id = ?", (cursor.lastrowid,))
        return _row_to_feed(await cursor.fetchone())


async def get_feed(feed_id: int) -> Optional[Feed]:
    """Get a feed by its id."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM feeds WHERE id = ?", (feed_id,))
    row = await cursor.fetchone()

    return _row_to_feed(row) if row else None


async def list_feeds() -> List[Feed]:
    """List all feeds in display order."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM feeds ORDER BY order_no ASC, id ASC")
    return [_row_to_feed(row) async for row in cursor]


async def list_feeds_with_counts() -> List[dict]:
    """List all feeds with total and unread article counts."""
    db = await get_database()

    cursor = await db.execute("""
        SELECT f.*,
               COUNT(a.id) as total_articles,
               SUM(CASE WHEN a.is_read = 0 THEN 1 ELSE 0 END) as unread_articles
        FROM feeds f
        LEFT JOIN articles a ON f.id = a.feed_id
        GROUP BY f.id
        ORDER BY f.order_no ASC, f.id ASC
    """)

    feeds = []
    async for row in cursor:
        feeds.append({
            "id": row["id"],
            "title": row["title"],
            "url": row["url"],
            "icon_url": row["icon_url"],
            "order_no": row["order_no"],
            "created_at": row["created_at"],
            "total_articles": row["total_articles"],
            "unread_articles": row["unread_articles"] or 0,
        })

    return feeds


async def update_feed(feed_id: int, title: str, url: str, icon_url: Optional[str]) -> Optional[Feed]:
    """Update a feed's title, URL and icon.

    Raises:
        ValueError: If the new URL belongs to another feed
    """
    db = await get_database()

    async with _writes():
        try:
            cursor = await db.execute(
                "UPDATE feeds SET title = ?, url = ?, icon_url = ? WHERE id = ?",
                (title, url, icon_url, feed_id),
            )
            await db.commit()
        except aiosqlite.IntegrityError as e:
            raise ValueError(f"Feed with URL '{url}' already exists") from e

    if cursor.rowcount == 0:
        return None

    return await get_feed(feed_id)


async def remove_feed(feed_id: int) -> Tuple[bool, int]:
    """Remove a feed and all its articles.

    Feeds after it move up one place so the order stays contiguous.

    Args:
        feed_id: ID of the feed to remove

    Returns:
        Tuple of (success, article_count_deleted)
    """
    db = await get_database()

    async with _writes():
        cursor = await db.execute("SELECT order_no FROM feeds WHERE id = ?", (feed_id,))
        row = await cursor.fetchone()

        if row is None:
            return (False, 0)

        order_no = row["order_no"]

        # Count articles to be deleted
        cursor = await db.execute(
            "SELECT COUNT(*) as count FROM articles WHERE feed_id = ?", (feed_id,)
        )
        count_row = await cursor.fetchone()
        article_count = count_row["count"]

        try:
            # Delete articles first (foreign key constraint)
            await db.execute("DELETE FROM articles WHERE feed_id = ?", (feed_id,))
            await db.execute("DELETE FROM feeds WHERE id = ?", (feed_id,))
            await db.execute(
                "UPDATE feeds SET order_no = order_no - 1 WHERE order_no > ?", (order_no,)
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    return (True, article_count)


async def reorder_feeds(feed_ids: List[int]) -> None:
    """Assign order numbers 1..n following ``feed_ids`` in one transaction."""
    db = await get_database()

    async with _writes():
        try:
            for index, feed_id in enumerate(feed_ids, start=1):
                await db.execute("UPDATE feeds SET order_no = ? WHERE id = ?", (index, feed_id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise


async def count_feeds() -> int:
    """Number of subscribed feeds."""
    db = await get_database()

    cursor = await db.execute("SELECT COUNT(*) as count FROM feeds")
    row = await cursor.fetchone()
    return row["count"]


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


def _row_to_article(row) -> Article:
    return Article(
        id=row["id"],
        feed_id=row["feed_id"],
        feed_name=row["feed_name"],
        title=row["title"],
        link=row["link"],
        summary=row["description"],
        thumbnail_url=row["thumbnail_url"],
        published_at=_from_db_time(row["published_at"]),
        fetched_at=_from_db_time(row["fetched_at"]),
        is_read=bool(row["is_read"]),
        is_starred=bool(row["is_starred"]),
    )


async def get_existing_article_links(feed_id: int, links: List[str]) -> Set[str]:
    """Get links that already exist in the database for a feed.

    Args:
        feed_id: ID of the feed
        links: List of links to check

    Returns:
        Set of links that already exist
    """
    if not links:
        return set()

    db = await get_database()

    placeholders = ",".join("?" * len(links))
    cursor = await db.execute(
        f"""
        SELECT link FROM articles
        WHERE feed_id = ? AND link IN ({placeholders})
        """,
        [feed_id] + links,
    )

    existing = set()
    async for row in cursor:
        existing.add(row["link"])

    return existing


async def add_articles(
    feed_id: int,
    feed_name: str,
    articles: Iterable[ParsedArticle],
    fetched_at: Optional[datetime] = None,
) -> int:
    """Add parsed articles for one feed in a single transaction.

    Rows whose (feed_id, link) already exists are ignored. A row that fails
    to insert is logged and skipped; the rest of the batch is kept. Any other
    error rolls back the whole batch. The write lock is held throughout, so
    other writers can neither commit nor roll back a partial batch.

    Args:
        feed_id: ID of the feed these articles belong to
        feed_name: Feed title copied onto each article
        articles: Parsed articles
        fetched_at: Ingestion time (defaults to now)

    Returns:
        Number of articles actually added (excludes duplicates)
    """
    logger = get_logger(__name__)
    db = await get_database()
    fetched = to_db_time(fetched_at or _utcnow())
    added_count = 0

    async with _writes():
        try:
            for article in articles:
                try:
                    cursor = await db.execute(
                        """
                        INSERT OR IGNORE INTO articles (
                            feed_id, feed_name, title, link, description,
                            thumbnail_url, published_at, fetched_at, is_read, is_starred
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                        """,
                        (
                            feed_id,
                            feed_name,
                            article.title,
                            article.link,
                            article.summary,
                            article.thumbnail_url,
                            _iso_to_db_time(article.published_at),
                            fetched,
                            1 if article.is_read else 0,
                        ),
                    )
                    added_count += cursor.rowcount
                except aiosqlite.Error as e:
                    logger.warning(f"Failed to insert article {article.link}: {e}")

            await db.commit()
        except Exception:
            await db.rollback()
            raise

    return added_count


async def get_article(article_id: int) -> Optional[Article]:
    """Get an article by its id."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM articles WHERE id = ?", (article_id,))
    row = await cursor.fetchone()

    return _row_to_article(row) if row else None


async def list_articles(
    feed_id: Optional[int] = None,
    include_read: bool = True,
    starred_only: bool = False,
    limit: Optional[int] = None,
) -> List[Article]:
    """List articles, newest first.

    Ordering uses published_at when available, falling back to fetched_at.

    Args:
        feed_id: Optional feed to filter by
        include_read: Whether to include read articles
        starred_only: Only return starred articles
        limit: Maximum number of articles to return

    Returns:
        List of Article objects
    """
    db = await get_database()

    query = "SELECT * FROM articles WHERE 1=1"
    params: List = []

    if feed_id is not None:
        query += " AND feed_id = ?"
        params.append(feed_id)

    if not include_read:
        query += " AND is_read = 0"

    if starred_only:
        query += " AND is_starred = 1"

    query += " ORDER BY COALESCE(published_at, fetched_at) DESC, id DESC"

    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    cursor = await db.execute(query, params)
    return [_row_to_article(row) async for row in cursor]


async def _set_read(article_id: int, is_read: bool) -> Optional[Article]:
    db = await get_database()

    async with _writes():
        await db.execute(
            "UPDATE articles SET is_read = ? WHERE id = ?",
            (1 if is_read else 0, article_id),
        )
        await db.commit()

    return await get_article(article_id)


async def mark_article_read(article_id: int) -> Optional[Article]:
    """Mark an article as read.

    Returns:
        Updated Article object if found, None otherwise
    """
    return await _set_read(article_id, True)


async def mark_article_unread(article_id: int) -> Optional[Article]:
    """Mark an article as unread.

    Returns:
        Updated Article object if found, None otherwise
    """
    return await _set_read(article_id, False)


async def mark_all_read(feed_id: Optional[int] = None) -> int:
    """Mark all articles as read, optionally for one feed.

    Returns:
        Number of articles marked as read
    """
    db = await get_database()

    async with _writes():
        if feed_id is not None:
            cursor = await db.execute(
                "UPDATE articles SET is_read = 1 WHERE feed_id = ? AND is_read = 0",
                (feed_id,),
            )
        else:
            cursor = await db.execute("UPDATE articles SET is_read = 1 WHERE is_read = 0")

        await db.commit()
    return cursor.rowcount


async def toggle_article_starred(article_id: int) -> Optional[Article]:
    """Flip the starred flag of an article.

    Returns:
        Updated Article object if found, None otherwise
    """
    db = await get_database()

    async with _writes():
        await db.execute(
            "UPDATE articles SET is_starred = CASE WHEN is_starred = 1 THEN 0 ELSE 1 END WHERE id = ?",
            (article_id,),
        )
        await db.commit()

    return await get_article(article_id)


async def delete_article(article_id: int) -> bool:
    """Delete one article. Returns False if it did not exist."""
    db = await get_database()

    async with _writes():
        cursor = await db.execute("DELETE FROM articles WHERE id = ?", (article_id,))
        await db.commit()
    return cursor.rowcount > 0


def _retention_clause(
    cutoff: RetentionCutoff,
    include_starred: bool,
    now: datetime,
) -> Tuple[str, List]:
    """WHERE clause shared by the retention preview and delete paths."""
    conditions = []
    params: List = []

    cutoff_time = cutoff.cutoff_time(now)
    if cutoff_time is not None:
        conditions.append("fetched_at < ?")
        params.append(to_db_time(cutoff_time))

    if not include_starred:
        conditions.append("is_starred = 0")

    where = " WHERE " + " AND ".join(conditions) if conditions else ""
    return where, params


async def get_old_articles_stats(
    cutoff: RetentionCutoff,
    include_starred: bool = False,
    now: Optional[datetime] = None,
) -> RetentionStats:
    """Count the articles a retention delete would remove.

    Args:
        cutoff: Which articles are old enough
        include_starred: Whether starred articles are selected
        now: Reference time (defaults to now)

    Returns:
        RetentionStats with total, unread, read and starred counts
    """
    db = await get_database()
    where, params = _retention_clause(cutoff, include_starred, now or _utcnow())

    cursor = await db.execute(
        f"""
        SELECT
            COUNT(*) as total,
            SUM(CASE WHEN is_read = 0 THEN 1 ELSE 0 END) as unread,
            SUM(CASE WHEN is_read = 1 THEN 1 ELSE 0 END) as read,
            SUM(CASE WHEN is_starred = 1 THEN 1 ELSE 0 END) as starred
        FROM articles{where}
        """,
        params,
    )
    row = await cursor.fetchone()

    return RetentionStats(
        total=row["total"] or 0,
        unread=row["unread"] or 0,
        read=row["read"] or 0,
        starred=row["starred"] or 0,
    )


async def delete_old_articles(
    cutoff: RetentionCutoff,
    include_starred: bool = False,
    now: Optional[datetime] = None,
) -> int:
    """Delete the articles selected by a retention cutoff.

    Returns:
        Number of articles deleted
    """
    db = await get_database()
    where, params = _retention_clause(cutoff, include_starred, now or _utcnow())

    async with _writes():
        cursor = await db.execute(f"DELETE FROM articles{where}", params)
        await db.commit()
    return cursor.rowcount


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def _row_to_filter(row) -> FilterRule:
    return FilterRule(
        id=row["id"],
        block_keyword=row["block_keyword"],
        allow_keyword=row["allow_keyword"],
        target_title=bool(row["target_title"]),
        target_description=bool(row["target_description"]),
        created_at=_from_db_time(row["created_at"]),
        updated_at=_from_db_time(row["updated_at"]),
    )


async def add_filter(rule: FilterRule) -> FilterRule:
    """Insert a filter rule and return it with its id and timestamps."""
    db = await get_database()
    now = _utcnow()
    created_at = to_db_time(rule.created_at or now)

    async with _writes():
        cursor = await db.execute(
            """
            INSERT INTO filters (
                block_keyword, allow_keyword, target_title, target_description,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                rule.block_keyword,
                rule.allow_keyword,
                1 if rule.target_title else 0,
                1 if rule.target_description else 0,
                created_at,
                to_db_time(now),
            ),
        )
        await db.commit()

        cursor = await db.execute("SELECT * FROM filters WHERE id = ?", (cursor.lastrowid,))
        return _row_to_filter(await cursor.fetchone())


async def get_filter(filter_id: int) -> Optional[FilterRule]:
    """Get a filter rule by its id."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM filters WHERE id = ?", (filter_id,))
    row = await cursor.fetchone()

    return _row_to_filter(row) if row else None


async def list_filters() -> List[FilterRule]:
    """List filter rules, newest first."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM filters ORDER BY created_at DESC, id DESC")
    return [_row_to_filter(row) async for row in cursor]


async def update_filter(rule: FilterRule) -> Optional[FilterRule]:
    """Update a filter rule in place, refreshing updated_at.

    Returns:
        The updated rule, or None if no rule has that id
    """
    db = await get_database()

    async with _writes():
        cursor = await db.execute(
            """
            UPDATE filters SET
                block_keyword = ?,
                allow_keyword = ?,
                target_title = ?,
                target_description = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                rule.block_keyword,
                rule.allow_keyword,
                1 if rule.target_title else 0,
                1 if rule.target_description else 0,
                to_db_time(_utcnow()),
                rule.id,
            ),
        )
        await db.commit()

    if cursor.rowcount == 0:
        return None

    return await get_filter(rule.id)


async def remove_filter(filter_id: int) -> bool:
    """Delete a filter rule. Returns False if it did not exist."""
    db = await get_database()

    async with _writes():
        cursor = await db.execute("DELETE FROM filters WHERE id = ?", (filter_id,))
        await db.commit()
    return cursor.rowcount > 0


async def count_filters() -> int:
    """Number of filter rules."""
    db = await get_database()

    cursor = await db.execute("SELECT COUNT(*) as count FROM filters")
    row = await cursor.fetchone()
    return row["count"]


# ---------------------------------------------------------------------------
# Global allow keywords
# ---------------------------------------------------------------------------


def _row_to_keyword(row) -> GlobalAllowKeyword:
    return GlobalAllowKeyword(
        id=row["id"],
        keyword=row["keyword"],
        created_at=_from_db_time(row["created_at"]),
    )


async def add_global_allow_keyword(keyword: str) -> GlobalAllowKeyword:
    """Insert a global allow keyword.

    Raises:
        ValueError: If the keyword already exists
    """
    db = await get_database()
    keyword = keyword.strip()
    created_at = to_db_time(_utcnow())

    async with _writes():
        try:
            cursor = await db.execute(
                "INSERT INTO global_allow_keywords (keyword, created_at) VALUES (?, ?)",
                (keyword, created_at),
            )
            await db.commit()
        except aiosqlite.IntegrityError as e:
            raise ValueError(f"Keyword '{keyword}' already exists") from e

    return GlobalAllowKeyword(
        id=cursor.lastrowid,
        keyword=keyword,
        created_at=_from_db_time(created_at),
    )


async def list_global_allow_keywords() -> List[GlobalAllowKeyword]:
    """List global allow keywords, newest first."""
    db = await get_database()

    cursor = await db.execute(
        "SELECT * FROM global_allow_keywords ORDER BY created_at DESC, id DESC"
    )
    return [_row_to_keyword(row) async for row in cursor]


async def global_allow_keyword_exists(keyword: str) -> bool:
    """Whether the trimmed keyword is already registered."""
    db = await get_database()

    cursor = await db.execute(
        "SELECT COUNT(*) as count FROM global_allow_keywords WHERE keyword = ?",
        (keyword.strip(),),
    )
    row = await cursor.fetchone()
    return row["count"] > 0


async def remove_global_allow_keyword(keyword_id: int) -> bool:
    """Delete a global allow keyword. Returns False if it did not exist."""
    db = await get_database()

    async with _writes():
        cursor = await db.execute("DELETE FROM global_allow_keywords WHERE id = ?", (keyword_id,))
        await db.commit()
    return cursor.rowcount > 0


async def count_global_allow_keywords() -> int:
    """Number of global allow keywords."""
    db = await get_database()

    cursor = await db.execute("SELECT COUNT(*) as count FROM global_allow_keywords")
    row = await cursor.fetchone()
    return row["count"]


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


async def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    """Read a string setting."""
    db = await get_database()

    cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
    row = await cursor.fetchone()
    return row["value"] if row else default


async def set_setting(key: str, value: str) -> None:
    """Write a string setting, replacing any previous value."""
    db = await get_database()

    async with _writes():
        await db.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        await db.commit()


async def get_all_settings() -> Dict[str, str]:
    """All stored settings as a dict."""
    db = await get_database()

    cursor = await db.execute("SELECT key, value FROM settings ORDER BY key")
    return {row["key"]: row["value"] async for row in cursor}


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection, _write_lock

    if _db_connection is not None:
        await _db_connection.close()
        _db_connection = None
    _write_lock = None
