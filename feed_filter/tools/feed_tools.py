"""Feed filter MCP tools.

This module provides MCP tools for managing feeds, filter rules, global
allow keywords and stored articles.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

from typing import Any, Dict, List
from mcp.server.fastmcp import Context

from feed_filter.exceptions import ValidationError
from feed_filter.logging_config import get_logger
from feed_filter.models.schemas import Article, Feed, FilterRule
from feed_filter.services import feeds as feed_service
from feed_filter.services import filters as filter_service
from feed_filter.services import preferences, retention
from feed_filter.services.articles import list_visible_articles
from feed_filter.services.filters import GlobalAllowKeywordService
from feed_filter.services.sync import get_sync_service
from feed_filter.storage import database


def _feed_dict(feed: Feed) -> Dict[str, Any]:
    return {
        "id": feed.id,
        "title": feed.title,
        "url": feed.url,
        "icon_url": feed.icon_url,
        "order_no": feed.order_no,
        "created_at": feed.created_at.isoformat() if feed.created_at else None,
    }


def _article_dict(article: Article) -> Dict[str, Any]:
    return {
        "id": article.id,
        "feed_id": article.feed_id,
        "feed_name": article.feed_name,
        "title": article.title,
        "link": article.link,
        "summary": article.summary,
        "thumbnail_url": article.thumbnail_url,
        "published_at": article.published_at.isoformat() if article.published_at else None,
        "fetched_at": article.fetched_at.isoformat() if article.fetched_at else None,
        "is_read": article.is_read,
        "is_starred": article.is_starred,
    }


def _filter_dict(rule: FilterRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "block_keyword": rule.block_keyword,
        "allow_keyword": rule.allow_keyword,
        "target_title": rule.target_title,
        "target_description": rule.target_description,
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
        "updated_at": rule.updated_at.isoformat() if rule.updated_at else None,
    }


async def add_feed(url: str, title: str = "", ctx: Context = None) -> Dict[str, Any]:
    """Subscribe to an RSS/Atom feed.

    The URL may be the feed itself or a site homepage; for a homepage, common
    feed paths (/feed, /rss.xml, /atom.xml, ...) are probed. The feed title is
    read from the feed when not given.

    Args:
        url: Feed URL or site URL (https:// is added if no scheme)
        title: Display title (empty string to use the feed's own title)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed: object with id, title, url, icon_url, order_no
        - error: string if success is False
    """
    logger = get_logger(__name__)
    logger.info(f"add_feed called: url={url}")

    try:
        feed = await feed_service.subscribe(url, title=title)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "feed": _feed_dict(feed)}


async def detect_feed(url: str, ctx: Context = None) -> Dict[str, Any]:
    """Find the feed of a site by probing common feed paths.

    Args:
        url: Site URL
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed_url: detected feed URL, or null if none was found
    """
    logger = get_logger(__name__)
    logger.info(f"detect_feed called: url={url}")

    feed_url = await feed_service.detect_feed_url(url)
    return {"success": True, "feed_url": feed_url}


async def remove_feed(feed_id: int, ctx: Context = None) -> Dict[str, Any]:
    """Remove a feed and all its stored articles. This cannot be undone.

    Args:
        feed_id: Database ID of the feed (from list_feeds response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - articles_deleted: count of articles removed
        - error: string if feed not found
    """
    logger = get_logger(__name__)
    logger.info(f"remove_feed called: feed_id={feed_id}")

    try:
        article_count = await feed_service.delete_feed(feed_id)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "articles_deleted": article_count}


async def list_feeds(ctx: Context = None) -> Dict[str, Any]:
    """List subscribed feeds in display order with article counts.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of feeds
        - feeds: list of feed objects with total_articles and unread_articles
    """
    logger = get_logger(__name__)
    logger.info("list_feeds called")

    feeds = await database.list_feeds_with_counts()
    return {"success": True, "count": len(feeds), "feeds": feeds}


async def reorder_feeds(feed_ids: List[int], ctx: Context = None) -> Dict[str, Any]:
    """Set the display order of feeds.

    Args:
        feed_ids: Every feed id, in the new order
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feeds: feeds in their new order
        - error: string if the list does not name every feed exactly once
    """
    logger = get_logger(__name__)
    logger.info(f"reorder_feeds called: feed_ids={feed_ids}")

    try:
        feeds = await feed_service.reorder_feeds(feed_ids)
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "feeds": [_feed_dict(feed) for feed in feeds]}


async def refresh_feeds(ctx: Context = None) -> Dict[str, Any]:
    """Fetch all feeds, store new articles and apply the retention period.

    Feeds are fetched one after another; a feed that fails is skipped. If a
    refresh is already running this returns immediately with zero counts.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - fetched: number of feeds fetched successfully
        - new_articles: number of articles added
        - deleted: number of articles removed by retention
    """
    logger = get_logger(__name__)
    logger.info("refresh_feeds called")

    result = await get_sync_service().refresh()
    return {
        "success": True,
        "fetched": result.fetched,
        "new_articles": result.new_articles,
        "deleted": result.deleted,
    }


async def sync_status(min_interval_minutes: int = 0, ctx: Context = None) -> Dict[str, Any]:
    """Report when feeds were last synced and whether a sync is due.

    Args:
        min_interval_minutes: Minimum interval between syncs (0 uses the configured default)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - last_sync_time: ISO timestamp or null
        - should_sync: bool
        - is_refreshing: bool
    """
    service = get_sync_service()
    interval_ms = min_interval_minutes * 60_000 if min_interval_minutes > 0 else None
    last = await service.get_last_sync_time()

    return {
        "success": True,
        "last_sync_time": last.isoformat() if last else None,
        "should_sync": await service.should_sync(interval_ms),
        "is_refreshing": service.is_refreshing,
    }


async def list_articles(
    feed_id: int = 0,
    include_read: bool = True,
    starred_only: bool = False,
    include_hidden: bool = False,
    limit: int = 50,
    ctx: Context = None,
) -> Dict[str, Any]:
    """List stored articles, newest first, with filter rules applied.

    Args:
        feed_id: Only this feed (0 for all feeds)
        include_read: Include articles already read
        starred_only: Only starred articles
        include_hidden: Skip filtering and return articles the rules would hide
        limit: Maximum number of articles to return
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of articles returned
        - hidden: number of articles hidden by filters
        - articles: list of article objects
    """
    logger = get_logger(__name__)
    logger.info(f"list_articles called: feed_id={feed_id}, include_read={include_read}, starred_only={starred_only}, include_hidden={include_hidden}, limit={limit}")

    if include_hidden:
        articles = await database.list_articles(
            feed_id=feed_id or None,
            include_read=include_read,
            starred_only=starred_only,
            limit=limit,
        )
        hidden = 0
    else:
        articles, hidden = await list_visible_articles(
            feed_id=feed_id or None,
            include_read=include_read,
            starred_only=starred_only,
            limit=limit,
        )

    return {
        "success": True,
        "count": len(articles),
        "hidden": hidden,
        "articles": [_article_dict(article) for article in articles],
    }


async def _article_result(article, article_id: int) -> Dict[str, Any]:
    if article is None:
        return {"success": False, "error": f"Article with id {article_id} not found"}
    return {"success": True, "article": _article_dict(article)}


async def mark_article_read(article_id: int, ctx: Context = None) -> Dict[str, Any]:
    """Mark a specific article as read.

    Args:
        article_id: Database ID of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)
    """
    get_logger(__name__).info(f"mark_article_read called: article_id={article_id}")
    return await _article_result(await database.mark_article_read(article_id), article_id)


async def mark_article_unread(article_id: int, ctx: Context = None) -> Dict[str, Any]:
    """Mark a specific article as unread.

    Args:
        article_id: Database ID of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)
    """
    get_logger(__name__).info(f"mark_article_unread called: article_id={article_id}")
    return await _article_result(await database.mark_article_unread(article_id), article_id)


async def mark_all_read(feed_id: int = 0, ctx: Context = None) -> Dict[str, Any]:
    """Mark all unread articles as read, optionally for one feed.

    Args:
        feed_id: Only this feed (0 for all feeds)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - articles_marked_read: count of articles updated
    """
    get_logger(__name__).info(f"mark_all_read called: feed_id={feed_id}")

    count = await database.mark_all_read(feed_id or None)
    return {"success": True, "articles_marked_read": count}


async def toggle_article_star(article_id: int, ctx: Context = None) -> Dict[str, Any]:
    """Star or unstar an article. Starred articles survive automatic retention.

    Args:
        article_id: Database ID of the article
        ctx: MCP Context object (injected automatically)
    """
    get_logger(__name__).info(f"toggle_article_star called: article_id={article_id}")
    return await _article_result(await database.toggle_article_starred(article_id), article_id)


async def delete_article(article_id: int, ctx: Context = None) -> Dict[str, Any]:
    """Delete a single stored article.

    Args:
        article_id: Database ID of the article
        ctx: MCP Context object (injected automatically)
    """
    get_logger(__name__).info(f"delete_article called: article_id={article_id}")

    if not await database.delete_article(article_id):
        return {"success": False, "error": f"Article with id {article_id} not found"}
    return {"success": True}


async def list_filters(ctx: Context = None) -> Dict[str, Any]:
    """List filter rules, newest first.

    Args:
        ctx: MCP Context object (injected automatically)
    """
    rules = await filter_service.list_filters()
    return {"success": True, "count": len(rules), "filters": [_filter_dict(rule) for rule in rules]}


async def add_filter(
    block_keyword: str,
    allow_keyword: str = "",
    target_title: bool = True,
    target_description: bool = True,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Hide articles containing a keyword.

    Matching is a case-insensitive substring match on the chosen targets.

    Args:
        block_keyword: Keyword that hides an article
        allow_keyword: Comma-separated exceptions; any of them keeps the article visible
        target_title: Match against the title
        target_description: Match against the summary
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - filter: the stored rule
        - error: string if validation failed
    """
    logger = get_logger(__name__)
    logger.info(f"add_filter called: block_keyword={block_keyword}")

    try:
        rule = await filter_service.save_filter(FilterRule(
            block_keyword=block_keyword,
            allow_keyword=allow_keyword or None,
            target_title=target_title,
            target_description=target_description,
        ))
    except ValueError as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "filter": _filter_dict(rule)}


async def update_filter(
    filter_id: int,
    block_keyword: str,
    allow_keyword: str = "",
    target_title: bool = True,
    target_description: bool = True,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Replace the keywords and targets of a filter rule.

    Args:
        filter_id: Database ID of the rule
        block_keyword: Keyword that hides an article
        allow_keyword: Comma-separated exceptions (empty string for none)
        target_title: Match against the title
        target_description: Match against the summary
        ctx: MCP Context object (injected automatically)
    """
    logger = get_logger(__name__)
    logger.info(f"update_filter called: filter_id={filter_id}")

    try:
        rule = await filter_service.save_filter(FilterRule(
            id=filter_id,
            block_keyword=block_keyword,
            allow_keyword=allow_keyword or None,
            target_title=target_title,
            target_description=target_description,
        ))
    except ValueError as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "filter": _filter_dict(rule)}


async def remove_filter(filter_id: int, ctx: Context = None) -> Dict[str, Any]:
    """Delete a filter rule.

    Args:
        filter_id: Database ID of the rule
        ctx: MCP Context object (injected automatically)
    """
    get_logger(__name__).info(f"remove_filter called: filter_id={filter_id}")

    try:
        await filter_service.delete_filter(filter_id)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    return {"success": True}


async def list_global_allow_keywords(ctx: Context = None) -> Dict[str, Any]:
    """List global allow keywords and how many more can be added.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - keywords: list of objects with id, keyword, created_at
        - remaining: keywords that can still be added (null when unlimited)
    """
    service = GlobalAllowKeywordService()
    items = await service.list()

    return {
        "success": True,
        "count": len(items),
        "keywords": [
            {
                "id": item.id,
                "keyword": item.keyword,
                "created_at": item.created_at.isoformat() if item.created_at else None,
            }
            for item in items
        ],
        "remaining": await service.remaining_count(),
    }


async def add_global_allow_keyword(keyword: str, ctx: Context = None) -> Dict[str, Any]:
    """Add a keyword that keeps matching articles visible regardless of filters.

    The free plan allows three keywords.

    Args:
        keyword: Keyword to allow
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - id: new keyword id if success
        - error: message if success is False
        - requires_pro: true when the free plan limit was reached
    """
    get_logger(__name__).info(f"add_global_allow_keyword called: keyword={keyword}")

    result = await GlobalAllowKeywordService().create(keyword)
    if result.success:
        return {"success": True, "id": result.id}

    return {"success": False, "error": result.message, "requires_pro": result.requires_pro}


async def remove_global_allow_keyword(keyword_id: int, ctx: Context = None) -> Dict[str, Any]:
    """Delete a global allow keyword.

    Args:
        keyword_id: Database ID of the keyword
        ctx: MCP Context object (injected automatically)
    """
    get_logger(__name__).info(f"remove_global_allow_keyword called: keyword_id={keyword_id}")

    if not await GlobalAllowKeywordService().delete(keyword_id):
        return {"success": False, "error": f"Keyword with id {keyword_id} not found"}
    return {"success": True}


async def retention_stats(days: int = -1, include_starred: bool = False, ctx: Context = None) -> Dict[str, Any]:
    """Preview how many articles delete_old_articles would remove.

    Args:
        days: Select articles fetched more than this many days ago (-1 selects all)
        include_starred: Also select starred articles
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - total, unread, read, starred: counts of selected articles
    """
    stats = await retention.get_retention_stats(days, include_starred)
    return {
        "success": True,
        "total": stats.total,
        "unread": stats.unread,
        "read": stats.read,
        "starred": stats.starred,
    }


async def delete_old_articles(
    days: int = -1,
    include_starred: bool = False,
    confirm: bool = False,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Delete articles fetched more than ``days`` days ago.

    Uses the same selection as retention_stats. Starred articles are kept
    unless include_starred is true. Nothing is deleted unless confirm is
    true; without it the call only reports how many articles would go.

    Args:
        days: Age in days (-1 deletes all articles)
        include_starred: Also delete starred articles
        confirm: Must be true to actually delete
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - deleted: number of articles removed
        - would_delete: number of articles selected (when not confirmed)
    """
    get_logger(__name__).info(
        f"delete_old_articles called: days={days}, include_starred={include_starred}, confirm={confirm}"
    )

    if not confirm:
        stats = await retention.get_retention_stats(days, include_starred)
        return {
            "success": False,
            "error": "Deletion not confirmed; call again with confirm=true",
            "would_delete": stats.total,
        }

    deleted = await retention.prune_older_than(days, include_starred)
    return {"success": True, "deleted": deleted}


async def get_settings(ctx: Context = None) -> Dict[str, Any]:
    """Read user preferences (retention, auto sync, read display).

    Args:
        ctx: MCP Context object (injected automatically)
    """
    return {"success": True, "settings": await preferences.get_preferences()}


async def update_settings(
    retention_days: int = -1,
    delete_starred_in_auto: str = "",
    auto_sync_on_startup: str = "",
    read_display: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Change user preferences. Unset arguments keep their current value.

    Args:
        retention_days: Days to keep articles: 7, 30, 90 or 0 for unlimited (-1 leaves unchanged)
        delete_starred_in_auto: "true" or "false" (empty string leaves unchanged)
        auto_sync_on_startup: "true" or "false" (empty string leaves unchanged)
        read_display: "dim" or "hide" (empty string leaves unchanged)
        ctx: MCP Context object (injected automatically)
    """
    get_logger(__name__).info("update_settings called")

    def as_bool(value: str):
        return None if not value else value.strip().lower() == "true"

    try:
        settings = await preferences.update_preferences(
            retention_days=retention_days if retention_days >= 0 else None,
            delete_starred_in_auto=as_bool(delete_starred_in_auto),
            auto_sync_on_startup=as_bool(auto_sync_on_startup),
            read_display=read_display or None,
        )
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "settings": settings}


# List of feed tools for registration
feed_tools = [
    add_feed,
    detect_feed,
    remove_feed,
    list_feeds,
    reorder_feeds,
    refresh_feeds,
    sync_status,
    list_articles,
    mark_article_read,
    mark_article_unread,
    mark_all_read,
    toggle_article_star,
    delete_article,
    list_filters,
    add_filter,
    update_filter,
    remove_filter,
    list_global_allow_keywords,
    add_global_allow_keyword,
    remove_global_allow_keyword,
    retention_stats,
    delete_old_articles,
    get_settings,
    update_settings,
]
