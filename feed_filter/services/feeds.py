"""Feed management service.

Adds, edits, removes and orders subscribed feeds. Adding a feed resolves a
site URL to its feed and reads the channel title when none is given.
"""

from typing import List, Optional

from feed_filter.exceptions import FeedFetchError, FeedFormatError, ValidationError
from feed_filter.logging_config import get_logger
from feed_filter.models.schemas import Feed, FeedMeta
from feed_filter.services.feed_discovery import discover_feed_url, normalize_url
from feed_filter.services.feed_parser import fetch_feed_meta
from feed_filter.storage import database


async def list_feeds() -> List[Feed]:
    return await database.list_feeds()


async def get_feed(feed_id: int) -> Optional[Feed]:
    return await database.get_feed(feed_id)


async def count_feeds() -> int:
    return await database.count_feeds()


async def detect_feed_url(base_url: str) -> Optional[str]:
    """Probe common feed paths under ``base_url``; None if none parse."""
    return await discover_feed_url(base_url)


async def create_feed(url: str, title: str = "", icon_url: Optional[str] = None) -> Feed:
    """Store a feed; the title defaults to the URL.

    Raises:
        ValidationError: If the URL is empty
        ValueError: If the feed is already subscribed
    """
    url = url.strip()
    if not url:
        raise ValidationError("Feed URL is required")

    return await database.add_feed(title=title.strip() or url, url=url, icon_url=icon_url)


async def subscribe(url: str, title: str = "") -> Feed:
    """Resolve a URL to a feed, read its metadata and store it.

    The URL is tried as a feed first. If it is not one, common feed paths
    under it are probed.

    Raises:
        ValidationError: If the URL is empty or no feed can be found
        ValueError: If the feed is already subscribed
    """
    logger = get_logger(__name__)

    if not url.strip():
        raise ValidationError("Feed URL is required")

    feed_url = normalize_url(url)
    meta: Optional[FeedMeta] = None

    try:
        meta = await fetch_feed_meta(feed_url)
    except (FeedFetchError, FeedFormatError) as e:
        logger.info(f"{feed_url} is not a feed ({e}), probing common paths")
        discovered = await discover_feed_url(feed_url)
        if not discovered:
            raise ValidationError(f"Could not find a feed at {feed_url}") from e
        feed_url = discovered
        try:
            meta = await fetch_feed_meta(feed_url)
        except (FeedFetchError, FeedFormatError) as meta_error:
            logger.warning(f"Failed to read metadata of {feed_url}: {meta_error}")

    return await create_feed(
        url=feed_url,
        title=title or (meta.title if meta else ""),
        icon_url=meta.icon_url if meta else None,
    )


async def update_feed(
    feed_id: int,
    title: Optional[str] = None,
    url: Optional[str] = None,
    icon_url: Optional[str] = None,
) -> Optional[Feed]:
    """Change a feed's title, URL or icon; None keeps the current value.

    Returns:
        The updated feed, or None if it does not exist
    """
    feed = await database.get_feed(feed_id)
    if feed is None:
        return None

    new_title = feed.title if title is None else title.strip()
    new_url = feed.url if url is None else url.strip()
    if not new_title or not new_url:
        raise ValidationError("Feed title and URL cannot be empty")

    return await database.update_feed(
        feed_id,
        title=new_title,
        url=new_url,
        icon_url=feed.icon_url if icon_url is None else (icon_url or None),
    )


async def delete_feed(feed_id: int) -> int:
    """Delete a feed and its articles.

    Returns:
        Number of articles removed with it

    Raises:
        ValueError: If the feed does not exist
    """
    removed, article_count = await database.remove_feed(feed_id)
    if not removed:
        raise ValueError(f"Feed with id {feed_id} not found")
    return article_count


async def reorder_feeds(feed_ids: List[int]) -> List[Feed]:
    """Set the display order to ``feed_ids``.

    The list must name every feed exactly once.

    Raises:
        ValidationError: If ids are missing, unknown or repeated
    """
    current = {feed.id for feed in await database.list_feeds()}
    if len(feed_ids) != len(set(feed_ids)) or set(feed_ids) != current:
        raise ValidationError("Reorder must list every feed exactly once")

    await database.reorder_feeds(feed_ids)
    return await database.list_feeds()
