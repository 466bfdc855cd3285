"""Feed discovery service.

This module finds the RSS/Atom feed of a site by probing common feed paths.
"""

import httpx
from typing import Optional

from feed_filter.config import get_config
from feed_filter.exceptions import FeedFormatError
from feed_filter.logging_config import get_logger
from feed_filter.services.encoding import decode_feed
from feed_filter.services.feed_parser import parse_feed


# Common feed paths, probed in this order
COMMON_FEED_PATHS = [
    "/feed",
    "/feed.xml",
    "/rss",
    "/rss.xml",
    "/atom.xml",
    "/index.xml",
    "/feeds",
    "/feeds/posts/default",  # Blogger
]


def normalize_url(url: str) -> str:
    """Add https:// when the scheme is missing."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


async def discover_feed_url(url: str) -> Optional[str]:
    """Discover the RSS/Atom feed URL for a site.

    Each path in COMMON_FEED_PATHS is appended to the base URL; the first
    one that downloads and parses as a feed wins.

    Args:
        url: Base URL of the site

    Returns:
        Feed URL if found and valid, None otherwise
    """
    logger = get_logger(__name__)
    logger.info(f"Discovering feed URL for: {url}")

    # Remove trailing slash for consistent path joining
    base_url = normalize_url(url).rstrip("/")
    config = get_config()

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=config.fetch_timeout,
        headers={"User-Agent": config.user_agent},
    ) as client:
        for path in COMMON_FEED_PATHS:
            feed_url = base_url + path
            if await _validate_feed(client, feed_url):
                logger.info(f"Found feed via path probing: {feed_url}")
                return feed_url

    logger.info(f"No feed found for: {url}")
    return None


async def _validate_feed(client: httpx.AsyncClient, feed_url: str) -> bool:
    """Validate that a URL returns a parseable RSS/Atom feed.

    Args:
        client: HTTP client
        feed_url: URL to validate

    Returns:
        True if the URL returns a valid feed
    """
    try:
        response = await client.get(feed_url)
        if response.status_code != 200:
            return False

        parse_feed(decode_feed(response.content, feed_url))
        return True

    except (httpx.HTTPError, FeedFormatError):
        return False
