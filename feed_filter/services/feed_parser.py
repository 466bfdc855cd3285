"""Feed parser service.

This module parses RSS 1.0 (RDF), RSS 2.0 and Atom documents into a common
article shape.

The XML is first reduced to a small tree whose values are one of three
shapes: plain text (a leaf element without attributes), a Node (an element
with attributes or children) or a list of those (repeated elements). Every
extraction site goes through ``to_text`` and ``to_list`` so the same field
can be read whatever shape a particular feed gives it.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional, Tuple, Union

import httpx
from lxml import etree

from feed_filter.config import get_config
from feed_filter.exceptions import FeedFetchError, FeedFormatError
from feed_filter.logging_config import get_logger
from feed_filter.models.schemas import FeedMeta, ParsedArticle
from feed_filter.services.encoding import decode_feed


MAX_ARTICLES = 50

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RSS1_NS = "http://purl.org/rss/1.0/"

NAMESPACE_PREFIXES = {
    "http://www.w3.org/2005/Atom": "atom",
    "http://purl.org/dc/elements/1.1/": "dc",
    "http://search.yahoo.com/mrss/": "media",
    "http://purl.org/rss/1.0/modules/content/": "content",
    RDF_NS: "rdf",
}

_IMG_SRC = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

# Zone abbreviations seen in RSS dates beyond the RFC 2822 set
ZONE_OFFSETS = {
    "JST": "+0900",
    "KST": "+0900",
    "HKT": "+0800",
    "SGT": "+0800",
    "IST": "+0530",
    "CET": "+0100",
    "CEST": "+0200",
    "BST": "+0100",
    "AEST": "+1000",
    "AEDT": "+1100",
}

_ZONE_NAME = re.compile(r"(?<=\d)\s+([A-Za-z]{3,4})$")

# Elements whose raw child markup is kept as HTML text
HTML_FIELDS = {"description", "content:encoded", "summary", "content"}


@dataclass
class Node:
    """An element that carries attributes or child elements."""

    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None
    children: Dict[str, List["Value"]] = field(default_factory=dict)

    def get(self, name: str) -> "Value":
        """Child value by qualified name: a single value, a list, or None."""
        values = self.children.get(name)
        if not values:
            return None
        if len(values) == 1:
            return values[0]
        return values


Value = Union[str, Node, List[Union[str, Node]], None]


def to_text(value: Union[Value, int, float]) -> Optional[str]:
    """Reduce any value shape to a single stripped string.

    Priority: plain text, then the node's own text (CDATA is merged into it
    by the XML parser), then a ``text`` child, then numeric coercion. Lists
    yield the first member that has text.
    """
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, Node):
        own = to_text(value.text)
        if own:
            return own
        return to_text(value.get("text"))
    if isinstance(value, list):
        for member in value:
            text = to_text(member)
            if text:
                return text
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def to_list(value: Value) -> List[Union[str, Node]]:
    """Normalize a value to a list regardless of cardinality."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def attr(value: Value, name: str) -> Optional[str]:
    """Stripped attribute of a Node, or None for any other shape."""
    if isinstance(value, Node):
        return to_text(value.attrs.get(name))
    return None


def _qualify(name: str, root_ns: Optional[str]) -> str:
    if not name.startswith("{"):
        return name
    ns, local = name[1:].split("}", 1)
    if ns == root_ns or ns == RSS1_NS:
        return local
    prefix = NAMESPACE_PREFIXES.get(ns)
    return f"{prefix}:{local}" if prefix else local


def _inner_markup(element) -> str:
    parts = [element.text or ""]
    for child in element:
        parts.append(etree.tostring(child, encoding="unicode", with_tail=True))
    return "".join(parts)


def _build(element, root_ns: Optional[str]) -> Union[str, Node]:
    tag = _qualify(element.tag, root_ns)
    attrs = {_qualify(key, root_ns): value for key, value in element.attrib.items()}
    children: Dict[str, List[Value]] = {}

    for child in element:
        # Comments and processing instructions have non-string tags
        if not isinstance(child.tag, str):
            continue
        children.setdefault(_qualify(child.tag, root_ns), []).append(_build(child, root_ns))

    if len(element) and (element.get("type") == "xhtml" or tag in HTML_FIELDS):
        text = _inner_markup(element)
    else:
        text = element.text

    if not attrs and not children:
        return text or ""

    return Node(tag=tag, attrs=attrs, text=text, children=children)


def _load(xml_text: str) -> Tuple[Node, str]:
    """Parse XML text and detect the feed dialect.

    Returns:
        Tuple of (root node, one of "rss1", "rss2", "atom")

    Raises:
        FeedFormatError: If the document is not a supported feed
    """
    # The parser encoding overrides any declaration; the text is already decoded
    parser = etree.XMLParser(
        recover=True,
        encoding="utf-8",
        resolve_entities=False,
        no_network=True,
    )
    payload = xml_text.lstrip("\ufeff \t\r\n").encode("utf-8")
    if not payload:
        raise FeedFormatError("Empty feed document")

    try:
        root = etree.fromstring(payload, parser=parser)
    except etree.XMLSyntaxError as e:
        raise FeedFormatError(f"Unreadable feed document: {e}") from e

    if root is None or not isinstance(root.tag, str):
        raise FeedFormatError("Unreadable feed document")

    qname = etree.QName(root)
    tree = _build(root, qname.namespace)
    if not isinstance(tree, Node):
        raise FeedFormatError(f"Unsupported feed format (<{qname.localname}> has no content)")

    local = qname.localname
    if local == "RDF" and tree.get("channel") is not None:
        return tree, "rss1"
    if local == "rss" and tree.get("channel") is not None:
        return tree, "rss2"
    if local == "feed":
        return tree, "atom"

    raise FeedFormatError(f"Unsupported feed format (root element <{local}>)")


def _first_node(value: Value) -> Optional[Node]:
    for member in to_list(value):
        if isinstance(member, Node):
            return member
    return None


def _parse_date(text: str) -> Optional[datetime]:
    """Parse an RFC 2822 or ISO 8601 date string.

    Args:
        text: Date string from the feed

    Returns:
        Timezone-aware UTC datetime if parsed successfully, None otherwise
    """
    parsed = None

    # parsedate_to_datetime reads unknown zone names as UTC
    text = _ZONE_NAME.sub(lambda m: ZONE_OFFSETS.get(m.group(1).upper(), m.group(0)), text.strip())

    # Try RFC 2822 format (common in RSS)
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        pass

    # Try ISO format (Atom, dc:date)
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def to_iso_date_or_now(value: Value) -> str:
    """ISO-8601 timestamp of a date value, or of the current time."""
    text = to_text(value)
    parsed = _parse_date(text) if text else None
    if parsed is None:
        parsed = datetime.now(timezone.utc)
    return parsed.isoformat()


def extract_image_url(html: Optional[str]) -> Optional[str]:
    """First ``<img src>`` in an HTML fragment."""
    if not html:
        return None
    match = _IMG_SRC.search(html)
    return match.group(1).strip() if match else None


def _media_thumbnail(item: Node) -> Optional[str]:
    containers = [item] + [g for g in to_list(item.get("media:group")) if isinstance(g, Node)]

    for container in containers:
        for thumbnail in to_list(container.get("media:thumbnail")):
            url = attr(thumbnail, "url")
            if url:
                return url

    for container in containers:
        for content in to_list(container.get("media:content")):
            url = attr(content, "url")
            if not url:
                continue
            # Video and audio URLs are not usable as thumbnails
            medium = (attr(content, "medium") or "").lower()
            mime = (attr(content, "type") or "").lower()
            if medium == "image" or mime.startswith("image/") or (not medium and not mime):
                return url

    return None


def _rss_enclosure_image(item: Node) -> Optional[str]:
    for enclosure in to_list(item.get("enclosure")):
        mime = (attr(enclosure, "type") or "").lower()
        if mime.startswith("image/"):
            url = attr(enclosure, "url")
            if url:
                return url
    return None


def _atom_enclosure_image(entry: Node) -> Optional[str]:
    for link in to_list(entry.get("link")):
        rel = (attr(link, "rel") or "").lower()
        mime = (attr(link, "type") or "").lower()
        if rel == "enclosure" and mime.startswith("image/"):
            href = attr(link, "href")
            if href:
                return href
    return None


def extract_atom_link(value: Value) -> Optional[str]:
    """Resolve an Atom entry link.

    Prefers a bare or ``rel="alternate"`` href, then any href, then the
    element's text for feeds that put the URL in the body.
    """
    links = to_list(value)

    for link in links:
        href = attr(link, "href")
        rel = (attr(link, "rel") or "alternate").lower()
        if href and rel == "alternate":
            return href

    for link in links:
        resolved = attr(link, "href") or to_text(link)
        if resolved:
            return resolved

    return None


def _thumbnail(
    item: Node,
    enclosure_image: Optional[str],
    html: Optional[str],
    fallback_thumbnail_url: Optional[str],
) -> Optional[str]:
    return (
        _media_thumbnail(item)
        or enclosure_image
        or extract_image_url(html)
        or fallback_thumbnail_url
        or None
    )


def _rss_article(item: Node, date_fields: Tuple[str, ...], fallback: Optional[str]) -> Optional[ParsedArticle]:
    link = to_text(item.get("link"))
    if not link:
        return None

    summary = to_text(item.get("description")) or to_text(item.get("content:encoded"))

    published = None
    for name in date_fields:
        published = item.get(name)
        if to_text(published):
            break

    return ParsedArticle(
        title=to_text(item.get("title")) or link,
        link=link,
        summary=summary,
        thumbnail_url=_thumbnail(
            item,
            _rss_enclosure_image(item),
            summary or to_text(item.get("content:encoded")),
            fallback,
        ),
        published_at=to_iso_date_or_now(published),
    )


def _atom_article(entry: Node, fallback: Optional[str]) -> Optional[ParsedArticle]:
    link = extract_atom_link(entry.get("link"))
    if not link:
        return None

    summary = to_text(entry.get("summary")) or to_text(entry.get("content"))
    published = entry.get("published")
    if not to_text(published):
        published = entry.get("updated")

    return ParsedArticle(
        title=to_text(entry.get("title")) or link,
        link=link,
        summary=summary,
        thumbnail_url=_thumbnail(entry, _atom_enclosure_image(entry), summary, fallback),
        published_at=to_iso_date_or_now(published),
    )


def parse_feed(xml_text: str, fallback_thumbnail_url: Optional[str] = None) -> List[ParsedArticle]:
    """Parse an RSS 1.0, RSS 2.0 or Atom document into articles.

    Items without a resolvable link are skipped. At most MAX_ARTICLES
    entries are read, in document order.

    Args:
        xml_text: Decoded feed document
        fallback_thumbnail_url: Thumbnail used when an item has none (e.g. the feed icon)

    Returns:
        List of ParsedArticle objects

    Raises:
        FeedFormatError: If the document matches none of the supported formats
    """
    logger = get_logger(__name__)

    tree, kind = _load(xml_text)

    if kind == "atom":
        entries = to_list(tree.get("entry"))
    elif kind == "rss2":
        channel = _first_node(tree.get("channel"))
        entries = to_list(channel.get("item")) if channel else []
    else:
        # RSS 1.0 items are siblings of the channel
        entries = to_list(tree.get("item"))
        if not entries:
            channel = _first_node(tree.get("channel"))
            entries = to_list(channel.get("item")) if channel else []

    articles = []
    for entry in entries[:MAX_ARTICLES]:
        if not isinstance(entry, Node):
            continue

        if kind == "atom":
            article = _atom_article(entry, fallback_thumbnail_url)
        elif kind == "rss2":
            article = _rss_article(entry, ("pubDate", "dc:date"), fallback_thumbnail_url)
        else:
            article = _rss_article(entry, ("dc:date",), fallback_thumbnail_url)

        if article is not None:
            articles.append(article)

    logger.debug(f"Parsed {len(articles)} articles from {kind} document")
    return articles


def _rss_icon(*containers: Optional[Node]) -> Optional[str]:
    for container in containers:
        if container is None:
            continue
        for image in to_list(container.get("image")):
            url = to_text(image.get("url")) if isinstance(image, Node) else None
            if url:
                return url
    return None


def _atom_icon(feed: Node) -> Optional[str]:
    icon = to_text(feed.get("icon")) or to_text(feed.get("logo"))
    if icon:
        return icon

    for link in to_list(feed.get("link")):
        rel = (attr(link, "rel") or "").lower()
        if rel in ("icon", "shortcut icon"):
            href = attr(link, "href")
            if href:
                return href

    return None


def parse_feed_meta(xml_text: str) -> FeedMeta:
    """Read the channel title and icon of a feed document.

    Raises:
        FeedFormatError: If the format is unsupported or the feed has no title
    """
    tree, kind = _load(xml_text)

    if kind == "atom":
        title = to_text(tree.get("title"))
        icon_url = _atom_icon(tree)
    else:
        channel = _first_node(tree.get("channel"))
        title = to_text(channel.get("title")) if channel else None
        icon_url = _rss_icon(channel, tree if kind == "rss1" else None)

    if not title:
        raise FeedFormatError(f"Failed to parse feed title ({kind})")

    return FeedMeta(title=title, icon_url=icon_url)


async def fetch_feed_bytes(url: str, timeout: Optional[float] = None) -> bytes:
    """Download a feed body as raw bytes.

    The body is not decoded here; the encoding is only known after the
    bytes have been inspected.

    Args:
        url: Feed URL
        timeout: Seconds before the request is abandoned (config default 10)

    Returns:
        Response body

    Raises:
        FeedFetchError: On timeout, connection failure or a non-2xx status
    """
    config = get_config()
    if timeout is None:
        timeout = config.fetch_timeout

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": config.user_agent},
    ) as client:
        try:
            response = await asyncio.wait_for(client.get(url), timeout)
            response.raise_for_status()
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise FeedFetchError(f"Request timed out after {timeout:g}s: {url}") from e
        except httpx.HTTPError as e:
            raise FeedFetchError(f"Failed to fetch feed {url}: {e}") from e

    return response.content


async def fetch_articles(url: str, fallback_thumbnail_url: Optional[str] = None) -> List[ParsedArticle]:
    """Download, decode and parse a feed."""
    raw = await fetch_feed_bytes(url)
    return parse_feed(decode_feed(raw, url), fallback_thumbnail_url)


async def fetch_feed_meta(url: str) -> FeedMeta:
    """Download a feed and read its title and icon."""
    raw = await fetch_feed_bytes(url)
    return parse_feed_meta(decode_feed(raw, url))
