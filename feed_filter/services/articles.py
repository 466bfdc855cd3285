"""Article display service.

Applies the filter engine to stored articles at read time. Filtering never
changes stored rows; editing a rule takes effect on the next listing.
"""

from typing import List, Optional, Tuple

from feed_filter.models.schemas import Article
from feed_filter.services.filter_engine import evaluate
from feed_filter.services.filters import GlobalAllowKeywordService
from feed_filter.storage import database


async def list_visible_articles(
    feed_id: Optional[int] = None,
    include_read: bool = True,
    starred_only: bool = False,
    limit: Optional[int] = None,
) -> Tuple[List[Article], int]:
    """Stored articles that pass the current filters.

    ``limit`` applies to the visible articles, not the stored ones.

    Returns:
        Tuple of (visible articles newest first, number of hidden articles)
    """
    articles = await database.list_articles(
        feed_id=feed_id,
        include_read=include_read,
        starred_only=starred_only,
    )
    rules = await database.list_filters()
    keywords = await GlobalAllowKeywordService().keywords()

    visible = []
    hidden = 0
    for article in articles:
        if evaluate(article, rules, keywords):
            hidden += 1
        else:
            visible.append(article)

    if limit is not None:
        visible = visible[:limit]

    return visible, hidden
