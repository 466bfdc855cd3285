"""Storage layer for feed_filter."""

from .database import (
    get_database,
    init_database,
    close_database,
    add_feed,
    get_feed,
    list_feeds,
    list_feeds_with_counts,
    update_feed,
    remove_feed,
    reorder_feeds,
    count_feeds,
    add_articles,
    get_existing_article_links,
    get_article,
    list_articles,
    mark_article_read,
    mark_article_unread,
    mark_all_read,
    toggle_article_starred,
    delete_article,
    get_old_articles_stats,
    delete_old_articles,
    add_filter,
    get_filter,
    list_filters,
    update_filter,
    remove_filter,
    count_filters,
    add_global_allow_keyword,
    list_global_allow_keywords,
    global_allow_keyword_exists,
    remove_global_allow_keyword,
    count_global_allow_keywords,
    get_setting,
    set_setting,
    get_all_settings,
)

__all__ = [
    "get_database",
    "init_database",
    "close_database",
    "add_feed",
    "get_feed",
    "list_feeds",
    "list_feeds_with_counts",
    "update_feed",
    "remove_feed",
    "reorder_feeds",
    "count_feeds",
    "add_articles",
    "get_existing_article_links",
    "get_article",
    "list_articles",
    "mark_article_read",
    "mark_article_unread",
    "mark_all_read",
    "toggle_article_starred",
    "delete_article",
    "get_old_articles_stats",
    "delete_old_articles",
    "add_filter",
    "get_filter",
    "list_filters",
    "update_filter",
    "remove_filter",
    "count_filters",
    "add_global_allow_keyword",
    "list_global_allow_keywords",
    "global_allow_keyword_exists",
    "remove_global_allow_keyword",
    "count_global_allow_keywords",
    "get_setting",
    "set_setting",
    "get_all_settings",
]
