"""Retention pruner.

Deletes articles older than a cutoff, keeping starred articles unless asked
otherwise. The preview (stats) and delete paths share one selection clause
in the storage layer, so what the preview counts is what gets deleted.
"""

from datetime import datetime
from typing import Optional, Union

from feed_filter.logging_config import get_logger
from feed_filter.models.schemas import RetentionCutoff, RetentionStats
from feed_filter.services import preferences
from feed_filter.storage import database


DaysOrCutoff = Union[int, RetentionCutoff]


def _as_cutoff(days: DaysOrCutoff) -> RetentionCutoff:
    if isinstance(days, RetentionCutoff):
        return days
    return RetentionCutoff.from_days(days)


async def prune_older_than(
    days: DaysOrCutoff,
    include_starred: bool = False,
    now: Optional[datetime] = None,
) -> int:
    """Delete articles fetched more than ``days`` days ago.

    Args:
        days: Age in days (negative deletes everything) or a RetentionCutoff
        include_starred: Also delete starred articles
        now: Reference time (defaults to now)

    Returns:
        Number of articles deleted
    """
    logger = get_logger(__name__)
    cutoff = _as_cutoff(days)

    if cutoff.is_all:
        logger.info(f"Deleting all articles (include_starred={include_starred})")
    else:
        logger.info(f"Deleting articles older than {cutoff.days} days (include_starred={include_starred})")

    deleted = await database.delete_old_articles(cutoff, include_starred, now=now)

    logger.info(f"Deleted {deleted} articles")
    return deleted


async def get_retention_stats(
    days: DaysOrCutoff,
    include_starred: bool = False,
    now: Optional[datetime] = None,
) -> RetentionStats:
    """Preview what ``prune_older_than`` would delete with the same arguments."""
    return await database.get_old_articles_stats(_as_cutoff(days), include_starred, now=now)


async def run_auto_prune(now: Optional[datetime] = None) -> int:
    """Apply the configured retention period.

    A retention of 0 days means unlimited and skips the pass.

    Returns:
        Number of articles deleted
    """
    logger = get_logger(__name__)

    retention_days = await preferences.get_retention_days()
    if retention_days <= 0:
        logger.debug("Retention is unlimited, skipping automatic deletion")
        return 0

    include_starred = await preferences.get_delete_starred_in_auto()
    return await prune_older_than(
        RetentionCutoff.older_than(retention_days),
        include_starred=include_starred,
        now=now,
    )
