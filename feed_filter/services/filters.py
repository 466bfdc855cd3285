"""Filter rule and global allow keyword services."""

from typing import List, Optional

from feed_filter.config import Capabilities, get_capabilities
from feed_filter.exceptions import ValidationError
from feed_filter.logging_config import get_logger
from feed_filter.models.schemas import FilterRule, GlobalAllowKeyword, KeywordResult
from feed_filter.storage import database


FREE_GLOBAL_ALLOW_LIMIT = 3


def validate_rule(rule: FilterRule) -> FilterRule:
    """Normalize a rule and reject ones that could never match.

    Raises:
        ValidationError: If the block keyword is empty or no target is chosen
    """
    block_keyword = (rule.block_keyword or "").strip()
    if not block_keyword:
        raise ValidationError("Block keyword is required")

    if not rule.target_title and not rule.target_description:
        raise ValidationError("Select at least one target (title or description)")

    # Keep the user's casing; only trim entries and drop blanks
    parts = [part.strip() for part in (rule.allow_keyword or "").split(",")]
    allow_keyword = ",".join(part for part in parts if part) or None

    return FilterRule(
        id=rule.id,
        block_keyword=block_keyword,
        allow_keyword=allow_keyword,
        target_title=bool(rule.target_title),
        target_description=bool(rule.target_description),
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


async def list_filters() -> List[FilterRule]:
    """Filter rules, newest first."""
    return await database.list_filters()


async def get_filter(filter_id: int) -> FilterRule:
    """Get a rule by id.

    Raises:
        ValueError: If the rule does not exist
    """
    rule = await database.get_filter(filter_id)
    if rule is None:
        raise ValueError(f"Filter with id {filter_id} not found")
    return rule


async def save_filter(rule: FilterRule) -> FilterRule:
    """Create the rule when it has no id, otherwise update it.

    Raises:
        ValidationError: If the rule is invalid
        ValueError: If an update names a rule that does not exist
    """
    rule = validate_rule(rule)

    if rule.id is None:
        return await database.add_filter(rule)

    updated = await database.update_filter(rule)
    if updated is None:
        raise ValueError(f"Filter with id {rule.id} not found")
    return updated


async def delete_filter(filter_id: int) -> None:
    """Delete a rule.

    Raises:
        ValueError: If the rule does not exist
    """
    if not await database.remove_filter(filter_id):
        raise ValueError(f"Filter with id {filter_id} not found")


async def count_filters() -> int:
    return await database.count_filters()


class GlobalAllowKeywordService:
    """Global allow keywords with the free-tier quota.

    Args:
        capabilities: Entitlements; Pro lifts the quota
        limit: Number of keywords allowed without Pro
    """

    def __init__(
        self,
        capabilities: Optional[Capabilities] = None,
        limit: int = FREE_GLOBAL_ALLOW_LIMIT,
    ):
        self.capabilities = capabilities if capabilities is not None else get_capabilities()
        self.limit = limit

    async def list(self) -> List[GlobalAllowKeyword]:
        return await database.list_global_allow_keywords()

    async def keywords(self) -> List[str]:
        """Keyword strings only, as the filter engine takes them."""
        return [item.keyword for item in await database.list_global_allow_keywords()]

    async def count(self) -> int:
        return await database.count_global_allow_keywords()

    async def create(self, keyword: str) -> KeywordResult:
        """Add a keyword.

        Validation and quota problems are returned, not raised; the quota
        case sets ``requires_pro``.
        """
        logger = get_logger(__name__)

        trimmed = (keyword or "").strip()
        if not trimmed:
            return KeywordResult(success=False, message="Keyword is required")

        if await database.global_allow_keyword_exists(trimmed):
            return KeywordResult(success=False, message=f"Keyword '{trimmed}' is already registered")

        if not self.capabilities.is_pro:
            count = await database.count_global_allow_keywords()
            if count >= self.limit:
                return KeywordResult(
                    success=False,
                    message=f"The free plan allows up to {self.limit} global allow keywords. Upgrade to Pro for more.",
                    requires_pro=True,
                )

        try:
            created = await database.add_global_allow_keyword(trimmed)
        except ValueError as e:
            logger.warning(f"Failed to add keyword '{trimmed}': {e}")
            return KeywordResult(success=False, message=str(e))

        return KeywordResult(success=True, id=created.id)

    async def delete(self, keyword_id: int) -> bool:
        return await database.remove_global_allow_keyword(keyword_id)

    async def remaining_count(self) -> Optional[int]:
        """Keywords that can still be added, or None when unlimited."""
        if self.capabilities.is_pro:
            return None
        return max(0, self.limit - await self.count())
