"""Filter engine.

Decides whether an article is suppressed. Evaluation is pure: lowercase
substring matching over the article's title and summary, with no I/O.

Precedence:
    1. Any global allow keyword in ``title + " " + summary`` shows the article.
    2. Rules are tried in the order given. A rule whose block keyword matches
       its target text blocks the article unless one of the rule's own allow
       keywords also matches, in which case only that rule is skipped.
    3. An article no rule blocks is shown.
"""

from typing import Iterable, List, Optional, Sequence, TypeVar

from feed_filter.models.schemas import FilterRule


ArticleT = TypeVar("ArticleT")


def split_allow_keywords(allow_keyword: Optional[str]) -> List[str]:
    """Comma-separated allow keywords, trimmed and lowercased, blanks dropped."""
    if not allow_keyword:
        return []
    keywords = (part.strip().lower() for part in allow_keyword.split(","))
    return [keyword for keyword in keywords if keyword]


def get_target_text(article, rule: FilterRule) -> str:
    """Lowercased text a rule is matched against.

    A rule targeting neither field yields an empty string and so matches
    nothing.
    """
    text = ""
    if rule.target_title:
        text += article.title or ""
    if rule.target_description and article.summary:
        text += " " + article.summary
    return text.lower()


def matches_global_allow(article, global_allow_keywords: Iterable[str]) -> bool:
    """True if any global allow keyword appears in the title or summary."""
    text = f"{article.title or ''} {article.summary or ''}".lower()
    for keyword in global_allow_keywords:
        needle = (keyword or "").strip().lower()
        if needle and needle in text:
            return True
    return False


def evaluate(
    article,
    rules: Sequence[FilterRule],
    global_allow_keywords: Iterable[str] = (),
) -> bool:
    """Decide whether an article should be hidden.

    Args:
        article: Any object with ``title`` and ``summary`` attributes
        rules: Filter rules, evaluated in the order supplied
        global_allow_keywords: Keywords that exempt an article from all rules

    Returns:
        True to suppress the article, False to display it
    """
    if matches_global_allow(article, global_allow_keywords):
        return False

    for rule in rules:
        block = (rule.block_keyword or "").strip().lower()
        if not block:
            continue

        target = get_target_text(article, rule)
        if block not in target:
            continue

        if any(keyword in target for keyword in split_allow_keywords(rule.allow_keyword)):
            continue

        return True

    return False


def filter_articles(
    articles: Iterable[ArticleT],
    rules: Sequence[FilterRule],
    global_allow_keywords: Iterable[str] = (),
) -> List[ArticleT]:
    """Articles that are not suppressed, in their original order."""
    keywords = list(global_allow_keywords)
    return [article for article in articles if not evaluate(article, rules, keywords)]
