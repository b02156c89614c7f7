"""
Business rules for knowledge base articles.

These functions encode the article aggregate's decisions: who may edit
or review, when an article can be published, when a new version is
cut. They are pure functions with no side effects.
"""

import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .models import (
    ApprovalAction,
    ApprovalHistoryEntry,
    ApprovalStatus,
    Article,
    ArticleStatus,
)

# Fields whose change produces a new article version
VERSIONED_FIELDS = ("title", "content", "category")

WORDS_PER_MINUTE = 200


def is_publishable(article: Article) -> bool:
    """
    Check whether an article may be published.

    Rule: title and content non-empty, category set, and the article
    has been approved (either status flag).
    """
    if not article.title or not article.title.strip():
        return False
    if not article.content or not article.content.strip():
        return False
    if not article.category or not article.category.strip():
        return False

    return (
        article.status == ApprovalStatus.APPROVED.value
        or article.approval_status == ApprovalStatus.APPROVED.value
    )


def can_edit(article: Article, user_id: str) -> bool:
    """
    Check whether a user may edit an article.

    The author may always edit; anyone may edit while it is a draft.
    """
    return user_id == article.author_id or article.status == ArticleStatus.DRAFT.value


def can_manage_submission(article: Article, user_id: str) -> bool:
    """
    Check whether a user may submit or withdraw an article for review.

    Only the author, and never once the article is published.
    """
    return user_id == article.author_id and article.status != ArticleStatus.PUBLISHED.value


def can_approve(article: Article, user_id: str) -> bool:
    """
    Check whether a user may approve, reject or request changes.

    Reviewer must not be the author and the article must be awaiting approval.
    """
    return (
        user_id != article.author_id
        and article.approval_status == ApprovalStatus.PENDING_APPROVAL.value
    )


def should_increment_version(current: Article, updates: Dict[str, Any]) -> bool:
    """
    Decide whether an update produces a new version.

    True iff any of title, content or category is present in updates.
    """
    return any(field in updates for field in VERSIONED_FIELDS)


def calculate_reading_time(content: Optional[str]) -> int:
    """
    Estimate reading time in minutes.

    Examples:
        "" -> 0
        200 words -> 1
        201 words -> 2
    """
    if not content:
        return 0
    word_count = len(content.split())
    return math.ceil(word_count / WORDS_PER_MINUTE)


def is_expired(article: Article, now: Optional[datetime] = None) -> bool:
    """True if the article has an expiry date in the past."""
    if article.expires_at is None:
        return False
    now = now or datetime.now()
    return article.expires_at < now


def current_review_round(history: Iterable[ApprovalHistoryEntry]) -> List[ApprovalHistoryEntry]:
    """
    Get the history entries belonging to the latest submission.

    A review round starts at the most recent 'submit' entry.
    """
    entries = list(history)
    for index in range(len(entries) - 1, -1, -1):
        if entries[index].action == ApprovalAction.SUBMIT.value:
            return entries[index + 1:]
    return entries


def count_prior_approvals(history: Iterable[ApprovalHistoryEntry]) -> int:
    """Count 'approve' entries in the current review round."""
    return sum(
        1 for entry in current_review_round(history)
        if entry.action == ApprovalAction.APPROVE.value
    )


def calculate_rating_average(scores: Iterable[int]) -> Dict[str, Any]:
    """
    Calculate the simple mean of rating scores.

    Returns:
        Dict with 'average' (rounded to 2 decimals, 0.0 when empty) and 'count'
    """
    values = list(scores)
    count = len(values)
    average = round(sum(values) / count, 2) if count else 0.0
    return {"average": average, "count": count}


def calculate_engagement_score(
    view_count: int,
    rating_average: float,
    rating_count: int,
    comment_count: int,
) -> float:
    """
    Roll article activity into a single engagement figure.

    Views count once, each comment five times, and ratings weigh in
    by their average.
    """
    return round(view_count + comment_count * 5 + rating_count * rating_average, 2)
