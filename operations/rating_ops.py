"""
Rating Operations.

One rating per user and article. The unique index in the database is
what enforces that; the lookup before inserting only gives a clearer
error in the common case.
"""

import logging
from typing import List, Dict, Any, Optional

import pandas as pd

from data.interface import DatabaseInterface
from domain.models import Rating, RATING_CATEGORY_NAMES
from domain.validators import validate_score, validate_rating_categories, validate_user_id
from domain.rules import calculate_rating_average
from domain.exceptions import DuplicateRating, InvalidScore
from .article_ops import load_article

logger = logging.getLogger(__name__)


def add_rating(
    db: DatabaseInterface,
    tenant_id: str,
    article_id: str,
    user_id: str,
    score,
    categories: Optional[Dict[str, int]] = None,
    review: Optional[str] = None,
    is_helpful: Optional[bool] = None,
) -> Rating:
    """
    Rate an article.

    The article's rating_average, rating_count and helpful counters are
    recalculated in the same transaction as the insert.

    Args:
        db: Database instance (injected)
        tenant_id: Tenant owning the article
        article_id: Article to rate
        user_id: Rating user
        score: Integer 1-5
        categories: Optional sub-scores (accuracy, clarity, completeness, usefulness)
        review: Optional review text
        is_helpful: Optional helpful / not helpful vote

    Returns:
        Created Rating

    Raises:
        InvalidScore: Score or sub-score outside 1-5
        ValidationError: Unknown sub-score name
        NotFoundError: Article not found
        DuplicateRating: User already rated this article
    """
    try:
        score = validate_score(score)
        categories = validate_rating_categories(categories)
    except InvalidScore:
        logger.warning(f"Rejected rating from {user_id} on {article_id}: invalid score {score}")
        raise
    user_id = validate_user_id(user_id)

    load_article(db, tenant_id, article_id)

    if db.find_rating(article_id, user_id, tenant_id) is not None:
        logger.warning(f"User {user_id} already rated article {article_id}")
        raise DuplicateRating(
            "User has already rated this article",
            details={"article_id": article_id, "user_id": user_id},
        )

    row = db.create_rating(
        {
            "article_id": article_id,
            "user_id": user_id,
            "score": score,
            "categories": categories,
            "review": review.strip() if review else None,
            "is_helpful": is_helpful,
        },
        tenant_id,
    )

    logger.info(f"User {user_id} rated article {article_id}: {score}")
    return Rating.from_dict(row)


def get_ratings(db: DatabaseInterface, tenant_id: str, article_id: str) -> List[Rating]:
    """Ratings of an article, newest first."""
    load_article(db, tenant_id, article_id)
    return [Rating.from_dict(row) for row in db.list_ratings(article_id, tenant_id)]


def get_rating_summary(db: DatabaseInterface, tenant_id: str, article_id: str) -> Dict[str, Any]:
    """
    Summarize an article's ratings.

    Returns:
        {
            "average": float, "count": int,
            "distribution": {1: n, ..., 5: n},
            "category_averages": {name: mean} (only categories that were scored),
            "helpful_count": int, "not_helpful_count": int,
        }
    """
    ratings = get_ratings(db, tenant_id, article_id)
    summary = calculate_rating_average(r.score for r in ratings)

    distribution = {score: 0 for score in range(1, 6)}
    for rating in ratings:
        distribution[rating.score] += 1

    category_averages: Dict[str, float] = {}
    if ratings:
        df = pd.DataFrame([r.categories for r in ratings], columns=list(RATING_CATEGORY_NAMES)).astype(float)
        means = df.mean(skipna=True).dropna()
        category_averages = {name: round(float(value), 2) for name, value in means.items()}

    summary.update({
        "distribution": distribution,
        "category_averages": category_averages,
        "helpful_count": sum(1 for r in ratings if r.is_helpful is True),
        "not_helpful_count": sum(1 for r in ratings if r.is_helpful is False),
    })
    return summary
