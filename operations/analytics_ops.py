"""
Analytics Operations.

Engagement figures for single articles and a tenant-wide overview.
"""

import logging
from typing import Dict, Any

from data.interface import DatabaseInterface
from domain.rules import calculate_engagement_score, calculate_reading_time
from .article_ops import load_article, get_popular_articles

logger = logging.getLogger(__name__)


def get_article_engagement(db: DatabaseInterface, tenant_id: str, article_id: str) -> Dict[str, Any]:
    """
    Engagement rollup for one article.

    Returns:
        {article_id, view_count, comment_count, rating_average, rating_count,
         helpful_count, not_helpful_count, reading_time_minutes, engagement_score}
    """
    article = load_article(db, tenant_id, article_id)
    comment_count = db.count_comments(article_id, tenant_id)

    return {
        "article_id": article.id,
        "view_count": article.view_count,
        "comment_count": comment_count,
        "rating_average": article.rating_average,
        "rating_count": article.rating_count,
        "helpful_count": article.helpful_count,
        "not_helpful_count": article.not_helpful_count,
        "reading_time_minutes": calculate_reading_time(article.content),
        "engagement_score": calculate_engagement_score(
            article.view_count,
            article.rating_average,
            article.rating_count,
            comment_count,
        ),
    }


def get_knowledge_base_statistics(
    db: DatabaseInterface,
    tenant_id: str,
    top: int = 5,
) -> Dict[str, Any]:
    """
    Tenant-wide article statistics.

    Returns:
        {total_articles, total_views, by_status, by_category,
         popular: [{article_id, title, view_count, rating_average}]}
    """
    stats = db.get_article_statistics(tenant_id)
    popular = get_popular_articles(db, tenant_id, limit=top)

    stats["popular"] = [
        {
            "article_id": a.id,
            "title": a.title,
            "view_count": a.view_count,
            "rating_average": a.rating_average,
        }
        for a in popular
    ]

    logger.debug(f"Statistics for tenant {tenant_id}: {stats['total_articles']} articles")
    return stats
