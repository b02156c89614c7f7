"""
Search Operations.

The database narrows candidates to articles containing any query word;
the injected SearchScorer ranks them.
"""

import logging
from typing import Any, Dict, Optional

from data.interface import ArticleRepository
from domain.models import Article, ArticleStatus
from domain.exceptions import ValidationError
from services.search_scoring import KeywordOverlapScorer, SearchScorer, tokenize
from config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)


def search_articles(
    db: ArticleRepository,
    tenant_id: str,
    query: str,
    filters: Optional[Dict[str, Any]] = None,
    scorer: Optional[SearchScorer] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    min_score: float = 0.0,
) -> Dict[str, Any]:
    """
    Full-text search within one tenant.

    Only published articles are searched unless filters name a status.

    Args:
        db: Database instance (injected)
        tenant_id: Tenant to search
        query: Free text
        filters: Optional category, status, author_id, tags, visibility
        scorer: Relevance scorer (default KeywordOverlapScorer)
        limit: Maximum results
        min_score: Drop results scoring below this

    Returns:
        {"query": str, "results": [{"article": Article, "score": float}], "total": n}
        sorted by score, then views

    Raises:
        ValidationError: Query has no words
    """
    terms = tokenize(query)
    if not terms:
        raise ValidationError("Search query cannot be empty", details={"query": query})

    scorer = scorer or KeywordOverlapScorer()
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    db_query = {"status": ArticleStatus.PUBLISHED.value}
    db_query.update(filters or {})
    db_query.update({"terms": terms, "limit": None, "order_by": "view_count"})

    candidates = [Article.from_dict(row) for row in db.search_articles(db_query, tenant_id)["items"]]

    scored = []
    for article in candidates:
        score = scorer.score(article, query)
        if score > 0 and score >= min_score:
            scored.append({"article": article, "score": score})

    scored.sort(key=lambda item: (-item["score"], -item["article"].view_count))

    logger.debug(
        f"Search '{query}' in tenant {tenant_id}: {len(candidates)} candidates, {len(scored)} scored"
    )
    return {"query": query, "results": scored[:limit], "total": len(scored)}
