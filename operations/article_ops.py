"""
Article Operations.

Create, read, update and soft-delete knowledge base articles, plus
versions, cloning, favorites and ticket links.
Functions with dependency injection - no global state.

Every function takes the tenant explicitly; an article of another
tenant is reported as not found.
"""

import logging
from typing import List, Dict, Any, Optional
from datetime import datetime

from data.interface import ArticleRepository
from domain.models import Article, ArticleVersion, ArticleStatus, VISIBILITY_VALUES
from domain.validators import (
    validate_title,
    validate_content,
    validate_category,
    sanitize_tags,
    generate_slug,
    build_summary,
    validate_tenant_id,
    validate_user_id,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    CONTENT_MIN_LENGTH,
)
from domain.rules import can_edit, should_increment_version
from domain.exceptions import (
    KnowledgeBaseError,
    DatabaseError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, DEFAULT_POPULAR_LIMIT

logger = logging.getLogger(__name__)

# Fields a caller may change through update_article
EDITABLE_FIELDS = {
    "title", "content", "summary", "category", "tags", "visibility",
    "content_type", "featured", "expires_at",
}

CLONE_SUFFIX = " - Copy"


def _validate_article_fields(data: Dict[str, Any], partial: bool = False) -> None:
    """
    Check title, content, category and visibility.

    Args:
        data: Fields to check
        partial: Only check fields present in data (updates)

    Raises:
        ValidationError: Listing every invalid field
    """
    errors = {}

    if not partial or "title" in data:
        if not validate_title(data.get("title")):
            errors["title"] = f"must be {TITLE_MIN_LENGTH}-{TITLE_MAX_LENGTH} characters"
    if not partial or "content" in data:
        if not validate_content(data.get("content")):
            errors["content"] = f"must be at least {CONTENT_MIN_LENGTH} characters"
    if not partial or "category" in data:
        if not validate_category(data.get("category")):
            errors["category"] = "is required"
    if "visibility" in data and data["visibility"] not in VISIBILITY_VALUES:
        errors["visibility"] = f"must be one of {', '.join(VISIBILITY_VALUES)}"

    if errors:
        raise ValidationError(
            "Invalid article: " + "; ".join(f"{k} {v}" for k, v in errors.items()),
            details=errors,
        )


def load_article(db: ArticleRepository, tenant_id: str, article_id: str) -> Article:
    """
    Load an article with its approval history.

    Raises:
        NotFoundError: Article absent, soft-deleted or in another tenant
    """
    row = db.find_article_by_id(article_id, tenant_id)
    if row is None:
        raise NotFoundError(
            "Article not found",
            details={"article_id": article_id, "tenant_id": tenant_id},
        )
    history = db.get_approval_history(article_id, tenant_id)
    return Article.from_dict(row, history)


def create_article(
    db: ArticleRepository,
    tenant_id: str,
    author_id: str,
    data: Dict[str, Any],
    attachments: Optional[List[Dict[str, Any]]] = None,
    media_storage=None,
) -> Dict[str, Any]:
    """
    Create a draft article.

    Attachments are stored best effort: a failed upload is logged and
    reported, the article stays created.

    Args:
        db: Database instance (injected)
        tenant_id: Owning tenant
        author_id: Author user id
        data: title, content, category and optional summary, tags,
              visibility, content_type, featured, expires_at, template_id
        attachments: Optional list of {"filename": str, "content": bytes}
        media_storage: MediaStorage used for attachments

    Returns:
        {"article": Article, "attachments": [stored], "failed_attachments": [{filename, error}]}

    Raises:
        ValidationError: Invalid fields
        DatabaseError: If insert fails

    Example:
        >>> result = create_article(db, "acme", "u1", {
        ...     "title": "Reset VPN", "content": "Open the client and ...",
        ...     "category": "network", "tags": ["VPN", "vpn"],
        ... })
        >>> result["article"].tags
        ['vpn']
    """
    tenant_id = validate_tenant_id(tenant_id)
    author_id = validate_user_id(author_id, "author_id")

    try:
        _validate_article_fields(data)
    except ValidationError:
        logger.warning(f"Rejected article from {author_id}: invalid fields")
        raise

    if attachments and media_storage is None:
        raise ValidationError("Attachments given but no media storage configured")

    title = data["title"].strip()
    content = data["content"].strip()

    article_data = {
        "title": title,
        "content": content,
        "category": data["category"].strip(),
        "summary": (data.get("summary") or "").strip() or build_summary(content),
        "slug": generate_slug(title),
        "tags": sanitize_tags(data.get("tags")),
        "author_id": author_id,
        "status": ArticleStatus.DRAFT.value,
        "approval_status": "not_submitted",
        "version": 1,
        "visibility": data.get("visibility") or "internal",
        "content_type": data.get("content_type") or "markdown",
        "featured": bool(data.get("featured")),
        "template_id": data.get("template_id"),
        "expires_at": data.get("expires_at"),
    }

    row = db.create_article(article_data, tenant_id)
    article = Article.from_dict(row)
    logger.info(f"Created article '{article.title}' ({article.id}) for tenant {tenant_id}")

    stored, failed = [], []
    if attachments:
        stored, failed = _store_attachments(db, media_storage, tenant_id, article.id, author_id, attachments)

    return {"article": article, "attachments": stored, "failed_attachments": failed}


def _store_attachments(db, media_storage, tenant_id, article_id, user_id, attachments):
    stored, failed = [], []
    for attachment in attachments:
        filename = attachment.get("filename") or ""
        try:
            media = media_storage.save(tenant_id, article_id, filename, attachment.get("content") or b"")
            stored.append(db.save_attachment(
                {
                    "article_id": article_id,
                    "filename": media.filename,
                    "storage_key": media.storage_key,
                    "size_bytes": media.size_bytes,
                    "uploaded_by": user_id,
                },
                tenant_id,
            ))
        except (KnowledgeBaseError, OSError) as e:
            logger.warning(f"Attachment '{filename}' for article {article_id} failed: {e}")
            failed.append({"filename": filename, "error": str(e)})

    if failed:
        logger.warning(f"{len(failed)} of {len(attachments)} attachments failed for article {article_id}")
    return stored, failed


def get_article_by_id(
    db: ArticleRepository,
    tenant_id: str,
    article_id: str,
    track_view: bool = True,
) -> Article:
    """
    Fetch an article and count the view.

    The view counter is incremented atomically in the database, so
    concurrent reads never lose a view.

    Raises:
        NotFoundError: Article absent, deleted or in another tenant
    """
    if track_view:
        if not db.increment_view_count(article_id, tenant_id, datetime.now()):
            raise NotFoundError(
                "Article not found",
                details={"article_id": article_id, "tenant_id": tenant_id},
            )

    article = load_article(db, tenant_id, article_id)
    logger.debug(f"Fetched article {article_id} (views: {article.view_count})")
    return article


def update_article(
    db: ArticleRepository,
    tenant_id: str,
    article_id: str,
    user_id: str,
    updates: Dict[str, Any],
    changes_summary: Optional[str] = None,
) -> Article:
    """
    Update article fields.

    A change to title, content or category bumps the version and stores
    a snapshot. Slug follows the title; summary follows the content
    unless given explicitly.

    Raises:
        NotFoundError: Article not found
        PermissionDenied: User may not edit the article
        ValidationError: Unknown or invalid fields
        ConcurrentModificationError: Article changed after it was loaded
    """
    unknown = set(updates) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    article = load_article(db, tenant_id, article_id)

    if not can_edit(article, user_id):
        logger.warning(f"User {user_id} may not edit article {article_id}")
        raise PermissionDenied(
            "User may not edit this article",
            details={"article_id": article_id, "user_id": user_id},
        )

    _validate_article_fields(updates, partial=True)

    data = dict(updates)
    if "title" in data:
        data["title"] = data["title"].strip()
        data["slug"] = generate_slug(data["title"])
    if "content" in data:
        data["content"] = data["content"].strip()
        if "summary" not in data:
            data["summary"] = build_summary(data["content"])
    if "category" in data:
        data["category"] = data["category"].strip()
    if "tags" in data:
        data["tags"] = sanitize_tags(data["tags"])

    snapshot = None
    if should_increment_version(article, updates):
        data["version"] = article.version + 1
        snapshot = {
            "version": data["version"],
            "title": data.get("title", article.title),
            "content": data.get("content", article.content),
            "category": data.get("category", article.category),
            "author_id": user_id,
            "changes_summary": changes_summary,
        }

    row = db.update_article(
        article_id, data, tenant_id, version_snapshot=snapshot, expected_version=article.version,
    )
    if row is None:
        raise NotFoundError("Article not found", details={"article_id": article_id})

    logger.info(
        f"Updated article {article_id} by {user_id}: {sorted(updates)}"
        + (f" (version {data['version']})" if snapshot else "")
    )
    return load_article(db, tenant_id, article_id)


def delete_article(
    db: ArticleRepository,
    tenant_id: str,
    article_id: str,
    user_id: str,
) -> bool:
    """
    Soft-delete an article.

    The row is kept for audit; it disappears from reads, searches,
    comments and ratings.

    Raises:
        NotFoundError: Article not found
        PermissionDenied: User may not edit the article
    """
    article = load_article(db, tenant_id, article_id)

    if not can_edit(article, user_id):
        logger.warning(f"User {user_id} may not delete article {article_id}")
        raise PermissionDenied(
            "User may not delete this article",
            details={"article_id": article_id, "user_id": user_id},
        )

    deleted = db.delete_article(article_id, tenant_id)
    if deleted:
        logger.info(f"Soft-deleted article {article_id} by {user_id}")
    return deleted


def list_articles(
    db: ArticleRepository,
    tenant_id: str,
    filters: Optional[Dict[str, Any]] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    order_by: str = "updated_at",
) -> Dict[str, Any]:
    """
    List articles with filters and paging.

    Args:
        filters: Optional category, status, author_id, tags, featured, visibility
        page: 1-based page number
        page_size: Items per page (capped at MAX_PAGE_SIZE)
        order_by: updated_at, created_at, published_at, view_count, rating or title

    Returns:
        {"items": [Article], "total": n, "page": page, "page_size": size}
    """
    if page < 1:
        raise ValidationError("page must be at least 1", details={"page": page})
    page_size = max(1, min(page_size, MAX_PAGE_SIZE))

    query = dict(filters or {})
    query.update({
        "order_by": order_by,
        "limit": page_size,
        "offset": (page - 1) * page_size,
    })

    try:
        result = db.search_articles(query, tenant_id)
    except KnowledgeBaseError:
        raise
    except Exception as e:
        logger.exception(f"Error listing articles for tenant {tenant_id}")
        raise DatabaseError(f"Failed to list articles: {e}", details={"tenant_id": tenant_id}) from e

    items = [Article.from_dict(row) for row in result["items"]]
    logger.debug(f"Listed {len(items)}/{result['total']} articles for tenant {tenant_id}")

    return {"items": items, "total": result["total"], "page": page, "page_size": page_size}


def get_article_versions(db: ArticleRepository, tenant_id: str, article_id: str) -> List[ArticleVersion]:
    """Get version snapshots, newest first."""
    load_article(db, tenant_id, article_id)
    return [ArticleVersion.from_dict(row) for row in db.get_article_versions(article_id, tenant_id)]


def clone_article(
    db: ArticleRepository,
    tenant_id: str,
    article_id: str,
    user_id: str,
) -> Article:
    """
    Copy an article into a new draft owned by user_id.

    The copy's title gets a " - Copy" suffix; approval state, counters
    and history start fresh.
    """
    source = load_article(db, tenant_id, article_id)

    title = source.title[: TITLE_MAX_LENGTH - len(CLONE_SUFFIX)] + CLONE_SUFFIX
    result = create_article(
        db,
        tenant_id,
        user_id,
        {
            "title": title,
            "content": source.content,
            "category": source.category,
            "summary": source.summary,
            "tags": source.tags,
            "visibility": source.visibility,
            "content_type": source.content_type,
            "template_id": source.template_id,
        },
    )

    logger.info(f"Cloned article {article_id} into {result['article'].id}")
    return result["article"]


def get_popular_articles(
    db: ArticleRepository,
    tenant_id: str,
    limit: int = DEFAULT_POPULAR_LIMIT,
) -> List[Article]:
    """Published articles with the most views."""
    result = db.search_articles(
        {"status": ArticleStatus.PUBLISHED.value, "order_by": "view_count", "limit": limit},
        tenant_id,
    )
    return [Article.from_dict(row) for row in result["items"]]


def get_recent_articles(
    db: ArticleRepository,
    tenant_id: str,
    limit: int = DEFAULT_POPULAR_LIMIT,
) -> List[Article]:
    """Most recently published articles."""
    result = db.search_articles(
        {"status": ArticleStatus.PUBLISHED.value, "order_by": "published_at", "limit": limit},
        tenant_id,
    )
    return [Article.from_dict(row) for row in result["items"]]


def toggle_favorite(db: ArticleRepository, tenant_id: str, article_id: str, user_id: str) -> bool:
    """
    Mark or unmark an article as a user's favorite.

    Returns:
        True if now a favorite
    """
    load_article(db, tenant_id, article_id)
    is_favorite = db.toggle_favorite(article_id, user_id, tenant_id)
    logger.info(f"User {user_id} {'added' if is_favorite else 'removed'} favorite {article_id}")
    return is_favorite


def get_favorite_articles(db: ArticleRepository, tenant_id: str, user_id: str) -> List[Article]:
    return [Article.from_dict(row) for row in db.get_favorite_articles(user_id, tenant_id)]


def link_article_to_ticket(
    db: ArticleRepository,
    tenant_id: str,
    article_id: str,
    ticket_id: str,
    user_id: str,
) -> bool:
    """
    Link an article to a support ticket. Linking twice is a no-op.

    Returns:
        True if a new link was created
    """
    if not ticket_id or not str(ticket_id).strip():
        raise ValidationError("ticket_id cannot be empty")

    load_article(db, tenant_id, article_id)
    created = db.link_article_to_ticket(article_id, str(ticket_id).strip(), user_id, tenant_id)
    if created:
        logger.info(f"Linked article {article_id} to ticket {ticket_id}")
    return created


def get_articles_by_ticket(db: ArticleRepository, tenant_id: str, ticket_id: str) -> List[Article]:
    return [Article.from_dict(row) for row in db.get_articles_by_ticket(ticket_id, tenant_id)]


def get_article_attachments(db: ArticleRepository, tenant_id: str, article_id: str) -> List[Dict[str, Any]]:
    load_article(db, tenant_id, article_id)
    return db.get_attachments(article_id, tenant_id)
