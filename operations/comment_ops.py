"""
Comment Operations.

Threaded comments on articles: replies nest up to MAX_COMMENT_DEPTH
levels below a top-level comment, each user holds at most one reaction
per comment, and moderators can highlight, resolve or hide comments.
"""

import logging
from typing import List, Dict, Any, Optional
from datetime import datetime

from data.interface import DatabaseInterface
from domain.models import Comment, ModerationAction, REACTION_TYPES
from domain.validators import sanitize_comment_content, validate_user_id
from domain.exceptions import (
    KnowledgeBaseError,
    DatabaseError,
    MaxDepthExceeded,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from config.constants import MAX_COMMENT_DEPTH
from .article_ops import load_article

logger = logging.getLogger(__name__)

# Flag column set by each moderation action
MODERATION_FLAGS = {
    ModerationAction.HIGHLIGHT: "is_highlighted",
    ModerationAction.RESOLVE: "is_resolved",
    ModerationAction.HIDE: "is_hidden",
}


def _load_comment(db: DatabaseInterface, tenant_id: str, comment_id: str) -> Comment:
    row = db.get_comment(comment_id, tenant_id)
    if row is None:
        raise NotFoundError(
            "Comment not found",
            details={"comment_id": comment_id, "tenant_id": tenant_id},
        )
    return Comment.from_dict(row, db.get_reactions(comment_id, tenant_id))


def add_comment(
    db: DatabaseInterface,
    tenant_id: str,
    article_id: str,
    user_id: str,
    content: str,
    parent_comment_id: Optional[str] = None,
    max_depth: int = MAX_COMMENT_DEPTH,
) -> Comment:
    """
    Add a comment or a reply.

    A reply sits one level below its parent; a parent already at
    max_depth cannot take replies.

    Args:
        db: Database instance (injected)
        tenant_id: Tenant owning the article
        article_id: Article commented on
        user_id: Comment author
        content: Comment text (trimmed, capped at 2000 characters)
        parent_comment_id: Comment being replied to
        max_depth: Deepest allowed thread_depth

    Returns:
        Created Comment

    Raises:
        NotFoundError: Article or parent comment not found
        MaxDepthExceeded: Reply would be deeper than max_depth
        ValidationError: Empty content or parent on another article
    """
    user_id = validate_user_id(user_id)
    text = sanitize_comment_content(content)
    if not text:
        raise ValidationError("Comment cannot be empty", details={"article_id": article_id})

    load_article(db, tenant_id, article_id)

    depth = 0
    if parent_comment_id:
        parent = _load_comment(db, tenant_id, parent_comment_id)
        if parent.article_id != article_id:
            raise ValidationError(
                "Parent comment belongs to another article",
                details={"parent_comment_id": parent_comment_id, "article_id": article_id},
            )
        if parent.thread_depth >= max_depth:
            logger.warning(
                f"Reply to comment {parent_comment_id} rejected: depth {parent.thread_depth + 1} > {max_depth}"
            )
            raise MaxDepthExceeded(
                f"Replies cannot be nested deeper than {max_depth} levels",
                details={"parent_comment_id": parent_comment_id, "max_depth": max_depth},
            )
        depth = parent.thread_depth + 1

    try:
        row = db.create_comment(
            {
                "article_id": article_id,
                "user_id": user_id,
                "content": text,
                "parent_comment_id": parent_comment_id,
                "thread_depth": depth,
            },
            tenant_id,
        )
    except KnowledgeBaseError:
        raise
    except Exception as e:
        logger.exception(f"Error adding comment to article {article_id}")
        raise DatabaseError(f"Failed to add comment: {e}", details={"article_id": article_id}) from e

    logger.info(f"Comment {row['id']} added to article {article_id} by {user_id} (depth {depth})")
    return Comment.from_dict(row)


def add_reaction(
    db: DatabaseInterface,
    tenant_id: str,
    comment_id: str,
    user_id: str,
    reaction_type: str,
) -> Comment:
    """
    React to a comment, replacing the user's previous reaction.

    Raises:
        ValidationError: Unknown reaction type
        NotFoundError: Comment not found
    """
    if reaction_type not in REACTION_TYPES:
        raise ValidationError(
            f"Unknown reaction type: {reaction_type}",
            details={"allowed": list(REACTION_TYPES)},
        )

    _load_comment(db, tenant_id, comment_id)
    db.upsert_reaction(comment_id, user_id, reaction_type, tenant_id, datetime.now())
    logger.info(f"User {user_id} reacted '{reaction_type}' to comment {comment_id}")

    return _load_comment(db, tenant_id, comment_id)


def moderate_comment(
    db: DatabaseInterface,
    tenant_id: str,
    comment_id: str,
    moderator_id: str,
    action,
    value: bool = True,
) -> Comment:
    """
    Set (or clear, with value=False) a moderation flag.

    Every call is logged with the moderator for audit.

    Raises:
        ValidationError: Unknown moderation action
        NotFoundError: Comment not found
    """
    try:
        action = ModerationAction(action)
    except ValueError:
        raise ValidationError(
            f"Unknown moderation action: {action}",
            details={"allowed": [a.value for a in ModerationAction]},
        )

    _load_comment(db, tenant_id, comment_id)
    flag = MODERATION_FLAGS[action]
    db.update_comment_flags(comment_id, {flag: value}, tenant_id)

    logger.info(
        f"AUDIT moderation: {moderator_id} {action.value} comment {comment_id} "
        f"({flag}={value}) tenant {tenant_id}"
    )
    return _load_comment(db, tenant_id, comment_id)


def get_comments(
    db: DatabaseInterface,
    tenant_id: str,
    article_id: str,
    include_hidden: bool = False,
) -> List[Comment]:
    """
    Get an article's comments, oldest first, with their reactions.

    Hidden comments are left out unless include_hidden is set.
    """
    load_article(db, tenant_id, article_id)

    rows = db.list_comments(article_id, tenant_id, include_hidden=include_hidden)

    reactions: Dict[str, List[Dict[str, Any]]] = {}
    for reaction in db.get_reactions_for_article(article_id, tenant_id):
        reactions.setdefault(reaction["comment_id"], []).append(reaction)

    comments = [Comment.from_dict(row, reactions.get(row["id"])) for row in rows]
    logger.debug(f"Loaded {len(comments)} comments for article {article_id}")
    return comments


def build_comment_tree(comments: List[Comment]) -> List[Dict[str, Any]]:
    """
    Nest comments under their parents.

    A reply whose parent is not in the list (hidden, deleted) is shown
    as a top-level node.

    Returns:
        List of {"comment": Comment, "replies": [...]} in input order

    Example:
        >>> tree = build_comment_tree(get_comments(db, "acme", article_id))
        >>> tree[0]["replies"][0]["comment"].thread_depth
        1
    """
    nodes = {c.id: {"comment": c, "replies": []} for c in comments}
    roots = []

    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_comment_id) if comment.parent_comment_id else None
        if parent is None:
            roots.append(node)
        else:
            parent["replies"].append(node)

    return roots


def delete_comment(
    db: DatabaseInterface,
    tenant_id: str,
    comment_id: str,
    user_id: str,
    is_moderator: bool = False,
) -> bool:
    """
    Delete a comment with its replies and reactions.

    Raises:
        NotFoundError: Comment not found
        PermissionDenied: User is neither the author nor a moderator
    """
    comment = _load_comment(db, tenant_id, comment_id)

    if comment.user_id != user_id and not is_moderator:
        logger.warning(f"User {user_id} may not delete comment {comment_id}")
        raise PermissionDenied(
            "Only the author or a moderator can delete a comment",
            details={"comment_id": comment_id, "user_id": user_id},
        )

    deleted = db.delete_comment(comment_id, tenant_id)
    if deleted:
        logger.info(f"Deleted comment {comment_id} by {user_id}")
    return deleted
