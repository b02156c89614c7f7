"""
Approval Operations.

Runs the approval state machine against stored articles and persists
the result. Persistence is a compare-and-swap on the article's approval
status and revision: if another request changed the article since it
was loaded, nothing is written and ConcurrentModificationError is raised.
"""

import logging
from typing import List, Optional

from data.interface import ArticleRepository
from domain.models import Article, ApprovalAction, ApprovalHistoryEntry, ArticleStatus
from domain.workflow import ApprovalPolicy, ApprovalStateMachine, TransitionResult
from domain.exceptions import (
    ConcurrentModificationError,
    IllegalTransition,
    PermissionDenied,
    SelfApprovalForbidden,
    ValidationError,
)
from services.notifier import Notifier
from .article_ops import load_article

logger = logging.getLogger(__name__)


def execute_approval_action(
    db: ArticleRepository,
    tenant_id: str,
    article_id: str,
    action,
    actor_id: str,
    comment: Optional[str] = None,
    policy: Optional[ApprovalPolicy] = None,
    notifier: Optional[Notifier] = None,
) -> Article:
    """
    Apply an approval action to a stored article.

    Args:
        db: Database instance (injected)
        tenant_id: Tenant owning the article
        article_id: Article to act on
        action: ApprovalAction or its string value
        actor_id: User performing the action
        comment: Optional comment stored in the history entry
        policy: Approval policy (default: single approver)
        notifier: Optional Notifier told about the persisted transition

    Returns:
        The article as stored after the transition

    Raises:
        NotFoundError: Article not found in this tenant
        ValidationError: Unknown action
        IllegalTransition: Action not legal from the current status
        ConcurrentModificationError: Article changed concurrently
        SelfApprovalForbidden: Author tried to review
        PermissionDenied: Actor not allowed
    """
    article = load_article(db, tenant_id, article_id)
    machine = ApprovalStateMachine(policy=policy)

    try:
        result = machine.execute(article, action, actor_id, comment=comment)
    except (ValidationError, IllegalTransition, SelfApprovalForbidden, PermissionDenied) as e:
        logger.warning(f"Approval action '{action}' on {article_id} by {actor_id} rejected: {e}")
        raise

    _persist_transition(db, tenant_id, article, result)

    updated = load_article(db, tenant_id, article_id)
    logger.info(
        f"Article {article_id}: {result.history_entry.action} by {actor_id} "
        f"({result.previous_approval_status} → {result.new_approval_status})"
    )

    if notifier is not None:
        notifier.approval_changed(updated, result)

    return updated


def _persist_transition(
    db: ArticleRepository,
    tenant_id: str,
    article: Article,
    result: TransitionResult,
) -> None:
    saved = db.save_approval_transition(
        article.id,
        tenant_id,
        expected_status=article.approval_status,
        expected_revision=article.approval_revision,
        expected_version=article.version,
        updates={
            "approval_status": result.new_approval_status,
            "status": result.new_article_status,
            "reviewer_id": result.reviewer_id,
            "published_at": result.published_at,
        },
        history_entry=result.history_entry.to_dict(),
    )

    if not saved:
        logger.warning(
            f"Approval action '{result.history_entry.action}' on {article.id} lost a race; "
            f"expected {article.approval_status}@{article.approval_revision} (version {article.version})"
        )
        raise ConcurrentModificationError(
            "Article was modified concurrently",
            details={
                "article_id": article.id,
                "expected_status": article.approval_status,
                "expected_revision": article.approval_revision,
                "expected_version": article.version,
            },
        )


def submit_for_approval(db, tenant_id, article_id, author_id, comment=None, notifier=None) -> Article:
    """Author sends an article (back) into review."""
    return execute_approval_action(
        db, tenant_id, article_id, ApprovalAction.SUBMIT, author_id,
        comment=comment, notifier=notifier,
    )


def approve_article(
    db, tenant_id, article_id, reviewer_id, comment=None, policy=None, notifier=None,
) -> Article:
    return execute_approval_action(
        db, tenant_id, article_id, ApprovalAction.APPROVE, reviewer_id,
        comment=comment, policy=policy, notifier=notifier,
    )


def reject_article(db, tenant_id, article_id, reviewer_id, comment=None, notifier=None) -> Article:
    return execute_approval_action(
        db, tenant_id, article_id, ApprovalAction.REJECT, reviewer_id,
        comment=comment, notifier=notifier,
    )


def request_changes(db, tenant_id, article_id, reviewer_id, comment=None, notifier=None) -> Article:
    return execute_approval_action(
        db, tenant_id, article_id, ApprovalAction.REQUEST_CHANGES, reviewer_id,
        comment=comment, notifier=notifier,
    )


def withdraw_submission(db, tenant_id, article_id, author_id, comment=None, notifier=None) -> Article:
    """Author pulls a pending article back to draft."""
    return execute_approval_action(
        db, tenant_id, article_id, ApprovalAction.WITHDRAW, author_id,
        comment=comment, notifier=notifier,
    )


def get_approval_history(
    db: ArticleRepository,
    tenant_id: str,
    article_id: str,
) -> List[ApprovalHistoryEntry]:
    """History entries in the order they were appended."""
    return load_article(db, tenant_id, article_id).approval_history


def get_pending_approvals(
    db: ArticleRepository,
    tenant_id: str,
    reviewer_id: Optional[str] = None,
) -> List[Article]:
    """
    Articles waiting for review, oldest first.

    With reviewer_id, articles the reviewer wrote are left out.
    """
    result = db.search_articles(
        {"status": ArticleStatus.PENDING_REVIEW.value, "order_by": "updated_at"},
        tenant_id,
    )
    articles = [Article.from_dict(row) for row in reversed(result["items"])]

    if reviewer_id:
        articles = [a for a in articles if a.author_id != reviewer_id]

    logger.debug(f"{len(articles)} articles pending approval in tenant {tenant_id}")
    return articles
