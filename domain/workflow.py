"""
Article approval state machine.

Computes legal approval transitions for an article given an action and
an actor. The machine is a pure function of (article state, action,
actor): it performs no I/O and never mutates the article it is given.
Persisting the returned result is the caller's job.

States:
    not_submitted → pending_approval → approved | rejected | changes_requested
                         ↓ (withdraw)
                    not_submitted

    rejected / changes_requested → pending_approval   (re-submission)

Article status side effects:
    submit          → pending_review
    approve         → published (stamps published_at)
    reject          → rejected
    request_changes → draft
    withdraw        → draft

Usage:
    machine = ApprovalStateMachine()
    result = machine.execute(article, "submit", actor_id=article.author_id)
    article = apply_transition(article, result)
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, Optional, Set, Tuple

from .exceptions import (
    IllegalTransition,
    PermissionDenied,
    SelfApprovalForbidden,
    ValidationError,
)
from .models import (
    ApprovalAction,
    ApprovalHistoryEntry,
    ApprovalStatus,
    Article,
    ArticleStatus,
)
from .rules import can_manage_submission, count_prior_approvals, current_review_round

logger = logging.getLogger(__name__)


# Source approval states from which each action is legal
VALID_SOURCES: Dict[ApprovalAction, Set[ApprovalStatus]] = {
    ApprovalAction.SUBMIT: {
        ApprovalStatus.NOT_SUBMITTED,
        ApprovalStatus.CHANGES_REQUESTED,
        ApprovalStatus.REJECTED,
    },
    ApprovalAction.APPROVE: {ApprovalStatus.PENDING_APPROVAL},
    ApprovalAction.REJECT: {ApprovalStatus.PENDING_APPROVAL},
    ApprovalAction.REQUEST_CHANGES: {ApprovalStatus.PENDING_APPROVAL},
    ApprovalAction.WITHDRAW: {ApprovalStatus.PENDING_APPROVAL},
}

# (new approval status, new article status) per action
OUTCOMES: Dict[ApprovalAction, Tuple[ApprovalStatus, ArticleStatus]] = {
    ApprovalAction.SUBMIT: (ApprovalStatus.PENDING_APPROVAL, ArticleStatus.PENDING_REVIEW),
    ApprovalAction.APPROVE: (ApprovalStatus.APPROVED, ArticleStatus.PUBLISHED),
    ApprovalAction.REJECT: (ApprovalStatus.REJECTED, ArticleStatus.REJECTED),
    ApprovalAction.REQUEST_CHANGES: (ApprovalStatus.CHANGES_REQUESTED, ArticleStatus.DRAFT),
    ApprovalAction.WITHDRAW: (ApprovalStatus.NOT_SUBMITTED, ArticleStatus.DRAFT),
}

REVIEW_ACTIONS = {
    ApprovalAction.APPROVE,
    ApprovalAction.REJECT,
    ApprovalAction.REQUEST_CHANGES,
}


@dataclass(frozen=True)
class ApprovalPolicy:
    """
    Workflow rule for an article's review.

    required_approvers > 1 turns on multi-approver review: an approval
    only becomes final once that many distinct reviewers approved
    within the current review round.
    """

    required_approvers: int = 1

    def __post_init__(self):
        if self.required_approvers < 1:
            raise ValueError("required_approvers must be at least 1")


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a legal approval action, ready to persist."""

    previous_approval_status: str
    new_approval_status: str
    previous_article_status: str
    new_article_status: str
    history_entry: ApprovalHistoryEntry
    reviewer_id: Optional[str] = None
    published_at: Optional[datetime] = None

    @property
    def is_partial_approval(self) -> bool:
        """Approve that did not yet reach the required approver count."""
        return (
            self.history_entry.action == ApprovalAction.APPROVE.value
            and self.new_approval_status == ApprovalStatus.PENDING_APPROVAL.value
        )


def parse_action(action) -> ApprovalAction:
    """
    Convert a string to ApprovalAction.

    Raises:
        ValidationError: Unknown action
    """
    if isinstance(action, ApprovalAction):
        return action
    for candidate in ApprovalAction:
        if candidate.value == action:
            return candidate
    raise ValidationError(
        f"Unknown approval action: {action}",
        details={"allowed": [a.value for a in ApprovalAction]},
    )


class ApprovalStateMachine:
    """
    Pure approval workflow for articles.

    Check order for every action:
    1. Action must be known (ValidationError)
    2. Current approval status must allow it (IllegalTransition)
    3. Actor must be allowed (SelfApprovalForbidden / PermissionDenied)
    """

    def __init__(
        self,
        policy: Optional[ApprovalPolicy] = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.policy = policy or ApprovalPolicy()
        self._clock = clock
        self._id_factory = id_factory

    def get_valid_actions(self, article: Article) -> Set[ApprovalAction]:
        """Actions legal from the article's current approval status (ignoring actor)."""
        current = ApprovalStatus(article.approval_status)
        return {action for action, sources in VALID_SOURCES.items() if current in sources}

    def can_execute(self, article: Article, action, actor_id: str) -> bool:
        """True if execute() would succeed."""
        try:
            self.execute(article, action, actor_id)
        except (ValidationError, IllegalTransition, SelfApprovalForbidden, PermissionDenied):
            return False
        return True

    def execute(
        self,
        article: Article,
        action,
        actor_id: str,
        comment: Optional[str] = None,
    ) -> TransitionResult:
        """
        Compute the transition for an approval action.

        Args:
            article: Current article state (not modified)
            action: ApprovalAction or its string value
            actor_id: User performing the action
            comment: Optional reviewer/author comment stored in history

        Returns:
            TransitionResult with the new statuses and one history entry

        Raises:
            ValidationError: Unknown action
            IllegalTransition: Action not legal from the current status
            SelfApprovalForbidden: Author tried a review action
            PermissionDenied: Actor may not submit/withdraw, or already approved
        """
        action = parse_action(action)
        current = ApprovalStatus(article.approval_status)

        if current not in VALID_SOURCES[action]:
            raise IllegalTransition(
                f"Cannot {action.value} an article in status '{current.value}'",
                details={
                    "article_id": article.id,
                    "action": action.value,
                    "approval_status": current.value,
                },
            )

        if action in REVIEW_ACTIONS:
            self._check_reviewer(article, action, actor_id)
        else:
            self._check_author(article, action, actor_id)

        new_approval, new_status = OUTCOMES[action]

        if action == ApprovalAction.APPROVE and not self._approval_is_final(article):
            new_approval = ApprovalStatus.PENDING_APPROVAL
            new_status = ArticleStatus(article.status)

        now = self._clock()
        entry = ApprovalHistoryEntry(
            id=self._id_factory(),
            article_id=article.id,
            user_id=actor_id,
            action=action.value,
            comment=comment,
            timestamp=now,
            previous_status=current.value,
            new_status=new_approval.value,
        )

        reviewer_id = actor_id if action in REVIEW_ACTIONS else article.reviewer_id
        published_at = now if new_status == ArticleStatus.PUBLISHED else article.published_at

        logger.debug(
            f"Article {article.id}: {action.value} by {actor_id} "
            f"{current.value} → {new_approval.value}"
        )

        return TransitionResult(
            previous_approval_status=current.value,
            new_approval_status=new_approval.value,
            previous_article_status=article.status,
            new_article_status=new_status.value,
            history_entry=entry,
            reviewer_id=reviewer_id,
            published_at=published_at,
        )

    def _check_reviewer(self, article: Article, action: ApprovalAction, actor_id: str) -> None:
        if actor_id == article.author_id:
            raise SelfApprovalForbidden(
                "Authors cannot review their own articles",
                details={"article_id": article.id, "action": action.value},
            )

        if action == ApprovalAction.APPROVE and self.policy.required_approvers > 1:
            already_approved = {
                entry.user_id
                for entry in current_review_round(article.approval_history)
                if entry.action == ApprovalAction.APPROVE.value
            }
            if actor_id in already_approved:
                raise PermissionDenied(
                    "Reviewer has already approved this submission",
                    details={"article_id": article.id, "user_id": actor_id},
                )

    def _check_author(self, article: Article, action: ApprovalAction, actor_id: str) -> None:
        if not can_manage_submission(article, actor_id):
            raise PermissionDenied(
                f"User may not {action.value} this article",
                details={"article_id": article.id, "user_id": actor_id},
            )

    def _approval_is_final(self, article: Article) -> bool:
        required = self.policy.required_approvers
        if required <= 1:
            return True
        return count_prior_approvals(article.approval_history) + 1 >= required


def apply_transition(article: Article, result: TransitionResult) -> Article:
    """
    Return a copy of the article with a transition applied.

    The original article and its history list are left untouched.
    """
    return replace(
        article,
        approval_status=result.new_approval_status,
        status=result.new_article_status,
        reviewer_id=result.reviewer_id,
        published_at=result.published_at,
        approval_revision=article.approval_revision + 1,
        approval_history=[*article.approval_history, result.history_entry],
    )
