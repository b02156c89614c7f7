"""
Unit tests for Approval Operations.

Covers persisted transitions, the compare-and-swap guard, notifier
calls and the pending review queue.
"""

import pytest
from unittest.mock import Mock

from data import create_database
from domain.exceptions import (
    ConcurrentModificationError,
    IllegalTransition,
    NotFoundError,
    SelfApprovalForbidden,
)
from domain.workflow import ApprovalPolicy, ApprovalStateMachine
from operations.article_ops import create_article, load_article, update_article
from operations.approval_ops import (
    execute_approval_action,
    submit_for_approval,
    approve_article,
    reject_article,
    request_changes,
    withdraw_submission,
    get_approval_history,
    get_pending_approvals,
    _persist_transition,
)


@pytest.fixture
def db():
    """Create in-memory database for testing."""
    database = create_database("sqlite", ":memory:")
    yield database
    database.close()


def new_article(db, author="u1", title="Reset the VPN client"):
    data = {"title": title, "content": "Open the client and press reset.", "category": "network"}
    return create_article(db, "acme", author, data)["article"]


@pytest.fixture
def article(db):
    return new_article(db)


# ==================== Transitions ====================


def test_submit_and_approve_persist(db, article):
    submitted = submit_for_approval(db, "acme", article.id, "u1", comment="ready")
    assert submitted.approval_status == "pending_approval"
    assert submitted.status == "pending_review"

    approved = approve_article(db, "acme", article.id, "u2")
    assert approved.approval_status == "approved"
    assert approved.status == "published"
    assert approved.reviewer_id == "u2"
    assert approved.published_at is not None

    history = get_approval_history(db, "acme", article.id)
    assert [(h.action, h.previous_status, h.new_status) for h in history] == [
        ("submit", "not_submitted", "pending_approval"),
        ("approve", "pending_approval", "approved"),
    ]
    assert history[0].comment == "ready"


def test_self_approval_forbidden_leaves_state(db, article):
    submit_for_approval(db, "acme", article.id, "u1")

    with pytest.raises(SelfApprovalForbidden):
        approve_article(db, "acme", article.id, "u1")

    stored = load_article(db, "acme", article.id)
    assert stored.approval_status == "pending_approval"
    assert len(stored.approval_history) == 1


def test_double_approve_is_illegal(db, article):
    submit_for_approval(db, "acme", article.id, "u1")
    approve_article(db, "acme", article.id, "u2")

    with pytest.raises(IllegalTransition):
        approve_article(db, "acme", article.id, "u3")

    assert len(get_approval_history(db, "acme", article.id)) == 2


def test_reject_then_resubmit(db, article):
    submit_for_approval(db, "acme", article.id, "u1")
    rejected = reject_article(db, "acme", article.id, "u2", comment="outdated")
    assert rejected.status == "rejected"

    assert submit_for_approval(db, "acme", article.id, "u1").approval_status == "pending_approval"


def test_request_changes_and_withdraw(db, article):
    submit_for_approval(db, "acme", article.id, "u1")
    changes = request_changes(db, "acme", article.id, "u2")
    assert (changes.approval_status, changes.status) == ("changes_requested", "draft")

    submit_for_approval(db, "acme", article.id, "u1")
    withdrawn = withdraw_submission(db, "acme", article.id, "u1")
    assert (withdrawn.approval_status, withdrawn.status) == ("not_submitted", "draft")


def test_action_as_string(db, article):
    result = execute_approval_action(db, "acme", article.id, "submit", "u1")
    assert result.approval_status == "pending_approval"


def test_action_on_other_tenant(db, article):
    with pytest.raises(NotFoundError):
        submit_for_approval(db, "other", article.id, "u1")


def test_two_approvers_policy(db, article):
    policy = ApprovalPolicy(required_approvers=2)
    submit_for_approval(db, "acme", article.id, "u1")

    partial = approve_article(db, "acme", article.id, "u2", policy=policy)
    assert partial.approval_status == "pending_approval"
    assert partial.status == "pending_review"

    final = approve_article(db, "acme", article.id, "u3", policy=policy)
    assert final.status == "published"


# ==================== Concurrency ====================


def test_lost_race_raises_concurrent_modification(db, article, monkeypatch):
    monkeypatch.setattr(db, "save_approval_transition", lambda *args, **kwargs: False)

    with pytest.raises(ConcurrentModificationError):
        submit_for_approval(db, "acme", article.id, "u1")


def test_stale_article_not_persisted(db, article):
    """A transition computed from a stale snapshot must not overwrite newer state."""
    stale = load_article(db, "acme", article.id)
    submit_for_approval(db, "acme", article.id, "u1")

    result = ApprovalStateMachine().execute(stale, "submit", "u1")
    with pytest.raises(ConcurrentModificationError):
        _persist_transition(db, "acme", stale, result)

    assert len(get_approval_history(db, "acme", article.id)) == 1


def test_approval_of_edited_content_conflicts(db, article):
    """An approval decided on one version must not publish a later edit."""
    submit_for_approval(db, "acme", article.id, "u1")
    reviewed = load_article(db, "acme", article.id)
    update_article(db, "acme", article.id, "u1", {"content": "Rewritten after submission."})

    result = ApprovalStateMachine().execute(reviewed, "approve", "u2")
    with pytest.raises(ConcurrentModificationError):
        _persist_transition(db, "acme", reviewed, result)

    stored = load_article(db, "acme", article.id)
    assert (stored.status, stored.version) == ("pending_review", 2)
    assert stored.published_at is None
    assert [h.action for h in get_approval_history(db, "acme", article.id)] == ["submit"]


# ==================== Notifications ====================


def test_notifier_called_after_persist(db, article):
    notifier = Mock()
    submit_for_approval(db, "acme", article.id, "u1", notifier=notifier)

    notifier.approval_changed.assert_called_once()
    stored, result = notifier.approval_changed.call_args[0]
    assert stored.approval_status == "pending_approval"
    assert result.history_entry.action == "submit"


def test_notifier_not_called_on_rejected_action(db, article):
    notifier = Mock()
    with pytest.raises(IllegalTransition):
        approve_article(db, "acme", article.id, "u2", notifier=notifier)
    notifier.approval_changed.assert_not_called()


# ==================== Pending Queue ====================


def test_pending_approvals_oldest_first_without_own(db):
    first = new_article(db, "u1", "First article")
    second = new_article(db, "u2", "Second article")
    new_article(db, "u1", "Never submitted")

    submit_for_approval(db, "acme", first.id, "u1")
    submit_for_approval(db, "acme", second.id, "u2")

    assert [a.id for a in get_pending_approvals(db, "acme")] == [first.id, second.id]
    assert [a.id for a in get_pending_approvals(db, "acme", reviewer_id="u2")] == [first.id]
