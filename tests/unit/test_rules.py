"""
Unit tests for article business rules.
"""

from datetime import datetime, timedelta

from domain.models import Article, ApprovalHistoryEntry
from domain.rules import (
    is_publishable,
    can_edit,
    can_manage_submission,
    can_approve,
    should_increment_version,
    calculate_reading_time,
    is_expired,
    current_review_round,
    count_prior_approvals,
    calculate_rating_average,
    calculate_engagement_score,
)


def make_article(**overrides) -> Article:
    data = {
        "tenant_id": "acme",
        "title": "Reset the VPN client",
        "content": "Open the client and press reset.",
        "category": "network",
        "author_id": "u1",
        "id": "a1",
    }
    data.update(overrides)
    return Article(**data)


def entry(action: str, user_id: str = "u2") -> ApprovalHistoryEntry:
    return ApprovalHistoryEntry(
        id=f"{action}-{user_id}",
        article_id="a1",
        user_id=user_id,
        action=action,
        timestamp=datetime(2025, 1, 1),
        previous_status="x",
        new_status="y",
    )


def test_is_publishable_requires_approval():
    assert is_publishable(make_article()) is False
    assert is_publishable(make_article(approval_status="approved")) is True


def test_is_publishable_requires_content():
    article = make_article(approval_status="approved", content="   ")
    assert is_publishable(article) is False


def test_can_edit_author_or_draft():
    assert can_edit(make_article(status="published"), "u1") is True
    assert can_edit(make_article(status="published"), "u2") is False
    assert can_edit(make_article(status="draft"), "u2") is True


def test_can_manage_submission_only_author_and_not_published():
    assert can_manage_submission(make_article(), "u1") is True
    assert can_manage_submission(make_article(), "u2") is False
    assert can_manage_submission(make_article(status="published"), "u1") is False


def test_can_approve():
    pending = make_article(approval_status="pending_approval", status="pending_review")
    assert can_approve(pending, "u2") is True
    assert can_approve(pending, "u1") is False
    assert can_approve(make_article(), "u2") is False


def test_should_increment_version():
    article = make_article()
    assert should_increment_version(article, {"title": "New"}) is True
    assert should_increment_version(article, {"category": "x"}) is True
    assert should_increment_version(article, {"tags": ["a"]}) is False
    assert should_increment_version(article, {}) is False


def test_calculate_reading_time():
    assert calculate_reading_time("") == 0
    assert calculate_reading_time("word " * 200) == 1
    assert calculate_reading_time("word " * 201) == 2


def test_is_expired():
    now = datetime(2025, 6, 1)
    assert is_expired(make_article(), now) is False
    assert is_expired(make_article(expires_at=now - timedelta(days=1)), now) is True
    assert is_expired(make_article(expires_at=now + timedelta(days=1)), now) is False


def test_current_review_round_starts_at_last_submit():
    history = [
        entry("submit", "u1"),
        entry("approve", "u2"),
        entry("request_changes", "u3"),
        entry("submit", "u1"),
        entry("approve", "u4"),
    ]
    round_entries = current_review_round(history)
    assert [e.user_id for e in round_entries] == ["u4"]
    assert count_prior_approvals(history) == 1


def test_calculate_rating_average():
    assert calculate_rating_average([5, 4, 4]) == {"average": 4.33, "count": 3}
    assert calculate_rating_average([]) == {"average": 0.0, "count": 0}


def test_calculate_engagement_score():
    assert calculate_engagement_score(10, 4.0, 2, 3) == 33.0
