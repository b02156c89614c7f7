"""
Integration tests for complete workflow.

Tests the end-to-end flow from article creation through review,
reading, feedback and the inventory pipeline, against one database
file shared by several tenants.
"""

import pytest
from pathlib import Path
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor

import pandas as pd

from data import create_database
from domain.exceptions import (
    DuplicateRating,
    IllegalTransition,
    MaxDepthExceeded,
    NotFoundError,
    SelfApprovalForbidden,
)
from operations import (
    create_article,
    get_article_by_id,
    update_article,
    submit_for_approval,
    approve_article,
    request_changes,
    get_approval_history,
    add_comment,
    build_comment_tree,
    get_comments,
    add_rating,
    get_rating_summary,
    search_articles,
    import_movements_from_file,
    run_abc_analysis,
    export_classification,
    run_operation,
)
from config.app_context import create_app_context
from config.settings import Settings


# ==================== Fixtures ====================


@pytest.fixture
def test_db(tmp_path):
    """Create file-backed database for testing."""
    db = create_database("sqlite", path=tmp_path / "kb.db")
    yield db
    db.close()


@pytest.fixture
def app_context(test_db, tmp_path):
    """Create application context for testing."""
    settings = Settings(
        database_path=tmp_path / "kb.db",
        media_root=tmp_path / "media",
    )
    return create_app_context(database=test_db, settings=settings, tenant_id="acme")


@pytest.fixture
def article(test_db):
    data = {
        "title": "Reset the VPN client",
        "content": "Open the client, press reset and sign in again.",
        "category": "network",
        "tags": ["vpn"],
    }
    return create_article(test_db, "acme", "U1", data)["article"]


# ==================== Article Lifecycle ====================


def test_article_review_and_publication(test_db, article):
    """Draft, review round with changes, resubmission and publication."""
    submit_for_approval(test_db, "acme", article.id, "U1")

    with pytest.raises(SelfApprovalForbidden):
        approve_article(test_db, "acme", article.id, "U1")

    request_changes(test_db, "acme", article.id, "U2", comment="Add screenshots")
    update_article(test_db, "acme", article.id, "U1", {"content": "Open the client, press reset. See screenshot."})
    submit_for_approval(test_db, "acme", article.id, "U1")

    published = approve_article(test_db, "acme", article.id, "U2")
    assert published.status == "published"
    assert published.version == 2

    with pytest.raises(IllegalTransition):
        approve_article(test_db, "acme", article.id, "U3")

    history = get_approval_history(test_db, "acme", article.id)
    assert [h.action for h in history] == ["submit", "request_changes", "submit", "approve"]
    assert history[1].comment == "Add screenshots"

    results = search_articles(test_db, "acme", "vpn reset")["results"]
    assert [r["article"].id for r in results] == [article.id]


def test_concurrent_approvals_single_winner(test_db, article):
    """Two reviewers approving at once: one transition is applied."""
    submit_for_approval(test_db, "acme", article.id, "U1")

    def approve(reviewer):
        try:
            approve_article(test_db, "acme", article.id, reviewer)
            return "ok"
        except IllegalTransition:
            return "lost"

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = sorted(pool.map(approve, ["U2", "U3"]))

    assert outcomes == ["lost", "ok"]
    assert [h.action for h in get_approval_history(test_db, "acme", article.id)] == ["submit", "approve"]


def test_concurrent_views_are_all_counted(test_db, article):
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: get_article_by_id(test_db, "acme", article.id), range(40)))

    assert get_article_by_id(test_db, "acme", article.id, track_view=False).view_count == 40


# ==================== Feedback ====================


def test_feedback_flow(test_db, article):
    submit_for_approval(test_db, "acme", article.id, "U1")
    approve_article(test_db, "acme", article.id, "U2")

    get_article_by_id(test_db, "acme", article.id)
    assert get_article_by_id(test_db, "acme", article.id).view_count == 2

    add_rating(test_db, "acme", article.id, "U3", 5, is_helpful=True)
    with pytest.raises(DuplicateRating):
        add_rating(test_db, "acme", article.id, "U3", 1)
    add_rating(test_db, "acme", article.id, "U4", 4)

    summary = get_rating_summary(test_db, "acme", article.id)
    assert (summary["average"], summary["count"]) == (4.5, 2)

    parent = add_comment(test_db, "acme", article.id, "U3", "Worked")
    for depth in range(3):
        parent = add_comment(test_db, "acme", article.id, "U4", f"reply {depth + 1}", parent_comment_id=parent.id)
    with pytest.raises(MaxDepthExceeded):
        add_comment(test_db, "acme", article.id, "U3", "too deep", parent_comment_id=parent.id)

    tree = build_comment_tree(get_comments(test_db, "acme", article.id))
    assert len(tree) == 1
    assert tree[0]["replies"][0]["replies"][0]["replies"][0]["comment"].thread_depth == 3


# ==================== Tenant Isolation ====================


def test_tenants_do_not_see_each_other(test_db, article):
    other = create_article(
        test_db, "globex", "G1",
        {"title": "Reset the VPN client", "content": "Globex instructions for VPN", "category": "network"},
    )["article"]

    with pytest.raises(NotFoundError):
        get_article_by_id(test_db, "globex", article.id)
    with pytest.raises(NotFoundError):
        add_rating(test_db, "globex", article.id, "G2", 5)

    response = run_operation(get_article_by_id, test_db, "acme", other.id)
    assert response["success"] is False
    assert response["error_kind"] == "not_found"


def test_database_reopen_keeps_data(tmp_path):
    path = tmp_path / "persist.db"
    db = create_database("sqlite", path)
    article = create_article(
        db, "acme", "U1", {"title": "Persisted", "content": "Survives a restart", "category": "c"}
    )["article"]
    db.close()

    reopened = create_database("sqlite", path)
    try:
        assert get_article_by_id(reopened, "acme", article.id).title == "Persisted"
    finally:
        reopened.close()


# ==================== Inventory Pipeline ====================


def test_movements_to_abc_export(test_db, app_context, tmp_path):
    movements = tmp_path / "movements.xlsx"
    pd.DataFrame({
        "Part": ["P1", "P2", "P3", "P4", "P1"],
        "Location": ["L1"] * 5,
        "Quantity": [4, 3, 15, 5, 1],
        "Unit cost": [100, 100, 10, 10, 100],
        "Date": ["2025-01-05", "2025-01-06", "2025-01-07", "2025-01-08", "2025-01-09"],
    }).to_excel(movements, index=False, engine="openpyxl")

    assert import_movements_from_file(test_db, app_context, movements)["imported"] == 5

    result = run_abc_analysis(test_db, app_context, datetime(2025, 1, 1), datetime(2025, 1, 31))
    assert [(r.part_id, r.abc_classification) for r in result["records"]] == [
        ("P1", "A"), ("P2", "A"), ("P3", "B"), ("P4", "C"),
    ]
    assert result["records"][0].movement_frequency == 2

    other_tenant = app_context.with_tenant("globex")
    assert run_abc_analysis(test_db, other_tenant, datetime(2025, 1, 1), datetime(2025, 1, 31))["records"] == []

    exported = export_classification(test_db, app_context, Path(tmp_path / "abc.xlsx"))
    assert list(pd.read_excel(exported, sheet_name="ABC")["abc_classification"]) == ["A", "A", "B", "C"]
