"""
Unit tests for Article Operations.

Tests cover article CRUD, versioning, view tracking, favorites,
ticket links and attachment handling.
"""

import pytest
from unittest.mock import MagicMock

from data import create_database
from domain.exceptions import ConcurrentModificationError, NotFoundError, PermissionDenied, ValidationError
from services.media_storage import LocalMediaStorage

import operations.article_ops as article_ops

from operations.article_ops import (
    create_article,
    get_article_by_id,
    update_article,
    delete_article,
    list_articles,
    get_article_versions,
    clone_article,
    get_popular_articles,
    get_recent_articles,
    toggle_favorite,
    get_favorite_articles,
    link_article_to_ticket,
    get_articles_by_ticket,
    get_article_attachments,
    load_article,
)
from operations.approval_ops import submit_for_approval, approve_article


@pytest.fixture
def db():
    """Create in-memory database for testing."""
    database = create_database("sqlite", ":memory:")
    yield database
    database.close()


@pytest.fixture
def article(db):
    result = create_article(
        db, "acme", "u1",
        {
            "title": "  Olá Mundo!  ",
            "content": "<p>Open the client and press <b>reset</b>.</p>",
            "category": "network",
            "tags": ["VPN", " vpn ", "Network"],
        },
    )
    return result["article"]


def publish(db, article_id):
    submit_for_approval(db, "acme", article_id, "u1")
    return approve_article(db, "acme", article_id, "u2")


# ==================== Create ====================


def test_create_article_normalizes_fields(article):
    assert article.title == "Olá Mundo!"
    assert article.slug == "ola-mundo"
    assert article.tags == ["vpn", "network"]
    assert article.summary == "Open the client and press reset ."
    assert article.status == "draft"
    assert article.approval_status == "not_submitted"
    assert article.version == 1


def test_create_article_invalid_fields(db):
    with pytest.raises(ValidationError) as exc_info:
        create_article(db, "acme", "u1", {"title": "ab", "content": "short", "category": ""})

    assert set(exc_info.value.details) == {"title", "content", "category"}


def test_create_article_invalid_visibility(db):
    with pytest.raises(ValidationError):
        create_article(
            db, "acme", "u1",
            {"title": "Valid title", "content": "Valid content here", "category": "c",
             "visibility": "secret"},
        )


def test_create_article_requires_tenant_and_author(db):
    data = {"title": "Valid title", "content": "Valid content here", "category": "c"}
    with pytest.raises(ValidationError):
        create_article(db, "", "u1", data)
    with pytest.raises(ValidationError):
        create_article(db, "acme", "", data)


def test_create_article_with_attachments_best_effort(db, tmp_path):
    storage = LocalMediaStorage(tmp_path)
    result = create_article(
        db, "acme", "u1",
        {"title": "With files", "content": "Content with attachments", "category": "c"},
        attachments=[
            {"filename": "diagram.png", "content": b"png-bytes"},
            {"filename": "virus.exe", "content": b"MZ"},
        ],
        media_storage=storage,
    )

    assert result["article"].id
    assert [a["filename"] for a in result["attachments"]] == ["diagram.png"]
    assert [f["filename"] for f in result["failed_attachments"]] == ["virus.exe"]

    stored = get_article_attachments(db, "acme", result["article"].id)
    assert len(stored) == 1
    assert storage.read("acme", stored[0]["storage_key"]) == b"png-bytes"


def test_attachment_storage_error_keeps_article(db):
    storage = MagicMock()
    storage.save.side_effect = OSError("disk full")

    result = create_article(
        db, "acme", "u1",
        {"title": "Disk full", "content": "Content with attachments", "category": "c"},
        attachments=[{"filename": "a.png", "content": b"x"}],
        media_storage=storage,
    )

    assert result["failed_attachments"][0]["error"] == "disk full"
    assert get_article_by_id(db, "acme", result["article"].id, track_view=False)


def test_attachments_without_storage_rejected_before_insert(db):
    with pytest.raises(ValidationError):
        create_article(
            db, "acme", "u1",
            {"title": "No storage", "content": "Content with attachments", "category": "c"},
            attachments=[{"filename": "a.png", "content": b"x"}],
        )
    assert list_articles(db, "acme")["total"] == 0


# ==================== Read ====================


def test_get_article_counts_views(db, article):
    get_article_by_id(db, "acme", article.id)
    fetched = get_article_by_id(db, "acme", article.id)

    assert fetched.view_count == 2
    assert fetched.last_viewed_at is not None


def test_get_article_without_tracking(db, article):
    assert get_article_by_id(db, "acme", article.id, track_view=False).view_count == 0


def test_get_article_other_tenant_not_found(db, article):
    with pytest.raises(NotFoundError):
        get_article_by_id(db, "other", article.id)


# ==================== Update ====================


def test_update_title_bumps_version_and_slug(db, article):
    updated = update_article(db, "acme", article.id, "u1", {"title": "New Title"}, "Renamed")

    assert updated.version == 2
    assert updated.slug == "new-title"

    versions = get_article_versions(db, "acme", article.id)
    assert [v.version for v in versions] == [2, 1]
    assert versions[0].changes_summary == "Renamed"
    assert versions[0].title == "New Title"


def test_update_tags_keeps_version(db, article):
    updated = update_article(db, "acme", article.id, "u1", {"tags": ["A", "a"]})
    assert updated.version == 1
    assert updated.tags == ["a"]


def test_update_content_refreshes_summary(db, article):
    updated = update_article(db, "acme", article.id, "u1", {"content": "Brand new content body"})
    assert updated.summary == "Brand new content body"


def test_update_from_stale_snapshot_conflicts(db, article, monkeypatch):
    """Two edits based on the same read: the second is refused, not crashed."""
    stale = load_article(db, "acme", article.id)
    update_article(db, "acme", article.id, "u1", {"title": "First edit"})

    monkeypatch.setattr(article_ops, "load_article", lambda *args, **kwargs: stale)
    with pytest.raises(ConcurrentModificationError):
        update_article(db, "acme", article.id, "u1", {"title": "Second edit"})
    monkeypatch.undo()

    stored = load_article(db, "acme", article.id)
    assert (stored.title, stored.version) == ("First edit", 2)
    assert [v.version for v in get_article_versions(db, "acme", article.id)] == [2, 1]


def test_update_unknown_field(db, article):
    with pytest.raises(ValidationError):
        update_article(db, "acme", article.id, "u1", {"status": "published"})


def test_update_invalid_value(db, article):
    with pytest.raises(ValidationError):
        update_article(db, "acme", article.id, "u1", {"title": "x"})


def test_non_author_may_edit_draft_only(db, article):
    assert update_article(db, "acme", article.id, "u3", {"tags": ["x"]}).tags == ["x"]

    publish(db, article.id)
    with pytest.raises(PermissionDenied):
        update_article(db, "acme", article.id, "u3", {"tags": ["y"]})


# ==================== Delete ====================


def test_delete_article_soft(db, article):
    assert delete_article(db, "acme", article.id, "u1") is True
    with pytest.raises(NotFoundError):
        get_article_by_id(db, "acme", article.id)
    assert list_articles(db, "acme")["total"] == 0


def test_delete_published_by_other_denied(db, article):
    publish(db, article.id)
    with pytest.raises(PermissionDenied):
        delete_article(db, "acme", article.id, "u3")


# ==================== Listing ====================


def test_list_articles_paging(db):
    for i in range(5):
        create_article(db, "acme", "u1", {"title": f"Article {i}", "content": "Body of the article", "category": "c"})

    page = list_articles(db, "acme", page=2, page_size=2, order_by="title")
    assert page["total"] == 5
    assert [a.title for a in page["items"]] == ["Article 2", "Article 3"]


def test_list_articles_bad_page(db):
    with pytest.raises(ValidationError):
        list_articles(db, "acme", page=0)
    with pytest.raises(ValidationError):
        list_articles(db, "acme", order_by="random()")


def test_popular_and_recent_only_published(db, article):
    draft = create_article(db, "acme", "u1", {"title": "Draft only", "content": "Not yet published", "category": "c"})
    publish(db, article.id)
    get_article_by_id(db, "acme", article.id)

    assert [a.id for a in get_popular_articles(db, "acme")] == [article.id]
    assert draft["article"].id not in [a.id for a in get_recent_articles(db, "acme")]


# ==================== Clone / Favorites / Tickets ====================


def test_clone_article(db, article):
    publish(db, article.id)
    copy = clone_article(db, "acme", article.id, "u5")

    assert copy.id != article.id
    assert copy.title == "Olá Mundo! - Copy"
    assert copy.author_id == "u5"
    assert copy.status == "draft"
    assert copy.approval_history == []


def test_toggle_favorite(db, article):
    assert toggle_favorite(db, "acme", article.id, "u2") is True
    assert [a.id for a in get_favorite_articles(db, "acme", "u2")] == [article.id]
    assert toggle_favorite(db, "acme", article.id, "u2") is False


def test_toggle_favorite_missing_article(db):
    with pytest.raises(NotFoundError):
        toggle_favorite(db, "acme", "missing", "u2")


def test_link_article_to_ticket(db, article):
    assert link_article_to_ticket(db, "acme", article.id, " T-42 ", "u1") is True
    assert link_article_to_ticket(db, "acme", article.id, "T-42", "u1") is False
    assert [a.id for a in get_articles_by_ticket(db, "acme", "T-42")] == [article.id]

    with pytest.raises(ValidationError):
        link_article_to_ticket(db, "acme", article.id, "  ", "u1")
