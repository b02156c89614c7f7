"""
Unit tests for Rating Operations.
"""

import pytest

from data import create_database
from domain.exceptions import DuplicateRating, InvalidScore, NotFoundError, ValidationError
from operations.article_ops import create_article, load_article, delete_article
from operations.rating_ops import add_rating, get_ratings, get_rating_summary


@pytest.fixture
def db():
    """Create in-memory database for testing."""
    database = create_database("sqlite", ":memory:")
    yield database
    database.close()


@pytest.fixture
def article(db):
    data = {"title": "Reset the VPN client", "content": "Open the client and press reset.", "category": "network"}
    return create_article(db, "acme", "u1", data)["article"]


# ==================== Add ====================


def test_add_rating_updates_aggregate(db, article):
    add_rating(db, "acme", article.id, "u2", 4)
    add_rating(db, "acme", article.id, "u3", 5, is_helpful=True)
    add_rating(db, "acme", article.id, "u4", 3, is_helpful=False)

    stored = load_article(db, "acme", article.id)
    assert stored.rating_count == 3
    assert stored.rating_average == 4.0
    assert stored.helpful_count == 1
    assert stored.not_helpful_count == 1


@pytest.mark.parametrize("score", [0, 6, 3.5, "4", True, None])
def test_invalid_score(db, article, score):
    with pytest.raises(InvalidScore):
        add_rating(db, "acme", article.id, "u2", score)


def test_float_integral_score_accepted(db, article):
    assert add_rating(db, "acme", article.id, "u2", 5.0).score == 5


def test_duplicate_rating_keeps_single_row(db, article):
    add_rating(db, "acme", article.id, "u2", 4)

    with pytest.raises(DuplicateRating):
        add_rating(db, "acme", article.id, "u2", 1)

    stored = load_article(db, "acme", article.id)
    assert stored.rating_count == 1
    assert stored.rating_average == 4.0


def test_duplicate_rating_caught_by_database(db, article, monkeypatch):
    """The unique index still holds when the advisory lookup misses a concurrent insert."""
    add_rating(db, "acme", article.id, "u2", 4)
    monkeypatch.setattr(db, "find_rating", lambda *args, **kwargs: None)

    with pytest.raises(DuplicateRating):
        add_rating(db, "acme", article.id, "u2", 2)

    assert load_article(db, "acme", article.id).rating_count == 1


def test_rating_categories(db, article):
    rating = add_rating(db, "acme", article.id, "u2", 4, categories={"clarity": 5, "accuracy": 3})
    assert rating.categories == {"clarity": 5, "accuracy": 3}

    with pytest.raises(ValidationError):
        add_rating(db, "acme", article.id, "u3", 4, categories={"style": 5})
    with pytest.raises(InvalidScore):
        add_rating(db, "acme", article.id, "u3", 4, categories={"clarity": 9})


def test_rating_deleted_article(db, article):
    delete_article(db, "acme", article.id, "u1")
    with pytest.raises(NotFoundError):
        add_rating(db, "acme", article.id, "u2", 5)


# ==================== Summary ====================


def test_rating_summary(db, article):
    add_rating(db, "acme", article.id, "u2", 5, categories={"clarity": 5}, is_helpful=True)
    add_rating(db, "acme", article.id, "u3", 4, categories={"clarity": 4, "accuracy": 2})
    add_rating(db, "acme", article.id, "u4", 4, review="  fine  ", is_helpful=False)

    summary = get_rating_summary(db, "acme", article.id)

    assert summary["average"] == 4.33
    assert summary["count"] == 3
    assert summary["distribution"] == {1: 0, 2: 0, 3: 0, 4: 2, 5: 1}
    assert summary["category_averages"] == {"accuracy": 2.0, "clarity": 4.5}
    assert summary["helpful_count"] == 1
    assert summary["not_helpful_count"] == 1

    reviews = [r.review for r in get_ratings(db, "acme", article.id) if r.review]
    assert reviews == ["fine"]


def test_rating_summary_empty(db, article):
    summary = get_rating_summary(db, "acme", article.id)
    assert summary["average"] == 0.0
    assert summary["count"] == 0
    assert summary["category_averages"] == {}
