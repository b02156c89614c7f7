"""
Unit tests for Search Operations and relevance scoring.
"""

import pytest

from data import create_database
from domain.exceptions import ValidationError
from domain.models import Article
from operations.article_ops import create_article, get_article_by_id
from operations.approval_ops import submit_for_approval, approve_article
from operations.search_ops import search_articles
from services.search_scoring import FuzzyKeywordScorer, KeywordOverlapScorer, SearchScorer, tokenize


@pytest.fixture
def db():
    """Create in-memory database for testing."""
    database = create_database("sqlite", ":memory:")
    yield database
    database.close()


def published(db, title, content, category="it", tenant_id="acme"):
    article = create_article(db, tenant_id, "u1", {"title": title, "content": content, "category": category})["article"]
    submit_for_approval(db, tenant_id, article.id, "u1")
    return approve_article(db, tenant_id, article.id, "u2")


@pytest.fixture
def corpus(db):
    vpn = published(db, "Reset the VPN client", "Open the VPN client and press reset.", "network")
    printer = published(db, "Printer setup", "Reset the printer before adding it.", "hardware")
    draft = create_article(
        db, "acme", "u1", {"title": "Reset VPN draft", "content": "Draft about VPN reset", "category": "network"}
    )["article"]
    return {"vpn": vpn, "printer": printer, "draft": draft}


# ==================== Tokenize / Score ====================


def test_tokenize_dedupes_and_lowercases():
    assert tokenize("Reset VPN, reset token") == ["reset", "vpn", "token"]
    assert tokenize("  ,; ") == []


def test_keyword_overlap_scorer_weights_title():
    article = Article(tenant_id="acme", title="VPN", content="Steps to reset", category="c", author_id="u1")
    scorer = KeywordOverlapScorer()

    assert scorer.score(article, "vpn") == 1.0
    assert scorer.score(article, "reset") == 0.6
    assert scorer.score(article, "printer") == 0.0


def test_fuzzy_scorer_credits_typos():
    article = Article(tenant_id="acme", title="Printer setup", content="Install the driver", category="c", author_id="u1")

    assert FuzzyKeywordScorer().score(article, "printer") == 1.0
    assert FuzzyKeywordScorer().score(article, "printr") == pytest.approx(0.5538, abs=1e-4)
    assert FuzzyKeywordScorer().score(article, "toaster") == 0.0
    assert KeywordOverlapScorer().score(article, "printr") == 0.0
    assert FuzzyKeywordScorer(min_ratio=95).score(article, "printr") == 0.0


# ==================== Search ====================


def test_search_ranks_by_score(db, corpus):
    result = search_articles(db, "acme", "reset vpn")

    assert result["total"] == 2
    assert [r["article"].id for r in result["results"]] == [corpus["vpn"].id, corpus["printer"].id]
    assert result["results"][0]["score"] == 1.0
    assert result["results"][1]["score"] == 0.3


def test_search_excludes_drafts_by_default(db, corpus):
    ids = [r["article"].id for r in search_articles(db, "acme", "draft")["results"]]
    assert ids == []

    ids = [r["article"].id for r in search_articles(db, "acme", "draft", filters={"status": "draft"})["results"]]
    assert ids == [corpus["draft"].id]


def test_search_filters_and_min_score(db, corpus):
    result = search_articles(db, "acme", "reset", filters={"category": "hardware"})
    assert [r["article"].id for r in result["results"]] == [corpus["printer"].id]

    result = search_articles(db, "acme", "reset vpn", min_score=0.5)
    assert [r["article"].id for r in result["results"]] == [corpus["vpn"].id]


def test_search_ties_broken_by_views(db):
    first = published(db, "Reset guide one", "Reset steps for one")
    second = published(db, "Reset guide two", "Reset steps for two")
    get_article_by_id(db, "acme", second.id)

    result = search_articles(db, "acme", "reset")
    assert [r["article"].id for r in result["results"]] == [second.id, first.id]


def test_search_is_tenant_scoped(db, corpus):
    published(db, "Reset the VPN client", "Other tenant content here", tenant_id="other")
    result = search_articles(db, "acme", "vpn")
    assert all(r["article"].tenant_id == "acme" for r in result["results"])
    assert result["total"] == 1


def test_search_limit(db, corpus):
    result = search_articles(db, "acme", "reset", limit=1)
    assert len(result["results"]) == 1
    assert result["total"] == 2


def test_search_empty_query(db):
    with pytest.raises(ValidationError):
        search_articles(db, "acme", "  !! ")


def test_search_custom_scorer(db, corpus):
    class TitleLength(SearchScorer):
        def score(self, article, query):
            return float(len(article.title))

    result = search_articles(db, "acme", "reset", scorer=TitleLength())
    assert [r["article"].id for r in result["results"]] == [corpus["vpn"].id, corpus["printer"].id]


def test_search_with_fuzzy_scorer(db, corpus):
    result = search_articles(db, "acme", "reset printr", scorer=FuzzyKeywordScorer())
    assert [r["article"].id for r in result["results"]] == [corpus["printer"].id, corpus["vpn"].id]
