"""
Unit tests for domain validators.
"""

import pytest

from domain.validators import (
    validate_title,
    validate_content,
    validate_category,
    sanitize_tags,
    generate_slug,
    build_summary,
    sanitize_comment_content,
    validate_tenant_id,
    validate_user_id,
    validate_score,
    validate_rating_categories,
    validate_file_path,
    sanitize_filename,
)
from domain.exceptions import InvalidScore, ValidationError


# ==================== Article Field Validators ====================


def test_validate_title_boundaries():
    """Titles of 3 and 200 characters pass, 2 and 201 fail."""
    assert validate_title("abc") is True
    assert validate_title("a" * 200) is True
    assert validate_title("ab") is False
    assert validate_title("a" * 201) is False


def test_validate_title_trims_before_measuring():
    assert validate_title("   ab   ") is False
    assert validate_title("  abc  ") is True


def test_validate_title_empty():
    assert validate_title("") is False
    assert validate_title(None) is False


def test_validate_content():
    assert validate_content("0123456789") is True
    assert validate_content("012345678") is False
    assert validate_content("   short    ") is False
    assert validate_content(None) is False


def test_validate_category():
    assert validate_category("network") is True
    assert validate_category("   ") is False
    assert validate_category(None) is False


def test_sanitize_tags_dedupes_case_insensitive_keeping_order():
    assert sanitize_tags(["A", " a ", "b", "B"]) == ["a", "b"]


def test_sanitize_tags_drops_empty():
    assert sanitize_tags(["", "  ", None, "vpn"]) == ["vpn"]
    assert sanitize_tags(None) == []


# ==================== Slugs and Summaries ====================


def test_generate_slug_strips_diacritics():
    assert generate_slug("Olá Mundo!") == "ola-mundo"


def test_generate_slug_collapses_hyphens_and_spaces():
    assert generate_slug("  Reset --  the   VPN  ") == "reset-the-vpn"


def test_generate_slug_truncates():
    assert len(generate_slug("x" * 300)) == 200


def test_build_summary_strips_html():
    assert build_summary("<p>Hello <b>world</b></p>") == "Hello world"


def test_build_summary_truncates_with_ellipsis():
    summary = build_summary("word " * 100)
    assert summary.endswith("...")
    assert len(summary) <= 203


def test_sanitize_comment_content_caps_length():
    assert sanitize_comment_content("  hi  ") == "hi"
    assert len(sanitize_comment_content("x" * 3000)) == 2000


# ==================== Raising Validators ====================


def test_validate_tenant_id():
    assert validate_tenant_id(" acme ") == "acme"
    with pytest.raises(ValidationError):
        validate_tenant_id("")


def test_validate_user_id_reports_field():
    with pytest.raises(ValidationError) as exc_info:
        validate_user_id("  ", "author_id")
    assert exc_info.value.details["field"] == "author_id"


@pytest.mark.parametrize("score", [1, 3, 5, 4.0])
def test_validate_score_accepts_range(score):
    assert validate_score(score) == int(score)


@pytest.mark.parametrize("score", [0, 6, -1, 2.5, True, "5", None])
def test_validate_score_rejects(score):
    with pytest.raises(InvalidScore):
        validate_score(score)


def test_invalid_score_is_validation_error():
    with pytest.raises(ValidationError):
        validate_score(9)


def test_validate_rating_categories():
    assert validate_rating_categories({"accuracy": 5, "clarity": 2}) == {"accuracy": 5, "clarity": 2}
    assert validate_rating_categories(None) == {}


def test_validate_rating_categories_unknown_name():
    with pytest.raises(ValidationError) as exc_info:
        validate_rating_categories({"speed": 3})
    assert not isinstance(exc_info.value, InvalidScore)


def test_validate_rating_categories_bad_subscore():
    with pytest.raises(InvalidScore):
        validate_rating_categories({"accuracy": 7})


# ==================== Files ====================


def test_validate_file_path_missing(tmp_path):
    with pytest.raises(ValidationError):
        validate_file_path(tmp_path / "nope.csv")


def test_validate_file_path_extension(tmp_path):
    path = tmp_path / "data.txt"
    path.write_text("x")
    with pytest.raises(ValidationError):
        validate_file_path(path, allowed_extensions=[".csv"])
    assert validate_file_path(path, allowed_extensions=[".TXT"]) == path


def test_sanitize_filename():
    assert sanitize_filename("../etc/passwd") == "_etc_passwd"
    assert sanitize_filename('a<b>c?.png') == "a_b_c_.png"
