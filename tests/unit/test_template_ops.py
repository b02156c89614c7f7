"""
Unit tests for Template Operations.

Tests cover template structure checks, markdown generation, required
content and creating articles from templates.
"""

import pytest

from data import create_database
from domain.exceptions import NotFoundError, ValidationError
from domain.models import ArticleTemplate, TemplateSection
from operations.template_ops import (
    validate_template_structure,
    create_template,
    get_template,
    get_templates,
    update_template,
    deactivate_template,
    generate_content_from_template,
    validate_required_fields,
    create_article_from_template,
    get_template_analytics,
)


@pytest.fixture
def db():
    """Create in-memory database for testing."""
    database = create_database("sqlite", ":memory:")
    yield database
    database.close()


TEMPLATE_DATA = {
    "name": "How-to guide",
    "category": "guides",
    "template_type": "tutorial",
    "default_tags": ["How-To"],
    "sections": [
        {"title": "Steps", "description": "What to do", "is_required": True, "order": 2,
         "placeholder": "List the steps"},
        {"title": "Overview", "is_required": False, "order": 1, "placeholder": "Describe the goal"},
    ],
}


@pytest.fixture
def template(db):
    return create_template(db, "acme", "admin", TEMPLATE_DATA)


# ==================== Structure ====================


def test_structure_valid():
    sections = [TemplateSection(title="Steps", is_required=True, order=1)]
    assert validate_template_structure(sections) == []


def test_structure_errors():
    assert validate_template_structure([]) == ["Template must have at least one section"]

    errors = validate_template_structure([
        TemplateSection(title="A", order=1),
        TemplateSection(title=" ", order=1),
    ])
    assert errors == [
        "Template must have at least one required section",
        "Section orders must be unique",
        "Section 2 must have a title",
    ]


# ==================== CRUD ====================


def test_create_template(template):
    assert template.id
    assert template.default_tags == ["how-to"]
    assert [s.title for s in template.sections] == ["Steps", "Overview"]
    assert template.is_active


def test_create_template_invalid(db):
    with pytest.raises(ValidationError) as exc_info:
        create_template(db, "acme", "admin", {"name": "", "category": "", "template_type": "novel", "sections": []})
    assert len(exc_info.value.details["errors"]) == 4


def test_create_template_bad_section_keys(db):
    data = dict(TEMPLATE_DATA, sections=[{"title": "X", "colour": "red"}])
    with pytest.raises(ValidationError):
        create_template(db, "acme", "admin", data)


def test_get_template_other_tenant(db, template):
    with pytest.raises(NotFoundError):
        get_template(db, "other", template.id)


def test_update_template_revalidates(db, template):
    updated = update_template(db, "acme", template.id, {"name": "Guide"})
    assert updated.name == "Guide"

    with pytest.raises(ValidationError):
        update_template(db, "acme", template.id, {"sections": [{"title": "Only", "order": 1}]})
    with pytest.raises(ValidationError):
        update_template(db, "acme", template.id, {"usage_count": 10})


def test_deactivate_template(db, template):
    deactivate_template(db, "acme", template.id)

    assert get_templates(db, "acme") == []
    assert [t.id for t in get_templates(db, "acme", include_inactive=True)] == [template.id]


# ==================== Content Generation ====================


def test_generate_content_from_template(template):
    content = generate_content_from_template(template, {"Steps": "1. Open the app"})
    assert content == (
        "## Overview\n\nDescribe the goal\n\n"
        "## Steps\n\n*What to do*\n\n1. Open the app\n\n"
    )


def test_generate_content_from_user_content(template):
    user_content = "## Overview\nReset the client\n## Other\nignored"
    content = generate_content_from_template(template, user_content=user_content)
    assert "## Overview\n\nReset the client\n\n" in content
    assert "List the steps" in content


def test_validate_required_fields():
    template = ArticleTemplate(
        tenant_id="acme",
        name="Incident",
        category="ops",
        template_type="troubleshooting",
        sections=[TemplateSection(title="Root Cause", is_required=True, order=1)],
        required_fields=["title", "severity", "root-cause"],
    )

    assert validate_required_fields(template, "Title", {}) == ["Root Cause", "severity", "root-cause"]
    assert validate_required_fields(
        template, "Title", {"Root Cause": "disk"}, {"severity": "high"}
    ) == []


# ==================== Articles From Templates ====================


def test_create_article_from_template(db, template):
    result = create_article_from_template(
        db, "acme", template.id, "u1", "Install the printer",
        section_content={"Steps": "1. Plug it in"}, tags=["printer"],
    )
    article = result["article"]

    assert article.template_id == template.id
    assert article.category == "guides"
    assert article.tags == ["how-to", "printer"]
    assert "1. Plug it in" in article.content
    assert get_template(db, "acme", template.id).usage_count == 1


def test_create_article_missing_required_section(db, template):
    with pytest.raises(ValidationError) as exc_info:
        create_article_from_template(db, "acme", template.id, "u1", "Install the printer")
    assert exc_info.value.details["missing"] == ["Steps"]
    assert get_template(db, "acme", template.id).usage_count == 0


def test_create_article_from_inactive_template(db, template):
    deactivate_template(db, "acme", template.id)
    with pytest.raises(ValidationError):
        create_article_from_template(
            db, "acme", template.id, "u1", "Install the printer", section_content={"Steps": "x"},
        )


def test_template_analytics(db, template):
    other = create_template(db, "acme", "admin", dict(TEMPLATE_DATA, name="FAQ", category="faq"))
    for title in ("First printer", "Second printer"):
        create_article_from_template(db, "acme", template.id, "u1", title, section_content={"Steps": "go"})

    analytics = get_template_analytics(db, "acme")

    assert analytics["total_templates"] == 2
    assert analytics["active_templates"] == 2
    top = analytics["template_usage"][0]
    assert (top["template_id"], top["usage_count"], top["article_count"]) == (template.id, 2, 2)
    assert analytics["template_usage"][1]["template_id"] == other.id
    assert analytics["template_usage"][1]["article_count"] == 0
    assert analytics["popular_categories"][0] == {"category": "guides", "template_count": 1, "total_usage": 2}
