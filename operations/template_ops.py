"""
Template Operations.

Article templates give new articles a predefined section structure.
A template needs at least one section, at least one required section
and a unique order value per section.
"""

import logging
from dataclasses import asdict
from typing import List, Dict, Any, Optional

from data.interface import DatabaseInterface
from domain.models import ArticleTemplate, TemplateSection, TEMPLATE_TYPES
from domain.validators import generate_slug, sanitize_tags, validate_category
from domain.exceptions import NotFoundError, ValidationError
from .article_ops import create_article

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = {
    "name", "description", "category", "template_type", "sections",
    "default_tags", "required_fields", "difficulty", "is_active",
}


def _to_section(section) -> TemplateSection:
    if isinstance(section, TemplateSection):
        return section
    try:
        return TemplateSection(**section)
    except TypeError as e:
        raise ValidationError(f"Invalid template section: {e}", details={"section": section}) from e


def validate_template_structure(sections: List[TemplateSection]) -> List[str]:
    """
    Check a template's sections.

    Returns:
        List of error messages (empty if the structure is valid)
    """
    errors = []

    if not sections:
        errors.append("Template must have at least one section")
        return errors

    if not any(s.is_required for s in sections):
        errors.append("Template must have at least one required section")

    orders = [s.order for s in sections]
    if len(orders) != len(set(orders)):
        errors.append("Section orders must be unique")

    for index, section in enumerate(sections):
        if not section.title or not section.title.strip():
            errors.append(f"Section {index + 1} must have a title")

    return errors


def _check_template_data(data: Dict[str, Any]) -> List[TemplateSection]:
    errors = []
    if not data.get("name") or not str(data["name"]).strip():
        errors.append("Template name is required")
    if not validate_category(data.get("category")):
        errors.append("Template category is required")
    if data.get("template_type") not in TEMPLATE_TYPES:
        errors.append(f"template_type must be one of {', '.join(TEMPLATE_TYPES)}")

    sections = [_to_section(s) for s in data.get("sections") or []]
    errors.extend(validate_template_structure(sections))

    if errors:
        raise ValidationError("Invalid template: " + "; ".join(errors), details={"errors": errors})
    return sections


def _load_template(db: DatabaseInterface, tenant_id: str, template_id: str) -> ArticleTemplate:
    row = db.get_template(template_id, tenant_id)
    if row is None:
        raise NotFoundError(
            "Template not found",
            details={"template_id": template_id, "tenant_id": tenant_id},
        )
    return ArticleTemplate.from_dict(row)


def create_template(
    db: DatabaseInterface,
    tenant_id: str,
    user_id: str,
    data: Dict[str, Any],
) -> ArticleTemplate:
    """
    Create an article template.

    Args:
        data: name, category, template_type, sections and optional
              description, default_tags, required_fields, difficulty

    Raises:
        ValidationError: Invalid fields or section structure
    """
    sections = _check_template_data(data)

    row = db.create_template(
        {
            "name": data["name"].strip(),
            "description": (data.get("description") or "").strip(),
            "category": data["category"].strip(),
            "template_type": data["template_type"],
            "sections": [asdict(s) for s in sections],
            "default_tags": sanitize_tags(data.get("default_tags")),
            "required_fields": list(data.get("required_fields") or []),
            "difficulty": data.get("difficulty"),
            "is_active": True,
            "created_by": user_id,
        },
        tenant_id,
    )

    template = ArticleTemplate.from_dict(row)
    logger.info(f"Created template '{template.name}' ({template.id}) for tenant {tenant_id}")
    return template


def get_template(db: DatabaseInterface, tenant_id: str, template_id: str) -> ArticleTemplate:
    return _load_template(db, tenant_id, template_id)


def get_templates(
    db: DatabaseInterface,
    tenant_id: str,
    category: Optional[str] = None,
    template_type: Optional[str] = None,
    include_inactive: bool = False,
) -> List[ArticleTemplate]:
    """List templates, most used first."""
    rows = db.list_templates(
        tenant_id,
        category=category,
        template_type=template_type,
        active_only=not include_inactive,
    )
    return [ArticleTemplate.from_dict(row) for row in rows]


def update_template(
    db: DatabaseInterface,
    tenant_id: str,
    template_id: str,
    updates: Dict[str, Any],
) -> ArticleTemplate:
    """
    Update template fields. The merged result must still be a valid template.

    Raises:
        NotFoundError: Template not found
        ValidationError: Unknown field or invalid result
    """
    unknown = set(updates) - TEMPLATE_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    current = _load_template(db, tenant_id, template_id)
    merged = {
        "name": current.name,
        "category": current.category,
        "template_type": current.template_type,
        "sections": current.sections,
        **updates,
    }
    sections = _check_template_data(merged)

    data = dict(updates)
    if "sections" in data:
        data["sections"] = [asdict(s) for s in sections]
    if "default_tags" in data:
        data["default_tags"] = sanitize_tags(data["default_tags"])

    db.update_template(template_id, data, tenant_id)
    logger.info(f"Updated template {template_id}: {sorted(updates)}")
    return _load_template(db, tenant_id, template_id)


def deactivate_template(db: DatabaseInterface, tenant_id: str, template_id: str) -> ArticleTemplate:
    """Hide a template from new articles; existing articles keep their link."""
    template = update_template(db, tenant_id, template_id, {"is_active": False})
    logger.info(f"Deactivated template {template_id}")
    return template


def _extract_section_content(user_content: str, section_title: str) -> Optional[str]:
    """
    Pull the text under a section heading out of free-form content.

    Lines after the first line mentioning the title, up to the next
    '##' heading.
    """
    lines = user_content.split("\n")
    start = next((i for i, line in enumerate(lines) if section_title in line), None)
    if start is None:
        return None

    body = []
    for line in lines[start + 1:]:
        if line.startswith("##"):
            break
        body.append(line)
    return "\n".join(body).strip()


def generate_content_from_template(
    template: ArticleTemplate,
    section_content: Optional[Dict[str, str]] = None,
    user_content: str = "",
) -> str:
    """
    Render markdown for a template.

    Each section, in order, becomes '## title', an italic description,
    then its content: from section_content by title, else from
    user_content under a matching heading, else the placeholder.

    Example:
        >>> generate_content_from_template(template, {"Steps": "1. Open the app"})
        '## Steps\\n\\n*What to do*\\n\\n1. Open the app\\n\\n'
    """
    section_content = section_content or {}
    parts = []

    for section in sorted(template.sections, key=lambda s: s.order):
        parts.append(f"## {section.title}\n\n")
        if section.description:
            parts.append(f"*{section.description}*\n\n")

        text = section_content.get(section.title)
        if not text and user_content and section.title in user_content:
            text = _extract_section_content(user_content, section.title)
        parts.append(f"{text or section.placeholder}\n\n")

    return "".join(parts)


def validate_required_fields(
    template: ArticleTemplate,
    title: str,
    section_content: Dict[str, str],
    custom_data: Optional[Dict[str, Any]] = None,
) -> List[str]:
    """
    Find required sections and required fields left empty.

    A required field is satisfied by custom_data, by the article title
    ('title') or by content for the section whose slug matches it.

    Returns:
        List of missing names
    """
    custom_data = custom_data or {}
    filled_slugs = {generate_slug(name) for name, text in section_content.items() if text and text.strip()}

    missing = [
        s.title for s in template.sections
        if s.is_required and generate_slug(s.title) not in filled_slugs
    ]

    for field_name in template.required_fields:
        if field_name == "title" and title:
            continue
        if custom_data.get(field_name) or field_name in filled_slugs:
            continue
        missing.append(field_name)

    return missing


def create_article_from_template(
    db: DatabaseInterface,
    tenant_id: str,
    template_id: str,
    author_id: str,
    title: str,
    section_content: Optional[Dict[str, str]] = None,
    category: Optional[str] = None,
    tags: Optional[List[str]] = None,
    custom_data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create a draft article from a template.

    Category defaults to the template's; tags are the template's
    default tags plus the given ones. The template's usage count goes up.

    Returns:
        create_article result ({"article", "attachments", "failed_attachments"})

    Raises:
        NotFoundError: Template not found
        ValidationError: Template inactive or required content missing
    """
    template = _load_template(db, tenant_id, template_id)
    if not template.is_active:
        raise ValidationError("Template is not active", details={"template_id": template_id})

    section_content = section_content or {}
    missing = validate_required_fields(template, title, section_content, custom_data)
    if missing:
        logger.warning(f"Article from template {template_id} missing: {missing}")
        raise ValidationError(
            f"Missing required content: {', '.join(missing)}",
            details={"missing": missing},
        )

    result = create_article(
        db,
        tenant_id,
        author_id,
        {
            "title": title,
            "content": generate_content_from_template(template, section_content),
            "category": category or template.category,
            "tags": [*template.default_tags, *(tags or [])],
            "template_id": template.id,
        },
    )

    db.increment_template_usage(template_id, tenant_id)
    logger.info(f"Article {result['article'].id} created from template {template_id}")
    return result


def get_template_analytics(db: DatabaseInterface, tenant_id: str) -> Dict[str, Any]:
    """
    Usage figures for a tenant's templates.

    Returns:
        {
            "total_templates", "active_templates",
            "template_usage": [{template_id, name, usage_count, article_count,
                                average_rating, last_used}] (most used first),
            "popular_categories": [{category, template_count, total_usage}],
        }
    """
    templates = get_templates(db, tenant_id, include_inactive=True)
    article_stats = db.get_template_article_stats(tenant_id)

    usage = sorted(
        (
            {
                "template_id": t.id,
                "name": t.name,
                "usage_count": t.usage_count,
                "article_count": article_stats.get(t.id, {}).get("count", 0),
                "average_rating": article_stats.get(t.id, {}).get("avg_rating", 0.0),
                "last_used": t.updated_at,
            }
            for t in templates
        ),
        key=lambda item: item["usage_count"],
        reverse=True,
    )

    categories: Dict[str, Dict[str, Any]] = {}
    for t in templates:
        entry = categories.setdefault(t.category, {"category": t.category, "template_count": 0, "total_usage": 0})
        entry["template_count"] += 1
        entry["total_usage"] += t.usage_count

    return {
        "total_templates": len(templates),
        "active_templates": sum(1 for t in templates if t.is_active),
        "template_usage": usage,
        "popular_categories": sorted(categories.values(), key=lambda c: c["total_usage"], reverse=True),
    }
