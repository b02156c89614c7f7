"""
Category Operations.

Categories are never removed; deleting one deactivates it.
"""

import logging
from typing import List, Dict, Any, Optional

from data.interface import CategoryRepository
from domain.models import Category
from domain.validators import generate_slug
from domain.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CATEGORY_FIELDS = {"name", "description", "parent_category_id", "sort_order", "is_active"}


def _load_category(db: CategoryRepository, tenant_id: str, category_id: str) -> Category:
    row = db.get_category(category_id, tenant_id)
    if row is None:
        raise NotFoundError(
            "Category not found",
            details={"category_id": category_id, "tenant_id": tenant_id},
        )
    return Category.from_dict(row)


def create_category(
    db: CategoryRepository,
    tenant_id: str,
    name: str,
    description: Optional[str] = None,
    parent_category_id: Optional[str] = None,
    sort_order: int = 0,
) -> Category:
    """
    Create a category. The slug is derived from the name.

    Raises:
        ValidationError: Empty name
        NotFoundError: Parent category not found
        DatabaseError: Slug already used in this tenant
    """
    if not name or not name.strip():
        raise ValidationError("Category name cannot be empty")
    name = name.strip()

    if parent_category_id:
        _load_category(db, tenant_id, parent_category_id)

    row = db.create_category(
        {
            "name": name,
            "slug": generate_slug(name),
            "description": description,
            "parent_category_id": parent_category_id,
            "sort_order": sort_order,
        },
        tenant_id,
    )

    logger.info(f"Created category '{name}' for tenant {tenant_id}")
    return Category.from_dict(row)


def get_categories(
    db: CategoryRepository,
    tenant_id: str,
    include_inactive: bool = False,
) -> List[Category]:
    return [Category.from_dict(row) for row in db.list_categories(tenant_id, include_inactive)]


def update_category(
    db: CategoryRepository,
    tenant_id: str,
    category_id: str,
    updates: Dict[str, Any],
) -> Category:
    """Update category fields; a new name also renews the slug."""
    unknown = set(updates) - CATEGORY_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    data = dict(updates)
    if "name" in data:
        if not data["name"] or not data["name"].strip():
            raise ValidationError("Category name cannot be empty")
        data["name"] = data["name"].strip()
        data["slug"] = generate_slug(data["name"])

    if data.get("parent_category_id") == category_id:
        raise ValidationError("Category cannot be its own parent", details={"category_id": category_id})

    row = db.update_category(category_id, data, tenant_id)
    if row is None:
        raise NotFoundError("Category not found", details={"category_id": category_id})

    logger.info(f"Updated category {category_id}: {sorted(updates)}")
    return Category.from_dict(row)


def delete_category(db: CategoryRepository, tenant_id: str, category_id: str) -> bool:
    """
    Deactivate a category.

    Returns:
        True if it was active before
    """
    _load_category(db, tenant_id, category_id)
    deactivated = db.deactivate_category(category_id, tenant_id)
    if deactivated:
        logger.info(f"Deactivated category {category_id}")
    return deactivated
