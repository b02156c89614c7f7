"""
Domain models for the knowledge base and parts core.

These dataclasses represent the core business entities.
They are framework-agnostic and have no dependencies on database or UI.
Rows coming back from the persistence port are plain dicts; use the
``from_dict`` constructors to lift them into models.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ArticleStatus(str, Enum):
    """Publication status of an article."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    REJECTED = "rejected"


class ApprovalStatus(str, Enum):
    """Approval lifecycle status of an article."""

    NOT_SUBMITTED = "not_submitted"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"


class ApprovalAction(str, Enum):
    """Actions accepted by the approval state machine."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    WITHDRAW = "withdraw"


class ModerationAction(str, Enum):
    """Moderator actions on a comment."""

    HIGHLIGHT = "highlight"
    RESOLVE = "resolve"
    HIDE = "hide"


REACTION_TYPES = ("like", "dislike", "helpful", "insightful")
VISIBILITY_VALUES = ("public", "internal", "restricted")
TEMPLATE_TYPES = ("tutorial", "troubleshooting", "faq", "policy", "process", "announcement")
RATING_CATEGORY_NAMES = ("accuracy", "clarity", "completeness", "usefulness")


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Accept datetime, ISO string or None (SQLite stores text)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_json_list(value: Any) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return json.loads(value)


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """
    One approval transition.

    Frozen: entries are immutable once appended to an article's history.
    """

    id: str
    article_id: str
    user_id: str
    action: str
    timestamp: datetime
    previous_status: str
    new_status: str
    comment: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApprovalHistoryEntry":
        return cls(
            id=data["id"],
            article_id=data["article_id"],
            user_id=data["user_id"],
            action=data["action"],
            timestamp=_parse_datetime(data["timestamp"]),
            previous_status=data["previous_status"],
            new_status=data["new_status"],
            comment=data.get("comment"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Article:
    """
    Knowledge base article - the unit of authorship, approval and versioning.

    Every article belongs to exactly one tenant.
    """

    tenant_id: str
    title: str
    content: str
    category: str
    author_id: str
    summary: str = ""
    slug: str = ""
    tags: List[str] = field(default_factory=list)
    status: str = ArticleStatus.DRAFT.value
    approval_status: str = ApprovalStatus.NOT_SUBMITTED.value
    version: int = 1
    reviewer_id: Optional[str] = None
    visibility: str = "internal"
    content_type: str = "markdown"
    featured: bool = False
    template_id: Optional[str] = None
    view_count: int = 0
    last_viewed_at: Optional[datetime] = None
    rating_average: float = 0.0
    rating_count: int = 0
    helpful_count: int = 0
    not_helpful_count: int = 0
    approval_revision: int = 0
    approval_history: List[ApprovalHistoryEntry] = field(default_factory=list)
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate article data after initialization."""
        if not self.tenant_id:
            raise ValueError("tenant_id cannot be empty")
        if not self.author_id:
            raise ValueError("author_id cannot be empty")
        if self.version < 1:
            raise ValueError("version must start at 1")
        if self.status not in [s.value for s in ArticleStatus]:
            raise ValueError(f"unknown article status: {self.status}")
        if self.approval_status not in [s.value for s in ApprovalStatus]:
            raise ValueError(f"unknown approval status: {self.approval_status}")

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> "Article":
        """Build an Article from a database row (and optional history rows)."""
        return cls(
            id=data.get("id"),
            tenant_id=data["tenant_id"],
            title=data["title"],
            content=data["content"],
            category=data["category"],
            author_id=data["author_id"],
            summary=data.get("summary") or "",
            slug=data.get("slug") or "",
            tags=_parse_json_list(data.get("tags")),
            status=data.get("status") or ArticleStatus.DRAFT.value,
            approval_status=data.get("approval_status") or ApprovalStatus.NOT_SUBMITTED.value,
            version=data.get("version") or 1,
            reviewer_id=data.get("reviewer_id"),
            visibility=data.get("visibility") or "internal",
            content_type=data.get("content_type") or "markdown",
            featured=bool(data.get("featured")),
            template_id=data.get("template_id"),
            view_count=data.get("view_count") or 0,
            last_viewed_at=_parse_datetime(data.get("last_viewed_at")),
            rating_average=data.get("rating_average") or 0.0,
            rating_count=data.get("rating_count") or 0,
            helpful_count=data.get("helpful_count") or 0,
            not_helpful_count=data.get("not_helpful_count") or 0,
            approval_revision=data.get("approval_revision") or 0,
            approval_history=[ApprovalHistoryEntry.from_dict(h) for h in (history or [])],
            published_at=_parse_datetime(data.get("published_at")),
            expires_at=_parse_datetime(data.get("expires_at")),
            is_deleted=bool(data.get("is_deleted")),
            deleted_at=_parse_datetime(data.get("deleted_at")),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )

    @property
    def is_draft(self) -> bool:
        return self.status == ArticleStatus.DRAFT.value


@dataclass
class ArticleVersion:
    """Snapshot of an article's editable content at a given version."""

    article_id: str
    version: int
    title: str
    content: str
    category: str
    author_id: str
    changes_summary: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleVersion":
        return cls(
            id=data.get("id"),
            article_id=data["article_id"],
            version=data["version"],
            title=data["title"],
            content=data["content"],
            category=data["category"],
            author_id=data["author_id"],
            changes_summary=data.get("changes_summary"),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class Category:
    """Article category. Deleting a category deactivates it."""

    tenant_id: str
    name: str
    slug: str = ""
    description: Optional[str] = None
    parent_category_id: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    id: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("name cannot be empty")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=data.get("id"),
            tenant_id=data["tenant_id"],
            name=data["name"],
            slug=data.get("slug") or "",
            description=data.get("description"),
            parent_category_id=data.get("parent_category_id"),
            sort_order=data.get("sort_order") or 0,
            is_active=bool(data.get("is_active", True)),
        )


@dataclass
class Reaction:
    """A single user's reaction to a comment."""

    user_id: str
    type: str
    created_at: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reaction":
        return cls(
            user_id=data["user_id"],
            type=data["type"],
            created_at=_parse_datetime(data["created_at"]),
        )


@dataclass
class Comment:
    """
    Comment on an article, optionally nested under a parent comment.

    thread_depth is 0 for top-level comments.
    """

    tenant_id: str
    article_id: str
    user_id: str
    content: str
    parent_comment_id: Optional[str] = None
    thread_depth: int = 0
    reactions: List[Reaction] = field(default_factory=list)
    is_highlighted: bool = False
    is_resolved: bool = False
    is_hidden: bool = False
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.thread_depth < 0:
            raise ValueError("thread_depth cannot be negative")

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        reactions: Optional[List[Dict[str, Any]]] = None,
    ) -> "Comment":
        return cls(
            id=data.get("id"),
            tenant_id=data["tenant_id"],
            article_id=data["article_id"],
            user_id=data["user_id"],
            content=data["content"],
            parent_comment_id=data.get("parent_comment_id"),
            thread_depth=data.get("thread_depth") or 0,
            reactions=[Reaction.from_dict(r) for r in (reactions or [])],
            is_highlighted=bool(data.get("is_highlighted")),
            is_resolved=bool(data.get("is_resolved")),
            is_hidden=bool(data.get("is_hidden")),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )

    def reaction_counts(self) -> Dict[str, int]:
        """Count reactions per type."""
        counts: Dict[str, int] = {}
        for reaction in self.reactions:
            counts[reaction.type] = counts.get(reaction.type, 0) + 1
        return counts


@dataclass
class Rating:
    """One user's rating of one article (1-5, optional sub-scores)."""

    tenant_id: str
    article_id: str
    user_id: str
    score: int
    categories: Dict[str, int] = field(default_factory=dict)
    review: Optional[str] = None
    is_helpful: Optional[bool] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rating":
        categories = data.get("categories") or {}
        if isinstance(categories, str):
            categories = json.loads(categories)
        is_helpful = data.get("is_helpful")
        return cls(
            id=data.get("id"),
            tenant_id=data["tenant_id"],
            article_id=data["article_id"],
            user_id=data["user_id"],
            score=data["score"],
            categories=categories,
            review=data.get("review"),
            is_helpful=None if is_helpful is None else bool(is_helpful),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class TemplateSection:
    """One section of an article template."""

    title: str
    description: str = ""
    content_type: str = "text"
    is_required: bool = False
    placeholder: str = ""
    order: int = 0


@dataclass
class ArticleTemplate:
    """Predefined article structure used to scaffold new articles."""

    tenant_id: str
    name: str
    category: str
    template_type: str
    sections: List[TemplateSection] = field(default_factory=list)
    description: str = ""
    default_tags: List[str] = field(default_factory=list)
    required_fields: List[str] = field(default_factory=list)
    difficulty: Optional[str] = None
    is_active: bool = True
    usage_count: int = 0
    created_by: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("name cannot be empty")
        if self.template_type not in TEMPLATE_TYPES:
            raise ValueError(f"unknown template_type: {self.template_type}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleTemplate":
        sections = [
            TemplateSection(**s) if isinstance(s, dict) else s
            for s in _parse_json_list(data.get("sections"))
        ]
        return cls(
            id=data.get("id"),
            tenant_id=data["tenant_id"],
            name=data["name"],
            category=data["category"],
            template_type=data["template_type"],
            sections=sections,
            description=data.get("description") or "",
            default_tags=_parse_json_list(data.get("default_tags")),
            required_fields=_parse_json_list(data.get("required_fields")),
            difficulty=data.get("difficulty"),
            is_active=bool(data.get("is_active", True)),
            usage_count=data.get("usage_count") or 0,
            created_by=data.get("created_by"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class StockMovement:
    """
    A stock movement of one part at one location.

    OUT movements are consumption and feed the ABC analysis.
    """

    part_id: str
    location_id: str
    quantity: float
    unit_cost: float = 0.0
    movement_type: str = "OUT"
    executed_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        if not self.part_id:
            raise ValueError("part_id cannot be empty")
        if self.quantity < 0:
            raise ValueError("quantity cannot be negative")
        if self.movement_type not in ("IN", "OUT"):
            raise ValueError("movement_type must be 'IN' or 'OUT'")

    @property
    def total_cost(self) -> float:
        return self.quantity * self.unit_cost


@dataclass
class ClassificationRecord:
    """ABC classification of one part/location for an analysis period."""

    part_id: str
    location_id: str
    total_value_consumed: float
    percentage_of_total_value: float = 0.0
    cumulative_percentage: float = 0.0
    abc_classification: str = "C"
    total_quantity: float = 0.0
    movement_frequency: int = 0
    analysis_run_id: Optional[str] = None

    def __post_init__(self):
        if self.total_value_consumed < 0:
            raise ValueError("total_value_consumed cannot be negative")


@dataclass
class DemandForecast:
    """Predicted demand for one part for one future period."""

    part_id: str
    forecast_date: datetime
    predicted_demand: float
    lower_bound: float
    upper_bound: float
    historical_periods_used: int
    method: str
    reorder_alert: bool = False

    def __str__(self) -> str:
        return (
            f"{self.part_id} @ {self.forecast_date:%Y-%m}: "
            f"{self.predicted_demand:.2f} [{self.lower_bound:.2f}-{self.upper_bound:.2f}]"
        )
