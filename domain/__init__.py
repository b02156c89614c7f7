"""
Domain layer for the knowledge base and parts core.

This module contains core business entities, rules, validators and the
approval state machine. No dependencies on database, UI, or external
frameworks.
"""

from .models import (
    ArticleStatus,
    ApprovalStatus,
    ApprovalAction,
    ModerationAction,
    ApprovalHistoryEntry,
    Article,
    ArticleVersion,
    Category,
    Reaction,
    Comment,
    Rating,
    TemplateSection,
    ArticleTemplate,
    StockMovement,
    ClassificationRecord,
    DemandForecast,
    REACTION_TYPES,
    VISIBILITY_VALUES,
    TEMPLATE_TYPES,
    RATING_CATEGORY_NAMES,
)

from .exceptions import (
    KnowledgeBaseError,
    DatabaseError,
    ImportValidationError,
    ValidationError,
    InvalidScore,
    NotFoundError,
    IllegalTransition,
    ConcurrentModificationError,
    SelfApprovalForbidden,
    PermissionDenied,
    MaxDepthExceeded,
    DuplicateRating,
)

from .validators import (
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

from .rules import (
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

from .workflow import (
    ApprovalPolicy,
    ApprovalStateMachine,
    TransitionResult,
    apply_transition,
    parse_action,
)

__all__ = [
    # Models
    "ArticleStatus",
    "ApprovalStatus",
    "ApprovalAction",
    "ModerationAction",
    "ApprovalHistoryEntry",
    "Article",
    "ArticleVersion",
    "Category",
    "Reaction",
    "Comment",
    "Rating",
    "TemplateSection",
    "ArticleTemplate",
    "StockMovement",
    "ClassificationRecord",
    "DemandForecast",
    "REACTION_TYPES",
    "VISIBILITY_VALUES",
    "TEMPLATE_TYPES",
    "RATING_CATEGORY_NAMES",
    # Exceptions
    "KnowledgeBaseError",
    "DatabaseError",
    "ImportValidationError",
    "ValidationError",
    "InvalidScore",
    "NotFoundError",
    "IllegalTransition",
    "ConcurrentModificationError",
    "SelfApprovalForbidden",
    "PermissionDenied",
    "MaxDepthExceeded",
    "DuplicateRating",
    # Validators
    "validate_title",
    "validate_content",
    "validate_category",
    "sanitize_tags",
    "generate_slug",
    "build_summary",
    "sanitize_comment_content",
    "validate_tenant_id",
    "validate_user_id",
    "validate_score",
    "validate_rating_categories",
    "validate_file_path",
    "sanitize_filename",
    # Rules
    "is_publishable",
    "can_edit",
    "can_manage_submission",
    "can_approve",
    "should_increment_version",
    "calculate_reading_time",
    "is_expired",
    "current_review_round",
    "count_prior_approvals",
    "calculate_rating_average",
    "calculate_engagement_score",
    # Workflow
    "ApprovalPolicy",
    "ApprovalStateMachine",
    "TransitionResult",
    "apply_transition",
    "parse_action",
]
