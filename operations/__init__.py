"""
Operations layer for the knowledge base core.

Business logic operations - functions with dependency injection.
Each takes the database (and tenant) explicitly; classification_ops
is pure and never touches the database.
"""

from .article_ops import (
    load_article,
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
)

from .approval_ops import (
    execute_approval_action,
    submit_for_approval,
    approve_article,
    reject_article,
    request_changes,
    withdraw_submission,
    get_approval_history,
    get_pending_approvals,
)

from .comment_ops import (
    add_comment,
    add_reaction,
    moderate_comment,
    get_comments,
    build_comment_tree,
    delete_comment,
)

from .rating_ops import (
    add_rating,
    get_ratings,
    get_rating_summary,
)

from .template_ops import (
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

from .category_ops import (
    create_category,
    get_categories,
    update_category,
    delete_category,
)

from .search_ops import search_articles

from .analytics_ops import (
    get_article_engagement,
    get_knowledge_base_statistics,
)

from .classification_ops import (
    classify_value,
    classify_abc,
    aggregate_movements,
    get_classification_summary,
    ForecastStrategy,
    MovingAverageForecast,
    build_demand_history,
    forecast_demand,
)

from .inventory_ops import (
    import_movements_from_file,
    run_abc_analysis,
    get_latest_classification,
    generate_demand_forecast,
    export_classification,
)

from .responses import (
    success_response,
    error_response,
    run_operation,
)

__all__ = [
    # Article operations
    "load_article",
    "create_article",
    "get_article_by_id",
    "update_article",
    "delete_article",
    "list_articles",
    "get_article_versions",
    "clone_article",
    "get_popular_articles",
    "get_recent_articles",
    "toggle_favorite",
    "get_favorite_articles",
    "link_article_to_ticket",
    "get_articles_by_ticket",
    "get_article_attachments",
    # Approval operations
    "execute_approval_action",
    "submit_for_approval",
    "approve_article",
    "reject_article",
    "request_changes",
    "withdraw_submission",
    "get_approval_history",
    "get_pending_approvals",
    # Comment operations
    "add_comment",
    "add_reaction",
    "moderate_comment",
    "get_comments",
    "build_comment_tree",
    "delete_comment",
    # Rating operations
    "add_rating",
    "get_ratings",
    "get_rating_summary",
    # Template operations
    "validate_template_structure",
    "create_template",
    "get_template",
    "get_templates",
    "update_template",
    "deactivate_template",
    "generate_content_from_template",
    "validate_required_fields",
    "create_article_from_template",
    "get_template_analytics",
    # Category operations
    "create_category",
    "get_categories",
    "update_category",
    "delete_category",
    # Search and analytics
    "search_articles",
    "get_article_engagement",
    "get_knowledge_base_statistics",
    # Classification operations
    "classify_value",
    "classify_abc",
    "aggregate_movements",
    "get_classification_summary",
    "ForecastStrategy",
    "MovingAverageForecast",
    "build_demand_history",
    "forecast_demand",
    # Inventory operations
    "import_movements_from_file",
    "run_abc_analysis",
    "get_latest_classification",
    "generate_demand_forecast",
    "export_classification",
    # Responses
    "success_response",
    "error_response",
    "run_operation",
]
