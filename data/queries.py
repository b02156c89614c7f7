"""
SQL queries as constants for better maintainability.

All queries are defined here to avoid SQL string literals scattered
throughout the codebase. This makes it easier to:
- Review SQL security
- Audit tenant scoping (every query filters on tenant_id)
- Update schema changes
"""

# ==================== Article Queries ====================

ARTICLE_COLUMNS = """
    id, tenant_id, title, content, summary, slug, category, tags,
    status, approval_status, approval_revision, version, author_id, reviewer_id,
    visibility, content_type, featured, template_id,
    view_count, last_viewed_at, rating_average, rating_count,
    helpful_count, not_helpful_count,
    published_at, expires_at, is_deleted, deleted_at, created_at, updated_at
"""

INSERT_ARTICLE = """
    INSERT INTO kb_articles (
        id, tenant_id, title, content, summary, slug, category, tags,
        searchable_content, status, approval_status, version, author_id,
        visibility, content_type, featured, template_id, expires_at,
        created_at, updated_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

SELECT_ARTICLE_BY_ID = f"""
    SELECT {ARTICLE_COLUMNS}
    FROM kb_articles
    WHERE id = ? AND tenant_id = ? AND is_deleted = 0
"""

SELECT_ARTICLE_BY_ID_INCLUDING_DELETED = f"""
    SELECT {ARTICLE_COLUMNS}
    FROM kb_articles
    WHERE id = ? AND tenant_id = ?
"""

# Dynamic SET clause built from a whitelist in SQLiteDatabase.update_article
UPDATE_ARTICLE_TEMPLATE = """
    UPDATE kb_articles
    SET {assignments}, updated_at = ?
    WHERE id = ? AND tenant_id = ? AND is_deleted = 0
"""

UPDATE_ARTICLE_AT_VERSION_TEMPLATE = """
    UPDATE kb_articles
    SET {assignments}, updated_at = ?
    WHERE id = ? AND tenant_id = ? AND is_deleted = 0 AND version = ?
"""

SOFT_DELETE_ARTICLE = """
    UPDATE kb_articles
    SET is_deleted = 1, deleted_at = ?, updated_at = ?
    WHERE id = ? AND tenant_id = ? AND is_deleted = 0
"""

INCREMENT_VIEW_COUNT = """
    UPDATE kb_articles
    SET view_count = view_count + 1, last_viewed_at = ?
    WHERE id = ? AND tenant_id = ? AND is_deleted = 0
"""

# Compare-and-swap on (approval_status, approval_revision, version)
UPDATE_APPROVAL_STATE = """
    UPDATE kb_articles
    SET approval_status = ?, status = ?, reviewer_id = ?, published_at = ?,
        approval_revision = approval_revision + 1, updated_at = ?
    WHERE id = ? AND tenant_id = ? AND is_deleted = 0
      AND approval_status = ? AND approval_revision = ? AND version = ?
"""

SEARCH_ARTICLES_TEMPLATE = f"""
    SELECT {ARTICLE_COLUMNS}
    FROM kb_articles
    WHERE {{where}}
    ORDER BY {{order_by}}
    LIMIT ? OFFSET ?
"""

COUNT_ARTICLES_TEMPLATE = """
    SELECT COUNT(*)
    FROM kb_articles
    WHERE {where}
"""

COUNT_ARTICLES_BY_STATUS = """
    SELECT status, COUNT(*) AS count, COALESCE(SUM(view_count), 0) AS views
    FROM kb_articles
    WHERE tenant_id = ? AND is_deleted = 0
    GROUP BY status
"""

COUNT_ARTICLES_BY_CATEGORY = """
    SELECT category, COUNT(*) AS count
    FROM kb_articles
    WHERE tenant_id = ? AND is_deleted = 0
    GROUP BY category
    ORDER BY category
"""

COUNT_ARTICLES_BY_TEMPLATE = """
    SELECT template_id, COUNT(*) AS count,
           COALESCE(AVG(rating_average), 0) AS avg_rating,
           COALESCE(SUM(view_count), 0) AS views
    FROM kb_articles
    WHERE tenant_id = ? AND is_deleted = 0 AND template_id IS NOT NULL
    GROUP BY template_id
"""

# ==================== Approval History Queries ====================

INSERT_APPROVAL_HISTORY = """
    INSERT INTO kb_approval_history (
        id, tenant_id, article_id, user_id, action, comment,
        timestamp, previous_status, new_status, seq
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?,
            (SELECT COALESCE(MAX(seq), 0) + 1 FROM kb_approval_history WHERE article_id = ?))
"""

SELECT_APPROVAL_HISTORY = """
    SELECT id, article_id, user_id, action, comment, timestamp,
           previous_status, new_status
    FROM kb_approval_history
    WHERE article_id = ? AND tenant_id = ?
    ORDER BY seq
"""

# ==================== Version Queries ====================

INSERT_ARTICLE_VERSION = """
    INSERT INTO kb_article_versions (
        tenant_id, article_id, version, title, content, category,
        author_id, changes_summary, created_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

SELECT_ARTICLE_VERSIONS = """
    SELECT id, article_id, version, title, content, category,
           author_id, changes_summary, created_at
    FROM kb_article_versions
    WHERE article_id = ? AND tenant_id = ?
    ORDER BY version DESC
"""

# ==================== Attachment Queries ====================

INSERT_ATTACHMENT = """
    INSERT INTO kb_attachments (
        id, tenant_id, article_id, filename, storage_key, size_bytes, uploaded_by
    )
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""

SELECT_ATTACHMENTS = """
    SELECT id, article_id, filename, storage_key, size_bytes, uploaded_by, created_at
    FROM kb_attachments
    WHERE article_id = ? AND tenant_id = ?
    ORDER BY created_at, rowid
"""

# ==================== Favorite / Ticket Link Queries ====================

SELECT_FAVORITE = """
    SELECT 1 FROM kb_favorites
    WHERE tenant_id = ? AND article_id = ? AND user_id = ?
"""

INSERT_FAVORITE = """
    INSERT INTO kb_favorites (tenant_id, article_id, user_id)
    VALUES (?, ?, ?)
"""

DELETE_FAVORITE = """
    DELETE FROM kb_favorites
    WHERE tenant_id = ? AND article_id = ? AND user_id = ?
"""

SELECT_FAVORITE_ARTICLES = f"""
    SELECT {ARTICLE_COLUMNS}
    FROM kb_articles
    WHERE tenant_id = ? AND is_deleted = 0
      AND id IN (SELECT article_id FROM kb_favorites WHERE tenant_id = ? AND user_id = ?)
    ORDER BY updated_at DESC
"""

INSERT_TICKET_LINK = """
    INSERT INTO kb_ticket_links (tenant_id, article_id, ticket_id, linked_by)
    VALUES (?, ?, ?, ?)
    ON CONFLICT (tenant_id, article_id, ticket_id) DO NOTHING
"""

SELECT_ARTICLES_BY_TICKET = f"""
    SELECT {ARTICLE_COLUMNS}
    FROM kb_articles
    WHERE tenant_id = ? AND is_deleted = 0
      AND id IN (SELECT article_id FROM kb_ticket_links WHERE tenant_id = ? AND ticket_id = ?)
    ORDER BY title
"""

# ==================== Category Queries ====================

INSERT_CATEGORY = """
    INSERT INTO kb_categories (
        id, tenant_id, name, slug, description, parent_category_id, sort_order
    )
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""

SELECT_CATEGORY_BY_ID = """
    SELECT id, tenant_id, name, slug, description, parent_category_id,
           sort_order, is_active, created_at, updated_at
    FROM kb_categories
    WHERE id = ? AND tenant_id = ?
"""

SELECT_CATEGORIES = """
    SELECT id, tenant_id, name, slug, description, parent_category_id,
           sort_order, is_active, created_at, updated_at
    FROM kb_categories
    WHERE tenant_id = ? AND (is_active = 1 OR ? = 1)
    ORDER BY sort_order, name
"""

UPDATE_CATEGORY_TEMPLATE = """
    UPDATE kb_categories
    SET {assignments}, updated_at = CURRENT_TIMESTAMP
    WHERE id = ? AND tenant_id = ?
"""

DEACTIVATE_CATEGORY = """
    UPDATE kb_categories
    SET is_active = 0, updated_at = CURRENT_TIMESTAMP
    WHERE id = ? AND tenant_id = ? AND is_active = 1
"""

# ==================== Comment Queries ====================

INSERT_COMMENT = """
    INSERT INTO kb_comments (
        id, tenant_id, article_id, user_id, content, parent_comment_id,
        thread_depth, created_at, updated_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

COMMENT_COLUMNS = """
    id, tenant_id, article_id, user_id, content, parent_comment_id,
    thread_depth, is_highlighted, is_resolved, is_hidden, created_at, updated_at
"""

SELECT_COMMENT_BY_ID = f"""
    SELECT {COMMENT_COLUMNS}
    FROM kb_comments
    WHERE id = ? AND tenant_id = ?
"""

SELECT_COMMENTS_FOR_ARTICLE = f"""
    SELECT {COMMENT_COLUMNS}
    FROM kb_comments
    WHERE article_id = ? AND tenant_id = ? AND (is_hidden = 0 OR ? = 1)
    ORDER BY created_at, rowid
"""

COUNT_COMMENTS_FOR_ARTICLE = """
    SELECT COUNT(*)
    FROM kb_comments
    WHERE article_id = ? AND tenant_id = ? AND is_hidden = 0
"""

UPDATE_COMMENT_FLAGS_TEMPLATE = """
    UPDATE kb_comments
    SET {assignments}, updated_at = ?
    WHERE id = ? AND tenant_id = ?
"""

DELETE_COMMENT = """
    DELETE FROM kb_comments
    WHERE id = ? AND tenant_id = ?
"""

UPSERT_REACTION = """
    INSERT INTO kb_comment_reactions (tenant_id, comment_id, user_id, type, created_at)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT (comment_id, user_id) DO UPDATE SET
        type = excluded.type,
        created_at = excluded.created_at
"""

SELECT_REACTIONS_FOR_ARTICLE = """
    SELECT r.comment_id, r.user_id, r.type, r.created_at
    FROM kb_comment_reactions r
    JOIN kb_comments c ON c.id = r.comment_id
    WHERE c.article_id = ? AND r.tenant_id = ?
    ORDER BY r.created_at, r.rowid
"""

SELECT_REACTIONS_FOR_COMMENT = """
    SELECT comment_id, user_id, type, created_at
    FROM kb_comment_reactions
    WHERE comment_id = ? AND tenant_id = ?
    ORDER BY created_at, rowid
"""

# ==================== Rating Queries ====================

INSERT_RATING = """
    INSERT INTO kb_ratings (
        id, tenant_id, article_id, user_id, score, categories, review, is_helpful
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

RATING_COLUMNS = """
    id, tenant_id, article_id, user_id, score, categories, review,
    is_helpful, created_at
"""

SELECT_RATING_BY_USER = f"""
    SELECT {RATING_COLUMNS}
    FROM kb_ratings
    WHERE tenant_id = ? AND article_id = ? AND user_id = ?
"""

SELECT_RATINGS_FOR_ARTICLE = f"""
    SELECT {RATING_COLUMNS}
    FROM kb_ratings
    WHERE article_id = ? AND tenant_id = ?
    ORDER BY created_at DESC, rowid DESC
"""

# Recomputed from the ratings table inside the insert transaction
REFRESH_ARTICLE_RATING_AGGREGATE = """
    UPDATE kb_articles
    SET rating_count = (
            SELECT COUNT(*) FROM kb_ratings WHERE article_id = ?1 AND tenant_id = ?2
        ),
        rating_average = COALESCE((
            SELECT ROUND(AVG(score), 2) FROM kb_ratings WHERE article_id = ?1 AND tenant_id = ?2
        ), 0),
        helpful_count = (
            SELECT COUNT(*) FROM kb_ratings
            WHERE article_id = ?1 AND tenant_id = ?2 AND is_helpful = 1
        ),
        not_helpful_count = (
            SELECT COUNT(*) FROM kb_ratings
            WHERE article_id = ?1 AND tenant_id = ?2 AND is_helpful = 0
        )
    WHERE id = ?1 AND tenant_id = ?2
"""

# ==================== Template Queries ====================

INSERT_TEMPLATE = """
    INSERT INTO kb_templates (
        id, tenant_id, name, description, category, template_type, sections,
        default_tags, required_fields, difficulty, is_active, created_by
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

TEMPLATE_COLUMNS = """
    id, tenant_id, name, description, category, template_type, sections,
    default_tags, required_fields, difficulty, is_active, usage_count,
    created_by, created_at, updated_at
"""

SELECT_TEMPLATE_BY_ID = f"""
    SELECT {TEMPLATE_COLUMNS}
    FROM kb_templates
    WHERE id = ? AND tenant_id = ?
"""

SELECT_TEMPLATES_TEMPLATE = f"""
    SELECT {TEMPLATE_COLUMNS}
    FROM kb_templates
    WHERE {{where}}
    ORDER BY usage_count DESC, name
"""

INCREMENT_TEMPLATE_USAGE = """
    UPDATE kb_templates
    SET usage_count = usage_count + 1, updated_at = CURRENT_TIMESTAMP
    WHERE id = ? AND tenant_id = ?
"""

UPDATE_TEMPLATE_TEMPLATE = """
    UPDATE kb_templates
    SET {assignments}, updated_at = CURRENT_TIMESTAMP
    WHERE id = ? AND tenant_id = ?
"""

# ==================== Inventory Queries ====================

INSERT_MOVEMENT = """
    INSERT INTO stock_movements (
        tenant_id, part_id, location_id, quantity, unit_cost, total_cost,
        movement_type, executed_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

SELECT_MOVEMENTS_TEMPLATE = """
    SELECT id, part_id, location_id, quantity, unit_cost, total_cost,
           movement_type, executed_at
    FROM stock_movements
    WHERE {where}
    ORDER BY executed_at, id
"""

INSERT_CLASSIFICATION = """
    INSERT INTO abc_classifications (
        tenant_id, analysis_run_id, part_id, location_id, total_value_consumed,
        total_quantity, movement_frequency, percentage_of_total_value,
        cumulative_percentage, abc_classification, rank, period_start, period_end
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

SELECT_CLASSIFICATIONS_FOR_RUN = """
    SELECT analysis_run_id, part_id, location_id, total_value_consumed,
           total_quantity, movement_frequency, percentage_of_total_value,
           cumulative_percentage, abc_classification, rank, period_start, period_end
    FROM abc_classifications
    WHERE tenant_id = ? AND analysis_run_id = ?
    ORDER BY rank
"""

SELECT_LATEST_ANALYSIS_RUN = """
    SELECT analysis_run_id
    FROM abc_classifications
    WHERE tenant_id = ?
    ORDER BY id DESC
    LIMIT 1
"""

UPSERT_FORECAST = """
    INSERT INTO demand_forecasts (
        tenant_id, part_id, forecast_date, predicted_demand, lower_bound,
        upper_bound, historical_periods_used, method, reorder_alert
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (tenant_id, part_id, forecast_date, method) DO UPDATE SET
        predicted_demand = excluded.predicted_demand,
        lower_bound = excluded.lower_bound,
        upper_bound = excluded.upper_bound,
        historical_periods_used = excluded.historical_periods_used,
        reorder_alert = excluded.reorder_alert,
        created_at = CURRENT_TIMESTAMP
"""

SELECT_FORECASTS_FOR_PART = """
    SELECT part_id, forecast_date, predicted_demand, lower_bound, upper_bound,
           historical_periods_used, method, reorder_alert
    FROM demand_forecasts
    WHERE tenant_id = ? AND part_id = ?
    ORDER BY forecast_date
"""
