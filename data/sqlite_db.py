"""
SQLite implementation of DatabaseInterface.

This module provides a complete SQLite implementation of the database interface,
including automatic migrations and connection management.
"""

import json
import sqlite3
import logging
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Dict, Any, Tuple, Union
from datetime import datetime

from .interface import DatabaseInterface
from . import queries as Q
from domain.exceptions import ConcurrentModificationError, DatabaseError, DuplicateRating, ValidationError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

ARTICLE_UPDATABLE_FIELDS = {
    "title", "content", "summary", "slug", "category", "tags", "status",
    "version", "visibility", "content_type", "featured", "template_id",
    "expires_at",
}

# Fields feeding the searchable_content column
SEARCHABLE_FIELDS = ("title", "summary", "content", "tags")

ARTICLE_ORDERINGS = {
    "updated_at": "updated_at DESC, id",
    "created_at": "created_at DESC, id",
    "published_at": "published_at DESC, id",
    "view_count": "view_count DESC, id",
    "rating": "rating_average DESC, rating_count DESC, id",
    "title": "title COLLATE NOCASE, id",
}

CATEGORY_UPDATABLE_FIELDS = {
    "name", "slug", "description", "parent_category_id", "sort_order", "is_active",
}

COMMENT_FLAG_FIELDS = {"is_highlighted", "is_resolved", "is_hidden"}

TEMPLATE_UPDATABLE_FIELDS = {
    "name", "description", "category", "template_type", "sections",
    "default_tags", "required_fields", "difficulty", "is_active",
}

JSON_FIELDS = {"tags", "sections", "default_tags", "required_fields", "categories"}


def _now() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def _new_id() -> str:
    return str(uuid.uuid4())


def _encode(field_name: str, value: Any) -> Any:
    """Convert a Python value to its SQLite column representation."""
    if field_name in JSON_FIELDS and not isinstance(value, str):
        return json.dumps(value if value is not None else [])
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat(timespec="microseconds")
    return value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _searchable_text(row: Dict[str, Any]) -> str:
    tags = row.get("tags") or []
    if isinstance(tags, str):
        tags = json.loads(tags)
    parts = [row.get("title") or "", row.get("summary") or "", row.get("content") or ""]
    parts.extend(tags)
    return " ".join(parts).lower()


class SQLiteDatabase(DatabaseInterface):
    """
    SQLite implementation of DatabaseInterface.

    Features:
    - Automatic migrations on initialization
    - One shared connection guarded by a re-entrant lock
    - ACID transactions (commit on success, rollback on error)
    - Foreign key enforcement
    """

    def __init__(self, db_path: Union[Path, str]):
        """
        Initialize SQLite database.

        Args:
            db_path: Path to SQLite database file (created if not exists),
                     or ":memory:" for a private in-memory database
        """
        if str(db_path) == MEMORY_PATH:
            self.db_path = MEMORY_PATH
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()

        # Initialize connection
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")

        # Run migrations
        self._run_migrations()
        logger.info(f"SQLite database initialized at {self.db_path}")

    def _row_to_dict(self, row: sqlite3.Row) -> Optional[Dict[str, Any]]:
        """Convert sqlite3.Row to dictionary."""
        return dict(row) if row else None

    def _rows_to_dicts(self, rows: List[sqlite3.Row]) -> List[Dict[str, Any]]:
        """Convert list of sqlite3.Row to list of dicts."""
        return [dict(row) for row in rows]

    @contextmanager
    def _transaction(self):
        """Run statements atomically on the shared connection."""
        with self._lock:
            cursor = self.conn.cursor()
            try:
                yield cursor
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise

    def _fetchone(self, sql: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        with self._lock:
            cursor = self.conn.execute(sql, params)
            return self._row_to_dict(cursor.fetchone())

    def _fetchall(self, sql: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        with self._lock:
            cursor = self.conn.execute(sql, params)
            return self._rows_to_dicts(cursor.fetchall())

    def _run_migrations(self):
        """
        Run all SQL migration files in order, tracking which have been applied.

        Uses schema_migrations table to track applied migrations and prevent
        re-running them.
        """
        migrations_dir = Path(__file__).parent / "migrations"
        migration_files = sorted(migrations_dir.glob("*.sql"))

        # Step 1: Ensure migration tracking table exists
        tracking_migration = migrations_dir / "000_migration_tracking.sql"
        if tracking_migration.exists():
            self.conn.executescript(tracking_migration.read_text())
            self.conn.commit()

        # Step 2: Get list of already-applied migrations
        cursor = self.conn.cursor()
        cursor.execute("SELECT migration_name FROM schema_migrations")
        applied_migrations = {row[0] for row in cursor.fetchall()}

        # Step 3: Run each migration that hasn't been applied yet
        migrations_run = 0
        for migration_file in migration_files:
            migration_name = migration_file.name

            if migration_name in applied_migrations:
                logger.debug(f"Skipping already-applied migration: {migration_name}")
                continue

            logger.debug(f"Running migration: {migration_name}")
            try:
                self.conn.executescript(migration_file.read_text())
                cursor.execute(
                    "INSERT INTO schema_migrations (migration_name) VALUES (?)",
                    (migration_name,)
                )
                self.conn.commit()
                migrations_run += 1
                logger.info(f"Applied migration: {migration_name}")

            except sqlite3.OperationalError as e:
                if "duplicate column" in str(e).lower():
                    logger.warning(f"Migration {migration_name} already applied (columns exist) - marking as applied")
                    cursor.execute(
                        "INSERT OR IGNORE INTO schema_migrations (migration_name) VALUES (?)",
                        (migration_name,)
                    )
                    self.conn.commit()
                else:
                    raise DatabaseError(
                        f"Migration {migration_name} failed: {e}",
                        details={"migration": migration_name},
                    ) from e

        logger.info(f"Migration summary: {migrations_run} new, {len(applied_migrations)} already applied")

    def _build_assignments(
        self,
        data: Dict[str, Any],
        allowed_fields: set,
    ) -> Tuple[str, List[Any]]:
        """Build a SET clause from whitelisted fields."""
        fields = [name for name in data if name in allowed_fields]
        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [_encode(name, data[name]) for name in fields]
        return assignments, values

    # ==================== Article Operations ====================

    def create_article(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Insert a new article and its version 1 snapshot."""
        article_id = data.get("id") or _new_id()
        now = _now()
        tags = data.get("tags") or []

        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.INSERT_ARTICLE,
                    (
                        article_id,
                        tenant_id,
                        data["title"],
                        data["content"],
                        data.get("summary") or "",
                        data.get("slug") or "",
                        data["category"],
                        _encode("tags", tags),
                        _searchable_text(data),
                        data.get("status") or "draft",
                        data.get("approval_status") or "not_submitted",
                        data.get("version") or 1,
                        data["author_id"],
                        data.get("visibility") or "internal",
                        data.get("content_type") or "markdown",
                        int(bool(data.get("featured"))),
                        data.get("template_id"),
                        _encode("expires_at", data.get("expires_at")),
                        now,
                        now,
                    ),
                )
                cursor.execute(
                    Q.INSERT_ARTICLE_VERSION,
                    (
                        tenant_id,
                        article_id,
                        data.get("version") or 1,
                        data["title"],
                        data["content"],
                        data["category"],
                        data["author_id"],
                        "Initial version",
                        now,
                    ),
                )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create article: {e}",
                details={"tenant_id": tenant_id, "title": data.get("title")},
            ) from e

        return self.find_article_by_id(article_id, tenant_id)

    def find_article_by_id(
        self,
        article_id: str,
        tenant_id: str,
        include_deleted: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """Get article by ID."""
        query = Q.SELECT_ARTICLE_BY_ID_INCLUDING_DELETED if include_deleted else Q.SELECT_ARTICLE_BY_ID
        return self._fetchone(query, (article_id, tenant_id))

    def update_article(
        self,
        article_id: str,
        data: Dict[str, Any],
        tenant_id: str,
        version_snapshot: Optional[Dict[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Update article with multiple fields at once.

        Dynamically builds UPDATE query based on provided fields.
        Only updates fields that are whitelisted in ARTICLE_UPDATABLE_FIELDS.
        With expected_version the row is only written while its version
        still matches.

        Raises:
            ConcurrentModificationError: Version moved on since it was read
        """
        assignments, values = self._build_assignments(data, ARTICLE_UPDATABLE_FIELDS)
        if not assignments:
            logger.warning(f"No updatable fields for article {article_id}: {list(data)}")
            return self.find_article_by_id(article_id, tenant_id)

        try:
            with self._transaction() as cursor:
                current = cursor.execute(Q.SELECT_ARTICLE_BY_ID, (article_id, tenant_id)).fetchone()
                if current is None:
                    return None

                if any(name in data for name in SEARCHABLE_FIELDS):
                    merged = {**dict(current), **data}
                    assignments += ", searchable_content = ?"
                    values.append(_searchable_text(merged))

                now = _now()
                if expected_version is None:
                    cursor.execute(
                        Q.UPDATE_ARTICLE_TEMPLATE.format(assignments=assignments),
                        (*values, now, article_id, tenant_id),
                    )
                else:
                    cursor.execute(
                        Q.UPDATE_ARTICLE_AT_VERSION_TEMPLATE.format(assignments=assignments),
                        (*values, now, article_id, tenant_id, expected_version),
                    )
                    if cursor.rowcount == 0:
                        raise ConcurrentModificationError(
                            "Article was modified concurrently",
                            details={
                                "article_id": article_id,
                                "expected_version": expected_version,
                                "current_version": current["version"],
                            },
                        )

                if version_snapshot:
                    cursor.execute(
                        Q.INSERT_ARTICLE_VERSION,
                        (
                            tenant_id,
                            article_id,
                            version_snapshot["version"],
                            version_snapshot["title"],
                            version_snapshot["content"],
                            version_snapshot["category"],
                            version_snapshot["author_id"],
                            version_snapshot.get("changes_summary"),
                            now,
                        ),
                    )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to update article: {e}",
                details={"article_id": article_id},
            ) from e

        return self.find_article_by_id(article_id, tenant_id)

    def delete_article(self, article_id: str, tenant_id: str) -> bool:
        """Soft-delete an article."""
        now = _now()
        with self._transaction() as cursor:
            cursor.execute(Q.SOFT_DELETE_ARTICLE, (now, now, article_id, tenant_id))
            return cursor.rowcount > 0

    def search_articles(self, query: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Filter articles; see ArticleRepository.search_articles."""
        where = ["tenant_id = ?", "is_deleted = 0"]
        params: List[Any] = [tenant_id]

        terms = [t.lower() for t in (query.get("terms") or []) if t]
        if terms:
            where.append(
                "(" + " OR ".join("searchable_content LIKE ? ESCAPE '\\'" for _ in terms) + ")"
            )
            params.extend(f"%{_escape_like(term)}%" for term in terms)

        for column in ("category", "author_id", "visibility", "template_id"):
            if query.get(column):
                where.append(f"{column} = ?")
                params.append(query[column])

        status = query.get("status")
        if status:
            statuses = [status] if isinstance(status, str) else list(status)
            where.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)

        if query.get("featured") is not None:
            where.append("featured = ?")
            params.append(int(bool(query["featured"])))

        for tag in query.get("tags") or []:
            where.append("tags LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(json.dumps(tag))}%")

        order_by = ARTICLE_ORDERINGS.get(query.get("order_by") or "updated_at")
        if order_by is None:
            raise ValidationError(
                f"Unknown article ordering: {query.get('order_by')}",
                details={"allowed": sorted(ARTICLE_ORDERINGS)},
            )

        limit = query.get("limit")
        offset = query.get("offset") or 0
        where_sql = " AND ".join(where)

        with self._lock:
            total = self.conn.execute(
                Q.COUNT_ARTICLES_TEMPLATE.format(where=where_sql), params
            ).fetchone()[0]
            rows = self.conn.execute(
                Q.SEARCH_ARTICLES_TEMPLATE.format(where=where_sql, order_by=order_by),
                (*params, limit if limit is not None else -1, offset),
            ).fetchall()

        return {"items": self._rows_to_dicts(rows), "total": total}

    def increment_view_count(
        self,
        article_id: str,
        tenant_id: str,
        viewed_at: datetime,
    ) -> bool:
        """Atomically add one view."""
        with self._transaction() as cursor:
            cursor.execute(
                Q.INCREMENT_VIEW_COUNT,
                (_encode("last_viewed_at", viewed_at), article_id, tenant_id),
            )
            return cursor.rowcount > 0

    def save_approval_transition(
        self,
        article_id: str,
        tenant_id: str,
        expected_status: str,
        expected_revision: int,
        expected_version: int,
        updates: Dict[str, Any],
        history_entry: Dict[str, Any],
    ) -> bool:
        """Persist an approval transition with compare-and-swap."""
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.UPDATE_APPROVAL_STATE,
                    (
                        updates["approval_status"],
                        updates["status"],
                        updates.get("reviewer_id"),
                        _encode("published_at", updates.get("published_at")),
                        _now(),
                        article_id,
                        tenant_id,
                        expected_status,
                        expected_revision,
                        expected_version,
                    ),
                )
                if cursor.rowcount == 0:
                    return False

                cursor.execute(
                    Q.INSERT_APPROVAL_HISTORY,
                    (
                        history_entry["id"],
                        tenant_id,
                        article_id,
                        history_entry["user_id"],
                        history_entry["action"],
                        history_entry.get("comment"),
                        _encode("timestamp", history_entry["timestamp"]),
                        history_entry["previous_status"],
                        history_entry["new_status"],
                        article_id,
                    ),
                )
                return True
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to save approval transition: {e}",
                details={"article_id": article_id, "action": history_entry.get("action")},
            ) from e

    def get_approval_history(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_APPROVAL_HISTORY, (article_id, tenant_id))

    def get_article_versions(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_ARTICLE_VERSIONS, (article_id, tenant_id))

    def save_attachment(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Record a stored attachment."""
        attachment_id = _new_id()
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.INSERT_ATTACHMENT,
                    (
                        attachment_id,
                        tenant_id,
                        data["article_id"],
                        data["filename"],
                        data["storage_key"],
                        data.get("size_bytes") or 0,
                        data["uploaded_by"],
                    ),
                )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to save attachment: {e}") from e

        return {"id": attachment_id, **data}

    def get_attachments(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_ATTACHMENTS, (article_id, tenant_id))

    def toggle_favorite(self, article_id: str, user_id: str, tenant_id: str) -> bool:
        """Add or remove a favorite."""
        params = (tenant_id, article_id, user_id)
        try:
            with self._transaction() as cursor:
                if cursor.execute(Q.SELECT_FAVORITE, params).fetchone():
                    cursor.execute(Q.DELETE_FAVORITE, params)
                    return False
                cursor.execute(Q.INSERT_FAVORITE, params)
                return True
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to toggle favorite: {e}") from e

    def get_favorite_articles(self, user_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_FAVORITE_ARTICLES, (tenant_id, tenant_id, user_id))

    def link_article_to_ticket(
        self,
        article_id: str,
        ticket_id: str,
        linked_by: str,
        tenant_id: str,
    ) -> bool:
        """Link article to ticket (idempotent)."""
        try:
            with self._transaction() as cursor:
                cursor.execute(Q.INSERT_TICKET_LINK, (tenant_id, article_id, ticket_id, linked_by))
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to link ticket: {e}") from e

    def get_articles_by_ticket(self, ticket_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_ARTICLES_BY_TICKET, (tenant_id, tenant_id, ticket_id))

    def get_article_statistics(self, tenant_id: str) -> Dict[str, Any]:
        """Get article counts by status and category."""
        by_status = self._fetchall(Q.COUNT_ARTICLES_BY_STATUS, (tenant_id,))
        by_category = self._fetchall(Q.COUNT_ARTICLES_BY_CATEGORY, (tenant_id,))
        return {
            "by_status": {row["status"]: row["count"] for row in by_status},
            "by_category": {row["category"]: row["count"] for row in by_category},
            "total_articles": sum(row["count"] for row in by_status),
            "total_views": sum(row["views"] for row in by_status),
        }

    # ==================== Category Operations ====================

    def create_category(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Insert a category."""
        category_id = data.get("id") or _new_id()
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.INSERT_CATEGORY,
                    (
                        category_id,
                        tenant_id,
                        data["name"],
                        data["slug"],
                        data.get("description"),
                        data.get("parent_category_id"),
                        data.get("sort_order") or 0,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DatabaseError(
                f"Category with slug '{data.get('slug')}' already exists",
                details={"slug": data.get("slug"), "error": str(e)},
            ) from e
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to create category: {e}") from e

        return self.get_category(category_id, tenant_id)

    def get_category(self, category_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self._fetchone(Q.SELECT_CATEGORY_BY_ID, (category_id, tenant_id))

    def list_categories(self, tenant_id: str, include_inactive: bool = False) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_CATEGORIES, (tenant_id, int(include_inactive)))

    def update_category(
        self,
        category_id: str,
        data: Dict[str, Any],
        tenant_id: str,
    ) -> Optional[Dict[str, Any]]:
        """Update category fields."""
        assignments, values = self._build_assignments(data, CATEGORY_UPDATABLE_FIELDS)
        if not assignments:
            return self.get_category(category_id, tenant_id)

        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.UPDATE_CATEGORY_TEMPLATE.format(assignments=assignments),
                    (*values, category_id, tenant_id),
                )
                if cursor.rowcount == 0:
                    return None
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to update category: {e}") from e

        return self.get_category(category_id, tenant_id)

    def deactivate_category(self, category_id: str, tenant_id: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute(Q.DEACTIVATE_CATEGORY, (category_id, tenant_id))
            return cursor.rowcount > 0

    # ==================== Comment Operations ====================

    def create_comment(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Insert a comment."""
        comment_id = data.get("id") or _new_id()
        now = _now()
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.INSERT_COMMENT,
                    (
                        comment_id,
                        tenant_id,
                        data["article_id"],
                        data["user_id"],
                        data["content"],
                        data.get("parent_comment_id"),
                        data.get("thread_depth") or 0,
                        now,
                        now,
                    ),
                )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create comment: {e}",
                details={"article_id": data.get("article_id")},
            ) from e

        return self.get_comment(comment_id, tenant_id)

    def get_comment(self, comment_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self._fetchone(Q.SELECT_COMMENT_BY_ID, (comment_id, tenant_id))

    def list_comments(
        self,
        article_id: str,
        tenant_id: str,
        include_hidden: bool = False,
    ) -> List[Dict[str, Any]]:
        return self._fetchall(
            Q.SELECT_COMMENTS_FOR_ARTICLE, (article_id, tenant_id, int(include_hidden))
        )

    def count_comments(self, article_id: str, tenant_id: str) -> int:
        with self._lock:
            return self.conn.execute(
                Q.COUNT_COMMENTS_FOR_ARTICLE, (article_id, tenant_id)
            ).fetchone()[0]

    def update_comment_flags(
        self,
        comment_id: str,
        flags: Dict[str, bool],
        tenant_id: str,
    ) -> bool:
        """Set moderation flags."""
        assignments, values = self._build_assignments(flags, COMMENT_FLAG_FIELDS)
        if not assignments:
            return False

        with self._transaction() as cursor:
            cursor.execute(
                Q.UPDATE_COMMENT_FLAGS_TEMPLATE.format(assignments=assignments),
                (*values, _now(), comment_id, tenant_id),
            )
            return cursor.rowcount > 0

    def delete_comment(self, comment_id: str, tenant_id: str) -> bool:
        """Delete a comment (replies and reactions cascade)."""
        with self._transaction() as cursor:
            cursor.execute(Q.DELETE_COMMENT, (comment_id, tenant_id))
            return cursor.rowcount > 0

    def upsert_reaction(
        self,
        comment_id: str,
        user_id: str,
        reaction_type: str,
        tenant_id: str,
        created_at: datetime,
    ) -> None:
        """Store a reaction, replacing the user's previous one."""
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.UPSERT_REACTION,
                    (tenant_id, comment_id, user_id, reaction_type, _encode("created_at", created_at)),
                )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to save reaction: {e}",
                details={"comment_id": comment_id, "type": reaction_type},
            ) from e

    def get_reactions(self, comment_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_REACTIONS_FOR_COMMENT, (comment_id, tenant_id))

    def get_reactions_for_article(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_REACTIONS_FOR_ARTICLE, (article_id, tenant_id))

    # ==================== Rating Operations ====================

    def create_rating(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Insert a rating and refresh the article's aggregate in one transaction."""
        is_helpful = data.get("is_helpful")
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.INSERT_RATING,
                    (
                        data.get("id") or _new_id(),
                        tenant_id,
                        data["article_id"],
                        data["user_id"],
                        data["score"],
                        _encode("categories", data.get("categories") or {}),
                        data.get("review"),
                        None if is_helpful is None else int(bool(is_helpful)),
                    ),
                )
                cursor.execute(
                    Q.REFRESH_ARTICLE_RATING_AGGREGATE, (data["article_id"], tenant_id)
                )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e).upper():
                raise DuplicateRating(
                    "User has already rated this article",
                    details={"article_id": data["article_id"], "user_id": data["user_id"]},
                ) from e
            raise DatabaseError(
                f"Failed to create rating: {e}",
                details={"article_id": data["article_id"]},
            ) from e
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to create rating: {e}") from e

        return self.find_rating(data["article_id"], data["user_id"], tenant_id)

    def find_rating(self, article_id: str, user_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self._fetchone(Q.SELECT_RATING_BY_USER, (tenant_id, article_id, user_id))

    def list_ratings(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_RATINGS_FOR_ARTICLE, (article_id, tenant_id))

    # ==================== Template Operations ====================

    def create_template(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Insert a template."""
        template_id = data.get("id") or _new_id()
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.INSERT_TEMPLATE,
                    (
                        template_id,
                        tenant_id,
                        data["name"],
                        data.get("description") or "",
                        data["category"],
                        data["template_type"],
                        _encode("sections", data.get("sections") or []),
                        _encode("default_tags", data.get("default_tags") or []),
                        _encode("required_fields", data.get("required_fields") or []),
                        data.get("difficulty"),
                        int(data.get("is_active", True)),
                        data.get("created_by"),
                    ),
                )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create template: {e}",
                details={"name": data.get("name")},
            ) from e

        return self.get_template(template_id, tenant_id)

    def get_template(self, template_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self._fetchone(Q.SELECT_TEMPLATE_BY_ID, (template_id, tenant_id))

    def list_templates(
        self,
        tenant_id: str,
        category: Optional[str] = None,
        template_type: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Dict[str, Any]]:
        where = ["tenant_id = ?"]
        params: List[Any] = [tenant_id]
        if category:
            where.append("category = ?")
            params.append(category)
        if template_type:
            where.append("template_type = ?")
            params.append(template_type)
        if active_only:
            where.append("is_active = 1")

        return self._fetchall(
            Q.SELECT_TEMPLATES_TEMPLATE.format(where=" AND ".join(where)), tuple(params)
        )

    def update_template(
        self,
        template_id: str,
        data: Dict[str, Any],
        tenant_id: str,
    ) -> Optional[Dict[str, Any]]:
        """Update template fields."""
        assignments, values = self._build_assignments(data, TEMPLATE_UPDATABLE_FIELDS)
        if not assignments:
            return self.get_template(template_id, tenant_id)

        try:
            with self._transaction() as cursor:
                cursor.execute(
                    Q.UPDATE_TEMPLATE_TEMPLATE.format(assignments=assignments),
                    (*values, template_id, tenant_id),
                )
                if cursor.rowcount == 0:
                    return None
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to update template: {e}") from e

        return self.get_template(template_id, tenant_id)

    def increment_template_usage(self, template_id: str, tenant_id: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute(Q.INCREMENT_TEMPLATE_USAGE, (template_id, tenant_id))
            return cursor.rowcount > 0

    def get_template_article_stats(self, tenant_id: str) -> Dict[str, Dict[str, Any]]:
        rows = self._fetchall(Q.COUNT_ARTICLES_BY_TEMPLATE, (tenant_id,))
        return {
            row["template_id"]: {
                "count": row["count"],
                "avg_rating": round(row["avg_rating"], 2),
                "views": row["views"],
            }
            for row in rows
        }

    # ==================== Inventory Operations ====================

    def save_movements(self, movements: List[Dict[str, Any]], tenant_id: str) -> int:
        """Insert stock movements in one transaction."""
        rows = [
            (
                tenant_id,
                m["part_id"],
                m.get("location_id") or "",
                m["quantity"],
                m.get("unit_cost") or 0.0,
                m["quantity"] * (m.get("unit_cost") or 0.0),
                m.get("movement_type") or "OUT",
                _encode("executed_at", m["executed_at"]),
            )
            for m in movements
        ]

        try:
            with self._transaction() as cursor:
                cursor.executemany(Q.INSERT_MOVEMENT, rows)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to save movements: {e}",
                details={"count": len(rows)},
            ) from e

        logger.debug(f"Saved {len(rows)} movements for tenant {tenant_id}")
        return len(rows)

    def get_movements(
        self,
        tenant_id: str,
        part_id: Optional[str] = None,
        movement_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        where = ["tenant_id = ?"]
        params: List[Any] = [tenant_id]
        if part_id:
            where.append("part_id = ?")
            params.append(part_id)
        if movement_type:
            where.append("movement_type = ?")
            params.append(movement_type)
        if start:
            where.append("executed_at >= ?")
            params.append(_encode("start", start))
        if end:
            where.append("executed_at <= ?")
            params.append(_encode("end", end))

        return self._fetchall(
            Q.SELECT_MOVEMENTS_TEMPLATE.format(where=" AND ".join(where)), tuple(params)
        )

    def save_classifications(
        self,
        analysis_run_id: str,
        period_start: datetime,
        period_end: datetime,
        records: List[Dict[str, Any]],
        tenant_id: str,
    ) -> int:
        """Store one ABC analysis run."""
        start = _encode("period_start", period_start)
        end = _encode("period_end", period_end)
        rows = [
            (
                tenant_id,
                analysis_run_id,
                r["part_id"],
                r.get("location_id") or "",
                r["total_value_consumed"],
                r.get("total_quantity") or 0.0,
                r.get("movement_frequency") or 0,
                r["percentage_of_total_value"],
                r["cumulative_percentage"],
                r["abc_classification"],
                rank,
                start,
                end,
            )
            for rank, r in enumerate(records, start=1)
        ]

        try:
            with self._transaction() as cursor:
                cursor.executemany(Q.INSERT_CLASSIFICATION, rows)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to save classifications: {e}",
                details={"analysis_run_id": analysis_run_id},
            ) from e

        return len(rows)

    def get_classifications(
        self,
        tenant_id: str,
        analysis_run_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if analysis_run_id is None:
            latest = self._fetchone(Q.SELECT_LATEST_ANALYSIS_RUN, (tenant_id,))
            if latest is None:
                return []
            analysis_run_id = latest["analysis_run_id"]

        return self._fetchall(Q.SELECT_CLASSIFICATIONS_FOR_RUN, (tenant_id, analysis_run_id))

    def save_forecasts(self, forecasts: List[Dict[str, Any]], tenant_id: str) -> int:
        """Store forecasts (upsert per part/date/method)."""
        rows = [
            (
                tenant_id,
                f["part_id"],
                _encode("forecast_date", f["forecast_date"]),
                f["predicted_demand"],
                f["lower_bound"],
                f["upper_bound"],
                f["historical_periods_used"],
                f["method"],
                int(bool(f.get("reorder_alert"))),
            )
            for f in forecasts
        ]

        try:
            with self._transaction() as cursor:
                cursor.executemany(Q.UPSERT_FORECAST, rows)
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to save forecasts: {e}") from e

        return len(rows)

    def get_forecasts(self, part_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        return self._fetchall(Q.SELECT_FORECASTS_FOR_PART, (tenant_id, part_id))

    # ==================== Utility ====================

    def close(self):
        """Close database connection."""
        with self._lock:
            self.conn.close()
        logger.info("Database connection closed")
