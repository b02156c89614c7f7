"""
Database Interface - Abstract Base Classes for persistence.

This module defines the contract for all database implementations.
Any backend (SQLite, PostgreSQL, etc.) must implement DatabaseInterface,
which is composed of one port per aggregate.

Every method takes tenant_id: a row belonging to another tenant is never
read or written, and looks exactly like a missing row.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from datetime import datetime


class ArticleRepository(ABC):
    """Persistence port for articles, their history, versions and links."""

    @abstractmethod
    def create_article(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """
        Insert a new article and its version 1 snapshot.

        Args:
            data: Article fields (title, content, category, author_id, ...)
            tenant_id: Owning tenant

        Returns:
            The stored article row
        """
        pass

    @abstractmethod
    def find_article_by_id(
        self,
        article_id: str,
        tenant_id: str,
        include_deleted: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Get article by ID.

        Returns:
            Article row, or None if absent, soft-deleted (unless
            include_deleted) or owned by another tenant
        """
        pass

    @abstractmethod
    def update_article(
        self,
        article_id: str,
        data: Dict[str, Any],
        tenant_id: str,
        version_snapshot: Optional[Dict[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Update article fields.

        Only whitelisted fields are written. When version_snapshot is
        given it is stored in the same transaction. When expected_version
        is given the write only happens if the stored version still
        equals it.

        Returns:
            Updated article row, or None if not found

        Raises:
            ConcurrentModificationError: Stored version differs from expected_version
        """
        pass

    @abstractmethod
    def delete_article(self, article_id: str, tenant_id: str) -> bool:
        """
        Soft-delete an article (is_deleted + deleted_at).

        Returns:
            True if deleted, False if not found or already deleted
        """
        pass

    @abstractmethod
    def search_articles(self, query: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """
        Filter articles.

        Args:
            query: Optional keys: terms (list of words, any may match),
                   category, status, author_id, tags (all must match),
                   featured, visibility, order_by, limit, offset
            tenant_id: Tenant to search

        Returns:
            {"items": [article rows], "total": matching count before paging}
        """
        pass

    @abstractmethod
    def increment_view_count(
        self,
        article_id: str,
        tenant_id: str,
        viewed_at: datetime,
    ) -> bool:
        """
        Atomically add one view and stamp last_viewed_at.

        Returns:
            True if the article exists
        """
        pass

    @abstractmethod
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
        """
        Persist an approval transition with compare-and-swap.

        The article row is updated only if its approval_status,
        approval_revision and version still equal the expected values;
        the history entry is appended in the same transaction.

        Returns:
            True if applied, False if the article changed in between
        """
        pass

    @abstractmethod
    def get_approval_history(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        """Get approval history entries, oldest first."""
        pass

    @abstractmethod
    def get_article_versions(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        """Get version snapshots, newest first."""
        pass

    @abstractmethod
    def save_attachment(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Record a stored attachment for an article."""
        pass

    @abstractmethod
    def get_attachments(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        """Get attachments for an article."""
        pass

    @abstractmethod
    def toggle_favorite(self, article_id: str, user_id: str, tenant_id: str) -> bool:
        """
        Add or remove a favorite.

        Returns:
            True if the article is now a favorite, False if it was removed
        """
        pass

    @abstractmethod
    def get_favorite_articles(self, user_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        """Get a user's favorite articles."""
        pass

    @abstractmethod
    def link_article_to_ticket(
        self,
        article_id: str,
        ticket_id: str,
        linked_by: str,
        tenant_id: str,
    ) -> bool:
        """
        Link an article to a support ticket.

        Returns:
            True if a new link was created, False if it already existed
        """
        pass

    @abstractmethod
    def get_articles_by_ticket(self, ticket_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        """Get articles linked to a ticket."""
        pass

    @abstractmethod
    def get_article_statistics(self, tenant_id: str) -> Dict[str, Any]:
        """
        Get article counts for a tenant.

        Returns:
            {"by_status": {status: count}, "by_category": {category: count},
             "total_articles": n, "total_views": n}
        """
        pass


class CategoryRepository(ABC):
    """Persistence port for article categories."""

    @abstractmethod
    def create_category(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """Insert a category. Slugs are unique per tenant."""
        pass

    @abstractmethod
    def get_category(self, category_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_categories(self, tenant_id: str, include_inactive: bool = False) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def update_category(
        self,
        category_id: str,
        data: Dict[str, Any],
        tenant_id: str,
    ) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def deactivate_category(self, category_id: str, tenant_id: str) -> bool:
        """Deactivate a category (categories are never physically deleted)."""
        pass


class CommentRepository(ABC):
    """Persistence port for comments and reactions."""

    @abstractmethod
    def create_comment(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_comment(self, comment_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_comments(
        self,
        article_id: str,
        tenant_id: str,
        include_hidden: bool = False,
    ) -> List[Dict[str, Any]]:
        """Get comments for an article, oldest first."""
        pass

    @abstractmethod
    def count_comments(self, article_id: str, tenant_id: str) -> int:
        """Count visible comments for an article."""
        pass

    @abstractmethod
    def update_comment_flags(
        self,
        comment_id: str,
        flags: Dict[str, bool],
        tenant_id: str,
    ) -> bool:
        """Set moderation flags (is_highlighted, is_resolved, is_hidden)."""
        pass

    @abstractmethod
    def delete_comment(self, comment_id: str, tenant_id: str) -> bool:
        """Delete a comment together with its replies and reactions."""
        pass

    @abstractmethod
    def upsert_reaction(
        self,
        comment_id: str,
        user_id: str,
        reaction_type: str,
        tenant_id: str,
        created_at: datetime,
    ) -> None:
        """Store a user's reaction, replacing any previous one."""
        pass

    @abstractmethod
    def get_reactions(self, comment_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_reactions_for_article(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        """Get reactions of all comments on an article (rows carry comment_id)."""
        pass


class RatingRepository(ABC):
    """Persistence port for ratings."""

    @abstractmethod
    def create_rating(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """
        Insert a rating and refresh the article's rating aggregate.

        Raises:
            DuplicateRating: User already rated this article
        """
        pass

    @abstractmethod
    def find_rating(self, article_id: str, user_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_ratings(self, article_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        """Get ratings for an article, newest first."""
        pass


class TemplateRepository(ABC):
    """Persistence port for article templates."""

    @abstractmethod
    def create_template(self, data: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_template(self, template_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_templates(
        self,
        tenant_id: str,
        category: Optional[str] = None,
        template_type: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Dict[str, Any]]:
        """Get templates, most used first."""
        pass

    @abstractmethod
    def update_template(
        self,
        template_id: str,
        data: Dict[str, Any],
        tenant_id: str,
    ) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def increment_template_usage(self, template_id: str, tenant_id: str) -> bool:
        pass

    @abstractmethod
    def get_template_article_stats(self, tenant_id: str) -> Dict[str, Dict[str, Any]]:
        """
        Get per-template article statistics.

        Returns:
            {template_id: {"count": n, "avg_rating": x, "views": n}}
        """
        pass


class InventoryRepository(ABC):
    """Persistence port for stock movements, classifications and forecasts."""

    @abstractmethod
    def save_movements(self, movements: List[Dict[str, Any]], tenant_id: str) -> int:
        """
        Insert stock movements in one transaction.

        Returns:
            Number of movements stored
        """
        pass

    @abstractmethod
    def get_movements(
        self,
        tenant_id: str,
        part_id: Optional[str] = None,
        movement_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Get movements, oldest first, optionally filtered."""
        pass

    @abstractmethod
    def save_classifications(
        self,
        analysis_run_id: str,
        period_start: datetime,
        period_end: datetime,
        records: List[Dict[str, Any]],
        tenant_id: str,
    ) -> int:
        """Store one ABC analysis run; records are in rank order."""
        pass

    @abstractmethod
    def get_classifications(
        self,
        tenant_id: str,
        analysis_run_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Get records of a run (latest run when analysis_run_id is None)."""
        pass

    @abstractmethod
    def save_forecasts(self, forecasts: List[Dict[str, Any]], tenant_id: str) -> int:
        """Store forecasts, replacing earlier ones for the same part/date/method."""
        pass

    @abstractmethod
    def get_forecasts(self, part_id: str, tenant_id: str) -> List[Dict[str, Any]]:
        pass


class DatabaseInterface(
    ArticleRepository,
    CategoryRepository,
    CommentRepository,
    RatingRepository,
    TemplateRepository,
    InventoryRepository,
):
    """
    Complete persistence contract.

    Operations type-hint the narrowest port they need; the SQLite
    adapter implements them all.
    """

    @abstractmethod
    def close(self) -> None:
        """Close the database connection."""
        pass
