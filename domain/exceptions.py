"""
Custom exceptions for the knowledge base and parts core.

All exceptions inherit from KnowledgeBaseError for easier catching.
Each exception includes a message, an optional details dict and a
stable ``kind`` string so callers can tell failures apart without
matching on message text.
"""


class KnowledgeBaseError(Exception):
    """Base exception for all domain and persistence errors."""

    kind = "error"

    def __init__(self, message: str, details: dict = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional dict with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """String representation with details if available."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class DatabaseError(KnowledgeBaseError):
    """Database operation failed."""

    kind = "database_error"


class ImportValidationError(KnowledgeBaseError):
    """Import file validation failed."""

    kind = "import_validation_error"


class ValidationError(KnowledgeBaseError):
    """Data validation failed."""

    kind = "validation_error"


class InvalidScore(ValidationError):
    """Rating score outside the 1-5 range."""

    kind = "invalid_score"


class NotFoundError(KnowledgeBaseError):
    """Requested resource not found (or not visible to the tenant)."""

    kind = "not_found"


class IllegalTransition(KnowledgeBaseError):
    """Approval action is not valid from the current state."""

    kind = "illegal_transition"


class ConcurrentModificationError(IllegalTransition):
    """Article changed between load and save of an approval transition."""

    kind = "concurrent_modification"


class SelfApprovalForbidden(KnowledgeBaseError):
    """Author tried to review their own article."""

    kind = "self_approval_forbidden"


class PermissionDenied(KnowledgeBaseError):
    """Actor is not allowed to perform the action."""

    kind = "permission_denied"


class MaxDepthExceeded(KnowledgeBaseError):
    """Comment reply would exceed the maximum thread depth."""

    kind = "max_depth_exceeded"


class DuplicateRating(KnowledgeBaseError):
    """User has already rated this article."""

    kind = "duplicate_rating"
