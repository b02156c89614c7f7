"""
Application constants for the knowledge base core.

Centralized location for all application-wide constants.
"""

from pathlib import Path

# ==================== Application Info ====================

APP_NAME = "Knowledge Base Core"
APP_VERSION = "1.0.0"
APP_ORGANIZATION = "kbcore"

# ==================== File Extensions ====================

EXCEL_EXTENSIONS = [".xlsx", ".xls"]
CSV_EXTENSIONS = [".csv"]
MOVEMENT_FILE_EXTENSIONS = EXCEL_EXTENSIONS + CSV_EXTENSIONS
ALLOWED_MEDIA_EXTENSIONS = [".png", ".jpg", ".jpeg", ".gif", ".pdf", ".txt", ".md", ".zip"]

# ==================== Default Values ====================

# Database filename (actual path computed by paths.get_database_path())
DEFAULT_DATABASE_NAME = "knowledge_base.db"
DEFAULT_MEDIA_DIR_NAME = "media"
DEFAULT_TENANT_ID = "default"

# ==================== Validation Limits ====================

MAX_COMMENT_DEPTH = 3
MAX_MEDIA_FILE_SIZE_MB = 25
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_POPULAR_LIMIT = 10

# ==================== Approval Workflow ====================

DEFAULT_REQUIRED_APPROVERS = 1

# ==================== ABC / Forecast ====================

DEFAULT_FORECAST_PERIODS = 12
DEFAULT_LOOKBACK_MONTHS = 12

# ==================== Paths ====================

DATA_DIR = Path("data")

# ==================== Error Messages ====================

ERROR_MESSAGES = {
    "file_not_found": "File not found: {path}",
    "invalid_movement_file": "Invalid movement file: {path}",
    "database_error": "Database error: {error}",
    "validation_error": "Validation failed: {error}",
    "import_error": "Import failed: {error}",
    "no_tenant": "No tenant selected",
    "no_user": "No user selected",
}

# ==================== Success Messages ====================

SUCCESS_MESSAGES = {
    "article_created": "Article created: {title}",
    "article_updated": "Article updated",
    "article_deleted": "Article deleted",
    "approval_action": "Article {action} completed",
    "comment_added": "Comment added",
    "rating_added": "Rating added",
    "import_complete": "Imported {count} movements",
    "abc_complete": "Classified {count} part/location records",
}
