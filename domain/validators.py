"""
Input validators for the knowledge base and parts core.

Two families live here:

- Article checks (validate_title, validate_content, validate_category)
  return booleans and never raise. Operations turn a False into a
  ValidationError for the caller.
- Everything else (tenant/user ids, scores, files) raises
  ValidationError on failure and returns the cleaned value.
"""

import re
import unicodedata
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .exceptions import InvalidScore, ValidationError
from .models import RATING_CATEGORY_NAMES

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
CONTENT_MIN_LENGTH = 10
SLUG_MAX_LENGTH = 200
SUMMARY_MAX_LENGTH = 200
COMMENT_MAX_LENGTH = 2000
MIN_SCORE = 1
MAX_SCORE = 5

_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def validate_title(title: Optional[str]) -> bool:
    """
    Check article title length.

    Args:
        title: Raw title

    Returns:
        True if the trimmed title is 3-200 characters
    """
    if not title:
        return False
    return TITLE_MIN_LENGTH <= len(title.strip()) <= TITLE_MAX_LENGTH


def validate_content(content: Optional[str]) -> bool:
    """
    Check article content length.

    Returns:
        True if the trimmed content is at least 10 characters
    """
    if not content:
        return False
    return len(content.strip()) >= CONTENT_MIN_LENGTH


def validate_category(category: Optional[str]) -> bool:
    """True if category is a non-empty string after trimming."""
    return bool(category and category.strip())


def sanitize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """
    Normalize a tag list.

    Trims, lower-cases, drops empties and removes duplicates while
    keeping the order of first occurrence.

    Example:
        >>> sanitize_tags(["A", " a ", "b", "B"])
        ['a', 'b']
    """
    if not tags:
        return []

    seen = set()
    cleaned = []
    for tag in tags:
        if tag is None:
            continue
        normalized = str(tag).strip().lower()
        if normalized and normalized not in seen:
            cleaned.append(normalized)
            seen.add(normalized)

    return cleaned


def generate_slug(title: str) -> str:
    """
    Build a URL slug from a title.

    Steps: lower-case, strip diacritics, drop characters other than
    a-z/0-9/space/hyphen, whitespace runs to a single hyphen, collapse
    repeated hyphens, truncate to 200 characters.

    Example:
        >>> generate_slug("Olá Mundo!")
        'ola-mundo'
    """
    if not title:
        return ""

    decomposed = unicodedata.normalize("NFD", title.lower())
    without_marks = "".join(c for c in decomposed if not unicodedata.combining(c))

    slug = re.sub(r"[^a-z0-9\s-]", "", without_marks)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")

    return slug[:SLUG_MAX_LENGTH]


def build_summary(content: Optional[str], max_length: int = SUMMARY_MAX_LENGTH) -> str:
    """
    Derive an article summary from its content.

    HTML tags are stripped and whitespace collapsed. Content longer than
    max_length is cut and suffixed with '...'.
    """
    if not content:
        return ""

    text = _HTML_TAG.sub(" ", content)
    text = _WHITESPACE.sub(" ", text).strip()

    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + "..."


def sanitize_comment_content(content: Optional[str]) -> str:
    """Trim comment text and cap it at 2000 characters."""
    if not content:
        return ""
    return content.strip()[:COMMENT_MAX_LENGTH]


def validate_tenant_id(tenant_id: str) -> str:
    """
    Validate tenant identifier.

    Raises:
        ValidationError: If empty
    """
    if not tenant_id or not str(tenant_id).strip():
        raise ValidationError("Tenant id cannot be empty")
    return str(tenant_id).strip()


def validate_user_id(user_id: str, field_name: str = "user_id") -> str:
    """
    Validate user identifier.

    Raises:
        ValidationError: If empty
    """
    if not user_id or not str(user_id).strip():
        raise ValidationError(
            f"{field_name} cannot be empty",
            details={"field": field_name},
        )
    return str(user_id).strip()


def validate_score(score, field_name: str = "score") -> int:
    """
    Validate a 1-5 rating score.

    Booleans and non-integral numbers are rejected.

    Raises:
        InvalidScore: If score is not an integer in [1, 5]
    """
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InvalidScore(
            f"{field_name} must be an integer between {MIN_SCORE} and {MAX_SCORE}",
            details={field_name: score},
        )
    if float(score) != int(score) or not MIN_SCORE <= int(score) <= MAX_SCORE:
        raise InvalidScore(
            f"{field_name} must be an integer between {MIN_SCORE} and {MAX_SCORE}",
            details={field_name: score},
        )
    return int(score)


def validate_rating_categories(categories: Optional[Dict[str, int]]) -> Dict[str, int]:
    """
    Validate optional rating sub-scores.

    Only accuracy, clarity, completeness and usefulness are accepted,
    each scored independently 1-5.

    Raises:
        ValidationError: Unknown category name
        InvalidScore: Sub-score outside 1-5
    """
    if not categories:
        return {}

    unknown = set(categories) - set(RATING_CATEGORY_NAMES)
    if unknown:
        raise ValidationError(
            f"Unknown rating categories: {sorted(unknown)}",
            details={"allowed": list(RATING_CATEGORY_NAMES)},
        )

    return {
        name: validate_score(value, field_name=name)
        for name, value in categories.items()
    }


def validate_file_path(
    file_path: Union[Path, str],
    must_exist: bool = True,
    allowed_extensions: Optional[list] = None,
) -> Path:
    """
    Validate file path.

    Args:
        file_path: File path to validate
        must_exist: If True, file must exist on disk
        allowed_extensions: List of allowed extensions (e.g., ['.csv', '.xlsx'])

    Returns:
        Path object

    Raises:
        ValidationError: If invalid
    """
    if not file_path:
        raise ValidationError("File path cannot be empty")

    path = Path(file_path)

    if must_exist and not path.exists():
        raise ValidationError(
            f"File does not exist: {path}",
            details={"file_path": str(path)},
        )

    if allowed_extensions:
        if path.suffix.lower() not in [ext.lower() for ext in allowed_extensions]:
            raise ValidationError(
                f"Invalid file extension: {path.suffix}. Allowed: {allowed_extensions}",
                details={"file_path": str(path), "allowed": allowed_extensions},
            )

    return path


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for safe storage.

    Removes/replaces characters that could cause filesystem issues.
    """
    cleaned = filename.replace("/", "_").replace("\\", "_")
    cleaned = re.sub(r'[<>:"|?*]', "_", cleaned)
    cleaned = cleaned.strip(". ")

    if len(cleaned) > 255:
        name, ext = cleaned.rsplit(".", 1) if "." in cleaned else (cleaned, "")
        cleaned = name[: 255 - len(ext) - 1] + "." + ext if ext else name[:255]

    return cleaned
