"""
Response envelopes.

Callers at the outer boundary (HTTP handlers, CLI) report results as
{"success": bool, "data": ..., "message": str} and, on failure, the
error's kind so clients can tell failures apart without parsing text.
"""

import logging
from typing import Any, Callable, Dict, Optional

from domain.exceptions import KnowledgeBaseError

logger = logging.getLogger(__name__)


def success_response(data: Any = None, message: str = "") -> Dict[str, Any]:
    response = {"success": True, "message": message}
    if data is not None:
        response["data"] = data
    return response


def error_response(error: Exception) -> Dict[str, Any]:
    """
    Envelope for a failed call.

    KnowledgeBaseErrors keep their message, kind and details; anything
    else is reported as an internal error without leaking its text.
    """
    if isinstance(error, KnowledgeBaseError):
        return {
            "success": False,
            "message": error.message,
            "error_kind": error.kind,
            "details": error.details,
        }

    return {
        "success": False,
        "message": "Internal error",
        "error_kind": "internal_error",
    }


def run_operation(
    operation: Callable[..., Any],
    *args,
    message: Optional[str] = None,
    **kwargs,
) -> Dict[str, Any]:
    """
    Call an operation and wrap the outcome in an envelope.

    Example:
        >>> run_operation(create_category, db, "acme", "Network", message="Category created")
        {'success': True, 'message': 'Category created', 'data': Category(...)}
    """
    try:
        result = operation(*args, **kwargs)
    except KnowledgeBaseError as e:
        logger.info(f"{operation.__name__} failed: {e.kind}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Unexpected error in {operation.__name__}")
        return error_response(e)

    return success_response(result, message or "")
