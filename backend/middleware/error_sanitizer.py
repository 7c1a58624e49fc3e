"""
Error Sanitization Utilities
Unexpected failures are logged in full but answered with a generic message,
so SQL, connection strings and stack details never reach the caller
"""
import os
from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError

from middleware.logging_config import get_logger, log_error

logger = get_logger("error_sanitizer")

GENERIC_MESSAGE = "An unexpected error occurred. Please try again or contact support."

# Substrings that mark a message as unsafe to echo back
SENSITIVE_MARKERS = (
    "password",
    "secret",
    "token",
    "postgresql://",
    "sqlite://",
    "select ",
    "insert into",
    "update ",
    "delete from",
    "traceback",
)


def is_sensitive(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def sanitize_error_message(error: Exception, include_details: bool = False) -> str:
    """
    Caller-safe message for an unexpected exception

    Database connectivity problems get a retry hint. Other messages are
    only passed through with include_details, and never when they look
    like they carry SQL or credentials.
    """
    if isinstance(error, OperationalError) or (isinstance(error, DBAPIError) and error.connection_invalidated):
        return "The database is temporarily unavailable. Please try again."
    if isinstance(error, SQLAlchemyError):
        return "Database operation failed. No changes were saved."
    if isinstance(error, TimeoutError):
        return "The request timed out. Please try again."

    message = str(error)
    if include_details and message and not is_sensitive(message):
        return f"{type(error).__name__}: {message[:200]}"
    return GENERIC_MESSAGE


def sanitize_exception_response(exception: Exception, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Log ``exception`` with its context and build the 500 payload

    Returns:
        ``{"success": False, "error": "InternalError", "message": ..., "request_id": ...}``
    """
    context = context or {}
    log_error(logger, exception, context)

    return {
        "success": False,
        "error": "InternalError",
        "message": sanitize_error_message(exception, include_details=os.getenv("ENVIRONMENT") == "development"),
        "request_id": context.get("request_id"),
    }
