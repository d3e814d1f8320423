"""
Standardized error response utilities for the ChapterHub API.

Every endpoint answers failures with the same body:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE",
        "details": [...]          # optional, e.g. itemized validation messages
    }
}

Usage:
    from app.utils.errors import error_response, ErrorCode

    return error_response("Rule not found", ErrorCode.NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

from .exceptions import (
    ChapterHubError,
    NotFoundError,
    ValidationError,
    DuplicateError,
    InvalidStatusTransitionError,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"

    # Conflict (409)
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    ALREADY_AWARDED = "ALREADY_AWARDED"
    STATE_CONFLICT = "STATE_CONFLICT"

    # Business Logic Errors (422)
    INVALID_STATUS = "INVALID_STATUS"

    # Server Errors (500)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[list] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum (or a domain exception code)
        status_code: HTTP status code
        log_error: Whether to log the error (default True for 500s)
        details: Optional list of itemized messages returned to the caller

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}")
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}")

    body = {
        "message": message,
        "code": code.value if isinstance(code, ErrorCode) else code
    }
    if details:
        body["details"] = details

    return jsonify({"error": body}), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST, details: Optional[list] = None) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False, details=details)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def conflict(message: str, code: ErrorCode = ErrorCode.STATE_CONFLICT) -> tuple:
    """409 Conflict error."""
    return error_response(message, code, 409, log_error=False)


def internal_error(message: str = "An unexpected error occurred") -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True)


def domain_error_response(error: ChapterHubError) -> tuple:
    """Map a domain exception onto its HTTP error response."""
    if isinstance(error, NotFoundError):
        return error_response(error.message, error.code, 404, log_error=False)
    if isinstance(error, ValidationError):
        return error_response(error.message, error.code, 400, log_error=False, details=error.errors)
    if isinstance(error, DuplicateError):
        return error_response(error.message, error.code, 409, log_error=False)
    if isinstance(error, InvalidStatusTransitionError):
        return error_response(error.message, error.code, 422, log_error=False)
    if isinstance(error, ConfigurationError):
        return error_response(error.message, error.code, 500)
    return error_response(error.message, error.code, 500)
