"""
Custom exceptions for ChapterHub business logic.

These exceptions provide more specific error handling than generic Exception,
allowing for better error messages and appropriate HTTP status codes.
"""
from typing import List, Optional


class ChapterHubError(Exception):
    """Base exception for all ChapterHub business logic errors."""

    def __init__(self, message: str, code: str = "CHAPTERHUB_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(ChapterHubError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper().replace(' ', '_')}_NOT_FOUND")


class MemberNotFoundError(NotFoundError):
    """Member not found."""

    def __init__(self, identifier=None):
        super().__init__("Member", identifier)


class ValidationError(ChapterHubError):
    """
    Invalid input data.

    Carries the itemized list of problems so callers can show every message
    instead of only the first one.
    """

    def __init__(self, message: str, field: str = None, errors: Optional[List[str]] = None):
        self.field = field
        self.errors = errors or [message]
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class DuplicateError(ChapterHubError):
    """Resource already exists."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} already exists"
        if identifier:
            message = f"{resource} with {identifier} already exists"
        super().__init__(message, "DUPLICATE_ENTRY")


class AlreadyAwardedError(DuplicateError):
    """Award already granted to this member."""

    def __init__(self, award_code: str, member_id):
        super().__init__("Award", f"code {award_code} for member {member_id}")
        self.message = f"Award {award_code} already awarded to this member"
        self.code = "ALREADY_AWARDED"


class InvalidStatusTransitionError(ChapterHubError):
    """Invalid status transition for a resource."""

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class ConfigurationError(ChapterHubError):
    """Stored configuration the engine cannot run with."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
