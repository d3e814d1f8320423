"""
Utility modules for ChapterHub.
"""
from .logging_config import setup_logging
from .numbers import round_half_up, to_number, to_decimal
from .errors import (
    ErrorCode,
    error_response,
    domain_error_response,
    bad_request,
    not_found,
    conflict,
    internal_error
)
from .exceptions import (
    ChapterHubError,
    NotFoundError,
    MemberNotFoundError,
    ValidationError,
    DuplicateError,
    AlreadyAwardedError,
    InvalidStatusTransitionError,
    ConfigurationError
)
