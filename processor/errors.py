"""Error taxonomy for feed ingestion."""
from enum import Enum
from typing import Optional


class FeedErrorType(str, Enum):
    """Kinds of failure a feed can report."""
    INVALID_URL = 'INVALID_URL'
    FETCH_ERROR = 'FETCH_ERROR'
    PARSE_ERROR = 'PARSE_ERROR'
    # Reserved for whole-payload schema failures; per-event validation
    # problems are reported through ValidationResult instead.
    VALIDATION_ERROR = 'VALIDATION_ERROR'


class FeedError(Exception):
    """Base class for failures that take down a whole feed."""

    error_type = FeedErrorType.PARSE_ERROR

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidUrlError(FeedError):
    """Feed URL is not an absolute http(s) URL."""

    error_type = FeedErrorType.INVALID_URL


class FetchError(FeedError):
    """Feed could not be retrieved over HTTP."""

    error_type = FeedErrorType.FETCH_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None
    ):
        super().__init__(message, details=details)
        self.status_code = status_code


class ParseError(FeedError):
    """Feed body is not valid iCalendar text."""

    error_type = FeedErrorType.PARSE_ERROR
