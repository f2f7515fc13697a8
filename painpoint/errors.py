"""Error taxonomy shared by the orchestrator and the HTTP layer.

Cache failures never show up here: the cache store reports them as values.
"""

from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    BAD_REQUEST = "BAD_REQUEST"
    SEARCH_FAILED = "SEARCH_FAILED"


class SearchError(Exception):
    """Base class for errors that map to a structured API response."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class InvalidSearchId(SearchError):
    code = ErrorCode.BAD_REQUEST
    status_code = 400


class SearchNotFound(SearchError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, message: str = "Search not found"):
        super().__init__(message)


class StoreUnavailable(SearchError):
    """Persistent store failed where a row was expected to be readable."""

    code = ErrorCode.INTERNAL_ERROR
    status_code = 500


class RateLimitExceeded(SearchError):
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    status_code = 429

    MESSAGES = {
        "global": "Service is experiencing high demand. Please try again shortly.",
        "ip": "Too many requests from this IP. Please slow down.",
        "ip_daily": "Daily search limit reached. Please try again tomorrow.",
        "topic": "This topic is being searched too frequently. Please wait a moment.",
    }

    def __init__(
        self,
        granularity: str,
        retry_after: int,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(self.MESSAGES.get(granularity, "Too many requests."))
        self.granularity = granularity
        self.retry_after = retry_after
        self.headers = dict(headers or {})

    def response_headers(self) -> dict[str, str]:
        return {**self.headers, "Retry-After": str(self.retry_after)}
