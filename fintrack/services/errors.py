"""
Service layer exceptions.
"""

from typing import Any

from fintrack.exceptions import (
    FeatureDisabledError,
    NotFoundError,
    StorageQuotaError,
    ValidationError,
)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(message)


class NetworkError(ServiceError):
    """Transport failed before a response could be obtained."""

    def __init__(self, message: str = "Network request failed", url: str | None = None):
        super().__init__(message, url=url)


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    def __init__(self, timeout: float, url: str | None = None):
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout}s", url=url)


class APIError(ServiceError):
    """Backend answered with a failure status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        url: str | None = None,
        response_data: Any = None,
    ):
        self.status_code = status_code
        self.response_data = response_data
        super().__init__(message, url=url)

    @property
    def is_retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS_CODES


STATUS_MESSAGES = {
    400: "Invalid request - please check your input",
    401: "Not authenticated - please sign in",
    403: "Access denied",
    404: "Resource not found",
    409: "Conflict - the data was changed in the meantime",
    422: "Validation failed - please check your input",
    429: "Too many requests - please wait a moment",
    500: "Server error - please try again later",
    502: "Server unreachable - please try again later",
    503: "Service unavailable - please try again later",
    504: "Server timed out - please try again later",
}


def describe_error(error: Exception) -> dict[str, Any]:
    """Map an exception to a user-facing description."""
    if isinstance(error, APIError):
        return {
            "type": "api",
            "message": str(error),
            "status_code": error.status_code,
            "url": error.url,
            "can_retry": error.is_retryable,
            "user_message": STATUS_MESSAGES.get(error.status_code, str(error)),
        }

    if isinstance(error, ValidationError):
        return {
            "type": "validation",
            "message": str(error),
            "fields": error.fields,
            "can_retry": False,
            "user_message": "Please check your input",
        }

    if isinstance(error, RequestTimeoutError):
        return {
            "type": "timeout",
            "message": str(error),
            "can_retry": True,
            "user_message": "The request took too long - please try again",
        }

    if isinstance(error, NetworkError):
        return {
            "type": "network",
            "message": str(error),
            "can_retry": True,
            "user_message": "No connection - please try again",
        }

    if isinstance(error, StorageQuotaError):
        return {
            "type": "storage",
            "message": str(error),
            "can_retry": False,
            "user_message": "Local storage is full",
        }

    if isinstance(error, NotFoundError):
        return {
            "type": "not_found",
            "message": str(error),
            "can_retry": False,
            "user_message": "Resource not found",
        }

    if isinstance(error, FeatureDisabledError):
        return {
            "type": "feature_disabled",
            "message": str(error),
            "can_retry": False,
            "user_message": "This feature is disabled",
        }

    return {
        "type": "unknown",
        "message": str(error) or "An unknown error occurred",
        "can_retry": True,
        "user_message": "An unexpected error occurred",
    }
