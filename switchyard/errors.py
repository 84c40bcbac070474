"""
Error taxonomy shared by the adapters, the orchestrator and the HTTP layer.

Every failure that crosses a provider boundary is turned into an `AIError`
carrying a stable code, a retryability flag and the HTTP status the route
layer should answer with.
"""
from __future__ import annotations

import time
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


HTTP_STATUS_TO_ERROR_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    408: ErrorCode.REQUEST_TIMEOUT,
    429: ErrorCode.RATE_LIMITED,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.PROVIDER_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
    504: ErrorCode.TIMEOUT,
}

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.REQUEST_TIMEOUT: 408,
    ErrorCode.PROVIDER_ERROR: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.NETWORK_ERROR: 503,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.CONFIGURATION_ERROR: 400,
}

RETRYABLE_ERROR_CODES = frozenset({
    ErrorCode.RATE_LIMITED,
    ErrorCode.SERVICE_UNAVAILABLE,
    ErrorCode.REQUEST_TIMEOUT,
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK_ERROR,
})

ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_REQUEST: "Invalid request. Please check your input.",
    ErrorCode.UNAUTHORIZED: "Invalid API key. Please check your provider configuration.",
    ErrorCode.FORBIDDEN: "Access forbidden. Your API key may not have the required permissions.",
    ErrorCode.NOT_FOUND: "Resource not found.",
    ErrorCode.RATE_LIMITED: "Rate limit exceeded. Please wait a moment and try again.",
    ErrorCode.REQUEST_TIMEOUT: "Request timed out. Please try again.",
    ErrorCode.PROVIDER_ERROR: "Provider service error. Please try again later.",
    ErrorCode.SERVICE_UNAVAILABLE: "Service temporarily unavailable. Please try again later.",
    ErrorCode.NETWORK_ERROR: "Network error. Please check your connection.",
    ErrorCode.TIMEOUT: "Request timed out. Please check your network connection.",
    ErrorCode.INTERNAL_ERROR: "An internal error occurred. Please try again.",
    ErrorCode.VALIDATION_ERROR: "Validation failed. Please check your configuration.",
    ErrorCode.CONFIGURATION_ERROR: "Invalid configuration. Please check your settings.",
}

_NETWORK_PATTERNS = (
    "fetch failed",
    "econnrefused",
    "enotfound",
    "enetunreach",
    "econnreset",
    "network",
    "failed to fetch",
)
_TIMEOUT_PATTERNS = ("timeout", "etimedout", "aborted")


def is_retryable_code(code: ErrorCode) -> bool:
    return code in RETRYABLE_ERROR_CODES


def get_error_message(code: ErrorCode) -> str:
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCode.INTERNAL_ERROR])


def error_code_from_status(status: int) -> ErrorCode:
    return HTTP_STATUS_TO_ERROR_CODE.get(status, ErrorCode.INTERNAL_ERROR)


def is_network_error(error: BaseException) -> bool:
    message = str(error).lower()
    return any(p in message for p in _NETWORK_PATTERNS)


def is_timeout_error(error: BaseException) -> bool:
    message = str(error).lower()
    return any(p in message for p in _TIMEOUT_PATTERNS)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP date)."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        seconds = int(value)
        return seconds if seconds > 0 else None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    diff = int(when.timestamp() - time.time() + 0.999)
    return diff if diff > 0 else None


class AIError(Exception):
    """Classified failure raised by the completion gateway."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        *,
        retry_after: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        http_status: Optional[int] = None,
    ):
        self.code = code
        self.message = message or get_error_message(code)
        self.retryable = is_retryable_code(code)
        self.retry_after = retry_after
        self.details = details
        self.http_status = http_status or ERROR_CODE_TO_HTTP_STATUS.get(code, 500)
        super().__init__(self.message)

    def to_api_error(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            payload["retry_after"] = self.retry_after
        if self.details:
            payload["details"] = self.details
        return payload

    @classmethod
    def from_http_status(
        cls,
        status: int,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> "AIError":
        code = error_code_from_status(status)
        return cls(code, message, retry_after=retry_after)

    @classmethod
    def from_unknown(cls, error: object) -> "AIError":
        if isinstance(error, AIError):
            return error
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            if is_network_error(error):
                return cls(ErrorCode.NETWORK_ERROR, message)
            if is_timeout_error(error):
                return cls(ErrorCode.TIMEOUT, message)
            return cls(ErrorCode.INTERNAL_ERROR, message)
        return cls(ErrorCode.INTERNAL_ERROR, error if isinstance(error, str) else "Unknown error")


class UnknownProvider(AIError):
    def __init__(self, name: str):
        super().__init__(ErrorCode.NOT_FOUND, f"Unknown provider type: {name}")
        self.provider = name


class InvalidConfiguration(AIError):
    def __init__(self, message: str = "Invalid AI configuration"):
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message)


class StreamUnavailable(AIError):
    def __init__(self, message: str = "Response body is not readable"):
        super().__init__(ErrorCode.PROVIDER_ERROR, message)


class ToolLoopLimitExceeded(AIError):
    def __init__(self, max_rounds: int):
        super().__init__(
            ErrorCode.PROVIDER_ERROR,
            f"Max tool rounds ({max_rounds}) reached",
            details={"max_rounds": max_rounds},
        )
        self.max_rounds = max_rounds
