"""Custom exceptions for the EP data pipeline.

Every request failure is a ClientError tagged with an ErrorKind and an optional
HTTP status code, so callers can branch on structure rather than messages.
"""

from __future__ import annotations

from enum import StrEnum
from typing import assert_never


class ErrorKind(StrEnum):
    """Failure categories surfaced by the request pipeline."""

    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    HTTP = "http"
    TOO_LARGE = "too_large"
    NETWORK = "network"


class ClientError(Exception):
    """Base exception for all request pipeline errors."""

    kind: ErrorKind = ErrorKind.NETWORK
    status_code: int | None = None


class RateLimitExceeded(ClientError):
    """Raised when the token bucket has too few tokens for a request.

    Never retried by the pipeline; the caller decides whether to wait.
    """

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, *, available: float, required: float, retry_after_seconds: float) -> None:
        self.available = available
        self.required = required
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Rate limit exceeded. Available tokens: {available:.2f}, required: {required:g}. "
            f"Retry after {retry_after_seconds:.2f} seconds."
        )


class RequestTimeout(ClientError):
    """Raised when a single attempt misses its deadline."""

    kind = ErrorKind.TIMEOUT
    status_code = 408

    def __init__(self, endpoint: str, timeout_seconds: float) -> None:
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Request to {endpoint} timed out after {timeout_seconds:g}s")


class ApiError(ClientError):
    """Application-level error reported at the pipeline boundary."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        status_code: int | None = None,
        endpoint: str | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)

    @classmethod
    def for_timeout(cls, error: RequestTimeout) -> ApiError:
        return cls(
            f"API request to {error.endpoint} timed out after {error.timeout_seconds:g}s",
            kind=ErrorKind.TIMEOUT,
            status_code=408,
            endpoint=error.endpoint,
        )


class HttpStatusError(ApiError):
    """Raised when the upstream server answers with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, *, endpoint: str | None = None) -> None:
        self.reason = reason
        super().__init__(
            f"API request failed: {status_code} {reason}".rstrip(),
            kind=ErrorKind.HTTP,
            status_code=status_code,
            endpoint=endpoint,
        )

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class PayloadTooLarge(ClientError):
    """Raised when a response body exceeds the configured ceiling.

    The body is never fully buffered when this is raised.
    """

    kind = ErrorKind.TOO_LARGE

    def __init__(self, limit_bytes: int, *, declared_bytes: int | None = None) -> None:
        self.limit_bytes = limit_bytes
        self.declared_bytes = declared_bytes
        if declared_bytes is not None:
            detail = f"declared {declared_bytes} bytes"
        else:
            detail = "body exceeded the limit while streaming"
        super().__init__(f"Response too large ({detail}, limit {limit_bytes} bytes)")


class NetworkError(ClientError):
    """Transport-level failure with no HTTP status (DNS, connection reset)."""

    kind = ErrorKind.NETWORK


class MalformedResponseError(NetworkError):
    """Raised when a 2xx response body is not a JSON object."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Expected a JSON object from {endpoint}")


def describe_error(error: ClientError) -> str:
    """Return a one-line, kind-specific summary for display."""
    match error.kind:
        case ErrorKind.RATE_LIMIT:
            return f"Rate limited: {error}"
        case ErrorKind.TIMEOUT:
            return f"Timed out (HTTP {error.status_code or 408}): {error}"
        case ErrorKind.HTTP:
            return f"HTTP {error.status_code}: {error}"
        case ErrorKind.TOO_LARGE:
            return f"Payload too large: {error}"
        case ErrorKind.NETWORK:
            return f"Network error: {error}"
        case _:
            assert_never(error.kind)


class PipelineClosedError(RuntimeError):
    """Raised when a request is issued on a pipeline that has been closed."""

    def __init__(self) -> None:
        super().__init__("Request pipeline is closed.")
