"""
Service client errors - classification of downstream failures.

Every failure surfaced by a service client is a ServiceClientError
subclass. The class answers two questions callers care about:

- is this retryable? (``status_code`` / ``code`` consulted by RetryHandler)
- is this an availability failure? (feeds the circuit breaker, allows fallback)

Errors render to the same RFC 7807-style ``APIError`` body used by the
HTTP services so gateways can pass them through unchanged.

Messages never include request payloads. Any text taken from an upstream
response goes through PHI redaction first.
"""

import asyncio
import errno
import socket
import uuid
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, Field

from service_clients.security.pii_detector import redact_phi


class ErrorCode(str, Enum):
    """Standardized error codes.

    Error codes are prefixed by category:
    - VALIDATION_*: Input validation errors
    - AUTH_*: Authentication/authorization errors
    - SERVICE_*: Downstream service errors
    - CIRCUIT_*, REQUEST_*: Client-side resilience outcomes
    """

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
    VALIDATION_PAYLOAD_TOO_LARGE = "VALIDATION_PAYLOAD_TOO_LARGE"

    # Authentication errors
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Service errors
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVICE_TIMEOUT = "SERVICE_TIMEOUT"
    SERVICE_UPSTREAM_ERROR = "SERVICE_UPSTREAM_ERROR"
    SERVICE_INVALID_RESPONSE = "SERVICE_INVALID_RESPONSE"

    # Resilience
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    REQUEST_ABORTED = "REQUEST_ABORTED"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class APIError(BaseModel):
    """Standardized error body.

    Attributes:
        error_code: Machine-readable error code from ErrorCode enum.
        message: Human-readable error description (PHI-free).
        details: Optional additional context.
        request_id: Unique identifier for request tracing.
        service: Name of the downstream service involved.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")
    request_id: str = Field(
        default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}",
        description="Unique request identifier for tracing",
    )
    service: str = Field(default="service-clients", description="Service that generated the error")


# HTTP status code mappings
ERROR_STATUS_CODES: dict[str, int] = {
    ErrorCode.VALIDATION_ERROR.value: 400,
    ErrorCode.VALIDATION_INVALID_FORMAT.value: 400,
    ErrorCode.VALIDATION_PAYLOAD_TOO_LARGE.value: 413,
    ErrorCode.AUTHENTICATION_FAILED.value: 401,
    ErrorCode.AUTHORIZATION_FAILED.value: 403,
    ErrorCode.RATE_LIMIT_EXCEEDED.value: 429,
    ErrorCode.SERVICE_UNAVAILABLE.value: 503,
    ErrorCode.SERVICE_TIMEOUT.value: 504,
    ErrorCode.SERVICE_UPSTREAM_ERROR.value: 502,
    ErrorCode.SERVICE_INVALID_RESPONSE.value: 502,
    ErrorCode.CIRCUIT_OPEN.value: 503,
    ErrorCode.REQUEST_ABORTED.value: 499,
    ErrorCode.INTERNAL_ERROR.value: 500,
}


def get_status_code(error_code: str) -> int:
    """Get HTTP status code for error code."""
    return ERROR_STATUS_CODES.get(error_code, 500)


# =============================================================================
# Exception hierarchy
# =============================================================================


class RetryableError(Exception):
    """Error carrying the fields retry classification looks at.

    Attributes:
        status_code: HTTP status of the failed attempt, if any.
        code: Transport error code such as ``ECONNRESET``, if any.
    """

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ServiceClientError(RetryableError):
    """Base class for every error raised by a service client."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    availability_failure: bool = False

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        super().__init__(message, status_code=status_code, code=code)
        self.service = service
        self.details = details
        if error_code is not None:
            self.error_code = error_code

    def to_api_error(self, request_id: str | None = None) -> APIError:
        """Render as a structured error body."""
        kwargs: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
            "service": self.service or "service-clients",
        }
        if request_id:
            kwargs["request_id"] = request_id
        return APIError(**kwargs)

    @property
    def http_status(self) -> int:
        return get_status_code(self.error_code.value)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(service={self.service!r}, status_code={self.status_code!r}, "
            f"code={self.code!r}, message={self.message!r})"
        )


class ValidationError(ServiceClientError):
    """Request rejected locally or by the upstream (4xx)."""

    error_code = ErrorCode.VALIDATION_ERROR


class AuthError(ServiceClientError):
    """Upstream rejected our credentials (401/403)."""

    error_code = ErrorCode.AUTHENTICATION_FAILED

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        if self.status_code == 403:
            self.error_code = ErrorCode.AUTHORIZATION_FAILED


class CircuitOpenError(ServiceClientError):
    """Call short-circuited because the breaker is open."""

    error_code = ErrorCode.CIRCUIT_OPEN
    availability_failure = True

    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServiceTimeoutError(ServiceClientError):
    """Attempt exceeded its deadline."""

    error_code = ErrorCode.SERVICE_TIMEOUT
    availability_failure = True

    def __init__(self, message: str, *, code: str | None = "ETIMEDOUT", **kwargs: Any):
        super().__init__(message, code=code, **kwargs)


class UpstreamUnavailableError(ServiceClientError):
    """Upstream returned 5xx/429, could not be reached, or sent an unreadable body."""

    error_code = ErrorCode.SERVICE_UNAVAILABLE
    availability_failure = True

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        if self.status_code == 429:
            self.error_code = ErrorCode.RATE_LIMIT_EXCEEDED
        elif self.status_code is not None and self.status_code < 500:
            self.error_code = ErrorCode.SERVICE_INVALID_RESPONSE
        elif self.status_code is not None:
            self.error_code = ErrorCode.SERVICE_UPSTREAM_ERROR


class AbortedError(ServiceClientError):
    """Caller cancelled the operation."""

    error_code = ErrorCode.REQUEST_ABORTED


# =============================================================================
# Classification
# =============================================================================


def _upstream_detail(response: httpx.Response) -> str:
    """Short, PHI-redacted detail from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if isinstance(value, str):
                return redact_phi(value, max_length=200)
    return ""


def classify_response(service: str, response: httpx.Response) -> ServiceClientError:
    """Map a non-2xx response to the error taxonomy.

    Args:
        service: Downstream service name.
        response: The failed response.

    Returns:
        The exception to raise (not raised here).
    """
    status = response.status_code
    detail = _upstream_detail(response)
    suffix = f": {detail}" if detail else ""

    if status in (401, 403):
        return AuthError(f"{service} rejected credentials (HTTP {status})", service=service, status_code=status)
    if status == 408:
        return ServiceTimeoutError(f"{service} timed out (HTTP 408)", service=service, status_code=status)
    if status == 429 or status >= 500:
        return UpstreamUnavailableError(
            f"{service} unavailable (HTTP {status}){suffix}", service=service, status_code=status
        )
    return ValidationError(
        f"{service} rejected request (HTTP {status}){suffix}",
        service=service,
        status_code=status,
        details={"remote": True},
    )


def _root_causes(exc: BaseException):
    seen = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def classify_exception(service: str, exc: BaseException) -> ServiceClientError:
    """Map a transport-level exception to the error taxonomy."""
    if isinstance(exc, ServiceClientError):
        return exc

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ServiceTimeoutError(f"{service} request timed out", service=service)

    if isinstance(exc, httpx.ConnectError):
        code = "ECONNREFUSED"
        for cause in _root_causes(exc):
            if isinstance(cause, socket.gaierror):
                code = "ENOTFOUND"
                break
            if isinstance(cause, ConnectionResetError):
                code = "ECONNRESET"
                break
        return UpstreamUnavailableError(f"{service} unreachable ({code})", service=service, code=code)

    if isinstance(exc, httpx.TransportError):
        return UpstreamUnavailableError(f"{service} connection failed (ECONNRESET)", service=service, code="ECONNRESET")

    if isinstance(exc, OSError) and exc.errno is not None:
        code = errno.errorcode.get(exc.errno, "EIO")
        return UpstreamUnavailableError(f"{service} connection failed ({code})", service=service, code=code)

    return ServiceClientError(f"{service} call failed: {type(exc).__name__}", service=service)
