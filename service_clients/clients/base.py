"""
Resilient HTTP client for ML service calls.

Combines retry with backoff, a per-service circuit breaker, S2S JWT
authentication, request tracing headers and degraded-mode fallbacks.

Call flow:
    1. local validation (raises ValidationError before any I/O)
    2. circuit check (OPEN -> fallback or CircuitOpenError)
    3. retried HTTP attempts, each bounded by the call timeout
    4. breaker fed once with the call's outcome
    5. availability failures -> fallback when configured

Request and response bodies are never logged.
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Optional, TypeVar

import httpx
from pydantic import ValidationError as PydanticValidationError

from service_clients.constants import (
    DEFAULT_TIMEOUT,
    HEADER_AUTHORIZATION,
    HEADER_CORRELATION_ID,
    HEADER_REQUEST_ID,
    HEALTH_CHECK_TIMEOUT,
    HEALTH_PATH,
    MAX_JSON_BODY_BYTES,
)
from service_clients.errors import (
    CircuitOpenError,
    ErrorCode,
    ServiceClientError,
    UpstreamUnavailableError,
    ValidationError,
    classify_exception,
    classify_response,
)
from service_clients.health import HealthStatus, ServiceHealthStatus
from service_clients.logging.safe_logging import payload_shape, token_presence
from service_clients.resilience.cancellation import CancellationToken
from service_clients.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from service_clients.resilience.retry import RetryAttempt, RetryConfig, RetryContext, RetryGiveUp, RetryHandler
from service_clients.security.service_auth import ServiceAuthConfig, ServiceTokenSigner

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSPORT_ERRORS = (httpx.HTTPError, asyncio.TimeoutError, OSError)


@dataclass
class RequestOptions:
    """Per-call options.

    Attributes:
        timeout: Per-attempt timeout in seconds (client default when None).
        correlation_id: Propagated as X-Correlation-ID when set.
        cancel_token: Aborts the call between attempts or during backoff.
        allow_fallback: Set False to surface availability errors even when
            fallbacks are enabled.
    """

    timeout: Optional[float] = None
    correlation_id: Optional[str] = None
    cancel_token: Optional[CancellationToken] = None
    allow_fallback: bool = True


class ResilientClient:
    """
    Base HTTP client for ML service communication.

    Features:
    - Retry with exponential backoff and jitter
    - Circuit breaker shared by every call on this client
    - S2S JWT (fresh token per attempt, audience = service name)
    - X-Request-ID stable across retries of one call
    - Fallback responses for availability failures
    """

    def __init__(
        self,
        service_name: str,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retry_config: Optional[RetryConfig] = None,
        circuit_config: Optional[CircuitBreakerConfig] = None,
        auth: Optional[ServiceAuthConfig | ServiceTokenSigner] = None,
        enable_fallbacks: bool = True,
        max_body_bytes: int = MAX_JSON_BODY_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_handler: Optional[RetryHandler] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.service_name = service_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_body_bytes = max_body_bytes
        self.retry_handler = retry_handler or RetryHandler(retry_config)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(circuit_config, name=service_name)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._fallback_enabled = enable_fallbacks

        if isinstance(auth, ServiceAuthConfig):
            auth = ServiceTokenSigner(auth)
        self._signer: Optional[ServiceTokenSigner] = auth
        if self._signer is None:
            logger.warning("[SERVICE-AUTH] %s client has no signing secret; requests are unauthenticated", service_name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Fallback / circuit controls
    # ------------------------------------------------------------------

    @property
    def fallback_enabled(self) -> bool:
        return self._fallback_enabled

    def set_fallback_enabled(self, enabled: bool) -> None:
        self._fallback_enabled = enabled

    def get_circuit_state(self) -> CircuitState:
        return self.circuit_breaker.state

    def reset_circuit(self) -> None:
        self.circuit_breaker.reset()

    def get_retry_statistics(self):
        return self.retry_handler.get_statistics()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _build_headers(self, request_id: str, correlation_id: Optional[str] = None) -> dict[str, str]:
        headers = {HEADER_REQUEST_ID: request_id}
        if correlation_id:
            headers[HEADER_CORRELATION_ID] = correlation_id
        if self._signer is not None:
            headers[HEADER_AUTHORIZATION] = f"Bearer {self._signer.create_token(self.service_name)}"
        return headers

    def _check_body_size(self, body: Any) -> None:
        size = len(json.dumps(body, default=str).encode("utf-8"))
        if size > self.max_body_bytes:
            raise ValidationError(
                f"Request body for {self.service_name} exceeds {self.max_body_bytes} bytes",
                service=self.service_name,
                error_code=ErrorCode.VALIDATION_PAYLOAD_TOO_LARGE,
                details={"size_bytes": size, "max_bytes": self.max_body_bytes},
            )

    async def call(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: Optional[dict[str, Any]] = None,
        files: Any = None,
        data: Optional[dict[str, Any]] = None,
        options: Optional[RequestOptions] = None,
        parse: Optional[Callable[[Any], T]] = None,
        fallback: Optional[Callable[[], T]] = None,
    ) -> T | Any:
        """
        Make one logical call with retry, circuit breaker and fallback.

        Args:
            method: HTTP method
            path: Path relative to the service base URL
            json_body: JSON request body (already in wire form)
            params: Query parameters
            files: Multipart files (httpx format)
            data: Multipart form fields
            options: Per-call options
            parse: Converts the decoded JSON body; shape errors count as
                an unavailable upstream
            fallback: Produces a degraded response for availability failures

        Returns:
            Parsed response, raw JSON when no parser is given, or the fallback

        Raises:
            ValidationError: Local or upstream (4xx) rejection
            AuthError: Upstream rejected credentials
            CircuitOpenError: Circuit open and no fallback applies
            ServiceTimeoutError: Attempts timed out and no fallback applies
            UpstreamUnavailableError: 5xx/429/connection failure and no fallback applies
            AbortedError: Cancelled via options.cancel_token
        """
        opts = options or RequestOptions()
        if json_body is not None:
            self._check_body_size(json_body)

        permit = self.circuit_breaker.acquire()
        if permit is None:
            error = CircuitOpenError(
                f"Circuit breaker OPEN for {self.service_name}",
                service=self.service_name,
                retry_after=self.circuit_breaker.retry_after,
            )
            return self._fallback_or_raise(error, fallback, opts)

        request_id = uuid.uuid4().hex
        timeout = opts.timeout or self.timeout

        async def attempt(context: RetryContext):
            return await self._send_once(
                method,
                path,
                json_body=json_body,
                params=params,
                files=files,
                data=data,
                request_id=request_id,
                correlation_id=opts.correlation_id,
                timeout=timeout,
                parse=parse,
                attempt=context.attempt,
            )

        def on_retry(info: RetryAttempt) -> None:
            logger.warning(
                "%s request failed (attempt %d/%d): %s. Retrying in %.1fs",
                self.service_name,
                info.attempt + 1,
                self.retry_handler.config.max_retries + 1,
                getattr(info.error, "error_code", ErrorCode.INTERNAL_ERROR).value,
                info.next_delay,
                extra={"service": self.service_name, "request_id": request_id, "attempt": info.attempt},
            )

        def on_give_up(info: RetryGiveUp) -> None:
            logger.error(
                "%s request failed after %d attempt(s): %s",
                self.service_name,
                info.total_attempts,
                getattr(info.error, "message", type(info.error).__name__),
                extra={"service": self.service_name, "request_id": request_id},
            )

        try:
            result = await self.retry_handler.execute(
                attempt,
                cancel_token=opts.cancel_token,
                on_retry=on_retry,
                on_give_up=on_give_up,
            )
        except ServiceClientError as exc:
            if exc.availability_failure:
                self.circuit_breaker.record_failure(permit)
                return self._fallback_or_raise(exc, fallback, opts)
            self.circuit_breaker.release_trial(permit)
            raise
        except BaseException:
            self.circuit_breaker.release_trial(permit)
            raise

        self.circuit_breaker.record_success(permit)
        return result

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        json_body: Any,
        params: Optional[dict[str, Any]],
        files: Any,
        data: Optional[dict[str, Any]],
        request_id: str,
        correlation_id: Optional[str],
        timeout: float,
        parse: Optional[Callable[[Any], Any]],
        attempt: int,
    ) -> Any:
        client = await self._get_client()
        headers = self._build_headers(request_id, correlation_id)
        logger.debug(
            "%s %s %s attempt=%d body=%s %s",
            self.service_name,
            method,
            path,
            attempt,
            payload_shape(json_body if json_body is not None else data),
            token_presence("auth", headers.get(HEADER_AUTHORIZATION)),
        )

        try:
            response = await asyncio.wait_for(
                client.request(
                    method,
                    path,
                    json=json_body,
                    params=params,
                    files=files,
                    data=data,
                    headers=headers,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except _TRANSPORT_ERRORS as exc:
            raise classify_exception(self.service_name, exc) from exc

        if response.status_code >= 400:
            raise classify_response(self.service_name, response)

        if response.status_code == 204 or not response.content:
            body = None
        else:
            try:
                body = response.json()
            except ValueError:
                raise UpstreamUnavailableError(
                    f"{self.service_name} returned a non-JSON body",
                    service=self.service_name,
                    status_code=response.status_code,
                    code="EINVALIDRESPONSE",
                ) from None

        if parse is None:
            return body
        try:
            return parse(body)
        except PydanticValidationError:
            # Validation errors echo input values; do not chain them
            raise UpstreamUnavailableError(
                f"{self.service_name} returned an unexpected response shape",
                service=self.service_name,
                status_code=response.status_code,
                code="EINVALIDRESPONSE",
            ) from None

    def _fallback_or_raise(
        self,
        error: ServiceClientError,
        fallback: Optional[Callable[[], T]],
        opts: RequestOptions,
    ) -> T:
        if fallback is not None and self._fallback_enabled and opts.allow_fallback:
            logger.warning(
                "%s unavailable (%s); serving fallback response",
                self.service_name,
                error.error_code.value,
                extra={"service": self.service_name, "circuit_state": self.circuit_breaker.state},
            )
            return fallback()
        raise error

    async def get(self, path: str, **kwargs) -> Any:
        """Make GET request."""
        return await self.call("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        """Make POST request."""
        return await self.call("POST", path, **kwargs)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health_check(self) -> ServiceHealthStatus:
        """
        Probe GET /health once.

        Bypasses the circuit breaker and does not feed it. Never raises for
        transport failures; they are reported as UNHEALTHY.
        """
        circuit_state = self.circuit_breaker.state
        started = time.perf_counter()
        try:
            client = await self._get_client()
            response = await asyncio.wait_for(
                client.get(
                    HEALTH_PATH,
                    headers=self._build_headers(uuid.uuid4().hex),
                    timeout=HEALTH_CHECK_TIMEOUT,
                ),
                timeout=HEALTH_CHECK_TIMEOUT,
            )
        except _TRANSPORT_ERRORS as exc:
            error = classify_exception(self.service_name, exc)
            return ServiceHealthStatus(
                service=self.service_name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=_elapsed_ms(started),
                circuit_state=circuit_state,
                last_error=error.message,
            )

        latency_ms = _elapsed_ms(started)
        if response.status_code >= 400:
            return ServiceHealthStatus(
                service=self.service_name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=latency_ms,
                circuit_state=circuit_state,
                last_error=f"HTTP {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        status = HealthStatus.HEALTHY if body.get("status") == "healthy" else HealthStatus.DEGRADED
        version = body.get("version")
        return ServiceHealthStatus(
            service=self.service_name,
            status=status,
            version=str(version) if version is not None else None,
            latency_ms=latency_ms,
            circuit_state=circuit_state,
            last_success=datetime.now(UTC),
        )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
