"""
Service client test fixtures.
Shared fixtures for all test modules.
"""
import json
from typing import Callable

import httpx
import pytest

from service_clients.clients.base import ResilientClient
from service_clients.config import MLClientSettings
from service_clients.resilience.circuit_breaker import CircuitBreakerConfig
from service_clients.resilience.retry import RetryConfig
from service_clients.security.service_auth import ServiceAuthConfig

TEST_SECRET = "unit-test-secret-value-that-is-long-enough-0123456789"


# ============================================================
# Helpers
# ============================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport:
    """Wraps a handler in httpx.MockTransport and records every request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def fast_retry() -> RetryConfig:
    """Retry config with millisecond delays."""
    return RetryConfig(max_retries=2, base_delay=0.001, max_delay=0.005, jitter_factor=0.0)


@pytest.fixture
def circuit_config() -> CircuitBreakerConfig:
    return CircuitBreakerConfig(failure_threshold=3, reset_timeout=30.0)


@pytest.fixture
def auth_config() -> ServiceAuthConfig:
    return ServiceAuthConfig(secret=TEST_SECRET)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> MLClientSettings:
    """Settings isolated from the environment and .env files."""
    return MLClientSettings(
        _env_file=None,
        audio_intelligence_url="http://audio.test",
        careplan_recommender_url="http://recommender.test",
        rag_embeddings_url="http://rag.test",
        pdf_parser_url="http://pdf.test",
        service_timeout=2.0,
        service_max_retries=2,
        retry_base_delay=0.001,
        retry_max_delay=0.005,
        retry_jitter_factor=0.0,
        circuit_failure_threshold=3,
        service_auth_secret=TEST_SECRET,
    )


@pytest.fixture
def make_client(fast_retry, circuit_config, auth_config):
    """Build a ResilientClient (or subclass) around a mock handler."""
    created: list[ResilientClient] = []

    def _make(handler, cls=ResilientClient, **kwargs):
        recorder = RecordingTransport(handler)
        options = {
            "timeout": 2.0,
            "retry_config": fast_retry,
            "circuit_config": circuit_config,
            "auth": auth_config,
            "transport": recorder.transport,
        }
        options.update(kwargs)
        if cls is ResilientClient:
            client = cls("test-service", "http://service.test", **options)
        else:
            client = cls("http://service.test", **options)
        created.append(client)
        return client, recorder

    return _make


@pytest.fixture
def pdf_bytes() -> bytes:
    return b"%PDF-1.7\n1 0 obj << /Type /Catalog >> endobj\ntrailer\n%%EOF\n"
