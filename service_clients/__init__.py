"""
Resilient clients for the clinical ML services.

Exports the factory, settings, error taxonomy, health models and the
per-service clients.
"""

from service_clients.clients import (
    AudioIntelligenceClient,
    CarePlanRecommenderClient,
    PdfParserClient,
    RagEmbeddingsClient,
    RequestOptions,
    ResilientClient,
)
from service_clients.config import MLClientSettings
from service_clients.errors import (
    AbortedError,
    AuthError,
    CircuitOpenError,
    ErrorCode,
    RetryableError,
    ServiceClientError,
    ServiceTimeoutError,
    UpstreamUnavailableError,
    ValidationError,
)
from service_clients.factory import MLClientFactory
from service_clients.health import AggregatedHealthStatus, HealthStatus, ServiceHealthStatus
from service_clients.resilience import (
    CancellationToken,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    RetryConfig,
    RetryHandler,
)

__version__ = "1.0.0"

__all__ = [
    "AudioIntelligenceClient",
    "CarePlanRecommenderClient",
    "PdfParserClient",
    "RagEmbeddingsClient",
    "RequestOptions",
    "ResilientClient",
    "MLClientSettings",
    "MLClientFactory",
    "AbortedError",
    "AuthError",
    "CircuitOpenError",
    "ErrorCode",
    "RetryableError",
    "ServiceClientError",
    "ServiceTimeoutError",
    "UpstreamUnavailableError",
    "ValidationError",
    "AggregatedHealthStatus",
    "HealthStatus",
    "ServiceHealthStatus",
    "CancellationToken",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "RetryConfig",
    "RetryHandler",
]
