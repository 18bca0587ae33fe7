"""Retry, cancellation and circuit breaking primitives."""

from service_clients.resilience.cancellation import CancellationToken, cancellable_sleep
from service_clients.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerStats,
    CircuitPermit,
    CircuitState,
)
from service_clients.resilience.retry import (
    RetryAttempt,
    RetryConfig,
    RetryContext,
    RetryGiveUp,
    RetryHandler,
    RetryStatistics,
)

__all__ = [
    "CancellationToken",
    "cancellable_sleep",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerStats",
    "CircuitPermit",
    "CircuitState",
    "RetryAttempt",
    "RetryConfig",
    "RetryContext",
    "RetryGiveUp",
    "RetryHandler",
    "RetryStatistics",
]
