"""
Health models and aggregation for downstream ML services.

Aggregation rule:
    - two or more services UNHEALTHY -> UNHEALTHY
    - otherwise any service not HEALTHY -> DEGRADED
    - otherwise HEALTHY
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from service_clients.resilience.circuit_breaker import CircuitState


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ServiceHealthStatus(BaseModel):
    """Health of one downstream service.

    Attributes:
        service: Service name.
        status: Reported status.
        version: Version reported by the service, if any.
        latency_ms: Round-trip time of the health probe.
        circuit_state: Local breaker state at probe time.
        last_error: PHI-free description of the probe failure.
        last_success: Time of this probe if it succeeded.
    """

    service: str
    status: HealthStatus
    version: Optional[str] = None
    latency_ms: float = 0.0
    circuit_state: CircuitState = CircuitState.CLOSED
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None


class AggregatedHealthStatus(BaseModel):
    """Combined health of all ML services."""

    overall: HealthStatus
    services: list[ServiceHealthStatus] = Field(default_factory=list)
    degraded_services: list[str] = Field(default_factory=list)
    check_duration_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def aggregate_health(services: list[ServiceHealthStatus], check_duration_ms: float = 0.0) -> AggregatedHealthStatus:
    """Fold per-service results into an overall status."""
    unhealthy = sum(1 for s in services if s.status == HealthStatus.UNHEALTHY)
    degraded = [s.service for s in services if s.status != HealthStatus.HEALTHY]

    if unhealthy >= 2:
        overall = HealthStatus.UNHEALTHY
    elif degraded:
        overall = HealthStatus.DEGRADED
    else:
        overall = HealthStatus.HEALTHY

    return AggregatedHealthStatus(
        overall=overall,
        services=services,
        degraded_services=degraded,
        check_duration_ms=round(check_duration_ms, 2),
    )
