"""
ML service client configuration.

Typed settings loaded from the environment with pydantic-settings.
Variables use the ``ML_`` prefix; service URLs also accept the bare
deployment names (``AUDIO_INTELLIGENCE_URL`` etc.) used by compose files.

Durations are in seconds.
"""

import logging
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from service_clients.constants import DEFAULT_TIMEOUT, MAX_JSON_BODY_BYTES, PHI_CACHE_MAX_TTL_SECONDS
from service_clients.resilience.circuit_breaker import CircuitBreakerConfig
from service_clients.resilience.retry import RetryConfig
from service_clients.security.service_auth import DEFAULT_ISSUER, ServiceAuthConfig

logger = logging.getLogger(__name__)


def _url_field(default: str, name: str):
    return Field(
        default=default,
        validation_alias=AliasChoices(f"ML_{name}", name, name.lower()),
    )


class MLClientSettings(BaseSettings):
    """ML service client configuration with Pydantic validation.

    Attributes:
        audio_intelligence_url: Base URL of the audio intelligence service.
        careplan_recommender_url: Base URL of the care-plan recommender.
        rag_embeddings_url: Base URL of the RAG embeddings service.
        pdf_parser_url: Base URL of the PDF parser.
        service_timeout: Per-attempt timeout in seconds.
        service_max_retries: Retries after the first attempt.
        retry_base_delay: First backoff delay in seconds.
        retry_max_delay: Backoff cap in seconds.
        retry_jitter_factor: Relative jitter (0-1).
        circuit_failure_threshold: Consecutive failures that open a circuit.
        circuit_reset_timeout: Seconds a circuit stays open before a trial.
        service_auth_secret: HS256 secret for outbound service tokens.
        service_auth_issuer: ``iss`` claim of outbound tokens.
        enable_fallbacks: Return degraded responses when a service is down.
        allowed_icd10_codes: Optional allowlist for diagnosis codes.
        cache_ttl_seconds: TTL for cached responses (capped for PHI).
        redis_url: Redis for the response cache; in-memory when unset.
        max_body_bytes: Largest JSON request body accepted locally.
    """

    # Service URLs
    audio_intelligence_url: str = _url_field("http://localhost:8101", "AUDIO_INTELLIGENCE_URL")
    careplan_recommender_url: str = _url_field("http://localhost:8100", "CAREPLAN_RECOMMENDER_URL")
    rag_embeddings_url: str = _url_field("http://localhost:8103", "RAG_EMBEDDINGS_URL")
    pdf_parser_url: str = _url_field("http://localhost:8102", "PDF_PARSER_URL")

    # Timeouts and retries
    service_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    service_max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)
    retry_jitter_factor: float = Field(default=0.25, ge=0, le=1)

    # Circuit breaker
    circuit_failure_threshold: int = Field(default=5, ge=1)
    circuit_reset_timeout: float = Field(default=30.0, gt=0)

    # Auth
    service_auth_secret: Optional[SecretStr] = None
    service_auth_issuer: str = DEFAULT_ISSUER

    # Behaviour
    enable_fallbacks: bool = True
    allowed_icd10_codes: list[str] = Field(default_factory=list)
    cache_ttl_seconds: int = Field(default=PHI_CACHE_MAX_TTL_SECONDS, ge=0)
    redis_url: Optional[str] = None
    max_body_bytes: int = Field(default=MAX_JSON_BODY_BYTES, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="ML_",
        env_file=".env",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.service_max_retries,
            base_delay=self.retry_base_delay,
            max_delay=max(self.retry_max_delay, self.retry_base_delay),
            jitter_factor=self.retry_jitter_factor,
        )

    def circuit_breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.circuit_failure_threshold,
            reset_timeout=self.circuit_reset_timeout,
        )

    def service_auth_config(self) -> Optional[ServiceAuthConfig]:
        """Signing config, or None when no secret is configured."""
        if self.service_auth_secret is None:
            return None
        return ServiceAuthConfig(
            secret=self.service_auth_secret.get_secret_value(),
            issuer=self.service_auth_issuer,
        )

    def url_for(self, service: str) -> str:
        """Base URL for a service name such as ``rag-embeddings``."""
        attr = f"{service.replace('-', '_')}_url"
        try:
            return getattr(self, attr)
        except AttributeError:
            raise KeyError(f"Unknown ML service: {service}") from None
