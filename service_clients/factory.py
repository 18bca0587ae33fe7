"""
ML client factory.

Owns one client per downstream service, created lazily from settings,
and aggregates their health. Construct one factory per application and
inject it where needed; there is no module-level instance.

Usage:
    factory = MLClientFactory(MLClientSettings())
    recommender = factory.recommender()
    health = await factory.check_all_services()
    await factory.close()
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

from service_clients.clients.audio_intelligence.client import AudioIntelligenceClient
from service_clients.clients.base import ResilientClient
from service_clients.clients.careplan_recommender.client import CarePlanRecommenderClient
from service_clients.clients.pdf_parser.client import PdfParserClient
from service_clients.clients.rag_embeddings.client import RagEmbeddingsClient
from service_clients.config import MLClientSettings
from service_clients.constants import (
    ALL_SERVICES,
    AUDIO_INTELLIGENCE,
    CAREPLAN_RECOMMENDER,
    PDF_PARSER,
    RAG_EMBEDDINGS,
)
from service_clients.health import AggregatedHealthStatus, HealthStatus, ServiceHealthStatus, aggregate_health
from service_clients.resilience.circuit_breaker import CircuitState
from service_clients.security.service_auth import ServiceTokenSigner
from service_clients.storage.cache import CacheConfig, ResponseCache

logger = logging.getLogger(__name__)


class MLClientFactory:
    """Creates and manages ML service clients."""

    def __init__(
        self,
        settings: Optional[MLClientSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self.settings = settings or MLClientSettings()
        self._transport = transport
        self._clients: dict[str, ResilientClient] = {}
        self._fallbacks_enabled = self.settings.enable_fallbacks

        auth_config = self.settings.service_auth_config()
        self._signer = ServiceTokenSigner(auth_config) if auth_config is not None else None

        if cache is None:
            cache = ResponseCache(
                CacheConfig(
                    redis_url=self.settings.redis_url,
                    default_ttl_seconds=self.settings.cache_ttl_seconds,
                )
            )
        self.cache = cache

    # ------------------------------------------------------------------
    # Client accessors
    # ------------------------------------------------------------------

    def _common_kwargs(self, timeout: Optional[float] = None) -> dict:
        return {
            "timeout": timeout or self.settings.service_timeout,
            "retry_config": self.settings.retry_config(),
            "circuit_config": self.settings.circuit_breaker_config(),
            "auth": self._signer,
            "enable_fallbacks": self._fallbacks_enabled,
            "max_body_bytes": self.settings.max_body_bytes,
            "transport": self._transport,
        }

    def audio_intelligence(self) -> AudioIntelligenceClient:
        if AUDIO_INTELLIGENCE not in self._clients:
            self._clients[AUDIO_INTELLIGENCE] = AudioIntelligenceClient(
                self.settings.audio_intelligence_url,
                **self._common_kwargs(),
            )
        return self._clients[AUDIO_INTELLIGENCE]

    def recommender(self) -> CarePlanRecommenderClient:
        if CAREPLAN_RECOMMENDER not in self._clients:
            self._clients[CAREPLAN_RECOMMENDER] = CarePlanRecommenderClient(
                self.settings.careplan_recommender_url,
                cache=self.cache,
                cache_ttl_seconds=self.settings.cache_ttl_seconds,
                allowed_icd10_codes=self.settings.allowed_icd10_codes,
                **self._common_kwargs(),
            )
        return self._clients[CAREPLAN_RECOMMENDER]

    def rag_embeddings(self) -> RagEmbeddingsClient:
        if RAG_EMBEDDINGS not in self._clients:
            self._clients[RAG_EMBEDDINGS] = RagEmbeddingsClient(
                self.settings.rag_embeddings_url,
                cache=self.cache,
                **self._common_kwargs(),
            )
        return self._clients[RAG_EMBEDDINGS]

    def pdf_parser(self) -> PdfParserClient:
        if PDF_PARSER not in self._clients:
            # Uploads get double the standard timeout
            self._clients[PDF_PARSER] = PdfParserClient(
                self.settings.pdf_parser_url,
                **self._common_kwargs(timeout=self.settings.service_timeout * 2),
            )
        return self._clients[PDF_PARSER]

    def get_client(self, service: str) -> ResilientClient:
        """Client by service name, e.g. ``"rag-embeddings"``."""
        accessors = {
            AUDIO_INTELLIGENCE: self.audio_intelligence,
            CAREPLAN_RECOMMENDER: self.recommender,
            RAG_EMBEDDINGS: self.rag_embeddings,
            PDF_PARSER: self.pdf_parser,
        }
        try:
            return accessors[service]()
        except KeyError:
            raise KeyError(f"Unknown ML service: {service}") from None

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_all_services(self) -> AggregatedHealthStatus:
        """
        Probe every service concurrently.

        Always returns one entry per service; a probe that raises is
        reported as UNHEALTHY instead of failing the aggregate.
        """
        started = time.perf_counter()
        results = await asyncio.gather(*(self._check_service(name) for name in ALL_SERVICES))
        duration_ms = (time.perf_counter() - started) * 1000

        health = aggregate_health(list(results), check_duration_ms=duration_ms)
        if health.overall != HealthStatus.HEALTHY:
            logger.warning(
                "ML services %s: degraded=%s",
                health.overall.value,
                ",".join(health.degraded_services),
            )
        return health

    async def _check_service(self, service: str) -> ServiceHealthStatus:
        try:
            return await self.get_client(service).health_check()
        except Exception as exc:
            logger.warning("Health check for %s raised %s", service, type(exc).__name__)
            return ServiceHealthStatus(
                service=service,
                status=HealthStatus.UNHEALTHY,
                circuit_state=self._circuit_state(service),
                last_error=f"Health check failed: {type(exc).__name__}",
            )

    # ------------------------------------------------------------------
    # Circuit / fallback controls
    # ------------------------------------------------------------------

    def _circuit_state(self, service: str) -> CircuitState:
        client = self._clients.get(service)
        return client.get_circuit_state() if client is not None else CircuitState.CLOSED

    def get_circuit_states(self) -> dict[str, CircuitState]:
        """Breaker state per service (CLOSED for clients not yet created)."""
        return {service: self._circuit_state(service) for service in ALL_SERVICES}

    def reset_all_circuits(self) -> None:
        for client in self._clients.values():
            client.reset_circuit()
        logger.info("Reset circuit breakers for %d ML client(s)", len(self._clients))

    def set_fallbacks_enabled(self, enabled: bool) -> None:
        """Toggle fallbacks on existing clients and on clients created later."""
        self._fallbacks_enabled = enabled
        for client in self._clients.values():
            client.set_fallback_enabled(enabled)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
        await self.cache.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
