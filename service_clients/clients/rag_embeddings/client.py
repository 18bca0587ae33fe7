"""
RAG Embeddings client.

768-dimension embeddings for free text, patient context, guidelines and
care-plan templates, plus vector similarity search. Embeddings are
cached when a cache is configured; raw-text vectors use the full TTL,
patient-context vectors the PHI-capped TTL.
"""

import logging
from dataclasses import replace
from typing import Optional

from service_clients.clients.base import RequestOptions, ResilientClient
from service_clients.clients.rag_embeddings.schemas import (
    BatchEmbeddingResponse,
    BatchItemEmbeddingResponse,
    EmbeddingResponse,
    EmbeddingType,
    GuidelineEmbedRequest,
    PatientContextRequest,
    SearchTable,
    SimilaritySearchRequest,
    SimilaritySearchResponse,
    TemplateEmbedRequest,
)
from service_clients.constants import (
    BATCH_EMBEDDING_TIMEOUT,
    CATALOG_EMBEDDING_TIMEOUT,
    EMBEDDING_DIMENSION,
    RAG_EMBEDDINGS,
)
from service_clients.errors import ServiceClientError, UpstreamUnavailableError, ValidationError
from service_clients.storage.cache import ResponseCache, make_cache_key

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 10_000
MAX_GUIDELINES_PER_BATCH = 1000
MAX_TEMPLATES_PER_BATCH = 500
CONTEXT_SEARCH_MIN_SIMILARITY = 0.6


def _with_default_timeout(options: Optional[RequestOptions], timeout: float) -> RequestOptions:
    opts = options or RequestOptions()
    return opts if opts.timeout is not None else replace(opts, timeout=timeout)


class RagEmbeddingsClient(ResilientClient):
    """Client for the RAG embeddings service."""

    def __init__(
        self,
        base_url: str,
        *,
        cache: Optional[ResponseCache] = None,
        cache_ttl_seconds: int = 3600,
        **kwargs,
    ):
        super().__init__(RAG_EMBEDDINGS, base_url, **kwargs)
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def embed_text(self, text: str, options: Optional[RequestOptions] = None) -> list[float]:
        """Embed 1-10K characters of free text."""
        if not text or not text.strip():
            raise ValidationError("Text is required", service=self.service_name)
        if len(text) > MAX_TEXT_CHARS:
            raise ValidationError(
                f"Text exceeds {MAX_TEXT_CHARS} characters",
                service=self.service_name,
                details={"max_chars": MAX_TEXT_CHARS},
            )

        key = make_cache_key(f"rag:{EmbeddingType.RAW_TEXT.value}", text)
        cached = await self._cache_get(key)
        if cached is not None:
            return cached

        result: EmbeddingResponse = await self.post(
            "/api/v1/embed/text",
            json_body={"text": text},
            options=options,
            parse=EmbeddingResponse.from_wire,
        )
        await self._cache_set(key, result.embedding, contains_phi=False)
        return result.embedding

    async def embed_patient_context(
        self,
        context: PatientContextRequest,
        options: Optional[RequestOptions] = None,
    ) -> list[float]:
        """Embed a patient's clinical context."""
        if not context.condition_codes:
            raise ValidationError("At least one condition code is required", service=self.service_name)

        body = context.to_wire()
        key = make_cache_key(f"rag:{EmbeddingType.PATIENT_CONTEXT.value}", body)
        cached = await self._cache_get(key)
        if cached is not None:
            return cached

        result: EmbeddingResponse = await self.post(
            "/api/v1/embed/patient-context",
            json_body=body,
            options=options,
            parse=EmbeddingResponse.from_wire,
        )
        await self._cache_set(key, result.embedding, contains_phi=True)
        return result.embedding

    async def embed_batch(
        self,
        texts: list[str],
        embedding_type: EmbeddingType = EmbeddingType.RAW_TEXT,
        options: Optional[RequestOptions] = None,
    ) -> list[list[float]]:
        """
        Embed many texts, only sending the ones not already cached.

        Returns:
            One vector per input text, in input order
        """
        if not texts:
            return []
        for text in texts:
            if not text or len(text) > MAX_TEXT_CHARS:
                raise ValidationError(
                    f"Each text must be 1-{MAX_TEXT_CHARS} characters",
                    service=self.service_name,
                )

        results: list[Optional[list[float]]] = []
        missing: list[int] = []
        for i, text in enumerate(texts):
            cached = await self._cache_get(make_cache_key(f"rag:{embedding_type.value}", text))
            results.append(cached)
            if cached is None:
                missing.append(i)

        if missing:
            uncached = [texts[i] for i in missing]
            response: BatchEmbeddingResponse = await self.post(
                "/api/v1/embed/batch",
                json_body={"texts": uncached, "type": embedding_type.value},
                options=_with_default_timeout(options, BATCH_EMBEDDING_TIMEOUT),
                parse=BatchEmbeddingResponse.from_wire,
            )
            if len(response.embeddings) != len(uncached):
                raise UpstreamUnavailableError(
                    "Batch embedding count mismatch",
                    service=self.service_name,
                    code="EINVALIDRESPONSE",
                    details={"expected": len(uncached), "received": len(response.embeddings)},
                )
            phi = embedding_type == EmbeddingType.PATIENT_CONTEXT
            for index, text, vector in zip(missing, uncached, response.embeddings):
                results[index] = vector
                await self._cache_set(make_cache_key(f"rag:{embedding_type.value}", text), vector, contains_phi=phi)

        return results  # type: ignore[return-value]

    async def embed_guidelines(
        self,
        guidelines: list[GuidelineEmbedRequest],
        options: Optional[RequestOptions] = None,
    ) -> BatchItemEmbeddingResponse:
        """Embed 1-1000 guidelines (120s timeout by default)."""
        if not guidelines or len(guidelines) > MAX_GUIDELINES_PER_BATCH:
            raise ValidationError(
                f"Between 1 and {MAX_GUIDELINES_PER_BATCH} guidelines are required",
                service=self.service_name,
            )
        return await self.post(
            "/api/v1/embed/guidelines",
            json_body={"guidelines": [g.to_wire() for g in guidelines]},
            options=_with_default_timeout(options, CATALOG_EMBEDDING_TIMEOUT),
            parse=BatchItemEmbeddingResponse.from_wire,
        )

    async def embed_templates(
        self,
        templates: list[TemplateEmbedRequest],
        options: Optional[RequestOptions] = None,
    ) -> BatchItemEmbeddingResponse:
        """Embed 1-500 care-plan templates (120s timeout by default)."""
        if not templates or len(templates) > MAX_TEMPLATES_PER_BATCH:
            raise ValidationError(
                f"Between 1 and {MAX_TEMPLATES_PER_BATCH} templates are required",
                service=self.service_name,
            )
        return await self.post(
            "/api/v1/embed/templates",
            json_body={"templates": [t.to_wire() for t in templates]},
            options=_with_default_timeout(options, CATALOG_EMBEDDING_TIMEOUT),
            parse=BatchItemEmbeddingResponse.from_wire,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        request: SimilaritySearchRequest,
        options: Optional[RequestOptions] = None,
    ) -> SimilaritySearchResponse:
        """Vector similarity search over guidelines or templates."""
        if len(request.query_embedding) != EMBEDDING_DIMENSION:
            raise ValidationError(
                f"Query embedding must have {EMBEDDING_DIMENSION} dimensions",
                service=self.service_name,
                details={"dimension": len(request.query_embedding)},
            )
        return await self.post(
            "/api/v1/search",
            json_body=request.to_wire(),
            options=options,
            parse=SimilaritySearchResponse.from_wire,
        )

    async def search_similar_templates(
        self,
        context: PatientContextRequest,
        limit: int = 10,
        options: Optional[RequestOptions] = None,
    ) -> SimilaritySearchResponse:
        """Care-plan templates similar to a patient's context."""
        return await self._search_for_context(context, "care_plan_templates", limit, options)

    async def search_similar_guidelines(
        self,
        context: PatientContextRequest,
        limit: int = 10,
        options: Optional[RequestOptions] = None,
    ) -> SimilaritySearchResponse:
        """Guidelines similar to a patient's context."""
        return await self._search_for_context(context, "guidelines", limit, options)

    async def _search_for_context(
        self,
        context: PatientContextRequest,
        table: SearchTable,
        limit: int,
        options: Optional[RequestOptions],
    ) -> SimilaritySearchResponse:
        # Embed and search are one logical operation; fall back if either is unavailable
        try:
            embedding = await self.embed_patient_context(context, options)
            return await self.search(
                SimilaritySearchRequest(
                    query_embedding=embedding,
                    table=table,
                    limit=limit,
                    min_similarity=CONTEXT_SEARCH_MIN_SIMILARITY,
                ),
                options,
            )
        except ServiceClientError as exc:
            allow = options.allow_fallback if options is not None else True
            if not (exc.availability_failure and self.fallback_enabled and allow):
                raise
            logger.warning(
                "%s %s search unavailable (%s); returning empty results",
                self.service_name,
                table,
                exc.error_code.value,
            )
            return SimilaritySearchResponse(requires_manual_review=True)

    # ------------------------------------------------------------------
    # Cache helpers
    # ------------------------------------------------------------------

    async def _cache_get(self, key: str) -> Optional[list[float]]:
        if self.cache is None:
            return None
        return await self.cache.get(key)

    async def _cache_set(self, key: str, vector: list[float], contains_phi: bool) -> None:
        if self.cache is not None:
            await self.cache.set(key, vector, ttl=self.cache_ttl_seconds, contains_phi=contains_phi)
