"""
Care Plan Recommender client.

Template recommendations and draft care plans from ICD-10 diagnosis
codes plus optional clinical context. Successful recommendations are
cached (PHI TTL cap applies); fallback responses never are.
"""

import logging
import re
from typing import Iterable, Optional

from service_clients.clients.base import RequestOptions, ResilientClient
from service_clients.clients.careplan_recommender.schemas import (
    DraftContext,
    DraftRequest,
    EngineRecommendRequest,
    FullContextRequest,
    RecommendResponse,
    SimpleRecommendRequest,
    TrainingJobResponse,
    fallback_recommend_response,
)
from service_clients.constants import CAREPLAN_RECOMMENDER
from service_clients.errors import ErrorCode, ValidationError
from service_clients.storage.cache import ResponseCache, make_cache_key

logger = logging.getLogger(__name__)

ICD10_PATTERN = re.compile(r"^[A-Z]\d{2}(\.\d{1,4})?$", re.IGNORECASE)


def normalize_icd10(code: str) -> str:
    """Uppercase and drop separators: ``e11.9`` -> ``E119``."""
    return re.sub(r"[.\-\s]", "", code).upper()


class CarePlanRecommenderClient(ResilientClient):
    """Client for the care-plan recommender service."""

    def __init__(
        self,
        base_url: str,
        *,
        cache: Optional[ResponseCache] = None,
        cache_ttl_seconds: int = 300,
        allowed_icd10_codes: Optional[Iterable[str]] = None,
        **kwargs,
    ):
        super().__init__(CAREPLAN_RECOMMENDER, base_url, **kwargs)
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self._allowed_codes: Optional[set[str]] = None
        if allowed_icd10_codes:
            self.set_allowed_codes(allowed_icd10_codes)

    def set_allowed_codes(self, codes: Iterable[str]) -> None:
        """Restrict accepted diagnosis codes to an allowlist (empty clears it)."""
        normalized = {normalize_icd10(c) for c in codes}
        self._allowed_codes = normalized or None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def recommend(
        self,
        request: SimpleRecommendRequest,
        options: Optional[RequestOptions] = None,
    ) -> RecommendResponse:
        """Recommend templates for a set of condition codes."""
        self.validate_condition_codes(request.condition_codes)
        return await self._cached_recommend("simple", "/api/v1/recommend", request, options)

    async def recommend_with_context(
        self,
        request: FullContextRequest,
        options: Optional[RequestOptions] = None,
    ) -> RecommendResponse:
        """Recommend templates using demographics, medications and labs as well."""
        self.validate_condition_codes(request.condition_codes)
        return await self._cached_recommend("full", "/api/v1/recommend/full", request, options)

    async def engine_recommend(
        self,
        request: EngineRecommendRequest,
        options: Optional[RequestOptions] = None,
    ) -> RecommendResponse:
        """Three-layer engine recommendation. Not cached (personalized)."""
        self.validate_condition_codes(request.condition_codes)
        return await self.post(
            "/api/v1/engine/recommend",
            json_body=request.to_wire(),
            options=options,
            parse=RecommendResponse.from_wire,
            fallback=fallback_recommend_response,
        )

    async def generate_draft(
        self,
        template_ids: list[str],
        context: FullContextRequest | DraftContext,
        options: Optional[RequestOptions] = None,
    ) -> RecommendResponse:
        """Generate draft care plans from chosen templates. No fallback."""
        if not template_ids:
            raise ValidationError("At least one template id is required", service=self.service_name)
        self.validate_condition_codes(context.condition_codes)
        if not isinstance(context, DraftContext):
            context = DraftContext.model_validate(context.model_dump(include=set(DraftContext.model_fields)))
        body = DraftRequest(template_ids=template_ids, context=context)
        return await self.post(
            "/api/v1/draft",
            json_body=body.to_wire(),
            options=options,
            parse=RecommendResponse.from_wire,
        )

    async def get_training_job(self, job_id: str, options: Optional[RequestOptions] = None) -> TrainingJobResponse:
        if not job_id or "/" in job_id:
            raise ValidationError("Invalid training job id", service=self.service_name)
        return await self.get(
            f"/api/v1/training/{job_id}",
            options=options,
            parse=TrainingJobResponse.from_wire,
        )

    async def invalidate_cache_for_conditions(self, condition_codes: list[str]) -> int:
        """Drop cached recommendations for exactly this set of condition codes."""
        if self.cache is None:
            return 0
        return await self.cache.invalidate_pattern(f"recommend:*:{_codes_key(condition_codes)}:*")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def validate_condition_codes(self, codes: list[str]) -> None:
        """
        Check ICD-10 format and the allowlist.

        Raises:
            ValidationError: Empty list, malformed code or code not allowed
        """
        if not codes:
            raise ValidationError("At least one condition code is required", service=self.service_name)

        for index, code in enumerate(codes):
            if not isinstance(code, str) or not ICD10_PATTERN.match(code.strip()):
                raise ValidationError(
                    "Invalid ICD-10 code format",
                    service=self.service_name,
                    error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                    details={"index": index},
                )
            if self._allowed_codes is not None and normalize_icd10(code) not in self._allowed_codes:
                raise ValidationError(
                    "ICD-10 code not in allowlist",
                    service=self.service_name,
                    details={"index": index},
                )

    async def _cached_recommend(
        self,
        mode: str,
        path: str,
        request: SimpleRecommendRequest | FullContextRequest,
        options: Optional[RequestOptions],
    ) -> RecommendResponse:
        body = request.to_wire()
        key = make_cache_key(f"recommend:{mode}:{_codes_key(request.condition_codes)}", body)

        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug("Recommendation cache hit (%s)", mode)
                return RecommendResponse.from_wire(cached)

        result: RecommendResponse = await self.post(
            path,
            json_body=body,
            options=options,
            parse=RecommendResponse.from_wire,
            fallback=fallback_recommend_response,
        )

        if self.cache is not None and not result.requires_manual_review:
            await self.cache.set(key, result.to_wire(), ttl=self.cache_ttl_seconds, contains_phi=True)
        return result


def _codes_key(codes: list[str]) -> str:
    return ",".join(sorted(normalize_icd10(c) for c in codes))
