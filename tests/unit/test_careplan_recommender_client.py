"""
Unit tests for CarePlanRecommenderClient.

Covers ICD-10 validation, caching and fallback behaviour.
"""
import httpx
import pytest

from service_clients.clients.careplan_recommender import (
    CarePlanRecommenderClient,
    EngineRecommendRequest,
    FullContextRequest,
    PatientDemographics,
    SimpleRecommendRequest,
    TrainingJobStatus,
)
from service_clients.clients.careplan_recommender.client import normalize_icd10
from service_clients.errors import ErrorCode, UpstreamUnavailableError, ValidationError
from service_clients.storage.cache import ResponseCache

RECOMMENDATION = {
    "templates": [
        {
            "template_id": "tpl-dm2",
            "name": "Type 2 Diabetes Management",
            "category": "chronic",
            "condition_codes": ["E11.9"],
            "similarity_score": 0.91,
            "ranking_score": 0.88,
            "confidence": 0.85,
            "match_factors": {"condition_match": 1.0, "lab_match": 0.7},
        }
    ],
    "drafts": [],
    "processing_time_ms": 12.5,
    "model_version": "2024.06",
    "query_mode": "simple",
}


@pytest.fixture
def recommender(make_client):
    def _make(handler, **kwargs):
        return make_client(handler, cls=CarePlanRecommenderClient, **kwargs)

    return _make


def ok(request):
    return httpx.Response(200, json=RECOMMENDATION)


class TestConditionCodeValidation:
    """Tests for ICD-10 format and allowlist checks."""

    @pytest.mark.parametrize("code", ["E11.9", "I10", "e11.65", "Z79.4"])
    def test_valid_codes(self, code):
        CarePlanRecommenderClient("http://r.test").validate_condition_codes([code])

    @pytest.mark.parametrize("code", ["E1", "11.9", "E11.", "E11.12345", "DIABETES", ""])
    def test_invalid_format(self, code):
        client = CarePlanRecommenderClient("http://r.test")
        with pytest.raises(ValidationError) as exc_info:
            client.validate_condition_codes([code])
        assert exc_info.value.error_code == ErrorCode.VALIDATION_INVALID_FORMAT
        assert exc_info.value.details == {"index": 0}

    def test_rejected_input_not_echoed(self):
        client = CarePlanRecommenderClient("http://r.test", allowed_icd10_codes=["E11.9"])
        free_text = "Patient John Smith SSN 123-45-6789"

        with pytest.raises(ValidationError) as exc_info:
            client.validate_condition_codes(["E11.9", free_text])

        error = exc_info.value
        assert error.details == {"index": 1}
        rendered = error.to_api_error().model_dump_json() + str(error) + repr(error)
        assert "123-45-6789" not in rendered
        assert "John Smith" not in rendered

        with pytest.raises(ValidationError) as exc_info:
            client.validate_condition_codes(["I10"])
        assert exc_info.value.details == {"index": 0}
        assert "I10" not in exc_info.value.to_api_error().model_dump_json()

    def test_empty_list(self):
        with pytest.raises(ValidationError, match="At least one"):
            CarePlanRecommenderClient("http://r.test").validate_condition_codes([])

    def test_allowlist_normalizes(self):
        client = CarePlanRecommenderClient("http://r.test", allowed_icd10_codes=["E11.9"])
        client.validate_condition_codes(["e11.9"])
        with pytest.raises(ValidationError, match="allowlist"):
            client.validate_condition_codes(["I10"])

    def test_clearing_allowlist(self):
        client = CarePlanRecommenderClient("http://r.test", allowed_icd10_codes=["E11.9"])
        client.set_allowed_codes([])
        client.validate_condition_codes(["I10"])

    def test_normalize(self):
        assert normalize_icd10("e11.9") == "E119"


class TestRecommend:
    """Tests for recommendation calls."""

    async def test_simple(self, recommender):
        client, recorder = recommender(ok)
        result = await client.recommend(SimpleRecommendRequest(condition_codes=["E11.9"], max_results=3))

        assert recorder.requests[0].url.path == "/api/v1/recommend"
        assert recorder.json_body() == {"condition_codes": ["E11.9"], "max_results": 3, "include_drafts": False}
        assert result.templates[0].template_id == "tpl-dm2"
        assert result.templates[0].match_factors.lab_match == 0.7

    async def test_full_context(self, recommender):
        client, recorder = recommender(ok)
        request = FullContextRequest(
            condition_codes=["E11.9", "I10"],
            lab_values={"4548-4": 8.1},
            demographics=PatientDemographics(age=64, sex="F"),
        )
        await client.recommend_with_context(request)

        body = recorder.json_body()
        assert recorder.requests[0].url.path == "/api/v1/recommend/full"
        assert body["include_drafts"] is True
        assert body["demographics"] == {"age": 64, "sex": "F"}

    async def test_invalid_code_never_sent(self, recommender):
        client, recorder = recommender(ok)
        with pytest.raises(ValidationError):
            await client.recommend(SimpleRecommendRequest(condition_codes=["not-a-code"]))
        assert recorder.calls == 0

    async def test_fallback(self, recommender):
        client, _ = recommender(lambda request: httpx.Response(503))
        result = await client.recommend(SimpleRecommendRequest(condition_codes=["E11.9"]))

        assert result.requires_manual_review is True
        assert result.templates == []
        assert result.model_version == "fallback"

    async def test_engine(self, recommender):
        client, recorder = recommender(ok)
        await client.engine_recommend(EngineRecommendRequest(condition_codes=["E11.9"]))

        body = recorder.json_body()
        assert recorder.requests[0].url.path == "/api/v1/engine/recommend"
        assert body["query_mode"] == "hybrid"
        assert body["enable_personalization"] is True

    async def test_engine_fallback(self, recommender):
        client, _ = recommender(lambda request: httpx.Response(500))
        result = await client.engine_recommend(EngineRecommendRequest(condition_codes=["E11.9"]))
        assert result.query_mode == "fallback"


class TestRecommendCache:
    """Tests for recommendation caching."""

    async def test_second_call_served_from_cache(self, recommender):
        client, recorder = recommender(ok, cache=ResponseCache())
        request = SimpleRecommendRequest(condition_codes=["E11.9"])

        first = await client.recommend(request)
        second = await client.recommend(request)

        assert recorder.calls == 1
        assert second == first

    async def test_modes_cached_separately(self, recommender):
        client, recorder = recommender(ok, cache=ResponseCache())
        await client.recommend(SimpleRecommendRequest(condition_codes=["E11.9"]))
        await client.recommend_with_context(FullContextRequest(condition_codes=["E11.9"]))
        assert recorder.calls == 2

    async def test_fallback_not_cached(self, recommender):
        responses = [httpx.Response(503) for _ in range(3)] + [httpx.Response(200, json=RECOMMENDATION)]

        def handler(request):
            return responses.pop(0)

        client, recorder = recommender(handler, cache=ResponseCache())
        request = SimpleRecommendRequest(condition_codes=["E11.9"])

        degraded = await client.recommend(request)
        fresh = await client.recommend(request)

        assert degraded.requires_manual_review is True
        assert fresh.requires_manual_review is False
        assert recorder.calls == 4

    async def test_invalidate_for_conditions(self, recommender):
        client, recorder = recommender(ok, cache=ResponseCache())
        await client.recommend(SimpleRecommendRequest(condition_codes=["I10", "E11.9"]))
        await client.recommend(SimpleRecommendRequest(condition_codes=["J45"]))

        removed = await client.invalidate_cache_for_conditions(["e11.9", "I10"])
        assert removed == 1

        await client.recommend(SimpleRecommendRequest(condition_codes=["I10", "E11.9"]))
        await client.recommend(SimpleRecommendRequest(condition_codes=["J45"]))
        assert recorder.calls == 3

    async def test_invalidate_without_cache(self, recommender):
        client, _ = recommender(ok)
        assert await client.invalidate_cache_for_conditions(["I10"]) == 0


class TestDraftsAndTraining:
    """Tests for draft generation and training jobs."""

    async def test_generate_draft(self, recommender):
        payload = dict(RECOMMENDATION, drafts=[{"title": "Diabetes plan", "goals": [{"description": "A1c < 7%"}]}])
        client, recorder = recommender(lambda request: httpx.Response(200, json=payload))
        context = FullContextRequest(condition_codes=["E11.9"], medication_codes=["860975"], risk_factors=["obesity"])

        result = await client.generate_draft(["tpl-dm2"], context)

        body = recorder.json_body()
        assert recorder.requests[0].url.path == "/api/v1/draft"
        assert body["template_ids"] == ["tpl-dm2"]
        assert body["context"] == {"condition_codes": ["E11.9"], "risk_factors": ["obesity"]}
        assert result.drafts[0].goals[0].priority == "MEDIUM"

    async def test_generate_draft_requires_templates(self, recommender):
        client, _ = recommender(ok)
        with pytest.raises(ValidationError):
            await client.generate_draft([], FullContextRequest(condition_codes=["E11.9"]))

    async def test_generate_draft_has_no_fallback(self, recommender):
        client, _ = recommender(lambda request: httpx.Response(503))
        with pytest.raises(UpstreamUnavailableError):
            await client.generate_draft(["tpl-dm2"], FullContextRequest(condition_codes=["E11.9"]))

    async def test_training_job(self, recommender):
        payload = {"id": "job-7", "model_type": "ranker", "status": "RUNNING", "progress_percent": 42.0}
        client, recorder = recommender(lambda request: httpx.Response(200, json=payload))

        job = await client.get_training_job("job-7")

        assert recorder.requests[0].url.path == "/api/v1/training/job-7"
        assert job.status == TrainingJobStatus.RUNNING
        assert job.progress_percent == 42.0
