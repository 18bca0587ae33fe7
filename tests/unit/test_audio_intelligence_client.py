"""
Unit tests for AudioIntelligenceClient.
"""
import httpx
import pytest

from service_clients.clients.audio_intelligence import (
    AudioIntelligenceClient,
    BatchExtractionRequest,
    ExtractionRequest,
    SpeakerSegment,
    TranscriptionRequest,
)
from service_clients.clients.audio_intelligence.schemas import (
    FALLBACK_DISCLAIMER,
    NLUTier,
    RedFlagSeverity,
    TranscriptionStatus,
)
from service_clients.clients.base import RequestOptions
from service_clients.errors import ServiceTimeoutError, UpstreamUnavailableError, ValidationError

EXTRACTION = {
    "symptoms": [{"text": "chest pain", "type": "SYMPTOM", "snomed_code": "29857009", "confidence": 0.94}],
    "medications": [],
    "vitals": [{"text": "BP 150/95", "type": "VITAL", "confidence": 0.9, "attributes": {"systolic": 150}}],
    "red_flags": [
        {"severity": "HIGH", "description": "Possible cardiac event", "recommended_action": "Escalate to provider"}
    ],
    "pattern_matches": [],
    "nlu_tier": "TIER2",
    "processing_time_seconds": 0.42,
    "estimated_cost_usd": 0.001,
    "has_red_flags": True,
    "disclaimer": "Decision support only",
}


@pytest.fixture
def audio(make_client):
    def _make(handler, **kwargs):
        return make_client(handler, cls=AudioIntelligenceClient, **kwargs)

    return _make


class TestExtract:
    """Tests for single-transcript extraction."""

    async def test_parses_response(self, audio):
        client, recorder = audio(lambda request: httpx.Response(200, json=EXTRACTION))
        result = await client.extract(ExtractionRequest(transcript_text="Patient reports chest pain"))

        assert recorder.requests[0].url.path == "/api/v1/extract"
        assert result.symptoms[0].snomed_code == "29857009"
        assert result.vitals[0].attributes == {"systolic": 150}
        assert result.red_flags[0].severity == RedFlagSeverity.HIGH
        assert result.nlu_tier == NLUTier.TIER2
        assert result.requires_manual_review is False

    async def test_request_sent_snake_case(self, audio):
        client, recorder = audio(lambda request: httpx.Response(200, json=EXTRACTION))
        await client.extract(
            ExtractionRequest.from_internal({"transcriptText": "headache", "encounterId": "enc-1", "forceTier": "TIER1"})
        )

        body = recorder.json_body()
        assert body == {"transcript_text": "headache", "encounter_id": "enc-1", "force_tier": "TIER1"}

    async def test_control_characters_stripped(self, audio):
        client, recorder = audio(lambda request: httpx.Response(200, json=EXTRACTION))
        await client.extract(
            ExtractionRequest(
                transcript_text="pain\x00 in\x07 chest\n",
                speaker_segments=[SpeakerSegment(speaker="patient", text="it\x1b hurts")],
            )
        )

        body = recorder.json_body()
        assert body["transcript_text"] == "pain in chest\n"
        assert body["speaker_segments"][0]["text"] == "it hurts"

    @pytest.mark.parametrize("text", ["", "   \n\t"])
    async def test_empty_transcript_rejected(self, audio, text):
        client, recorder = audio(lambda request: httpx.Response(200, json=EXTRACTION))
        with pytest.raises(ValidationError, match="required"):
            await client.extract(ExtractionRequest(transcript_text=text))
        assert recorder.calls == 0

    async def test_oversized_transcript_rejected(self, audio):
        client, recorder = audio(lambda request: httpx.Response(200, json=EXTRACTION))
        with pytest.raises(ValidationError, match="100KB"):
            await client.extract(ExtractionRequest(transcript_text="é" * 60_000))
        assert recorder.calls == 0

    async def test_fallback_when_unavailable(self, audio):
        client, _ = audio(lambda request: httpx.Response(503))
        result = await client.extract(ExtractionRequest(transcript_text="cough"))

        assert result.requires_manual_review is True
        assert result.has_red_flags is True
        assert result.disclaimer == FALLBACK_DISCLAIMER
        assert result.symptoms == []
        assert result.red_flags[0].severity == RedFlagSeverity.MEDIUM
        assert result.red_flags[0].recommended_action == "Manual clinical review required"

    async def test_timeout_without_fallback_raises(self, audio):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client, _ = audio(handler, enable_fallbacks=False)
        with pytest.raises(ServiceTimeoutError):
            await client.extract(ExtractionRequest(transcript_text="cough"))

    async def test_upstream_rejection_not_masked(self, audio):
        client, _ = audio(lambda request: httpx.Response(422, json={"detail": "bad tier"}))
        with pytest.raises(ValidationError):
            await client.extract(ExtractionRequest(transcript_text="cough"))


class TestExtractBatch:
    """Tests for batch extraction."""

    def _batch(self, count):
        return BatchExtractionRequest(
            transcripts=[ExtractionRequest(transcript_text=f"note {n}") for n in range(count)],
            max_concurrent=5,
        )

    async def test_batch_success(self, audio):
        payload = {"results": [EXTRACTION, EXTRACTION], "total_count": 2, "success_count": 2, "error_count": 0}
        client, recorder = audio(lambda request: httpx.Response(200, json=payload))

        result = await client.extract_batch(self._batch(2))

        assert recorder.requests[0].url.path == "/api/v1/extract/batch"
        assert recorder.json_body()["max_concurrent"] == 5
        assert result.success_count == 2
        assert len(result.results) == 2

    async def test_batch_default_timeout(self, audio):
        client, recorder = audio(lambda request: httpx.Response(200, json={"results": []}))
        await client.extract_batch(self._batch(1))
        assert recorder.requests[0].extensions["timeout"]["read"] == 120

    async def test_batch_explicit_timeout_kept(self, audio):
        client, recorder = audio(lambda request: httpx.Response(200, json={"results": []}))
        await client.extract_batch(self._batch(1), options=RequestOptions(timeout=7))
        assert recorder.requests[0].extensions["timeout"]["read"] == 7

    async def test_batch_limits(self, audio):
        client, recorder = audio(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ValidationError):
            await client.extract_batch(BatchExtractionRequest(transcripts=[]))
        with pytest.raises(ValidationError, match="Maximum 100"):
            await client.extract_batch(self._batch(101))
        assert recorder.calls == 0

    async def test_batch_fallback(self, audio):
        client, _ = audio(lambda request: httpx.Response(502))
        result = await client.extract_batch(self._batch(3))

        assert len(result.results) == 3
        assert result.total_count == 3
        assert result.error_count == 3
        assert result.success_count == 0
        assert result.requires_manual_review is True


class TestTranscription:
    """Tests for async transcription jobs."""

    def _request(self, **overrides):
        values = {"audio_uri": "gs://bucket/visit.wav", "transcription_id": "tx-1", "patient_id": "p-1"}
        values.update(overrides)
        return TranscriptionRequest(**values)

    async def test_start(self, audio):
        client, recorder = audio(
            lambda request: httpx.Response(200, json={"transcription_id": "tx-1", "status": "PROCESSING"})
        )
        result = await client.start_transcription(self._request(enable_diarization=True))

        assert recorder.requests[0].url.path == "/api/v1/transcribe"
        assert recorder.json_body()["enable_diarization"] is True
        assert result.status == TranscriptionStatus.PROCESSING

    async def test_start_requires_uri(self, audio):
        client, _ = audio(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ValidationError, match="audio_uri"):
            await client.start_transcription(self._request(audio_uri=""))

    async def test_start_has_no_fallback(self, audio):
        client, _ = audio(lambda request: httpx.Response(503))
        with pytest.raises(UpstreamUnavailableError):
            await client.start_transcription(self._request())

    async def test_status(self, audio):
        payload = {
            "transcription_id": "tx-1",
            "status": "COMPLETED",
            "full_text": "hello",
            "segments": [{"text": "hello", "speaker": "S1", "start_time": 0.0, "end_time": 1.2, "confidence": 0.97}],
        }
        client, recorder = audio(lambda request: httpx.Response(200, json=payload))
        result = await client.get_transcription_status("tx-1")

        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.path == "/api/v1/transcribe/tx-1"
        assert result.status == TranscriptionStatus.COMPLETED
        assert result.segments[0].end_time == 1.2

    @pytest.mark.parametrize("bad_id", ["", "../admin"])
    async def test_status_rejects_bad_id(self, audio, bad_id):
        client, recorder = audio(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ValidationError):
            await client.get_transcription_status(bad_id)
        assert recorder.calls == 0
