"""
Audio Intelligence client.

Clinical entity extraction from transcripts and async speech-to-text
with NER. Transcript text is stripped of control characters before it
leaves the process.
"""

import logging
from dataclasses import replace
from typing import Optional

from service_clients.clients.audio_intelligence.schemas import (
    BatchExtractionRequest,
    BatchExtractionResponse,
    ExtractionRequest,
    ExtractionResponse,
    TranscriptionRequest,
    TranscriptionResponse,
    fallback_extraction_response,
)
from service_clients.clients.base import RequestOptions, ResilientClient
from service_clients.constants import (
    AUDIO_INTELLIGENCE,
    BATCH_EXTRACTION_TIMEOUT,
    MAX_BATCH_TRANSCRIPTS,
    MAX_TRANSCRIPT_BYTES,
)
from service_clients.errors import ValidationError
from service_clients.security.content_sanitizer import sanitize_text

logger = logging.getLogger(__name__)


class AudioIntelligenceClient(ResilientClient):
    """Client for the audio intelligence service."""

    def __init__(self, base_url: str, **kwargs):
        super().__init__(AUDIO_INTELLIGENCE, base_url, **kwargs)

    async def extract(
        self,
        request: ExtractionRequest,
        options: Optional[RequestOptions] = None,
    ) -> ExtractionResponse:
        """
        Extract clinical entities from one transcript.

        Falls back to an empty, review-flagged result when the service is
        unavailable and fallbacks are enabled.

        Raises:
            ValidationError: Empty or oversized transcript
        """
        clean = self._prepare(request)
        return await self.post(
            "/api/v1/extract",
            json_body=clean.to_wire(),
            options=options,
            parse=ExtractionResponse.from_wire,
            fallback=fallback_extraction_response,
        )

    async def extract_batch(
        self,
        request: BatchExtractionRequest,
        options: Optional[RequestOptions] = None,
    ) -> BatchExtractionResponse:
        """Extract entities from 1-100 transcripts in one call (120s timeout by default)."""
        if not request.transcripts:
            raise ValidationError("At least one transcript is required", service=self.service_name)
        if len(request.transcripts) > MAX_BATCH_TRANSCRIPTS:
            raise ValidationError(
                f"Maximum {MAX_BATCH_TRANSCRIPTS} transcripts per batch",
                service=self.service_name,
                details={"count": len(request.transcripts)},
            )
        cleaned = [self._prepare(t) for t in request.transcripts]
        batch = request.model_copy(update={"transcripts": cleaned})

        opts = options or RequestOptions()
        if opts.timeout is None:
            opts = replace(opts, timeout=BATCH_EXTRACTION_TIMEOUT)

        count = len(cleaned)

        def fallback() -> BatchExtractionResponse:
            return BatchExtractionResponse(
                results=[fallback_extraction_response() for _ in range(count)],
                total_count=count,
                success_count=0,
                error_count=count,
                requires_manual_review=True,
            )

        return await self.post(
            "/api/v1/extract/batch",
            json_body=batch.to_wire(),
            options=opts,
            parse=BatchExtractionResponse.from_wire,
            fallback=fallback,
        )

    async def start_transcription(
        self,
        request: TranscriptionRequest,
        options: Optional[RequestOptions] = None,
    ) -> TranscriptionResponse:
        """Start an async transcription job. No fallback."""
        if not request.audio_uri:
            raise ValidationError("audio_uri is required", service=self.service_name)
        if not request.transcription_id:
            raise ValidationError("transcription_id is required", service=self.service_name)
        return await self.post(
            "/api/v1/transcribe",
            json_body=request.to_wire(),
            options=options,
            parse=TranscriptionResponse.from_wire,
        )

    async def get_transcription_status(
        self,
        transcription_id: str,
        options: Optional[RequestOptions] = None,
    ) -> TranscriptionResponse:
        if not transcription_id or "/" in transcription_id:
            raise ValidationError("Invalid transcription_id", service=self.service_name)
        return await self.get(
            f"/api/v1/transcribe/{transcription_id}",
            options=options,
            parse=TranscriptionResponse.from_wire,
        )

    def _prepare(self, request: ExtractionRequest) -> ExtractionRequest:
        """Validate and sanitize a single extraction request."""
        if not request.transcript_text or not request.transcript_text.strip():
            raise ValidationError("Transcript text is required", service=self.service_name)
        if len(request.transcript_text.encode("utf-8")) > MAX_TRANSCRIPT_BYTES:
            raise ValidationError(
                "Transcript text exceeds maximum length of 100KB",
                service=self.service_name,
                details={"max_bytes": MAX_TRANSCRIPT_BYTES},
            )

        update = {"transcript_text": sanitize_text(request.transcript_text)}
        if request.speaker_segments:
            update["speaker_segments"] = [
                s.model_copy(update={"text": sanitize_text(s.text)}) for s in request.speaker_segments
            ]
        return request.model_copy(update=update)
