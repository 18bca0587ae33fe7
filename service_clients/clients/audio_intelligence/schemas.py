"""Audio intelligence request/response models."""

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from service_clients.clients.wire import WireModel

FALLBACK_DISCLAIMER = "Service unavailable - requires manual clinical review"


class NLUTier(str, Enum):
    """NLU processing tiers."""

    AUTO = "AUTO"
    TIER1 = "TIER1"
    TIER2 = "TIER2"
    TIER3 = "TIER3"


class TranscriptionStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RedFlagSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# =============================================================================
# Requests
# =============================================================================


class SpeakerSegment(WireModel):
    speaker: str
    text: str
    start_time: Optional[float] = None
    end_time: Optional[float] = None


class ExtractionRequest(WireModel):
    """Entity extraction from one transcript (max 100KB of text)."""

    transcript_text: str
    transcript_id: Optional[str] = None
    encounter_id: Optional[str] = None
    force_tier: Optional[NLUTier] = None
    speaker_segments: Optional[list[SpeakerSegment]] = None
    run_patterns: Optional[bool] = None


class BatchExtractionRequest(WireModel):
    transcripts: list[ExtractionRequest]
    max_concurrent: Optional[int] = Field(default=None, ge=1, le=20)


class TranscriptionRequest(WireModel):
    """Async speech-to-text job (audio URI: gs://, s3://, https://)."""

    audio_uri: str
    transcription_id: str
    patient_id: str
    encounter_id: Optional[str] = None
    enable_diarization: Optional[bool] = None
    speaker_count: Optional[int] = None
    vocabulary_hints: Optional[list[str]] = None
    run_ner: Optional[bool] = None
    callback_url: Optional[str] = None


# =============================================================================
# Responses
# =============================================================================


class EntityResponse(WireModel):
    text: str
    type: str
    snomed_code: Optional[str] = None
    snomed_display: Optional[str] = None
    confidence: float = 0.0
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None
    negated: Optional[bool] = None
    attributes: Optional[dict[str, Any]] = None


class PatternMatchResponse(WireModel):
    pattern_name: str
    category: str
    matched_text: str
    confidence: float = 0.0
    data: Optional[dict[str, Any]] = None


class RedFlagResponse(WireModel):
    severity: RedFlagSeverity
    description: str
    source_text: Optional[str] = None
    recommended_action: Optional[str] = None
    related_entity: Optional[EntityResponse] = None


class ExtractionResponse(WireModel):
    symptoms: list[EntityResponse] = Field(default_factory=list)
    medications: list[EntityResponse] = Field(default_factory=list)
    vitals: list[EntityResponse] = Field(default_factory=list)
    red_flags: list[RedFlagResponse] = Field(default_factory=list)
    pattern_matches: list[PatternMatchResponse] = Field(default_factory=list)
    nlu_tier: NLUTier = NLUTier.AUTO
    processing_time_seconds: float = 0.0
    estimated_cost_usd: float = 0.0
    has_red_flags: bool = False
    disclaimer: str = ""
    requires_manual_review: bool = False


class BatchExtractionResponse(WireModel):
    results: list[ExtractionResponse] = Field(default_factory=list)
    total_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_cost_usd: float = 0.0
    total_processing_time_seconds: float = 0.0
    requires_manual_review: bool = False


class TranscriptSegment(WireModel):
    text: str
    speaker: Optional[str] = None
    start_time: float = 0.0
    end_time: float = 0.0
    confidence: float = 0.0


class TranscriptionResponse(WireModel):
    transcription_id: str
    status: TranscriptionStatus
    full_text: Optional[str] = None
    audio_duration_seconds: Optional[float] = None
    confidence_score: Optional[float] = None
    segments: list[TranscriptSegment] = Field(default_factory=list)
    entities: Optional[list[EntityResponse]] = None
    processing_time_seconds: Optional[float] = None
    error_message: Optional[str] = None


def fallback_extraction_response() -> ExtractionResponse:
    """Degraded extraction result that forces manual review."""
    return ExtractionResponse(
        nlu_tier=NLUTier.AUTO,
        has_red_flags=True,
        disclaimer=FALLBACK_DISCLAIMER,
        red_flags=[
            RedFlagResponse(
                severity=RedFlagSeverity.MEDIUM,
                description="Entity extraction service unavailable",
                recommended_action="Manual clinical review required",
            )
        ],
        requires_manual_review=True,
    )
