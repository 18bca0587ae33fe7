from service_clients.clients.audio_intelligence.client import AudioIntelligenceClient
from service_clients.clients.audio_intelligence.schemas import (
    BatchExtractionRequest,
    BatchExtractionResponse,
    ExtractionRequest,
    ExtractionResponse,
    NLUTier,
    SpeakerSegment,
    TranscriptionRequest,
    TranscriptionResponse,
    TranscriptionStatus,
)

__all__ = [
    "AudioIntelligenceClient",
    "BatchExtractionRequest",
    "BatchExtractionResponse",
    "ExtractionRequest",
    "ExtractionResponse",
    "NLUTier",
    "SpeakerSegment",
    "TranscriptionRequest",
    "TranscriptionResponse",
    "TranscriptionStatus",
]
