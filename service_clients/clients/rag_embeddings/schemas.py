"""RAG embeddings request/response models."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from service_clients.clients.wire import WireModel
from service_clients.constants import EMBEDDING_DIMENSION


class EmbeddingType(str, Enum):
    RAW_TEXT = "raw_text"
    PATIENT_CONTEXT = "patient_context"
    GUIDELINE = "guideline"
    TEMPLATE = "template"


SearchTable = Literal["guidelines", "care_plan_templates"]
EvidenceGrade = Literal["A", "B", "C", "D", "I"]
GuidelineSource = Literal["USPSTF", "AHA", "ADA", "AAFP", "CDC", "NIH", "OTHER"]


def _check_dimension(vector: list[float]) -> list[float]:
    if len(vector) != EMBEDDING_DIMENSION:
        raise ValueError(f"expected {EMBEDDING_DIMENSION} dimensions, got {len(vector)}")
    return vector


# =============================================================================
# Requests
# =============================================================================


class PatientContextRequest(WireModel):
    condition_codes: list[str]
    condition_names: Optional[list[str]] = None
    medication_codes: Optional[list[str]] = None
    medication_names: Optional[list[str]] = None
    lab_codes: Optional[list[str]] = None
    lab_names: Optional[list[str]] = None
    symptoms: Optional[list[str]] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)
    sex: Optional[Literal["M", "F"]] = None
    complications: Optional[list[str]] = None
    risk_factors: Optional[list[str]] = None


class GuidelineEmbedRequest(WireModel):
    id: str
    title: str
    category: Optional[str] = None
    summary_text: Optional[str] = None
    applicable_conditions: Optional[list[str]] = None
    applicable_medications: Optional[list[str]] = None
    evidence_grade: Optional[EvidenceGrade] = None
    source: Optional[GuidelineSource] = None
    full_text: Optional[str] = None


class TemplateEmbedRequest(WireModel):
    id: str
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    condition_codes: Optional[list[str]] = None
    goals: Optional[list[str]] = None
    interventions: Optional[list[str]] = None


class SimilaritySearchRequest(WireModel):
    query_embedding: list[float]
    table: SearchTable
    limit: int = Field(default=20, ge=1, le=100)
    min_similarity: float = Field(default=0.7, ge=0, le=1)


# =============================================================================
# Responses
# =============================================================================


class EmbeddingResponse(WireModel):
    embedding: list[float]
    dimension: int = EMBEDDING_DIMENSION
    model: str = ""
    processing_time_ms: float = 0.0

    @field_validator("embedding")
    @classmethod
    def check_embedding_dimension(cls, value: list[float]) -> list[float]:
        return _check_dimension(value)


class BatchEmbeddingResponse(WireModel):
    embeddings: list[list[float]]
    count: int = 0
    dimension: int = EMBEDDING_DIMENSION
    model: str = ""
    processing_time_ms: float = 0.0

    @field_validator("embeddings")
    @classmethod
    def check_batch_dimensions(cls, value: list[list[float]]) -> list[list[float]]:
        for vector in value:
            _check_dimension(vector)
        return value


class EmbeddingResult(WireModel):
    """Per-item outcome of a guideline or template batch."""

    id: str
    embedding: list[float] = Field(default_factory=list)
    success: bool = True
    error: Optional[str] = None


class BatchItemEmbeddingResponse(WireModel):
    results: list[EmbeddingResult] = Field(default_factory=list)
    success_count: int = 0
    error_count: int = 0
    processing_time_ms: float = 0.0


class SimilarityResult(WireModel):
    id: str
    similarity: float
    title: Optional[str] = None
    category: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class SimilaritySearchResponse(WireModel):
    results: list[SimilarityResult] = Field(default_factory=list)
    count: int = 0
    query_time_ms: float = 0.0
    requires_manual_review: bool = False
