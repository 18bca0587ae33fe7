"""Care-plan recommender request/response models."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import Field

from service_clients.clients.wire import WireModel


class TrainingJobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PatientDemographics(WireModel):
    age: Optional[int] = None
    sex: Optional[Literal["M", "F"]] = None
    race: Optional[str] = None
    ethnicity: Optional[str] = None


# =============================================================================
# Requests
# =============================================================================


class SimpleRecommendRequest(WireModel):
    """Recommendation from ICD-10 codes only."""

    condition_codes: list[str]
    max_results: int = Field(default=5, ge=1, le=20)
    include_drafts: bool = False


class FullContextRequest(WireModel):
    """Recommendation with full clinical context."""

    condition_codes: list[str]
    condition_names: Optional[list[str]] = None
    medication_codes: Optional[list[str]] = None
    medication_names: Optional[list[str]] = None
    lab_codes: Optional[list[str]] = None
    lab_values: Optional[dict[str, Union[float, str]]] = None
    demographics: Optional[PatientDemographics] = None
    risk_factors: Optional[list[str]] = None
    complications: Optional[list[str]] = None
    max_results: int = Field(default=5, ge=1, le=20)
    include_drafts: bool = True


class ProviderPreferences(WireModel):
    provider_id: str
    preferred_template_ids: Optional[list[str]] = None


class EngineRecommendRequest(FullContextRequest):
    """Three-layer engine request; unset options get engine defaults."""

    query_mode: Literal["simple", "full", "hybrid"] = "hybrid"
    enable_personalization: bool = True
    provider_preferences: Optional[ProviderPreferences] = None


class DraftContext(WireModel):
    condition_codes: list[str]
    condition_names: Optional[list[str]] = None
    demographics: Optional[PatientDemographics] = None
    risk_factors: Optional[list[str]] = None
    complications: Optional[list[str]] = None


class DraftRequest(WireModel):
    template_ids: list[str]
    context: DraftContext


# =============================================================================
# Responses
# =============================================================================


class MatchFactors(WireModel):
    condition_match: float = 0.0
    medication_match: Optional[float] = None
    lab_match: Optional[float] = None
    demographic_match: Optional[float] = None
    historical_preference: Optional[float] = None


class TemplateRecommendation(WireModel):
    template_id: str
    name: str
    category: str
    condition_codes: list[str] = Field(default_factory=list)
    similarity_score: float = 0.0
    ranking_score: float = 0.0
    confidence: float = 0.0
    match_factors: MatchFactors = Field(default_factory=MatchFactors)


class DraftGoal(WireModel):
    description: str
    target_value: Optional[str] = None
    target_days: Optional[int] = None
    priority: Literal["HIGH", "MEDIUM", "LOW"] = "MEDIUM"
    confidence: Optional[float] = None


class DraftIntervention(WireModel):
    description: str
    type: str
    medication_code: Optional[str] = None
    procedure_code: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    referral_specialty: Optional[str] = None
    schedule_days: Optional[int] = None
    instructions: Optional[str] = None
    confidence: Optional[float] = None


class DraftCarePlan(WireModel):
    title: str
    condition_codes: list[str] = Field(default_factory=list)
    goals: list[DraftGoal] = Field(default_factory=list)
    interventions: list[DraftIntervention] = Field(default_factory=list)
    confidence_score: float = 0.0
    generation_method: str = ""


class RecommendResponse(WireModel):
    templates: list[TemplateRecommendation] = Field(default_factory=list)
    drafts: list[DraftCarePlan] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    model_version: str = ""
    query_mode: str = ""
    requires_manual_review: bool = False


class TrainingJobResponse(WireModel):
    id: str
    model_type: str
    job_name: Optional[str] = None
    status: TrainingJobStatus
    progress_percent: float = 0.0
    status_message: Optional[str] = None
    metrics: Optional[dict[str, float]] = None
    model_path: Optional[str] = None
    model_version: Optional[str] = None
    training_examples_count: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


def fallback_recommend_response() -> RecommendResponse:
    """Empty recommendation marked for manual review."""
    return RecommendResponse(
        model_version="fallback",
        query_mode="fallback",
        requires_manual_review=True,
    )
