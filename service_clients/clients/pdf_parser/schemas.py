"""PDF parser response models."""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from service_clients.clients.wire import WireModel

Priority = Literal["HIGH", "MEDIUM", "LOW"]


class CodeSystem(str, Enum):
    SNOMED = "SNOMED"
    ICD10 = "ICD-10"
    LOINC = "LOINC"
    RXNORM = "RxNorm"
    CPT = "CPT"


class InterventionType(str, Enum):
    MEDICATION = "MEDICATION"
    PROCEDURE = "PROCEDURE"
    EDUCATION = "EDUCATION"
    MONITORING = "MONITORING"
    LIFESTYLE = "LIFESTYLE"
    REFERRAL = "REFERRAL"
    FOLLOW_UP = "FOLLOW_UP"
    OTHER = "OTHER"


class CarePlanCategory(str, Enum):
    CHRONIC_DISEASE = "CHRONIC_DISEASE"
    ACUTE_CARE = "ACUTE_CARE"
    PREVENTIVE_CARE = "PREVENTIVE_CARE"
    POST_PROCEDURE = "POST_PROCEDURE"
    MEDICATION_MANAGEMENT = "MEDICATION_MANAGEMENT"
    LIFESTYLE_MODIFICATION = "LIFESTYLE_MODIFICATION"
    MENTAL_HEALTH = "MENTAL_HEALTH"
    PEDIATRIC = "PEDIATRIC"
    GERIATRIC = "GERIATRIC"
    GENERAL = "GENERAL"


class ExtractedCode(WireModel):
    code: str
    code_system: CodeSystem
    display_text: Optional[str] = None
    confidence: float = 0.0


class SuggestedGoal(WireModel):
    description: str
    target_value: Optional[str] = None
    target_days: Optional[int] = None
    priority: Priority = "MEDIUM"


class SuggestedIntervention(WireModel):
    description: str
    type: InterventionType = InterventionType.OTHER
    medication_code: Optional[str] = None
    procedure_code: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    referral_specialty: Optional[str] = None
    schedule_days: Optional[int] = None
    instructions: Optional[str] = None


class ParsedCarePlanResponse(WireModel):
    """Structured care plan extracted from a PDF."""

    title: str = ""
    raw_text: str = ""
    category: Optional[CarePlanCategory] = None
    version: Optional[str] = None
    last_updated: Optional[str] = None
    author: Optional[str] = None
    guideline_source: Optional[str] = None
    evidence_grade: Optional[str] = None

    overview_section: Optional[str] = None
    symptoms_section: Optional[str] = None
    diagnosis_section: Optional[str] = None
    treatment_section: Optional[str] = None
    goals_section: Optional[str] = None
    interventions_section: Optional[str] = None
    follow_up_section: Optional[str] = None
    patient_education_section: Optional[str] = None
    complications_section: Optional[str] = None

    condition_codes: list[ExtractedCode] = Field(default_factory=list)
    medication_codes: list[ExtractedCode] = Field(default_factory=list)
    lab_codes: list[ExtractedCode] = Field(default_factory=list)
    procedure_codes: list[ExtractedCode] = Field(default_factory=list)

    suggested_goals: list[SuggestedGoal] = Field(default_factory=list)
    suggested_interventions: list[SuggestedIntervention] = Field(default_factory=list)

    is_structured_format: bool = False
    extraction_confidence: float = 0.0
    warnings: list[str] = Field(default_factory=list)
    page_count: int = 0
    processing_time_ms: float = 0.0


class ParsePreviewResponse(WireModel):
    title: Optional[str] = None
    page_count: int = 0
    text_preview: str = ""
    detected_sections: list[str] = Field(default_factory=list)
    code_counts: dict[str, int] = Field(default_factory=dict)
    processing_time_ms: float = 0.0


class FileValidationResult(BaseModel):
    """Outcome of local pre-upload checks."""

    valid: bool
    error: Optional[str] = None
    size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
