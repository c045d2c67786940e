"""
Pydantic models for variants, verdicts, reports and API responses.
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictBool, StrictStr, field_validator

RiskLabel = Literal["Safe", "Adjust Dosage", "Toxic", "Ineffective", "Unknown"]
Severity = Literal["none", "low", "moderate", "high", "critical"]

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]


def _require_number(v):
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError("must be a number")
    return v


Number = Annotated[Union[int, float], BeforeValidator(_require_number)]


# ── VCF Parsing ──────────────────────────────────────────────────────────────

class VariantRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    rsid: str = "unknown"
    gene: str
    star_allele: str = "*1"
    chromosome: Optional[str] = None
    position: Optional[int] = None
    ref_allele: Optional[str] = None
    alt_allele: Optional[str] = None
    zygosity: Optional[str] = None  # heterozygous | homozygous_alt | unknown


class ParsedVCF(BaseModel):
    variants: list[VariantRecord] = Field(default_factory=list)
    variants_found: int = 0
    success: bool
    error: Optional[str] = None
    vcf_version: Optional[str] = None
    total_records: int = 0


# ── PGx Analysis ─────────────────────────────────────────────────────────────

class DiplotypeCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    gene: str
    diplotype: str
    phenotype: str
    activity_score: Optional[float] = None


class RiskVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    drug: str
    risk_label: RiskLabel
    severity: Severity
    confidence_score: float
    primary_gene: str
    diplotype: str
    phenotype: str
    action: str
    dosing_recommendation: str
    detected_variants: tuple[VariantRecord, ...] = ()


class ExplanationBundle(BaseModel):
    summary: str
    mechanism: str
    clinical_impact: str


# ── Report schema ────────────────────────────────────────────────────────────
# Field order defines the order in which violations are reported.

class _StrictSection(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RiskAssessment(_StrictSection):
    risk_label: RiskLabel
    confidence_score: Number
    severity: Severity


class PharmacogenomicProfile(_StrictSection):
    primary_gene: StrictStr
    diplotype: StrictStr
    phenotype: StrictStr
    detected_variants: list


class ClinicalRecommendation(_StrictSection):
    action: StrictStr
    dosing_recommendation: StrictStr


class LLMGeneratedExplanation(_StrictSection):
    summary: StrictStr
    mechanism: StrictStr
    clinical_impact: StrictStr


class QualityMetrics(_StrictSection):
    vcf_parsing_success: StrictBool
    variants_detected: Number
    supported_gene_detected: StrictBool
    cpic_guideline_version: StrictStr


class Report(_StrictSection):
    patient_id: NonEmptyStr
    drug: NonEmptyStr
    timestamp: StrictStr
    risk_assessment: RiskAssessment
    pharmacogenomic_profile: PharmacogenomicProfile
    clinical_recommendation: ClinicalRecommendation
    llm_generated_explanation: LLMGeneratedExplanation
    quality_metrics: QualityMetrics

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        try:
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("must be a valid ISO 8601 string")
        return v


# ── Orchestration ────────────────────────────────────────────────────────────

class AnalysisResult(BaseModel):
    patient_id: str
    drugs: list[str]
    variants: list[VariantRecord]
    variants_found: int
    vcf_success: bool
    vcf_error: Optional[str] = None
    reports: list[Report]
    risk_results: list[RiskVerdict]
    schema_errors: list[str]


# ── API ──────────────────────────────────────────────────────────────────────

class AnalysisResponse(BaseModel):
    status: str
    patient_id: str
    vcf_parsing_success: bool
    vcf_error: Optional[str] = None
    variants_found: int
    detected_variants: list[VariantRecord]
    reports: list[Report]
    schema_errors: list[str]
    processing_time_ms: int


class HealthResponse(BaseModel):
    status: str
    version: str
    llm_provider: str
    llm_model: str
    cpic_guideline_version: str
    genes_supported: list[str]
    drugs_supported: list[str]
