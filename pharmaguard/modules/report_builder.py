"""
Report Assembly Module
Builds the eight-section clinical report for one drug and validates it
against the strict Report schema before it is returned.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from pharmaguard.models import ExplanationBundle, Report, RiskVerdict
from pharmaguard.modules.rule_database import is_supported_gene

logger = logging.getLogger(__name__)

CPIC_GUIDELINE_VERSION = "2024.1"


class SchemaValidationError(ValueError):
    """Raised when an assembled report does not satisfy the Report schema."""
    pass


def utc_timestamp() -> str:
    """Current instant as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _describe(error: dict) -> str:
    loc = ".".join(str(part) for part in error["loc"]) or "report"
    return f"{loc}: {error['msg']}"


def validate_report(payload: Any) -> Optional[str]:
    """
    Check a report payload against the schema.
    Returns None when valid, otherwise a message naming the first offending field.
    """
    if not isinstance(payload, dict):
        return "report: must be an object"
    try:
        Report.model_validate(payload)
    except ValidationError as e:
        return _describe(e.errors()[0])
    return None


def build_report_payload(
    patient_id: str,
    verdict: RiskVerdict,
    vcf_success: bool,
    explanation: ExplanationBundle,
    guideline_version: str = CPIC_GUIDELINE_VERSION,
) -> dict:
    return {
        "patient_id": patient_id,
        "drug": verdict.drug,
        "timestamp": utc_timestamp(),
        "risk_assessment": {
            "risk_label": verdict.risk_label,
            "confidence_score": verdict.confidence_score,
            "severity": verdict.severity,
        },
        "pharmacogenomic_profile": {
            "primary_gene": verdict.primary_gene,
            "diplotype": verdict.diplotype,
            "phenotype": verdict.phenotype,
            "detected_variants": [v.model_dump() for v in verdict.detected_variants],
        },
        "clinical_recommendation": {
            "action": verdict.action,
            "dosing_recommendation": verdict.dosing_recommendation,
        },
        "llm_generated_explanation": explanation.model_dump(),
        "quality_metrics": {
            "vcf_parsing_success": vcf_success,
            "variants_detected": len(verdict.detected_variants),
            "supported_gene_detected": is_supported_gene(verdict.primary_gene),
            "cpic_guideline_version": guideline_version,
        },
    }


def assemble_report(
    patient_id: str,
    verdict: RiskVerdict,
    vcf_success: bool,
    explanation: ExplanationBundle,
    *,
    guideline_version: str = CPIC_GUIDELINE_VERSION,
) -> Report:
    """
    Assemble and validate the report for one verdict.

    Raises:
        SchemaValidationError: if the assembled report violates the schema.
    """
    payload = build_report_payload(patient_id, verdict, vcf_success, explanation, guideline_version)
    error = validate_report(payload)
    if error:
        logger.error("Schema validation failed for %s: %s", verdict.drug or "<no drug>", error)
        raise SchemaValidationError(f"Schema validation failed: {error}")
    return Report.model_validate(payload)
