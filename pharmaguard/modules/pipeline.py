"""
Analysis Pipeline
Orchestrates parse → classify → explain → assemble for every requested drug.
"""
from __future__ import annotations

import secrets
import string
import logging
from typing import Iterable, Optional

from pharmaguard.config import Settings, get_settings
from pharmaguard.models import AnalysisResult, Report, RiskVerdict
from pharmaguard.modules.llm_service import ExplanationProvider, create_explanation_provider
from pharmaguard.modules.pgx_analyzer import classify_risk
from pharmaguard.modules.report_builder import SchemaValidationError, assemble_report
from pharmaguard.modules.vcf_parser import parse_vcf

logger = logging.getLogger(__name__)

PATIENT_ID_PREFIX = "PG-"
_PATIENT_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_patient_id() -> str:
    """Session patient identifier, e.g. PG-A3B7K2."""
    return PATIENT_ID_PREFIX + "".join(secrets.choice(_PATIENT_ID_ALPHABET) for _ in range(6))


def normalize_drug_list(drugs: Iterable[str]) -> list[str]:
    """Trim, drop empties and de-duplicate case-insensitively, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for drug in drugs:
        name = drug.strip()
        if not name or name.upper() in seen:
            continue
        seen.add(name.upper())
        result.append(name)
    return result


async def run_analysis(
    vcf_content: bytes | str,
    drugs: Iterable[str],
    *,
    provider: Optional[ExplanationProvider] = None,
    settings: Optional[Settings] = None,
) -> AnalysisResult:
    """
    Run the full pipeline for one VCF and a list of drugs.

    The VCF is parsed once; drugs are processed sequentially. A report that
    fails schema validation is left out and its error collected, while the
    remaining drugs are still processed.
    """
    settings = settings or get_settings()
    provider = provider or create_explanation_provider(settings)
    drug_list = normalize_drug_list(drugs)

    parsed = parse_vcf(vcf_content)
    patient_id = generate_patient_id()

    reports: list[Report] = []
    risk_results: list[RiskVerdict] = []
    schema_errors: list[str] = []

    for drug in drug_list:
        verdict = classify_risk(drug, parsed.variants, assume_wildtype=settings.assume_wildtype_on_absence)
        risk_results.append(verdict)

        explanation = await provider.explain(verdict)
        try:
            reports.append(assemble_report(
                patient_id,
                verdict,
                parsed.success,
                explanation,
                guideline_version=settings.cpic_guideline_version,
            ))
        except SchemaValidationError as e:
            schema_errors.append(str(e))

    logger.info(
        "Analysis complete | patient=%s | vcf_ok=%s | variants=%d | drugs=%s | reports=%d | schema_errors=%d",
        patient_id, parsed.success, parsed.variants_found, drug_list, len(reports), len(schema_errors),
    )

    return AnalysisResult(
        patient_id=patient_id,
        drugs=drug_list,
        variants=parsed.variants,
        variants_found=parsed.variants_found,
        vcf_success=parsed.success,
        vcf_error=parsed.error,
        reports=reports,
        risk_results=risk_results,
        schema_errors=schema_errors,
    )
