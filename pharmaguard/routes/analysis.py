"""
Analysis API Route: POST /api/v1/analyze
"""
from __future__ import annotations

import time
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from pharmaguard.config import Settings, get_settings
from pharmaguard.models import AnalysisResponse
from pharmaguard.modules.llm_service import create_explanation_provider
from pharmaguard.modules.pipeline import run_analysis

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["Analysis"])


@router.post(
    "/analyze",
    response_model=AnalysisResponse,
    summary="Pharmacogenomic Risk Analysis",
    description=(
        "Upload a VCF file and a comma-separated list of drug names. "
        "Returns one schema-validated clinical report per distinct drug."
    ),
)
async def analyze(
    vcf_file: UploadFile = File(..., description="VCF file containing patient genomic variants"),
    drugs: str = Form(..., description="Comma-separated drug names, e.g. 'codeine,warfarin'"),
    skip_llm: bool = Form(False, description="Set to true to use deterministic explanations only"),
    settings: Settings = Depends(get_settings),
):
    start_time = time.monotonic()

    # ── 1. Validate upload size ───────────────────────────────────────────
    content = await vcf_file.read()
    if len(content) > settings.max_vcf_size_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"VCF file exceeds maximum size of {settings.max_vcf_size_mb} MB.",
        )

    # ── 2. Parse drug list ────────────────────────────────────────────────
    drug_list = [d for d in drugs.split(",") if d.strip()]
    if not drug_list:
        raise HTTPException(status_code=422, detail="At least one drug name must be provided.")

    # ── 3. Run pipeline ───────────────────────────────────────────────────
    provider = create_explanation_provider(settings, skip_llm=skip_llm)
    result = await run_analysis(content, drug_list, provider=provider, settings=settings)

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    logger.info(
        "Request served | file=%s | patient=%s | reports=%d | time=%dms",
        vcf_file.filename, result.patient_id, len(result.reports), elapsed_ms,
    )

    return AnalysisResponse(
        status="success" if not result.schema_errors else "partial",
        patient_id=result.patient_id,
        vcf_parsing_success=result.vcf_success,
        vcf_error=result.vcf_error,
        variants_found=result.variants_found,
        detected_variants=result.variants,
        reports=result.reports,
        schema_errors=result.schema_errors,
        processing_time_ms=elapsed_ms,
    )


@router.post(
    "/analyze/batch",
    response_model=AnalysisResponse,
    summary="Batch Pharmacogenomic Analysis (no LLM)",
    description="Faster endpoint: deterministic explanations only, for batch/screening use cases.",
)
async def analyze_batch(
    vcf_file: UploadFile = File(...),
    drugs: str = Form(...),
    settings: Settings = Depends(get_settings),
):
    """Same as /analyze but always skips the LLM."""
    return await analyze(vcf_file=vcf_file, drugs=drugs, skip_llm=True, settings=settings)
