"""
Health & Info Routes
"""
from fastapi import APIRouter, Depends

from pharmaguard.config import Settings, get_settings
from pharmaguard.models import HealthResponse
from pharmaguard.modules.rule_database import supported_drugs, supported_genes

router = APIRouter(prefix="/api/v1", tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Returns system health status and supported genes/drugs.",
)
async def health(settings: Settings = Depends(get_settings)):
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        llm_provider=settings.llm_provider if settings.llm_enabled else "none",
        llm_model=settings.active_llm_model,
        cpic_guideline_version=settings.cpic_guideline_version,
        genes_supported=supported_genes(),
        drugs_supported=supported_drugs(),
    )
