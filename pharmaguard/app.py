"""
FastAPI application factory.
"""
from fastapi import FastAPI

from pharmaguard.config import configure_logging, get_settings
from pharmaguard.routes import analysis, health


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Pharmacogenomic risk reports from VCF variants, aligned with CPIC guidelines.",
    )
    application.include_router(health.router)
    application.include_router(analysis.router)
    return application


app = create_app()
