"""
Application settings, loaded from environment variables / .env.
"""
import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ── Server ────────────────────────────────────────────────────────────
    app_name: str = "PharmaGuard"
    app_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # ── Upload limits ─────────────────────────────────────────────────────
    max_vcf_size_mb: int = 5

    # ── LLM (explanation provider) ────────────────────────────────────────
    llm_provider: str = "gemini"          # gemini | none
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 600
    llm_timeout_seconds: float = 20.0
    llm_max_retries: int = 2

    # ── Rule engine ───────────────────────────────────────────────────────
    cpic_guideline_version: str = "2024.1"
    # Legacy policy: treat a gene with no detected variants as *1/*1.
    assume_wildtype_on_absence: bool = False

    @property
    def max_vcf_size_bytes(self) -> int:
        return self.max_vcf_size_mb * 1024 * 1024

    @property
    def llm_enabled(self) -> bool:
        return self.llm_provider.lower() == "gemini" and bool(self.gemini_api_key.strip())

    @property
    def active_llm_model(self) -> str:
        return self.gemini_model if self.llm_enabled else "deterministic-template"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Configure root logging once at application start-up."""
    level = "DEBUG" if settings.debug else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
