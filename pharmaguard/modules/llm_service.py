"""
LLM Explanation Module
Generates the clinical narrative for a risk verdict through a pluggable
text-generation client, falling back to deterministic templates.
"""
from __future__ import annotations

import re
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import backoff
import httpx

from pharmaguard.config import Settings, get_settings
from pharmaguard.models import ExplanationBundle, RiskVerdict
from pharmaguard.modules import rule_database as db
from pharmaguard.modules.explanation_templates import fallback_explanation

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK_CHARS = 250
MECHANISM_PLACEHOLDER = "See clinical summary."


class LLMServiceError(Exception):
    """Raised when the text-generation service cannot return usable text."""
    pass


# ── Text generation clients ──────────────────────────────────────────────────

class TextGenerator(ABC):
    """Anything that turns a prompt into generated text, or raises LLMServiceError."""

    model: str = "unknown"

    @abstractmethod
    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        pass


def _giveup(e: Exception) -> bool:
    return isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500


class GeminiClient(TextGenerator):
    """Google Gemini generateContent REST client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta/models",
        timeout: float = 20.0,
        max_tries: int = 2,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.endpoint = f"{base_url.rstrip('/')}/{model}:generateContent"
        self.timeout = timeout
        self._client = client
        # 4xx responses are not retried
        self._post_with_retry = backoff.on_exception(
            backoff.expo,
            (httpx.RequestError, httpx.HTTPStatusError),
            max_tries=max(1, max_tries),
            giveup=_giveup,
        )(self._post)

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> dict:
        response = await client.post(
            self.endpoint,
            json=payload,
            headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
        )
        response.raise_for_status()
        return response.json()

    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        logger.info("Sending request to Gemini (model=%s)", self.model)
        try:
            if self._client is not None:
                data = await self._post_with_retry(self._client, payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    data = await self._post_with_retry(client, payload)
        except httpx.HTTPError as e:
            raise LLMServiceError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise LLMServiceError(f"Gemini returned a non-JSON body: {e}") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMServiceError("Gemini response has no candidate text") from e
        if not isinstance(text, str) or not text.strip():
            raise LLMServiceError("Gemini returned empty text")

        logger.info("Gemini request successful (%d chars)", len(text))
        return text


# ── Prompt & response handling ───────────────────────────────────────────────

def _format_variants(verdict: RiskVerdict) -> str:
    if not verdict.detected_variants:
        return "none detected"
    return ", ".join(f"{v.rsid} ({v.star_allele})" for v in verdict.detected_variants)


def build_prompt(verdict: RiskVerdict) -> str:
    interaction = db.get_drug_interaction(verdict.drug)
    drug = f"{verdict.drug} ({interaction.drug_class})" if interaction and interaction.drug_class else verdict.drug
    level = interaction.cpic_level if interaction else "Unknown"

    return f"""You are a board-certified clinical pharmacogenomics expert following CPIC guidelines.

Patient gene: {verdict.primary_gene}
Diplotype: {verdict.diplotype}
Phenotype: {verdict.phenotype}
Drug: {drug}
CPIC evidence level: {level}
Risk: {verdict.risk_label}
Detected variants: {_format_variants(verdict)}

Generate a structured response with exactly these four sections:
1. Summary (2-3 sentences): Clinical summary of this drug-gene interaction.
2. Biological mechanism: Explain the enzyme/transporter, pathway, and how the diplotype alters drug metabolism.
3. Clinical implication: Patient-specific risk and expected drug response.
4. Dosing recommendation: Specific dosing guidance consistent with the CPIC evidence level above.

Be medically concise and accurate. Do not hallucinate variant identifiers or allele frequencies."""


_SECTIONS: list[tuple[str, str]] = [
    ("summary", r"(?:Clinical\s+)?Summary"),
    ("mechanism", r"(?:Biological\s+)?Mechanism"),
    ("implication", r"Clinical\s+Implications?"),
    ("dosing", r"Dosing(?:\s+Recommendations?)?"),
]


def parse_explanation_sections(text: str) -> dict[str, Optional[str]]:
    """
    Extract the four numbered sections from generated text.
    Headings may start a line or follow whitespace within one.
    Each value is the section body, or None when the heading is absent or empty.
    """
    sections: dict[str, Optional[str]] = {}
    for number, (key, title) in enumerate(_SECTIONS, start=1):
        # "2." ends the previous section, "2.0" does not
        end = rf"(?=\s[#*]*{number + 1}\.(?!\d))|\Z" if number < len(_SECTIONS) else r"\Z"
        pattern = rf"(?:^|(?<=\s))[#*]*{number}\.(?!\d)\s*\**\s*{title}\b[^:\n]*?\**\s*:?\**\s*(.+?)(?:{end})"
        match = re.search(pattern, text, re.IGNORECASE | re.DOTALL)
        body = match.group(1).strip().strip("*").strip() if match else ""
        sections[key] = body or None
    return sections


def explanation_from_text(text: str, verdict: RiskVerdict) -> ExplanationBundle:
    sections = parse_explanation_sections(text)
    impact = " ".join(s for s in (sections["implication"], sections["dosing"]) if s)
    return ExplanationBundle(
        summary=sections["summary"] or text.strip()[:SUMMARY_FALLBACK_CHARS],
        mechanism=sections["mechanism"] or MECHANISM_PLACEHOLDER,
        clinical_impact=impact or verdict.action,
    )


# ── Provider ─────────────────────────────────────────────────────────────────

class ExplanationProvider:
    """
    Produces an ExplanationBundle for each verdict. With no generator, or when
    generation fails for any reason, the deterministic templates are used.
    """

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        *,
        temperature: float = 0.2,
        max_tokens: int = 600,
        timeout: float = 20.0,
    ):
        self.generator = generator
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @property
    def model_name(self) -> str:
        return self.generator.model if self.generator else "deterministic-template"

    async def explain(self, verdict: RiskVerdict) -> ExplanationBundle:
        if self.generator is None:
            return fallback_explanation(verdict)

        prompt = build_prompt(verdict)
        try:
            text = await asyncio.wait_for(
                self.generator.generate(prompt, temperature=self.temperature, max_tokens=self.max_tokens),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("LLM explanation failed for %s (%s); using deterministic fallback.", verdict.drug, e)
            return fallback_explanation(verdict)

        if not isinstance(text, str) or not text.strip():
            logger.warning("LLM returned no text for %s; using deterministic fallback.", verdict.drug)
            return fallback_explanation(verdict)
        return explanation_from_text(text, verdict)


def create_explanation_provider(settings: Optional[Settings] = None, *, skip_llm: bool = False) -> ExplanationProvider:
    """Build a provider from settings; the credential is read here and nowhere else."""
    settings = settings or get_settings()
    generator = None
    if settings.llm_enabled and not skip_llm:
        generator = GeminiClient(
            api_key=settings.gemini_api_key.strip(),
            model=settings.gemini_model,
            base_url=settings.gemini_api_url,
            timeout=settings.llm_timeout_seconds,
            max_tries=settings.llm_max_retries,
        )
    return ExplanationProvider(
        generator,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_seconds,
    )
