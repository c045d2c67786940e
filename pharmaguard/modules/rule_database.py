"""
Pharmacogenomic Rule Database
Static CPIC-aligned knowledge base: gene → diplotype → {phenotype, drug rules},
per-allele activity values, and the drug → gene requirement map.
Loaded once at import from the JSON files in pharmaguard/data.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from pharmaguard.models import RiskLabel, Severity

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"

NOT_DETECTED = "Not detected"


class DrugRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk: RiskLabel
    severity: Severity
    action: str
    dosing: str


class DiplotypeRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    phenotype: str
    drugs: Mapping[str, DrugRule]


class DrugInteraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    gene: str
    cpic_level: str = "Unknown"
    drug_class: str = ""
    prodrug: bool = False


def _load_json(filename: str) -> dict:
    path = DATA_DIR / filename
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _build_rule_tables(raw: dict) -> tuple[dict, dict]:
    rules: dict[str, Mapping[str, DiplotypeRule]] = {}
    activity: dict[str, Mapping[str, float]] = {}
    for gene, gene_data in raw.items():
        gene = gene.upper()
        rules[gene] = MappingProxyType({
            diplotype: DiplotypeRule(
                phenotype=entry["phenotype"],
                drugs=MappingProxyType({
                    drug.upper(): DrugRule(**rule) for drug, rule in entry.get("drugs", {}).items()
                }),
            )
            for diplotype, entry in gene_data.get("diplotypes", {}).items()
        })
        alleles = gene_data.get("alleles")
        if alleles:
            activity[gene] = MappingProxyType({
                star: float(a.get("activity_value", 0.0)) for star, a in alleles.items()
            })
    return rules, activity


def _build_drug_map(raw: dict) -> dict:
    raw = dict(raw)
    raw.pop("_meta", None)
    return {drug.strip().upper(): DrugInteraction(**entry) for drug, entry in raw.items()}


# ── Module-level knowledge base (loaded once at startup) ─────────────────────
try:
    _rules, _activity = _build_rule_tables(_load_json("diplotype_phenotype_map.json"))
    _interactions = _build_drug_map(_load_json("drug_gene_interactions.json"))
except FileNotFoundError as e:
    logger.error("Knowledge base file not found: %s", e)
    _rules, _activity, _interactions = {}, {}, {}

RULE_DB: Mapping[str, Mapping[str, DiplotypeRule]] = MappingProxyType(_rules)
ACTIVITY_TABLE: Mapping[str, Mapping[str, float]] = MappingProxyType(_activity)
DRUG_INTERACTIONS: Mapping[str, DrugInteraction] = MappingProxyType(_interactions)


# ── Lookups ──────────────────────────────────────────────────────────────────

def canonical_drug(drug: str) -> str:
    return drug.strip().upper()


def get_drug_interaction(drug: str) -> Optional[DrugInteraction]:
    return DRUG_INTERACTIONS.get(canonical_drug(drug))


def required_gene(drug: str) -> Optional[str]:
    """Return the primary pharmacogene for a drug, or None if the drug is not mapped."""
    interaction = get_drug_interaction(drug)
    return interaction.gene if interaction else None


def is_prodrug(drug: str) -> bool:
    """True for drugs that need metabolic bioactivation (e.g. codeine, clopidogrel)."""
    interaction = get_drug_interaction(drug)
    return bool(interaction and interaction.prodrug)


def get_diplotype_rule(gene: str, diplotype: str) -> Optional[DiplotypeRule]:
    return RULE_DB.get(gene.upper(), {}).get(diplotype)


def get_drug_rule(gene: str, diplotype: str, drug: str) -> Optional[DrugRule]:
    entry = get_diplotype_rule(gene, diplotype)
    if entry is None:
        return None
    return entry.drugs.get(canonical_drug(drug))


def gene_activity_table(gene: str) -> Optional[Mapping[str, float]]:
    return ACTIVITY_TABLE.get(gene.upper())


def is_supported_gene(gene: str) -> bool:
    return gene != NOT_DETECTED and gene in RULE_DB


def supported_genes() -> list[str]:
    return sorted(RULE_DB.keys())


def supported_drugs() -> list[str]:
    return sorted(DRUG_INTERACTIONS.keys())
