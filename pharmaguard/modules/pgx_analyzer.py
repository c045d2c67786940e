"""
Pharmacogenomic Analysis Module
Maps detected variants → diplotypes → phenotypes → drug risk verdicts.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from pharmaguard.models import DiplotypeCall, RiskVerdict, VariantRecord
from pharmaguard.modules import rule_database as db

logger = logging.getLogger(__name__)

WILDTYPE_ALLELE = "*1"
UNKNOWN = "Unknown"

CONFIDENCE_EXACT = 0.95
CONFIDENCE_PARTIAL = 0.75
CONFIDENCE_INSUFFICIENT = 0.40

POOR = "Poor Metabolizer (PM)"
INTERMEDIATE = "Intermediate Metabolizer (IM)"
NORMAL = "Normal Metabolizer (NM)"
RAPID = "Rapid Metabolizer (RM)"
ULTRARAPID = "Ultrarapid Metabolizer (UM)"


# ── Diplotype / Phenotype Resolution ─────────────────────────────────────────

def build_diplotype(variants: Sequence[VariantRecord], *, assume_wildtype: bool = True) -> Optional[str]:
    """
    Build the diplotype key from a single gene's variants, in parse order.

    No variants gives *1/*1 when assume_wildtype is set and None otherwise.
    One variant is paired with *1; with two or more only the first two count.
    """
    if not variants:
        return f"{WILDTYPE_ALLELE}/{WILDTYPE_ALLELE}" if assume_wildtype else None
    if len(variants) == 1:
        return f"{WILDTYPE_ALLELE}/{variants[0].star_allele}"
    return f"{variants[0].star_allele}/{variants[1].star_allele}"


def activity_score(gene: str, diplotype: str) -> Optional[float]:
    """Sum the activity values of both alleles. None when the gene has no activity table."""
    table = db.gene_activity_table(gene)
    if table is None:
        return None
    return sum(table.get(allele, 0.0) for allele in diplotype.split("/", 1))


def activity_score_to_phenotype(score: Optional[float]) -> str:
    if score is None:
        return UNKNOWN
    if score <= 0:
        return POOR
    if score <= 1.0:
        return INTERMEDIATE
    if score <= 2.0:
        return NORMAL
    return ULTRARAPID


def resolve_phenotype(
    variants: Sequence[VariantRecord],
    gene: str,
    *,
    assume_wildtype: bool = True,
) -> Optional[DiplotypeCall]:
    """
    Resolve diplotype and phenotype for variants already filtered to `gene`.
    An exact diplotype entry in the rule database decides the phenotype;
    otherwise the activity score does. Returns None when there is nothing to
    resolve and wildtype is not assumed.
    """
    diplotype = build_diplotype(variants, assume_wildtype=assume_wildtype)
    if diplotype is None:
        return None

    score = activity_score(gene, diplotype)
    entry = db.get_diplotype_rule(gene, diplotype)
    phenotype = entry.phenotype if entry else activity_score_to_phenotype(score)

    logger.debug("Gene %s: diplotype=%s, phenotype=%s, score=%s", gene, diplotype, phenotype, score)
    return DiplotypeCall(gene=gene, diplotype=diplotype, phenotype=phenotype, activity_score=score)


# ── Risk Classification ──────────────────────────────────────────────────────

def _phenotype_heuristic(drug: str, phenotype: str) -> tuple[str, str, str, str]:
    """Derive (risk, severity, action, dosing) from the phenotype when no exact rule exists."""
    prodrug = db.is_prodrug(drug)
    name = drug.lower()

    if phenotype.startswith("Poor"):
        if prodrug:
            return (
                "Ineffective", "high",
                f"Minimal bioactivation of {name} expected; therapeutic failure is likely.",
                f"Avoid {name}. Select an agent that does not require bioactivation.",
            )
        return (
            "Toxic", "high",
            f"Markedly reduced {name} clearance; accumulation and toxicity are likely.",
            f"Avoid {name} or use a substantially reduced dose under close monitoring.",
        )
    if phenotype.startswith("Intermediate"):
        return (
            "Adjust Dosage", "moderate",
            f"Reduced enzyme activity alters {name} exposure. Monitor response closely.",
            f"Consider a reduced starting dose of {name} and titrate to response.",
        )
    if phenotype.startswith("Ultrarapid"):
        if prodrug:
            return (
                "Toxic", "critical",
                f"Excessive conversion of {name} to its active metabolite; serious toxicity risk.",
                f"Avoid {name}. Select an alternative agent.",
            )
        return (
            "Adjust Dosage", "moderate",
            f"Accelerated {name} clearance may reduce efficacy.",
            f"Consider a higher dose of {name} or an alternative agent; monitor efficacy.",
        )
    if phenotype.startswith(("Normal", "Rapid")):
        return (
            "Safe", "none",
            f"No pharmacogenomic contraindication for {name}.",
            "Use standard label-recommended dosing.",
        )
    return (
        "Unknown", "low",
        f"Phenotype could not be determined for {name}. Consult a clinical pharmacist.",
        "Apply standard clinical dosing guidelines and monitor closely.",
    )


def classify_risk(
    drug: str,
    variants: Sequence[VariantRecord],
    *,
    assume_wildtype: bool = False,
) -> RiskVerdict:
    """
    Classify the pharmacogenomic risk of one drug for a patient's variants.

    Never raises: unmapped drugs and genes without detected variants yield an
    Unknown verdict with confidence 0.40. With assume_wildtype set, a gene
    without variants is resolved as *1/*1 instead.
    """
    drug_name = db.canonical_drug(drug)
    gene = db.required_gene(drug_name)

    if gene is None:
        logger.debug("%s: drug not mapped to any gene", drug_name)
        return RiskVerdict(
            drug=drug_name,
            risk_label="Unknown",
            severity="low",
            confidence_score=CONFIDENCE_INSUFFICIENT,
            primary_gene=db.NOT_DETECTED,
            diplotype=UNKNOWN,
            phenotype=UNKNOWN,
            action=(
                f"No pharmacogenomic data available for {drug_name}. Drug is not supported by the rule "
                "database; apply standard clinical guidelines and monitor closely for adverse effects."
            ),
            dosing_recommendation="Use standard label-recommended dosing.",
        )

    gene_variants = tuple(v for v in variants if v.gene == gene)
    call = resolve_phenotype(gene_variants, gene, assume_wildtype=assume_wildtype)

    if call is None:
        logger.debug("%s: no %s variants detected", drug_name, gene)
        return RiskVerdict(
            drug=drug_name,
            risk_label="Unknown",
            severity="low",
            confidence_score=CONFIDENCE_INSUFFICIENT,
            primary_gene=gene,
            diplotype=UNKNOWN,
            phenotype=UNKNOWN,
            action=(
                f"No {gene} variants detected for this gene in the uploaded file. Genotype cannot be "
                f"assumed; consider dedicated {gene} genotyping before prescribing {drug_name}."
            ),
            dosing_recommendation="Insufficient genomic data for a pharmacogenomic dosing recommendation.",
        )

    rule = db.get_drug_rule(gene, call.diplotype, drug_name)
    if rule is not None:
        logger.debug("%s: exact rule for %s %s", drug_name, gene, call.diplotype)
        return RiskVerdict(
            drug=drug_name,
            risk_label=rule.risk,
            severity=rule.severity,
            confidence_score=CONFIDENCE_EXACT,
            primary_gene=gene,
            diplotype=call.diplotype,
            phenotype=call.phenotype,
            action=rule.action,
            dosing_recommendation=rule.dosing,
            detected_variants=gene_variants,
        )

    risk, severity, action, dosing = _phenotype_heuristic(drug_name, call.phenotype)
    logger.debug("%s: phenotype-derived verdict %s for %s %s", drug_name, risk, gene, call.diplotype)
    return RiskVerdict(
        drug=drug_name,
        risk_label=risk,
        severity=severity,
        confidence_score=CONFIDENCE_PARTIAL,
        primary_gene=gene,
        diplotype=call.diplotype,
        phenotype=call.phenotype,
        action=action,
        dosing_recommendation=dosing,
        detected_variants=gene_variants,
    )
