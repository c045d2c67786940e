"""
Deterministic CPIC-aligned explanation templates.
Used whenever the text-generation service is unavailable or fails.
"""
from pharmaguard.models import ExplanationBundle, RiskVerdict

FALLBACK_BASE = (
    "Based on detected variants and CPIC guidelines, this risk assessment is derived "
    "from pharmacogenomic evidence."
)

SUMMARY_TEMPLATES: dict[str, str] = {
    "Safe": (
        "{gene} diplotype {diplotype} confers {phenotype} status; standard {drug} dosing is "
        "appropriate without pharmacogenomic contraindication. {base}"
    ),
    "Adjust Dosage": (
        "{gene} diplotype {diplotype} indicates {phenotype}, requiring modified {drug} dosing. {base}"
    ),
    "Toxic": (
        "{gene} diplotype {diplotype} creates a high toxicity risk with {drug}; a therapy change "
        "is recommended. {base}"
    ),
    "Ineffective": (
        "{gene} diplotype {diplotype} indicates {phenotype}, significantly reducing {drug} "
        "therapeutic efficacy. {base}"
    ),
    "Unknown": "Insufficient pharmacogenomic data to assess the {drug} interaction. {base}",
}

MECHANISM_TEMPLATES: dict[str, str] = {
    "CYP2D6": (
        "CYP2D6 encodes a major cytochrome P450 enzyme responsible for oxidative metabolism of "
        "{drug} and roughly 25% of clinically used drugs. The {diplotype} diplotype alters "
        "bioactivation rates and active metabolite concentrations."
    ),
    "CYP2C19": (
        "CYP2C19 mediates hepatic metabolism and bioactivation of drugs including {drug}. The "
        "{diplotype} diplotype changes the rate of conversion to pharmacologically active or "
        "inactive metabolites."
    ),
    "CYP2C9": (
        "CYP2C9 is the primary enzyme catalysing the clearance of {drug}. The {diplotype} "
        "diplotype changes enzyme function, altering {drug} half-life and systemic exposure."
    ),
    "SLCO1B1": (
        "SLCO1B1 encodes the hepatic uptake transporter OATP1B1. The {diplotype} diplotype "
        "changes transporter function, altering plasma {drug} concentrations and skeletal "
        "muscle exposure."
    ),
    "TPMT": (
        "TPMT catalyses S-methylation of thiopurine drugs including {drug}. The {diplotype} "
        "diplotype changes TPMT activity and thereby the accumulation of cytotoxic "
        "6-thioguanine nucleotides in haematopoietic cells."
    ),
    "DPYD": (
        "DPYD encodes dihydropyrimidine dehydrogenase, the rate-limiting enzyme for over 80% "
        "of {drug} catabolism. The {diplotype} diplotype changes DPD function and "
        "fluoropyrimidine exposure."
    ),
}

GENERIC_MECHANISM = (
    "{gene} enzyme/transporter activity is altered by the {diplotype} diplotype, affecting "
    "{drug} pharmacokinetics and pharmacodynamics. {base}"
)


def fallback_explanation(verdict: RiskVerdict) -> ExplanationBundle:
    values = {
        "gene": verdict.primary_gene,
        "diplotype": verdict.diplotype,
        "phenotype": verdict.phenotype,
        "drug": verdict.drug,
        "base": FALLBACK_BASE,
    }
    summary = SUMMARY_TEMPLATES.get(verdict.risk_label, SUMMARY_TEMPLATES["Unknown"])
    mechanism = MECHANISM_TEMPLATES.get(verdict.primary_gene, GENERIC_MECHANISM)
    return ExplanationBundle(
        summary=summary.format(**values),
        mechanism=mechanism.format(**values),
        clinical_impact=verdict.action,
    )
