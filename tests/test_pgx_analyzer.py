"""
Unit tests for PGx Analyzer module.
Run with: python -m pytest tests/test_pgx_analyzer.py -v
"""
import pytest
from pharmaguard.models import VariantRecord
from pharmaguard.modules import rule_database as db
from pharmaguard.modules.pgx_analyzer import (
    activity_score, activity_score_to_phenotype, build_diplotype, classify_risk, resolve_phenotype,
)


def make_variant(gene, star_allele="*1", rsid="rs0000"):
    return VariantRecord(gene=gene, star_allele=star_allele, rsid=rsid)


class TestDiplotypeConstruction:

    def test_no_variants_wildtype(self):
        assert build_diplotype([]) == "*1/*1"

    def test_no_variants_insufficient_data(self):
        assert build_diplotype([], assume_wildtype=False) is None

    def test_single_variant_paired_with_wildtype(self):
        assert build_diplotype([make_variant("CYP2D6", "*4")]) == "*1/*4"

    def test_first_two_in_parse_order(self):
        variants = [make_variant("CYP2D6", s) for s in ("*10", "*41", "*4")]
        assert build_diplotype(variants) == "*10/*41"

    def test_order_is_significant(self):
        a = [make_variant("CYP2C9", "*2"), make_variant("CYP2C9", "*3")]
        assert build_diplotype(a) == "*2/*3"
        assert build_diplotype(list(reversed(a))) == "*3/*2"


class TestActivityScore:

    @pytest.mark.parametrize("score,expected", [
        (0.0, "Poor Metabolizer (PM)"),
        (0.5, "Intermediate Metabolizer (IM)"),
        (1.0, "Intermediate Metabolizer (IM)"),
        (1.5, "Normal Metabolizer (NM)"),
        (2.0, "Normal Metabolizer (NM)"),
        (2.5, "Ultrarapid Metabolizer (UM)"),
        (None, "Unknown"),
    ])
    def test_thresholds(self, score, expected):
        assert activity_score_to_phenotype(score) == expected

    def test_unlisted_allele_counts_zero(self):
        assert activity_score("CYP2D6", "*1/*999") == 1.0

    def test_gene_without_table(self):
        assert activity_score("NOTAGENE", "*1/*1") is None

    def test_cyp2d6_score(self):
        assert activity_score("CYP2D6", "*10/*41") == 1.0
        assert activity_score("CYP2D6", "*1/*1xN") == 3.0


class TestPhenotypeResolution:

    def test_exact_entry_wins(self):
        # *1/*17 sums to 2.5 but the rule database declares Rapid
        call = resolve_phenotype([make_variant("CYP2C19", "*17")], "CYP2C19")
        assert call.diplotype == "*1/*17"
        assert call.phenotype == "Rapid Metabolizer (RM)"

    def test_activity_fallback(self):
        call = resolve_phenotype([make_variant("CYP2D6", "*10"), make_variant("CYP2D6", "*41")], "CYP2D6")
        assert call.diplotype == "*10/*41"
        assert call.phenotype == "Intermediate Metabolizer (IM)"
        assert call.activity_score == 1.0

    def test_one_decreased_allele_is_normal(self):
        call = resolve_phenotype([make_variant("CYP2D6", "*10")], "CYP2D6")
        assert call.phenotype == "Normal Metabolizer (NM)"

    def test_unknown_gene(self):
        call = resolve_phenotype([make_variant("NOTAGENE", "*2")], "NOTAGENE")
        assert call.phenotype == "Unknown"

    def test_no_variants_without_wildtype(self):
        assert resolve_phenotype([], "CYP2D6", assume_wildtype=False) is None


def _rule_cases():
    for gene, diplotypes in db.RULE_DB.items():
        for diplotype, entry in diplotypes.items():
            for drug in entry.drugs:
                yield gene, diplotype, drug


class TestExactRules:

    @pytest.mark.parametrize("gene,diplotype,drug", list(_rule_cases()))
    def test_every_rule_matches_exactly(self, gene, diplotype, drug):
        first, second = diplotype.split("/")
        variants = [make_variant(gene, first), make_variant(gene, second)]
        verdict = classify_risk(drug, variants)
        rule = db.RULE_DB[gene][diplotype].drugs[drug]
        assert verdict.confidence_score == 0.95
        assert verdict.diplotype == diplotype
        assert verdict.risk_label == rule.risk
        assert verdict.severity == rule.severity
        assert verdict.action == rule.action
        assert verdict.dosing_recommendation == rule.dosing

    def test_codeine_poor_metabolizer(self):
        verdict = classify_risk("Codeine", [make_variant("CYP2D6", "*4"), make_variant("CYP2D6", "*4")])
        assert verdict.drug == "CODEINE"
        assert verdict.primary_gene == "CYP2D6"
        assert verdict.diplotype == "*4/*4"
        assert verdict.phenotype == "Poor Metabolizer (PM)"
        assert verdict.risk_label == "Toxic"
        assert verdict.severity in ("high", "critical")
        assert verdict.confidence_score == 0.95

    def test_codeine_ultrarapid(self):
        verdict = classify_risk("codeine", [make_variant("CYP2D6", "*1xN")])
        assert verdict.risk_label == "Toxic"
        assert verdict.severity == "critical"

    def test_fluorouracil_pm_toxic(self):
        verdict = classify_risk("fluorouracil", [make_variant("DPYD", "*2A"), make_variant("DPYD", "*2A")])
        assert verdict.risk_label == "Toxic"
        assert verdict.severity == "critical"


class TestUnknownPaths:

    def test_unmapped_drug(self):
        verdict = classify_risk("unknowndrug123", [make_variant("CYP2D6", "*4")])
        assert verdict.risk_label == "Unknown"
        assert verdict.confidence_score == 0.40
        assert verdict.primary_gene == "Not detected"
        assert verdict.detected_variants == ()

    def test_warfarin_no_variants_is_not_safe(self):
        verdict = classify_risk("WARFARIN", [])
        assert verdict.risk_label == "Unknown"
        assert verdict.primary_gene == "CYP2C9"
        assert verdict.confidence_score == 0.40
        assert verdict.detected_variants == ()

    def test_variants_of_other_genes_only(self):
        verdict = classify_risk("clopidogrel", [make_variant("CYP2D6", "*4")])
        assert verdict.risk_label == "Unknown"
        assert verdict.primary_gene == "CYP2C19"

    def test_legacy_wildtype_policy(self):
        verdict = classify_risk("warfarin", [], assume_wildtype=True)
        assert verdict.diplotype == "*1/*1"
        assert verdict.risk_label == "Safe"


class TestPhenotypeHeuristic:

    def test_prodrug_poor_is_ineffective(self):
        verdict = classify_risk("codeine", [make_variant("CYP2D6", "*3"), make_variant("CYP2D6", "*6")])
        assert verdict.diplotype == "*3/*6"
        assert verdict.phenotype == "Poor Metabolizer (PM)"
        assert verdict.risk_label == "Ineffective"
        assert verdict.severity == "high"
        assert verdict.confidence_score == 0.75

    def test_non_prodrug_poor_is_toxic(self):
        verdict = classify_risk("warfarin", [make_variant("CYP2C9", "*3"), make_variant("CYP2C9", "*5")])
        assert verdict.risk_label == "Toxic"
        assert verdict.severity == "high"
        assert verdict.confidence_score == 0.75

    def test_intermediate_adjusts(self):
        verdict = classify_risk("codeine", [make_variant("CYP2D6", "*10"), make_variant("CYP2D6", "*41")])
        assert verdict.risk_label == "Adjust Dosage"
        assert verdict.severity == "moderate"

    def test_prodrug_ultrarapid_is_critical(self):
        verdict = classify_risk("clopidogrel", [make_variant("CYP2C19", "*17"), make_variant("CYP2C19", "*1")])
        assert verdict.phenotype == "Ultrarapid Metabolizer (UM)"
        assert verdict.risk_label == "Toxic"
        assert verdict.severity == "critical"

    def test_non_prodrug_ultrarapid_adjusts(self):
        verdict = classify_risk("metoprolol", [make_variant("CYP2D6", "*2xN")])
        assert verdict.phenotype == "Ultrarapid Metabolizer (UM)"
        assert verdict.risk_label == "Adjust Dosage"

    def test_normal_is_safe(self):
        verdict = classify_risk("tramadol", [make_variant("CYP2D6", "*2")])
        assert verdict.phenotype == "Normal Metabolizer (NM)"
        assert verdict.risk_label == "Safe"
        assert verdict.severity == "none"
        assert verdict.confidence_score == 0.75


class TestVerdictInvariants:

    def test_detected_variants_scoped_to_gene(self):
        variants = [
            make_variant("CYP2D6", "*4"),
            make_variant("CYP2C19", "*2"),
            make_variant("CYP2D6", "*4"),
            make_variant("CYP2D6", "*10"),
        ]
        verdict = classify_risk("codeine", variants)
        assert len(verdict.detected_variants) == 3
        assert all(v.gene == verdict.primary_gene for v in verdict.detected_variants)

    def test_classification_is_deterministic(self):
        variants = [make_variant("CYP2C9", "*1"), make_variant("CYP2C9", "*3")]
        assert classify_risk("warfarin", variants) == classify_risk("warfarin", variants)
