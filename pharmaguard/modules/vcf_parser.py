"""
VCF v4.x Parser Module
Parses VCF text and extracts pharmacogenomic variants (GENE, STAR, RS INFO tags).
"""
from __future__ import annotations

import re
import logging
from typing import Optional

from pharmaguard.models import ParsedVCF, VariantRecord

logger = logging.getLogger(__name__)

FILEFORMAT_MARKER = "##fileformat=VCF"
COLUMN_HEADER_MARKER = "#CHROM"
MIN_COLUMNS = 8

# Genotypes that mean the sample does not carry the annotated allele
_NON_CARRIER_GT = {"0/0", "0|0", "./.", ".|.", ".", "0"}


class VCFParseError(Exception):
    """Raised when VCF content is malformed or cannot be parsed."""
    pass


def _decode(file_content: bytes | str) -> str:
    if isinstance(file_content, bytes):
        try:
            return file_content.decode("utf-8")
        except UnicodeDecodeError:
            return file_content.decode("latin-1")
    return file_content


def _parse_info(info_str: str) -> dict[str, str]:
    """
    Parse the INFO column into a dict keyed by upper-cased tag name.
    Only KEY=VALUE tokens are kept; the first '=' splits key from value.
    """
    result: dict[str, str] = {}
    if info_str in (".", ""):
        return result
    for token in info_str.split(";"):
        k, sep, v = token.partition("=")
        k = k.strip()
        if sep and k:
            result[k.upper()] = v.strip()
    return result


def _genotype(fields: list[str]) -> Optional[str]:
    """Return the GT value of the first sample, or None when there is no GT."""
    if len(fields) < 10:
        return None
    format_keys = fields[8].split(":")
    if "GT" not in format_keys:
        return None
    sample_values = fields[9].split(":")
    idx = format_keys.index("GT")
    return sample_values[idx].strip() if idx < len(sample_values) else None


def _determine_zygosity(gt: Optional[str]) -> str:
    if not gt:
        return "unknown"
    alleles = re.split(r"[/|]", gt)
    if len(alleles) < 2:
        return "unknown"
    if alleles[0] == alleles[1]:
        return "homozygous_alt" if alleles[0] not in ("0", ".") else "homozygous_ref"
    return "heterozygous"


def _resolve_rsid(info: dict[str, str], id_column: str) -> str:
    rs = info.get("RS", "")
    if rs:
        return rs if rs.startswith("rs") else f"rs{rs}"
    if id_column and id_column != ".":
        return id_column
    return "unknown"


def _parse_position(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        return None


def _check_header(lines: list[str]) -> Optional[str]:
    """Raise VCFParseError unless a fileformat or #CHROM header is present; return the VCF version."""
    version = None
    has_header = False
    for line in lines:
        if line.startswith(FILEFORMAT_MARKER):
            has_header = True
            version = line.split("VCFv")[-1].strip() if "VCFv" in line else None
        elif line.startswith(COLUMN_HEADER_MARKER):
            has_header = True
    if not has_header:
        raise VCFParseError(
            f"Invalid VCF format: missing {FILEFORMAT_MARKER} or {COLUMN_HEADER_MARKER} header line."
        )
    return version


def parse_line(line: str) -> Optional[VariantRecord]:
    """
    Turn one VCF data line into a VariantRecord.
    Returns None for lines that are too short, carry no GENE tag, or whose
    sample genotype shows the allele is not carried.
    """
    fields = line.split("\t")
    if len(fields) < MIN_COLUMNS:
        return None

    info = _parse_info(fields[7])
    gene = info.get("GENE", "").upper()
    if not gene:
        return None

    gt = _genotype(fields)
    if gt is not None and gt in _NON_CARRIER_GT:
        return None

    star_allele = info.get("STAR") or info.get("ALLELE") or "*1"
    return VariantRecord(
        rsid=_resolve_rsid(info, fields[2].strip()),
        gene=gene,
        star_allele=star_allele,
        chromosome=fields[0].strip() or None,
        position=_parse_position(fields[1].strip()),
        ref_allele=fields[3].strip() or None,
        alt_allele=fields[4].strip() or None,
        zygosity=_determine_zygosity(gt),
    )


def parse_vcf(file_content: bytes | str) -> ParsedVCF:
    """
    Parse VCF content into pharmacogenomic variant records.

    Never raises for malformed input: a missing header yields a failed
    ParsedVCF with an error message, and unusable data lines are skipped.
    Records are returned in file order without de-duplication.
    """
    text = _decode(file_content)
    lines = text.splitlines()

    try:
        if not lines:
            raise VCFParseError("Empty VCF file provided.")
        vcf_version = _check_header(lines)
    except VCFParseError as e:
        logger.warning("VCF rejected: %s", e)
        return ParsedVCF(variants=[], variants_found=0, success=False, error=str(e))

    variants: list[VariantRecord] = []
    total_records = 0
    for lineno, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        total_records += 1
        record = parse_line(line)
        if record is None:
            logger.debug("Line %d: no pharmacogenomic record, skipping.", lineno)
            continue
        variants.append(record)

    logger.info(
        "VCF parse complete: %d data lines, %d PGx variants identified.",
        total_records, len(variants),
    )
    return ParsedVCF(
        variants=variants,
        variants_found=len(variants),
        success=True,
        vcf_version=vcf_version,
        total_records=total_records,
    )
