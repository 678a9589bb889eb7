"""
VCF Parser Module
Turns VCF text into structured Variant records plus non-fatal parse errors.

A malformed data line never aborts the run: it is reported as
"Line N: <reason>" and parsing continues with the next line. Variants whose
rsID is in the knowledge-base catalog are annotated with gene and star allele;
everything else is kept unannotated.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from knowledge_base import KnowledgeBase, get_knowledge_base
from models import Variant, Zygosity

logger = logging.getLogger(__name__)

VCF_COLUMNS = ("CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO", "FORMAT", "SAMPLE")

REF_PATTERN = re.compile(r"^[ACGTN]+$")
ALT_PATTERN = re.compile(r"^(?:[ACGTN*]+|<[^<>]+>)$")
GT_SEPARATOR = re.compile(r"[/|]")
ALLELE_INDEX = re.compile(r"^[0-9]+$")


class VcfLineError(ValueError):
    """A single data line failed structural validation."""


@dataclass
class ParseResult:
    variants: List[Variant]
    success: bool
    errors: List[str]
    vcf_version: str = "Unknown"
    total_lines_processed: int = 0
    genes_found: List[str] = field(default_factory=list)


def parse_info_field(info: str) -> dict:
    """Parse VCF INFO field into key-value pairs.
    Example: GENE=CYP2D6;STAR=*4;RS=rs3892097 → {GENE: CYP2D6, STAR: *4, RS: rs3892097}
    Flag fields (no value) map to True.
    """
    result = {}
    if info == "." or not info:
        return result
    for item in info.split(";"):
        item = item.strip()
        if not item:
            continue
        if "=" in item:
            key, value = item.split("=", 1)
            result[key.strip()] = value.strip()
        else:
            result[item] = True
    return result


def parse_genotype(format_field: str, sample_field: str, n_alts: int) -> Tuple[str, Zygosity]:
    """Extract the GT call from FORMAT/SAMPLE and classify its zygosity."""
    keys = format_field.split(":")
    if "GT" not in keys:
        raise VcfLineError(f"FORMAT '{format_field}' has no GT field")
    values = sample_field.split(":")
    gt_index = keys.index("GT")
    gt = values[gt_index].strip() if gt_index < len(values) else "."

    alleles = GT_SEPARATOR.split(gt)
    if not gt or any(a != "." and not ALLELE_INDEX.match(a) for a in alleles):
        raise VcfLineError(f"invalid genotype '{gt}'")
    if any(a == "." for a in alleles):
        return gt, Zygosity.NO_CALL

    indices = {int(a) for a in alleles}
    if max(indices) > n_alts:
        raise VcfLineError(f"genotype '{gt}' refers to a missing alternate allele")

    if indices == {0}:
        return gt, Zygosity.HOM_REF
    if len(indices) > 1:
        return gt, Zygosity.HET
    return gt, Zygosity.HOM_ALT


def _annotate(ids: List[str], info: dict, kb: KnowledgeBase) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Return (rsid, gene, star) for a record.

    The first identifier present in the knowledge-base catalog wins. An INFO
    RS tag is only an extra identifier checked after the ID column; records
    with no catalog identifier stay unannotated.
    """
    rs_tag = info.get("RS")
    candidates = list(ids)
    if isinstance(rs_tag, str) and rs_tag:
        candidates.append(rs_tag)

    for rsid in candidates:
        allele = kb.rsid_to_gene_allele.get(rsid)
        if allele is not None:
            return rsid, allele.gene, allele.star

    return (ids[0] if ids else None), None, None


def _parse_data_line(line: str, kb: KnowledgeBase) -> Variant:
    parts = line.split("\t")
    if len(parts) < 8:
        # Hand-edited files sometimes use spaces instead of tabs
        parts = re.split(r"\s+", line)
    if len(parts) < len(VCF_COLUMNS):
        raise VcfLineError(
            f"insufficient columns ({len(parts)} found, {len(VCF_COLUMNS)} expected)"
        )

    chrom, pos_str, id_field, ref, alt, qual_str, filt, info, fmt, sample = (
        p.strip() for p in parts[:10]
    )

    if not chrom or chrom == ".":
        raise VcfLineError("missing chromosome")

    try:
        pos = int(pos_str)
    except ValueError:
        raise VcfLineError(f"invalid position '{pos_str}'") from None
    if pos < 1:
        raise VcfLineError(f"position must be >= 1, got {pos}")

    ref = ref.upper()
    if not REF_PATTERN.match(ref):
        raise VcfLineError(f"invalid reference allele '{ref}'")

    if not alt or alt == ".":
        raise VcfLineError("missing alternate allele")
    alts = tuple(a if a.startswith("<") else a.upper() for a in alt.split(","))
    for a in alts:
        if not ALT_PATTERN.match(a):
            raise VcfLineError(f"invalid alternate allele '{a}'")

    qual = None
    if qual_str and qual_str != ".":
        try:
            qual = float(qual_str)
        except ValueError:
            raise VcfLineError(f"invalid quality '{qual_str}'") from None

    genotype, zygosity = parse_genotype(fmt, sample, len(alts))

    ids = [i.strip() for i in id_field.split(";") if i.strip() and i.strip() != "."]
    rsid, gene, star = _annotate(ids, parse_info_field(info), kb)

    return Variant(
        chrom=chrom,
        pos=pos,
        ref=ref,
        alts=alts,
        genotype=genotype,
        zygosity=zygosity,
        rsid=rsid,
        qual=qual,
        filter=filt if filt and filt != "." else None,
        gene=gene,
        star=star,
    )


def parse(text: str, kb: Optional[KnowledgeBase] = None) -> ParseResult:
    """
    Parse VCF file content into variants.

    Never raises for malformed input; success is True when at least one
    well-formed record was produced.

    Returns:
        ParseResult(variants=[...], success=True, errors=["Line 7: invalid position 'abc'"],
                    vcf_version="VCFv4.2", total_lines_processed=12, genes_found=["CYP2D6"])
    """
    kb = kb or get_knowledge_base()

    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    if not isinstance(text, str):
        return ParseResult(variants=[], success=False, errors=["Input is not VCF text"])

    variants = []
    errors = []
    total_lines = 0
    vcf_version = "Unknown"

    for line_num, raw in enumerate(text.split("\n"), 1):
        line = raw.strip()

        # Extract VCF version from header
        if line.startswith("##fileformat="):
            vcf_version = line.split("=", 1)[1].strip()
            continue

        # Skip headers, comments and blank lines
        if not line or line.startswith("#"):
            continue

        total_lines += 1
        try:
            variants.append(_parse_data_line(line, kb))
        except VcfLineError as e:
            errors.append(f"Line {line_num}: {e}")

    genes_found = sorted({v.gene for v in variants if v.gene})
    logger.debug(
        "Parsed %d data lines: %d variants, %d errors, genes=%s",
        total_lines, len(variants), len(errors), genes_found,
    )

    return ParseResult(
        variants=variants,
        success=len(variants) > 0,
        errors=errors,
        vcf_version=vcf_version,
        total_lines_processed=total_lines,
        genes_found=genes_found,
    )
