"""
Risk Engine Module
CPIC-guideline-based rule engine for pharmacogenomic risk assessment.
Maps drug → gene, variants → diplotype → phenotype → drug risk.

Every lookup has an explicit not-found branch: an unsupported drug or an
unmapped diplotype degrades to a low-confidence default instead of raising,
so one bad drug never interrupts a multi-drug analysis.
"""

import logging
from typing import Dict, Iterable, Optional, Sequence, Tuple

from knowledge_base import SEVERITY_LEVELS, KnowledgeBase, get_knowledge_base
from models import GeneMetadata, RiskResult, Variant, Zygosity

logger = logging.getLogger(__name__)

INDETERMINATE = "Indeterminate"
UNKNOWN_RISK = "Unknown"
LOWEST_SEVERITY = SEVERITY_LEVELS[0]

# Confidence adjustments
INDETERMINATE_CONFIDENCE_CAP = 0.3
UNMAPPED_RISK_PENALTY = 0.5

ALLELE_COPIES = {
    Zygosity.HOM_ALT: 2,
    Zygosity.HET: 1,
}


def call_diplotype(gene: GeneMetadata, gene_variants: Iterable[Variant]) -> Tuple[str, str]:
    """
    Call a diplotype from the star-annotated variants of one gene.

    HOM_ALT gives two copies of the variant's star allele, HET gives one.
    Several markers of the same star allele do not add copies. Composite
    alleles absorb their components when all of them are present. Alleles are
    ranked by the gene's precedence list (ties: smallest rsID), the first two
    copies win and missing copies are filled with the wild-type allele.
    """
    copies: Dict[str, int] = {}
    first_rsid: Dict[str, str] = {}
    for v in gene_variants:
        n = ALLELE_COPIES.get(v.zygosity, 0)
        if not v.star or v.star == gene.wild_type or n == 0:
            continue
        copies[v.star] = max(copies.get(v.star, 0), n)
        rsid = v.rsid or ""
        first_rsid[v.star] = min(first_rsid.get(v.star, rsid), rsid)

    for label, parts in gene.composite_alleles.items():
        if not parts or not all(copies.get(p, 0) > 0 for p in parts):
            continue
        n = min(copies[p] for p in parts)
        first_rsid[label] = min(first_rsid[p] for p in parts)
        for p in parts:
            copies[p] -= n
            if copies[p] == 0:
                del copies[p]
        copies[label] = copies.get(label, 0) + n

    rank = {label: i for i, label in enumerate(gene.allele_precedence)}
    ordered = sorted(
        copies,
        key=lambda s: (rank.get(s, len(rank)), first_rsid.get(s, ""), s),
    )
    alleles = [s for s in ordered for _ in range(copies[s])][:2]
    while len(alleles) < 2:
        alleles.insert(0, gene.wild_type)
    return alleles[0], alleles[1]


def get_phenotype(kb: KnowledgeBase, gene: str, diplotype: Sequence[str]) -> str:
    """Look up phenotype from gene + diplotype (either allele order)."""
    gene_map = kb.diplotype_to_phenotype.get(gene, {})
    a, b = diplotype
    phenotype = gene_map.get(f"{a}/{b}")
    if phenotype is None:
        phenotype = gene_map.get(f"{b}/{a}")
    return phenotype if phenotype else INDETERMINATE


def score_confidence(gene: GeneMetadata, gene_variants: Iterable[Variant]) -> float:
    """Fraction of the gene's key diagnostic markers that carry a genotype call."""
    expected = set(gene.key_markers)
    if not expected:
        return 0.0
    observed = {v.rsid for v in gene_variants if v.is_called and v.rsid in expected}
    return len(observed) / len(expected)


def compute_risk(
    variants: Optional[Iterable[Variant]],
    drug: str,
    kb: Optional[KnowledgeBase] = None,
) -> RiskResult:
    """
    Assess drug risk for a patient's variants.

    Returns a RiskResult; never raises for unsupported drugs or unmapped
    diplotype/phenotype combinations.
    """
    kb = kb or get_knowledge_base()
    drug_name = kb.canonical_drug(drug)
    gene_symbol = kb.gene_for_drug(drug_name)

    if gene_symbol is None:
        logger.info("Drug '%s' has no gene mapping; returning indeterminate result", drug_name)
        return RiskResult(
            drug=drug_name,
            gene=None,
            diplotype=(),
            phenotype=INDETERMINATE,
            risk_label=UNKNOWN_RISK,
            severity=LOWEST_SEVERITY,
            confidence=0.0,
        )

    gene = kb.gene_metadata[gene_symbol]
    gene_variants = [v for v in (variants or ()) if v.gene == gene_symbol]

    diplotype = call_diplotype(gene, gene_variants)
    phenotype = get_phenotype(kb, gene_symbol, diplotype)

    confidence = score_confidence(gene, gene_variants)
    if phenotype == INDETERMINATE:
        confidence = min(confidence, INDETERMINATE_CONFIDENCE_CAP)

    entry = kb.phenotype_drug_to_risk.get((phenotype, drug_name))
    if entry is not None:
        risk_label, severity = entry.risk_label, entry.severity
    else:
        risk_label, severity = UNKNOWN_RISK, LOWEST_SEVERITY
        confidence *= UNMAPPED_RISK_PENALTY

    contributing = tuple(v for v in gene_variants if v.zygosity in ALLELE_COPIES)

    return RiskResult(
        drug=drug_name,
        gene=gene_symbol,
        diplotype=diplotype,
        phenotype=phenotype,
        risk_label=risk_label,
        severity=severity,
        confidence=round(confidence, 2),
        variants=contributing,
    )
