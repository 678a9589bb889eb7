"""
Knowledge Base Module
Loads the pharmacogenomic tables once, validates them and freezes them into
an immutable KnowledgeBase shared by the parser and the risk engine.
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pgx_tables
from config import get_settings
from models import (
    AlleleDefinition,
    DrugMetadata,
    GeneMetadata,
    Recommendation,
    RiskEntry,
)

logger = logging.getLogger(__name__)

# Ordered lowest → highest
SEVERITY_LEVELS = ("none", "low", "moderate", "high", "critical")

REQUIRED_SECTIONS = ("rsid_catalog", "genes", "diplotype_phenotypes", "drugs", "guidelines")


class KnowledgeBaseError(ValueError):
    """The knowledge tables are missing or inconsistent. Fatal at startup."""


@dataclass(frozen=True)
class KnowledgeBase:
    rsid_to_gene_allele: Mapping[str, AlleleDefinition]
    diplotype_to_phenotype: Mapping[str, Mapping[str, str]]
    drug_to_gene: Mapping[str, str]
    phenotype_drug_to_risk: Mapping[Tuple[str, str], RiskEntry]
    drug_phenotype_to_recommendation: Mapping[Tuple[str, str], Recommendation]
    gene_metadata: Mapping[str, GeneMetadata]
    drug_metadata: Mapping[str, DrugMetadata]
    drug_aliases: Mapping[str, str]

    def canonical_drug(self, drug: str) -> str:
        """Trim, upper-case and resolve aliases (5-FU → FLUOROURACIL)."""
        name = (drug or "").strip().upper()
        return self.drug_aliases.get(name, name)

    def gene_for_drug(self, drug: str) -> Optional[str]:
        return self.drug_to_gene.get(self.canonical_drug(drug))


def _freeze(mapping: Dict) -> Mapping:
    return MappingProxyType(dict(mapping))


def _section(document: Mapping[str, Any], name: str) -> Any:
    try:
        return document[name]
    except KeyError:
        raise KnowledgeBaseError(f"Knowledge base is missing the '{name}' section") from None


def _build_genes(raw_genes: Mapping[str, Any]) -> Dict[str, GeneMetadata]:
    genes = {}
    for symbol, info in raw_genes.items():
        try:
            genes[symbol.upper()] = GeneMetadata(
                symbol=symbol.upper(),
                name=info["name"],
                chromosome=str(info["chromosome"]),
                wild_type=info.get("wild_type", "*1"),
                baseline_phenotype=info["baseline_phenotype"],
                allele_precedence=tuple(info.get("allele_precedence", ())),
                key_markers=tuple(info.get("key_markers", ())),
                composite_alleles=_freeze({
                    label: tuple(parts)
                    for label, parts in info.get("composite_alleles", {}).items()
                }),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise KnowledgeBaseError(f"Invalid metadata for gene {symbol}: {e}") from e
    return genes


def build_knowledge_base(document: Mapping[str, Any]) -> KnowledgeBase:
    """
    Validate a raw table document and freeze it.

    The document has the shape produced by pgx_tables.default_document():
    rsid_catalog, genes, diplotype_phenotypes, drugs, drug_aliases, guidelines.
    Raises KnowledgeBaseError on any dangling reference or bad value.
    """
    for name in REQUIRED_SECTIONS:
        _section(document, name)

    genes = _build_genes(document["genes"])

    catalog = {}
    for rsid, entry in document["rsid_catalog"].items():
        gene = str(entry.get("gene", "")).upper()
        if gene not in genes:
            raise KnowledgeBaseError(f"Catalog entry {rsid} references unknown gene '{gene}'")
        if not entry.get("star"):
            raise KnowledgeBaseError(f"Catalog entry {rsid} has no star allele")
        catalog[rsid] = AlleleDefinition(gene=gene, star=entry["star"])

    for gene in genes.values():
        for marker in gene.key_markers:
            allele = catalog.get(marker)
            if allele is None or allele.gene != gene.symbol:
                raise KnowledgeBaseError(
                    f"Key marker {marker} of {gene.symbol} is not a catalog entry for that gene"
                )

    phenotypes = {}
    for gene, table in document["diplotype_phenotypes"].items():
        if gene.upper() not in genes:
            raise KnowledgeBaseError(f"Phenotype table for unknown gene '{gene}'")
        if not isinstance(table, Mapping):
            raise KnowledgeBaseError(f"Phenotype table for {gene} must map diplotypes to phenotypes")
        phenotypes[gene.upper()] = _freeze(table)
    missing = sorted(set(genes) - set(phenotypes))
    if missing:
        raise KnowledgeBaseError(f"No diplotype table for gene(s): {', '.join(missing)}")

    drugs = {}
    for name, info in document["drugs"].items():
        gene = str(info.get("gene", "")).upper()
        if gene not in genes:
            raise KnowledgeBaseError(f"Drug {name} references unknown gene '{gene}'")
        drugs[name.upper()] = DrugMetadata(
            name=name.upper(),
            gene=gene,
            drug_class=info.get("drug_class", ""),
            guideline=info.get("guideline", ""),
        )

    aliases = {}
    for alias, target in document.get("drug_aliases", {}).items():
        if target.upper() not in drugs:
            raise KnowledgeBaseError(f"Alias {alias} points at unknown drug '{target}'")
        aliases[alias.upper()] = target.upper()

    risks = {}
    recommendations = {}
    for row in document["guidelines"]:
        try:
            drug = row["drug"].upper()
            phenotype = row["phenotype"]
            severity = row["severity"]
            risk_label = row["risk_label"]
        except (KeyError, AttributeError) as e:
            raise KnowledgeBaseError(f"Invalid guideline row {row!r}: {e}") from e
        if drug not in drugs:
            raise KnowledgeBaseError(f"Guideline row for unknown drug '{drug}'")
        if severity not in SEVERITY_LEVELS:
            raise KnowledgeBaseError(f"Unknown severity '{severity}' for {drug}/{phenotype}")

        risks[(phenotype, drug)] = RiskEntry(risk_label=risk_label, severity=severity)
        recommendations[(drug, phenotype)] = Recommendation(
            drug=drug,
            action=row.get("action", ""),
            dosing=row.get("dosing", ""),
            alternatives=tuple(row.get("alternatives", ())),
            monitoring=bool(row.get("monitoring", False)),
            urgency=row.get("urgency", "routine"),
            cpic=row.get("cpic") or drugs[drug].guideline,
        )

    kb = KnowledgeBase(
        rsid_to_gene_allele=_freeze(catalog),
        diplotype_to_phenotype=_freeze(phenotypes),
        drug_to_gene=_freeze({name: meta.gene for name, meta in drugs.items()}),
        phenotype_drug_to_risk=_freeze(risks),
        drug_phenotype_to_recommendation=_freeze(recommendations),
        gene_metadata=_freeze(genes),
        drug_metadata=_freeze(drugs),
        drug_aliases=_freeze(aliases),
    )
    logger.info(
        "Knowledge base loaded: %d genes, %d drugs, %d catalog variants, %d guideline rows",
        len(genes), len(drugs), len(catalog), len(risks),
    )
    return kb


def load_knowledge_base(path: Optional[str] = None) -> KnowledgeBase:
    """Load the built-in tables, or a JSON file of the same shape when path is given."""
    if not path:
        return build_knowledge_base(pgx_tables.default_document())

    try:
        with open(path, "r", encoding="utf-8") as fh:
            document = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise KnowledgeBaseError(f"Cannot read knowledge base file {path}: {e}") from e
    if not isinstance(document, dict):
        raise KnowledgeBaseError(f"Knowledge base file {path} must contain a JSON object")
    return build_knowledge_base(document)


@lru_cache(maxsize=1)
def get_knowledge_base() -> KnowledgeBase:
    """Process-wide default knowledge base (built on first use, never mutated)."""
    return load_knowledge_base(get_settings().knowledge_base_path)


# ─── Metadata accessors ──────────────────────────────────────────────────────

def get_genes_info(kb: Optional[KnowledgeBase] = None) -> List[dict]:
    """One entry per supported gene, with the drugs it governs."""
    kb = kb or get_knowledge_base()
    genes = []
    for symbol in sorted(kb.gene_metadata):
        info = kb.gene_metadata[symbol].to_dict()
        info["drugs"] = sorted(d for d, g in kb.drug_to_gene.items() if g == symbol)
        genes.append(info)
    return genes


def get_supported_drugs(kb: Optional[KnowledgeBase] = None) -> List[str]:
    """Every drug name the risk engine resolves, aliases included."""
    kb = kb or get_knowledge_base()
    return sorted(set(kb.drug_to_gene) | set(kb.drug_aliases))
