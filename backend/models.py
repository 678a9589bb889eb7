"""
Data models shared by the parser, knowledge base and risk engine.
All records are frozen: they are built once per request (or once per
process for knowledge-base entries) and never modified.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Mapping, Optional, Tuple


class Zygosity(str, Enum):
    """Zygosity of a genotype call."""
    HOM_REF = "HOM_REF"
    HET = "HET"
    HOM_ALT = "HOM_ALT"
    NO_CALL = "NO_CALL"


@dataclass(frozen=True)
class Variant:
    chrom: str
    pos: int
    ref: str
    alts: Tuple[str, ...]
    genotype: str
    zygosity: Zygosity
    rsid: Optional[str] = None
    qual: Optional[float] = None
    filter: Optional[str] = None
    gene: Optional[str] = None
    star: Optional[str] = None

    @property
    def is_called(self) -> bool:
        return self.zygosity is not Zygosity.NO_CALL

    def to_dict(self) -> dict:
        data = asdict(self)
        data["alts"] = list(self.alts)
        data["zygosity"] = self.zygosity.value
        return data


@dataclass(frozen=True)
class AlleleDefinition:
    gene: str
    star: str


@dataclass(frozen=True)
class GeneMetadata:
    symbol: str
    name: str
    chromosome: str
    wild_type: str
    baseline_phenotype: str
    allele_precedence: Tuple[str, ...] = ()
    key_markers: Tuple[str, ...] = ()
    composite_alleles: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "gene": self.symbol,
            "name": self.name,
            "chromosome": self.chromosome,
            "wild_type": self.wild_type,
            "baseline_phenotype": self.baseline_phenotype,
            "key_markers": list(self.key_markers),
        }


@dataclass(frozen=True)
class DrugMetadata:
    name: str
    gene: str
    drug_class: str
    guideline: str


@dataclass(frozen=True)
class RiskEntry:
    risk_label: str
    severity: str


@dataclass(frozen=True)
class Recommendation:
    drug: str
    action: str
    dosing: str
    alternatives: Tuple[str, ...]
    monitoring: bool
    urgency: str
    cpic: str

    def to_dict(self) -> dict:
        return {
            "drug": self.drug,
            "action": self.action,
            "dosing_guidance": self.dosing,
            "alternative_drugs": list(self.alternatives),
            "monitoring_required": self.monitoring,
            "urgency": self.urgency,
            "cpic_guideline_reference": self.cpic,
        }


@dataclass(frozen=True)
class RiskResult:
    drug: str
    gene: Optional[str]
    diplotype: Tuple[str, ...]
    phenotype: str
    risk_label: str
    severity: str
    confidence: float
    variants: Tuple[Variant, ...] = ()

    @property
    def diplotype_label(self) -> str:
        """Diplotype as written in CPIC tables, e.g. *1/*4."""
        return "/".join(self.diplotype) if self.diplotype else "Unknown"
