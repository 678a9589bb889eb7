"""
Recommendation Lookup Module
Maps (drug, phenotype) to CPIC-aligned clinical guidance.
"""

from typing import Optional

from knowledge_base import KnowledgeBase, get_knowledge_base
from models import Recommendation

CPIC_HOME = "CPIC guidelines: https://cpicpgx.org/guidelines/"


def fallback_recommendation(drug: str) -> Recommendation:
    """Generic guidance for drug/phenotype pairs without a guideline row."""
    return Recommendation(
        drug=drug,
        action="Consult specialist",
        dosing="No guideline available for this combination; consult a clinical pharmacogenomics specialist",
        alternatives=(),
        monitoring=True,
        urgency="unknown",
        cpic=CPIC_HOME,
    )


def get_cpic_recommendation(
    drug: str,
    phenotype: str,
    kb: Optional[KnowledgeBase] = None,
) -> Recommendation:
    kb = kb or get_knowledge_base()
    drug_name = kb.canonical_drug(drug)
    recommendation = kb.drug_phenotype_to_recommendation.get((drug_name, phenotype))
    if recommendation is None:
        return fallback_recommendation(drug_name)
    return recommendation
