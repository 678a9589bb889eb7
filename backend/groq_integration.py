"""
Groq AI Integration Module
Uses Groq via OpenAI-compatible API to generate clinical pharmacogenomics explanations.

The explanation is advisory text only. Callers must treat a failure here as
non-fatal and fall back to fallback_explanation().
"""

import logging
from typing import Iterable, Optional

from openai import AsyncOpenAI, OpenAIError

from config import Settings, get_settings
from models import Variant

logger = logging.getLogger(__name__)


class ExplanationError(RuntimeError):
    """The explanation service is unavailable or returned nothing usable."""


def get_client(settings: Settings) -> AsyncOpenAI:
    """Get async OpenAI client configured for Groq with API key from settings."""
    if not settings.groq_api_key:
        raise ExplanationError("GROQ_API_KEY environment variable is not set")

    return AsyncOpenAI(
        api_key=settings.groq_api_key,
        base_url=settings.groq_base_url,
        timeout=settings.explanation_timeout_seconds,
        max_retries=1,
    )


def _describe_variants(variants: Iterable[Variant]) -> str:
    described = [
        f"{v.rsid or f'{v.chrom}:{v.pos}'} ({v.gene or 'unannotated'}, {v.star or '-'}, {v.zygosity.value})"
        for v in variants
    ]
    return ", ".join(described) if described else "none detected"


def build_prompt(drug: str, phenotype: str, risk: str, variants: Iterable[Variant], gene: Optional[str]) -> str:
    return f"""You are a clinical pharmacogenomics expert. Given the following patient data, explain the result for a clinician.

Patient Genetic Data:
- Gene: {gene or 'Not determined'}
- Phenotype: {phenotype}
- Drug: {drug}
- Risk Level: {risk}
- Detected Variants: {_describe_variants(variants)}

Write one short paragraph (at most 5 sentences): why this patient has this risk, how the
variants affect the drug's metabolism or transport, and what happens clinically if the
drug is given as-is. Cite the rsID variants. Do not invent variants that are not listed."""


async def generate_explanation(
    drug: str,
    phenotype: str,
    risk: str,
    variants: Iterable[Variant],
    gene: Optional[str],
    settings: Optional[Settings] = None,
) -> str:
    """
    Generate a clinical explanation using Groq (Llama 3).

    Raises ExplanationError when no key is configured, the API call fails or
    the reply is empty.
    """
    settings = settings or get_settings()
    client = get_client(settings)
    prompt = build_prompt(drug, phenotype, risk, variants, gene)

    try:
        message = await client.chat.completions.create(
            model=settings.groq_model,
            messages=[
                {"role": "system", "content": "You are a helpful clinical pharmacogenomics expert."},
                {"role": "user", "content": prompt},
            ],
            temperature=0.2,
        )
    except OpenAIError as e:
        raise ExplanationError(f"Groq API explanation failed: {e}") from e

    text = (message.choices[0].message.content or "").strip() if message.choices else ""
    if not text:
        raise ExplanationError("Groq API returned an empty explanation")
    return text


def fallback_explanation(drug: str, phenotype: str, risk: str, gene: Optional[str], diplotype: str) -> str:
    """Templated explanation used when the Groq API is unavailable."""
    if not gene:
        return (
            f"{drug} is not covered by the supported pharmacogenes, so no genotype-guided "
            f"assessment was made. Refer to standard prescribing information."
        )
    return (
        f"Patient carries the {diplotype} diplotype in {gene}, classified as {phenotype}. "
        f"This results in a '{risk}' risk for {drug}. The {gene} variants affect the protein "
        f"responsible for {drug} metabolism or transport. Refer to CPIC guidelines for the "
        f"{gene}-{drug} interaction."
    )
