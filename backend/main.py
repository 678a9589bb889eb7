"""
PharmaGuard Backend — FastAPI Application
Pharmacogenomics analysis API: VCF parsing, risk assessment, CPIC
recommendations and AI-generated clinical explanations.
"""

import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from config import get_settings
from groq_integration import ExplanationError, fallback_explanation, generate_explanation
from knowledge_base import KnowledgeBase, get_genes_info, get_supported_drugs, load_knowledge_base
from models import RiskResult
from recommendations import get_cpic_recommendation
from risk_engine import compute_risk
from vcf_parser import ParseResult, parse

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("pharmaguard.api")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A broken knowledge base must stop startup, not fail individual requests
    app.state.knowledge_base = load_knowledge_base(settings.knowledge_base_path)
    yield


app = FastAPI(
    title="PharmaGuard API",
    description="Pharmacogenomics analysis API — VCF parsing, risk assessment, and AI-powered clinical explanations",
    version=VERSION,
    lifespan=lifespan,
)

# CORS — allow frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


def _knowledge_base(request: Request) -> KnowledgeBase:
    return request.app.state.knowledge_base


async def _read_vcf(vcf_file: Optional[UploadFile]) -> str:
    if vcf_file is None:
        raise HTTPException(status_code=400, detail="Please upload a valid .vcf file.")

    content = await vcf_file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large (max {settings.max_upload_mb:g}MB)",
        )
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "runtime": "Python",
    }


@app.post("/api/analyze")
async def analyze(
    request: Request,
    vcf_file: Optional[UploadFile] = File(None),
    drugs: Optional[str] = Form(None),
):
    """
    Master analysis endpoint.
    Takes a VCF file + comma-separated drug names → complete pharmacogenomic
    analysis per drug, with AI explanation.
    """
    text = await _read_vcf(vcf_file)
    if not drugs or not drugs.strip():
        raise HTTPException(status_code=400, detail="Please specify at least one drug.")

    kb = _knowledge_base(request)
    parse_result = parse(text, kb)
    if not parse_result.success and not parse_result.variants:
        raise HTTPException(status_code=400, detail=", ".join(parse_result.errors) or "No variants found in VCF file")

    drug_list = [d.strip().upper() for d in drugs.split(",") if d.strip()]
    logger.info(
        "Analyzing %d drug(s) against %d variants: %s",
        len(drug_list), len(parse_result.variants), ", ".join(drug_list),
    )

    # Per-drug analyses are independent; explanation calls run concurrently
    results = await asyncio.gather(
        *(_analyze_drug(drug, parse_result, kb) for drug in drug_list)
    )

    return {
        "success": True,
        "data": results[0] if len(results) == 1 else list(results),
    }


@app.post("/api/upload-test")
async def upload_test(request: Request, vcf_file: Optional[UploadFile] = File(None)):
    """Parse a VCF file without analysis; returns a parsing summary."""
    if vcf_file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    text = await _read_vcf(vcf_file)
    result = parse(text, _knowledge_base(request))

    return {
        "filename": vcf_file.filename,
        "file_size": len(text.encode("utf-8")),
        "vcf_version": result.vcf_version,
        "parsing_success": result.success,
        "variants_detected": len(result.variants),
        "genes_found": result.genes_found,
        "errors": result.errors,
        "sample_variants": [v.to_dict() for v in result.variants[:5]],
    }


@app.get("/api/genes")
async def genes(request: Request):
    return {"genes": get_genes_info(_knowledge_base(request))}


@app.get("/api/drugs")
async def drugs_endpoint(request: Request):
    return {"drugs": get_supported_drugs(_knowledge_base(request))}


async def _explain(risk: RiskResult) -> str:
    """Explanation with a bounded wait; degrades to the templated text."""
    try:
        return await asyncio.wait_for(
            generate_explanation(
                risk.drug,
                risk.phenotype,
                risk.risk_label,
                risk.variants,
                risk.gene,
            ),
            timeout=settings.explanation_timeout_seconds,
        )
    except (ExplanationError, asyncio.TimeoutError) as e:
        logger.warning("Using fallback explanation for %s: %s", risk.drug, str(e) or "timed out")
    except Exception:
        logger.exception("Explanation client failed for %s; using fallback", risk.drug)
    return fallback_explanation(
        risk.drug, risk.phenotype, risk.risk_label, risk.gene, risk.diplotype_label
    )


async def _analyze_drug(drug: str, parse_result: ParseResult, kb: KnowledgeBase) -> dict:
    # Deterministic core first; the explanation never feeds back into it
    risk = compute_risk(parse_result.variants, drug, kb)
    recommendation = get_cpic_recommendation(risk.drug, risk.phenotype, kb)
    explanation = await _explain(risk)

    return _build_response(risk, recommendation.to_dict(), explanation, parse_result)


def _build_response(
    risk: RiskResult,
    recommendation: dict,
    explanation: str,
    parse_result: ParseResult,
) -> dict:
    """Build the full JSON response schema for one drug."""
    patient_id = f"PATIENT_{uuid.uuid4().hex[:6].upper()}"
    recommendation.pop("drug", None)

    return {
        "patient_id": patient_id,
        "drug": risk.drug,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "risk_assessment": {
            "risk_label": risk.risk_label,
            "confidence_score": risk.confidence,
            "severity": risk.severity,
        },
        "pharmacogenomic_profile": {
            "primary_gene": risk.gene,
            "diplotype": risk.diplotype_label,
            "phenotype": risk.phenotype,
            "detected_variants": [
                {"rsid": v.rsid, "gene": v.gene, "star": v.star, "genotype": v.genotype}
                for v in risk.variants
            ],
        },
        "clinical_recommendation": recommendation,
        "llm_generated_explanation": explanation,
        "quality_metrics": {
            "vcf_parsing_success": parse_result.success,
            "variants_detected": len(parse_result.variants),
            "parsing_errors": parse_result.errors,
            "genes_analyzed": parse_result.genes_found,
            "confidence_factors": _confidence_factors(risk),
        },
    }


def _confidence_factors(risk: RiskResult) -> List[str]:
    if risk.gene is None:
        return ["unsupported_drug"]
    if risk.variants:
        return ["known_variant", "validated_rsid", "cpic_evidence"]
    return ["no_variants_detected", "standard_phenotype"]


# Serving Frontend Static Files
# In production (Docker), static files are built into the 'static' directory
static_dir = os.path.join(os.path.dirname(__file__), "static")
if os.path.exists(static_dir):
    app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    # SPA Fallback: Serve index.html for any unknown routes
    @app.exception_handler(404)
    async def spa_fallback(request, exc):
        return FileResponse(os.path.join(static_dir, "index.html"))

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
