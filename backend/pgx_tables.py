"""
Pharmacogenomic Knowledge Tables
Built-in CPIC-aligned domain data for the 6 target genes:
CYP2D6, CYP2C19, CYP2C9, SLCO1B1, TPMT, DPYD.

These are plain dicts; knowledge_base.py validates them and freezes them into
a KnowledgeBase at startup. A JSON file with the same shape can replace them
(see KNOWLEDGE_BASE_PATH).
"""

from itertools import combinations_with_replacement

PM = "Poor Metabolizer"
IM = "Intermediate Metabolizer"
NM = "Normal Metabolizer"
RM = "Rapid Metabolizer"
UM = "Ultrarapid Metabolizer"

PF = "Poor Function"
DF = "Decreased Function"
NF = "Normal Function"


# ─── rsID → Gene/Star allele catalog ─────────────────────────────────────────
# Based on PharmVar / dbSNP / CPIC variant-star allele mappings.
RSID_LOOKUP = {
    # CYP2D6 variants
    "rs3892097":  {"gene": "CYP2D6",  "star": "*4"},    # 1846G>A — splicing defect
    "rs35742686": {"gene": "CYP2D6",  "star": "*3"},    # 2549delA — frameshift
    "rs5030655":  {"gene": "CYP2D6",  "star": "*6"},    # 1707delT — frameshift
    "rs5030867":  {"gene": "CYP2D6",  "star": "*7"},    # H324P
    "rs5030865":  {"gene": "CYP2D6",  "star": "*8"},    # G169X
    "rs1065852":  {"gene": "CYP2D6",  "star": "*10"},   # 100C>T — P34S
    "rs28371706": {"gene": "CYP2D6",  "star": "*17"},   # T107I
    "rs28371725": {"gene": "CYP2D6",  "star": "*41"},   # 2988G>A — reduced splicing
    "rs16947":    {"gene": "CYP2D6",  "star": "*2"},    # R296C
    "rs1135840":  {"gene": "CYP2D6",  "star": "*2"},    # S486T

    # CYP2C19 variants
    "rs4244285":  {"gene": "CYP2C19", "star": "*2"},    # 681G>A — splicing defect
    "rs4986893":  {"gene": "CYP2C19", "star": "*3"},    # 636G>A — premature stop
    "rs28399504": {"gene": "CYP2C19", "star": "*4"},
    "rs56337013": {"gene": "CYP2C19", "star": "*5"},
    "rs72552267": {"gene": "CYP2C19", "star": "*6"},
    "rs72558186": {"gene": "CYP2C19", "star": "*7"},
    "rs41291556": {"gene": "CYP2C19", "star": "*8"},
    "rs12248560": {"gene": "CYP2C19", "star": "*17"},   # -806C>T — increased transcription

    # CYP2C9 variants
    "rs1799853":  {"gene": "CYP2C9",  "star": "*2"},    # R144C
    "rs1057910":  {"gene": "CYP2C9",  "star": "*3"},    # I359L
    "rs28371686": {"gene": "CYP2C9",  "star": "*5"},
    "rs9332131":  {"gene": "CYP2C9",  "star": "*6"},
    "rs28371685": {"gene": "CYP2C9",  "star": "*11"},

    # SLCO1B1 variants (*15 carries both markers)
    "rs4149056":  {"gene": "SLCO1B1", "star": "*5"},    # V174A
    "rs2306283":  {"gene": "SLCO1B1", "star": "*1b"},   # N130D

    # TPMT variants (*3A carries both *3B and *3C markers)
    "rs1800462":  {"gene": "TPMT",    "star": "*2"},    # A80P
    "rs1800460":  {"gene": "TPMT",    "star": "*3B"},   # A154T
    "rs1142345":  {"gene": "TPMT",    "star": "*3C"},   # Y240C
    "rs1800584":  {"gene": "TPMT",    "star": "*4"},

    # DPYD variants
    "rs3918290":  {"gene": "DPYD",    "star": "*2A"},        # IVS14+1G>A (critical)
    "rs55886062": {"gene": "DPYD",    "star": "*13"},        # I560S
    "rs67376798": {"gene": "DPYD",    "star": "c.2846A>T"},  # D949V
    "rs75017182": {"gene": "DPYD",    "star": "HapB3"},      # c.1129-5923C>G
    "rs56038477": {"gene": "DPYD",    "star": "HapB3"},      # c.1236G>A (in HapB3)
}


# ─── Gene metadata ───────────────────────────────────────────────────────────
# allele_precedence: clinical impact order used when more than two allele
# copies are observed (first wins).
GENE_INFO = {
    "CYP2D6": {
        "name": "Cytochrome P450 2D6",
        "chromosome": "22",
        "wild_type": "*1",
        "baseline_phenotype": NM,
        "allele_precedence": ["*3", "*4", "*6", "*7", "*8", "*41", "*10", "*17", "*2"],
        "key_markers": ["rs3892097", "rs35742686", "rs5030655", "rs1065852", "rs28371725", "rs16947"],
        "composite_alleles": {},
    },
    "CYP2C19": {
        "name": "Cytochrome P450 2C19",
        "chromosome": "10",
        "wild_type": "*1",
        "baseline_phenotype": NM,
        "allele_precedence": ["*2", "*3", "*4", "*5", "*6", "*7", "*8", "*17"],
        "key_markers": ["rs4244285", "rs4986893", "rs12248560"],
        "composite_alleles": {},
    },
    "CYP2C9": {
        "name": "Cytochrome P450 2C9",
        "chromosome": "10",
        "wild_type": "*1",
        "baseline_phenotype": NM,
        "allele_precedence": ["*3", "*6", "*2", "*5", "*11"],
        "key_markers": ["rs1799853", "rs1057910"],
        "composite_alleles": {},
    },
    "SLCO1B1": {
        "name": "Solute carrier organic anion transporter 1B1",
        "chromosome": "12",
        "wild_type": "*1",
        "baseline_phenotype": NF,
        "allele_precedence": ["*15", "*5", "*1b"],
        "key_markers": ["rs4149056", "rs2306283"],
        "composite_alleles": {"*15": ["*5", "*1b"]},
    },
    "TPMT": {
        "name": "Thiopurine S-methyltransferase",
        "chromosome": "6",
        "wild_type": "*1",
        "baseline_phenotype": NM,
        "allele_precedence": ["*3A", "*3B", "*3C", "*2", "*4"],
        "key_markers": ["rs1800462", "rs1800460", "rs1142345"],
        "composite_alleles": {"*3A": ["*3B", "*3C"]},
    },
    "DPYD": {
        "name": "Dihydropyrimidine dehydrogenase",
        "chromosome": "1",
        "wild_type": "*1",
        "baseline_phenotype": NM,
        "allele_precedence": ["*2A", "*13", "c.2846A>T", "HapB3"],
        "key_markers": ["rs3918290", "rs55886062", "rs67376798", "rs75017182"],
        "composite_alleles": {},
    },
}


# ─── Allele activity values ──────────────────────────────────────────────────
# 0 = no function, 0.5 = decreased, 1 = normal, 1.5 = increased.
STAR_ACTIVITY = {
    "CYP2D6": {
        "*1": 1.0, "*2": 1.0,
        "*3": 0.0, "*4": 0.0, "*6": 0.0, "*7": 0.0, "*8": 0.0,
        "*10": 0.5, "*17": 0.5, "*41": 0.5,
    },
    "CYP2C19": {
        "*1": 1.0,
        "*2": 0.0, "*3": 0.0, "*4": 0.0, "*5": 0.0, "*6": 0.0, "*7": 0.0, "*8": 0.0,
        "*17": 1.5,
    },
    "CYP2C9": {
        "*1": 1.0,
        "*2": 0.5, "*5": 0.5, "*11": 0.5,
        "*3": 0.0, "*6": 0.0,
    },
    "SLCO1B1": {
        "*1": 1.0, "*1b": 1.0,
        "*5": 0.0, "*15": 0.0,
    },
    "TPMT": {
        "*1": 1.0,
        "*2": 0.0, "*3A": 0.0, "*3B": 0.0, "*3C": 0.0, "*4": 0.0,
    },
    "DPYD": {
        "*1": 1.0,
        "*2A": 0.0, "*13": 0.0,
        "c.2846A>T": 0.5, "HapB3": 0.5,
    },
}

# Diplotype activity score → phenotype: (max score inclusive, phenotype), ascending.
ACTIVITY_THRESHOLDS = {
    "CYP2D6":  [(0.0, PM), (1.0, IM), (2.25, NM), (float("inf"), UM)],
    "CYP2C19": [(0.0, PM), (1.5, IM), (2.0, NM), (2.5, RM), (float("inf"), UM)],
    "CYP2C9":  [(0.5, PM), (1.5, IM), (float("inf"), NM)],
    "SLCO1B1": [(0.0, PF), (1.0, DF), (float("inf"), NF)],
    "TPMT":    [(0.5, PM), (1.5, IM), (float("inf"), NM)],
    "DPYD":    [(0.5, PM), (1.5, IM), (float("inf"), NM)],
}


def _phenotype_for_score(gene: str, score: float) -> str:
    for upper, phenotype in ACTIVITY_THRESHOLDS[gene]:
        if score <= upper:
            return phenotype
    raise ValueError(f"No phenotype threshold covers {gene} score {score}")


def build_phenotype_map() -> dict:
    """Expand allele activity values into explicit diplotype → phenotype tables."""
    phenotype_map = {}
    for gene, activity in STAR_ACTIVITY.items():
        table = {}
        for a, b in combinations_with_replacement(sorted(activity), 2):
            table[f"{a}/{b}"] = _phenotype_for_score(gene, activity[a] + activity[b])
        phenotype_map[gene] = table
    return phenotype_map


PHENOTYPE_MAP = build_phenotype_map()


# ─── Drug metadata ───────────────────────────────────────────────────────────

DRUG_INFO = {
    "CODEINE": {
        "gene": "CYP2D6",
        "drug_class": "Opioid analgesic",
        "guideline": "CPIC Guideline for CYP2D6, OPRM1, and COMT Genotypes and Select Opioid Therapy (2021)",
    },
    "TRAMADOL": {
        "gene": "CYP2D6",
        "drug_class": "Opioid analgesic",
        "guideline": "CPIC Guideline for CYP2D6, OPRM1, and COMT Genotypes and Select Opioid Therapy (2021)",
    },
    "CLOPIDOGREL": {
        "gene": "CYP2C19",
        "drug_class": "Antiplatelet",
        "guideline": "CPIC Guideline for CYP2C19 Genotype and Clopidogrel Therapy (2022)",
    },
    "WARFARIN": {
        "gene": "CYP2C9",
        "drug_class": "Anticoagulant",
        "guideline": "CPIC Guideline for Pharmacogenetics-Guided Warfarin Dosing (2017)",
    },
    "SIMVASTATIN": {
        "gene": "SLCO1B1",
        "drug_class": "Statin",
        "guideline": "CPIC Guideline for SLCO1B1, ABCG2, and CYP2C9 Genotypes and Statin-Associated Musculoskeletal Symptoms (2022)",
    },
    "AZATHIOPRINE": {
        "gene": "TPMT",
        "drug_class": "Thiopurine immunosuppressant",
        "guideline": "CPIC Guideline for Thiopurine Dosing Based on TPMT and NUDT15 Genotypes (2018)",
    },
    "MERCAPTOPURINE": {
        "gene": "TPMT",
        "drug_class": "Thiopurine antineoplastic",
        "guideline": "CPIC Guideline for Thiopurine Dosing Based on TPMT and NUDT15 Genotypes (2018)",
    },
    "FLUOROURACIL": {
        "gene": "DPYD",
        "drug_class": "Fluoropyrimidine",
        "guideline": "CPIC Guideline for Fluoropyrimidines and DPYD Genotype (2017, 2024 update)",
    },
    "CAPECITABINE": {
        "gene": "DPYD",
        "drug_class": "Fluoropyrimidine",
        "guideline": "CPIC Guideline for Fluoropyrimidines and DPYD Genotype (2017, 2024 update)",
    },
}

DRUG_ALIASES = {
    "5-FU": "FLUOROURACIL",
    "6-MP": "MERCAPTOPURINE",
}


# ─── Guideline table (drug × phenotype) ──────────────────────────────────────
# Each row carries both the risk bucket and the clinical recommendation.

_SAFE = {
    "risk_label": "Safe",
    "severity": "none",
    "action": "Use standard dosing",
    "dosing": "Use label-recommended dose",
    "alternatives": [],
    "monitoring": False,
    "urgency": "routine",
}

GUIDELINES = {
    # CYP2D6 ↔ opioids
    ("CODEINE", PM): {
        "risk_label": "Ineffective",
        "severity": "high",
        "action": "Avoid codeine",
        "dosing": "Avoid codeine use due to lack of efficacy",
        "alternatives": ["Morphine", "Non-opioid analgesics"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("CODEINE", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "moderate",
        "action": "Use label-recommended dosing and monitor response",
        "dosing": "Start at label dose; switch if no adequate response",
        "alternatives": ["Morphine", "Non-opioid analgesics"],
        "monitoring": True,
        "urgency": "moderate",
    },
    ("CODEINE", NM): _SAFE,
    ("CODEINE", UM): {
        "risk_label": "Toxic",
        "severity": "critical",
        "action": "Avoid codeine",
        "dosing": "Contraindicated: ultrarapid conversion to morphine",
        "alternatives": ["Morphine", "Non-opioid analgesics"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("TRAMADOL", PM): {
        "risk_label": "Ineffective",
        "severity": "high",
        "action": "Avoid tramadol",
        "dosing": "Avoid tramadol use due to lack of efficacy",
        "alternatives": ["Morphine", "Non-opioid analgesics"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("TRAMADOL", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "moderate",
        "action": "Use label-recommended dosing and monitor response",
        "dosing": "Start at label dose; switch if no adequate response",
        "alternatives": ["Morphine", "Non-opioid analgesics"],
        "monitoring": True,
        "urgency": "moderate",
    },
    ("TRAMADOL", NM): _SAFE,
    ("TRAMADOL", UM): {
        "risk_label": "Toxic",
        "severity": "critical",
        "action": "Avoid tramadol",
        "dosing": "Contraindicated: increased formation of O-desmethyltramadol",
        "alternatives": ["Morphine", "Non-opioid analgesics"],
        "monitoring": True,
        "urgency": "urgent",
    },

    # CYP2C19 ↔ clopidogrel
    ("CLOPIDOGREL", PM): {
        "risk_label": "Ineffective",
        "severity": "high",
        "action": "Use alternative antiplatelet",
        "dosing": "Avoid clopidogrel; use prasugrel or ticagrelor if not contraindicated",
        "alternatives": ["Prasugrel", "Ticagrelor"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("CLOPIDOGREL", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "moderate",
        "action": "Consider alternative antiplatelet",
        "dosing": "Avoid standard dose clopidogrel if possible",
        "alternatives": ["Prasugrel", "Ticagrelor"],
        "monitoring": True,
        "urgency": "moderate",
    },
    ("CLOPIDOGREL", NM): _SAFE,
    ("CLOPIDOGREL", RM): _SAFE,
    ("CLOPIDOGREL", UM): _SAFE,

    # CYP2C9 ↔ warfarin
    ("WARFARIN", PM): {
        "risk_label": "Toxic",
        "severity": "high",
        "action": "Significantly reduce warfarin dose",
        "dosing": "Reduce initial dose by 50-80%; use a pharmacogenetic dosing algorithm",
        "alternatives": ["Apixaban", "Rivaroxaban"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("WARFARIN", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "moderate",
        "action": "Reduce warfarin dose",
        "dosing": "Reduce initial dose by 25-50%",
        "alternatives": [],
        "monitoring": True,
        "urgency": "moderate",
    },
    ("WARFARIN", NM): _SAFE,

    # SLCO1B1 ↔ simvastatin
    ("SIMVASTATIN", PF): {
        "risk_label": "Toxic",
        "severity": "high",
        "action": "Avoid simvastatin",
        "dosing": "Prescribe an alternative statin at a dose matched to desired potency",
        "alternatives": ["Rosuvastatin", "Pravastatin"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("SIMVASTATIN", DF): {
        "risk_label": "Adjust Dosage",
        "severity": "moderate",
        "action": "Limit simvastatin dose",
        "dosing": "Do not exceed 20 mg daily, or use an alternative statin",
        "alternatives": ["Rosuvastatin", "Pravastatin"],
        "monitoring": True,
        "urgency": "moderate",
    },
    ("SIMVASTATIN", NF): _SAFE,

    # TPMT ↔ thiopurines
    ("AZATHIOPRINE", PM): {
        "risk_label": "Toxic",
        "severity": "critical",
        "action": "Avoid azathioprine or drastically reduce dose",
        "dosing": "For non-malignant conditions use an alternative agent; otherwise 10% of standard dose thrice weekly",
        "alternatives": ["Mycophenolate mofetil"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("AZATHIOPRINE", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "moderate",
        "action": "Reduce azathioprine dose",
        "dosing": "Start at 30-80% of target dose",
        "alternatives": [],
        "monitoring": True,
        "urgency": "moderate",
    },
    ("AZATHIOPRINE", NM): _SAFE,
    ("MERCAPTOPURINE", PM): {
        "risk_label": "Toxic",
        "severity": "critical",
        "action": "Drastically reduce mercaptopurine dose",
        "dosing": "Start at 10% of standard dose, three times weekly",
        "alternatives": [],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("MERCAPTOPURINE", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "moderate",
        "action": "Reduce mercaptopurine dose",
        "dosing": "Start at 30-80% of full dose",
        "alternatives": [],
        "monitoring": True,
        "urgency": "moderate",
    },
    ("MERCAPTOPURINE", NM): _SAFE,

    # DPYD ↔ fluoropyrimidines
    ("FLUOROURACIL", PM): {
        "risk_label": "Toxic",
        "severity": "critical",
        "action": "Avoid fluorouracil",
        "dosing": "Contraindicated: use a non-fluoropyrimidine regimen",
        "alternatives": ["Non-fluoropyrimidine chemotherapy regimen"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("FLUOROURACIL", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "high",
        "action": "Reduce fluorouracil dose",
        "dosing": "Reduce starting dose by 50%, then titrate on toxicity",
        "alternatives": [],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("FLUOROURACIL", NM): _SAFE,
    ("CAPECITABINE", PM): {
        "risk_label": "Toxic",
        "severity": "critical",
        "action": "Avoid capecitabine",
        "dosing": "Contraindicated: use a non-fluoropyrimidine regimen",
        "alternatives": ["Non-fluoropyrimidine chemotherapy regimen"],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("CAPECITABINE", IM): {
        "risk_label": "Adjust Dosage",
        "severity": "high",
        "action": "Reduce capecitabine dose",
        "dosing": "Reduce starting dose by 50%, then titrate on toxicity",
        "alternatives": [],
        "monitoring": True,
        "urgency": "urgent",
    },
    ("CAPECITABINE", NM): _SAFE,
}


def default_document() -> dict:
    """Built-in tables in the same shape as a KNOWLEDGE_BASE_PATH JSON file."""
    return {
        "rsid_catalog": RSID_LOOKUP,
        "genes": GENE_INFO,
        "diplotype_phenotypes": PHENOTYPE_MAP,
        "drugs": DRUG_INFO,
        "drug_aliases": DRUG_ALIASES,
        "guidelines": [
            {"drug": drug, "phenotype": phenotype, **row}
            for (drug, phenotype), row in GUIDELINES.items()
        ],
    }
