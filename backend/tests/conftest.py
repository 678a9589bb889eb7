import pytest

from knowledge_base import load_knowledge_base
from models import Variant, Zygosity


VCF_HEADER = [
    "##fileformat=VCFv4.2",
    "##INFO=<ID=GENE,Number=1,Type=String,Description=\"Gene name\">",
    "##INFO=<ID=STAR,Number=1,Type=String,Description=\"Star allele\">",
    "##FORMAT=<ID=GT,Number=1,Type=String,Description=\"Genotype\">",
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tPATIENT_001",
]


def make_vcf(records, header=True) -> str:
    """records: (chrom, pos, rsid, ref, alt, gt) tuples or raw strings."""
    lines = list(VCF_HEADER) if header else []
    for rec in records:
        if isinstance(rec, str):
            lines.append(rec)
            continue
        chrom, pos, rsid, ref, alt, gt = rec
        lines.append(f"{chrom}\t{pos}\t{rsid}\t{ref}\t{alt}\t50\tPASS\t.\tGT\t{gt}")
    return "\n".join(lines) + "\n"


@pytest.fixture(scope="session")
def kb():
    return load_knowledge_base()


@pytest.fixture
def vcf():
    return make_vcf


@pytest.fixture
def variant():
    """Build an annotated Variant without going through the parser."""
    def _variant(rsid, gene, star, zygosity=Zygosity.HET, pos=1000):
        genotype = {
            Zygosity.HOM_REF: "0/0",
            Zygosity.HET: "0/1",
            Zygosity.HOM_ALT: "1/1",
            Zygosity.NO_CALL: "./.",
        }[zygosity]
        return Variant(
            chrom="1",
            pos=pos,
            ref="A",
            alts=("G",),
            genotype=genotype,
            zygosity=zygosity,
            rsid=rsid,
            gene=gene,
            star=star,
        )
    return _variant
