"""
Unit tests for the VCF parser.
Covers annotation, genotype classification and non-fatal handling of malformed lines.
"""

import pytest

from models import Zygosity
from vcf_parser import VcfLineError, parse, parse_genotype, parse_info_field


class TestParseValidFiles:

    def test_known_rsid_is_annotated(self, kb, vcf):
        result = parse(vcf([("22", 42524947, "rs3892097", "C", "T", "1/1")]), kb)

        assert result.success
        assert result.errors == []
        assert len(result.variants) == 1
        v = result.variants[0]
        assert v.chrom == "22"
        assert v.pos == 42524947
        assert v.alts == ("T",)
        assert v.gene == "CYP2D6"
        assert v.star == "*4"
        assert v.zygosity is Zygosity.HOM_ALT
        assert result.genes_found == ["CYP2D6"]

    def test_header_lines_are_skipped_and_version_recorded(self, kb, vcf):
        result = parse(vcf([("10", 96541616, "rs4244285", "G", "A", "0/1")]), kb)

        assert result.vcf_version == "VCFv4.2"
        assert result.total_lines_processed == 1

    def test_unknown_rsid_is_kept_unannotated(self, kb, vcf):
        result = parse(vcf([("7", 117559590, "rs113993960", "ATCT", "A", "0/1")]), kb)

        assert result.success
        v = result.variants[0]
        assert v.rsid == "rs113993960"
        assert v.gene is None
        assert v.star is None
        assert result.genes_found == []

    def test_info_tags_do_not_annotate_unknown_records(self, kb, vcf):
        line = "22\t42526000\t.\tG\tA\t.\tPASS\tGENE=CYP2D6;STAR=*4\tGT\t1/1"
        result = parse(vcf([line]), kb)

        v = result.variants[0]
        assert v.gene is None
        assert v.star is None
        assert v.rsid is None
        assert result.genes_found == []

    def test_info_rs_tag_is_looked_up_in_catalog(self, kb, vcf):
        line = "22\t42526000\t.\tG\tA\t.\tPASS\tGENE=CYP2D6;STAR=*999;RS=rs28371725\tGT\t0/1"
        result = parse(vcf([line]), kb)

        v = result.variants[0]
        assert v.rsid == "rs28371725"
        assert v.gene == "CYP2D6"
        assert v.star == "*41"

    def test_info_gene_outside_knowledge_base_is_ignored(self, kb, vcf):
        line = "17\t100\t.\tG\tA\t.\tPASS\tGENE=BRCA1;STAR=*9\tGT\t0/1"
        result = parse(vcf([line]), kb)

        assert result.variants[0].gene is None

    def test_first_catalog_identifier_wins(self, kb, vcf):
        result = parse(vcf([("6", 18130918, "rs0000001;rs1800460", "C", "T", "0/1")]), kb)

        v = result.variants[0]
        assert v.rsid == "rs1800460"
        assert v.gene == "TPMT"
        assert v.star == "*3B"

    def test_space_separated_lines_are_accepted(self, kb):
        text = "22 42524947 rs3892097 C T 50 PASS . GT 0/1\n"
        result = parse(text, kb)

        assert result.success
        assert result.variants[0].zygosity is Zygosity.HET

    def test_multiallelic_and_sample_fields(self, kb, vcf):
        line = "1\t97450058\trs3918290\tC\tT,G\t99.5\tPASS\tDP=40\tGT:DP\t1/2:40"
        result = parse(vcf([line]), kb)

        v = result.variants[0]
        assert v.alts == ("T", "G")
        assert v.qual == 99.5
        assert v.filter == "PASS"
        assert v.zygosity is Zygosity.HET

    def test_lowercase_alleles_are_normalised(self, kb, vcf):
        result = parse(vcf([("12", 21178615, "rs4149056", "t", "c", "0/1")]), kb)

        v = result.variants[0]
        assert (v.ref, v.alts) == ("T", ("C",))


class TestMalformedInput:

    def test_non_numeric_position_is_reported_and_parsing_continues(self, kb, vcf):
        text = vcf([
            ("22", "abc", "rs3892097", "C", "T", "1/1"),
            ("10", 96541616, "rs4244285", "G", "A", "0/1"),
        ])
        result = parse(text, kb)

        assert result.success
        assert len(result.variants) == 1
        assert result.variants[0].rsid == "rs4244285"
        assert len(result.errors) == 1
        assert "invalid position 'abc'" in result.errors[0]
        assert result.errors[0].startswith("Line 6:")

    def test_line_numbers_count_newlines_only(self, kb, vcf):
        text = vcf([
            "22\t42524947\trs3892097\tC\tT\t50\tPASS\tNOTE=a\x0cb c\tGT\t1/1",
            ("22", "nope", "rs16947", "G", "A", "0/1"),
        ])
        result = parse(text, kb)

        assert len(result.variants) == 1
        assert result.variants[0].star == "*4"
        assert result.errors == ["Line 7: invalid position 'nope'"]

    def test_crlf_line_endings(self, kb):
        text = "##fileformat=VCFv4.2\r\n22\t42524947\trs3892097\tC\tT\t50\tPASS\t.\tGT\t0/1\r\n"
        result = parse(text, kb)

        assert result.errors == []
        assert result.variants[0].genotype == "0/1"

    @pytest.mark.parametrize("line, reason", [
        ("22\t42524947\trs3892097\tC\tT", "insufficient columns"),
        ("22\t0\trs3892097\tC\tT\t.\tPASS\t.\tGT\t0/1", "position must be >= 1"),
        ("22\t-5\trs3892097\tC\tT\t.\tPASS\t.\tGT\t0/1", "position must be >= 1"),
        ("22\t100\trs3892097\tCX\tT\t.\tPASS\t.\tGT\t0/1", "invalid reference allele"),
        ("22\t100\trs3892097\tC\t.\t.\tPASS\t.\tGT\t0/1", "missing alternate allele"),
        ("22\t100\trs3892097\tC\tT,Q\t.\tPASS\t.\tGT\t0/1", "invalid alternate allele"),
        ("22\t100\trs3892097\tC\tT\thigh\tPASS\t.\tGT\t0/1", "invalid quality"),
        ("22\t100\trs3892097\tC\tT\t.\tPASS\t.\tDP\t30", "has no GT field"),
        ("22\t100\trs3892097\tC\tT\t.\tPASS\t.\tGT\tA/B", "invalid genotype"),
        ("22\t100\trs3892097\tC\tT\t.\tPASS\t.\tGT\t0/2", "missing alternate allele"),
    ])
    def test_structural_failures(self, kb, line, reason):
        result = parse(line + "\n", kb)

        assert result.variants == []
        assert result.success is False
        assert len(result.errors) == 1
        assert reason in result.errors[0]

    def test_only_malformed_lines(self, kb):
        text = "this is not a vcf\nneither is this line\n\x00\x01\x02\n"
        result = parse(text, kb)

        assert result.success is False
        assert result.variants == []
        assert len(result.errors) == 3

    def test_empty_and_header_only_input(self, kb, vcf):
        for text in ("", "\n\n", vcf([])):
            result = parse(text, kb)
            assert result.success is False
            assert result.variants == []
            assert result.errors == []

    @pytest.mark.parametrize("text", [
        "\t\t\t\t\t\t\t\t\t",
        "1\t²\trs1\tA\tG\t.\t.\t.\tGT\t0/1",
        "1\t5\trs1\tA\tG\t.\t.\t.\tGT\t²/1",
        "1\t5\trs1\tA\tG\t.\t.\t.\tGT:DP\t",
        "1\t5\trs1\tA\t<DEL>\t.\t.\t.\tGT\t0|1",
        "#only a comment",
        "chr1 1 . A G . . . GT 0/1 extra columns here",
        "\r\n\r\n1\t5\trs1\tA\tG\t.\t.\t.\tGT\t1/1\r\n",
    ])
    def test_never_raises(self, kb, text):
        result = parse(text, kb)

        assert isinstance(result.errors, list)
        for v in result.variants:
            assert v.pos >= 1
            assert v.zygosity in set(Zygosity)

    def test_bytes_and_non_text_input(self, kb):
        assert parse(b"22\t100\trs3892097\tC\tT\t.\tPASS\t.\tGT\t1/1\n", kb).success
        result = parse(None, kb)
        assert result.success is False
        assert result.errors


class TestGenotypeParsing:

    @pytest.mark.parametrize("fmt, sample, n_alts, expected", [
        ("GT", "0/0", 1, Zygosity.HOM_REF),
        ("GT", "0|1", 1, Zygosity.HET),
        ("GT", "1/0", 1, Zygosity.HET),
        ("GT", "1/1", 1, Zygosity.HOM_ALT),
        ("GT", "1/2", 2, Zygosity.HET),
        ("GT", "./.", 1, Zygosity.NO_CALL),
        ("GT", ".", 1, Zygosity.NO_CALL),
        ("GT", "1", 1, Zygosity.HOM_ALT),
        ("DP:GT", "35:0/1", 1, Zygosity.HET),
        ("GT:DP", "1|1:12", 1, Zygosity.HOM_ALT),
    ])
    def test_zygosity(self, fmt, sample, n_alts, expected):
        genotype, zygosity = parse_genotype(fmt, sample, n_alts)

        assert zygosity is expected
        assert genotype == sample.split(":")[fmt.split(":").index("GT")]

    def test_dropped_trailing_gt_is_no_call(self):
        assert parse_genotype("DP:GT", "35", 1) == (".", Zygosity.NO_CALL)

    def test_empty_sample_is_invalid(self):
        with pytest.raises(VcfLineError):
            parse_genotype("GT:DP", "", 1)

    def test_out_of_range_allele(self):
        with pytest.raises(VcfLineError):
            parse_genotype("GT", "0/3", 2)


class TestInfoField:

    def test_key_values_and_flags(self):
        info = parse_info_field("GENE=CYP2D6;STAR=*4;DB;AF=0.5")

        assert info == {"GENE": "CYP2D6", "STAR": "*4", "DB": True, "AF": "0.5"}

    def test_missing_info(self):
        assert parse_info_field(".") == {}
        assert parse_info_field("") == {}
