"""Tests for regulated gene sets and their intersections."""

import numpy as np
import pandas as pd
import pytest

from stratadeg.genesets.intersect import (
    canonical_pairings,
    intersect_gene_sets,
)
from stratadeg.genesets.regulated import (
    GeneAnnotation,
    RegulatedGeneSet,
    build_regulated_gene_set,
)
from stratadeg.stats.results import ContrastResult


def _result(rows, stratum="HIP", contrast="c"):
    """ContrastResult from (gene_id, logFC, p_value) rows."""
    from stratadeg.stats.significance import classify

    genes, log_fc, p = zip(*rows)
    labels = [s.value for s in classify(np.array(log_fc), np.array(p))]
    table = pd.DataFrame({
        "gene_id": list(genes),
        "logFC": list(log_fc),
        "p_value": list(p),
        "adj_p_value": list(p),
        "significance": labels,
        "adj_significance": labels,
    })
    return ContrastResult(contrast, stratum, table, pd.DataFrame())


@pytest.fixture
def result():
    return _result([
        ("g1", 1.2, 0.001),
        ("g2", -0.9, 0.01),
        ("g3", 0.1, 0.0001),
        ("g4", 2.0, 0.02),
        ("g5", -1.5, 0.2),
        ("g6", -3.0, 0.0),
    ])


class TestGeneAnnotation:

    def test_lookup_multiple_identifiers(self):
        annotation = GeneAnnotation.from_pairs([("g1", "100"), ("g1", "101"), ("g2", "200")])
        assert annotation.lookup("g1") == ("100", "101")
        assert annotation.lookup("missing") == ()
        assert "g2" in annotation
        assert len(annotation) == 2

    def test_identity(self):
        annotation = GeneAnnotation.identity()
        assert annotation.lookup("g9") == ("g9",)
        assert "anything" in annotation

    def test_from_frame_drops_missing_and_collapses_duplicates(self):
        frame = pd.DataFrame({
            "gene_id": ["g1", "g1", "g2", "g3"],
            "entrez": [1017.0, 1017.0, np.nan, 5.0],
        })
        annotation = GeneAnnotation.from_frame(frame, id_column="entrez")
        assert annotation.lookup("g1") == ("1017",)
        assert annotation.lookup("g2") == ()
        assert annotation.lookup("g3") == ("5",)

    def test_from_frame_missing_column(self):
        with pytest.raises(ValueError, match="Annotation column 'symbol'"):
            GeneAnnotation.from_frame(pd.DataFrame({"gene_id": []}), id_column="symbol")


class TestBuildRegulatedGeneSet:

    def test_directions_follow_table_order(self, result):
        gene_set = build_regulated_gene_set(result)
        assert gene_set.upregulated == ("g1", "g4")
        assert gene_set.downregulated == ("g2", "g6")
        assert gene_set.significant == ("g1", "g4", "g2", "g6")
        assert gene_set.n_unmapped == 0
        assert gene_set.stratum == "HIP"

    def test_unmapped_genes_excluded_and_counted(self, result):
        annotation = GeneAnnotation.from_pairs([("g1", "E1"), ("g6", "E6a"), ("g6", "E6b")])
        gene_set = build_regulated_gene_set(result, annotation)
        assert gene_set.upregulated == ("E1",)
        assert gene_set.downregulated == ("E6a", "E6b")
        assert gene_set.n_unmapped == 2

    def test_empty_annotation_maps_nothing(self, result):
        gene_set = build_regulated_gene_set(result, GeneAnnotation({}))
        assert gene_set.significant == ()
        assert gene_set.n_unmapped == 4

    def test_significant_count_bounded_by_genes(self, result):
        gene_set = build_regulated_gene_set(result)
        assert len(gene_set.significant) <= result.n_genes

    def test_unknown_direction(self, result):
        with pytest.raises(ValueError, match="Unknown direction"):
            build_regulated_gene_set(result).direction("sideways")


class TestIntersectGeneSets:

    @pytest.fixture
    def sets(self):
        a = RegulatedGeneSet("HIP", "tbi", ("A", "B", "C"), ("X", "Y"))
        b = RegulatedGeneSet("HIP", "dementia", ("B", "C", "D"), ("Y", "Z"))
        return a, b

    def test_shared_identifiers(self, sets):
        intersection = intersect_gene_sets(*sets)
        assert intersection.upregulated == {"B", "C"}
        assert intersection.downregulated == {"Y"}
        assert intersection.significant == {"B", "C", "Y"}
        assert intersection.sizes() == {"upregulated": 2, "downregulated": 1, "significant": 3}

    def test_commutative(self, sets):
        a, b = sets
        assert intersect_gene_sets(a, b) == intersect_gene_sets(b, a)

    def test_opposite_directions_do_not_match(self):
        a = RegulatedGeneSet("HIP", "tbi", ("A",), ())
        b = RegulatedGeneSet("HIP", "dementia", (), ("A",))
        intersection = intersect_gene_sets(a, b)
        assert intersection.upregulated == frozenset()
        assert intersection.downregulated == frozenset()
        assert intersection.significant == {"A"}

    def test_empty_direction_gives_empty_set(self):
        a = RegulatedGeneSet("HIP", "tbi", (), ("X",))
        b = RegulatedGeneSet("HIP", "dementia", ("A", "B"), ("X",))
        intersection = intersect_gene_sets(a, b)
        assert intersection.upregulated == frozenset()
        assert intersection.downregulated == {"X"}

    def test_both_empty(self):
        empty = RegulatedGeneSet("HIP", "tbi", (), ())
        intersection = intersect_gene_sets(empty, empty)
        assert intersection.sizes() == {"upregulated": 0, "downregulated": 0, "significant": 0}

    def test_cross_stratum_rejected(self):
        a = RegulatedGeneSet("HIP", "tbi", ("A",), ())
        b = RegulatedGeneSet("PCx", "dementia", ("A",), ())
        with pytest.raises(ValueError, match="across strata"):
            intersect_gene_sets(a, b)


class TestCanonicalPairings:

    def test_one_pairing_per_genotype(self):
        pairings = {p.genotype: p for p in canonical_pairings()}
        assert set(pairings) == {"apoe4_pos", "apoe4_neg"}
        assert pairings["apoe4_pos"].tbi_contrast == "tbi_effect_apoe4_pos"
        assert pairings["apoe4_pos"].dementia_contrast == "dementia_effect_apoe4_pos"
        assert pairings["apoe4_neg"].tbi_contrast == "tbi_effect_apoe4_neg"
        assert pairings["apoe4_neg"].dementia_contrast == "dementia_effect_apoe4_neg"
