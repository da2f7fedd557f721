"""Tests for significance classification and result tables."""

import numpy as np
import pandas as pd
import pytest

from stratadeg.core.groups import GroupLabel
from stratadeg.pipeline import run_stratum
from stratadeg.stats.results import RESULT_COLUMNS
from stratadeg.stats.significance import (
    LOGFC_THRESHOLD,
    PVALUE_THRESHOLD,
    Significance,
    classify,
    classify_gene,
)

from conftest import generate_expression, generate_sample_design


class TestClassify:

    def test_thresholds(self):
        assert LOGFC_THRESHOLD == 0.5
        assert PVALUE_THRESHOLD == 0.05

    def test_forced_effects_two_group_case(self):
        """logFC=+2 with p≈0 is Upregulated, logFC=0 is NotSignificant."""
        log_fc = np.array([2.0, 0.0])
        p = np.array([1e-12, 0.9])
        assert classify(log_fc, p).tolist() == [
            Significance.UPREGULATED, Significance.NOT_SIGNIFICANT,
        ]

    @pytest.mark.parametrize("log_fc, p, expected", [
        (0.6, 0.01, Significance.UPREGULATED),
        (-0.6, 0.01, Significance.DOWNREGULATED),
        (0.5, 0.01, Significance.NOT_SIGNIFICANT),
        (-0.5, 0.01, Significance.NOT_SIGNIFICANT),
        (3.0, 0.05, Significance.NOT_SIGNIFICANT),
        (0.1, 1e-10, Significance.NOT_SIGNIFICANT),
        (np.nan, 0.01, Significance.NOT_SIGNIFICANT),
        (2.0, np.nan, Significance.NOT_SIGNIFICANT),
    ])
    def test_classify_gene(self, log_fc, p, expected):
        assert classify_gene(log_fc, p) is expected

    def test_labels_are_enum_members(self):
        labels = classify(np.array([2.0, 0.0, -2.0]), np.array([1e-12, 0.9, 1e-12]))
        assert all(isinstance(label, Significance) for label in labels)
        assert labels[0] is Significance.UPREGULATED
        assert labels[1] is Significance.NOT_SIGNIFICANT
        assert labels[2] is Significance.DOWNREGULATED
        assert [label.value for label in labels] == [
            "Upregulated", "NotSignificant", "Downregulated",
        ]

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="Shape mismatch"):
            classify(np.zeros(3), np.zeros(2))

    def test_labels_serialize_as_strings(self):
        assert str(Significance.DOWNREGULATED) == "Downregulated"
        assert Significance("NotSignificant") is Significance.NOT_SIGNIFICANT


class TestTwoGroupSynthetic:
    """Only two groups differ, 4 samples per group; both schemes agree."""

    @pytest.fixture
    def result(self):
        test = GroupLabel(True, True, True)
        design = generate_sample_design(n_per_group=4)
        matrix = generate_expression(design, n_genes=30, effects={0: {test: 2.0}}, seed=11)
        return run_stratum(matrix, design).results["dementia_effect_apoe4_pos"]

    def test_forced_gene_upregulated_under_both_schemes(self, result):
        row = result.table.set_index("gene_id").loc["g0"]
        assert row["logFC"] == pytest.approx(2.0, abs=0.3)
        assert row["significance"] == "Upregulated"
        assert row["adj_significance"] == "Upregulated"

    def test_null_gene_not_significant(self, result):
        # Pure-noise gene with logFC ≈ 0
        table = result.table.set_index("gene_id")
        null_gene = table.drop(index="g0")["logFC"].abs().idxmin()
        assert table.loc[null_gene, "significance"] == "NotSignificant"
        assert table.loc[null_gene, "adj_significance"] == "NotSignificant"


class TestContrastResult:

    @pytest.fixture
    def stratum(self, balanced_design, expression):
        return run_stratum(expression, balanced_design, stratum="HIP")

    def test_table_columns_and_rows(self, stratum):
        table = stratum.results["tbi_effect_apoe4_pos"].table
        assert tuple(table.columns) == RESULT_COLUMNS
        assert table["gene_id"].tolist() == [f"g{i}" for i in range(50)]

    def test_adjusted_at_least_raw(self, stratum):
        for result in stratum.results.values():
            table = result.table
            assert np.all(table["adj_p_value"] >= table["p_value"])

    @pytest.mark.parametrize("adjusted", [False, True])
    def test_label_counts_sum_to_gene_count(self, stratum, adjusted):
        for result in stratum.results.values():
            counts = result.label_counts(adjusted=adjusted)
            assert set(counts) == {"Upregulated", "Downregulated", "NotSignificant"}
            assert sum(counts.values()) == result.n_genes == 50

    def test_table_is_a_copy(self, stratum):
        result = stratum.results["tbi_effect_apoe4_pos"]
        table = result.table
        table["logFC"] = 0.0
        assert not np.all(result.table["logFC"] == 0.0)

    def test_genes_with_label(self, stratum):
        result = stratum.results["dementia_effect_apoe4_pos"]
        assert "g0" in result.genes_with(Significance.UPREGULATED)
        assert "g1" in result.genes_with(Significance.DOWNREGULATED, adjusted=True)

    def test_statistics_frame(self, stratum):
        stats = stratum.results["tbi_effect_apoe4_neg"].statistics
        assert list(stats.columns) == ["gene_id", "ave_expr", "se", "t_statistic", "df_total"]
        assert isinstance(stats, pd.DataFrame)
