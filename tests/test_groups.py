"""Tests for group labels and sample designs."""

import pandas as pd
import pytest

from stratadeg.core.errors import DegenerateDesignError
from stratadeg.core.groups import ALL_GROUPS, GroupLabel, SampleDesign, parse_factor

from conftest import generate_sample_design


class TestGroupLabel:
    """Structured group labels and their string form."""

    def test_eight_distinct_groups(self):
        assert len(ALL_GROUPS) == 8
        assert len(set(ALL_GROUPS)) == 8

    def test_canonical_order_starts_with_triple_positive(self):
        assert ALL_GROUPS[0] == GroupLabel(True, True, True)
        assert ALL_GROUPS[-1] == GroupLabel(False, False, False)

    def test_to_string(self):
        assert GroupLabel(True, False, True).to_string() == "APOE4+_TBI-_Dementia"
        assert GroupLabel(False, True, False).to_string() == "APOE4-_TBI+_NoDementia"

    @pytest.mark.parametrize("group", ALL_GROUPS)
    def test_string_form_parses_back(self, group):
        assert GroupLabel.from_string(group.to_string()) == group

    @pytest.mark.parametrize("label", ["APOE4+_TBI+", "APOE4+_TBI+_Maybe", "apoe4+_tbi+_dementia"])
    def test_malformed_label_rejected(self, label):
        with pytest.raises(ValueError, match="Malformed"):
            GroupLabel.from_string(label)


class TestParseFactor:
    """Binary factor encodings from clinical sheets."""

    @pytest.mark.parametrize("value", [True, 1, "Y", "yes", "Positive", "Dementia", " TRUE "])
    def test_true_encodings(self, value):
        assert parse_factor(value) is True

    @pytest.mark.parametrize("value", [False, 0, "N", "no", "negative", "No Dementia", "control"])
    def test_false_encodings(self, value):
        assert parse_factor(value) is False

    def test_missing_value_rejected(self):
        with pytest.raises(ValueError, match="Missing value in tbi"):
            parse_factor(float("nan"), "tbi")

    def test_unknown_value_rejected(self):
        with pytest.raises(ValueError, match="Unrecognised"):
            parse_factor("sometimes", "apoe4")


class TestSampleDesign:
    """Sample → group mapping with optional strata."""

    def test_group_counts_include_empty_groups(self):
        design = generate_sample_design(n_per_group=2, skip_groups=(ALL_GROUPS[3],))
        counts = design.group_counts()
        assert len(counts) == 8
        assert counts[ALL_GROUPS[3]] == 0
        assert counts[ALL_GROUPS[0]] == 2
        assert design.missing_groups() == [ALL_GROUPS[3]]

    def test_require_complete_passes_for_balanced_design(self, balanced_design):
        balanced_design.require_complete()

    def test_require_complete_names_missing_groups(self):
        missing = GroupLabel(False, True, False)
        design = generate_sample_design(n_per_group=2, skip_groups=(missing,))
        with pytest.raises(DegenerateDesignError) as exc_info:
            design.require_complete(stratum="HIP")
        assert exc_info.value.missing_groups == ["APOE4-_TBI+_NoDementia"]
        assert exc_info.value.stratum == "HIP"
        assert "HIP" in str(exc_info.value)

    def test_degenerate_design_is_value_error(self):
        assert issubclass(DegenerateDesignError, ValueError)

    def test_unstratified_design_is_single_stratum(self, balanced_design):
        strata = balanced_design.strata()
        assert list(strata) == ["all"]
        assert len(strata["all"]) == 32
        assert not balanced_design.is_stratified

    def test_strata_partition_samples(self, regional_design):
        strata = regional_design.strata()
        assert sorted(strata) == ["HIP", "PCx"]
        assert all(len(members) == 24 for members in strata.values())
        assert all(s.startswith("HIP_") for s in strata["HIP"])

    def test_subset_preserves_order(self, balanced_design):
        ids = balanced_design.sample_ids[[5, 0, 9]].tolist()
        subset = balanced_design.subset(ids)
        assert subset.sample_ids.tolist() == ids

    def test_subset_unknown_sample(self, balanced_design):
        with pytest.raises(ValueError, match="not in design"):
            balanced_design.subset(["nope"])

    def test_duplicate_sample_ids_rejected(self):
        groups = pd.Series([ALL_GROUPS[0], ALL_GROUPS[1]], index=["S1", "S1"])
        with pytest.raises(ValueError, match="Duplicate sample ids"):
            SampleDesign(groups)

    def test_strata_must_cover_samples(self):
        with pytest.raises(ValueError, match="no stratum assignment"):
            SampleDesign({"S1": ALL_GROUPS[0], "S2": ALL_GROUPS[1]}, {"S1": "HIP"})

    def test_from_frame_textual_factors(self, design_frame):
        design = SampleDesign.from_frame(
            design_frame.set_index("sample_id"), stratum_column="region"
        )
        assert len(design) == 16
        assert design.group_of("S00") == GroupLabel(True, True, True)
        assert design.group_of("S71") == GroupLabel(False, False, False)
        assert sorted(design.strata()) == ["FWM", "HIP"]

    def test_from_frame_group_column(self):
        frame = pd.DataFrame(
            {"group": [g.to_string() for g in ALL_GROUPS]},
            index=[f"S{i}" for i in range(8)],
        )
        design = SampleDesign.from_frame(frame, group_column="group")
        assert [design.group_of(f"S{i}") for i in range(8)] == list(ALL_GROUPS)

    def test_from_frame_missing_factor_column(self, design_frame):
        with pytest.raises(ValueError, match="Factor column 'tbi'"):
            SampleDesign.from_frame(design_frame.drop(columns="tbi").set_index("sample_id"))

    def test_to_frame_uses_string_labels(self, regional_design):
        frame = regional_design.to_frame()
        assert set(frame.columns) == {"apoe4", "tbi", "dementia", "group", "stratum"}
        assert frame.loc["HIP_0_0", "group"] == "APOE4+_TBI+_Dementia"
