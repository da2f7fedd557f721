"""Tests for Benjamini-Hochberg correction."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from stratadeg.stats.multiple_testing import benjamini_hochberg, fdr_correction


class TestBenjaminiHochberg:

    def test_largest_p_value_kept_exactly(self):
        # 0.7 * 3 / 3 rounds below 0.7 in floating point
        p = np.array([0.7, 0.7, 0.7])
        adjusted = benjamini_hochberg(p)
        assert np.all(adjusted >= p)
        assert_allclose(adjusted, 0.7)

    def test_top_p_value_never_rounded_down(self):
        p = np.random.default_rng(7).uniform(size=(500, 50))
        for family in p:
            assert np.all(benjamini_hochberg(family) >= family)

    def test_textbook_example(self):
        p = np.array([0.01, 0.04, 0.03, 0.005])
        # Sorted: 0.005, 0.01, 0.03, 0.04 → ×4/rank: 0.02, 0.02, 0.04, 0.04
        assert_allclose(benjamini_hochberg(p), [0.02, 0.04, 0.04, 0.02])

    def test_adjusted_never_below_raw(self):
        p = np.random.default_rng(3).uniform(size=500)
        adjusted = benjamini_hochberg(p)
        assert np.all(adjusted >= p)

    def test_monotone_in_raw_order(self):
        p = np.random.default_rng(4).beta(0.3, 1.0, size=500)
        adjusted = benjamini_hochberg(p)
        order = np.argsort(p)
        assert np.all(np.diff(adjusted[order]) >= 0)

    def test_clipped_to_one(self):
        adjusted = benjamini_hochberg(np.array([0.9, 0.95, 0.99]))
        assert np.all(adjusted <= 1.0)

    def test_nan_excluded_from_family(self):
        p = np.array([0.01, np.nan, 0.02])
        adjusted = benjamini_hochberg(p)
        assert np.isnan(adjusted[1])
        # Family size is 2, not 3
        assert_allclose(adjusted[[0, 2]], [0.02, 0.02])

    def test_all_nan(self):
        assert np.all(np.isnan(benjamini_hochberg(np.full(4, np.nan))))

    def test_empty(self):
        assert benjamini_hochberg(np.array([])).shape == (0,)



class TestFdrCorrection:

    def test_bonferroni(self):
        p = np.array([0.01, 0.2, np.nan])
        adjusted = fdr_correction(p, method="bonferroni")
        assert_allclose(adjusted[:2], [0.02, 0.4])
        assert np.isnan(adjusted[2])

    @pytest.mark.parametrize("method", ["BH", "BY"])
    def test_fdr_methods_bounded(self, method):
        p = np.random.default_rng(6).uniform(size=50)
        adjusted = fdr_correction(p, method=method)
        assert np.all((adjusted >= p) & (adjusted <= 1.0))
