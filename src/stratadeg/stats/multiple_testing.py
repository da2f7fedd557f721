"""
Multiple testing correction.

Scope matters: the false discovery rate is controlled within exactly one
family of tests, which here is one contrast within one stratum. Callers pass
the p-values of that family and nothing else; p-values from different
contrasts or strata are never pooled into one correction.

NaN p-values (genes whose statistic is undefined) are left out of the family
and stay NaN.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from numpy.typing import NDArray
from statsmodels.stats.multitest import multipletests

__all__ = ['benjamini_hochberg', 'fdr_correction']


def fdr_correction(
    pvalues: NDArray[np.float64],
    method: Literal["BH", "BY", "bonferroni"] = "BH",
    alpha: float = 0.05,
) -> NDArray[np.float64]:
    """
    Apply multiple testing correction via statsmodels.

    Args:
        pvalues: Array of raw p-values.
        method: Correction method:
            - "BH": Benjamini-Hochberg (controls FDR)
            - "BY": Benjamini-Yekutieli (controls FDR under dependence)
            - "bonferroni": Bonferroni (controls FWER)
        alpha: Significance threshold passed to statsmodels.

    Returns:
        Array of adjusted p-values (NaN where the input is NaN).
    """
    pvalues = np.asarray(pvalues, dtype=np.float64)
    valid_mask = ~np.isnan(pvalues)
    adj_pvals = np.full_like(pvalues, np.nan)

    if not np.any(valid_mask):
        return adj_pvals

    method_map = {"BH": "fdr_bh", "BY": "fdr_by", "bonferroni": "bonferroni"}
    _, adj_pvals[valid_mask], _, _ = multipletests(
        pvalues[valid_mask],
        alpha=alpha,
        method=method_map.get(method, method),
    )

    return adj_pvals


def benjamini_hochberg(pvalues: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Benjamini–Hochberg adjusted p-values for one family of tests.

    Args:
        pvalues: Raw p-values for every gene of one contrast in one stratum.

    Returns:
        Adjusted p-values in the input order. adj >= p elementwise, and adj
        is non-decreasing in ascending order of p.
    """
    return fdr_correction(pvalues, method="BH")
