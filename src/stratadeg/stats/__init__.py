"""
Statistical engine for stratified differential expression.

Exports:
- Group-means design matrices and per-gene linear model fitting
- Empirical Bayes variance moderation (trend-aware)
- Contrast evaluation with moderated t-statistics
- Benjamini-Hochberg FDR correction, scoped per contrast per stratum
- Significance classification under raw and corrected schemes
"""

from .design_matrix import GroupDesign, build_group_design
from .linear_model import LinearModelFit, fit_linear_model
from .empirical_bayes import (
    ModeratedFit,
    fit_f_dist,
    moderate,
    squeeze_var,
    trigamma_inverse,
)
from .contrasts import (
    Contrast,
    ContrastEstimate,
    ContrastName,
    canonical_contrasts,
    evaluate_contrast,
    evaluate_contrasts,
)
from .multiple_testing import benjamini_hochberg, fdr_correction
from .significance import (
    LOGFC_THRESHOLD,
    PVALUE_THRESHOLD,
    Significance,
    classify,
    classify_gene,
)
from .results import RESULT_COLUMNS, ContrastResult, build_contrast_result

__all__ = [
    "GroupDesign",
    "build_group_design",
    "LinearModelFit",
    "fit_linear_model",
    "ModeratedFit",
    "fit_f_dist",
    "moderate",
    "squeeze_var",
    "trigamma_inverse",
    "Contrast",
    "ContrastEstimate",
    "ContrastName",
    "canonical_contrasts",
    "evaluate_contrast",
    "evaluate_contrasts",
    "benjamini_hochberg",
    "fdr_correction",
    "LOGFC_THRESHOLD",
    "PVALUE_THRESHOLD",
    "Significance",
    "classify",
    "classify_gene",
    "RESULT_COLUMNS",
    "ContrastResult",
    "build_contrast_result",
]
