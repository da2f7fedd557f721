"""
Significance classification of genes.

A gene is Upregulated when logFC > 0.5 and its p-value < 0.05, Downregulated
when logFC < -0.5 and its p-value < 0.05, and NotSignificant otherwise. Two
labels are produced per gene: the raw scheme uses the unadjusted p-value,
the corrected scheme the BH-adjusted one. Both schemes share the same fixed
thresholds; they are module constants and not exposed as run options.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from numpy.typing import NDArray

__all__ = [
    'Significance',
    'LOGFC_THRESHOLD',
    'PVALUE_THRESHOLD',
    'classify',
    'classify_gene',
]

LOGFC_THRESHOLD = 0.5
PVALUE_THRESHOLD = 0.05


class Significance(str, Enum):
    """Direction-aware significance label."""

    UPREGULATED = "Upregulated"
    DOWNREGULATED = "Downregulated"
    NOT_SIGNIFICANT = "NotSignificant"

    def __str__(self) -> str:
        return self.value


def classify(
    log_fc: NDArray[np.float64],
    pvalues: NDArray[np.float64],
) -> NDArray[np.object_]:
    """
    Label every gene from its logFC and one p-value column.

    NaN in either input yields NotSignificant.

    Returns:
        Object array of Significance members, same length as the inputs.
    """
    log_fc = np.asarray(log_fc, dtype=np.float64)
    pvalues = np.asarray(pvalues, dtype=np.float64)
    if log_fc.shape != pvalues.shape:
        raise ValueError(f"Shape mismatch: logFC {log_fc.shape} vs p {pvalues.shape}")

    with np.errstate(invalid="ignore"):
        passes = pvalues < PVALUE_THRESHOLD
        up = passes & (log_fc > LOGFC_THRESHOLD)
        down = passes & (log_fc < -LOGFC_THRESHOLD)

    # Filled element by element: numpy would store str-Enum fill values as plain str.
    labels = np.empty(log_fc.size, dtype=object)
    for i, (is_up, is_down) in enumerate(zip(up.ravel(), down.ravel())):
        if is_up:
            labels[i] = Significance.UPREGULATED
        elif is_down:
            labels[i] = Significance.DOWNREGULATED
        else:
            labels[i] = Significance.NOT_SIGNIFICANT
    return labels.reshape(log_fc.shape)


def classify_gene(log_fc: float, pvalue: float) -> Significance:
    """Scalar form of :func:`classify`."""
    return classify(np.array([log_fc]), np.array([pvalue]))[0]
