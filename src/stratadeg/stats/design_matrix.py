"""
Group-means design matrix construction for differential expression.

The model is a cell-means parameterization over the eight groups of the
APOE4 × TBI × dementia design:

    X = [one-hot group indicators]   (n_samples × 8, no intercept)

Each coefficient is then the fitted mean log-expression of one group, and
every contrast is a weighted sum of group means. Columns always follow
``ALL_GROUPS`` order so that contrast vectors built from GroupLabels line up
with coefficients in every stratum.

Completeness is checked first: a stratum missing any of the eight groups
raises DegenerateDesignError before the matrix is assembled, so a singular
X'X is never reached.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from stratadeg.core.groups import ALL_GROUPS, GroupLabel, SampleDesign

__all__ = ['GroupDesign', 'build_group_design']


@dataclass(frozen=True)
class GroupDesign:
    """One-hot group-means design for one stratum.

    Attributes:
        X: One-hot design matrix (n_samples, 8), exactly one 1 per row.
        columns: GroupLabel for each column, in ALL_GROUPS order.
        sample_ids: Sample id for each row.
        group_sizes: Number of samples per column.
    """

    X: NDArray[np.float64]
    columns: tuple[GroupLabel, ...]
    sample_ids: tuple[str, ...]
    group_sizes: NDArray[np.int64]

    @property
    def n_params(self) -> int:
        return self.X.shape[1]

    @property
    def n_samples(self) -> int:
        return self.X.shape[0]

    @property
    def df_residual(self) -> int:
        return self.n_samples - self.n_params

    @property
    def col_names(self) -> list[str]:
        return [g.to_string() for g in self.columns]

    def unscaled_covariance(self) -> NDArray[np.float64]:
        """(X'X)^-1; diagonal 1/n_g for a one-hot design."""
        return np.diag(1.0 / self.group_sizes.astype(np.float64))


def build_group_design(
    sample_ids: Sequence[str],
    design: SampleDesign,
    stratum: str | None = None,
) -> GroupDesign:
    """
    Build the one-hot design matrix for the samples of one stratum.

    Args:
        sample_ids: Samples in expression-matrix column order.
        design: Sample design covering at least these samples.
        stratum: Stratum key, used in error messages only.

    Returns:
        GroupDesign with one column per group in ALL_GROUPS order.

    Raises:
        ValueError: If a sample has no group assignment.
        DegenerateDesignError: If any of the eight groups has no sample.
    """
    sample_ids = [str(s) for s in sample_ids]
    stratum_design = design.subset(sample_ids)
    stratum_design.require_complete(stratum=stratum)

    column_index = {g: j for j, g in enumerate(ALL_GROUPS)}
    X = np.zeros((len(sample_ids), len(ALL_GROUPS)), dtype=np.float64)
    for i, sample in enumerate(sample_ids):
        X[i, column_index[stratum_design.group_of(sample)]] = 1.0

    group_sizes = X.sum(axis=0).astype(np.int64)
    X.setflags(write=False)

    return GroupDesign(
        X=X,
        columns=ALL_GROUPS,
        sample_ids=tuple(sample_ids),
        group_sizes=group_sizes,
    )
