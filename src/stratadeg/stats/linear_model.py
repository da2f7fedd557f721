"""
Per-gene linear model over the eight design groups.

For every gene g the model is

    y_g = X β_g + ε_g,    ε_g ~ N(0, σ²_g I)

with X the one-hot group design from design_matrix. All genes share X, so
the fit is done for the whole matrix at once:

    β   = Y X (X'X)^-1          (genes × 8, the fitted group means)
    RSS = Σ (Y - β X')²          per gene
    σ²  = RSS / (n - 8)

With zero residual degrees of freedom (one sample per group) σ² is
undefined; it is reported as NaN and every downstream statistic for that
stratum is NaN, which the classifier labels NotSignificant.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from stratadeg.core.errors import NumericDomainError
from stratadeg.stats.design_matrix import GroupDesign

__all__ = ['LinearModelFit', 'fit_linear_model']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinearModelFit:
    """Result of fitting the group-means model to every gene.

    Attributes:
        gene_ids: Gene identifiers, row order of all per-gene arrays.
        coefficients: Fitted group means (n_genes, n_groups).
        sigma2: Residual variance per gene; NaN when df_residual == 0.
        df_residual: Residual degrees of freedom (n_samples - n_groups).
        ave_expr: Mean log2 expression per gene across the stratum's samples.
        design: The GroupDesign the model was fitted with.
    """

    gene_ids: pd.Index
    coefficients: NDArray[np.float64]
    sigma2: NDArray[np.float64]
    df_residual: int
    ave_expr: NDArray[np.float64]
    design: GroupDesign

    @property
    def n_genes(self) -> int:
        return self.coefficients.shape[0]

    @property
    def unscaled_cov(self) -> NDArray[np.float64]:
        return self.design.unscaled_covariance()

    def coefficient_frame(self) -> pd.DataFrame:
        """Group means as a DataFrame (genes × group labels)."""
        return pd.DataFrame(
            self.coefficients, index=self.gene_ids, columns=self.design.col_names
        )


def fit_linear_model(
    log_expr: NDArray[np.float64],
    design: GroupDesign,
    gene_ids: Sequence[str] | pd.Index,
) -> LinearModelFit:
    """
    Fit the group-means linear model to all genes.

    Args:
        log_expr: log2 expression (n_genes, n_samples); columns in the same
            order as design.sample_ids.
        design: One-hot group design for the stratum.
        gene_ids: Gene identifiers for the rows of log_expr.

    Returns:
        LinearModelFit with group means, residual variances and df.

    Raises:
        ValueError: If dimensions disagree.
        NumericDomainError: If log_expr contains non-finite values.
    """
    log_expr = np.asarray(log_expr, dtype=np.float64)
    n_genes, n_samples = log_expr.shape

    if n_samples != design.n_samples:
        raise ValueError(
            f"Expression has {n_samples} samples but design has {design.n_samples}"
        )
    if len(gene_ids) != n_genes:
        raise ValueError(f"gene_ids length ({len(gene_ids)}) != n_genes ({n_genes})")
    if not np.all(np.isfinite(log_expr)):
        raise NumericDomainError("log expression contains non-finite values")

    X = design.X
    XtX_inv = design.unscaled_covariance()

    beta = log_expr @ X @ XtX_inv.T
    residuals = log_expr - beta @ X.T
    rss = np.sum(residuals ** 2, axis=1)

    df_residual = design.df_residual
    if df_residual > 0:
        sigma2 = rss / df_residual
    else:
        warnings.warn(
            f"No residual degrees of freedom ({n_samples} samples, "
            f"{design.n_params} groups); variances and p-values are undefined",
            UserWarning,
            stacklevel=2,
        )
        sigma2 = np.full(n_genes, np.nan)

    logger.debug(
        "Fitted %d genes: %d samples, %d groups, df_residual=%d",
        n_genes, n_samples, design.n_params, df_residual,
    )

    return LinearModelFit(
        gene_ids=pd.Index(gene_ids).astype(str),
        coefficients=beta,
        sigma2=sigma2,
        df_residual=df_residual,
        ave_expr=log_expr.mean(axis=1),
        design=design,
    )
