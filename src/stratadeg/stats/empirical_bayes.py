"""
Empirical Bayes variance moderation (limma-style, trend-aware).

Residual variances from a handful of samples per group are noisy. Following
Smyth (2004), the true variances are given a scaled inverse-χ² prior

    σ²_g ~ s₀² · d₀ / χ²_{d₀}

whose hyperparameters are estimated from all genes of the stratum. Each
gene's posterior variance is then a weighted average of its own estimate and
the prior:

    s²_post = (d₀ · s₀² + d · s²) / (d₀ + d)

and the moderated t-statistic uses d₀ + d degrees of freedom.

Trend:
    Variance of log-expression depends strongly on expression level. By
    default the prior scale s₀² is a smooth function of mean log-expression
    (limma's ``eBayes(trend=TRUE)``): the digamma-centred log-variances are
    smoothed against ``ave_expr`` with lowess (statsmodels) and the prior is
    read off the smooth for every gene. With too few genes for a stable
    smooth the prior falls back to a single global constant.

Degrees-of-freedom conventions:
    - d₀ = inf: the sample variances carry no information beyond the prior;
      posterior = prior and the total df is capped at the pooled residual df.
    - d₀ = 0: no prior could be estimated (no residual df, or too few genes);
      variances pass through unchanged.

References:
    - Smyth (2004) Statistical Applications in Genetics and Molecular Biology
      3(1):Article 3
    - Ritchie et al. (2015) Nucleic Acids Research 43(7):e47 (limma)
"""

# Warning convention:
#   warnings.warn() -- user-facing (trend fallback, no residual df)
#   logger.debug()  -- hyperparameter values

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.special import digamma, polygamma

from stratadeg.stats.linear_model import LinearModelFit

__all__ = [
    'ModeratedFit',
    'trigamma_inverse',
    'fit_f_dist',
    'squeeze_var',
    'moderate',
    'MIN_GENES_FOR_PRIOR',
    'MIN_GENES_FOR_TREND',
]

logger = logging.getLogger(__name__)

MIN_GENES_FOR_PRIOR = 3
MIN_GENES_FOR_TREND = 10
LOWESS_FRAC = 0.3
# Effective parameters of the trend smooth, as limma's default spline df.
TREND_DF = 4


@dataclass(frozen=True)
class ModeratedFit:
    """Posterior variances for one stratum.

    Attributes:
        s2_prior: Prior variance per gene (constant when trend is off).
        df_prior: Prior degrees of freedom d₀ (0 = no moderation, inf = full).
        s2_post: Posterior (moderated) variance per gene.
        df_total: Degrees of freedom for the moderated t-distribution.
        trend: Whether s2_prior follows the mean-expression trend.
    """

    s2_prior: NDArray[np.float64]
    df_prior: float
    s2_post: NDArray[np.float64]
    df_total: float
    trend: bool


def trigamma_inverse(x: float, tol: float = 1e-8, max_iter: int = 50) -> float:
    """
    Compute the inverse of the trigamma function using Newton's method.

    Solves for y where trigamma(y) = x, following limma's trigammaInverse:
    initial guess y = 0.5 + 1/x, then Newton iterations.

    Args:
        x: Target trigamma value (must be positive)
        tol: Relative convergence tolerance
        max_iter: Maximum Newton iterations

    Returns:
        y such that trigamma(y) ≈ x
    """
    if x <= 0:
        return np.inf

    if x > 1e7:
        return 1.0 / np.sqrt(x)
    if x < 1e-6:
        return 1.0 / x

    y = 0.5 + 1.0 / x

    for _ in range(max_iter):
        tri = polygamma(1, y)
        tri_deriv = polygamma(2, y)
        if abs(tri_deriv) < 1e-15:
            break
        delta = (tri - x) / tri_deriv
        y_new = y - delta

        if y_new <= 0:
            y = y / 2.0
        else:
            y = y_new

        if abs(delta) < tol * abs(y):
            break

    return float(max(y, 1e-10))


def _trend_smooth(e: NDArray[np.float64], covariate: NDArray[np.float64]) -> NDArray[np.float64]:
    from statsmodels.nonparametric.smoothers_lowess import lowess

    frac = min(1.0, max(LOWESS_FRAC, MIN_GENES_FOR_TREND / len(e)))
    return lowess(e, covariate, frac=frac, it=0, return_sorted=False)


def fit_f_dist(
    sigma2: NDArray[np.float64],
    df: float,
    covariate: NDArray[np.float64] | None = None,
) -> tuple[float, float | NDArray[np.float64]]:
    """
    Estimate prior d₀ and s₀² by the method of moments (limma fitFDist).

    Algorithm:
        1. z = log(s²);  e = z - digamma(df/2) + log(df/2)
        2. emean = mean(e), or a lowess trend of e on the covariate
        3. evar = var(e - emean) - trigamma(df/2)
        4. d₀ = 2 · trigamma⁻¹(evar)   (inf when evar <= 0)
        5. s₀² = exp(emean + digamma(d₀/2) - log(d₀/2))

    Zero variances are floored at 1e-5 × median of the positive variances.

    Args:
        sigma2: Residual variances (n_genes,); NaN entries are ignored.
        df: Residual degrees of freedom shared by all genes.
        covariate: Optional per-gene covariate (mean log-expression) for a
            trended prior.

    Returns:
        Tuple (d0, s0_sq). s0_sq is an array (n_genes,) when a trend was
        fitted, a float otherwise. d0 == 0 signals that no prior could be
        estimated (s0_sq is NaN).
    """
    sigma2 = np.asarray(sigma2, dtype=np.float64)
    usable = np.isfinite(sigma2) & (sigma2 >= 0)
    n_usable = int(usable.sum())

    if df <= 0 or n_usable < MIN_GENES_FOR_PRIOR:
        return 0.0, np.nan

    s2 = sigma2[usable]
    positive = s2[s2 > 0]
    if len(positive) == 0:
        return 0.0, np.nan
    s2 = np.maximum(s2, 1e-5 * np.median(positive))

    df_half = df / 2.0
    e = np.log(s2) - digamma(df_half) + np.log(df_half)

    fitted = None
    if covariate is not None:
        covariate = np.asarray(covariate, dtype=np.float64)
        if n_usable < MIN_GENES_FOR_TREND:
            warnings.warn(
                f"Only {n_usable} genes with usable variances; "
                f"using a constant variance prior instead of a trend",
                UserWarning,
                stacklevel=2,
            )
        else:
            fitted = _trend_smooth(e, covariate[usable])
            if not np.all(np.isfinite(fitted)):
                warnings.warn(
                    "Variance trend smoothing failed; using a constant variance prior",
                    UserWarning,
                    stacklevel=2,
                )
                fitted = None

    if fitted is None:
        emean = float(np.mean(e))
        evar = float(np.var(e, ddof=1))
    else:
        emean = fitted
        evar = float(np.sum((e - fitted) ** 2) / (n_usable - TREND_DF))

    evar -= float(polygamma(1, df_half))

    if evar > 0:
        d0 = 2.0 * trigamma_inverse(evar)
        s0_usable = np.exp(emean + digamma(d0 / 2.0) - np.log(d0 / 2.0))
    else:
        d0 = np.inf
        s0_usable = np.exp(emean)

    if fitted is None:
        return float(d0), float(s0_usable)

    # Read the trend off at every gene, including those without a variance.
    order = np.argsort(covariate[usable], kind="stable")
    s0_sq = np.exp(np.interp(
        covariate,
        covariate[usable][order],
        np.log(s0_usable)[order],
    ))
    return float(d0), s0_sq


def squeeze_var(
    sigma2: NDArray[np.float64],
    df: float,
    d0: float,
    s0_sq: float | NDArray[np.float64],
    df_pooled: float | None = None,
) -> tuple[NDArray[np.float64], float]:
    """
    Apply Empirical Bayes variance shrinkage (limma squeezeVar).

    Formula:
        s²_post = (d₀ × s₀² + df × s²) / (d₀ + df)

    Args:
        sigma2: Sample variances (n_genes,)
        df: Residual degrees of freedom
        d0: Prior degrees of freedom (from fit_f_dist)
        s0_sq: Prior scale, scalar or per gene (from fit_f_dist)
        df_pooled: Upper bound for the total df (sum of residual df over
            genes); defaults to unbounded.

    Returns:
        Tuple (s2_post, df_total).
    """
    sigma2 = np.asarray(sigma2, dtype=np.float64)
    cap = np.inf if df_pooled is None else float(df_pooled)

    if d0 == 0 or not np.all(np.isfinite(np.atleast_1d(s0_sq))):
        return sigma2.copy(), float(df)

    if np.isinf(d0):
        s2_post = np.broadcast_to(np.asarray(s0_sq, dtype=np.float64), sigma2.shape).copy()
        s2_post[~np.isfinite(sigma2)] = np.nan
        return s2_post, min(np.inf, cap)

    s2_post = (d0 * s0_sq + df * sigma2) / (d0 + df)
    return s2_post, float(min(d0 + df, cap))


def moderate(fit: LinearModelFit, trend: bool = True) -> ModeratedFit:
    """
    Moderate the residual variances of a fitted stratum.

    Args:
        fit: Linear model fit for all genes of the stratum.
        trend: Estimate the prior as a function of mean log-expression
            (default). False uses one global prior.

    Returns:
        ModeratedFit with posterior variances and total df.
    """
    df = float(fit.df_residual)
    covariate = fit.ave_expr if trend else None
    d0, s0_sq = fit_f_dist(fit.sigma2, df, covariate=covariate)

    n_usable = int(np.sum(np.isfinite(fit.sigma2)))
    df_pooled = df * n_usable
    s2_post, df_total = squeeze_var(fit.sigma2, df, d0, s0_sq, df_pooled=df_pooled)

    trended = np.ndim(s0_sq) > 0
    s2_prior = (
        np.asarray(s0_sq, dtype=np.float64) if trended
        else np.full(fit.n_genes, s0_sq, dtype=np.float64)
    )

    if d0 == 0:
        logger.debug("No variance prior estimated (df_residual=%g); variances unmoderated", df)
    else:
        logger.debug(
            "EB prior: d0=%s, s0^2 %s, df_total=%g",
            "inf" if np.isinf(d0) else f"{d0:.2f}",
            "trended" if trended else f"={float(s0_sq):.4g}",
            df_total,
        )

    return ModeratedFit(
        s2_prior=s2_prior,
        df_prior=d0,
        s2_post=s2_post,
        df_total=df_total,
        trend=trended,
    )
