"""
Contrast definition and evaluation.

A contrast is a named linear combination of group means whose weights sum
to zero, so that it measures a pure difference. Four canonical contrasts are
evaluated in every stratum. Each isolates one factor while the other two are
held fixed, with TBI history fixed at TBI+ for the dementia contrasts and
dementia fixed at Dementia for the TBI contrasts:

    DEMENTIA_APOE4_POS  (APOE4+,TBI+,Dementia) - (APOE4+,TBI+,NoDementia)
    TBI_APOE4_POS       (APOE4+,TBI+,Dementia) - (APOE4+,TBI-,Dementia)
    DEMENTIA_APOE4_NEG  (APOE4-,TBI+,Dementia) - (APOE4-,TBI+,NoDementia)
    TBI_APOE4_NEG       (APOE4-,TBI+,Dementia) - (APOE4-,TBI-,Dementia)

Contrasts are identified by name, never by position, so reordering the
contrast list cannot silently swap results.

For a contrast vector c over the group means β_g:

    logFC = c · β_g
    SE    = sqrt(s²_post · c' (X'X)^-1 c)
    t     = logFC / SE
    p     = 2 · P(T_{df_total} > |t|)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats as scipy_stats

from stratadeg.core.errors import InvalidContrastError
from stratadeg.core.groups import ALL_GROUPS, GroupLabel
from stratadeg.stats.empirical_bayes import ModeratedFit
from stratadeg.stats.linear_model import LinearModelFit

__all__ = [
    'ContrastName',
    'Contrast',
    'ContrastEstimate',
    'canonical_contrasts',
    'evaluate_contrast',
    'evaluate_contrasts',
]

_SUM_TOLERANCE = 1e-9


class ContrastName(str, Enum):
    """Identifiers of the canonical contrasts."""

    DEMENTIA_APOE4_POS = "dementia_effect_apoe4_pos"
    TBI_APOE4_POS = "tbi_effect_apoe4_pos"
    DEMENTIA_APOE4_NEG = "dementia_effect_apoe4_neg"
    TBI_APOE4_NEG = "tbi_effect_apoe4_neg"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Contrast:
    """A named weighting of group means.

    Attributes:
        name: Identifier, a ContrastName for canonical contrasts.
        weights: GroupLabel → weight; groups not listed have weight 0.
        description: Human-readable meaning of the comparison.
    """

    name: str
    weights: Mapping[GroupLabel, float]
    description: str = ""

    @classmethod
    def difference(
        cls,
        name: str,
        test: GroupLabel,
        reference: GroupLabel,
        description: str = "",
    ) -> Contrast:
        """Contrast ``mean(test) - mean(reference)``."""
        if test == reference:
            raise InvalidContrastError(
                str(name), 0.0,
                detail=f"Contrast '{name}' compares group {test} with itself",
            )
        return cls(name=name, weights={test: 1.0, reference: -1.0}, description=description)

    @property
    def groups(self) -> list[GroupLabel]:
        """Groups with nonzero weight."""
        return [g for g, w in self.weights.items() if w != 0]

    def validate(self) -> None:
        """
        Check that the contrast is a pure difference.

        Raises:
            InvalidContrastError: If the weights do not sum to zero or are
                all zero.
        """
        total = float(sum(self.weights.values()))
        if abs(total) > _SUM_TOLERANCE:
            raise InvalidContrastError(str(self.name), total)
        if not self.groups:
            raise InvalidContrastError(
                str(self.name), total,
                detail=f"Contrast '{self.name}' has no nonzero weights",
            )

    def vector(self, columns: Sequence[GroupLabel] = ALL_GROUPS) -> NDArray[np.float64]:
        """Weights in design-column order (validated)."""
        self.validate()
        unknown = [g for g in self.groups if g not in columns]
        if unknown:
            raise InvalidContrastError(
                str(self.name), 0.0,
                detail=f"Contrast '{self.name}' references groups not in the design: "
                       f"{[g.to_string() for g in unknown]}",
            )
        return np.array([float(self.weights.get(g, 0.0)) for g in columns])


def canonical_contrasts() -> dict[ContrastName, Contrast]:
    """The four contrasts evaluated in every stratum, keyed by name."""

    def group(apoe4: bool, tbi: bool, dementia: bool) -> GroupLabel:
        return GroupLabel(apoe4=apoe4, tbi=tbi, dementia=dementia)

    contrasts = {}
    for apoe4, dementia_name, tbi_name in (
        (True, ContrastName.DEMENTIA_APOE4_POS, ContrastName.TBI_APOE4_POS),
        (False, ContrastName.DEMENTIA_APOE4_NEG, ContrastName.TBI_APOE4_NEG),
    ):
        genotype = "APOE4+" if apoe4 else "APOE4-"
        contrasts[dementia_name] = Contrast.difference(
            dementia_name,
            test=group(apoe4, True, True),
            reference=group(apoe4, True, False),
            description=f"Dementia effect in {genotype}, TBI+ donors",
        )
        contrasts[tbi_name] = Contrast.difference(
            tbi_name,
            test=group(apoe4, True, True),
            reference=group(apoe4, False, True),
            description=f"TBI effect in {genotype} donors with dementia",
        )

    order = [
        ContrastName.DEMENTIA_APOE4_POS,
        ContrastName.TBI_APOE4_POS,
        ContrastName.DEMENTIA_APOE4_NEG,
        ContrastName.TBI_APOE4_NEG,
    ]
    return {name: contrasts[name] for name in order}


@dataclass(frozen=True)
class ContrastEstimate:
    """Per-gene statistics for one contrast.

    Attributes:
        contrast: The contrast evaluated.
        gene_ids: Gene identifiers.
        log_fc: Estimated log2 fold change.
        se: Standard error from the moderated variance.
        t_statistic: Moderated t-statistic.
        p_value: Two-sided p-value.
        df_total: Degrees of freedom of the reference t-distribution.
        ave_expr: Mean log2 expression per gene.
    """

    contrast: Contrast
    gene_ids: pd.Index
    log_fc: NDArray[np.float64]
    se: NDArray[np.float64]
    t_statistic: NDArray[np.float64]
    p_value: NDArray[np.float64]
    df_total: float
    ave_expr: NDArray[np.float64] = field(repr=False)

    @property
    def name(self) -> str:
        return str(self.contrast.name)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "gene_id": self.gene_ids,
            "logFC": self.log_fc,
            "ave_expr": self.ave_expr,
            "se": self.se,
            "t_statistic": self.t_statistic,
            "p_value": self.p_value,
            "df_total": self.df_total,
        })


def evaluate_contrast(
    fit: LinearModelFit,
    moderated: ModeratedFit,
    contrast: Contrast,
) -> ContrastEstimate:
    """
    Evaluate one contrast for every gene.

    Args:
        fit: Linear model fit (group means and design).
        moderated: Moderated variances for the same fit.
        contrast: Contrast to evaluate.

    Returns:
        ContrastEstimate with logFC, SE, t and p per gene.

    Raises:
        InvalidContrastError: If the contrast does not sum to zero.
    """
    c = contrast.vector(fit.design.columns)
    c_var_factor = float(c @ fit.unscaled_cov @ c)

    log_fc = fit.coefficients @ c

    with np.errstate(divide="ignore", invalid="ignore"):
        se = np.sqrt(moderated.s2_post * c_var_factor)
        se = np.where(np.isfinite(se), np.maximum(se, 1e-10), np.nan)
        t_statistic = log_fc / se

    df_total = moderated.df_total
    if not df_total > 0:
        p_value = np.full_like(t_statistic, np.nan)
    elif np.isinf(df_total):
        p_value = 2 * scipy_stats.norm.sf(np.abs(t_statistic))
    else:
        p_value = 2 * scipy_stats.t.sf(np.abs(t_statistic), df_total)
    p_value = np.minimum(p_value, 1.0)

    return ContrastEstimate(
        contrast=contrast,
        gene_ids=fit.gene_ids,
        log_fc=log_fc,
        se=se,
        t_statistic=t_statistic,
        p_value=p_value,
        df_total=float(df_total),
        ave_expr=fit.ave_expr,
    )


def evaluate_contrasts(
    fit: LinearModelFit,
    moderated: ModeratedFit,
    contrasts: Mapping[str, Contrast] | Sequence[Contrast],
) -> dict[str, ContrastEstimate]:
    """Evaluate several contrasts; result keyed by contrast name."""
    if isinstance(contrasts, Mapping):
        contrasts = list(contrasts.values())
    return {str(c.name): evaluate_contrast(fit, moderated, c) for c in contrasts}
