"""
Per-contrast gene statistics tables.

A ContrastResult is the GeneStatResult table of one contrast in one
stratum: one row per gene, in the stratum's gene order, with columns

    gene_id, logFC, p_value, adj_p_value, significance, adj_significance

It is built once from a ContrastEstimate (BH correction over exactly that
contrast's p-values, then classification) and handed out as copies, so the
cached table cannot be modified by consumers.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from stratadeg.stats.contrasts import ContrastEstimate
from stratadeg.stats.multiple_testing import benjamini_hochberg
from stratadeg.stats.significance import Significance, classify

__all__ = ['ContrastResult', 'RESULT_COLUMNS', 'build_contrast_result']

RESULT_COLUMNS = (
    "gene_id",
    "logFC",
    "p_value",
    "adj_p_value",
    "significance",
    "adj_significance",
)


@dataclass(frozen=True, eq=False)
class ContrastResult:
    """GeneStatResult table for one contrast in one stratum.

    Attributes:
        contrast_name: Contrast identifier.
        stratum: Stratum key.
    """

    contrast_name: str
    stratum: str
    _table: pd.DataFrame
    _statistics: pd.DataFrame

    @property
    def table(self) -> pd.DataFrame:
        """The result table (a copy)."""
        return self._table.copy()

    @property
    def statistics(self) -> pd.DataFrame:
        """Supporting statistics: ave_expr, se, t_statistic, df_total (a copy)."""
        return self._statistics.copy()

    @property
    def n_genes(self) -> int:
        return len(self._table)

    def genes_with(self, label: Significance, adjusted: bool = False) -> list[str]:
        """Gene ids carrying ``label`` under the raw or corrected scheme, in table order."""
        column = "adj_significance" if adjusted else "significance"
        mask = self._table[column] == Significance(label).value
        return self._table.loc[mask, "gene_id"].tolist()

    def label_counts(self, adjusted: bool = False) -> dict[str, int]:
        """Count of genes per label; always includes all three labels."""
        column = "adj_significance" if adjusted else "significance"
        counts = self._table[column].value_counts()
        return {s.value: int(counts.get(s.value, 0)) for s in Significance}

    def __repr__(self) -> str:
        up = self.label_counts()[Significance.UPREGULATED.value]
        down = self.label_counts()[Significance.DOWNREGULATED.value]
        return (
            f"ContrastResult({self.stratum}/{self.contrast_name}: "
            f"{self.n_genes} genes, {up} up, {down} down)"
        )


def build_contrast_result(estimate: ContrastEstimate, stratum: str) -> ContrastResult:
    """
    Correct and classify one contrast's estimates.

    The BH correction is applied to this contrast's p-values only.

    Args:
        estimate: Per-gene statistics for the contrast in this stratum.
        stratum: Stratum key recorded on the result.

    Returns:
        ContrastResult with the six-column table.
    """
    adj_p = benjamini_hochberg(estimate.p_value)
    raw_labels = classify(estimate.log_fc, estimate.p_value)
    adj_labels = classify(estimate.log_fc, adj_p)

    table = pd.DataFrame({
        "gene_id": np.asarray(estimate.gene_ids, dtype=object),
        "logFC": estimate.log_fc,
        "p_value": estimate.p_value,
        "adj_p_value": adj_p,
        "significance": [label.value for label in raw_labels],
        "adj_significance": [label.value for label in adj_labels],
    }, columns=list(RESULT_COLUMNS))

    statistics = pd.DataFrame({
        "gene_id": np.asarray(estimate.gene_ids, dtype=object),
        "ave_expr": estimate.ave_expr,
        "se": estimate.se,
        "t_statistic": estimate.t_statistic,
        "df_total": estimate.df_total,
    })

    return ContrastResult(
        contrast_name=estimate.name,
        stratum=stratum,
        _table=table,
        _statistics=statistics,
    )
