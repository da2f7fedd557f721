"""
Core data structure for gene expression matrices.

ExpressionMatrix couples an FPKM-scale expression array with its gene and
sample identifiers and guards the numeric domain the linear model needs.

Biological Context:
    Rows are genes, columns are samples (one tissue sample from one donor),
    values are nonnegative normalized magnitudes (FPKM). Modeling happens on
    log2(FPKM + PSEUDOCOUNT); the pseudocount is a single module constant so
    that every stratum is transformed identically and log fold changes stay
    comparable across strata.

Engineering Design:
    - Immutable: subsetting returns new instances
    - Validated: constructor checks shape, identifier uniqueness and domain
    - NumPy array for data, pandas Index for identifiers

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> matrix = ExpressionMatrix(
    ...     data=np.array([[1.0, 3.0], [0.0, 7.0]]),
    ...     gene_ids=pd.Index(["g1", "g2"]),
    ...     sample_ids=pd.Index(["s1", "s2"]),
    ... )
    >>> matrix.log2_transform()
    array([[1., 2.],
           [0., 3.]])
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from stratadeg.core.errors import NumericDomainError

__all__ = ['ExpressionMatrix', 'PSEUDOCOUNT']


# Added before log2; shared by every stratum.
PSEUDOCOUNT = 1.0


class ExpressionMatrix:
    """
    Immutable genes × samples expression matrix.

    Attributes:
        data: Expression magnitudes (genes × samples), float64
        gene_ids: Row identifiers (unique)
        sample_ids: Column identifiers (unique)

    Shape Invariants:
        - data.shape == (len(gene_ids), len(sample_ids))
        - all values finite and >= 0
    """

    def __init__(
        self,
        data: np.ndarray,
        gene_ids: pd.Index | Sequence[str],
        sample_ids: pd.Index | Sequence[str],
    ):
        """
        Initialize ExpressionMatrix with validation.

        Raises:
            TypeError: If data is not a numpy array
            ValueError: If shapes are inconsistent or identifiers repeat
            NumericDomainError: If any value is negative or non-finite
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")

        gene_ids = pd.Index(gene_ids).astype(str)
        sample_ids = pd.Index(sample_ids).astype(str)
        n_genes, n_samples = data.shape

        if len(gene_ids) != n_genes:
            raise ValueError(
                f"gene_ids length ({len(gene_ids)}) must match data rows ({n_genes})"
            )
        if len(sample_ids) != n_samples:
            raise ValueError(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})"
            )
        if not gene_ids.is_unique:
            dupes = gene_ids[gene_ids.duplicated()].unique().tolist()
            raise ValueError(f"Duplicate gene ids: {dupes[:5]}")
        if not sample_ids.is_unique:
            dupes = sample_ids[sample_ids.duplicated()].unique().tolist()
            raise ValueError(f"Duplicate sample ids: {dupes[:5]}")

        try:
            values = np.asarray(data, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise NumericDomainError(f"Expression data is not numeric: {e}") from e

        if not np.all(np.isfinite(values)):
            n_bad = int(np.sum(~np.isfinite(values)))
            raise NumericDomainError(f"Expression data contains {n_bad} non-finite value(s)")
        if np.any(values < 0):
            n_neg = int(np.sum(values < 0))
            raise NumericDomainError(
                f"Expression data contains {n_neg} negative value(s); "
                f"expected nonnegative magnitudes (e.g. FPKM)"
            )

        values.setflags(write=False)
        self._data = values
        self._gene_ids = gene_ids
        self._sample_ids = sample_ids

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> ExpressionMatrix:
        """Build from a DataFrame indexed by gene id with one column per sample."""
        return cls(frame.to_numpy(dtype=np.float64, copy=True), frame.index, frame.columns)

    @property
    def data(self) -> np.ndarray:
        """Expression matrix (genes × samples), read-only."""
        return self._data

    @property
    def gene_ids(self) -> pd.Index:
        return self._gene_ids

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_genes(self) -> int:
        return self._data.shape[0]

    @property
    def n_samples(self) -> int:
        return self._data.shape[1]

    def select_samples(self, sample_ids: Sequence[str]) -> ExpressionMatrix:
        """
        Subset columns by sample id, in the order given.

        Raises:
            ValueError: If any requested sample is not in the matrix
        """
        sample_ids = [str(s) for s in sample_ids]
        positions = self._sample_ids.get_indexer(sample_ids)
        if np.any(positions < 0):
            unknown = [s for s, p in zip(sample_ids, positions) if p < 0]
            raise ValueError(f"Samples not in expression matrix: {unknown[:5]}")
        return ExpressionMatrix(
            data=self._data[:, positions].copy(),
            gene_ids=self._gene_ids,
            sample_ids=pd.Index(sample_ids),
        )

    def select_genes(self, mask: np.ndarray | pd.Series) -> ExpressionMatrix:
        """Subset rows with a boolean mask."""
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask, dtype=bool)
        if len(mask) != self.n_genes:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_genes ({self.n_genes})"
            )
        return ExpressionMatrix(
            data=self._data[mask, :].copy(),
            gene_ids=self._gene_ids[mask],
            sample_ids=self._sample_ids,
        )

    def log2_transform(self) -> np.ndarray:
        """
        Return log2(data + PSEUDOCOUNT).

        Raises:
            NumericDomainError: If the transform yields non-finite values
        """
        with np.errstate(divide="ignore", invalid="ignore"):
            log_values = np.log2(self._data + PSEUDOCOUNT)
        if not np.all(np.isfinite(log_values)):
            raise NumericDomainError("log2 transform produced non-finite values")
        return log_values

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self._data, index=self._gene_ids, columns=self._sample_ids)

    def __repr__(self) -> str:
        return f"ExpressionMatrix({self.n_genes} genes × {self.n_samples} samples)"
