"""
Error taxonomy for stratified differential expression.

All analysis errors derive from ValueError so that callers which already
guard input validation with ``except ValueError`` keep working. The
orchestrator treats any of these as fatal to the stratum being processed
and to nothing else.

    AnalysisError
    ├── DegenerateDesignError   a required group has no samples
    ├── InvalidContrastError    contrast weights do not sum to zero
    └── NumericDomainError      negative expression or non-finite log values

Excluding genes that are missing from an annotation lookup is NOT an error;
see stratadeg.genesets.regulated.
"""

from __future__ import annotations

from typing import Sequence

__all__ = [
    'AnalysisError',
    'DegenerateDesignError',
    'InvalidContrastError',
    'NumericDomainError',
]


class AnalysisError(ValueError):
    """Base class for errors that invalidate a stratum's analysis."""


class DegenerateDesignError(AnalysisError):
    """One or more of the eight expected groups has zero samples.

    Attributes:
        missing_groups: String labels of the empty groups.
        stratum: Stratum key when known.
    """

    def __init__(self, missing_groups: Sequence[str], stratum: str | None = None):
        self.missing_groups = list(missing_groups)
        self.stratum = stratum
        where = f" in stratum '{stratum}'" if stratum is not None else ""
        super().__init__(
            f"Design is degenerate{where}: no samples for group(s) "
            f"{', '.join(self.missing_groups)}"
        )


class InvalidContrastError(AnalysisError):
    """A contrast vector is not a pure difference of group means."""

    def __init__(self, contrast_name: str, total: float, detail: str | None = None):
        self.contrast_name = contrast_name
        self.total = total
        message = detail or (
            f"Contrast '{contrast_name}' weights must sum to zero, got {total:g}"
        )
        super().__init__(message)


class NumericDomainError(AnalysisError):
    """Expression values outside the domain of the log2 transform."""
