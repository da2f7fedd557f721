"""Core data model: expression matrices, group labels, sample designs, errors."""

from stratadeg.core.errors import (
    AnalysisError,
    DegenerateDesignError,
    InvalidContrastError,
    NumericDomainError,
)
from stratadeg.core.expression import ExpressionMatrix, PSEUDOCOUNT
from stratadeg.core.groups import ALL_GROUPS, GroupLabel, SampleDesign

__all__ = [
    "AnalysisError",
    "DegenerateDesignError",
    "InvalidContrastError",
    "NumericDomainError",
    "ExpressionMatrix",
    "PSEUDOCOUNT",
    "ALL_GROUPS",
    "GroupLabel",
    "SampleDesign",
]
