"""
stratadeg - Stratified Differential Expression for APOE4 × TBI × Dementia

Fits a group-means linear model per stratum (brain region), moderates gene
variances by empirical Bayes, evaluates genotype-specific TBI and dementia
contrasts, and intersects the resulting regulated gene sets.
"""

__version__ = "0.1.0"

from stratadeg.core.expression import ExpressionMatrix
from stratadeg.core.groups import GroupLabel, SampleDesign
from stratadeg.genesets.regulated import GeneAnnotation
from stratadeg.pipeline import StudyReport, run_stratum, run_study

__all__ = [
    "ExpressionMatrix",
    "GroupLabel",
    "SampleDesign",
    "GeneAnnotation",
    "StudyReport",
    "run_stratum",
    "run_study",
]
