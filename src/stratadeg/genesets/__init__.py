"""Regulated gene sets and their intersections."""

from .regulated import GeneAnnotation, RegulatedGeneSet, build_regulated_gene_set
from .intersect import (
    GeneSetIntersection,
    GenotypePairing,
    canonical_pairings,
    intersect_gene_sets,
)

__all__ = [
    "GeneAnnotation",
    "RegulatedGeneSet",
    "build_regulated_gene_set",
    "GeneSetIntersection",
    "GenotypePairing",
    "canonical_pairings",
    "intersect_gene_sets",
]
