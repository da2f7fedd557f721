"""
Overlap between paired contrasts within a stratum.

Within one stratum and one APOE4 genotype, the TBI-effect contrast is paired
with the dementia-effect contrast, and their regulated gene sets are
intersected direction by direction:

    upregulated   ∩ upregulated
    downregulated ∩ downregulated
    significant   ∩ significant

Intersections are de-duplicated, unordered sets matched on exact identifier
strings. The operation is commutative, and an empty direction on either side
simply yields an empty set.
"""

from __future__ import annotations

from dataclasses import dataclass

from stratadeg.genesets.regulated import RegulatedGeneSet
from stratadeg.stats.contrasts import ContrastName

__all__ = [
    'GeneSetIntersection',
    'GenotypePairing',
    'canonical_pairings',
    'intersect_gene_sets',
]


@dataclass(frozen=True)
class GenotypePairing:
    """A TBI-effect contrast paired with a dementia-effect contrast.

    Attributes:
        genotype: Name of the APOE4 genotype the pairing belongs to.
        tbi_contrast: TBI-effect contrast name.
        dementia_contrast: Dementia-effect contrast name.
    """

    genotype: str
    tbi_contrast: str
    dementia_contrast: str


def canonical_pairings() -> tuple[GenotypePairing, ...]:
    """Pairings evaluated in every stratum: one per APOE4 genotype."""
    return (
        GenotypePairing(
            genotype="apoe4_pos",
            tbi_contrast=ContrastName.TBI_APOE4_POS.value,
            dementia_contrast=ContrastName.DEMENTIA_APOE4_POS.value,
        ),
        GenotypePairing(
            genotype="apoe4_neg",
            tbi_contrast=ContrastName.TBI_APOE4_NEG.value,
            dementia_contrast=ContrastName.DEMENTIA_APOE4_NEG.value,
        ),
    )


@dataclass(frozen=True)
class GeneSetIntersection:
    """Shared identifiers of two regulated gene sets."""

    upregulated: frozenset[str]
    downregulated: frozenset[str]
    significant: frozenset[str]

    def direction(self, name: str) -> frozenset[str]:
        if name not in ("upregulated", "downregulated", "significant"):
            raise ValueError(f"Unknown direction: {name!r}")
        return getattr(self, name)

    def sizes(self) -> dict[str, int]:
        return {
            "upregulated": len(self.upregulated),
            "downregulated": len(self.downregulated),
            "significant": len(self.significant),
        }


def intersect_gene_sets(a: RegulatedGeneSet, b: RegulatedGeneSet) -> GeneSetIntersection:
    """
    Intersect two regulated gene sets of the same stratum.

    Raises:
        ValueError: If the sets come from different strata.
    """
    if a.stratum != b.stratum:
        raise ValueError(
            f"Cannot intersect gene sets across strata ('{a.stratum}' vs '{b.stratum}')"
        )
    return GeneSetIntersection(
        upregulated=frozenset(a.upregulated) & frozenset(b.upregulated),
        downregulated=frozenset(a.downregulated) & frozenset(b.downregulated),
        significant=frozenset(a.significant) & frozenset(b.significant),
    )
