"""
Regulated gene sets: significant genes mapped to external identifiers.

For one contrast in one stratum the builder collects

    upregulated    genes labelled Upregulated under the raw scheme
    downregulated  genes labelled Downregulated under the raw scheme
    significant    upregulated followed by downregulated

as external identifiers (e.g. Entrez IDs or gene symbols) from a
GeneAnnotation lookup. The lookup may hold several rows per internal gene
id, and several internal ids may share an external identifier; every row is
used. Order follows the result table's gene order, then annotation row
order.

Genes absent from the lookup are excluded from all three collections. This
is not an error; the number excluded is kept on the set (``n_unmapped``) so
reports can show the annotation coverage gap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

import pandas as pd

from stratadeg.stats.results import ContrastResult
from stratadeg.stats.significance import Significance

__all__ = ['GeneAnnotation', 'RegulatedGeneSet', 'build_regulated_gene_set']

logger = logging.getLogger(__name__)


class GeneAnnotation:
    """
    Lookup from internal gene id to external identifiers.

    Examples:
        >>> annotation = GeneAnnotation.from_pairs([("g1", "1017"), ("g1", "1018")])
        >>> annotation.lookup("g1")
        ('1017', '1018')
        >>> annotation.lookup("g2")
        ()
    """

    def __init__(self, mapping: Mapping[str, Sequence[str]] | None, identity: bool = False):
        self._identity = identity
        self._mapping: dict[str, tuple[str, ...]] = {}
        if mapping is not None:
            for gene_id, external in mapping.items():
                self._mapping[str(gene_id)] = tuple(str(x) for x in external)

    @classmethod
    def identity(cls) -> GeneAnnotation:
        """Annotation that maps every gene id to itself."""
        return cls(None, identity=True)

    @classmethod
    def from_pairs(cls, pairs: Sequence[tuple[str, str]]) -> GeneAnnotation:
        mapping: dict[str, list[str]] = {}
        for gene_id, external in pairs:
            mapping.setdefault(str(gene_id), []).append(str(external))
        return cls(mapping)

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        gene_column: str = "gene_id",
        id_column: str = "external_id",
    ) -> GeneAnnotation:
        """
        Build from an annotation table with one row per (gene, identifier).

        Rows with a missing identifier are dropped; repeated rows for a gene
        are kept in table order (duplicate identifiers collapsed).

        Raises:
            ValueError: If a column is missing.
        """
        for column in (gene_column, id_column):
            if column not in frame.columns:
                raise ValueError(
                    f"Annotation column '{column}' not found (columns: {list(frame.columns)})"
                )
        rows = frame[[gene_column, id_column]].dropna()
        mapping: dict[str, list[str]] = {}
        for gene_id, external in zip(rows[gene_column].astype(str), rows[id_column]):
            if isinstance(external, float) and external.is_integer():
                external = int(external)
            values = mapping.setdefault(gene_id, [])
            if str(external) not in values:
                values.append(str(external))
        return cls(mapping)

    @property
    def is_identity(self) -> bool:
        return self._identity

    def lookup(self, gene_id: str) -> tuple[str, ...]:
        """External identifiers for ``gene_id``; empty when unmapped."""
        if self._identity:
            return (str(gene_id),)
        return self._mapping.get(str(gene_id), ())

    def __contains__(self, gene_id: object) -> bool:
        return self._identity or str(gene_id) in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:
        if self._identity:
            return "GeneAnnotation(identity)"
        return f"GeneAnnotation({len(self._mapping)} genes)"


@dataclass(frozen=True)
class RegulatedGeneSet:
    """Significant genes of one contrast in one stratum, as external ids.

    Attributes:
        stratum: Stratum key.
        contrast_name: Contrast identifier.
        upregulated: External ids of upregulated genes (ordered).
        downregulated: External ids of downregulated genes (ordered).
        n_unmapped: Significant genes with no annotation entry.
    """

    stratum: str
    contrast_name: str
    upregulated: tuple[str, ...]
    downregulated: tuple[str, ...]
    n_unmapped: int = 0

    @property
    def significant(self) -> tuple[str, ...]:
        """Upregulated followed by downregulated."""
        return self.upregulated + self.downregulated

    def direction(self, name: str) -> tuple[str, ...]:
        """Collection by name: 'upregulated', 'downregulated' or 'significant'."""
        if name not in ("upregulated", "downregulated", "significant"):
            raise ValueError(f"Unknown direction: {name!r}")
        return getattr(self, name)


def _map_genes(gene_ids: Sequence[str], annotation: GeneAnnotation) -> tuple[list[str], int]:
    mapped: list[str] = []
    n_unmapped = 0
    for gene_id in gene_ids:
        external = annotation.lookup(gene_id)
        if not external:
            n_unmapped += 1
            logger.debug("Gene %s has no annotation entry; excluded", gene_id)
            continue
        mapped.extend(external)
    return mapped, n_unmapped


def build_regulated_gene_set(
    result: ContrastResult,
    annotation: GeneAnnotation | None = None,
) -> RegulatedGeneSet:
    """
    Extract up/down/significant identifier collections from a result table.

    Uses the raw significance labels.

    Args:
        result: GeneStatResult table of one contrast.
        annotation: Internal → external id lookup. None maps ids to themselves.

    Returns:
        RegulatedGeneSet for the contrast.
    """
    if annotation is None:
        annotation = GeneAnnotation.identity()

    up, n_up_unmapped = _map_genes(result.genes_with(Significance.UPREGULATED), annotation)
    down, n_down_unmapped = _map_genes(result.genes_with(Significance.DOWNREGULATED), annotation)
    n_unmapped = n_up_unmapped + n_down_unmapped

    if n_unmapped:
        logger.info(
            "%s/%s: %d significant gene(s) without annotation excluded from gene sets",
            result.stratum, result.contrast_name, n_unmapped,
        )

    return RegulatedGeneSet(
        stratum=result.stratum,
        contrast_name=result.contrast_name,
        upregulated=tuple(up),
        downregulated=tuple(down),
        n_unmapped=n_unmapped,
    )
