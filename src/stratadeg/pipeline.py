"""
Stratified differential expression pipeline.

One stratum (typically one brain region) is analysed end to end by
``run_stratum``:

    log2(FPKM + 1) → group-means fit → EB moderation → contrasts
        → BH correction (per contrast) → classification → gene sets
        → intersections of paired contrasts

``run_study`` applies ``run_stratum`` to every stratum of a SampleDesign and
assembles the returned values into a StudyReport keyed by stratum. Strata
share no state, so they may run concurrently. A stratum that fails
(degenerate design, invalid contrast, bad numeric domain, ...) is recorded
as a StratumFailure and the remaining strata are still processed; its
intersections are reported as SkippedIntersection entries carrying the
reason, never as empty sets.

Usage:
    report = run_study(matrix, design, annotation=annotation, n_workers=4)
    for stratum, result in report.strata.items():
        table = result.results["tbi_effect_apoe4_pos"].table
    report.summary_frame()
"""

# Warning convention:
#   warnings.warn() -- user-facing (statistical caveats)
#   logger.warning() -- operator-facing (stratum failure, skipped intersection)

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Mapping, Sequence, Union

import numpy as np
import pandas as pd

from stratadeg.core.expression import ExpressionMatrix
from stratadeg.core.groups import SampleDesign
from stratadeg.genesets.intersect import (
    GeneSetIntersection,
    GenotypePairing,
    canonical_pairings,
    intersect_gene_sets,
)
from stratadeg.genesets.regulated import (
    GeneAnnotation,
    RegulatedGeneSet,
    build_regulated_gene_set,
)
from stratadeg.stats.contrasts import Contrast, canonical_contrasts, evaluate_contrasts
from stratadeg.stats.design_matrix import build_group_design
from stratadeg.stats.empirical_bayes import ModeratedFit, moderate
from stratadeg.stats.linear_model import fit_linear_model
from stratadeg.stats.results import ContrastResult, build_contrast_result
from stratadeg.stats.significance import Significance

__all__ = [
    'StratumResult',
    'StratumFailure',
    'SkippedIntersection',
    'StudyReport',
    'run_stratum',
    'run_study',
]

logger = logging.getLogger(__name__)

# Expected analysis failures; anything else is logged with its traceback.
STRATUM_ERRORS = (ValueError, np.linalg.LinAlgError)


@dataclass(frozen=True, eq=False)
class StratumResult:
    """Complete analysis of one stratum.

    Attributes:
        stratum: Stratum key.
        n_genes: Genes analysed.
        n_samples: Samples analysed.
        results: Contrast name → GeneStatResult table.
        gene_sets: Contrast name → RegulatedGeneSet.
        intersections: Genotype → intersection of its paired contrasts.
        moderation: Variance moderation summary.
    """

    stratum: str
    n_genes: int
    n_samples: int
    results: Mapping[str, ContrastResult]
    gene_sets: Mapping[str, RegulatedGeneSet]
    intersections: Mapping[str, GeneSetIntersection]
    moderation: ModeratedFit = field(repr=False)


@dataclass(frozen=True)
class StratumFailure:
    """A stratum whose analysis raised an error."""

    stratum: str
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, stratum: str, error: BaseException) -> StratumFailure:
        return cls(stratum=stratum, error_type=type(error).__name__, message=str(error))

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"


@dataclass(frozen=True)
class SkippedIntersection:
    """An intersection that was not computed because a dependency failed."""

    stratum: str
    genotype: str
    reason: str


IntersectionOutcome = Union[GeneSetIntersection, SkippedIntersection]


@dataclass(frozen=True, eq=False)
class StudyReport:
    """Per-stratum outcomes of a study.

    Attributes:
        strata: Stratum key → StratumResult for strata that succeeded.
        failures: Stratum key → StratumFailure for strata that failed.
        intersections: (stratum, genotype) → intersection or skip record.
    """

    strata: Mapping[str, StratumResult]
    failures: Mapping[str, StratumFailure]
    intersections: Mapping[tuple[str, str], IntersectionOutcome]

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def stratum_keys(self) -> list[str]:
        return sorted(set(self.strata) | set(self.failures))

    def skipped_intersections(self) -> list[SkippedIntersection]:
        return [o for o in self.intersections.values() if isinstance(o, SkippedIntersection)]

    def summary_frame(self) -> pd.DataFrame:
        """
        Comparative report: one row per (stratum, contrast).

        Failed strata contribute a single row with status ``failed`` and the
        error text.
        """
        rows = []
        for stratum in self.stratum_keys:
            if stratum in self.failures:
                failure = self.failures[stratum]
                rows.append({
                    "stratum": stratum,
                    "contrast": None,
                    "status": "failed",
                    "error": str(failure),
                })
                continue
            result = self.strata[stratum]
            for name, contrast_result in result.results.items():
                raw = contrast_result.label_counts()
                adj = contrast_result.label_counts(adjusted=True)
                rows.append({
                    "stratum": stratum,
                    "contrast": name,
                    "status": "ok",
                    "error": None,
                    "n_genes": contrast_result.n_genes,
                    "n_up": raw[Significance.UPREGULATED.value],
                    "n_down": raw[Significance.DOWNREGULATED.value],
                    "n_not_significant": raw[Significance.NOT_SIGNIFICANT.value],
                    "n_adj_up": adj[Significance.UPREGULATED.value],
                    "n_adj_down": adj[Significance.DOWNREGULATED.value],
                    "n_unmapped": result.gene_sets[name].n_unmapped,
                })
        return pd.DataFrame(rows)

    def intersection_frame(self) -> pd.DataFrame:
        """One row per (stratum, genotype) intersection, computed or skipped."""
        rows = []
        for (stratum, genotype), outcome in sorted(self.intersections.items()):
            if isinstance(outcome, SkippedIntersection):
                rows.append({
                    "stratum": stratum,
                    "genotype": genotype,
                    "status": "skipped",
                    "reason": outcome.reason,
                })
            else:
                rows.append({
                    "stratum": stratum,
                    "genotype": genotype,
                    "status": "ok",
                    "reason": None,
                    **{f"n_{k}": v for k, v in outcome.sizes().items()},
                })
        return pd.DataFrame(rows)


def _resolve_contrasts(
    contrasts: Mapping[str, Contrast] | Sequence[Contrast] | None,
) -> dict[str, Contrast]:
    if contrasts is None:
        return {str(name): c for name, c in canonical_contrasts().items()}
    if isinstance(contrasts, Mapping):
        contrasts = list(contrasts.values())
    resolved = {}
    for contrast in contrasts:
        name = str(contrast.name)
        if name in resolved:
            raise ValueError(f"Duplicate contrast name: {name}")
        resolved[name] = contrast
    return resolved


def run_stratum(
    matrix: ExpressionMatrix,
    design: SampleDesign,
    stratum: str = "all",
    annotation: GeneAnnotation | None = None,
    contrasts: Mapping[str, Contrast] | Sequence[Contrast] | None = None,
    pairings: Sequence[GenotypePairing] | None = None,
    trend: bool = True,
) -> StratumResult:
    """
    Analyse one stratum.

    Args:
        matrix: Expression (FPKM) for exactly the stratum's samples.
        design: Design covering the matrix's samples.
        stratum: Stratum key recorded on every result.
        annotation: Gene id → external id lookup for gene sets.
        contrasts: Contrasts to evaluate; defaults to the canonical four.
        pairings: Contrast pairings to intersect; defaults to one per
            APOE4 genotype. Pairings whose contrasts were not evaluated are
            ignored.
        trend: Trend-aware variance moderation (default).

    Returns:
        StratumResult with one table and one gene set per contrast.

    Raises:
        DegenerateDesignError: If any of the eight groups has no sample
            (checked before fitting).
        InvalidContrastError: If a contrast does not sum to zero.
        NumericDomainError: If the log transform is not finite.
    """
    resolved = _resolve_contrasts(contrasts)
    for contrast in resolved.values():
        contrast.validate()

    group_design = build_group_design(matrix.sample_ids, design, stratum=stratum)

    logger.info(
        "Stratum %s: %d genes × %d samples, group sizes %s",
        stratum, matrix.n_genes, matrix.n_samples, group_design.group_sizes.tolist(),
    )

    log_expr = matrix.log2_transform()
    fit = fit_linear_model(log_expr, group_design, matrix.gene_ids)
    moderated = moderate(fit, trend=trend)
    estimates = evaluate_contrasts(fit, moderated, resolved)

    results = {name: build_contrast_result(est, stratum) for name, est in estimates.items()}
    gene_sets = {
        name: build_regulated_gene_set(result, annotation)
        for name, result in results.items()
    }

    intersections = {}
    for pairing in (pairings if pairings is not None else canonical_pairings()):
        if pairing.tbi_contrast not in gene_sets or pairing.dementia_contrast not in gene_sets:
            logger.debug("Stratum %s: pairing %s not evaluated", stratum, pairing.genotype)
            continue
        intersections[pairing.genotype] = intersect_gene_sets(
            gene_sets[pairing.tbi_contrast], gene_sets[pairing.dementia_contrast]
        )

    for name, result in results.items():
        counts = result.label_counts()
        logger.info(
            "Stratum %s, %s: %d up, %d down (raw p < 0.05)",
            stratum, name,
            counts[Significance.UPREGULATED.value],
            counts[Significance.DOWNREGULATED.value],
        )

    return StratumResult(
        stratum=stratum,
        n_genes=matrix.n_genes,
        n_samples=matrix.n_samples,
        results=results,
        gene_sets=gene_sets,
        intersections=intersections,
        moderation=moderated,
    )


def _run_one(
    stratum: str,
    sample_ids: list[str],
    matrix: ExpressionMatrix,
    design: SampleDesign,
    kwargs: dict,
) -> StratumResult | StratumFailure:
    try:
        stratum_matrix = matrix.select_samples(sample_ids)
        return run_stratum(stratum_matrix, design.subset(sample_ids), stratum=stratum, **kwargs)
    except STRATUM_ERRORS as e:
        logger.warning("Stratum %s failed: %s: %s", stratum, type(e).__name__, e)
        return StratumFailure.from_exception(stratum, e)
    except Exception as e:
        logger.exception("Stratum %s failed unexpectedly", stratum)
        return StratumFailure.from_exception(stratum, e)


def run_study(
    matrix: ExpressionMatrix,
    design: SampleDesign,
    annotation: GeneAnnotation | None = None,
    contrasts: Mapping[str, Contrast] | Sequence[Contrast] | None = None,
    pairings: Sequence[GenotypePairing] | None = None,
    trend: bool = True,
    n_workers: int = 1,
) -> StudyReport:
    """
    Analyse every stratum of a study independently.

    Args:
        matrix: Expression matrix holding the samples of all strata.
        design: Sample design; its strata define the partition. An
            unstratified design is analysed as the single stratum ``"all"``.
        annotation: Gene id → external id lookup for gene sets.
        contrasts: Contrasts to evaluate in every stratum.
        pairings: Contrast pairings to intersect in every stratum.
        trend: Trend-aware variance moderation (default).
        n_workers: Strata analysed concurrently (threads).

    Returns:
        StudyReport with per-stratum results, failures and intersections.
    """
    if n_workers < 1:
        raise ValueError(f"n_workers must be >= 1, got {n_workers}")

    undesigned = matrix.sample_ids.difference(design.sample_ids)
    if len(undesigned) > 0:
        logger.warning(
            "%d expression sample(s) have no design entry and are ignored: %s",
            len(undesigned), undesigned[:5].tolist(),
        )

    strata = design.strata()
    pairings = tuple(pairings) if pairings is not None else canonical_pairings()
    kwargs = dict(annotation=annotation, contrasts=contrasts, pairings=pairings, trend=trend)

    logger.info("Analysing %d stratum/strata with %d worker(s)", len(strata), n_workers)

    if n_workers == 1 or len(strata) == 1:
        outcomes = {
            key: _run_one(key, members, matrix, design, kwargs)
            for key, members in strata.items()
        }
    else:
        with ThreadPoolExecutor(max_workers=min(n_workers, len(strata))) as executor:
            futures = {
                key: executor.submit(_run_one, key, members, matrix, design, kwargs)
                for key, members in strata.items()
            }
            outcomes = {key: future.result() for key, future in futures.items()}

    results = {k: o for k, o in outcomes.items() if isinstance(o, StratumResult)}
    failures = {k: o for k, o in outcomes.items() if isinstance(o, StratumFailure)}

    intersections: dict[tuple[str, str], IntersectionOutcome] = {}
    for key in strata:
        for pairing in pairings:
            if key in failures:
                reason = f"stratum '{key}' failed: {failures[key]}"
                logger.warning("Skipping %s/%s intersection: %s", key, pairing.genotype, reason)
                intersections[(key, pairing.genotype)] = SkippedIntersection(
                    stratum=key, genotype=pairing.genotype, reason=reason,
                )
            elif pairing.genotype in results[key].intersections:
                intersections[(key, pairing.genotype)] = results[key].intersections[pairing.genotype]

    if failures:
        logger.warning("%d of %d strata failed: %s", len(failures), len(strata), sorted(failures))

    return StudyReport(strata=results, failures=failures, intersections=intersections)
