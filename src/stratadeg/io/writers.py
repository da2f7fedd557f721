"""
Writers for study outputs.

Layout under the output directory:

    summary.csv                                  one row per (stratum, contrast)
    intersections.csv                            one row per (stratum, genotype)
    failures.csv                                 failed strata (only if any)
    <stratum>/<contrast>.results.csv             GeneStatResult table
    <stratum>/<contrast>.<direction>.txt         ordered identifiers, one per line
    <stratum>/<genotype>.intersection.<direction>.txt   sorted identifiers

Intersections that were skipped because their stratum failed appear in
intersections.csv with status ``skipped`` and the reason; no identifier file
is written for them, so an empty file always means "no shared genes".
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

import pandas as pd

from stratadeg.genesets.intersect import GeneSetIntersection
from stratadeg.pipeline import StratumResult, StudyReport

__all__ = ['write_identifier_list', 'write_stratum_result', 'write_study_report']

logger = logging.getLogger(__name__)

DIRECTIONS = ("upregulated", "downregulated", "significant")


def _safe_name(name: str) -> str:
    """File-system safe version of a stratum or contrast key."""
    return re.sub(r"[^A-Za-z0-9._+-]+", "_", str(name)).strip("_") or "unnamed"


def write_identifier_list(identifiers: Iterable[str], path: Path) -> None:
    """Write identifiers one per line, in the order given."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    identifiers = list(identifiers)
    with open(path, "w") as f:
        for identifier in identifiers:
            f.write(f"{identifier}\n")
    logger.debug("Wrote %d identifiers to %s", len(identifiers), path)


def write_stratum_result(result: StratumResult, output_dir: Path) -> Path:
    """
    Write one stratum's tables, gene sets and intersections.

    Returns:
        The stratum's output directory.
    """
    stratum_dir = Path(output_dir) / _safe_name(result.stratum)
    stratum_dir.mkdir(parents=True, exist_ok=True)

    for name, contrast_result in result.results.items():
        contrast_result.table.to_csv(stratum_dir / f"{_safe_name(name)}.results.csv", index=False)

        gene_set = result.gene_sets[name]
        for direction in DIRECTIONS:
            write_identifier_list(
                gene_set.direction(direction),
                stratum_dir / f"{_safe_name(name)}.{direction}.txt",
            )

    for genotype, intersection in result.intersections.items():
        _write_intersection(intersection, stratum_dir, genotype)

    return stratum_dir


def _write_intersection(intersection: GeneSetIntersection, stratum_dir: Path, genotype: str) -> None:
    for direction in DIRECTIONS:
        write_identifier_list(
            sorted(intersection.direction(direction)),
            stratum_dir / f"{_safe_name(genotype)}.intersection.{direction}.txt",
        )


def write_study_report(report: StudyReport, output_dir: Path | str) -> Path:
    """
    Write all outputs of a study.

    Args:
        report: Result of run_study.
        output_dir: Destination directory (created if needed).

    Returns:
        The output directory.

    Raises:
        ValueError: If two stratum keys map to the same directory name.
        OSError: If the directory is not writable.
    """
    directories: dict[str, str] = {}
    for stratum in report.stratum_keys:
        name = _safe_name(stratum)
        if name in directories:
            raise ValueError(
                f"Strata '{directories[name]}' and '{stratum}' map to the same "
                f"output directory '{name}'"
            )
        directories[name] = stratum

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    for result in report.strata.values():
        write_stratum_result(result, output_dir)

    report.summary_frame().to_csv(output_dir / "summary.csv", index=False)
    report.intersection_frame().to_csv(output_dir / "intersections.csv", index=False)

    failures_path = output_dir / "failures.csv"
    if report.failures:
        pd.DataFrame([
            {"stratum": f.stratum, "error_type": f.error_type, "message": f.message}
            for f in report.failures.values()
        ]).to_csv(failures_path, index=False)
    elif failures_path.exists():
        failures_path.unlink()

    logger.info("Wrote results for %d stratum/strata to %s", len(report.strata), output_dir)
    return output_dir
