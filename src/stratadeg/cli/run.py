"""
stratadeg run command - stratified differential expression analysis.

Loads an FPKM expression table and a sample design, analyses every stratum
(brain region) independently and writes per-contrast result tables,
regulated gene sets, genotype intersections and a summary report.

Exit status:
    0  every stratum succeeded
    2  at least one stratum failed (outputs for the others are written)
    1  input or configuration error

Usage:
    stratadeg run --expression fpkm.csv --design samples.csv --output results/
    stratadeg run --config analysis.yaml --stratum-column structure_acronym
"""

import argparse
import logging
from pathlib import Path

from stratadeg.cli.config import (
    AnalysisConfig,
    load_config,
    merge_config_with_args,
    validate_config,
)
from stratadeg.io.loaders import load_expression_matrix, load_gene_annotation, load_sample_design
from stratadeg.io.writers import write_study_report
from stratadeg.pipeline import run_study

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_STRATUM_FAILED = 2


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the run subcommand."""
    parser = subparsers.add_parser(
        "run",
        help="Stratified differential expression analysis",
        description=(
            "Fit a group-means model per stratum, moderate variances, evaluate the\n"
            "four canonical contrasts and intersect TBI and dementia gene sets per\n"
            "APOE4 genotype."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Significance:
  |logFC| > 0.5 and p < 0.05, applied to both raw and BH-adjusted p-values.
  Expression is analysed as log2(FPKM + 1).

Examples:
  # Unstratified analysis
  stratadeg run --expression fpkm.csv --design samples.csv --output results/

  # One analysis per brain region, 4 regions in parallel
  stratadeg run -e fpkm.csv -d samples.csv -o results/ \\
      --stratum-column structure_acronym --workers 4

  # Settings from a config file, CLI flags override
  stratadeg run --config analysis.yaml --no-trend
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="YAML or JSON config file (CLI arguments take precedence)"
    )

    inputs = parser.add_argument_group("inputs")
    inputs.add_argument(
        "--expression", "-e",
        type=Path,
        help="Expression table: gene ids × samples (FPKM)"
    )
    inputs.add_argument(
        "--design", "-d",
        type=Path,
        help="Sample design table (one row per sample)"
    )
    inputs.add_argument(
        "--annotation", "-a",
        type=Path,
        help="Gene id → external identifier table (default: report gene ids)"
    )
    inputs.add_argument(
        "--output", "-o",
        type=Path,
        help="Output directory"
    )

    columns = parser.add_argument_group("design columns")
    columns.add_argument("--sample-column", default="sample_id",
                         help="Sample id column (default: sample_id)")
    columns.add_argument("--apoe4-column", default="apoe4",
                         help="APOE4 status column (default: apoe4)")
    columns.add_argument("--tbi-column", default="tbi",
                         help="TBI history column (default: tbi)")
    columns.add_argument("--dementia-column", default="dementia",
                         help="Dementia status column (default: dementia)")
    columns.add_argument("--stratum-column", default=None,
                         help="Column partitioning samples into strata (default: unstratified)")
    columns.add_argument("--group-column", default=None,
                         help="Serialized group label column, instead of the three factor columns")
    columns.add_argument("--annotation-gene-column", default="gene_id",
                         help="Gene id column in the annotation table (default: gene_id)")
    columns.add_argument("--annotation-id-column", default="external_id",
                         help="External identifier column in the annotation table "
                              "(default: external_id)")

    parser.add_argument(
        "--no-trend",
        dest="trend",
        action="store_false",
        help="Use a constant variance prior instead of an intensity trend"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=1,
        help="Strata analysed in parallel (default: 1)"
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Warnings and errors only")

    parser.set_defaults(func=run_analysis)


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.WARNING
    logging.basicConfig(level=level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


def _resolve_config(args: argparse.Namespace) -> AnalysisConfig:
    """Merge config file and CLI arguments into a complete AnalysisConfig."""
    if args.config is not None:
        config = load_config(args.config)
        validate_config(config)
        args = merge_config_with_args(config, args, getattr(args, "raw_args", None))

    missing = [name for name in ("expression", "design", "output") if getattr(args, name) is None]
    if missing:
        flags = ", ".join(f"--{name}" for name in missing)
        raise ValueError(f"Missing required input(s): {flags} (on the command line or in --config)")
    if args.workers < 1:
        raise ValueError(f"--workers must be >= 1, got {args.workers}")

    return AnalysisConfig.from_namespace(args)


def run_analysis(args: argparse.Namespace) -> int:
    """Execute the run command."""
    _configure_logging(args)

    try:
        config = _resolve_config(args)

        matrix = load_expression_matrix(config.expression)
        columns = config.design_columns
        design = load_sample_design(
            config.design,
            sample_column=columns.sample,
            apoe4_column=columns.apoe4,
            tbi_column=columns.tbi,
            dementia_column=columns.dementia,
            stratum_column=columns.stratum,
            group_column=columns.group,
        )
        annotation = None
        if config.annotation is not None:
            annotation = load_gene_annotation(
                config.annotation,
                gene_column=config.annotation_columns.gene,
                id_column=config.annotation_columns.id,
            )
    except (FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_INPUT_ERROR

    report = run_study(
        matrix,
        design,
        annotation=annotation,
        trend=config.trend,
        n_workers=config.workers,
    )

    try:
        write_study_report(report, config.output)
    except (OSError, ValueError) as e:
        logger.error("Failed to write results to %s: %s", config.output, e)
        return EXIT_INPUT_ERROR

    if not report.succeeded:
        for failure in report.failures.values():
            logger.error("Stratum %s failed: %s", failure.stratum, failure)
        return EXIT_STRATUM_FAILED

    logger.info("Analysis complete: %d stratum/strata written to %s", len(report.strata), config.output)
    return EXIT_OK
