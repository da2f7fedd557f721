"""
Configuration file support for the stratadeg CLI.

Supports YAML and JSON config files with CLI argument override.

Example config (YAML):

    expression: data/fpkm_table.csv
    design: data/donor_samples.csv
    annotation: data/rows_genes.csv
    output: results/
    design_columns:
      sample: sample_id
      apoe4: apoe4
      tbi: ever_tbi_w_loc
      dementia: act_demented
      stratum: structure_acronym
    annotation_columns:
      gene: gene_id
      id: gene_entrez_id
    moderation:
      trend: true
    workers: 4

Significance thresholds and the log pseudocount are fixed constants of the
analysis and are rejected if they appear in a config file.
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class DesignColumns:
    """Column names in the sample design table."""
    sample: str = "sample_id"
    apoe4: str = "apoe4"
    tbi: str = "tbi"
    dementia: str = "dementia"
    stratum: Optional[str] = None
    group: Optional[str] = None


@dataclass
class AnnotationColumns:
    """Column names in the gene annotation table."""
    gene: str = "gene_id"
    id: str = "external_id"


@dataclass
class AnalysisConfig:
    """
    Complete configuration schema for ``stratadeg run``.

    Mirrors the CLI argument structure for consistency.
    """
    expression: Optional[Path] = None
    design: Optional[Path] = None
    annotation: Optional[Path] = None
    output: Optional[Path] = None
    design_columns: DesignColumns = field(default_factory=DesignColumns)
    annotation_columns: AnnotationColumns = field(default_factory=AnnotationColumns)
    trend: bool = True
    workers: int = 1

    @classmethod
    def from_namespace(cls, args: Namespace) -> "AnalysisConfig":
        """Build from merged CLI arguments."""
        return cls(
            expression=args.expression,
            design=args.design,
            annotation=args.annotation,
            output=args.output,
            design_columns=DesignColumns(
                sample=args.sample_column,
                apoe4=args.apoe4_column,
                tbi=args.tbi_column,
                dementia=args.dementia_column,
                stratum=args.stratum_column,
                group=args.group_column,
            ),
            annotation_columns=AnnotationColumns(
                gene=args.annotation_gene_column,
                id=args.annotation_id_column,
            ),
            trend=args.trend,
            workers=args.workers,
        )


# Keys that name fixed analysis constants.
_FORBIDDEN_KEYS = ("thresholds", "logfc_threshold", "pvalue_threshold", "pseudocount")

# Config section → {config key: argparse dest}
_SECTION_MAPPINGS = {
    "design_columns": {
        "sample": "sample_column",
        "apoe4": "apoe4_column",
        "tbi": "tbi_column",
        "dementia": "dementia_column",
        "stratum": "stratum_column",
        "group": "group_column",
    },
    "annotation_columns": {
        "gene": "annotation_gene_column",
        "id": "annotation_id_column",
    },
    "moderation": {
        "trend": "trend",
    },
}

_PATH_KEYS = ("expression", "design", "annotation", "output")

_SHORT_TO_LONG = {
    "e": "expression",
    "d": "design",
    "a": "annotation",
    "o": "output",
    "w": "workers",
}


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with a CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    """Argparse dests the user set explicitly on the command line."""
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            name = arg[2:].split('=', 1)[0].replace('-', '_')
            if name == 'no_trend':
                name = 'trend'
            explicit.add(name)
        elif arg.startswith('-') and len(arg) >= 2 and arg[1] in _SHORT_TO_LONG:
            # Short options may carry their value attached: -w4, -eX.csv
            explicit.add(_SHORT_TO_LONG[arg[1]])
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values).
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values
    """
    explicit = _explicit_args(cli_args)
    merged = Namespace(**vars(args))

    for key in _PATH_KEYS:
        if key in config:
            value = config[key]
            value = Path(value) if value is not None else None
            setattr(merged, key, _merge_value(getattr(merged, key), value, key in explicit))

    if 'workers' in config:
        merged.workers = _merge_value(merged.workers, config['workers'], 'workers' in explicit)

    for section, mapping in _SECTION_MAPPINGS.items():
        values = config.get(section) or {}
        for config_key, dest in mapping.items():
            if config_key in values:
                setattr(merged, dest, _merge_value(
                    getattr(merged, dest), values[config_key], dest in explicit,
                ))

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Raises:
        ValueError: If configuration is invalid
    """
    forbidden = [k for k in _FORBIDDEN_KEYS if k in config]
    if forbidden:
        raise ValueError(
            f"Config keys {forbidden} are not configurable: significance thresholds "
            f"(|logFC| > 0.5, p < 0.05) and the log2 pseudocount are fixed"
        )

    known = set(_PATH_KEYS) | set(_SECTION_MAPPINGS) | {'workers'}
    unknown = sorted(set(config) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {unknown}")

    for section, mapping in _SECTION_MAPPINGS.items():
        values = config.get(section)
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ValueError(f"Config section '{section}' must be a mapping")
        unknown = sorted(set(values) - set(mapping))
        if unknown:
            raise ValueError(f"Unknown keys in '{section}': {unknown}")

    if 'workers' in config:
        workers = config['workers']
        if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
            raise ValueError(f"workers must be a positive integer, got: {workers}")

    trend = (config.get('moderation') or {}).get('trend')
    if trend is not None and not isinstance(trend, bool):
        raise ValueError(f"moderation.trend must be true or false, got: {trend}")
