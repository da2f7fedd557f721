"""
Loaders for expression tables, sample designs and gene annotations.

Expected formats (CSV, or TSV for .tsv/.txt; optional .gz):

Expression matrix:
    First column: gene ids (unique). Remaining columns: sample ids with
    FPKM values.

    ```
    gene_id,S101,S102,S103
    499304660,12.3,0.0,7.1
    ```

Sample design:
    One row per sample with a sample id column and three factor columns,
    optionally a stratum column (e.g. brain region). Factor values accept
    common encodings (Y/N, positive/negative, Dementia/No Dementia).

    ```
    sample_id,apoe4,tbi,dementia,region
    S101,Y,Y,Dementia,HIP
    ```

Gene annotation:
    One row per (gene id, external identifier); a gene may appear on
    several rows.
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path

import numpy as np
import pandas as pd

from stratadeg.core.expression import ExpressionMatrix
from stratadeg.core.groups import SampleDesign
from stratadeg.genesets.regulated import GeneAnnotation

__all__ = ['load_expression_matrix', 'load_sample_design', 'load_gene_annotation', 'read_table']

logger = logging.getLogger(__name__)


def _delimiter_for(path: Path) -> str:
    suffixes = [s.lower() for s in path.suffixes]
    if suffixes and suffixes[-1] == ".gz":
        suffixes = suffixes[:-1]
    if suffixes and suffixes[-1] in (".tsv", ".txt", ".tab"):
        return "\t"
    return ","


def read_table(path: Path | str, **kwargs) -> pd.DataFrame:
    """
    Read a CSV/TSV file with the delimiter inferred from its suffix.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is empty or cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    try:
        return pd.read_csv(path, sep=_delimiter_for(path), **kwargs)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"File is empty: {path}") from e
    except pd.errors.ParserError as e:
        raise ValueError(f"Failed to parse {path}: {e}") from e


def load_expression_matrix(path: Path | str) -> ExpressionMatrix:
    """
    Load a genes × samples expression table.

    Args:
        path: CSV/TSV with gene ids in the first column.

    Returns:
        ExpressionMatrix

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the table is empty, has duplicate gene ids, or holds
            non-numeric values
        NumericDomainError: If values are negative or non-finite
    """
    df = read_table(path, index_col=0)

    if df.shape[0] == 0:
        raise ValueError(f"Expression table contains no genes (rows): {path}")
    if df.shape[1] == 0:
        raise ValueError(f"Expression table contains no samples (columns): {path}")

    if df.index.duplicated().any():
        dupes = df.index[df.index.duplicated()].unique().tolist()
        raise ValueError(f"Duplicate gene ids in {path}: {dupes[:5]}")

    if df.columns.duplicated().any():
        n_duplicates = int(df.columns.duplicated().sum())
        warnings.warn(
            f"Found {n_duplicates} duplicate sample IDs. Using first occurrence of each.",
            UserWarning,
        )
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    try:
        data = df.to_numpy(dtype=np.float64)
    except (TypeError, ValueError) as e:
        bad_columns = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
        raise ValueError(
            f"Expression table has non-numeric values in column(s): {bad_columns[:5]}"
        ) from e

    matrix = ExpressionMatrix(data, df.index, df.columns)
    logger.info("Loaded %d genes × %d samples from %s", matrix.n_genes, matrix.n_samples, path)
    return matrix


def load_sample_design(
    path: Path | str,
    sample_column: str = "sample_id",
    apoe4_column: str = "apoe4",
    tbi_column: str = "tbi",
    dementia_column: str = "dementia",
    stratum_column: str | None = None,
    group_column: str | None = None,
) -> SampleDesign:
    """
    Load the sample design table.

    Args:
        path: CSV/TSV with one row per sample.
        sample_column: Column holding sample ids.
        apoe4_column: APOE4 status column.
        tbi_column: TBI history column.
        dementia_column: Dementia status column.
        stratum_column: Optional column partitioning samples into strata.
        group_column: Alternative to the factor columns: serialized group
            labels such as ``APOE4+_TBI-_Dementia``.

    Returns:
        SampleDesign

    Raises:
        ValueError: If columns are missing or values cannot be interpreted
    """
    df = read_table(path, dtype={sample_column: str})
    if sample_column not in df.columns:
        raise ValueError(
            f"Sample column '{sample_column}' not in design table (columns: {list(df.columns)})"
        )
    df = df.set_index(sample_column)

    design = SampleDesign.from_frame(
        df,
        apoe4_column=apoe4_column,
        tbi_column=tbi_column,
        dementia_column=dementia_column,
        stratum_column=stratum_column,
        group_column=group_column,
    )
    logger.info("Loaded design for %d samples from %s", len(design), path)
    return design


def load_gene_annotation(
    path: Path | str,
    gene_column: str = "gene_id",
    id_column: str = "external_id",
) -> GeneAnnotation:
    """
    Load a gene id → external identifier table.

    Raises:
        ValueError: If the columns are missing
    """
    df = read_table(path, dtype={gene_column: str})
    annotation = GeneAnnotation.from_frame(df, gene_column=gene_column, id_column=id_column)
    logger.info("Loaded annotation for %d genes from %s", len(annotation), path)
    return annotation
