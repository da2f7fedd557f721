"""File adapters: loading inputs and writing study outputs."""

from .loaders import load_expression_matrix, load_gene_annotation, load_sample_design, read_table
from .writers import write_identifier_list, write_stratum_result, write_study_report

__all__ = [
    "load_expression_matrix",
    "load_gene_annotation",
    "load_sample_design",
    "read_table",
    "write_identifier_list",
    "write_stratum_result",
    "write_study_report",
]
