"""
stratadeg contrasts command - print the canonical contrasts and pairings.

Usage:
    stratadeg contrasts
"""

import argparse

from stratadeg.core.groups import ALL_GROUPS
from stratadeg.genesets.intersect import canonical_pairings
from stratadeg.stats.contrasts import canonical_contrasts


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the contrasts subcommand."""
    parser = subparsers.add_parser(
        "contrasts",
        help="List canonical contrasts and genotype pairings",
        description="Print the four canonical contrasts, their group weights and the "
                    "contrast pairs intersected per APOE4 genotype.",
    )
    parser.set_defaults(func=run_contrasts)


def run_contrasts(args: argparse.Namespace) -> int:
    print("Groups (design matrix columns):")
    for i, group in enumerate(ALL_GROUPS, start=1):
        print(f"  {i}. {group}")

    print("\nContrasts:")
    for name, contrast in canonical_contrasts().items():
        print(f"  {name}: {contrast.description}")
        for group, weight in contrast.weights.items():
            print(f"      {weight:+.0f}  {group}")

    print("\nIntersections:")
    for pairing in canonical_pairings():
        print(f"  {pairing.genotype}: {pairing.tbi_contrast} ∩ {pairing.dementia_contrast}")

    return 0
