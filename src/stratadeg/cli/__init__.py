"""
stratadeg CLI - Command-line interface for stratified differential expression.

Commands:
    stratadeg run        - Analyse every stratum and write tables, gene sets, intersections
    stratadeg contrasts  - List the canonical contrasts and genotype pairings
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for stratadeg."""
    parser = argparse.ArgumentParser(
        prog="stratadeg",
        description="Stratified differential expression for APOE4 × TBI × dementia designs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  run        Analyse every stratum and write results
  contrasts  List the canonical contrasts and genotype pairings

Examples:
  stratadeg run --expression fpkm.csv --design samples.csv --output results/
  stratadeg run --config analysis.yaml --workers 4
  stratadeg contrasts
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from stratadeg.cli import run, contrasts
    run.register_parser(subparsers)
    contrasts.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Raw args let the run command tell explicit flags from defaults.
    parsed_args.raw_args = list(sys.argv[1:] if args is None else args)

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
