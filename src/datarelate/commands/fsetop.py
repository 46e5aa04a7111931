"""Command line interface for set operations between files.

Treats the rows of two files with the same columns as sets
and prints their intersection, union or difference
using the :class:`datarelate.utils.tabulate` module.
"""

import argparse
import logging

from datarelate.compute import (
    DifferenceNode,
    IntersectNode,
    SchemaMismatchError,
    UnionNode,
    collect_table,
    open_file,
)
from datarelate.utils import tabulate

OPERATIONS = {
    "intersect": IntersectNode,
    "union": UnionNode,
    "difference": DifferenceNode,
}


def main(argv: list[str] | None = None) -> int:
    """Parse the command line arguments and execute the set operation."""
    parser = argparse.ArgumentParser(description="Combine the rows of two files as sets.")
    parser.add_argument("operation", choices=list(OPERATIONS), help="The set operation.")
    parser.add_argument("first", help="The first file.")
    parser.add_argument("second", help="The second file.")
    parser.add_argument(
        "--max-rows", type=int, default=20, help="How many rows of the result to print."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log execution details.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    node_class = OPERATIONS[args.operation]
    plan = node_class(open_file(args.first), open_file(args.second))
    try:
        result = collect_table(plan)
    except SchemaMismatchError as e:
        print(f"Incompatible files, {e}")
        return 1
    except ValueError as e:
        print(f"Unable to combine the files, {e}")
        return 1

    print(tabulate.tabulate(result, max_rows=args.max_rows))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
