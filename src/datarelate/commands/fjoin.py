"""Command line interface for joining files.

This module provides a command line interface for joining two files
based on the DataRelate :class:`datarelate.compute.JoinNode`.

The results of the execution are then printed to the console in a tabular format
using the :class:`datarelate.utils.tabulate` module.
"""

import argparse
import logging

from datarelate.compute import (
    EmptyKeyError,
    IncompatibleKeysError,
    JoinNode,
    JoinType,
    collect_table,
    open_file,
)
from datarelate.utils import tabulate


def parse_key(value: str) -> str | tuple[str, str]:
    """Parse a ``-k`` option, ``LEFT=RIGHT`` or a column name shared by both files."""
    if "=" in value:
        left_key, right_key = value.split("=", 1)
        return (left_key, right_key)
    return value


def main(argv: list[str] | None = None) -> int:
    """Parse the command line arguments and execute the join."""
    parser = argparse.ArgumentParser(description="Join the rows of two files.")
    parser.add_argument("-l", "--left", required=True, help="The left file to join.")
    parser.add_argument("-r", "--right", required=True, help="The right file to join.")
    parser.add_argument(
        "-k",
        "--key",
        action="append",
        type=parse_key,
        help="Join key, as COLUMN or LEFT=RIGHT. Can be provided multiple times. "
        "Omit to join on all common columns.",
    )
    parser.add_argument(
        "--how",
        choices=[t.value for t in JoinType],
        default=JoinType.INNER.value,
        help="The kind of join to perform.",
    )
    parser.add_argument(
        "--max-rows", type=int, default=20, help="How many rows of the result to print."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log execution details.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    plan = JoinNode(args.key, args.how, open_file(args.left), open_file(args.right))
    try:
        result = collect_table(plan)
    except (KeyError, EmptyKeyError, IncompatibleKeysError) as e:
        print(f"Invalid join keys, {e}")
        return 1
    except ValueError as e:
        print(f"Unable to join the files, {e}")
        return 1

    print(tabulate.tabulate(result, max_rows=args.max_rows))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
