"""Format tabular data into a text table for print.

The `tabulate` function takes a `pyarrow.Table` or `pyarrow.RecordBatch`
and formats it into a text table. Missing values are shown as ``NA``,
so that the rows filled by outer joins are easy to spot.
Long strings are truncated, floats are formatted to 2 decimal places
and the number of rows displayed is limited.
The function is used by the DataRelate command line tools.

Example:

    >>> import pyarrow as pa
    >>> data = {
    ...     "key": [1, 2, 3],
    ...     "val_x": ["x1", "x2", "x3"],
    ...     "val_y": [0.5, None, 2.0],
    ... }
    >>> print(tabulate(pa.table(data)))
    key | val_x | val_y
    --- | ----- | -----
    1   | x1    | 0.50
    2   | x2    | NA
    3   | x3    | 2.00
"""

from typing import Any

import pyarrow as pa

MISSING = "NA"


def tabulate(data: pa.Table | pa.RecordBatch, max_rows: int = 20) -> str:
    """Format a Table or RecordBatch into a text table.

    Only the first ``max_rows`` rows are shown, a footer
    reports how many rows were left out.
    """
    cols = data.column_names
    rows = [
        [format_value(row[c]) for c in cols]
        for row in data.slice(length=max_rows).to_pylist()
    ]

    colsizes = compute_max_colsize(cols, rows)
    header = [maketablerow(cols, colsizes=colsizes)]
    separator = [maketablerow(["-"] * len(cols), colsizes=colsizes, fillvalue="-")]
    textrows = [maketablerow(row, colsizes=colsizes) for row in rows]

    table = "\n".join(header + separator + textrows)
    if data.num_rows > max_rows:
        table += f"\n... and {data.num_rows - max_rows} more rows"
    return table


def compute_max_colsize(cols: list[str], rows: list[list[str]]) -> list[int]:
    """Width of each column, the widest between its header and its values."""
    return [
        max([len(row[colidx]) for row in rows] + [len(cols[colidx])])
        for colidx, _ in enumerate(cols)
    ]


def maketablerow(cols: list[str], colsizes: list[int], fillvalue: str = " ") -> str:
    """Pad each cell to the width of its column and join them."""
    return " | ".join(
        [col.ljust(colsizes[idx], fillvalue) for idx, col in enumerate(cols)]
    ).rstrip()


def format_value(v: Any) -> str:
    """Format a value to be printed in the table."""
    if v is None:
        return MISSING
    elif isinstance(v, bool):
        return "true" if v else "false"
    elif isinstance(v, float):
        return f"{v:.2f}"

    v = str(v)
    if len(v) > 30:
        v = v[:27] + "..."
    return v
