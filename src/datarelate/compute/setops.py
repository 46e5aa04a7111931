"""Query plan nodes that implement set operations.

Set operations treat each row of a Dataset as an element
of a set, and thus work on whole rows instead of key columns.
This means that the two Datasets must have the same columns.

The result of a set operation is always a set,
so each distinct row appears only once, even when
it was duplicated in the inputs:

>>> import pyarrow as pa
>>> df1 = pa.table({"x": [1, 2], "y": [1, 1]})
>>> df2 = pa.table({"x": [1, 1], "y": [1, 2]})
>>> intersect(df1, df2).to_pylist()
[{'x': 1, 'y': 1}]
>>> union(df1, df2).to_pylist()
[{'x': 1, 'y': 1}, {'x': 2, 'y': 1}, {'x': 1, 'y': 2}]
>>> difference(df1, df2).to_pylist()
[{'x': 2, 'y': 1}]

Rows are emitted in the order they are first found,
scanning the first Dataset and then the second one.

Differently from joins, two nulls in the same column
are considered equal when comparing rows, otherwise
rows containing nulls could never be deduplicated.
"""

import abc
import logging

import pyarrow as pa

from .base import QueryPlanNode, as_table, collect_table, table_to_recordbatch
from .datasources import PyArrowTableDataSource
from .keys import row_identities

log = logging.getLogger(__name__)

__all__ = (
    "SchemaMismatchError",
    "IntersectNode",
    "UnionNode",
    "DifferenceNode",
    "intersect",
    "union",
    "difference",
)


class SchemaMismatchError(ValueError):
    """Raised when the two sides of a set operation have different columns."""

    pass


class SetOperationNode(QueryPlanNode):
    """Base class for set operations between two data sources.

    The rows of both children are converted to row identities
    (see :func:`datarelate.compute.keys.row_identities`) and then
    the subclasses decide which of the distinct rows are kept,
    by implementing :meth:`select`.

    The columns of the right side are reordered to follow the left
    side before the rows are compared. Rows are compared by their
    values as they are, so the string ``"1"`` and the integer ``1``
    are different rows, while the integer ``1`` and the float ``1.0``
    are the same row.
    """

    def __init__(self, left_child: QueryPlanNode, right_child: QueryPlanNode) -> None:
        """
        :param left_child: The first Dataset of the operation.
        :param right_child: The second Dataset of the operation.
        """
        self.left_child = left_child
        self.right_child = right_child

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(left={self.left_child}, right={self.right_child})"

    @abc.abstractmethod
    def select(self, left_rows: list[tuple], right_rows: list[tuple]) -> list[int]:
        """Pick the rows of the result.

        Returns the indices of the selected rows in the
        concatenation of the left and the right rows,
        so a value ``>= len(left_rows)`` refers to a right row.
        """
        ...

    def source_rows(self, left: pa.Table, right: pa.Table) -> pa.Table:
        """The table the indices returned by :meth:`select` refer to.

        Operations that only emit left rows can take them
        from the left table, preserving its types.
        """
        return left

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Perform the set operation.

        Accumulates all rows of both children, so it
        is not suitable for datasets that don't fit in memory.
        """
        left = collect_table(self.left_child)
        right = _align(collect_table(self.right_child), left.schema.names)

        names = left.column_names
        left_rows = row_identities(left, names)
        right_rows = row_identities(right, names)
        selected = self.select(left_rows, right_rows)
        log.debug(
            "%s of %d and %d rows emitted %d rows",
            self.__class__.__name__,
            left.num_rows,
            right.num_rows,
            len(selected),
        )

        result = self.source_rows(left, right).take(pa.array(selected, type=pa.int64()))
        yield table_to_recordbatch(result)


class IntersectNode(SetOperationNode):
    """Emit the distinct rows that exist in both children."""

    def select(self, left_rows: list[tuple], right_rows: list[tuple]) -> list[int]:
        right_set = set(right_rows)
        return _first_occurrences(left_rows, lambda row: row in right_set)


class UnionNode(SetOperationNode):
    """Emit the distinct rows that exist in any of the children."""

    def select(self, left_rows: list[tuple], right_rows: list[tuple]) -> list[int]:
        return _first_occurrences(left_rows + right_rows, lambda row: True)

    def source_rows(self, left: pa.Table, right: pa.Table) -> pa.Table:
        """Concatenate both tables, promoting the columns to common types.

        Raises :class:`SchemaMismatchError` when a column has no type
        able to hold the values of both sides.
        """
        try:
            return pa.concat_tables([left, right], promote_options="permissive")
        except (pa.ArrowTypeError, pa.ArrowInvalid) as e:
            raise SchemaMismatchError(
                f"Union requires columns of compatible types: {e}"
            ) from e


class DifferenceNode(SetOperationNode):
    """Emit the distinct rows of the left child that don't exist in the right one."""

    def select(self, left_rows: list[tuple], right_rows: list[tuple]) -> list[int]:
        right_set = set(right_rows)
        return _first_occurrences(left_rows, lambda row: row not in right_set)


def _first_occurrences(rows: list[tuple], predicate) -> list[int]:
    """Indices of the first occurrence of each distinct row accepted by predicate."""
    seen = set()
    selected = []
    for idx, row in enumerate(rows):
        if row in seen:
            continue
        seen.add(row)
        if predicate(row):
            selected.append(idx)
    return selected


def _align(table: pa.Table, names: list[str]) -> pa.Table:
    """Reorder the columns of table to follow names.

    Raises :class:`SchemaMismatchError` if the columns are not the same.
    """
    if set(table.column_names) != set(names) or len(table.column_names) != len(names):
        raise SchemaMismatchError(
            f"Set operations require the same columns, got {names} and {table.column_names}"
        )
    return table.select(names)


def _run(
    node_class: type[SetOperationNode],
    a: "pa.Table | pa.RecordBatch | QueryPlanNode",
    b: "pa.Table | pa.RecordBatch | QueryPlanNode",
) -> pa.Table:
    node = node_class(
        PyArrowTableDataSource(as_table(a)), PyArrowTableDataSource(as_table(b))
    )
    return collect_table(node)


def intersect(
    a: "pa.Table | pa.RecordBatch | QueryPlanNode",
    b: "pa.Table | pa.RecordBatch | QueryPlanNode",
) -> pa.Table:
    """Distinct rows that are both in ``a`` and ``b``."""
    return _run(IntersectNode, a, b)


def union(
    a: "pa.Table | pa.RecordBatch | QueryPlanNode",
    b: "pa.Table | pa.RecordBatch | QueryPlanNode",
) -> pa.Table:
    """Distinct rows that are in ``a`` or ``b``."""
    return _run(UnionNode, a, b)


def difference(
    a: "pa.Table | pa.RecordBatch | QueryPlanNode",
    b: "pa.Table | pa.RecordBatch | QueryPlanNode",
) -> pa.Table:
    """Distinct rows of ``a`` that are not in ``b``."""
    return _run(DifferenceNode, a, b)
