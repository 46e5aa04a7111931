"""Base classes and interfaces for the Compute Engine

This module defines the base components that are
necessary to represent a plan of relational operations
(joins, set operations, resamples) and execute it.
"""

import abc
from typing import Iterator

import pyarrow as pa


class QueryPlanNode(abc.ABC):
    """A node of a query execution plan.

    The Query plan is represented as a tree
    of nodes. Each node is a step in the execution
    and all previous steps are children of the
    last one.

    For example a plan that loads two files
    and joins them on a key would look like::

        LoadDataNode(left) --\\
                              JoinNode(keys)
        LoadDataNode(right) -/

    Relational operations like joins and set operations
    always have two children, while data sources are the
    leaves of the tree and have none.

    Each Node accepts :class:`pyarrow.RecordBatch`
    data as its input and emits new
    :class:`pyarrow.RecordBatch` data as its output.
    Input batches are never modified in place.

    For example a simple node that takes data
    and just forwards it as is after printing
    its content can be implemented as::

        class DebugDataNode(QueryPlanNode):
            def __init__(self, child):
                self.child = child

            def batches(self):
                for b in self.child.batches():
                    print(b)
                    yield b

            def __str__(self):
                return f"DebugDataNode()"
    """

    RecordBatchesGenerator = Iterator[pa.RecordBatch]

    @abc.abstractmethod
    def batches(self) -> RecordBatchesGenerator:
        """Emits the batches for the next node.

        Each QueryPlan node is expected to be able to
        generate data that has to be provided to the next
        node in the plan.

        Usually this happens by consuming data from its
        child nodes, combining it somehow, and yielding
        it back to the next consumer.
        """
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the node."""
        ...


def collect_table(node: QueryPlanNode) -> pa.Table:
    """Accumulate all the batches emitted by a node in a single table.

    Relational operations need to see all the rows of their
    inputs before they can emit any output, this loads
    all data of the node in memory.

    Concatenating batches into a :class:`pyarrow.Table` is
    a zero-copy operation, the table will just reference the
    chunks of the original batches.

    When a node emits no batches at all, the schema is
    looked up from the node itself if it is able to provide one.
    """
    batches = list(node.batches())
    if not batches:
        poll_schema = getattr(node, "poll_schema", None)
        if poll_schema is None:
            raise ValueError(f"{node} emitted no data and provides no schema")
        return pa.Table.from_batches([], schema=poll_schema())
    return pa.Table.from_batches(batches)


def table_to_recordbatch(table: pa.Table) -> pa.RecordBatch:
    """Merge all the chunks of a table into a single RecordBatch.

    Differently from ``table.to_batches()`` this always
    returns exactly one batch, even when the table is empty,
    so that downstream nodes always receive the schema.
    """
    return pa.RecordBatch.from_arrays(
        [column.combine_chunks() for column in table.columns], schema=table.schema
    )


def as_table(data: "pa.Table | pa.RecordBatch | QueryPlanNode") -> pa.Table:
    """Convert any supported Dataset representation to a :class:`pyarrow.Table`."""
    if isinstance(data, pa.Table):
        return data
    if isinstance(data, pa.RecordBatch):
        return pa.Table.from_batches([data])
    if isinstance(data, QueryPlanNode):
        return collect_table(data)
    raise TypeError(
        f"Invalid dataset, expected a pyarrow Table, RecordBatch or QueryPlanNode, got {type(data)}"
    )
