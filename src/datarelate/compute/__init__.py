"""The DataRelate Compute Engine

The compute engine defines the in-memory
format for relational plans and the plan nodes
supported: joins, set operations and resamples.

The compute engine is tightly bound to Apache Arrow,
thus the engine will expect to always deal with
:class:`pyarrow.RecordBatch` and emit a new RecordBatch
as the result of the node execution.

This allows to easily build compute pipelines like::

    (RecordBatch)--\\
                    JoinNode--(RecordBatch)-->UnionNode--(RecordBatch)-->...
    (RecordBatch)--/

The query plan nodes themselves are in charge of their execution,
this keeps the behavior near to the node and thus makes easy to
know how a Node is actually executed without having to look around too much.

Building a plan requires to combine the nodes that we want
to be executed starting with the ``DataSource`` nodes as the
leaves of the plan:

>>> import pyarrow as pa
>>> from datarelate.compute import JoinNode, PyArrowTableDataSource
>>> flights = pa.table({
...    "carrier": pa.array(["UA", "AA", "B6", "UA", "ZZ"]),
...    "dest": pa.array(["IAH", "MIA", "BQN", "ORD", "LAX"]),
... })
>>> airlines = pa.table({
...    "carrier": pa.array(["AA", "B6", "UA"]),
...    "name": pa.array(["American Airlines", "JetBlue Airways", "United Air Lines"]),
... })
>>> query = JoinNode(
...     "carrier", "inner",
...     left_child=PyArrowTableDataSource(flights),
...     right_child=PyArrowTableDataSource(airlines),
... )
>>> for data in query.batches():
...     print(data.to_pydict())
{'carrier': ['UA', 'AA', 'B6', 'UA'], 'dest': ['IAH', 'MIA', 'BQN', 'ORD'], 'name': ['United Air Lines', 'American Airlines', 'JetBlue Airways', 'United Air Lines']}

For callers that just want a result, each operation is also
available as a function returning a :class:`pyarrow.Table`:
:func:`join`, :func:`cross_join`, :func:`intersect`,
:func:`union`, :func:`difference`, and the resampling
functions :func:`bootstrap_sample`, :func:`cross_validation_splits`, etc.
"""

from .base import QueryPlanNode, collect_table
from .datasources import (
    CSVDataSource,
    ParquetDataSource,
    PyArrowTableDataSource,
    open_file,
)
from .join import CrossJoinNode, JoinNode, JoinType, cross_join, join
from .keys import EmptyKeyError, IncompatibleKeysError, resolve_keys
from .resample import (
    InvalidInputError,
    ResampleView,
    Split,
    bootstrap_sample,
    bootstrap_samples,
    cross_validation_splits,
    kfold_splits,
    partition,
)
from .setops import (
    DifferenceNode,
    IntersectNode,
    SchemaMismatchError,
    UnionNode,
    difference,
    intersect,
    union,
)

__all__ = (
    "QueryPlanNode",
    "collect_table",
    "CSVDataSource",
    "ParquetDataSource",
    "PyArrowTableDataSource",
    "open_file",
    "JoinType",
    "JoinNode",
    "CrossJoinNode",
    "join",
    "cross_join",
    "resolve_keys",
    "EmptyKeyError",
    "IncompatibleKeysError",
    "IntersectNode",
    "UnionNode",
    "DifferenceNode",
    "intersect",
    "union",
    "difference",
    "SchemaMismatchError",
    "ResampleView",
    "Split",
    "bootstrap_sample",
    "bootstrap_samples",
    "cross_validation_splits",
    "kfold_splits",
    "partition",
    "InvalidInputError",
)
