"""Query plan nodes that implement join operations.

Joins combine two Datasets by matching the rows
that have the same values in their key columns.

The joins are implemented as hash joins: a hash table
mapping each key to the rows of the right Dataset that have
it is built, and then each row of the left Dataset looks up
its matches in the hash table. This takes time proportional
to the size of the two Datasets plus the number of matches,
instead of comparing every row with every other row.

Joins come in two families:

* **Mutating joins** (``inner``, ``left``, ``right``, ``full``)
  add the columns of the right Dataset to the rows of the left one.
* **Filtering joins** (``semi``, ``anti``) only decide which rows
  of the left Dataset survive and never add columns.

Given ``x`` and ``y``, where the key ``2`` is duplicated in ``x``:

>>> import pyarrow as pa
>>> from datarelate.compute import PyArrowTableDataSource
>>> x = PyArrowTableDataSource(pa.table({"key": [1, 2, 2, 1], "val_x": ["x1", "x2", "x3", "x4"]}))
>>> y = PyArrowTableDataSource(pa.table({"key": [1, 2], "val_y": ["y1", "y2"]}))
>>> join_node = JoinNode("key", "left", x, y)
>>> next(join_node.batches()).to_pydict()
{'key': [1, 2, 2, 1], 'val_x': ['x1', 'x2', 'x3', 'x4'], 'val_y': ['y1', 'y2', 'y2', 'y1']}

When a key appears ``n`` times on the left and ``m`` times on the
right, mutating joins emit ``n * m`` rows for that key, one for
each possible pairing of the rows.

Unmatched rows
==============

Rows that found no match and are preserved by the join
get nulls in the columns coming from the other Dataset:

>>> y = PyArrowTableDataSource(pa.table({"key": [1, 3], "val_y": ["y1", "y3"]}))
>>> next(JoinNode("key", "full", x, y).batches()).to_pydict()
{'key': [1, 2, 2, 1, 3], 'val_x': ['x1', 'x2', 'x3', 'x4', None], 'val_y': ['y1', None, None, 'y1', 'y3']}
"""

import enum
import logging

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, as_table, collect_table, table_to_recordbatch
from .datasources import PyArrowTableDataSource
from .keys import KeySpec, build_index, common_key_type, join_keys, resolve_keys

log = logging.getLogger(__name__)

__all__ = ("JoinType", "JoinNode", "CrossJoinNode", "join", "cross_join")


class JoinType(enum.Enum):
    """The supported kinds of join."""

    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"
    SEMI = "semi"
    ANTI = "anti"

    @property
    def is_filtering(self) -> bool:
        """Filtering joins only keep or drop rows of the left Dataset."""
        return self in (JoinType.SEMI, JoinType.ANTI)


class JoinNode(QueryPlanNode):
    """Join two data sources on one or more key columns.

    Supposing we have two tables::

        left:
        +----+--------+
        | id | name   |
        +----+--------+
        | 1  | Alice  |
        | 2  | Bob    |
        | 3  | Charlie|
        +----+--------+

        right:
        +----+-----+
        | id | age |
        +----+-----+
        | 3  | 25  |
        | 2  | 30  |
        | 2  | 31  |
        +----+-----+

    We would perform the following steps:

    1. Compute the key of each row of both tables.
       Rows having a null in any of the key columns get
       no key at all, as nulls never match::

        left_keys = [(1,), (2,), (3,)]
        right_keys = [(3,), (2,), (2,)]

    2. Build a hash table for the right keys, that for each
       key points to the rows having it, in their original order::

        {(3,): [0], (2,): [1, 2]}

    3. Probe the hash table with each left key, in the order of
       the left rows, to find which left row goes together with
       which right row. Depending on the kind of join, left rows without
       matches are paired with ``None`` or discarded::

        left_indices  = [0,    1, 1, 2]
        right_indices = [None, 0, 1, 0]   # for a left join

    4. Take the rows at those indices from both tables.
       Taking a ``None`` index produces a row of nulls.
       The columns of the two resulting tables are then combined,
       key columns first, then the rest of the left columns and
       finally the rest of the right columns::

        +----+--------+-----+
        | id | name   | age |
        +----+--------+-----+
        | 1  | Alice  |     |
        | 2  | Bob    | 30  |
        | 2  | Bob    | 31  |
        | 3  | Charlie| 25  |
        +----+--------+-----+

    The output always follows the order of the left rows,
    the right join emits the matched rows exactly like an inner join
    and then appends the right rows that had no match, in their
    original order, the same way the full join does.

    When a right or full join has to fill the key columns of those rows
    with the right values, each pair of key columns is promoted to
    a common type (see :func:`datarelate.compute.keys.common_key_type`).
    Key columns that have no common type, like strings and integers,
    raise :class:`datarelate.compute.keys.IncompatibleKeysError`
    before any row is matched.

    Filtering joins stop at step 3, the left table is filtered
    keeping the rows that had at least one match (semi join) or
    none (anti join).

    If a non key column exists in both tables,
    the right one is renamed appending ``suffixes[1]``
    and, when ``suffixes[0]`` is not empty, the left one
    is renamed appending ``suffixes[0]``.
    """

    def __init__(
        self,
        keys: KeySpec,
        how: JoinType | str,
        left_child: QueryPlanNode,
        right_child: QueryPlanNode,
        suffixes: tuple[str, str] = ("", "_right"),
    ) -> None:
        """
        :param keys: The key columns to join on, see :func:`datarelate.compute.keys.resolve_keys`.
                     ``None`` performs a natural join on the common columns.
        :param how: The kind of join to perform, a :class:`JoinType` or its name.
        :param left_child: The left source of data to join.
        :param right_child: The right source of data to join.
        :param suffixes: Appended to the names of non key columns
                         that exist in both sources.
        """
        self.keys = keys
        self.how = JoinType(how)
        self.left_child = left_child
        self.right_child = right_child
        self.suffixes = suffixes
        if not suffixes[1]:
            raise ValueError("The right suffix can't be empty")

    def __str__(self) -> str:
        return f"JoinNode(keys={self.keys}, how={self.how.value}, left={self.left_child}, right={self.right_child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Perform the join operation.

        Accumulates all rows of both children to
        perform the join operation, so it is not suitable
        for datasets that don't fit in memory.
        """
        left = collect_table(self.left_child)
        right = collect_table(self.right_child)
        keys = resolve_keys(self.keys, left.column_names, right.column_names)
        left_keycols = [lk for lk, _ in keys]
        right_keycols = [rk for _, rk in keys]
        key_types = {}
        if self.how in (JoinType.RIGHT, JoinType.FULL):
            key_types = {
                lk: common_key_type(lk, left.schema.field(lk).type, right.schema.field(rk).type)
                for lk, rk in keys
            }

        left_keys = join_keys(left, left_keycols)
        right_keys = join_keys(right, right_keycols)

        if self.how.is_filtering:
            index = build_index(right_keys)
            keep = [
                (key is not None and key in index) == (self.how is JoinType.SEMI)
                for key in left_keys
            ]
            result = left.filter(pa.array(keep, type=pa.bool_()))
            log.debug(
                "%s join kept %d of %d rows", self.how.value, result.num_rows, left.num_rows
            )
            yield table_to_recordbatch(result)
            return

        left_indices, right_indices = self._match(left_keys, right_keys)
        log.debug(
            "%s join of %d and %d rows on %s emitted %d rows",
            self.how.value,
            left.num_rows,
            right.num_rows,
            keys,
            len(left_indices),
        )
        left_taken = left.take(pa.array(left_indices, type=pa.int64()))
        right_taken = right.take(pa.array(right_indices, type=pa.int64()))
        yield table_to_recordbatch(
            self._combine(keys, key_types, left_taken, right_taken)
        )

    def _match(
        self, left_keys: list[tuple | None], right_keys: list[tuple | None]
    ) -> tuple[list[int | None], list[int | None]]:
        """Pair the rows of the two tables.

        Returns two equally long lists, where ``left_indices[i]``
        and ``right_indices[i]`` are the rows that have to be combined
        to form the i-th row of the result. ``None`` means that
        the row is missing on that side.
        """
        left_indices: list[int | None] = []
        right_indices: list[int | None] = []

        index = build_index(right_keys)
        preserve_left = self.how in (JoinType.LEFT, JoinType.FULL)
        matched_right = set()
        for left_idx, key in enumerate(left_keys):
            matches = index.get(key, []) if key is not None else []
            for right_idx in matches:
                left_indices.append(left_idx)
                right_indices.append(right_idx)
            if matches:
                matched_right.update(matches)
            elif preserve_left:
                left_indices.append(left_idx)
                right_indices.append(None)

        if self.how in (JoinType.RIGHT, JoinType.FULL):
            for right_idx in range(len(right_keys)):
                if right_idx not in matched_right:
                    left_indices.append(None)
                    right_indices.append(right_idx)
        return left_indices, right_indices

    def _combine(
        self,
        keys: list[tuple[str, str]],
        key_types: dict[str, pa.DataType],
        left: pa.Table,
        right: pa.Table,
    ) -> pa.Table:
        """Combine the aligned left and right rows into the joined table."""
        columns: dict[str, pa.ChunkedArray] = {}

        # Key columns are emitted only once with the name of the left key.
        # Rows that only exist on the right side have null left keys,
        # so for those the right key value is used.
        # The values of both sides are promoted to the type in key_types.
        for left_key, right_key in keys:
            key_values = left.column(left_key)
            if left_key in key_types:
                key_type = key_types[left_key]
                key_values = pc.coalesce(
                    key_values.cast(key_type), right.column(right_key).cast(key_type)
                )
            columns[left_key] = key_values

        left_keycols = {lk for lk, _ in keys}
        right_keycols = {rk for _, rk in keys}
        left_others = [c for c in left.column_names if c not in left_keycols]
        right_others = [c for c in right.column_names if c not in right_keycols]
        _add_columns(columns, left, left_others, set(right_others), self.suffixes[0])
        _add_columns(
            columns, right, right_others, set(columns) | set(left_others), self.suffixes[1]
        )
        return pa.table(columns)


class CrossJoinNode(QueryPlanNode):
    """Combine every row of the left source with every row of the right one.

    The Cartesian product of the two sources is never produced
    implicitly by a :class:`JoinNode`, when no keys are available
    it fails instead. This node must be used when the product
    is actually wanted.

    >>> import pyarrow as pa
    >>> from datarelate.compute import PyArrowTableDataSource
    >>> sizes = PyArrowTableDataSource(pa.table({"size": ["S", "M"]}))
    >>> colors = PyArrowTableDataSource(pa.table({"color": ["red", "blue"]}))
    >>> next(CrossJoinNode(sizes, colors).batches()).to_pydict()
    {'size': ['S', 'S', 'M', 'M'], 'color': ['red', 'blue', 'red', 'blue']}
    """

    def __init__(
        self,
        left_child: QueryPlanNode,
        right_child: QueryPlanNode,
        suffixes: tuple[str, str] = ("", "_right"),
    ) -> None:
        self.left_child = left_child
        self.right_child = right_child
        self.suffixes = suffixes

    def __str__(self) -> str:
        return f"CrossJoinNode(left={self.left_child}, right={self.right_child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        left = collect_table(self.left_child)
        right = collect_table(self.right_child)
        n_left, n_right = left.num_rows, right.num_rows
        log.debug("cross join of %d and %d rows", n_left, n_right)

        left_indices = pa.array(
            [i for i in range(n_left) for _ in range(n_right)], type=pa.int64()
        )
        right_indices = pa.array(list(range(n_right)) * n_left, type=pa.int64())
        left_taken = left.take(left_indices)
        right_taken = right.take(right_indices)

        columns: dict[str, pa.ChunkedArray] = {}
        _add_columns(
            columns, left_taken, left.column_names, set(right.column_names), self.suffixes[0]
        )
        _add_columns(
            columns,
            right_taken,
            right.column_names,
            set(columns) | set(left.column_names),
            self.suffixes[1],
        )
        yield table_to_recordbatch(pa.table(columns))


def _add_columns(
    columns: dict[str, pa.ChunkedArray],
    table: pa.Table,
    names: list[str],
    conflicts: set[str],
    suffix: str,
) -> None:
    """Add the named columns of table to the columns of the result.

    Columns whose name is in ``conflicts`` get ``suffix`` appended,
    and the suffix keeps being appended until the name is unique in
    the result, so that no column is ever overwritten.
    """
    for name in names:
        new_name = name
        if name in conflicts and suffix:
            new_name = name + suffix
        while new_name in columns:
            if not suffix:
                raise ValueError(f"Column '{name}' would be duplicated in join result")
            new_name += suffix
        columns[new_name] = table.column(name)


def join(
    left: "pa.Table | pa.RecordBatch | QueryPlanNode",
    right: "pa.Table | pa.RecordBatch | QueryPlanNode",
    keys: KeySpec,
    how: JoinType | str = JoinType.INNER,
    suffixes: tuple[str, str] = ("", "_right"),
) -> pa.Table:
    """Join two Datasets and return the result as a new table.

    Convenience wrapper around :class:`JoinNode` for callers
    that are not building a query plan.

    >>> import pyarrow as pa
    >>> x = pa.table({"key": [1, 2, 3], "val_x": ["x1", "x2", "x3"]})
    >>> y = pa.table({"key": [1, 2, 4], "val_y": ["y1", "y2", "y3"]})
    >>> join(x, y, "key", "anti").to_pydict()
    {'key': [3], 'val_x': ['x3']}
    """
    node = JoinNode(
        keys,
        how,
        PyArrowTableDataSource(as_table(left)),
        PyArrowTableDataSource(as_table(right)),
        suffixes=suffixes,
    )
    return collect_table(node)


def cross_join(
    left: "pa.Table | pa.RecordBatch | QueryPlanNode",
    right: "pa.Table | pa.RecordBatch | QueryPlanNode",
) -> pa.Table:
    """Compute the Cartesian product of two Datasets as a new table."""
    node = CrossJoinNode(
        PyArrowTableDataSource(as_table(left)), PyArrowTableDataSource(as_table(right))
    )
    return collect_table(node)
