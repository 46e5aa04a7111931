"""Key specifications and row equality.

To combine two Datasets the compute engine needs to know
when a row of the first Dataset is "the same" as a row
of the second one. Two different notions of sameness exist:

* **Join keys**: two rows match when all the key columns
  compare equal. A missing value (null) never matches anything,
  not even another null. This mirrors SQL, where ``NULL = NULL``
  is not true.

* **Row identity**: used by set operations, two rows are the
  same row when every column compares equal, and two nulls
  in the same column are considered equal. Otherwise a
  row containing a null could never be deduplicated.

Both are implemented by converting each row to a Python tuple
that can be used as a key of a dictionary, so that matching
rows can be found in constant time (a hash join).

Key specifications
==================

Joins accept their keys in multiple forms, which are
all resolved to a list of ``(left_column, right_column)`` pairs:

>>> resolve_keys("id", ["id", "name"], ["id", "age"])
[('id', 'id')]
>>> resolve_keys(["id", ("city", "town")], ["id", "city"], ["id", "town"])
[('id', 'id'), ('city', 'town')]
>>> resolve_keys({"id": "user_id"}, ["id"], ["user_id"])
[('id', 'user_id')]

When no keys are provided, a natural join is performed and
the keys are all the columns that the two Datasets have in common:

>>> resolve_keys(None, ["year", "month", "dep"], ["year", "month", "arr"])
[('year', 'year'), ('month', 'month')]
"""

import logging
from collections.abc import Mapping
from typing import Any, Iterator, Sequence

import pyarrow as pa

log = logging.getLogger(__name__)

KeySpec = str | Sequence[str | tuple[str, str]] | Mapping[str, str] | None


class EmptyKeyError(ValueError):
    """Raised when a join has no key columns to match rows on."""

    pass


class IncompatibleKeysError(ValueError):
    """Raised when the values of a key pair can't be stored in a single column."""

    pass


def resolve_keys(
    keys: KeySpec, left_columns: Sequence[str], right_columns: Sequence[str]
) -> list[tuple[str, str]]:
    """Resolve a key specification to ``(left_column, right_column)`` pairs.

    :param keys: The key specification, see module documentation.
                 ``None`` means a natural join on the common columns.
    :param left_columns: The column names of the left Dataset.
    :param right_columns: The column names of the right Dataset.

    Raises :class:`KeyError` when a key column doesn't exist in its
    Dataset and :class:`EmptyKeyError` when no key column could be resolved.
    A join without keys would otherwise match every row with
    every other row, which is never what was intended.
    """
    if keys is None:
        right_set = set(right_columns)
        pairs = [(name, name) for name in left_columns if name in right_set]
        if not pairs:
            raise EmptyKeyError(
                f"Natural join found no common columns between {list(left_columns)} and {list(right_columns)}"
            )
        log.debug("Natural join resolved keys %s", pairs)
        return pairs

    if isinstance(keys, str):
        pairs = [(keys, keys)]
    elif isinstance(keys, Mapping):
        pairs = list(keys.items())
    else:
        pairs = []
        for key in keys:
            if isinstance(key, str):
                pairs.append((key, key))
            else:
                left_key, right_key = key
                pairs.append((left_key, right_key))

    if not pairs:
        raise EmptyKeyError("At least one key column is required to join")

    for left_key, right_key in pairs:
        if left_key not in left_columns:
            raise KeyError(f"Key column '{left_key}' not found in left dataset")
        if right_key not in right_columns:
            raise KeyError(f"Key column '{right_key}' not found in right dataset")
    return pairs


def _hashable(value: Any) -> Any:
    # Nested types (lists, structs, maps) are converted to tuples
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, dict):
        return tuple((k, _hashable(v)) for k, v in value.items())
    return value


def _rows(table: pa.Table, columns: Sequence[str]) -> Iterator[tuple]:
    pycolumns = [table.column(name).to_pylist() for name in columns]
    return zip(*pycolumns)


def join_keys(table: pa.Table, columns: Sequence[str]) -> list[tuple | None]:
    """Compute the join key of each row of the table.

    Rows where any of the key columns is null get ``None``
    as their key, meaning that they can't match any other row.

    >>> join_keys(pa.table({"a": [1, None, 3], "b": ["x", "y", None]}), ["a", "b"])
    [(1, 'x'), None, None]
    """
    return [
        None if any(v is None for v in row) else tuple(_hashable(v) for v in row)
        for row in _rows(table, columns)
    ]


def row_identities(table: pa.Table, columns: Sequence[str]) -> list[tuple]:
    """Compute a value that identifies each row of the table as a whole.

    Differently from :func:`join_keys` nulls are preserved as ``None``,
    so two rows with nulls in the same positions can be equal.

    >>> row_identities(pa.table({"a": [1, None], "b": [None, None]}), ["a", "b"])
    [(1, None), (None, None)]
    """
    return [tuple(_hashable(v) for v in row) for row in _rows(table, columns)]


def common_key_type(name: str, left_type: pa.DataType, right_type: pa.DataType) -> pa.DataType:
    """Find the type able to hold the values of both columns of a key pair.

    Outer joins emit a single key column filled from either side,
    so the two key columns must be promoted to a common type.
    Numeric types are widened, integers are promoted to floats
    and a column of only nulls takes the type of the other one:

    >>> common_key_type("id", pa.int32(), pa.int64())
    DataType(int64)
    >>> common_key_type("id", pa.int64(), pa.float64())
    DataType(double)

    Raises :class:`IncompatibleKeysError` when no such type exists,
    like for a string column and an integer column.
    """
    if left_type == right_type:
        return left_type
    try:
        unified = pa.unify_schemas(
            [pa.schema([(name, left_type)]), pa.schema([(name, right_type)])],
            promote_options="permissive",
        )
    except (pa.ArrowTypeError, pa.ArrowInvalid) as e:
        raise IncompatibleKeysError(
            f"Key column '{name}' has type {left_type} on the left and {right_type} on the right"
        ) from e
    return unified.field(name).type


def build_index(keys: list[tuple | None]) -> dict[tuple, list[int]]:
    """Build a hash table from each key to the rows that have it.

    Rows are listed in the order they appear in the Dataset,
    rows with a ``None`` key are not indexed at all.

    >>> build_index([(1,), (2,), None, (1,)])
    {(1,): [0, 3], (2,): [1]}
    """
    index: dict[tuple, list[int]] = {}
    for row_idx, key in enumerate(keys):
        if key is not None:
            index.setdefault(key, []).append(row_idx)
    return index
