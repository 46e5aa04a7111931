"""The Dataframe object itself."""
from typing import Self

import pyarrow as pa

from ..compute import (
  CrossJoinNode,
  DifferenceNode,
  IntersectNode,
  JoinNode,
  JoinType,
  PyArrowTableDataSource,
  ResampleView,
  Split,
  UnionNode,
  bootstrap_sample,
  bootstrap_samples,
  collect_table,
  cross_validation_splits,
  kfold_splits,
  open_file,
)
from ..compute.base import QueryPlanNode
from ..compute.keys import KeySpec


class Dataframe:
  """Data structure that handles data in rows and columns.

  The Dataframe object allows to represent in-memory data
  and combine it with other Dataframes.

  The datarelate dataframe object is lazy, which means that
  joins and set operations will be applied only when the
  ``.collect()`` method will be invoked and no data is kept
  in memory until that moment (unless it already was).

  >>> x = Dataframe(pa.table({"key": [1, 2, 3], "val_x": ["x1", "x2", "x3"]}))
  >>> y = Dataframe(pa.table({"key": [1, 2, 4], "val_y": ["y1", "y2", "y3"]}))
  >>> x.inner_join(y, "key").to_arrow().to_pydict()
  {'key': [1, 2], 'val_x': ['x1', 'x2'], 'val_y': ['y1', 'y2']}
  """
  def __init__(self, node_or_table: QueryPlanNode|pa.Table|pa.RecordBatch) -> None:
    """
    :param node_or_table: A compute engine node expected to emit
                          the data for the dataframe or a `pyarrow.Table`.
    """
    if isinstance(node_or_table, (pa.Table, pa.RecordBatch)):
      node_or_table = PyArrowTableDataSource(node_or_table)

    if not isinstance(node_or_table, QueryPlanNode):
      raise ValueError("Invalid input, expected a QueryPlanNode or a PyArrow Table")

    self.node = node_or_table

  def __str__(self) -> str:
    return f"Dataframe({self.node})"

  @classmethod
  def open(cls, filename: str) -> Self:
    """Open a CSV or Parquet file and create a Dataframe out of its data.

    :param filename: The path to a local file, parquet files
                     are recognized by their extension.
    """
    return cls(open_file(filename))

  def join(self, other: Self, keys: KeySpec = None, how: JoinType|str = JoinType.INNER,
           suffixes: tuple[str, str] = ("", "_right")) -> Self:
    """Join with another Dataframe and return a new Dataframe.

    :param other: The Dataframe to join with, it will be the right side of the join.
    :param keys: The columns to join on, ``None`` joins on all the common columns.
    :param how: The kind of join, see :class:`datarelate.compute.JoinType`.
    :param suffixes: Appended to the names of conflicting columns.
    """
    return self.__class__(JoinNode(keys, how, self.node, other.node, suffixes=suffixes))

  def inner_join(self, other: Self, keys: KeySpec = None) -> Self:
    """Keep only the rows that have a match in ``other``, adding its columns."""
    return self.join(other, keys, JoinType.INNER)

  def left_join(self, other: Self, keys: KeySpec = None) -> Self:
    """Keep all the rows, adding the columns of the matching rows of ``other``."""
    return self.join(other, keys, JoinType.LEFT)

  def right_join(self, other: Self, keys: KeySpec = None) -> Self:
    """Keep all the rows of ``other``, adding the columns of the matching rows."""
    return self.join(other, keys, JoinType.RIGHT)

  def full_join(self, other: Self, keys: KeySpec = None) -> Self:
    """Keep all the rows of both Dataframes, combining those that match."""
    return self.join(other, keys, JoinType.FULL)

  def semi_join(self, other: Self, keys: KeySpec = None) -> Self:
    """Keep the rows that have at least one match in ``other``."""
    return self.join(other, keys, JoinType.SEMI)

  def anti_join(self, other: Self, keys: KeySpec = None) -> Self:
    """Keep the rows that have no match in ``other``."""
    return self.join(other, keys, JoinType.ANTI)

  def cross_join(self, other: Self) -> Self:
    """Pair every row with every row of ``other``."""
    return self.__class__(CrossJoinNode(self.node, other.node))

  def intersect(self, other: Self) -> Self:
    """Distinct rows that exist in both Dataframes."""
    return self.__class__(IntersectNode(self.node, other.node))

  def union(self, other: Self) -> Self:
    """Distinct rows that exist in any of the two Dataframes."""
    return self.__class__(UnionNode(self.node, other.node))

  def setdiff(self, other: Self) -> Self:
    """Distinct rows that exist in this Dataframe but not in ``other``."""
    return self.__class__(DifferenceNode(self.node, other.node))

  def bootstrap(self, seed: int|None = None) -> ResampleView:
    """Draw a bootstrap resample of the data.

    The data is collected in memory once, the returned
    view only references it.
    """
    return bootstrap_sample(self.to_arrow(), seed=seed)

  def bootstraps(self, n: int, seed: int|None = None) -> list[ResampleView]:
    """Draw ``n`` bootstrap resamples of the data."""
    return bootstrap_samples(self.to_arrow(), n, seed=seed)

  def crossv_mc(self, k: int, test: float = 0.2, seed: int|None = None) -> list[Split]:
    """Generate ``k`` Monte Carlo cross validation splits.

    :param k: How many train/test splits to generate.
    :param test: The fraction of rows to hold out for testing in each split.
    """
    return cross_validation_splits(self.to_arrow(), k, test, seed=seed)

  def crossv_kfold(self, k: int = 5, seed: int|None = None) -> list[Split]:
    """Generate ``k`` cross validation splits where each row is tested once."""
    return kfold_splits(self.to_arrow(), k, seed=seed)

  def collect(self) -> Self:
    """Collect all data of the dataframe in memory.

    Returns a new Dataframe that has all data from the
    previous dataframe eagerly loaded in memory.
    """
    return self.__class__(self.to_arrow())

  def to_arrow(self) -> pa.Table:
    """Collect all the data and return a pyarrow.Table"""
    return collect_table(self.node)
