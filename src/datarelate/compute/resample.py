"""Resampled views over a Dataset.

To assess how well a statistical model will perform on data
it has never seen, or how much its estimates would vary
on a different sample, the data is resampled many times and
the model is fitted on each resample.

Copying the data for each resample would be expensive,
so a resample is represented by a :class:`ResampleView`:
the list of row indices that constitute the resample plus
a reference to the table that contains the actual rows.
The rows are only copied when the view is materialized.

>>> import pyarrow as pa
>>> data = pa.table({"x": [10, 20, 30, 40]})
>>> view = ResampleView(data, [3, 0, 0])
>>> view.to_pylist()
[3, 0, 0]
>>> view.materialize().to_pydict()
{'x': [40, 10, 10]}

Views are data sources, so they can be used in any query plan
like :class:`datarelate.compute.JoinNode`.

Reproducibility
===============

All the sampling functions accept a ``seed`` and draw their
random numbers from a :func:`numpy.random.default_rng` generator
(PCG64) created with that seed. The numbers are always consumed
in the same order, so the same seed on the same Dataset always
produces the same indices:

* :func:`bootstrap_sample` draws ``N`` integers in ``[0, N)``
  with a single ``integers(0, N, size=N)`` call.
* :func:`bootstrap_samples` draws each resample in sequence
  from the same generator, as :func:`bootstrap_sample` does.
* :func:`cross_validation_splits` calls ``permutation(N)``
  once per split, in sequence, and the first ``round(N * holdout_fraction)``
  values of each permutation are the test rows.
* :func:`kfold_splits` and :func:`partition` call ``permutation(N)`` once.

Indices of cross validation and partitions are sorted,
so that the rows of each view preserve the order they had in the Dataset.
"""

import logging
from typing import NamedTuple, Sequence

import numpy as np
import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, as_table, table_to_recordbatch
from .datasources import DataSourceNode

log = logging.getLogger(__name__)

__all__ = (
    "InvalidInputError",
    "ResampleView",
    "Split",
    "bootstrap_sample",
    "bootstrap_samples",
    "cross_validation_splits",
    "kfold_splits",
    "partition",
)


class InvalidInputError(ValueError):
    """Raised when resampling parameters are not valid for the Dataset."""

    pass


class ResampleView(DataSourceNode):
    """A resample of a Dataset, defined by the indices of its rows.

    The view doesn't own any row, it only references the backing table,
    which is immutable, so the view stays valid as long as it exists.
    """

    def __init__(
        self,
        table: "pa.Table | pa.RecordBatch | QueryPlanNode",
        indices: "Sequence[int] | np.ndarray | pa.Array",
    ) -> None:
        """
        :param table: The backing Dataset the indices refer to.
        :param indices: The rows of the backing Dataset that form the resample,
                        in order. The same row can appear multiple times.
        """
        self.table = as_table(table)
        if isinstance(indices, pa.Array):
            self.indices = indices.cast(pa.int64())
        else:
            self.indices = pa.array(indices, type=pa.int64())
        if self.indices.null_count:
            raise InvalidInputError("Resample indices can't be null")
        bounds = pc.min_max(self.indices)
        if len(self.indices) and not (
            0 <= bounds["min"].as_py() and bounds["max"].as_py() < self.table.num_rows
        ):
            raise InvalidInputError(
                f"Resample indices must be in [0, {self.table.num_rows})"
            )

    def __str__(self) -> str:
        return f"ResampleView(rows={len(self)}, of={self.table.num_rows})"

    __repr__ = __str__

    def __len__(self) -> int:
        return len(self.indices)

    def to_pylist(self) -> list[int]:
        """The indices of the resampled rows as a Python list."""
        return self.indices.to_pylist()

    def to_numpy(self) -> np.ndarray:
        """The indices of the resampled rows as a numpy array."""
        return self.indices.to_numpy()

    def materialize(self) -> pa.Table:
        """Copy the resampled rows into a new standalone table."""
        return self.table.take(self.indices)

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Emit the resampled rows for consumption by other nodes."""
        yield table_to_recordbatch(self.materialize())

    def poll_schema(self) -> pa.Schema:
        return self.table.schema


class Split(NamedTuple):
    """A train/test split of a Dataset for cross validation."""

    train: ResampleView
    test: ResampleView


def _dataset_size(table: pa.Table) -> int:
    if table.num_rows == 0:
        raise InvalidInputError("Can't resample an empty Dataset")
    return table.num_rows


def bootstrap_sample(
    dataset: "pa.Table | pa.RecordBatch | QueryPlanNode", seed: int | None = None
) -> ResampleView:
    """Draw a bootstrap resample of the Dataset.

    The resample has the same number of rows of the Dataset,
    each picked uniformly at random with replacement, so some
    rows will appear multiple times and some won't appear at all.

    >>> import pyarrow as pa
    >>> data = pa.table({"x": [1, 2, 3, 4, 5]})
    >>> view = bootstrap_sample(data, seed=42)
    >>> len(view)
    5
    >>> view.to_pylist() == bootstrap_sample(data, seed=42).to_pylist()
    True
    """
    table = as_table(dataset)
    size = _dataset_size(table)
    rng = np.random.default_rng(seed)
    return _draw_bootstrap(table, size, rng)


def bootstrap_samples(
    dataset: "pa.Table | pa.RecordBatch | QueryPlanNode",
    n: int,
    seed: int | None = None,
) -> list[ResampleView]:
    """Draw ``n`` independent bootstrap resamples of the Dataset.

    All the resamples share the same backing table.
    """
    if n < 1:
        raise InvalidInputError(f"The number of resamples must be at least 1, got {n}")
    table = as_table(dataset)
    size = _dataset_size(table)
    rng = np.random.default_rng(seed)
    log.debug("Drawing %d bootstrap resamples of %d rows", n, size)
    return [_draw_bootstrap(table, size, rng) for _ in range(n)]


def _draw_bootstrap(
    table: pa.Table, size: int, rng: np.random.Generator
) -> ResampleView:
    return ResampleView(table, rng.integers(0, size, size=size, dtype=np.int64))


def cross_validation_splits(
    dataset: "pa.Table | pa.RecordBatch | QueryPlanNode",
    k: int,
    holdout_fraction: float,
    seed: int | None = None,
) -> list[Split]:
    """Generate ``k`` Monte Carlo cross validation splits.

    For each split, ``round(N * holdout_fraction)`` rows are
    picked at random without replacement as the test set,
    and all the remaining rows form the train set.

    The splits are independent from each other, so the same row
    might be part of the test set of multiple splits or of none.

    >>> import pyarrow as pa
    >>> data = pa.table({"x": list(range(10))})
    >>> splits = cross_validation_splits(data, k=3, holdout_fraction=0.2, seed=1)
    >>> [(len(s.train), len(s.test)) for s in splits]
    [(8, 2), (8, 2), (8, 2)]
    """
    if k < 1:
        raise InvalidInputError(f"The number of splits must be at least 1, got {k}")
    if not 0 < holdout_fraction < 1:
        raise InvalidInputError(
            f"The holdout fraction must be between 0 and 1, got {holdout_fraction}"
        )
    table = as_table(dataset)
    size = _dataset_size(table)
    n_test = round(size * holdout_fraction)
    log.debug("Drawing %d splits of %d rows with %d test rows", k, size, n_test)

    rng = np.random.default_rng(seed)
    splits = []
    for _ in range(k):
        permutation = rng.permutation(size)
        test = np.sort(permutation[:n_test])
        train = np.sort(permutation[n_test:])
        splits.append(Split(ResampleView(table, train), ResampleView(table, test)))
    return splits


def kfold_splits(
    dataset: "pa.Table | pa.RecordBatch | QueryPlanNode",
    k: int,
    seed: int | None = None,
) -> list[Split]:
    """Generate ``k`` cross validation splits where each row is tested exactly once.

    The rows are shuffled and dealt into ``k`` folds of nearly equal size,
    the ``i``-th split uses the ``i``-th fold as the test set and all
    the other folds as the train set.

    >>> import pyarrow as pa
    >>> data = pa.table({"x": list(range(10))})
    >>> splits = kfold_splits(data, k=3, seed=1)
    >>> [len(s.test) for s in splits]
    [4, 3, 3]
    >>> sorted(i for s in splits for i in s.test.to_pylist())
    [0, 1, 2, 3, 4, 5, 6, 7, 8, 9]
    """
    table = as_table(dataset)
    size = _dataset_size(table)
    if not 2 <= k <= size:
        raise InvalidInputError(
            f"The number of folds must be between 2 and {size}, got {k}"
        )

    rng = np.random.default_rng(seed)
    folds = np.array_split(rng.permutation(size), k)
    splits = []
    for test_fold in range(k):
        train = np.concatenate([f for i, f in enumerate(folds) if i != test_fold])
        splits.append(
            Split(
                ResampleView(table, np.sort(train)),
                ResampleView(table, np.sort(folds[test_fold])),
            )
        )
    return splits


def partition(
    dataset: "pa.Table | pa.RecordBatch | QueryPlanNode",
    fractions: dict[str, float],
    seed: int | None = None,
) -> dict[str, ResampleView]:
    """Split the Dataset in disjoint named partitions.

    Typically used to create train, validation and test sets.
    Each partition gets ``round(N * fraction)`` rows, except
    the last one that gets all the remaining rows.

    >>> import pyarrow as pa
    >>> data = pa.table({"x": list(range(10))})
    >>> parts = partition(data, {"train": 0.6, "valid": 0.2, "test": 0.2}, seed=1)
    >>> {name: len(view) for name, view in parts.items()}
    {'train': 6, 'valid': 2, 'test': 2}
    """
    if not fractions:
        raise InvalidInputError("At least one partition is required")
    if any(f <= 0 for f in fractions.values()):
        raise InvalidInputError(f"Partition fractions must be positive, got {fractions}")
    if not np.isclose(sum(fractions.values()), 1.0):
        raise InvalidInputError(f"Partition fractions must sum to 1, got {fractions}")
    table = as_table(dataset)
    size = _dataset_size(table)

    rng = np.random.default_rng(seed)
    permutation = rng.permutation(size)
    names = list(fractions)
    partitions = {}
    start = 0
    for name in names[:-1]:
        end = min(size, start + round(size * fractions[name]))
        partitions[name] = ResampleView(table, np.sort(permutation[start:end]))
        start = end
    partitions[names[-1]] = ResampleView(table, np.sort(permutation[start:]))
    return partitions
