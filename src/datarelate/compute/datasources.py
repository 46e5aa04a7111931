"""Query Plan nodes that provide Datasets

The datasource nodes are the leaves of every plan:
they fetch the rows of a Dataset from somewhere,
convert them into the format accepted by the compute engine
and forward them to the relational nodes that combine them.

Datasets can come from memory (:class:`PyArrowTableDataSource`)
or from local files (:class:`CSVDataSource`, :class:`ParquetDataSource`).
:func:`open_file` picks the right file based source
given the extension of the file.

>>> import pyarrow as pa
>>> source = PyArrowTableDataSource(pa.table({"key": [1, 2], "val_x": ["x1", "x2"]}))
>>> str(source)
"PyArrowTableDataSource(columns=['key', 'val_x'], rows=2)"
>>> source.poll_schema().names
['key', 'val_x']
"""

import logging
import os
from abc import abstractmethod

import pyarrow as pa
import pyarrow.csv
import pyarrow.parquet

from .base import QueryPlanNode

log = logging.getLogger(__name__)


class DataSourceNode(QueryPlanNode):
    """Base class for nodes that load a Dataset."""

    @abstractmethod
    def poll_schema(self) -> pa.Schema:
        """Provide the columns of the Dataset without loading its rows."""
        ...


class CSVDataSource(DataSourceNode):
    """Load a Dataset from a CSV file.

    Empty cells are loaded as nulls, which means they will
    never match any other value when used as join keys.
    """

    def __init__(self, filename: str, block_size: int | None = None) -> None:
        """
        :param filename: The path of the local CSV file.
        :param block_size: Size in bytes of each chunk read from the file,
                           influences how many batches will be produced.
        """
        self.filename = filename
        self.block_size = block_size
        self.convert_options = pa.csv.ConvertOptions(strings_can_be_null=True)

    def __str__(self) -> str:
        return f"CSVDataSource({self.filename}, block_size={self.block_size})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Stream the CSV file one batch at the time."""
        log.debug("Reading CSV file %s", self.filename)
        with pa.csv.open_csv(
            self.filename,
            read_options=pa.csv.ReadOptions(block_size=self.block_size),
            convert_options=self.convert_options,
        ) as reader:
            yield from reader

    def poll_schema(self) -> pa.Schema:
        """Infer the columns of the CSV file from its first block."""
        with pa.csv.open_csv(
            self.filename, convert_options=self.convert_options
        ) as reader:
            return reader.schema


class ParquetDataSource(DataSourceNode):
    """Load a Dataset from a Parquet file."""

    def __init__(self, filename: str, batch_size: int | None = None) -> None:
        """
        :param filename: The path of the local parquet file.
        :param batch_size: Maximum number of rows of each emitted batch.
        """
        self.filename = filename
        self.batch_size = batch_size or 65536

    def __str__(self) -> str:
        return f"ParquetDataSource({self.filename}, batch_size={self.batch_size})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Stream the row groups of the Parquet file."""
        log.debug("Reading Parquet file %s", self.filename)
        with pa.parquet.ParquetFile(self.filename) as reader:
            yield from reader.iter_batches(batch_size=self.batch_size)

    def poll_schema(self) -> pa.Schema:
        """Read the schema from the Parquet file metadata."""
        with pa.parquet.ParquetFile(self.filename) as reader:
            return reader.schema_arrow


class PyArrowTableDataSource(DataSourceNode):
    """Provide an in-memory :class:`pyarrow.Table` or :class:`pyarrow.RecordBatch`.

    The data is referenced, not copied, so the same table
    can be used as the backing Dataset of multiple plans.
    """

    def __init__(self, table: pa.Table | pa.RecordBatch) -> None:
        """
        :param table: The table or recordbatch with the rows of the Dataset.
        """
        self.table = table
        self.is_recordbatch = isinstance(table, pa.RecordBatch)

    def __str__(self) -> str:
        return f"PyArrowTableDataSource(columns={self.table.column_names}, rows={self.table.num_rows})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Emit the rows of the Table for consumption by other nodes."""
        if self.is_recordbatch:
            yield self.table
        else:
            yield from self.table.to_batches()

    def poll_schema(self) -> pa.Schema:
        return self.table.schema


def open_file(filename: str) -> DataSourceNode:
    """Create the data source able to read the given file.

    Files ending with ``.parquet`` or ``.pq`` are read as Parquet,
    anything else is assumed to be a CSV file.
    """
    _, ext = os.path.splitext(filename)
    if ext.lower() in (".parquet", ".pq"):
        return ParquetDataSource(filename)
    return CSVDataSource(filename)
