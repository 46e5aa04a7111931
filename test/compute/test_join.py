import pyarrow as pa
import pytest

from datarelate.compute import PyArrowTableDataSource
from datarelate.compute.join import (
    CrossJoinNode,
    JoinNode,
    JoinType,
    cross_join,
    join,
)
from datarelate.compute.keys import EmptyKeyError, IncompatibleKeysError

# Sample data for testing
LEFT_TEST_DATA = pa.record_batch(
    {
        "id": pa.array([1, 2, 3, 4]),
        "name": pa.array(["Alice", "Bob", "Charlie", "David"]),
    }
)

RIGHT_TEST_DATA = pa.record_batch(
    {
        "id": pa.array([3, 4, 5, 6]),
        "age": pa.array([25, 30, 35, 40]),
    }
)


@pytest.fixture
def left_data_source():
    return PyArrowTableDataSource(LEFT_TEST_DATA)


@pytest.fixture
def right_data_source():
    return PyArrowTableDataSource(RIGHT_TEST_DATA)


@pytest.fixture
def x():
    return pa.table(
        {"key": [1, 2, 2, 1], "val_x": ["x1", "x2", "x3", "x4"]}
    )


@pytest.fixture
def y():
    return pa.table({"key": [1, 2], "val_y": ["y1", "y2"]})


@pytest.mark.parametrize(
    "how,expected_output",
    [
        (
            "inner",
            {"id": [3, 4], "name": ["Charlie", "David"], "age": [25, 30]},
        ),
        (
            "left",
            {
                "id": [1, 2, 3, 4],
                "name": ["Alice", "Bob", "Charlie", "David"],
                "age": [None, None, 25, 30],
            },
        ),
        (
            "right",
            {
                "id": [3, 4, 5, 6],
                "name": ["Charlie", "David", None, None],
                "age": [25, 30, 35, 40],
            },
        ),
        (
            "full",
            {
                "id": [1, 2, 3, 4, 5, 6],
                "name": ["Alice", "Bob", "Charlie", "David", None, None],
                "age": [None, None, 25, 30, 35, 40],
            },
        ),
        ("semi", {"id": [3, 4], "name": ["Charlie", "David"]}),
        ("anti", {"id": [1, 2], "name": ["Alice", "Bob"]}),
    ],
)
def test_join_node(left_data_source, right_data_source, how, expected_output):
    join_node = JoinNode("id", how, left_data_source, right_data_source)
    result_batches = list(join_node.batches())

    assert len(result_batches) == 1
    result_batch = result_batches[0]

    assert result_batch.to_pydict() == expected_output


def test_join_node_accepts_join_type(left_data_source, right_data_source):
    join_node = JoinNode("id", JoinType.SEMI, left_data_source, right_data_source)
    assert join_node.how is JoinType.SEMI


def test_join_node_invalid_how(left_data_source, right_data_source):
    with pytest.raises(ValueError):
        JoinNode("id", "outer", left_data_source, right_data_source)


def test_join_node_conflicting_columns():
    left_data_source = PyArrowTableDataSource(
        pa.record_batch(
            {
                "id": pa.array([1, 2, 3, 4]),
                "name": pa.array(["Alice", "Bob", "Charlie", "David"]),
                "conflict": pa.array(["A", "B", "C", "D"]),
            }
        )
    )
    right_data_source = PyArrowTableDataSource(
        pa.record_batch(
            {
                "id": pa.array([3, 4, 5, 6]),
                "age": pa.array([25, 30, 35, 40]),
                "conflict": pa.array(["X", "Y", "Z", "W"]),
            }
        )
    )

    join_node = JoinNode("id", "inner", left_data_source, right_data_source)
    result_batch = next(join_node.batches())

    assert result_batch.schema.names == [
        "id",
        "name",
        "conflict",
        "age",
        "conflict_right",
    ]
    assert result_batch.column("conflict").to_pylist() == ["C", "D"]
    assert result_batch.column("conflict_right").to_pylist() == ["X", "Y"]


def test_join_custom_suffixes():
    year_left = pa.table({"tailnum": ["N1", "N2"], "year": [2013, 2013]})
    year_right = pa.table({"tailnum": ["N1", "N2"], "year": [2004, 1998]})

    result = join(year_left, year_right, "tailnum", "left", suffixes=(".x", ".y"))
    assert result.column_names == ["tailnum", "year.x", "year.y"]
    assert result.column("year.y").to_pylist() == [2004, 1998]


def test_join_suffix_never_overwrites_columns():
    left = pa.table({"id": [1], "v": ["a"], "v_right": ["b"]})
    right = pa.table({"id": [1], "v": ["c"]})

    result = join(left, right, "id")
    assert result.column_names == ["id", "v", "v_right", "v_right_right"]
    assert result.column("v_right_right").to_pylist() == ["c"]


def test_join_node_with_null_values():
    left_data_source = PyArrowTableDataSource(
        pa.record_batch(
            {
                "id": pa.array([1, 2, None, 4]),
                "name": pa.array(["Alice", "Bob", "Charlie", "David"]),
            }
        )
    )
    right_data_source = PyArrowTableDataSource(
        pa.record_batch(
            {
                "id": pa.array([3, 4, None, 6]),
                "age": pa.array([25, 30, 35, 40]),
            }
        )
    )

    join_node = JoinNode("id", "inner", left_data_source, right_data_source)
    result_batches = list(join_node.batches())

    assert len(result_batches) == 1
    result_batch = result_batches[0]

    expected_output = pa.record_batch(
        {
            "id": pa.array([4]),
            "name": pa.array(["David"]),
            "age": pa.array([30]),
        }
    )

    assert result_batch.equals(expected_output)


def test_nulls_never_match_in_filtering_joins():
    left = pa.table({"id": [None, 1], "name": ["Nobody", "Alice"]})
    right = pa.table({"id": [None, 1]})

    assert join(left, right, "id", "semi").column("name").to_pylist() == ["Alice"]
    assert join(left, right, "id", "anti").column("name").to_pylist() == ["Nobody"]


def test_join_node_with_nonexistent_keys():
    left_data_source = PyArrowTableDataSource(
        pa.record_batch(
            {
                "id": pa.array([1, 2, 3, 4]),
                "name": pa.array(["Alice", "Bob", "Charlie", "David"]),
            }
        )
    )
    right_data_source = PyArrowTableDataSource(
        pa.record_batch(
            {
                "id": pa.array([5, 6, 7, 8]),
                "age": pa.array([25, 30, 35, 40]),
            }
        )
    )

    join_node = JoinNode("id", "inner", left_data_source, right_data_source)
    result_batches = list(join_node.batches())

    assert len(result_batches) == 1
    result_batch = result_batches[0]
    assert result_batch.num_rows == 0
    assert result_batch.schema.names == ["id", "name", "age"]


def test_join_node_missing_key_column(left_data_source, right_data_source):
    join_node = JoinNode("name", "inner", left_data_source, right_data_source)
    with pytest.raises(KeyError):
        list(join_node.batches())


def test_natural_join_without_common_columns():
    left = pa.table({"a": [1, 2]})
    right = pa.table({"b": [1, 2]})

    with pytest.raises(EmptyKeyError):
        join(left, right, None)


def test_natural_join(left_data_source, right_data_source):
    join_node = JoinNode(None, "inner", left_data_source, right_data_source)
    assert next(join_node.batches()).column("id").to_pylist() == [3, 4]


def test_join_node_str(left_data_source, right_data_source):
    join_node = JoinNode("id", "left", left_data_source, right_data_source)
    assert (
        str(join_node)
        == "JoinNode(keys=id, how=left, left=PyArrowTableDataSource(columns=['id', 'name'], rows=4), right=PyArrowTableDataSource(columns=['id', 'age'], rows=4))"
    )


def test_left_join_duplicated_left_keys(x, y):
    result = join(x, y, "key", "left")

    assert result.num_rows == 4
    assert result.to_pydict() == {
        "key": [1, 2, 2, 1],
        "val_x": ["x1", "x2", "x3", "x4"],
        "val_y": ["y1", "y2", "y2", "y1"],
    }


def test_left_join_duplicated_keys_on_both_sides():
    x = pa.table({"key": [1, 2, 2, 3], "val_x": ["x1", "x2", "x3", "x4"]})
    y = pa.table({"key": [1, 2, 2, 3], "val_y": ["y1", "y2", "y3", "y4"]})

    result = join(x, y, "key", "left")

    assert result.num_rows == 6
    assert result.to_pydict() == {
        "key": [1, 2, 2, 2, 2, 3],
        "val_x": ["x1", "x2", "x2", "x3", "x3", "x4"],
        "val_y": ["y1", "y2", "y3", "y2", "y3", "y4"],
    }


def test_right_join_follows_left_order():
    x = pa.table({"key": [1, 2, 1], "val_x": ["x1", "x2", "x3"]})
    y = pa.table({"key": [2, 1, 9, 1], "val_y": ["y2", "y1", "y9", "y1b"]})

    result = join(x, y, "key", "right")

    assert result.to_pydict() == {
        "key": [1, 1, 2, 1, 1, 9],
        "val_x": ["x1", "x1", "x2", "x3", "x3", None],
        "val_y": ["y1", "y1b", "y2", "y1", "y1b", "y9"],
    }


def test_right_join_unmatched_right_rows_come_last():
    x = pa.table({"key": [2, 1], "val_x": ["x2", "x1"]})
    y = pa.table({"key": [3, 1, 2], "val_y": ["y3", "y1", "y2"]})

    result = join(x, y, "key", "right")

    assert result.to_pydict() == {
        "key": [2, 1, 3],
        "val_x": ["x2", "x1", None],
        "val_y": ["y2", "y1", "y3"],
    }


def test_join_multiple_keys_with_different_names():
    flights = pa.table(
        {
            "origin": ["EWR", "LGA", "JFK", "EWR"],
            "hour": [5, 5, 6, 6],
            "carrier": ["UA", "AA", "B6", "UA"],
        }
    )
    weather = pa.table(
        {
            "airport": ["EWR", "EWR", "LGA"],
            "hour": [5, 6, 5],
            "temp": [39.0, 39.9, 41.0],
        }
    )

    result = join(flights, weather, [("origin", "airport"), "hour"], "left")

    assert result.column_names == ["origin", "hour", "carrier", "temp"]
    assert result.column("temp").to_pylist() == [39.0, 41.0, None, 39.9]


def test_join_keys_mapping():
    planes = pa.table({"tailnum": ["N1", "N2"], "seats": [100, 200]})
    flights = pa.table({"plane": ["N2", "N1", "N3"]})

    result = join(flights, planes, {"plane": "tailnum"}, "inner")
    assert result.to_pydict() == {"plane": ["N2", "N1"], "seats": [200, 100]}


def test_semi_join_emits_left_rows_once():
    x = pa.table({"key": [1, 2, 3], "val_x": ["x1", "x2", "x3"]})
    y = pa.table({"key": [1, 1, 1, 3, 3]})

    result = join(x, y, "key", "semi")
    assert result.to_pydict() == {"key": [1, 3], "val_x": ["x1", "x3"]}


def test_semi_and_anti_partition_left(x):
    y = pa.table({"key": [2, 2, 5]})

    semi = join(x, y, "key", "semi")
    anti = join(x, y, "key", "anti")

    assert semi.num_rows + anti.num_rows == x.num_rows
    assert sorted(semi.column("val_x").to_pylist() + anti.column("val_x").to_pylist()) == sorted(
        x.column("val_x").to_pylist()
    )
    assert set(semi.column("val_x").to_pylist()).isdisjoint(
        anti.column("val_x").to_pylist()
    )


def test_full_join_row_count(x):
    y = pa.table({"key": [1, 7, 8], "val_y": ["y1", "y7", "y8"]})

    left = join(x, y, "key", "left")
    full = join(x, y, "key", "full")
    unmatched_right = join(y, x, "key", "anti")

    assert full.num_rows == left.num_rows + unmatched_right.num_rows
    assert full.column("key").to_pylist() == [1, 2, 2, 1, 7, 8]


def test_left_join_never_loses_rows(x):
    y = pa.table({"key": [1, 1, 3], "val_y": ["y1", "y1b", "y3"]})

    result = join(x, y, "key", "left")
    assert result.num_rows >= x.num_rows
    assert result.num_rows == 6


def test_join_accepts_recordbatches():
    result = join(LEFT_TEST_DATA, RIGHT_TEST_DATA, "id")
    assert result.column("name").to_pylist() == ["Charlie", "David"]


def test_join_does_not_modify_inputs(x, y):
    original_x = x.to_pydict()
    original_y = y.to_pydict()
    join(x, y, "key", "full")
    assert x.to_pydict() == original_x
    assert y.to_pydict() == original_y


def test_cross_join_node():
    left = PyArrowTableDataSource(pa.table({"id": [1, 2]}))
    right = PyArrowTableDataSource(pa.table({"id": [10, 20, 30]}))

    result = next(CrossJoinNode(left, right).batches())
    assert result.to_pydict() == {
        "id": [1, 1, 1, 2, 2, 2],
        "id_right": [10, 20, 30, 10, 20, 30],
    }


def test_cross_join_empty_side():
    left = pa.table({"a": [1, 2]})
    right = pa.table({"b": pa.array([], type=pa.int64())})

    result = cross_join(left, right)
    assert result.num_rows == 0
    assert result.column_names == ["a", "b"]


@pytest.mark.parametrize(
    "left_type,right_type,expected_type",
    [
        (pa.int64(), pa.int64(), pa.int64()),
        (pa.int32(), pa.int64(), pa.int64()),
        (pa.int64(), pa.float64(), pa.float64()),
    ],
)
@pytest.mark.parametrize("how", ["right", "full"])
def test_outer_join_promotes_key_types(how, left_type, right_type, expected_type):
    left = pa.table({"k": pa.array([1, 2], type=left_type), "a": ["a1", "a2"]})
    right = pa.table({"k": pa.array([1, None], type=right_type), "b": ["b1", "b2"]})

    result = join(left, right, "k", how)

    assert result.schema.field("k").type == expected_type
    assert result.column("b").to_pylist()[0] == "b1"


def test_full_join_with_right_keys_all_missing():
    left = pa.table({"k": [1, 2]})
    right = pa.table({"k": pa.array([None], type=pa.null()), "b": ["b1"]})

    result = join(left, right, "k", "full")

    assert result.schema.field("k").type == pa.int64()
    assert result.to_pydict() == {"k": [1, 2, None], "b": [None, None, "b1"]}


def test_full_join_keeps_right_key_values_of_other_type():
    left = pa.table({"k": [1, 2], "a": ["a1", "a2"]})
    right = pa.table({"k": [1.0, 2.5], "b": ["b1", "b2"]})

    result = join(left, right, "k", "full")

    assert result.to_pydict() == {
        "k": [1.0, 2.0, 2.5],
        "a": ["a1", "a2", None],
        "b": ["b1", None, "b2"],
    }


@pytest.mark.parametrize("how", ["inner", "left", "semi", "anti"])
def test_keys_of_different_types_compare_by_value(how):
    left = pa.table({"k": [1, 2], "a": ["a1", "a2"]})
    right = pa.table({"k": ["1", "2"], "b": ["b1", "b2"]})

    result = join(left, right, "k", how)

    expected_rows = {"inner": 0, "left": 2, "semi": 0, "anti": 2}[how]
    assert result.num_rows == expected_rows
    assert result.schema.field("k").type == pa.int64()


@pytest.mark.parametrize("how", ["right", "full"])
def test_outer_join_keys_without_common_type(how):
    left = pa.table({"k": [1, 2], "a": ["a1", "a2"]})
    right = pa.table({"k": ["1", "2"], "b": ["b1", "b2"]})

    with pytest.raises(IncompatibleKeysError):
        join(left, right, "k", how)


@pytest.mark.parametrize(
    "a,b",
    [
        (
            pa.table({"key": [1, 2, 2, 1], "val_x": ["x1", "x2", "x3", "x4"]}),
            pa.table({"key": [1, 2], "val_y": ["y1", "y2"]}),
        ),
        (
            pa.table({"key": [1, 2, 2, 3], "val_x": ["x1", "x2", "x3", "x4"]}),
            pa.table({"key": [1, 2, 2, 3], "val_y": ["y1", "y2", "y3", "y4"]}),
        ),
        (
            pa.table({"key": [1, 1, None, 5], "val_x": ["x1", "x2", "x3", "x4"]}),
            pa.table({"key": [1, 1, 1, None, 7], "val_y": ["y1", "y2", "y3", "y4", "y5"]}),
        ),
        (
            pa.table({"key": [4, 5], "val_x": ["x1", "x2"]}),
            pa.table({"key": [1, 2], "val_y": ["y1", "y2"]}),
        ),
    ],
)
def test_inner_join_size_is_bounded_by_semi_join(a, b):
    keys = [k for k in b.column("key").to_pylist() if k is not None]
    max_duplication = max((keys.count(k) for k in keys), default=0)

    inner = join(a, b, "key", "inner")
    semi = join(a, b, "key", "semi")

    assert inner.num_rows <= semi.num_rows * max_duplication
    assert semi.num_rows <= a.num_rows
