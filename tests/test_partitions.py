import numpy as np
import pytest

from server.partitions import PartitionedData, from_arrays, split_even


def test_map_reduce_count():
    data = PartitionedData([1, 2, 3, 4])
    assert data.count() == 4
    squared = data.map_partitions(lambda v: v * v)
    assert squared.collect() == [1, 4, 9, 16]
    assert squared.reduce(lambda a, b: a + b) == 30
    assert data.collect() == [1, 2, 3, 4]


def test_thread_pool_keeps_partition_order():
    data = PartitionedData(list(range(20)), n_workers=4)
    out = data.map_partitions(lambda v: v * 10)
    assert out.collect() == [v * 10 for v in range(20)]
    assert out.n_workers == 4


@pytest.mark.parametrize("n_workers", [1, 3])
def test_task_failure_propagates(n_workers):
    def boom(v):
        if v == 2:
            raise RuntimeError("partition lost")
        return v

    data = PartitionedData([0, 1, 2, 3], n_workers=n_workers)
    with pytest.raises(RuntimeError, match="partition lost"):
        data.map_partitions(boom)


def test_reduce_empty_raises():
    with pytest.raises(ValueError):
        PartitionedData([]).reduce(lambda a, b: a + b)


def test_invalid_worker_count():
    with pytest.raises(ValueError):
        PartitionedData([1], n_workers=0)


def test_broadcast_is_read_only_copy():
    v = np.array([1.0, 2.0])
    b = PartitionedData.broadcast(v)
    v[0] = 99.0
    assert b[0] == 1.0
    with pytest.raises(ValueError):
        b[1] = 0.0


def test_from_arrays_groups_by_partition_id():
    x = np.arange(12, dtype=float).reshape(6, 2)
    y = np.array([1, -1, 1, 1, -1, -1])
    pid = np.array([2, 0, 2, 1, 0, 1])
    data = from_arrays(x, y, pid)
    assert data.count() == 3
    x0, y0 = data[0]
    np.testing.assert_array_equal(x0, x[[1, 4]])
    np.testing.assert_array_equal(y0, [-1, -1])
    x2, _ = data[2]
    np.testing.assert_array_equal(x2, x[[0, 2]])


def test_split_even():
    x = np.zeros((10, 3))
    y = np.ones(10)
    data = split_even(x, y, 3)
    assert [len(p[1]) for p in data] == [4, 3, 3]
    with pytest.raises(ValueError):
        split_even(x, y, 0)
