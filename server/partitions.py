"""In-memory data-parallel substrate.

PartitionedData holds one value per partition and offers the four
operations the ADMM driver needs: map over partitions, reduce across
partitions, count, and broadcast.  Partition tasks run serially or on a
thread pool; results always come back in partition order, so a run is
deterministic whatever the pool size.

Any exception raised by a partition task propagates out of map_partitions
unchanged.  There is no retry at this layer.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import reduce as _fold
from typing import Callable, Generic, Iterator, List, Sequence, TypeVar

import numpy as np

T = TypeVar("T")
R = TypeVar("R")


class PartitionedData(Generic[T]):
    def __init__(self, partitions: Sequence[T], n_workers: int = 1) -> None:
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        self._partitions: List[T] = list(partitions)
        self.n_workers = n_workers

    def __len__(self) -> int:
        return len(self._partitions)

    def __iter__(self) -> Iterator[T]:
        return iter(self._partitions)

    def __getitem__(self, i: int) -> T:
        return self._partitions[i]

    def collect(self) -> List[T]:
        return list(self._partitions)

    def count(self) -> int:
        return len(self._partitions)

    def map_partitions(self, f: Callable[[T], R]) -> "PartitionedData[R]":
        """Apply f to every partition; returns a new collection."""
        if self.n_workers == 1 or len(self._partitions) <= 1:
            out = [f(p) for p in self._partitions]
        else:
            with ThreadPoolExecutor(max_workers=self.n_workers) as pool:
                out = list(pool.map(f, self._partitions))
        return PartitionedData(out, n_workers=self.n_workers)

    def reduce(self, f: Callable[[T, T], T]) -> T:
        """Fold f over the partitions in order.  f must be associative."""
        if not self._partitions:
            raise ValueError("Cannot reduce an empty collection.")
        return _fold(f, self._partitions)

    @staticmethod
    def broadcast(value: np.ndarray) -> np.ndarray:
        """Read-only copy of value, shared as-is by every partition."""
        out = np.array(value, dtype=float)
        out.setflags(write=False)
        return out


def from_arrays(
    features: np.ndarray,
    labels: np.ndarray,
    partition_ids: np.ndarray,
    n_workers: int = 1,
) -> PartitionedData:
    """Group rows by partition id into (features, labels) pairs, sorted by id."""
    parts = []
    for pid in np.unique(partition_ids):
        mask = partition_ids == pid
        parts.append((features[mask], labels[mask]))
    return PartitionedData(parts, n_workers=n_workers)


def split_even(
    features: np.ndarray,
    labels: np.ndarray,
    n_partitions: int,
    n_workers: int = 1,
) -> PartitionedData:
    """Split rows into n_partitions contiguous, near-equal chunks."""
    if n_partitions < 1:
        raise ValueError(f"n_partitions must be >= 1, got {n_partitions}")
    chunks = np.array_split(np.arange(len(labels)), n_partitions)
    return PartitionedData(
        [(features[idx], labels[idx]) for idx in chunks], n_workers=n_workers
    )
