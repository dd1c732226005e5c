"""Consensus (z-update) step of ADMM.

The x and u vectors of every partition are averaged with a pure reduction
(elementwise sum, then divide by the partition count), passed through the
soft-threshold operator, and the result is broadcast to every partition as
the new z.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Union

import numpy as np

from server.partitions import PartitionedData

# Keeps the shrinkage threshold finite when rho * n_partitions is zero.
SHRINKAGE_EPSILON = 1e-5


def average(vectors: PartitionedData) -> np.ndarray:
    """Elementwise mean of one vector per partition."""
    total = vectors.reduce(lambda a, b: a + b)
    return total / vectors.count()


def shrinkage(v: Union[float, np.ndarray], threshold: float) -> Union[float, np.ndarray]:
    """Soft-threshold: sign(v) * max(0, |v| - threshold), elementwise."""
    out = np.sign(v) * np.maximum(np.abs(v) - threshold, 0.0)
    return float(out) if np.ndim(out) == 0 else out


def consensus_threshold(lam: float, rho: float, n_partitions: int) -> float:
    return lam / (rho * n_partitions + SHRINKAGE_EPSILON)


def consensus(states: PartitionedData, lam: float, rho: float) -> np.ndarray:
    """New consensus vector from the current x and u of every partition."""
    x_bar = average(states.map_partitions(lambda s: s.x))
    u_bar = average(states.map_partitions(lambda s: s.u))
    return shrinkage(x_bar + u_bar, consensus_threshold(lam, rho, states.count()))


def z_update(states: PartitionedData, lam: float, rho: float) -> PartitionedData:
    """Replace z on every partition with the same broadcast consensus vector."""
    z_new = states.broadcast(consensus(states, lam, rho))
    return states.map_partitions(lambda s: replace(s, z=z_new))
