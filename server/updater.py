"""Primal-update strategies for the ADMM driver.

A PrimalUpdater bundles the two problem-specific steps of ADMM: the local
x-update run on each partition and the global z-update.  The driver only
talks to this interface, so a different loss or regulariser is a new
subclass rather than a change to the outer loop.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from clients.local_train import ADMMState, LBFGSConfig, x_update
from clients.objective import data_loss
from server.aggregator import z_update
from server.partitions import PartitionedData


class PrimalUpdater(ABC):
    rho: float

    @abstractmethod
    def x_update(self, state: ADMMState) -> ADMMState:
        ...

    @abstractmethod
    def z_update(self, states: PartitionedData) -> PartitionedData:
        ...

    @abstractmethod
    def global_objective(self, states: PartitionedData, weights: np.ndarray) -> float:
        """Objective of the full (non-split) problem at the given weights."""


@dataclass
class SparseLogisticUpdater(PrimalUpdater):
    """L1-regularised logistic regression: L-BFGS local solves, soft-threshold consensus."""
    lam: float
    rho: float
    lbfgs: LBFGSConfig = field(default_factory=LBFGSConfig)

    def x_update(self, state: ADMMState) -> ADMMState:
        return x_update(state, self.rho, self.lbfgs)

    def z_update(self, states: PartitionedData) -> PartitionedData:
        return z_update(states, self.lam, self.rho)

    def global_objective(self, states: PartitionedData, weights: np.ndarray) -> float:
        losses = states.map_partitions(lambda s: data_loss(weights, s.features, s.labels))
        return float(losses.reduce(lambda a, b: a + b)) + self.lam * float(np.abs(weights).sum())
