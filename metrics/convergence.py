"""Per-round diagnostics for ADMM training.

Tracks, for every outer round:
  - Objective of the full problem at the consensus weights
  - Primal residual  ||(x_1 - z, ..., x_N - z)||
  - Dual residual    rho * sqrt(N) * ||z - z_prev||
  - Number of non-zero consensus weights
  - Wall-clock time
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from server.partitions import PartitionedData


# ---------------------------------------------------------------------------
# Per-round metrics
# ---------------------------------------------------------------------------

@dataclass
class RoundMetrics:
    round_num: int
    objective: float
    primal_residual: float
    dual_residual: float
    nnz: int                # non-zero entries of z
    wall_time_s: float

    @property
    def residual(self) -> float:
        return max(self.primal_residual, self.dual_residual)


def primal_residual(states: PartitionedData) -> float:
    sq = states.map_partitions(lambda s: float(np.sum((s.x - s.z) ** 2)))
    return math.sqrt(sq.reduce(lambda a, b: a + b))


def dual_residual(z: np.ndarray, z_prev: np.ndarray, rho: float, n_partitions: int) -> float:
    return float(rho * math.sqrt(n_partitions) * np.linalg.norm(z - z_prev))


def residual_tolerances(
    states: PartitionedData,
    rho: float,
    abs_tol: float,
    rel_tol: float,
) -> tuple:
    """
    Stopping tolerances (eps_pri, eps_dual) of Boyd et al. (2011), Sec. 3.3,
    for the consensus form x_i - z = 0.
    """
    n = states.count()
    d = states[0].dim
    x_norm = math.sqrt(states.map_partitions(lambda s: float(s.x @ s.x)).reduce(lambda a, b: a + b))
    u_norm = math.sqrt(states.map_partitions(lambda s: float(s.u @ s.u)).reduce(lambda a, b: a + b))
    z = states[0].z
    z_norm = math.sqrt(n) * float(np.linalg.norm(z))
    root = math.sqrt(n * d)
    eps_pri = root * abs_tol + rel_tol * max(x_norm, z_norm)
    eps_dual = root * abs_tol + rel_tol * rho * u_norm
    return eps_pri, eps_dual


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

@dataclass
class ConvergenceSummary:
    total_rounds: int
    total_wall_time_s: float
    initial_objective: float
    final_objective: float
    final_primal_residual: float
    final_dual_residual: float
    final_nnz: int
    rounds_to_tolerance: int     # -1 if residuals never dropped below tol


def compute_convergence_summary(
    history: List[RoundMetrics],
    residual_tol: Optional[float] = None,
) -> ConvergenceSummary:
    """
    Aggregate per-round metrics.

    Parameters
    ----------
    history       : per-round metrics in round order.
    residual_tol  : if given, first round whose primal and dual residuals are
                    both at or below this value.
    """
    if not history:
        return ConvergenceSummary(
            total_rounds=0,
            total_wall_time_s=0.0,
            initial_objective=float("nan"),
            final_objective=float("nan"),
            final_primal_residual=float("nan"),
            final_dual_residual=float("nan"),
            final_nnz=0,
            rounds_to_tolerance=-1,
        )

    rounds_to_tol = -1
    if residual_tol is not None:
        for m in history:
            if m.residual <= residual_tol:
                rounds_to_tol = m.round_num
                break

    last = history[-1]
    return ConvergenceSummary(
        total_rounds=len(history),
        total_wall_time_s=float(sum(m.wall_time_s for m in history)),
        initial_objective=history[0].objective,
        final_objective=last.objective,
        final_primal_residual=last.primal_residual,
        final_dual_residual=last.dual_residual,
        final_nnz=last.nnz,
        rounds_to_tolerance=rounds_to_tol,
    )
