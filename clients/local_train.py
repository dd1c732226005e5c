"""Partition-local ADMM steps: the x-update (local solve) and the dual update.

An ADMMState is never modified in place.  Each step returns a new record
with the updated vectors; the point arrays are shared read-only.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
from scipy.optimize import minimize

from clients.objective import local_gradient, local_objective


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class ADMMState:
    features: np.ndarray  # shape (n_i, d)
    labels: np.ndarray    # shape (n_i,), values in {-1, +1}
    x: np.ndarray         # local primal weights
    z: np.ndarray         # consensus weights (same object on every partition)
    u: np.ndarray         # scaled dual variable

    @property
    def dim(self) -> int:
        return int(self.x.shape[0])

    @property
    def n_points(self) -> int:
        return int(self.labels.shape[0])


@dataclass(frozen=True)
class LBFGSConfig:
    """Settings of the local quasi-Newton solver."""
    max_iterations: int = 5   # solver steps per x-update
    history_size: int = 10    # stored curvature pairs
    tolerance: float = 1e-4   # relative objective reduction to stop at

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")
        if not self.tolerance > 0:
            raise ValueError(f"tolerance must be > 0, got {self.tolerance}")


def _readonly(a: np.ndarray) -> np.ndarray:
    if isinstance(a, np.ndarray) and a.dtype == np.float64 and not a.flags.writeable:
        return a
    a = np.array(a, dtype=float)
    a.setflags(write=False)
    return a


def init_state(
    features: np.ndarray,
    labels: np.ndarray,
    x0: Optional[np.ndarray] = None,
    z0: Optional[np.ndarray] = None,
    u0: Optional[np.ndarray] = None,
) -> ADMMState:
    """Create a partition state; vectors not supplied start at zero."""
    features = _readonly(features)
    d = features.shape[1]
    zeros = np.zeros(d)
    return ADMMState(
        features=features,
        labels=_readonly(labels),
        x=_readonly(zeros if x0 is None else x0),
        z=_readonly(zeros if z0 is None else z0),
        u=_readonly(zeros if u0 is None else u0),
    )


# ---------------------------------------------------------------------------
# Local steps
# ---------------------------------------------------------------------------

def x_update(state: ADMMState, rho: float, cfg: LBFGSConfig = LBFGSConfig()) -> ADMMState:
    """
    Minimise the augmented local objective with L-BFGS, warm-started from the
    previous x.  Hitting the iteration cap is not an error: the last iterate is
    returned and the outer loop keeps refining it.
    """
    res = minimize(
        fun=local_objective,
        x0=np.array(state.x),
        args=(state, rho),
        method="L-BFGS-B",
        jac=local_gradient,
        options={
            "maxiter": cfg.max_iterations,
            "maxcor": cfg.history_size,
            "ftol": cfg.tolerance,
        },
    )
    return replace(state, x=_readonly(res.x))


def dual_update(state: ADMMState) -> ADMMState:
    """u <- u + x - z, using the x and z of the current round."""
    return replace(state, u=_readonly(state.u + state.x - state.z))
