from __future__ import annotations

import numpy as np

from clients.link import log_phi, phi


def _margins(w: np.ndarray, features: np.ndarray, labels: np.ndarray) -> np.ndarray:
    return labels * (features @ w)


def data_loss(w: np.ndarray, features: np.ndarray, labels: np.ndarray) -> float:
    """Logistic loss summed over one partition's points."""
    return float(-np.sum(log_phi(_margins(w, features, labels))))


def local_objective(w: np.ndarray, state, rho: float) -> float:
    """
    Augmented local objective of one partition:

        sum_j -log_phi(y_j * w.x_j) + rho/2 * ||w - z + u||^2
    """
    r = w - state.z + state.u
    return data_loss(w, state.features, state.labels) + 0.5 * rho * float(r @ r)


def local_gradient(w: np.ndarray, state, rho: float) -> np.ndarray:
    """
    Gradient of local_objective.  The penalty term contributes rho * (w - z + u),
    the exact derivative of the rho/2 quadratic.
    """
    m = _margins(w, state.features, state.labels)
    loss_grad = state.features.T @ (state.labels * (phi(m) - 1.0))
    return loss_grad + rho * (w - state.z + state.u)
