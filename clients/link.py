"""Logistic link functions used by the local loss and gradient.

Both functions clamp the margin to [-MARGIN_CLAMP, MARGIN_CLAMP] before
exponentiating, so they never overflow on finite input.  They accept a
scalar or a NumPy array and return the same shape.
"""
from __future__ import annotations

from typing import Union

import numpy as np

MARGIN_CLAMP = 10.0

ArrayLike = Union[float, np.ndarray]


def clamp_margin(margin: ArrayLike, bound: float = MARGIN_CLAMP) -> np.ndarray:
    return np.clip(margin, -bound, bound)


def phi(margin: ArrayLike) -> ArrayLike:
    """Sigmoid 1 / (1 + exp(-m)), branching on sign for stability."""
    t = clamp_margin(np.asarray(margin, dtype=float))
    e = np.exp(-np.abs(t))
    out = np.where(t >= 0, 1.0 / (1.0 + e), e / (1.0 + e))
    return float(out) if out.ndim == 0 else out


def log_phi(margin: ArrayLike) -> ArrayLike:
    """log(phi(m)) computed directly from the clamped margin."""
    t = clamp_margin(np.asarray(margin, dtype=float))
    out = -np.log1p(np.exp(-t))
    return float(out) if out.ndim == 0 else out
