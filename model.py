from __future__ import annotations
from dataclasses import dataclass

import numpy as np

from clients.link import phi


@dataclass
class LogisticRegressionModel:
    weights: np.ndarray  # shape (d,)
    intercept: float = 0.0

    def margin(self, x: np.ndarray) -> np.ndarray:
        return x @ self.weights + self.intercept

    def predict_proba(self, x: np.ndarray) -> np.ndarray:
        """P(label = +1 | x)."""
        return phi(self.margin(x))

    def predict(self, x: np.ndarray, threshold: float = 0.5) -> np.ndarray:
        return np.where(self.predict_proba(x) >= threshold, 1, -1)

    @property
    def nnz(self) -> int:
        return int(np.count_nonzero(self.weights))
