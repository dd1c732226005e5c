from __future__ import annotations
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class BinaryMetrics:
    accuracy: float
    precision: float
    recall: float
    f1: float


def _safe_div(a: float, b: float) -> float:
    return float(a / b) if b != 0 else 0.0


def binary_classification_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> BinaryMetrics:
    """Metrics for labels in {-1, +1}; +1 is the positive class."""
    pos_true = np.asarray(y_true) > 0
    pos_pred = np.asarray(y_pred) > 0

    tp = int((pos_true & pos_pred).sum())
    tn = int((~pos_true & ~pos_pred).sum())
    fp = int((~pos_true & pos_pred).sum())
    fn = int((pos_true & ~pos_pred).sum())

    acc = _safe_div(tp + tn, tp + tn + fp + fn)
    prec = _safe_div(tp, tp + fp)
    rec = _safe_div(tp, tp + fn)
    f1 = _safe_div(2 * prec * rec, (prec + rec))

    return BinaryMetrics(accuracy=acc, precision=prec, recall=rec, f1=f1)
