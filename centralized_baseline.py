"""Single-machine L1 logistic regression, used as a reference for ADMM.

Minimises the same objective ADMM splits across partitions,

    sum_j -log_phi(y_j * w.x_j) + lam * ||w||_1,

on the pooled data with proximal gradient descent (ISTA).
"""
from __future__ import annotations
import argparse
from pathlib import Path

import numpy as np

from clients.link import phi
from clients.objective import data_loss
from data.loader import (
    feature_columns,
    load_csv,
    standardize_apply,
    standardize_fit,
    to_arrays,
    train_test_split,
)
from metrics.utility import binary_classification_metrics
from model import LogisticRegressionModel
from server.aggregator import shrinkage


def l1_logistic_objective(w: np.ndarray, x: np.ndarray, y: np.ndarray, lam: float) -> float:
    return data_loss(w, x, y) + lam * float(np.abs(w).sum())


def train_logreg_l1(
    x: np.ndarray,
    y: np.ndarray,
    lam: float = 0.0,
    steps: int = 5000,
    tol: float = 1e-10,
) -> LogisticRegressionModel:
    """ISTA with the fixed step 1/L, L = ||X||_2^2 / 4."""
    d = x.shape[1]
    lipschitz = 0.25 * float(np.linalg.norm(x, 2)) ** 2
    step = 1.0 / max(lipschitz, 1e-12)
    w = np.zeros(d)

    for _ in range(steps):
        grad = x.T @ (y * (phi(y * (x @ w)) - 1.0))
        w_new = shrinkage(w - step * grad, step * lam)
        if np.linalg.norm(w_new - w) <= tol * max(1.0, np.linalg.norm(w)):
            w = w_new
            break
        w = w_new

    return LogisticRegressionModel(weights=w, intercept=0.0)


def main(csv_path: Path, test_ratio: float, seed: int, lam: float) -> None:
    df = load_csv(csv_path)
    features = feature_columns(df)
    train_df, test_df = train_test_split(df, test_ratio=test_ratio, seed=seed)

    x_train, y_train, _ = to_arrays(train_df, features)
    x_test, y_test, _ = to_arrays(test_df, features)

    mu, sigma = standardize_fit(x_train)
    x_train_s = standardize_apply(x_train, mu, sigma)
    x_test_s = standardize_apply(x_test, mu, sigma)

    model = train_logreg_l1(x_train_s, y_train, lam=lam)

    y_pred = model.predict(x_test_s)
    metrics = binary_classification_metrics(y_test, y_pred)

    print("Centralized L1 Logistic Regression Baseline")
    print(f"Test size: {len(test_df)}")
    print(f"Objective: {l1_logistic_objective(model.weights, x_train_s, y_train, lam):.4f}")
    print(f"Non-zeros: {model.nnz}/{len(features)}")
    print(f"Accuracy:  {metrics.accuracy:.3f}")
    print(f"Precision: {metrics.precision:.3f}")
    print(f"Recall:    {metrics.recall:.3f}")
    print(f"F1:        {metrics.f1:.3f}")


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    p.add_argument("--csv", type=str, default="data/synthetic/points.csv")
    p.add_argument("--test_ratio", type=float, default=0.2)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--lam", type=float, default=0.0)
    args = p.parse_args()

    main(Path(args.csv), test_ratio=args.test_ratio, seed=args.seed, lam=args.lam)
