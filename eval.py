"""Evaluation utilities for ADMM experiments.

Provides a unified interface for evaluating a trained model against:
  - Global test metrics (accuracy, precision, recall, F1)
  - Per-partition accuracy (worst / mean / best)
  - Sparsity of the weights and, when the generating weights are known,
    recovery of their support

Can be run standalone to summarise a saved experiment result, or
imported as a module by run_experiment.py.
"""
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np

sys.path.insert(0, str(Path(__file__).parent))

from metrics.utility import binary_classification_metrics, BinaryMetrics
from model import LogisticRegressionModel


# ---------------------------------------------------------------------------
# Full evaluation result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SupportRecovery:
    true_positives: int     # non-zero in both model and ground truth
    false_positives: int    # non-zero in model only
    false_negatives: int    # non-zero in ground truth only


@dataclass
class EvalResult:
    global_metrics: BinaryMetrics
    worst_accuracy: float
    mean_accuracy: float
    best_accuracy: float
    nnz: int
    n_features: int
    support: Optional[SupportRecovery] = None

    def print_report(self, label: str = "Model") -> None:
        print(f"\n{'='*55}")
        print(f"Evaluation Report: {label}")
        print(f"{'='*55}")
        print(f"  Accuracy:   {self.global_metrics.accuracy:.4f}")
        print(f"  Precision:  {self.global_metrics.precision:.4f}")
        print(f"  Recall:     {self.global_metrics.recall:.4f}")
        print(f"  F1-Score:   {self.global_metrics.f1:.4f}")
        print(f"  --- Per-partition accuracy ---")
        print(f"  Worst:      {self.worst_accuracy:.4f}")
        print(f"  Mean:       {self.mean_accuracy:.4f}")
        print(f"  Best:       {self.best_accuracy:.4f}")
        print(f"  --- Sparsity ---")
        print(f"  Non-zeros:  {self.nnz}/{self.n_features}")
        if self.support is not None:
            print(f"  Support TP: {self.support.true_positives}")
            print(f"  Support FP: {self.support.false_positives}")
            print(f"  Support FN: {self.support.false_negatives}")
        print(f"{'='*55}\n")


# ---------------------------------------------------------------------------
# Evaluation function
# ---------------------------------------------------------------------------

def support_recovery(weights: np.ndarray, true_weights: np.ndarray) -> SupportRecovery:
    est = weights != 0
    ref = true_weights != 0
    return SupportRecovery(
        true_positives=int((est & ref).sum()),
        false_positives=int((est & ~ref).sum()),
        false_negatives=int((~est & ref).sum()),
    )


def evaluate(
    model: LogisticRegressionModel,
    x_test: np.ndarray,
    y_test: np.ndarray,
    test_partitions: Optional[Dict[int, Tuple[np.ndarray, np.ndarray]]] = None,
    true_weights: Optional[np.ndarray] = None,
) -> EvalResult:
    """
    Full evaluation of a trained model.

    Parameters
    ----------
    model           : trained classifier.
    x_test/y_test   : global held-out test set, labels in {-1, +1}.
    test_partitions : optional per-partition test sets, partition_id -> (x, y).
    true_weights    : generating weights, if known, for support recovery.
    """
    global_m = binary_classification_metrics(y_test, model.predict(x_test))

    accs = [
        binary_classification_metrics(y_p, model.predict(x_p)).accuracy
        for x_p, y_p in (test_partitions or {}).values()
        if len(y_p) > 0
    ]
    if not accs:
        accs = [global_m.accuracy]

    return EvalResult(
        global_metrics=global_m,
        worst_accuracy=float(min(accs)),
        mean_accuracy=float(np.mean(accs)),
        best_accuracy=float(max(accs)),
        nnz=model.nnz,
        n_features=int(model.weights.shape[0]),
        support=None if true_weights is None else support_recovery(model.weights, true_weights),
    )


# ---------------------------------------------------------------------------
# CLI — summarise a saved experiment JSON
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    p = argparse.ArgumentParser(description="Summarise an ADMM experiment")
    p.add_argument(
        "--results",
        type=str,
        default="results/experiment_results.json",
        help="Path to experiment_results.json produced by run_experiment.py",
    )
    args = p.parse_args()

    results_path = Path(args.results)
    if not results_path.exists():
        print(f"Results file not found: {results_path}")
        print("Run 'python scripts/run_experiment.py' first to generate results.")
        sys.exit(1)

    with open(results_path) as f:
        data = json.load(f)

    print(f"\n{'lam':>10} {'objective':>12} {'gap':>10} {'nnz':>5} {'acc':>7} {'f1':>7}")
    for entry in data.get("lambda_sweep", []):
        final = entry.get("final", {})
        print(
            f"{entry['config']['lam']:>10.4g} {final.get('objective', float('nan')):>12.4f}"
            f" {entry.get('objective_gap', float('nan')):>10.2e}"
            f" {final.get('nnz', 0):>5d} {final.get('accuracy', 0):>7.3f} {final.get('f1', 0):>7.3f}"
        )
