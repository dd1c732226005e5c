"""Sparse Logistic Regression with consensus ADMM.

The training set is split into partitions.  Every outer round:
  1. x-update  : each partition solves its augmented local problem (L-BFGS,
                 warm-started), independently of the others
  2. z-update  : x and u are averaged across partitions, soft-thresholded and
                 broadcast back as the new consensus vector
  3. u-update  : each partition accumulates its disagreement u += x - z

After the last round the consensus vector z is the model.

Reference: Boyd et al. (2011) "Distributed Optimization and Statistical
Learning via the Alternating Direction Method of Multipliers", Sec. 7-8.
"""
from __future__ import annotations

import argparse
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from clients.local_train import LBFGSConfig, dual_update, init_state
from data.loader import (
    feature_columns,
    load_csv,
    standardize_apply,
    standardize_fit,
    to_arrays,
    train_test_split,
)
from metrics.convergence import (
    RoundMetrics,
    compute_convergence_summary,
    dual_residual,
    primal_residual,
    residual_tolerances,
)
from metrics.utility import binary_classification_metrics
from model import LogisticRegressionModel
from server.partitions import PartitionedData, from_arrays
from server.updater import PrimalUpdater, SparseLogisticUpdater

Partition = Tuple[np.ndarray, np.ndarray]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class ADMMConfig:
    num_iterations: int = 20        # outer ADMM rounds
    lam: float = 0.0                # L1 penalty strength
    rho: float = 1.0                # augmented-Lagrangian penalty
    lbfgs: LBFGSConfig = field(default_factory=LBFGSConfig)
    abs_tol: Optional[float] = None  # None = always run num_iterations rounds
    rel_tol: Optional[float] = None
    fit_intercept: bool = False     # fit() only: prepend a constant feature
    n_workers: int = 1              # threads for partition-local steps

    def __post_init__(self) -> None:
        if self.num_iterations < 1:
            raise ValueError(f"num_iterations must be >= 1, got {self.num_iterations}")
        if not (np.isfinite(self.lam) and self.lam >= 0):
            raise ValueError(f"lam must be finite and >= 0, got {self.lam}")
        if not (np.isfinite(self.rho) and self.rho > 0):
            raise ValueError(f"rho must be finite and > 0, got {self.rho}")
        if (self.abs_tol is None) != (self.rel_tol is None):
            raise ValueError("abs_tol and rel_tol must be given together.")


@dataclass
class ADMMResult:
    weights: np.ndarray
    states: PartitionedData
    history: List[RoundMetrics]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def validate_partitions(data: PartitionedData) -> int:
    """
    Check every partition before training starts.  Returns the feature
    dimension shared by all partitions.
    """
    if data.count() == 0:
        raise ValueError("No partitions to train on.")

    dim = None
    for i, (x, y) in enumerate(data):
        x = np.asarray(x)
        y = np.asarray(y)
        if x.ndim != 2:
            raise ValueError(f"Partition {i}: features must be 2-D, got shape {x.shape}.")
        if y.ndim != 1 or y.shape[0] != x.shape[0]:
            raise ValueError(
                f"Partition {i}: {x.shape[0]} feature rows but labels of shape {y.shape}."
            )
        if x.shape[0] == 0:
            raise ValueError(f"Partition {i} is empty.")
        if x.shape[1] == 0:
            raise ValueError(f"Partition {i}: features have zero columns.")
        if not np.all((y == 1) | (y == -1)):
            bad = np.unique(y[(y != 1) & (y != -1)])
            raise ValueError(f"Partition {i}: labels must be -1 or +1, found {bad.tolist()}.")
        if not np.all(np.isfinite(x)):
            raise ValueError(f"Partition {i}: features contain NaN or Inf.")
        if dim is None:
            dim = x.shape[1]
        elif x.shape[1] != dim:
            raise ValueError(
                f"Partition {i}: expected {dim} features, got {x.shape[1]}."
            )
    return int(dim)


def _check_initial(name: str, v: Optional[np.ndarray], dim: int) -> None:
    if v is not None and np.shape(v) != (dim,):
        raise ValueError(f"Initial {name} must have shape ({dim},), got {np.shape(v)}.")


def _as_partitioned(data: Union[PartitionedData, Sequence[Partition]], n_workers: int) -> PartitionedData:
    if isinstance(data, PartitionedData):
        return data
    return PartitionedData(list(data), n_workers=n_workers)


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------

class ADMMOptimizer:
    def __init__(self, cfg: ADMMConfig, updater: Optional[PrimalUpdater] = None) -> None:
        self.cfg = cfg
        self.updater = updater or SparseLogisticUpdater(lam=cfg.lam, rho=cfg.rho, lbfgs=cfg.lbfgs)

    def init_states(
        self,
        data: PartitionedData,
        x0: Optional[np.ndarray] = None,
        z0: Optional[np.ndarray] = None,
        u0: Optional[np.ndarray] = None,
    ) -> PartitionedData:
        dim = validate_partitions(data)
        for name, v in (("x", x0), ("z", z0), ("u", u0)):
            _check_initial(name, v, dim)
        z = data.broadcast(np.zeros(dim) if z0 is None else z0)
        return data.map_partitions(lambda p: init_state(p[0], p[1], x0=x0, z0=z, u0=u0))

    def _converged(self, states: PartitionedData, m: RoundMetrics) -> bool:
        if self.cfg.abs_tol is None:
            return False
        eps_pri, eps_dual = residual_tolerances(
            states, self.updater.rho, self.cfg.abs_tol, self.cfg.rel_tol
        )
        return m.primal_residual <= eps_pri and m.dual_residual <= eps_dual

    def optimize(
        self,
        data: Union[PartitionedData, Sequence[Partition]],
        x0: Optional[np.ndarray] = None,
        z0: Optional[np.ndarray] = None,
        u0: Optional[np.ndarray] = None,
        verbose: bool = False,
    ) -> ADMMResult:
        """
        Run the ADMM rounds and return the consensus weights.

        Parameters
        ----------
        data       : one (features, labels) pair per partition.
        x0, z0, u0 : optional starting vectors, applied to every partition.
        """
        data = _as_partitioned(data, self.cfg.n_workers)
        states = self.init_states(data, x0=x0, z0=z0, u0=u0)
        updater = self.updater
        n = states.count()
        history: List[RoundMetrics] = []

        for r in range(self.cfg.num_iterations):
            t0 = time.perf_counter()
            z_prev = states[0].z

            states = states.map_partitions(updater.x_update)
            states = updater.z_update(states)
            states = states.map_partitions(dual_update)

            z = states[0].z
            m = RoundMetrics(
                round_num=r + 1,
                objective=updater.global_objective(states, z),
                primal_residual=primal_residual(states),
                dual_residual=dual_residual(z, z_prev, updater.rho, n),
                nnz=int(np.count_nonzero(z)),
                wall_time_s=time.perf_counter() - t0,
            )
            history.append(m)

            if verbose and ((r + 1) % 5 == 0 or r == 0):
                print(
                    f"[Round {r+1:02d}] objective={m.objective:.4f}"
                    f"  r_pri={m.primal_residual:.2e}  r_dual={m.dual_residual:.2e}"
                    f"  nnz={m.nnz}"
                )

            if self._converged(states, m):
                if verbose:
                    print(f"[Round {r+1:02d}] residuals within tolerance, stopping.")
                break

        return ADMMResult(weights=np.array(states[0].z), states=states, history=history)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def train(
    data: Union[PartitionedData, Sequence[Partition]],
    num_iterations: int,
    lam: float,
    rho: float,
    **kwargs,
) -> np.ndarray:
    """Train on partitioned (features, labels) data; returns the weight vector."""
    cfg = ADMMConfig(num_iterations=num_iterations, lam=lam, rho=rho, **kwargs)
    return ADMMOptimizer(cfg).optimize(data).weights


def _with_intercept_column(p: Partition) -> Partition:
    x, y = p
    x = np.asarray(x, dtype=float)
    return np.hstack((np.ones((x.shape[0], 1)), x)), y


def fit(
    data: Union[PartitionedData, Sequence[Partition]],
    cfg: ADMMConfig,
    verbose: bool = False,
) -> Tuple[LogisticRegressionModel, ADMMResult]:
    """
    Train and wrap the weights in a classifier.  With cfg.fit_intercept a
    constant feature is prepended; its weight becomes the model intercept.
    The intercept is penalised like any other weight.
    """
    data = _as_partitioned(data, cfg.n_workers)
    if cfg.fit_intercept:
        validate_partitions(data)
        data = data.map_partitions(_with_intercept_column)
    result = ADMMOptimizer(cfg).optimize(data, verbose=verbose)
    w = result.weights
    if cfg.fit_intercept:
        model = LogisticRegressionModel(weights=w[1:].copy(), intercept=float(w[0]))
    else:
        model = LogisticRegressionModel(weights=w.copy(), intercept=0.0)
    return model, result


def run_admm(
    csv_path: Path,
    test_ratio: float,
    cfg: ADMMConfig,
    seed: int = 42,
    verbose: bool = True,
) -> dict:
    """
    Load a partitioned CSV, train on the training split and evaluate on the
    held-out split.  Returns a results dict for the experiment runner.
    """
    df = load_csv(csv_path)
    features = feature_columns(df)
    train_df, test_df = train_test_split(df, test_ratio=test_ratio, seed=seed)

    x_train, y_train, pid_train = to_arrays(train_df, features)
    x_test, y_test, pid_test = to_arrays(test_df, features)

    # Fit standardisation on training data only
    mu, sigma = standardize_fit(x_train)
    x_train_s = standardize_apply(x_train, mu, sigma)
    x_test_s = standardize_apply(x_test, mu, sigma)

    data = from_arrays(x_train_s, y_train, pid_train, n_workers=cfg.n_workers)
    if verbose:
        print(
            f"ADMM: {data.count()} partitions, {len(y_train)} training rows, "
            f"{len(features)} features, lam={cfg.lam}, rho={cfg.rho}"
        )

    model, result = fit(data, cfg, verbose=verbose)
    summary = compute_convergence_summary(result.history)
    metrics = binary_classification_metrics(y_test, model.predict(x_test_s))

    if verbose:
        print(
            f"\n{'='*50}"
            f"\nFinal Results (lam={cfg.lam}, rho={cfg.rho})"
            f"\nRounds:       {summary.total_rounds}"
            f"\nObjective:    {summary.final_objective:.4f}"
            f"\nNon-zeros:    {summary.final_nnz}/{len(features)}"
            f"\nAccuracy:     {metrics.accuracy:.3f}"
            f"\nF1-Score:     {metrics.f1:.3f}"
            f"\nWall time:    {summary.total_wall_time_s:.2f}s"
            f"\n{'='*50}"
        )

    return {
        "config": {
            "num_iterations": cfg.num_iterations,
            "lam": cfg.lam,
            "rho": cfg.rho,
            "lbfgs_max_iterations": cfg.lbfgs.max_iterations,
            "lbfgs_history_size": cfg.lbfgs.history_size,
            "lbfgs_tolerance": cfg.lbfgs.tolerance,
            "fit_intercept": cfg.fit_intercept,
            "n_partitions": data.count(),
            "seed": seed,
        },
        "per_round": [
            {
                "round": m.round_num,
                "objective": m.objective,
                "primal_residual": m.primal_residual,
                "dual_residual": m.dual_residual,
                "nnz": m.nnz,
                "wall_time_s": m.wall_time_s,
            }
            for m in result.history
        ],
        "final": {
            "accuracy": metrics.accuracy,
            "precision": metrics.precision,
            "recall": metrics.recall,
            "f1": metrics.f1,
            "objective": summary.final_objective,
            "nnz": summary.final_nnz,
        },
        "weights": model.weights.tolist(),
        "intercept": model.intercept,
        "_x_train": x_train_s,
        "_y_train": y_train,
        "_x_test": x_test_s,
        "_y_test": y_test,
        "_pid_test": pid_test,
        "_model": model,
    }


# ---------------------------------------------------------------------------
# CLI entry-point
# ---------------------------------------------------------------------------

def main() -> None:
    p = argparse.ArgumentParser(description="Sparse logistic regression with ADMM")
    p.add_argument("--csv", type=str, default="data/synthetic/points.csv")
    p.add_argument("--test_ratio", type=float, default=0.2)
    p.add_argument("--rounds", type=int, default=20)
    p.add_argument("--lam", type=float, default=0.0)
    p.add_argument("--rho", type=float, default=1.0)
    p.add_argument("--lbfgs_max_iter", type=int, default=5)
    p.add_argument("--lbfgs_history", type=int, default=10)
    p.add_argument("--lbfgs_tol", type=float, default=1e-4)
    p.add_argument("--abs_tol", type=float, default=None)
    p.add_argument("--rel_tol", type=float, default=None)
    p.add_argument("--fit_intercept", action="store_true")
    p.add_argument("--n_workers", type=int, default=1)
    p.add_argument("--seed", type=int, default=42)
    args = p.parse_args()

    cfg = ADMMConfig(
        num_iterations=args.rounds,
        lam=args.lam,
        rho=args.rho,
        lbfgs=LBFGSConfig(
            max_iterations=args.lbfgs_max_iter,
            history_size=args.lbfgs_history,
            tolerance=args.lbfgs_tol,
        ),
        abs_tol=args.abs_tol,
        rel_tol=args.rel_tol,
        fit_intercept=args.fit_intercept,
        n_workers=args.n_workers,
    )

    run_admm(Path(args.csv), test_ratio=args.test_ratio, cfg=cfg, seed=args.seed, verbose=True)


if __name__ == "__main__":
    main()
