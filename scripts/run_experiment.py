"""Full Experiment Runner for distributed sparse logistic regression.

Runs a complete experimental suite:
  1. Centralized L1 logistic regression baseline at each lambda
  2. ADMM at each lambda (regularisation path), compared to the baseline
  3. ADMM rho sweep at a fixed lambda (convergence speed vs rho)

Results are saved to results/experiment_results.json and
figures are generated in results/figures/.

Usage (from the repository root):
    python data/synthetic/generate.py
    python scripts/run_experiment.py
    python scripts/run_experiment.py --quick     # fewer rounds / lambdas
    python scripts/run_experiment.py --no-plots  # skip visualization
"""
from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

import numpy as np

# Add parent dir to path so imports work
sys.path.insert(0, str(Path(__file__).parent.parent))

from admm_train import ADMMConfig, run_admm
from centralized_baseline import l1_logistic_objective, train_logreg_l1
from clients.local_train import LBFGSConfig
from eval import evaluate


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def load_true_weights(csv_path: Path):
    meta_path = csv_path.parent / "meta.json"
    if not meta_path.exists():
        return None
    meta = json.loads(meta_path.read_text())
    w = meta.get("true_weights")
    return None if w is None else np.asarray(w, dtype=float)


def partition_test_sets(result: dict) -> dict:
    pids = result["_pid_test"]
    x, y = result["_x_test"], result["_y_test"]
    return {int(pid): (x[pids == pid], y[pids == pid]) for pid in np.unique(pids)}


def serialize_result(result: dict) -> dict:
    """Remove numpy arrays from result dict for JSON serialisation."""
    out = {}
    for k, v in result.items():
        if k.startswith("_"):          # skip raw arrays
            continue
        if isinstance(v, np.integer):
            out[k] = int(v)
        elif isinstance(v, np.floating):
            out[k] = float(v)
        elif isinstance(v, np.ndarray):
            out[k] = v.tolist()
        elif isinstance(v, list):
            out[k] = [
                serialize_result(x) if isinstance(x, dict) else
                float(x) if isinstance(x, (np.floating, float)) else
                int(x) if isinstance(x, (np.integer, int)) else x
                for x in v
            ]
        elif isinstance(v, dict):
            out[k] = serialize_result(v)
        else:
            out[k] = v
    return out


def run_one(csv_path: Path, test_ratio: float, seed: int, cfg: ADMMConfig, true_w) -> dict:
    res = run_admm(csv_path, test_ratio, cfg, seed=seed, verbose=False)

    central = train_logreg_l1(res["_x_train"], res["_y_train"], lam=cfg.lam)
    central_obj = l1_logistic_objective(central.weights, res["_x_train"], res["_y_train"], cfg.lam)
    admm_obj = res["final"]["objective"]

    ev = evaluate(
        res["_model"],
        res["_x_test"],
        res["_y_test"],
        test_partitions=partition_test_sets(res),
        true_weights=true_w,
    )

    entry = serialize_result(res)
    entry["centralized_objective"] = central_obj
    entry["centralized_nnz"] = central.nnz
    entry["objective_gap"] = (admm_obj - central_obj) / max(abs(central_obj), 1.0)
    entry["worst_partition_accuracy"] = ev.worst_accuracy
    if ev.support is not None:
        entry["support"] = {
            "true_positives": ev.support.true_positives,
            "false_positives": ev.support.false_positives,
            "false_negatives": ev.support.false_negatives,
        }
    return entry


# ---------------------------------------------------------------------------
# Main experiment suite
# ---------------------------------------------------------------------------

def run_all(
    csv_path: Path,
    test_ratio: float,
    seed: int,
    rounds: int,
    quick: bool,
    no_plots: bool,
) -> None:
    results_dir = Path("results")
    figures_dir = results_dir / "figures"
    results_dir.mkdir(exist_ok=True)
    figures_dir.mkdir(exist_ok=True)

    true_w = load_true_weights(csv_path)
    all_results: dict = {}
    t_start = time.perf_counter()

    # ------------------------------------------------------------------ 1. Lambda sweep
    print("\n" + "="*60)
    print("STEP 1: Regularisation Path (ADMM vs Centralized)")
    print("="*60)
    lambdas = [0.0, 1.0, 10.0] if quick else [0.0, 0.3, 1.0, 3.0, 10.0, 30.0, 100.0]

    sweep = []
    for lam in lambdas:
        cfg = ADMMConfig(num_iterations=rounds, lam=lam, rho=1.0, lbfgs=LBFGSConfig())
        entry = run_one(csv_path, test_ratio, seed, cfg, true_w)
        print(
            f"  lam={lam:<6g} objective={entry['final']['objective']:.3f}"
            f"  gap={entry['objective_gap']:.2e}  nnz={entry['final']['nnz']}"
            f"  f1={entry['final']['f1']:.3f}"
        )
        sweep.append(entry)
    all_results["lambda_sweep"] = sweep

    # ------------------------------------------------------------------ 2. Rho sweep
    print("\n" + "="*60)
    print("STEP 2: Penalty Parameter Sweep")
    print("="*60)
    rhos = [0.1, 1.0, 10.0] if quick else [0.01, 0.1, 1.0, 10.0, 100.0]
    lam_fixed = lambdas[len(lambdas) // 2]

    rho_results = []
    for rho in rhos:
        cfg = ADMMConfig(num_iterations=rounds, lam=lam_fixed, rho=rho)
        entry = run_one(csv_path, test_ratio, seed, cfg, true_w)
        last = entry["per_round"][-1]
        print(
            f"  rho={rho:<6g} gap={entry['objective_gap']:.2e}"
            f"  r_pri={last['primal_residual']:.2e}  r_dual={last['dual_residual']:.2e}"
        )
        rho_results.append(entry)
    all_results["rho_sweep"] = rho_results

    # ------------------------------------------------------------------ 3. Save
    out_path = results_dir / "experiment_results.json"
    with open(out_path, "w") as f:
        json.dump(all_results, f, indent=2, default=str)

    elapsed = time.perf_counter() - t_start
    print(f"\n{'='*60}")
    print(f"All experiments complete in {elapsed:.1f}s")
    print(f"Results saved to: {out_path}")

    # ------------------------------------------------------------------ 4. Plots
    if not no_plots:
        print("\nGenerating figures...")
        from scripts.plot_results import generate_all_plots
        generate_all_plots(all_results, figures_dir)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    p = argparse.ArgumentParser(description="Run the ADMM experiment suite")
    p.add_argument("--csv", type=str, default="data/synthetic/points.csv")
    p.add_argument("--test_ratio", type=float, default=0.2)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--rounds", type=int, default=50,
                   help="Number of ADMM rounds (use fewer for quick runs)")
    p.add_argument("--quick", action="store_true",
                   help="Run a reduced sweep (faster, for testing)")
    p.add_argument("--no-plots", action="store_true", dest="no_plots",
                   help="Skip figure generation")
    args = p.parse_args()

    run_all(
        csv_path=Path(args.csv),
        test_ratio=args.test_ratio,
        seed=args.seed,
        rounds=args.rounds,
        quick=args.quick,
        no_plots=args.no_plots,
    )
