"""Visualization Suite for ADMM Experiments.

Generates figures from experiment_results.json:

  Figure 1 — Convergence Curves
      Objective and primal residual per round for each lambda

  Figure 2 — Regularisation Path
      Non-zero weights and test F1 vs lambda, with the centralized
      baseline's sparsity for comparison

  Figure 3 — Penalty Parameter
      Final primal / dual residual and objective gap vs rho

Usage:
    python scripts/plot_results.py                          # uses results/experiment_results.json
    python scripts/plot_results.py --results path/to/file.json
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

try:
    import matplotlib
    matplotlib.use("Agg")   # non-interactive backend (safe for all environments)
    import matplotlib.pyplot as plt
    HAS_MPL = True
except ImportError:
    HAS_MPL = False


# ---------------------------------------------------------------------------
# Styling
# ---------------------------------------------------------------------------

PALETTE = {
    "admm":        "#2196F3",   # blue
    "centralized": "#9C27B0",   # purple
    "primal":      "#E53935",
    "dual":        "#43A047",
    "gap":         "#FF9800",   # orange
}

STYLE = {
    "figure.facecolor": "white",
    "axes.facecolor":   "white",
    "axes.grid":        True,
    "grid.alpha":       0.3,
    "axes.spines.top":  False,
    "axes.spines.right": False,
    "font.size":        11,
}


def _apply_style() -> None:
    plt.rcParams.update(STYLE)


def _save(fig: "plt.Figure", path: Path) -> None:
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  Saved: {path.name}")


# ---------------------------------------------------------------------------
# Figure 1: Convergence Curves
# ---------------------------------------------------------------------------

def plot_convergence(sweep: List[dict], save_dir: Path) -> None:
    _apply_style()
    fig, axes = plt.subplots(1, 2, figsize=(13, 5))
    fig.suptitle("ADMM Convergence", fontsize=14, fontweight="bold")

    for entry in sweep:
        lam = entry["config"]["lam"]
        rounds = [r["round"] for r in entry["per_round"]]
        obj = [r["objective"] for r in entry["per_round"]]
        r_pri = [max(r["primal_residual"], 1e-16) for r in entry["per_round"]]
        axes[0].plot(rounds, obj, lw=1.8, label=f"λ={lam:g}")
        axes[1].semilogy(rounds, r_pri, lw=1.8, label=f"λ={lam:g}")

    axes[0].set_title("Objective at consensus weights")
    axes[0].set_ylabel("Objective")
    axes[1].set_title("Primal residual")
    axes[1].set_ylabel("||x - z||")
    for ax in axes:
        ax.set_xlabel("Round")
        ax.legend(fontsize=9)

    fig.tight_layout()
    _save(fig, save_dir / "fig1_convergence.png")


# ---------------------------------------------------------------------------
# Figure 2: Regularisation Path
# ---------------------------------------------------------------------------

def plot_regularisation_path(sweep: List[dict], save_dir: Path) -> None:
    _apply_style()
    fig, axes = plt.subplots(1, 2, figsize=(13, 5))
    fig.suptitle("Regularisation Path", fontsize=14, fontweight="bold")

    lams = [e["config"]["lam"] for e in sweep]
    nnz = [e["final"]["nnz"] for e in sweep]
    nnz_c = [e["centralized_nnz"] for e in sweep]
    f1 = [e["final"]["f1"] for e in sweep]

    axes[0].plot(lams, nnz, "o-", color=PALETTE["admm"], lw=2.0, label="ADMM")
    axes[0].plot(lams, nnz_c, "s--", color=PALETTE["centralized"], lw=1.5, label="Centralized")
    axes[0].set_ylabel("Non-zero weights")
    axes[0].legend(fontsize=9)

    axes[1].plot(lams, f1, "o-", color=PALETTE["admm"], lw=2.0)
    axes[1].set_ylabel("Test F1")
    axes[1].set_ylim(0, 1.05)

    for ax in axes:
        ax.set_xscale("symlog", linthresh=0.1)  # keeps lambda = 0 on the axis
        ax.set_xlabel("λ")

    fig.tight_layout()
    _save(fig, save_dir / "fig2_regularisation_path.png")


# ---------------------------------------------------------------------------
# Figure 3: Penalty Parameter
# ---------------------------------------------------------------------------

def plot_rho_sweep(rho_results: List[dict], save_dir: Path) -> None:
    _apply_style()
    fig, ax = plt.subplots(figsize=(7, 5))

    rhos = [e["config"]["rho"] for e in rho_results]
    r_pri = [max(e["per_round"][-1]["primal_residual"], 1e-16) for e in rho_results]
    r_dual = [max(e["per_round"][-1]["dual_residual"], 1e-16) for e in rho_results]
    gap = [max(abs(e["objective_gap"]), 1e-16) for e in rho_results]

    ax.loglog(rhos, r_pri, "o-", color=PALETTE["primal"], label="Primal residual")
    ax.loglog(rhos, r_dual, "s-", color=PALETTE["dual"], label="Dual residual")
    ax.loglog(rhos, gap, "^--", color=PALETTE["gap"], label="Relative objective gap")
    ax.set_xlabel("ρ")
    ax.set_title(f"Final residuals vs ρ (λ={rho_results[0]['config']['lam']:g})")
    ax.legend(fontsize=9)

    fig.tight_layout()
    _save(fig, save_dir / "fig3_rho_sweep.png")


# ---------------------------------------------------------------------------
# Master entry point
# ---------------------------------------------------------------------------

def generate_all_plots(all_results: dict, figures_dir: Path) -> None:
    if not HAS_MPL:
        print("matplotlib not installed. Install with: pip install matplotlib")
        return

    figures_dir.mkdir(parents=True, exist_ok=True)

    sweep = all_results.get("lambda_sweep", [])
    rho_results = all_results.get("rho_sweep", [])

    print(f"  Generating figures in {figures_dir}/")

    if sweep:
        plot_convergence(sweep, figures_dir)
        plot_regularisation_path(sweep, figures_dir)
    if rho_results:
        plot_rho_sweep(rho_results, figures_dir)

    print("  All figures generated.")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    p = argparse.ArgumentParser(description="Plot ADMM experiment results")
    p.add_argument(
        "--results",
        type=str,
        default="results/experiment_results.json",
        help="Path to experiment_results.json",
    )
    p.add_argument(
        "--out",
        type=str,
        default="results/figures",
        help="Output directory for figures",
    )
    args = p.parse_args()

    results_path = Path(args.results)
    if not results_path.exists():
        print(f"Results file not found: {results_path}")
        print("Run 'python scripts/run_experiment.py' first.")
        sys.exit(1)

    with open(results_path) as f:
        data = json.load(f)

    generate_all_plots(data, Path(args.out))
