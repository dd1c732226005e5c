from __future__ import annotations
import argparse
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class GenConfig:
    n_partitions: int = 8
    points_per_partition: int = 250
    n_features: int = 20
    n_informative: int = 5
    seed: int = 42


def sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def true_weights(rng: np.random.Generator, cfg: GenConfig) -> np.ndarray:
    """Sparse ground truth: n_informative non-zero entries, the rest zero."""
    w = np.zeros(cfg.n_features)
    support = rng.choice(cfg.n_features, size=cfg.n_informative, replace=False)
    w[support] = rng.choice([-1.0, 1.0], size=cfg.n_informative) * rng.uniform(0.5, 2.0, size=cfg.n_informative)
    return w


def generate_partition(
    rng: np.random.Generator,
    partition_id: int,
    n: int,
    w: np.ndarray,
) -> pd.DataFrame:
    """
    Labelled points for one partition.  Each partition gets its own feature
    mean shift, so partitions are not identically distributed.
    """
    shift = rng.normal(0.0, 0.3, size=w.shape[0])
    x = rng.normal(0.0, 1.0, size=(n, w.shape[0])) + shift
    p_pos = sigmoid(x @ w)
    label = np.where(rng.uniform(size=n) < p_pos, 1, -1)

    df = pd.DataFrame(x, columns=[f"f{j}" for j in range(w.shape[0])])
    df.insert(0, "partition_id", partition_id)
    df["label"] = label
    return df


def generate(cfg: GenConfig):
    rng = np.random.default_rng(cfg.seed)
    w = true_weights(rng, cfg)
    frames = [
        generate_partition(rng, pid, cfg.points_per_partition, w)
        for pid in range(cfg.n_partitions)
    ]
    return pd.concat(frames, ignore_index=True), w


def main(cfg: GenConfig, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    df, w = generate(cfg)

    out_csv = out_dir / "points.csv"
    df.to_csv(out_csv, index=False)

    meta = {
        "n_partitions": cfg.n_partitions,
        "points_per_partition": cfg.points_per_partition,
        "n_features": cfg.n_features,
        "n_informative": cfg.n_informative,
        "n_rows": int(df.shape[0]),
        "seed": cfg.seed,
        "true_weights": w.tolist(),
    }
    (out_dir / "meta.json").write_text(pd.Series(meta).to_json(indent=2))

    print(f"Saved: {out_csv} ({df.shape[0]} rows)")
    print(f"Class balance (label=+1): {(df['label'] == 1).mean():.3f}")


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    p.add_argument("--n_partitions", type=int, default=8)
    p.add_argument("--points_per_partition", type=int, default=250)
    p.add_argument("--n_features", type=int, default=20)
    p.add_argument("--n_informative", type=int, default=5)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--out_dir", type=str, default=str(Path("data/synthetic")))
    args = p.parse_args()

    cfg = GenConfig(
        n_partitions=args.n_partitions,
        points_per_partition=args.points_per_partition,
        n_features=args.n_features,
        n_informative=args.n_informative,
        seed=args.seed,
    )
    main(cfg, Path(args.out_dir))
