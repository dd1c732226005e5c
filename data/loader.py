"""CSV loading and preprocessing shared by the training scripts.

Expected columns: ``partition_id``, ``label`` (values -1 / +1) and one
column per feature whose name starts with ``f`` (``f0``, ``f1``, ...).
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import numpy as np
import pandas as pd

LABEL = "label"
PARTITION = "partition_id"
FEATURE_PREFIX = "f"


def feature_columns(df: pd.DataFrame) -> List[str]:
    cols = [c for c in df.columns if c.startswith(FEATURE_PREFIX) and c[1:].isdigit()]
    if not cols:
        raise ValueError(f"No feature columns (named {FEATURE_PREFIX}0, {FEATURE_PREFIX}1, ...) found.")
    return sorted(cols, key=lambda c: int(c[1:]))


def load_csv(csv_path: Path) -> pd.DataFrame:
    df = pd.read_csv(csv_path)
    missing = [c for c in (LABEL, PARTITION) if c not in df.columns]
    if missing:
        raise ValueError(f"{csv_path}: missing required column(s): {', '.join(missing)}")
    return df


def train_test_split(
    df: pd.DataFrame, test_ratio: float, seed: int
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    rng = np.random.default_rng(seed)
    idx = np.arange(len(df))
    rng.shuffle(idx)
    cut = int(len(df) * (1 - test_ratio))
    return (
        df.iloc[idx[:cut]].reset_index(drop=True),
        df.iloc[idx[cut:]].reset_index(drop=True),
    )


def standardize_fit(x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    mu = x.mean(axis=0)
    sigma = x.std(axis=0) + 1e-8
    return mu, sigma


def standardize_apply(x: np.ndarray, mu: np.ndarray, sigma: np.ndarray) -> np.ndarray:
    return (x - mu) / sigma


def to_arrays(df: pd.DataFrame, features: List[str]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(features, labels, partition_ids) as NumPy arrays."""
    return (
        df[features].to_numpy(dtype=float),
        df[LABEL].to_numpy(dtype=float),
        df[PARTITION].to_numpy(),
    )
