"""
Impurity measures shared by the targets.

Every function accepts per-class counts (or running sums) along the last axis
so the same code scores a single node and a whole sweep of candidate
boundaries at once.
"""

from __future__ import annotations

import numpy as np


def gini_from_counts(counts: np.ndarray) -> np.ndarray:
    """Gini impurity ``1 - sum(p_k^2)``; empty nodes score 0."""
    counts = np.asarray(counts, dtype=float)
    n = counts.sum(axis=-1)
    safe = np.where(n > 0, n, 1.0)
    proportions = counts / safe[..., None]
    return np.where(n > 0, 1.0 - np.sum(proportions**2, axis=-1), 0.0)


def entropy_from_counts(counts: np.ndarray) -> np.ndarray:
    """Shannon entropy in bits; empty nodes score 0."""
    counts = np.asarray(counts, dtype=float)
    n = counts.sum(axis=-1)
    safe = np.where(n > 0, n, 1.0)
    proportions = counts / safe[..., None]
    # Avoid log(0)
    logs = np.log2(np.where(proportions > 0, proportions, 1.0))
    return np.where(n > 0, -np.sum(proportions * logs, axis=-1), 0.0)


def variance_from_sums(n: np.ndarray, total: np.ndarray, total_sq: np.ndarray) -> np.ndarray:
    """Mean squared deviation from running sums ``n``, ``sum(y)``, ``sum(y^2)``."""
    n = np.asarray(n, dtype=float)
    safe = np.where(n > 0, n, 1.0)
    mean = np.asarray(total, dtype=float) / safe
    var = np.asarray(total_sq, dtype=float) / safe - mean**2
    # cancellation can leave tiny negatives
    return np.where(n > 0, np.maximum(var, 0.0), 0.0)


def weighted_impurity(sizes: np.ndarray, impurities: np.ndarray) -> np.ndarray:
    """
    Size-weighted mean of group impurities.

    Parameters
    ----------
    sizes, impurities : np.ndarray
        Arrays with the groups along the last axis (e.g. left, right, missing).

    Returns
    -------
    np.ndarray
        ``sum(n_g * imp_g) / sum(n_g)``, or 0 where every group is empty.
    """
    sizes = np.asarray(sizes, dtype=float)
    total = sizes.sum(axis=-1)
    num = np.sum(sizes * np.asarray(impurities, dtype=float), axis=-1)
    return np.where(total > 0, num / np.where(total > 0, total, 1.0), 0.0)
