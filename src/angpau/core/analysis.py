"""Empirical checks of a table's draw distribution."""

from __future__ import annotations

import numpy as np

from .selector import RandomSource, draw_index
from .table import ProbabilityTable

__all__ = ["draw_frequencies", "expected_frequencies", "max_abs_deviation"]


def expected_frequencies(table: ProbabilityTable) -> np.ndarray:
    weights = np.asarray(table.weights, dtype=float)
    total = float(weights.sum())
    if total <= 0.0:
        return np.full(len(table), 1.0 / len(table))
    return weights / total


def draw_frequencies(table: ProbabilityTable, draws: int, rng: RandomSource) -> np.ndarray:
    """Observed share of each entry over ``draws`` independent draws."""

    if draws <= 0:
        raise ValueError("draws must be positive")
    indices = np.fromiter((draw_index(table, rng) for _ in range(draws)), dtype=np.int64, count=draws)
    counts = np.bincount(indices, minlength=len(table))
    return counts / float(draws)


def max_abs_deviation(observed: np.ndarray, expected: np.ndarray) -> float:
    return float(np.max(np.abs(observed - expected)))
