"""Weighted single-sample prize draws."""

from __future__ import annotations

from typing import Protocol

from .table import ProbabilityTable

__all__ = ["RandomSource", "draw", "draw_index", "reveal_others"]


class RandomSource(Protocol):
    """Subset of :class:`random.Random` the selector relies on."""

    def random(self) -> float: ...

    def randrange(self, stop: int) -> int: ...

    def shuffle(self, x: list[str]) -> None: ...


def draw_index(table: ProbabilityTable, rng: RandomSource) -> int:
    """Return the index of the drawn entry using a single uniform sample.

    Entry ``i`` is chosen with probability ``weight[i] / total``. A table whose
    weights sum to zero is drawn uniformly instead of failing.
    """

    total = table.total_weight
    if total <= 0.0:
        return rng.randrange(len(table))

    threshold = rng.random() * total
    cumulative = 0.0
    for index, entry in enumerate(table.entries):
        cumulative += entry.weight
        if cumulative > threshold:
            return index
    # Rounding can leave the running sum just below the sample.
    return len(table) - 1


def draw(table: ProbabilityTable, rng: RandomSource) -> str:
    return table.entries[draw_index(table, rng)].label


def reveal_others(table: ProbabilityTable, label: str, rng: RandomSource) -> list[str]:
    """Labels of the unpicked cards in display order.

    One occurrence of ``label`` is removed so duplicates stay visible.
    """

    others = list(table.labels)
    if label in others:
        others.remove(label)
    rng.shuffle(others)
    return others
