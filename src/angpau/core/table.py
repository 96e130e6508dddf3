from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import InvalidConfiguration

__all__ = ["DEFAULT_LABELS", "PrizeEntry", "ProbabilityTable", "default_table"]

DEFAULT_LABELS: tuple[str, ...] = (
    "₹8",
    "₹50",
    "₹100",
    "₹300",
    "₹1000",
    "₹3000",
    "₹800",
    "₹5000",
    "₹2000",
    "₹1500",
)


@dataclass(frozen=True, slots=True)
class PrizeEntry:
    label: str
    weight: float


def _coerce_entry(index: int, raw: object) -> PrizeEntry:
    if isinstance(raw, PrizeEntry):
        label, weight = raw.label, raw.weight
    elif isinstance(raw, Mapping):
        label = raw.get("label", raw.get("amount"))
        weight = raw.get("weight", raw.get("probability"))
    elif isinstance(raw, (tuple, list)) and len(raw) == 2:
        label, weight = raw
    else:
        raise InvalidConfiguration(f"card {index + 1} must be a (label, weight) pair")

    if not isinstance(label, str) or not label.strip():
        raise InvalidConfiguration(f"card {index + 1} must have a label")
    if isinstance(weight, bool) or not isinstance(weight, (int, float)):
        raise InvalidConfiguration(f"card {index + 1} must have a numeric weight")
    value = float(weight)
    if not math.isfinite(value):
        raise InvalidConfiguration(f"card {index + 1} weight must be finite")
    if value < 0.0:
        raise InvalidConfiguration(f"card {index + 1} weight must not be negative")
    return PrizeEntry(label=label.strip(), weight=value)


@dataclass(frozen=True, slots=True)
class ProbabilityTable:
    """Ordered weighted prize labels defining one discrete distribution.

    Weights are relative, not percentages. An all-zero table is valid and is
    drawn uniformly by :func:`angpau.core.selector.draw`.
    """

    entries: tuple[PrizeEntry, ...]

    def __post_init__(self) -> None:
        entries = tuple(_coerce_entry(index, raw) for index, raw in enumerate(self.entries))
        if not entries:
            raise InvalidConfiguration("probability table needs at least one card")
        object.__setattr__(self, "entries", entries)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[object],
        *,
        expected_length: int | None = None,
    ) -> ProbabilityTable:
        entries = tuple(pairs)
        if expected_length is not None and len(entries) != expected_length:
            raise InvalidConfiguration(
                f"card configs must be an array of {expected_length} items (got {len(entries)})"
            )
        return cls(entries)

    @classmethod
    def from_payload(
        cls,
        payload: Iterable[Mapping[str, Any]],
        *,
        expected_length: int | None = None,
    ) -> ProbabilityTable:
        if isinstance(payload, (str, bytes)) or not isinstance(payload, Iterable):
            raise InvalidConfiguration("card configs must be an array")
        return cls.from_pairs(list(payload), expected_length=expected_length)

    def to_payload(self) -> list[dict[str, Any]]:
        return [{"label": entry.label, "weight": entry.weight} for entry in self.entries]

    @property
    def total_weight(self) -> float:
        return math.fsum(entry.weight for entry in self.entries)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(entry.label for entry in self.entries)

    @property
    def weights(self) -> tuple[float, ...]:
        return tuple(entry.weight for entry in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PrizeEntry]:
        return iter(self.entries)


def default_table(labels: Iterable[str] = DEFAULT_LABELS) -> ProbabilityTable:
    """All-zero table over ``labels``; draws fall back to equal odds."""

    return ProbabilityTable.from_pairs((label, 0.0) for label in labels)
