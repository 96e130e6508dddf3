"""Simulated winner ticker shown beside the card game."""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass

from ...core.table import ProbabilityTable

__all__ = ["SimulatedWinner", "WinnerFeed"]

_NAMES: tuple[str, ...] = (
    "Prabin T*****",
    "Suman S*****",
    "Rajesh K*****",
    "Deepak A*****",
    "Binod R*****",
    "Sunil M*****",
    "Ramesh L*****",
    "Krishna B*****",
    "Santosh G*****",
    "Dipesh T*****",
    "Nabin P*****",
    "Bishal S*****",
    "Roshan K*****",
    "Saroj A*****",
    "Manoj R*****",
)

_PHONE_PREFIXES: tuple[str, ...] = ("163", "164", "165", "166", "167", "168")


@dataclass(frozen=True, slots=True)
class SimulatedWinner:
    name: str
    phone: str
    prize: str


class WinnerFeed:
    """Masked fake winners; prizes are picked uniformly, not by table weight."""

    max_entries = 8

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        names: Sequence[str] = _NAMES,
        phone_prefixes: Sequence[str] = _PHONE_PREFIXES,
    ) -> None:
        if not names or not phone_prefixes:
            raise ValueError("winner feed needs names and phone prefixes")
        self._rng = rng or random.Random()
        self._names = tuple(names)
        self._prefixes = tuple(phone_prefixes)

    def winner(self, table: ProbabilityTable) -> SimulatedWinner:
        return SimulatedWinner(
            name=self._rng.choice(self._names),
            phone=f"+977 {self._rng.choice(self._prefixes)}*****",
            prize=self._rng.choice(table.labels),
        )

    def generate(self, table: ProbabilityTable, count: int) -> list[SimulatedWinner]:
        count = max(0, min(count, self.max_entries))
        return [self.winner(table) for _ in range(count)]
