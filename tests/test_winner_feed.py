from __future__ import annotations

import random

import pytest

from angpau.core.table import ProbabilityTable
from angpau.features.session import WinnerFeed

TABLE = ProbabilityTable.from_pairs([("₹20", 99.0), ("₹50000", 1.0)])


def test_generate_caps_at_max_entries() -> None:
    feed = WinnerFeed(random.Random(1))
    assert len(feed.generate(TABLE, 3)) == 3
    assert len(feed.generate(TABLE, 50)) == WinnerFeed.max_entries
    assert feed.generate(TABLE, -1) == []


def test_winners_are_masked() -> None:
    feed = WinnerFeed(random.Random(2), names=("Asha K*****",), phone_prefixes=("170",))
    winner = feed.winner(TABLE)
    assert winner.name == "Asha K*****"
    assert winner.phone == "+977 170*****"
    assert winner.prize in TABLE.labels


def test_prizes_ignore_weights() -> None:
    feed = WinnerFeed(random.Random(3))
    prizes = {feed.winner(TABLE).prize for _ in range(200)}
    assert prizes == {"₹20", "₹50000"}


def test_requires_names() -> None:
    with pytest.raises(ValueError):
        WinnerFeed(names=())
