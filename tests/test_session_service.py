from __future__ import annotations

import asyncio
import random
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest

from angpau.core.errors import (
    InvalidConfiguration,
    SessionAlreadyPlayed,
    SessionInactive,
    SessionNotFound,
    StoreUnavailable,
)
from angpau.core.table import DEFAULT_LABELS, ProbabilityTable
from angpau.features.session import GameSessionService, RealtimeNotifier
from angpau.stores import ClaimOutcome
from angpau.stores.memory import MemoryPrizeConfigStore, MemorySessionStore

TABLE = ProbabilityTable.from_pairs([("₹8", 70), ("₹50", 20), ("₹100", 8), ("₹5000", 2)])


class RecordingNotifier(RealtimeNotifier):
    def __init__(self) -> None:
        super().__init__()
        self.broadcasts: list[tuple[str, dict[str, Any]]] = []
        self.results: list[tuple[str, dict[str, Any]]] = []

    async def broadcast_played(self, session_id: str, payload: dict[str, Any]) -> int:
        self.broadcasts.append((session_id, payload))
        return 1

    async def send_result(self, connection_id: str, payload: dict[str, Any]) -> bool:
        self.results.append((connection_id, payload))
        return True


def _service(**kwargs: Any) -> GameSessionService:
    kwargs.setdefault("rng", random.Random(42))
    return GameSessionService(MemorySessionStore(), prize_config=MemoryPrizeConfigStore(), **kwargs)


def test_play_returns_label_and_persists_it() -> None:
    service = _service()
    session = service.create_session(TABLE)

    result = service.play_session(session.session_id)

    assert result.label in TABLE.labels
    assert sorted(result.others + [result.label]) == sorted(TABLE.labels)
    stored = service.store.get(session.session_id)
    assert stored is not None
    assert stored.play_count == 1
    assert stored.result == result.label



def test_event_payload_carries_card_connection_and_time() -> None:
    service = _service()
    session = service.create_session(TABLE)

    result = service.play_session(session.session_id, card_index=3, connection_id="c9")
    payload = result.event_payload()

    assert payload["cardIndex"] == 3
    assert payload["connectionId"] == "c9"
    assert payload["timestamp"] == result.played_at.isoformat()


@pytest.mark.parametrize("card_index", [-1, len(TABLE)])
def test_out_of_range_card_index_keeps_the_play(card_index: int) -> None:
    service = _service()
    session = service.create_session(TABLE)

    with pytest.raises(InvalidConfiguration):
        service.play_session(session.session_id, card_index=card_index)
    assert service.get_playable(session.session_id).play_count == 0

def test_second_play_returns_the_original_label() -> None:
    service = _service()
    session = service.create_session(TABLE)
    first = service.play_session(session.session_id)

    for _ in range(3):
        with pytest.raises(SessionAlreadyPlayed) as excinfo:
            service.play_session(session.session_id)
        assert excinfo.value.result == first.label


def test_played_session_reports_already_played_on_read() -> None:
    service = _service()
    session = service.create_session(TABLE)
    first = service.play_session(session.session_id)

    with pytest.raises(SessionAlreadyPlayed) as excinfo:
        service.get_playable(session.session_id)
    assert excinfo.value.result == first.label
    assert excinfo.value.result is not None


def test_get_playable_does_not_consume_the_play() -> None:
    service = _service()
    session = service.create_session(TABLE)
    for _ in range(3):
        assert service.get_playable(session.session_id).play_count == 0
    service.play_session(session.session_id)


def test_unknown_session_is_not_found() -> None:
    service = _service()
    with pytest.raises(SessionNotFound):
        service.play_session("nope")
    with pytest.raises(SessionNotFound):
        service.get_playable("nope")
    with pytest.raises(SessionNotFound):
        service.set_active("nope", False)


def test_deactivated_session_is_never_playable() -> None:
    service = _service()
    session = service.create_session(TABLE)
    service.set_active(session.session_id, False)

    with pytest.raises(SessionInactive):
        service.play_session(session.session_id)
    with pytest.raises(SessionInactive):
        service.get_playable(session.session_id)
    stored = service.store.get(session.session_id)
    assert stored is not None and stored.play_count == 0 and stored.result is None


def test_reactivated_session_can_be_played() -> None:
    service = _service()
    session = service.create_session(TABLE)
    service.set_active(session.session_id, False)
    service.set_active(session.session_id, True)
    assert service.play_session(session.session_id).label in TABLE.labels


def test_session_keeps_its_table_snapshot() -> None:
    service = _service()
    session = service.create_session(ProbabilityTable.from_pairs([("only", 1)]))
    service.save_default_table(ProbabilityTable.from_pairs([("other", 1)]))
    assert service.play_session(session.session_id).label == "only"


def test_build_table_enforces_card_count() -> None:
    service = _service(card_count=10)
    cards = [{"label": label, "weight": 1} for label in DEFAULT_LABELS]
    assert len(service.build_table(cards)) == 10
    with pytest.raises(InvalidConfiguration):
        service.build_table(cards[:9])
    with pytest.raises(InvalidConfiguration):
        service.build_table([{**cards[0], "weight": -1}, *cards[1:]])


def test_default_table_falls_back_to_zero_weights() -> None:
    service = _service()
    assert service.default_table().labels == DEFAULT_LABELS
    saved = ProbabilityTable.from_pairs([("A", 1)])
    service.save_default_table(saved)
    assert service.default_table() == saved


class _LosingStore(MemorySessionStore):
    """Lets a rival claim land between this caller's read and its claim."""

    def claim(self, session_id: str, label: str) -> ClaimOutcome:
        super().claim(session_id, "rival-label")
        return super().claim(session_id, label)


def test_lost_race_reports_the_persisted_result() -> None:
    service = GameSessionService(_LosingStore(), rng=random.Random(1))
    session = service.create_session(TABLE)

    with pytest.raises(SessionAlreadyPlayed) as excinfo:
        service.play_session(session.session_id)
    assert excinfo.value.result == "rival-label"


class _FailingStore(MemorySessionStore):
    def claim(self, session_id: str, label: str) -> ClaimOutcome:
        raise StoreUnavailable("database down")


def test_store_failure_never_reports_a_win() -> None:
    service = GameSessionService(_FailingStore(), rng=random.Random(1))
    session = service.create_session(TABLE)
    with pytest.raises(StoreUnavailable):
        service.play_session(session.session_id)


def test_threaded_race_has_one_winner_and_consistent_losers() -> None:
    service = GameSessionService(MemorySessionStore())
    session = service.create_session(TABLE)

    def attempt(_: int) -> tuple[str, str | None]:
        try:
            return "won", service.play_session(session.session_id).label
        except SessionAlreadyPlayed as exc:
            return "lost", exc.result

    with ThreadPoolExecutor(max_workers=32) as pool:
        outcomes = list(pool.map(attempt, range(64)))

    winners = [label for kind, label in outcomes if kind == "won"]
    losers = [label for kind, label in outcomes if kind == "lost"]
    assert len(winners) == 1
    assert len(losers) == 63
    assert set(losers) == {winners[0]}


@pytest.mark.asyncio
async def test_async_race_broadcasts_exactly_once() -> None:
    notifier = RecordingNotifier()
    service = GameSessionService(MemorySessionStore(), notifier=notifier)
    session = service.create_session(TABLE)

    results = await asyncio.gather(
        *(service.play_session_async(session.session_id, connection_id=f"c{i}") for i in range(20)),
        return_exceptions=True,
    )

    wins = [r for r in results if not isinstance(r, BaseException)]
    losses = [r for r in results if isinstance(r, SessionAlreadyPlayed)]
    assert len(wins) == 1
    assert len(losses) == 19
    assert {loss.result for loss in losses} == {wins[0].label}
    assert notifier.broadcasts == [(session.session_id, wins[0].event_payload())]
    assert len(notifier.results) == 1
    winner_id = notifier.results[0][0]
    assert notifier.broadcasts[0][1]["connectionId"] == winner_id


@pytest.mark.asyncio
async def test_failed_play_emits_nothing() -> None:
    notifier = RecordingNotifier()
    service = GameSessionService(MemorySessionStore(), notifier=notifier)
    session = service.create_session(TABLE)
    await service.set_active_async(session.session_id, False)

    with pytest.raises(SessionInactive):
        await service.play_session_async(session.session_id, connection_id="c1")
    assert notifier.broadcasts == []
    assert notifier.results == []


@pytest.mark.asyncio
async def test_play_racing_deactivation_never_half_applies() -> None:
    for _ in range(20):
        service = GameSessionService(MemorySessionStore())
        session = service.create_session(TABLE)
        play, _ = await asyncio.gather(
            service.play_session_async(session.session_id),
            service.set_active_async(session.session_id, False),
            return_exceptions=True,
        )
        stored = service.store.get(session.session_id)
        assert stored is not None
        if isinstance(play, SessionInactive):
            assert stored.play_count == 0 and stored.result is None
        else:
            assert not isinstance(play, BaseException)
            assert stored.play_count == 1 and stored.result == play.label
