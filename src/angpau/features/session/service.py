from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...core.errors import InvalidConfiguration, SessionAlreadyPlayed, SessionInactive, SessionNotFound
from ...core.selector import RandomSource, draw, reveal_others
from ...core.table import ProbabilityTable, default_table
from ...stores import ClaimOutcome, GameSession, PrizeConfigStore, SessionStore
from ...stores.base import utcnow
from ..concurrency import run_blocking
from .notifier import RealtimeNotifier

__all__ = ["GameSessionService", "PlayResult"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayResult:
    """Outcome of the call whose claim succeeded."""

    session_id: str
    label: str
    others: list[str] = field(default_factory=list)
    card_index: int | None = None
    connection_id: str | None = None
    played_at: datetime = field(default_factory=utcnow)

    def event_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "sessionId": self.session_id,
            "label": self.label,
            "others": list(self.others),
            "timestamp": self.played_at.isoformat(),
        }
        if self.card_index is not None:
            payload["cardIndex"] = self.card_index
        if self.connection_id is not None:
            payload["connectionId"] = self.connection_id
        return payload


class _LockedRandom:
    """Serialises access to a shared generator across worker threads."""

    def __init__(self, rng: random.Random) -> None:
        self._rng = rng
        self._lock = threading.Lock()

    def random(self) -> float:
        with self._lock:
            return self._rng.random()

    def randrange(self, stop: int) -> int:
        with self._lock:
            return self._rng.randrange(stop)

    def shuffle(self, x: list[str]) -> None:
        with self._lock:
            self._rng.shuffle(x)


class GameSessionService:
    """Owns the play-once lifecycle of shareable game sessions.

    The store's conditional ``claim`` is the only mutual exclusion; this class
    keeps no per-session state of its own, so several processes may share one
    store.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        prize_config: PrizeConfigStore | None = None,
        notifier: RealtimeNotifier | None = None,
        rng: RandomSource | None = None,
        card_count: int | None = None,
    ) -> None:
        self.store = store
        self.prize_config = prize_config
        self.notifier = notifier
        self.card_count = card_count
        self._rng: RandomSource = rng if rng is not None else _LockedRandom(random.Random())

    # ------------------------------------------------------------------ config
    def build_table(self, cards: Iterable[Mapping[str, Any]]) -> ProbabilityTable:
        """Validate an admin-supplied table, including the configured card count."""

        return ProbabilityTable.from_payload(cards, expected_length=self.card_count)

    def default_table(self) -> ProbabilityTable:
        stored = self.prize_config.load() if self.prize_config is not None else None
        return stored if stored is not None else default_table()

    def save_default_table(self, table: ProbabilityTable) -> ProbabilityTable:
        if self.prize_config is None:
            raise RuntimeError("no prize config store configured")
        self.prize_config.save(table)
        logger.info("default prize table saved", extra={"cards": len(table)})
        return table

    # ------------------------------------------------------------------ admin
    def create_session(self, table: ProbabilityTable, created_by: str = "admin") -> GameSession:
        session = self.store.create(table, created_by)
        logger.info("session created", extra={"session_id": session.session_id, "cards": len(table)})
        return session

    def set_active(self, session_id: str, active: bool) -> GameSession:
        session = self.store.set_active(session_id, active)
        if session is None:
            raise SessionNotFound(session_id)
        logger.info("session active flag changed", extra={"session_id": session_id, "active": active})
        return session

    def list_sessions(self, limit: int = 100) -> list[GameSession]:
        return self.store.list_sessions(limit)

    # ------------------------------------------------------------------ player
    def get_playable(self, session_id: str) -> GameSession:
        """Return the session if it can still be played; never consumes the play."""

        session = self._require_session(session_id)
        self._check_playable(session)
        return session

    def play_session(
        self,
        session_id: str,
        *,
        card_index: int | None = None,
        connection_id: str | None = None,
    ) -> PlayResult:
        """Claim the single play of ``session_id``.

        ``card_index`` is the face-down card the player opened; it only labels
        the events and has no influence on the draw.
        """

        session = self._require_session(session_id)
        self._check_playable(session)
        if card_index is not None and not 0 <= card_index < len(session.table):
            raise InvalidConfiguration(f"card index must be between 0 and {len(session.table) - 1}")

        label = draw(session.table, self._rng)
        outcome = self.store.claim(session_id, label)

        if outcome is ClaimOutcome.SUCCESS:
            logger.info("session claimed", extra={"session_id": session_id, "label": label})
            return PlayResult(
                session_id=session_id,
                label=label,
                others=reveal_others(session.table, label, self._rng),
                card_index=card_index,
                connection_id=connection_id,
            )
        if outcome is ClaimOutcome.ALREADY_CLAIMED:
            persisted = self.store.get(session_id)
            result = persisted.result if persisted is not None else None
            logger.info("lost claim race", extra={"session_id": session_id, "label": result})
            raise SessionAlreadyPlayed(session_id, result)
        if outcome is ClaimOutcome.INACTIVE:
            raise SessionInactive(session_id)
        raise SessionNotFound(session_id)

    # ------------------------------------------------------------------ async
    async def default_table_async(self) -> ProbabilityTable:
        return await run_blocking(self.default_table)

    async def save_default_table_async(self, table: ProbabilityTable) -> ProbabilityTable:
        return await run_blocking(self.save_default_table, table)

    async def create_session_async(self, table: ProbabilityTable, created_by: str = "admin") -> GameSession:
        return await run_blocking(self.create_session, table, created_by)

    async def set_active_async(self, session_id: str, active: bool) -> GameSession:
        return await run_blocking(self.set_active, session_id, active)

    async def list_sessions_async(self, limit: int = 100) -> list[GameSession]:
        return await run_blocking(self.list_sessions, limit)

    async def get_playable_async(self, session_id: str) -> GameSession:
        return await run_blocking(self.get_playable, session_id)

    async def play_session_async(
        self,
        session_id: str,
        *,
        connection_id: str | None = None,
        card_index: int | None = None,
    ) -> PlayResult:
        """Play and notify observers.

        Events fire only after this call's own claim succeeded, so each session
        produces exactly one ``game-played`` broadcast.
        """

        result = await run_blocking(
            self.play_session, session_id, card_index=card_index, connection_id=connection_id
        )
        if self.notifier is not None:
            payload = result.event_payload()
            if connection_id is not None:
                await self.notifier.send_result(connection_id, payload)
            await self.notifier.broadcast_played(session_id, payload)
        return result

    # ------------------------------------------------------------------ helpers
    def _require_session(self, session_id: str) -> GameSession:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    @staticmethod
    def _check_playable(session: GameSession) -> None:
        if not session.is_active:
            raise SessionInactive(session.session_id)
        if session.play_count > 0:
            raise SessionAlreadyPlayed(session.session_id, session.result)
