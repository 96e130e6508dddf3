"""In-process stores guarded by a lock; correct for a single server process."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Mapping
from dataclasses import replace
from datetime import date

from ..core.errors import DuplicateRotation
from ..core.table import ProbabilityTable
from .base import (
    CatalogItem,
    ClaimOutcome,
    DailyRotationRecord,
    GameSession,
    new_session_id,
    utcnow,
)

__all__ = [
    "MemoryCatalogStore",
    "MemoryPrizeConfigStore",
    "MemoryRotationStore",
    "MemorySessionStore",
]


class MemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> GameSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def create(self, table: ProbabilityTable, created_by: str = "admin") -> GameSession:
        now = utcnow()
        with self._lock:
            session_id = new_session_id()
            while session_id in self._sessions:
                session_id = new_session_id()
            session = GameSession(
                session_id=session_id,
                table=table,
                created_at=now,
                updated_at=now,
                created_by=created_by,
            )
            self._sessions[session_id] = session
        return session

    def claim(self, session_id: str, label: str) -> ClaimOutcome:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return ClaimOutcome.NOT_FOUND
            if not session.is_active:
                return ClaimOutcome.INACTIVE
            if session.play_count != 0:
                return ClaimOutcome.ALREADY_CLAIMED
            self._sessions[session_id] = replace(session, play_count=1, result=label, updated_at=utcnow())
            return ClaimOutcome.SUCCESS

    def set_active(self, session_id: str, active: bool) -> GameSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            updated = replace(session, is_active=active, updated_at=utcnow())
            self._sessions[session_id] = updated
            return updated

    def list_sessions(self, limit: int = 100) -> list[GameSession]:
        # Dicts keep insertion order, so reversing yields newest first.
        with self._lock:
            sessions = list(reversed(self._sessions.values()))
        return sessions[:limit]


class MemoryRotationStore:
    def __init__(self) -> None:
        self._records: dict[date, DailyRotationRecord] = {}
        self._lock = threading.Lock()

    def get(self, day: date) -> DailyRotationRecord | None:
        with self._lock:
            return self._records.get(day)

    def insert(self, record: DailyRotationRecord) -> None:
        with self._lock:
            if record.day in self._records:
                raise DuplicateRotation(f"rotation for {record.day.isoformat()} already exists")
            self._records[record.day] = record

    def delete(self, day: date) -> bool:
        with self._lock:
            return self._records.pop(day, None) is not None


class MemoryCatalogStore:
    def __init__(self) -> None:
        self._items: dict[str, CatalogItem] = {}
        self._lock = threading.Lock()

    def list_active(self) -> list[CatalogItem]:
        with self._lock:
            return [item for item in self._items.values() if item.active]

    def list_all(self) -> list[CatalogItem]:
        with self._lock:
            return list(self._items.values())

    def add(self, title: str, image: str, recent_win: Mapping[str, str] | None = None) -> CatalogItem:
        item = CatalogItem(item_id=uuid.uuid4().hex, title=title, image=image, recent_win=dict(recent_win or {}))
        with self._lock:
            self._items[item.item_id] = item
        return item

    def set_active(self, item_id: str, active: bool) -> CatalogItem | None:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            updated = replace(item, active=active)
            self._items[item_id] = updated
            return updated


class MemoryPrizeConfigStore:
    def __init__(self) -> None:
        self._table: ProbabilityTable | None = None
        self._lock = threading.Lock()

    def load(self) -> ProbabilityTable | None:
        with self._lock:
            return self._table

    def save(self, table: ProbabilityTable) -> None:
        with self._lock:
            self._table = table
