"""Persistence contracts and the records they exchange."""

from __future__ import annotations

import enum
import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Protocol

from ..core.table import ProbabilityTable

__all__ = [
    "CatalogItem",
    "CatalogStore",
    "ClaimOutcome",
    "DailyRotationRecord",
    "GameSession",
    "PrizeConfigStore",
    "RotationItem",
    "RotationStore",
    "SessionStore",
    "new_session_id",
    "utcnow",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return secrets.token_hex(16)


class ClaimOutcome(enum.Enum):
    SUCCESS = "success"
    ALREADY_CLAIMED = "already_claimed"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"


@dataclass(frozen=True, slots=True)
class GameSession:
    session_id: str
    table: ProbabilityTable
    created_at: datetime
    updated_at: datetime
    created_by: str = "admin"
    is_active: bool = True
    play_count: int = 0
    result: str | None = None

    @property
    def playable(self) -> bool:
        return self.is_active and self.play_count == 0


@dataclass(frozen=True, slots=True)
class CatalogItem:
    item_id: str
    title: str
    image: str
    recent_win: Mapping[str, str] = field(default_factory=dict)
    active: bool = True


@dataclass(frozen=True, slots=True)
class RotationItem:
    """Catalog reference with the display fields copied at selection time."""

    item_id: str
    title: str
    image: str
    recent_win: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_catalog(cls, item: CatalogItem) -> RotationItem:
        return cls(item_id=item.item_id, title=item.title, image=item.image, recent_win=dict(item.recent_win))

    def to_payload(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "title": self.title,
            "image": self.image,
            "recent_win": dict(self.recent_win),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> RotationItem:
        return cls(
            item_id=str(payload["item_id"]),
            title=str(payload.get("title", "")),
            image=str(payload.get("image", "")),
            recent_win=dict(payload.get("recent_win") or {}),
        )


@dataclass(frozen=True, slots=True)
class DailyRotationRecord:
    day: date
    selected_items: tuple[RotationItem, ...]
    refreshed_at: datetime


class SessionStore(Protocol):
    def get(self, session_id: str) -> GameSession | None: ...

    def create(self, table: ProbabilityTable, created_by: str = "admin") -> GameSession: ...

    def claim(self, session_id: str, label: str) -> ClaimOutcome:
        """Atomically move a playable session to ``play_count == 1``."""
        ...

    def set_active(self, session_id: str, active: bool) -> GameSession | None: ...

    def list_sessions(self, limit: int = 100) -> list[GameSession]: ...


class RotationStore(Protocol):
    def get(self, day: date) -> DailyRotationRecord | None: ...

    def insert(self, record: DailyRotationRecord) -> None:
        """Persist ``record``; raises ``DuplicateRotation`` if the date exists."""
        ...

    def delete(self, day: date) -> bool: ...


class CatalogStore(Protocol):
    def list_active(self) -> list[CatalogItem]: ...

    def list_all(self) -> list[CatalogItem]: ...

    def add(self, title: str, image: str, recent_win: Mapping[str, str] | None = None) -> CatalogItem: ...

    def set_active(self, item_id: str, active: bool) -> CatalogItem | None: ...


class PrizeConfigStore(Protocol):
    def load(self) -> ProbabilityTable | None: ...

    def save(self, table: ProbabilityTable) -> None: ...
