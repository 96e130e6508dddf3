from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field

from ...core.table import ProbabilityTable
from ...stores import GameSession
from ..schemas import APIModel, ErrorPayload, PlayState
from .feed import SimulatedWinner

__all__ = [
    "CardConfig",
    "ErrorPayload",
    "LinkPayload",
    "PlayPayload",
    "PlayRequest",
    "PlayState",
    "SessionSummary",
    "SessionTablePayload",
    "TablePayload",
    "TableRequest",
    "ToggleRequest",
    "WinnerPayload",
]


class CardConfig(APIModel):
    label: str = Field(validation_alias=AliasChoices("label", "amount"))
    weight: float = Field(validation_alias=AliasChoices("weight", "probability"))


class TableRequest(APIModel):
    cards: list[CardConfig] = Field(validation_alias=AliasChoices("cardConfigs", "cards"))

    def payload(self) -> list[dict[str, Any]]:
        return [card.model_dump() for card in self.cards]


class ToggleRequest(APIModel):
    is_active: bool = Field(alias="isActive")


class TablePayload(APIModel):
    card_configs: list[CardConfig] = Field(alias="cardConfigs")

    @classmethod
    def from_table(cls, table: ProbabilityTable) -> TablePayload:
        return cls(card_configs=[CardConfig(label=e.label, weight=e.weight) for e in table.entries])


class SessionTablePayload(TablePayload):
    session_id: str = Field(alias="sessionId")


class LinkPayload(APIModel):
    session_id: str = Field(alias="sessionId")
    card_configs: list[CardConfig] = Field(alias="cardConfigs")
    created_at: datetime = Field(alias="createdAt")
    url: str

    @classmethod
    def from_session(cls, session: GameSession) -> LinkPayload:
        return cls(
            session_id=session.session_id,
            card_configs=TablePayload.from_table(session.table).card_configs,
            created_at=session.created_at,
            url=f"/angpau?session={session.session_id}",
        )


class SessionSummary(APIModel):
    session_id: str = Field(alias="sessionId")
    card_configs: list[CardConfig] = Field(alias="cardConfigs")
    created_by: str = Field(alias="createdBy")
    is_active: bool = Field(alias="isActive")
    play_count: int = Field(alias="playCount")
    result: str | None = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_session(cls, session: GameSession) -> SessionSummary:
        return cls(
            session_id=session.session_id,
            card_configs=TablePayload.from_table(session.table).card_configs,
            created_by=session.created_by,
            is_active=session.is_active,
            play_count=session.play_count,
            result=session.result,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class PlayRequest(APIModel):
    card_index: int | None = Field(default=None, ge=0, alias="cardIndex")


class PlayPayload(APIModel):
    session_id: str = Field(alias="sessionId")
    label: str
    others: list[str]
    card_index: int | None = Field(default=None, alias="cardIndex")
    played_at: datetime | None = Field(default=None, alias="timestamp")
    already_played: bool = Field(default=False, alias="alreadyPlayed")


class WinnerPayload(APIModel):
    name: str
    phone: str
    prize: str

    @classmethod
    def from_winner(cls, winner: SimulatedWinner) -> WinnerPayload:
        return cls(name=winner.name, phone=winner.phone, prize=winner.prize)
