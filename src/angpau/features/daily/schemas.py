from __future__ import annotations

from datetime import date, datetime

from pydantic import AliasChoices, Field

from ...stores import CatalogItem, DailyRotationRecord
from ..schemas import APIModel

__all__ = ["CatalogItemPayload", "CatalogItemRequest", "CatalogToggleRequest", "DailyItemPayload", "RefreshPayload"]

_DEFAULT_WIN = {"amount": "$5,000", "player": "Lucky***Player", "comment": "Amazing game! Just won big!"}


class DailyItemPayload(APIModel):
    id: int
    game_id: str = Field(alias="gameId")
    title: str
    image: str
    recent_win: dict[str, str] = Field(alias="recentWin")

    @classmethod
    def from_record(cls, record: DailyRotationRecord) -> list[DailyItemPayload]:
        return [
            cls(
                id=index + 1,
                game_id=item.item_id,
                title=item.title,
                image=f"/images/{item.image}",
                recent_win=dict(item.recent_win),
            )
            for index, item in enumerate(record.selected_items)
        ]


class RefreshPayload(APIModel):
    message: str = "Daily games refreshed successfully"
    success: bool = True
    total_active_games: int = Field(alias="totalActiveGames")
    new_games: list[str] = Field(alias="newGames")
    day: date = Field(alias="date")
    last_refresh: datetime = Field(alias="lastRefresh")
    next_refresh: str = Field(alias="nextRefresh")


class CatalogItemRequest(APIModel):
    title: str = Field(min_length=1, max_length=100)
    image: str = Field(min_length=1, validation_alias=AliasChoices("image", "selectedImage"))
    recent_win: dict[str, str] | None = Field(default=None, alias="recentWin")

    def win(self) -> dict[str, str]:
        return {**_DEFAULT_WIN, **(self.recent_win or {})}


class CatalogToggleRequest(APIModel):
    active: bool


class CatalogItemPayload(APIModel):
    id: str
    title: str
    image: str
    recent_win: dict[str, str] = Field(alias="recentWin")
    active: bool

    @classmethod
    def from_item(cls, item: CatalogItem) -> CatalogItemPayload:
        return cls(id=item.item_id, title=item.title, image=item.image, recent_win=dict(item.recent_win), active=item.active)
