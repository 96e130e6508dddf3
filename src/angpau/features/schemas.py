"""Pydantic base model and the error payload shared by every router."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["APIModel", "ErrorPayload", "PlayState"]

PlayState = Literal["already-played", "invalid", "retry"]


class APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ErrorPayload(APIModel):
    error: str
    state: PlayState
    already_played: bool | None = Field(default=None, alias="alreadyPlayed")
    label: str | None = None
    message: str | None = None
