from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from ...core.errors import AngpauError
from ..responses import error_response
from ..concurrency import run_blocking
from .cache import DailyRotationCache
from .schemas import (
    CatalogItemPayload,
    CatalogItemRequest,
    CatalogToggleRequest,
    DailyItemPayload,
    RefreshPayload,
)

__all__ = ["create_daily_router"]

logger = logging.getLogger(__name__)


class _DailyController:
    def __init__(self, cache: DailyRotationCache, refresh_at: time) -> None:
        self.cache = cache
        self.refresh_at = refresh_at

    async def daily(self) -> Response:
        try:
            record = await run_blocking(self.cache.get_or_select, self.cache.today())
        except AngpauError as exc:
            return error_response(exc)
        logger.debug("serving daily games", extra={"day": record.day.isoformat(), "count": len(record.selected_items)})
        return JSONResponse([item.to_dict() for item in DailyItemPayload.from_record(record)])

    async def refresh(self) -> Response:
        day = self.cache.today()
        try:
            active = await run_blocking(self.cache.catalog.list_active)
            record = await run_blocking(self.cache.force_refresh, day)
        except AngpauError as exc:
            return error_response(exc)
        payload = RefreshPayload(
            message="Daily games refreshed successfully (manual trigger)",
            total_active_games=len(active),
            new_games=[item.title for item in record.selected_items],
            day=record.day,
            last_refresh=record.refreshed_at,
            next_refresh=self.refresh_at.strftime("%H:%M"),
        )
        return JSONResponse(payload.to_dict())

    async def catalog(self) -> Response:
        try:
            items = await run_blocking(self.cache.catalog.list_all)
        except AngpauError as exc:
            return error_response(exc)
        return JSONResponse([CatalogItemPayload.from_item(item).to_dict() for item in items])

    async def add(self, body: CatalogItemRequest) -> Response:
        try:
            item = await run_blocking(self.cache.catalog.add, body.title, body.image, body.win())
        except AngpauError as exc:
            return error_response(exc)
        return JSONResponse(CatalogItemPayload.from_item(item).to_dict(), status_code=201)

    async def toggle(self, item_id: str, body: CatalogToggleRequest) -> Response:
        try:
            item = await run_blocking(self.cache.catalog.set_active, item_id, body.active)
        except AngpauError as exc:
            return error_response(exc)
        if item is None:
            return JSONResponse({"error": "Game not found", "state": "invalid"}, status_code=404)
        return JSONResponse(CatalogItemPayload.from_item(item).to_dict())


def create_daily_router(
    cache: DailyRotationCache,
    *,
    admin: Callable[..., None],
    refresh_at: time,
) -> APIRouter:
    controller = _DailyController(cache, refresh_at)
    router = APIRouter(prefix="/api/games", tags=["games"])
    admin_only = [Depends(admin)]

    @router.get("/daily")
    async def daily_games() -> Response:
        return await controller.daily()

    @router.post("/refresh", dependencies=admin_only)
    async def refresh_games() -> Response:
        return await controller.refresh()

    @router.get("", dependencies=admin_only)
    async def list_games() -> Response:
        return await controller.catalog()

    @router.post("", dependencies=admin_only)
    async def add_game(body: CatalogItemRequest) -> Response:
        return await controller.add(body)

    @router.patch("/{item_id}", dependencies=admin_only)
    async def toggle_game(item_id: str, body: CatalogToggleRequest) -> Response:
        return await controller.toggle(item_id, body)

    return router
