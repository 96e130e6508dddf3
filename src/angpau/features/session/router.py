from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response

from ...core.errors import AngpauError
from ..responses import error_payload, error_response
from .feed import WinnerFeed
from .notifier import RealtimeNotifier
from .schemas import (
    LinkPayload,
    PlayPayload,
    PlayRequest,
    SessionSummary,
    SessionTablePayload,
    TablePayload,
    TableRequest,
    ToggleRequest,
    WinnerPayload,
)
from .service import GameSessionService

__all__ = ["create_realtime_router", "create_session_router"]

logger = logging.getLogger(__name__)

PLAY_EVENTS = frozenset({"play-angpau", "play-session"})


class _SessionController:
    def __init__(self, service: GameSessionService, feed: WinnerFeed) -> None:
        self.service = service
        self.feed = feed

    def _json_response(self, data: Any, status_code: int = 200) -> JSONResponse:
        return JSONResponse(data, status_code=status_code)

    # ------------------------------------------------------------------ config
    async def get_config(self) -> Response:
        try:
            table = await self.service.default_table_async()
        except AngpauError as exc:
            return error_response(exc)
        return self._json_response(TablePayload.from_table(table).to_dict())

    async def save_config(self, body: TableRequest) -> Response:
        try:
            table = self.service.build_table(body.payload())
            await self.service.save_default_table_async(table)
        except AngpauError as exc:
            return error_response(exc)
        return self._json_response(
            {"message": "Prize configuration saved", "config": TablePayload.from_table(table).to_dict()}
        )

    # ------------------------------------------------------------------ admin
    async def create_link(self, body: TableRequest) -> Response:
        try:
            table = self.service.build_table(body.payload())
            session = await self.service.create_session_async(table)
        except AngpauError as exc:
            return error_response(exc)
        return self._json_response(LinkPayload.from_session(session).to_dict(), status_code=201)

    async def list_sessions(self, limit: int) -> Response:
        try:
            sessions = await self.service.list_sessions_async(limit)
        except AngpauError as exc:
            return error_response(exc)
        return self._json_response([SessionSummary.from_session(s).to_dict() for s in sessions])

    async def toggle(self, sid: str, body: ToggleRequest) -> Response:
        try:
            session = await self.service.set_active_async(sid, body.is_active)
        except AngpauError as exc:
            return error_response(exc)
        return self._json_response(SessionSummary.from_session(session).to_dict())

    # ------------------------------------------------------------------ player
    async def session_table(self, sid: str) -> Response:
        try:
            session = await self.service.get_playable_async(sid)
        except AngpauError as exc:
            return error_response(exc)
        payload = SessionTablePayload(
            session_id=session.session_id,
            card_configs=TablePayload.from_table(session.table).card_configs,
        )
        return self._json_response(payload.to_dict())

    async def play(self, sid: str, body: PlayRequest | None) -> Response:
        card_index = body.card_index if body is not None else None
        try:
            result = await self.service.play_session_async(sid, card_index=card_index)
        except AngpauError as exc:
            return error_response(exc)
        payload = PlayPayload(
            session_id=result.session_id,
            label=result.label,
            others=result.others,
            card_index=result.card_index,
            played_at=result.played_at,
        )
        return self._json_response(payload.to_dict())

    async def winner_feed(self, count: int) -> Response:
        try:
            table = await self.service.default_table_async()
        except AngpauError as exc:
            return error_response(exc)
        winners = self.feed.generate(table, count)
        return self._json_response([WinnerPayload.from_winner(w).to_dict() for w in winners])


def create_session_router(
    service: GameSessionService,
    *,
    admin: Callable[..., None],
    feed: WinnerFeed | None = None,
) -> APIRouter:
    controller = _SessionController(service, feed or WinnerFeed())
    router = APIRouter(prefix="/api/angpau", tags=["angpau"])
    admin_only = [Depends(admin)]

    @router.get("/config")
    async def get_config() -> Response:
        return await controller.get_config()

    @router.put("/config", dependencies=admin_only)
    async def save_config(body: TableRequest) -> Response:
        return await controller.save_config(body)

    @router.post("/links", dependencies=admin_only)
    async def create_link(body: TableRequest) -> Response:
        return await controller.create_link(body)

    @router.post("/generate-link", dependencies=admin_only)
    async def create_link_legacy(body: TableRequest) -> Response:
        return await controller.create_link(body)

    @router.get("/sessions", dependencies=admin_only)
    async def list_sessions(limit: int = Query(default=100, ge=1, le=1000)) -> Response:
        return await controller.list_sessions(limit)

    @router.patch("/sessions/{sid}", dependencies=admin_only)
    async def toggle_session(sid: str, body: ToggleRequest) -> Response:
        return await controller.toggle(sid, body)

    @router.get("/session/{sid}")
    async def get_session(sid: str) -> Response:
        return await controller.session_table(sid)

    @router.post("/session/{sid}/play")
    async def play_session(sid: str, body: PlayRequest | None = None) -> Response:
        return await controller.play(sid, body)

    @router.get("/winners/feed")
    async def winner_feed(count: int = Query(default=WinnerFeed.max_entries, ge=1, le=WinnerFeed.max_entries)) -> Response:
        return await controller.winner_feed(count)

    return router


class _RealtimeController:
    def __init__(self, service: GameSessionService, notifier: RealtimeNotifier) -> None:
        self.service = service
        self.notifier = notifier

    async def _send_error(self, websocket: WebSocket, message: str, *, state: str = "invalid") -> None:
        await websocket.send_json({"event": "error", "data": {"error": message, "state": state}})

    async def handle(self, connection_id: str, websocket: WebSocket, raw: str) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            await self._send_error(websocket, "malformed message")
            return
        if not isinstance(message, dict):
            await self._send_error(websocket, "malformed message")
            return

        event = message.get("event")
        data = message.get("data") or {}
        session_id = data.get("sessionId") if isinstance(data, dict) else None
        if not isinstance(session_id, str) or not session_id:
            await self._send_error(websocket, "sessionId is required")
            return

        if event == "join-session":
            await self.notifier.join_room(connection_id, session_id)
            await websocket.send_json({"event": "joined", "data": {"sessionId": session_id}})
        elif event in PLAY_EVENTS:
            card_index = data.get("cardIndex")
            if card_index is not None and (isinstance(card_index, bool) or not isinstance(card_index, int)):
                await self._send_error(websocket, "cardIndex must be an integer")
                return
            try:
                await self.service.play_session_async(
                    session_id, connection_id=connection_id, card_index=card_index
                )
            except AngpauError as exc:
                await websocket.send_json({"event": "error", "data": error_payload(exc).to_dict()})
        else:
            await self._send_error(websocket, f"unknown event {event!r}")


def create_realtime_router(service: GameSessionService, notifier: RealtimeNotifier) -> APIRouter:
    controller = _RealtimeController(service, notifier)
    router = APIRouter(tags=["realtime"])

    @router.websocket("/ws")
    async def realtime(websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        notifier.connect(connection_id, websocket)
        await websocket.send_json({"event": "connected", "data": {"connectionId": connection_id}})
        try:
            while True:
                raw = await websocket.receive_text()
                await controller.handle(connection_id, websocket, raw)
        except WebSocketDisconnect:
            logger.debug("websocket closed", extra={"connection_id": connection_id})
        finally:
            notifier.disconnect(connection_id)

    return router
