"""Room-based fan-out of session events to connected observers.

Delivery is best effort: a connection that fails to receive is dropped and
misses later events.  Nothing is persisted or replayed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Protocol

from ...stores.base import utcnow

__all__ = [
    "Connection",
    "EVENT_GAME_PLAYED",
    "EVENT_PLAYER_JOINED",
    "EVENT_PRIZE_RESULT",
    "RealtimeNotifier",
]

logger = logging.getLogger(__name__)

EVENT_GAME_PLAYED = "game-played"
EVENT_PRIZE_RESULT = "prize-result"
EVENT_PLAYER_JOINED = "player-joined"


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


def _envelope(event: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"event": event, "data": payload}


class RealtimeNotifier:
    """Tracks connections and the session rooms they joined.

    All methods run on the event loop, so the registries need no lock.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._rooms: defaultdict[str, set[str]] = defaultdict(set)
        self._memberships: defaultdict[str, set[str]] = defaultdict(set)

    def connect(self, connection_id: str, connection: Connection) -> None:
        self._connections[connection_id] = connection
        logger.debug("connection registered", extra={"connection_id": connection_id})

    def disconnect(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)
        for session_id in self._memberships.pop(connection_id, set()):
            members = self._rooms.get(session_id)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._rooms[session_id]
        logger.debug("connection removed", extra={"connection_id": connection_id})

    def room_members(self, session_id: str) -> set[str]:
        return set(self._rooms.get(session_id, ()))

    async def join_room(self, connection_id: str, session_id: str) -> None:
        if connection_id not in self._connections:
            raise KeyError(f"connection '{connection_id}' is not registered")
        self._rooms[session_id].add(connection_id)
        self._memberships[connection_id].add(session_id)
        logger.info("joined session room", extra={"connection_id": connection_id, "session_id": session_id})
        await self._fan_out(
            session_id,
            _envelope(
                EVENT_PLAYER_JOINED,
                {"connectionId": connection_id, "sessionId": session_id, "timestamp": utcnow().isoformat()},
            ),
            exclude=connection_id,
        )

    async def broadcast_played(self, session_id: str, payload: dict[str, Any]) -> int:
        """Push ``game-played`` to every subscriber of the room; returns deliveries."""

        return await self._fan_out(session_id, _envelope(EVENT_GAME_PLAYED, payload))

    async def send_result(self, connection_id: str, payload: dict[str, Any]) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        return await self._deliver(connection_id, connection, _envelope(EVENT_PRIZE_RESULT, payload))

    async def _fan_out(self, session_id: str, message: dict[str, Any], *, exclude: str | None = None) -> int:
        delivered = 0
        for connection_id in sorted(self._rooms.get(session_id, ())):
            if connection_id == exclude:
                continue
            connection = self._connections.get(connection_id)
            if connection is None:
                continue
            if await self._deliver(connection_id, connection, message):
                delivered += 1
        return delivered

    async def _deliver(self, connection_id: str, connection: Connection, message: dict[str, Any]) -> bool:
        try:
            await connection.send_json(message)
        except Exception:  # noqa: BLE001 - any transport failure just drops the subscriber
            logger.debug("dropping unreachable connection", extra={"connection_id": connection_id}, exc_info=True)
            self.disconnect(connection_id)
            return False
        return True
