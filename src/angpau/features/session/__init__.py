"""Session feature: play-once service, realtime notifier, schemas, and routers."""

from .feed import SimulatedWinner, WinnerFeed
from .notifier import RealtimeNotifier
from .router import create_realtime_router, create_session_router
from .schemas import ErrorPayload, LinkPayload, PlayPayload, SessionSummary, TablePayload, TableRequest
from .service import GameSessionService, PlayResult

__all__ = [
    "ErrorPayload",
    "GameSessionService",
    "LinkPayload",
    "PlayPayload",
    "PlayResult",
    "RealtimeNotifier",
    "SessionSummary",
    "SimulatedWinner",
    "TablePayload",
    "TableRequest",
    "WinnerFeed",
    "create_realtime_router",
    "create_session_router",
]
