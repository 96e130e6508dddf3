from __future__ import annotations

import logging
import random
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from ..core.settings import Settings
from ..features.admin import admin_guard
from ..features.daily import DailyRefreshScheduler, DailyRotationCache, create_daily_router
from ..features.responses import validation_error_response
from ..features.session import (
    GameSessionService,
    RealtimeNotifier,
    WinnerFeed,
    create_realtime_router,
    create_session_router,
)
from ..stores import Stores, build_stores
from ..stores.base import utcnow

__all__ = ["create_app"]

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    stores: Stores | None = None,
    clock: Callable[[], datetime] = utcnow,
    rng: random.Random | None = None,
) -> FastAPI:
    """Wire stores, services and routers for one process.

    The storage backend is chosen here, once; request handlers never branch on it.
    """

    settings = settings or Settings.from_env()
    stores = stores or build_stores(settings)
    notifier = RealtimeNotifier()
    service = GameSessionService(
        stores.sessions,
        prize_config=stores.prize_config,
        notifier=notifier,
        rng=rng,
        card_count=settings.card_count,
    )
    cache = DailyRotationCache(
        stores.rotations,
        stores.catalog,
        desired_count=settings.daily_count,
        tz=settings.tzinfo,
        clock=clock,
        rng=rng,
    )
    scheduler = DailyRefreshScheduler(cache, refresh_at=settings.refresh_time, tz=settings.tzinfo, clock=clock)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if settings.scheduler_enabled:
            scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()

    app = FastAPI(title="Angpau", lifespan=lifespan)
    app.add_exception_handler(RequestValidationError, validation_error_response)
    app.state.settings = settings
    app.state.service = service
    app.state.cache = cache
    app.state.notifier = notifier
    app.state.scheduler = scheduler

    admin = admin_guard(settings.admin_token)
    app.include_router(create_session_router(service, admin=admin, feed=WinnerFeed(rng)))
    app.include_router(create_realtime_router(service, notifier))
    app.include_router(create_daily_router(cache, admin=admin, refresh_at=settings.refresh_time))

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    logger.info(
        "application configured",
        extra={"store": settings.store_backend, "cards": settings.card_count, "daily": settings.daily_count},
    )
    return app
