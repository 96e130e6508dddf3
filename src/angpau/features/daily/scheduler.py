from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from ...core.errors import AngpauError
from ...stores import DailyRotationRecord
from ...stores.base import utcnow
from ..concurrency import run_blocking
from .cache import DailyRotationCache

__all__ = ["DailyRefreshScheduler"]

logger = logging.getLogger(__name__)


def _log_stopped(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("daily refresh scheduler stopped", exc_info=exc)


class DailyRefreshScheduler:
    """Calls ``force_refresh(today)`` once a day at ``refresh_at`` local time.

    ``clock`` and ``sleep`` are injectable so the loop can be driven without
    real waiting.
    """

    def __init__(
        self,
        cache: DailyRotationCache,
        *,
        refresh_at: time,
        tz: ZoneInfo,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.cache = cache
        self.refresh_at = refresh_at
        self.tz = tz
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    def next_run(self, now: datetime | None = None) -> datetime:
        local_now = (now or self._clock()).astimezone(self.tz)
        candidate = datetime.combine(local_now.date(), self.refresh_at, tzinfo=self.tz)
        if candidate <= local_now:
            candidate = datetime.combine(local_now.date() + timedelta(days=1), self.refresh_at, tzinfo=self.tz)
        return candidate

    async def run_once(self) -> DailyRotationRecord | None:
        day = self.cache.today()
        logger.info("scheduled daily refresh started", extra={"day": day.isoformat()})
        try:
            record = await run_blocking(self.cache.force_refresh, day)
        except AngpauError as exc:
            logger.warning("scheduled daily refresh skipped: %s", exc, extra={"day": day.isoformat()})
            return None
        except Exception:
            logger.exception("scheduled daily refresh failed", extra={"day": day.isoformat()})
            return None
        logger.info("scheduled daily refresh completed", extra={"day": day.isoformat()})
        return record

    async def run_forever(self, iterations: int | None = None) -> None:
        completed = 0
        target = self.next_run()
        while iterations is None or completed < iterations:
            logger.debug("next daily refresh scheduled", extra={"at": target.isoformat()})
            now = self._clock()
            # Sleeps may return early; keep waiting until the target is reached.
            while now < target:
                await self._sleep((target - now).total_seconds())
                now = self._clock()
            await self.run_once()
            completed += 1
            target = self.next_run(target)

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="daily-refresh")
            self._task.add_done_callback(_log_stopped)
            logger.info(
                "daily refresh scheduler started",
                extra={"refresh_at": self.refresh_at.strftime("%H:%M"), "timezone": str(self.tz)},
            )
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
