from __future__ import annotations

import asyncio
import logging
import random
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from angpau.features.daily import DailyRefreshScheduler, DailyRotationCache
from angpau.stores import DailyRotationRecord, Stores, memory_stores

IST = ZoneInfo("Asia/Kolkata")


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


class DrowsyClock(FakeClock):
    """Wakes up halfway through every requested sleep."""

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds / 2 if seconds > 1 else seconds)


def _scheduler(clock: FakeClock, *, games: int = 6) -> tuple[DailyRefreshScheduler, Stores]:
    stores = memory_stores()
    for i in range(games):
        stores.catalog.add(f"Game {i}", f"game-{i}.png")
    cache = DailyRotationCache(stores.rotations, stores.catalog, tz=IST, clock=clock, rng=random.Random(3))
    scheduler = DailyRefreshScheduler(cache, refresh_at=time(2, 0), tz=IST, clock=clock, sleep=clock.sleep)
    return scheduler, stores


def _ist(*args: int) -> datetime:
    return datetime(*args, tzinfo=IST)


def test_next_run_later_today() -> None:
    scheduler, _ = _scheduler(FakeClock(_ist(2026, 3, 15, 1, 30)))
    assert scheduler.next_run() == _ist(2026, 3, 15, 2, 0)


def test_next_run_rolls_to_tomorrow_once_passed() -> None:
    scheduler, _ = _scheduler(FakeClock(_ist(2026, 3, 15, 9, 0)))
    assert scheduler.next_run() == _ist(2026, 3, 16, 2, 0)
    assert scheduler.next_run(_ist(2026, 3, 15, 2, 0)) == _ist(2026, 3, 16, 2, 0)


def test_next_run_converts_from_utc() -> None:
    scheduler, _ = _scheduler(FakeClock(_ist(2026, 3, 15, 1, 30)))
    # 21:00 UTC is already 02:30 the next morning in India.
    now = datetime(2026, 3, 14, 21, 0, tzinfo=timezone.utc)
    assert scheduler.next_run(now) == _ist(2026, 3, 16, 2, 0)


@pytest.mark.asyncio
async def test_run_forever_refreshes_each_morning() -> None:
    clock = FakeClock(_ist(2026, 3, 15, 1, 30))
    scheduler, stores = _scheduler(clock)

    await scheduler.run_forever(iterations=2)

    assert clock.sleeps == [1800.0, 86400.0]
    assert stores.rotations.get(date(2026, 3, 15)) is not None
    assert stores.rotations.get(date(2026, 3, 16)) is not None


@pytest.mark.asyncio
async def test_early_wakeups_do_not_fire_early() -> None:
    clock = DrowsyClock(_ist(2026, 3, 15, 1, 0))
    scheduler, stores = _scheduler(clock)

    await scheduler.run_forever(iterations=1)

    assert clock.now >= _ist(2026, 3, 15, 2, 0)
    assert len(clock.sleeps) > 1
    record = stores.rotations.get(date(2026, 3, 15))
    assert record is not None
    assert record.refreshed_at >= _ist(2026, 3, 15, 2, 0)


@pytest.mark.asyncio
async def test_failed_refresh_keeps_the_loop_alive(caplog: pytest.LogCaptureFixture) -> None:
    clock = FakeClock(_ist(2026, 3, 15, 1, 30))
    scheduler, stores = _scheduler(clock, games=0)

    with caplog.at_level(logging.WARNING, logger="angpau.features.daily.scheduler"):
        await scheduler.run_forever(iterations=2)

    assert len(clock.sleeps) == 2
    assert "skipped" in caplog.text
    assert stores.rotations.get(date(2026, 3, 15)) is None


@pytest.mark.asyncio
async def test_run_once_replaces_todays_selection() -> None:
    clock = FakeClock(_ist(2026, 3, 15, 12, 0))
    scheduler, stores = _scheduler(clock, games=20)
    before = scheduler.cache.get_or_select(date(2026, 3, 15))

    record = await scheduler.run_once()

    assert record is not None
    assert record.day == date(2026, 3, 15)
    assert stores.rotations.get(date(2026, 3, 15)) == record
    assert record.selected_items != before.selected_items


@pytest.mark.asyncio
async def test_start_and_stop() -> None:
    clock = FakeClock(_ist(2026, 3, 15, 1, 30))
    scheduler, _ = _scheduler(clock)

    async def never(_: float) -> None:
        await asyncio.Event().wait()

    scheduler._sleep = never
    task = scheduler.start()
    assert scheduler.start() is task
    await scheduler.stop()
    assert task.cancelled()


class _BrokenCache(DailyRotationCache):
    def force_refresh(self, day: date, desired_count: int | None = None) -> DailyRotationRecord:
        raise RuntimeError("disk full")


@pytest.mark.asyncio
async def test_unexpected_refresh_errors_are_logged_and_the_loop_continues(
    caplog: pytest.LogCaptureFixture,
) -> None:
    clock = FakeClock(_ist(2026, 3, 15, 1, 30))
    stores = memory_stores()
    cache = _BrokenCache(stores.rotations, stores.catalog, tz=IST, clock=clock)
    scheduler = DailyRefreshScheduler(cache, refresh_at=time(2, 0), tz=IST, clock=clock, sleep=clock.sleep)

    with caplog.at_level(logging.ERROR, logger="angpau.features.daily.scheduler"):
        await scheduler.run_forever(iterations=2)

    assert len(clock.sleeps) == 2
    failures = [record for record in caplog.records if "failed" in record.getMessage()]
    assert len(failures) == 2
    assert all(record.exc_info is not None for record in failures)


@pytest.mark.asyncio
async def test_crashed_loop_is_logged_and_stop_stays_quiet(caplog: pytest.LogCaptureFixture) -> None:
    clock = FakeClock(_ist(2026, 3, 15, 1, 30))
    scheduler, _ = _scheduler(clock)

    async def broken_sleep(_: float) -> None:
        raise OSError("timer unavailable")

    scheduler._sleep = broken_sleep
    with caplog.at_level(logging.ERROR, logger="angpau.features.daily.scheduler"):
        task = scheduler.start()
        with pytest.raises(OSError):
            await task
        await asyncio.sleep(0)
        await scheduler.stop()

    assert "scheduler stopped" in caplog.text
