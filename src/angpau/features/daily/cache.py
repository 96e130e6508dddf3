"""Date-keyed cache of the games shown on the landing page.

The first read of a calendar day selects the games and stores them; every
later read that day returns the stored record, so page views do not reshuffle
the catalog.  The store's unique ``date`` arbitrates concurrent first reads.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import date, datetime
from zoneinfo import ZoneInfo

from ...core.errors import CatalogEmpty, DuplicateRotation, RotationImmutable
from ...stores import CatalogItem, CatalogStore, DailyRotationRecord, RotationItem, RotationStore
from ...stores.base import utcnow

__all__ = ["DailyRotationCache"]

logger = logging.getLogger(__name__)


class DailyRotationCache:
    def __init__(
        self,
        rotations: RotationStore,
        catalog: CatalogStore,
        *,
        desired_count: int = 3,
        tz: ZoneInfo | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        if desired_count < 1:
            raise ValueError("desired_count must be positive")
        self.rotations = rotations
        self.catalog = catalog
        self.desired_count = desired_count
        self.tz = tz or ZoneInfo("UTC")
        self._clock = clock
        self._rng = rng or random.Random()

    def today(self) -> date:
        return self._clock().astimezone(self.tz).date()

    def get_or_select(self, day: date, desired_count: int | None = None) -> DailyRotationRecord:
        existing = self.rotations.get(day)
        if existing is not None:
            return existing

        items = self.catalog.list_active()
        if not items:
            logger.info("no active catalog items for daily selection", extra={"day": day.isoformat()})
            return DailyRotationRecord(day=day, selected_items=(), refreshed_at=self._clock())
        return self._select_and_insert(day, items, desired_count)

    def force_refresh(self, day: date, desired_count: int | None = None) -> DailyRotationRecord:
        """Replace the record for ``day`` with a fresh selection.

        Past days are history and stay untouched.  An empty catalog leaves the
        current record in place.
        """

        if day < self.today():
            raise RotationImmutable(f"rotation for {day.isoformat()} is history")
        items = self.catalog.list_active()
        if not items:
            raise CatalogEmpty("no active games found; add games first")
        removed = self.rotations.delete(day)
        logger.info("cleared daily rotation", extra={"day": day.isoformat(), "removed": removed})
        return self._select_and_insert(day, items, desired_count)

    def _select_and_insert(
        self,
        day: date,
        items: list[CatalogItem],
        desired_count: int | None,
    ) -> DailyRotationRecord:
        count = desired_count if desired_count is not None else self.desired_count
        picked = self._rng.sample(items, min(count, len(items)))
        record = DailyRotationRecord(
            day=day,
            selected_items=tuple(RotationItem.from_catalog(item) for item in picked),
            refreshed_at=self._clock(),
        )
        try:
            self.rotations.insert(record)
        except DuplicateRotation:
            stored = self.rotations.get(day)
            if stored is None:
                raise
            logger.debug("daily rotation created concurrently; using stored record", extra={"day": day.isoformat()})
            return stored
        logger.info(
            "daily rotation selected",
            extra={"day": day.isoformat(), "titles": [item.title for item in record.selected_items]},
        )
        return record
