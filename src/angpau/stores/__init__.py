"""Storage backends behind one set of contracts, chosen once at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.settings import Settings
from .base import (
    CatalogItem,
    CatalogStore,
    ClaimOutcome,
    DailyRotationRecord,
    GameSession,
    PrizeConfigStore,
    RotationItem,
    RotationStore,
    SessionStore,
)
from .memory import MemoryCatalogStore, MemoryPrizeConfigStore, MemoryRotationStore, MemorySessionStore

__all__ = [
    "CatalogItem",
    "CatalogStore",
    "ClaimOutcome",
    "DailyRotationRecord",
    "GameSession",
    "PrizeConfigStore",
    "RotationItem",
    "RotationStore",
    "SessionStore",
    "Stores",
    "build_stores",
    "memory_stores",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stores:
    sessions: SessionStore
    rotations: RotationStore
    catalog: CatalogStore
    prize_config: PrizeConfigStore


def memory_stores() -> Stores:
    return Stores(
        sessions=MemorySessionStore(),
        rotations=MemoryRotationStore(),
        catalog=MemoryCatalogStore(),
        prize_config=MemoryPrizeConfigStore(),
    )


def build_stores(settings: Settings) -> Stores:
    if settings.store_backend == "memory":
        logger.info("using in-memory stores")
        return memory_stores()

    from .sql import (
        SqlCatalogStore,
        SqlPrizeConfigStore,
        SqlRotationStore,
        SqlSessionStore,
        create_store_engine,
    )

    engine = create_store_engine(settings.database_url)
    logger.info("using sql stores", extra={"dialect": engine.dialect.name})
    return Stores(
        sessions=SqlSessionStore(engine),
        rotations=SqlRotationStore(engine),
        catalog=SqlCatalogStore(engine),
        prize_config=SqlPrizeConfigStore(engine),
    )
