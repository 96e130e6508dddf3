"""SQLAlchemy Core stores shared by every server instance pointed at one database.

The single-play guarantee rests on :meth:`SqlSessionStore.claim`, a conditional
``UPDATE`` whose affected-row count decides the winner.  Reads retry transient
``OperationalError`` a few times; writes are attempted once.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from typing import Any, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..core.errors import DuplicateRotation, InvalidConfiguration, StoreUnavailable
from ..core.table import ProbabilityTable
from .base import (
    CatalogItem,
    ClaimOutcome,
    DailyRotationRecord,
    GameSession,
    RotationItem,
    new_session_id,
    utcnow,
)

__all__ = [
    "SqlCatalogStore",
    "SqlPrizeConfigStore",
    "SqlRotationStore",
    "SqlSessionStore",
    "create_store_engine",
    "metadata",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

metadata = MetaData()

game_sessions = Table(
    "game_sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", String(64), nullable=False, unique=True, index=True),
    Column("card_configs", JSON, nullable=False),
    Column("created_by", String(64), nullable=False, default="admin"),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("play_count", Integer, nullable=False, default=0),
    Column("result", String(128), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

daily_rotation = Table(
    "daily_rotation",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("date", Date, nullable=False, unique=True),
    Column("selected_items", JSON, nullable=False),
    Column("refreshed_at", DateTime(timezone=True), nullable=False),
)

catalog_items = Table(
    "catalog_items",
    metadata,
    Column("item_id", String(64), primary_key=True),
    Column("title", String(100), nullable=False),
    Column("image", String(255), nullable=False),
    Column("recent_win", JSON, nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

prize_config = Table(
    "prize_config",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("card_configs", JSON, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

_CONFIG_ROW_ID = 1

_read_retry = retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_fixed(0.05),
    reraise=True,
)


def create_store_engine(url: str, *, create_schema: bool = True) -> Engine:
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        # Request handlers reach the store from a worker pool.
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    if create_schema:
        metadata.create_all(engine)
    return engine


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _guarded(action: str, func: Callable[[], T]) -> T:
    try:
        return func()
    except SQLAlchemyError as exc:
        logger.warning("store operation failed", extra={"action": action}, exc_info=True)
        raise StoreUnavailable(f"store unavailable during {action}") from exc


def _session_from_row(row: Row[Any]) -> GameSession:
    return GameSession(
        session_id=row.session_id,
        table=ProbabilityTable.from_payload(row.card_configs),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        created_by=row.created_by,
        is_active=bool(row.is_active),
        play_count=int(row.play_count),
        result=row.result,
    )


class SqlSessionStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, session_id: str) -> GameSession | None:
        @_read_retry
        def _load() -> GameSession | None:
            with self._engine.connect() as conn:
                row = conn.execute(select(game_sessions).where(game_sessions.c.session_id == session_id)).first()
            return _session_from_row(row) if row is not None else None

        return _guarded("get_session", _load)

    def create(self, table: ProbabilityTable, created_by: str = "admin") -> GameSession:
        now = utcnow()
        session = GameSession(
            session_id=new_session_id(),
            table=table,
            created_at=now,
            updated_at=now,
            created_by=created_by,
        )

        def _insert() -> None:
            with self._engine.begin() as conn:
                conn.execute(
                    insert(game_sessions).values(
                        session_id=session.session_id,
                        card_configs=table.to_payload(),
                        created_by=created_by,
                        is_active=True,
                        play_count=0,
                        result=None,
                        created_at=now,
                        updated_at=now,
                    )
                )

        _guarded("create_session", _insert)
        return session

    def claim(self, session_id: str, label: str) -> ClaimOutcome:
        def _claim() -> ClaimOutcome:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(game_sessions)
                    .where(
                        game_sessions.c.session_id == session_id,
                        game_sessions.c.play_count == 0,
                        game_sessions.c.is_active.is_(True),
                    )
                    .values(play_count=1, result=label, updated_at=utcnow())
                )
                if result.rowcount == 1:
                    return ClaimOutcome.SUCCESS
                row = conn.execute(
                    select(game_sessions.c.is_active, game_sessions.c.play_count).where(
                        game_sessions.c.session_id == session_id
                    )
                ).first()
            if row is None:
                return ClaimOutcome.NOT_FOUND
            if not row.is_active:
                return ClaimOutcome.INACTIVE
            return ClaimOutcome.ALREADY_CLAIMED

        return _guarded("claim_session", _claim)

    def set_active(self, session_id: str, active: bool) -> GameSession | None:
        def _toggle() -> None:
            with self._engine.begin() as conn:
                conn.execute(
                    update(game_sessions)
                    .where(game_sessions.c.session_id == session_id)
                    .values(is_active=active, updated_at=utcnow())
                )

        _guarded("set_session_active", _toggle)
        return self.get(session_id)

    def list_sessions(self, limit: int = 100) -> list[GameSession]:
        @_read_retry
        def _list() -> list[GameSession]:
            with self._engine.connect() as conn:
                rows = conn.execute(
                    select(game_sessions).order_by(game_sessions.c.created_at.desc(), game_sessions.c.id.desc()).limit(limit)
                ).all()
            return [_session_from_row(row) for row in rows]

        return _guarded("list_sessions", _list)


class SqlRotationStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, day: date) -> DailyRotationRecord | None:
        @_read_retry
        def _load() -> DailyRotationRecord | None:
            with self._engine.connect() as conn:
                row = conn.execute(select(daily_rotation).where(daily_rotation.c.date == day)).first()
            if row is None:
                return None
            return DailyRotationRecord(
                day=row.date,
                selected_items=tuple(RotationItem.from_payload(item) for item in row.selected_items),
                refreshed_at=_aware(row.refreshed_at),
            )

        return _guarded("get_rotation", _load)

    def insert(self, record: DailyRotationRecord) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    insert(daily_rotation).values(
                        date=record.day,
                        selected_items=[item.to_payload() for item in record.selected_items],
                        refreshed_at=record.refreshed_at,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateRotation(f"rotation for {record.day.isoformat()} already exists") from exc
        except SQLAlchemyError as exc:
            logger.warning("store operation failed", extra={"action": "insert_rotation"}, exc_info=True)
            raise StoreUnavailable("store unavailable during insert_rotation") from exc

    def delete(self, day: date) -> bool:
        def _delete() -> bool:
            with self._engine.begin() as conn:
                result = conn.execute(delete(daily_rotation).where(daily_rotation.c.date == day))
            return result.rowcount > 0

        return _guarded("delete_rotation", _delete)


def _catalog_from_row(row: Row[Any]) -> CatalogItem:
    return CatalogItem(
        item_id=row.item_id,
        title=row.title,
        image=row.image,
        recent_win=dict(row.recent_win or {}),
        active=bool(row.active),
    )


class SqlCatalogStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list_active(self) -> list[CatalogItem]:
        @_read_retry
        def _list() -> list[CatalogItem]:
            with self._engine.connect() as conn:
                rows = conn.execute(
                    select(catalog_items).where(catalog_items.c.active.is_(True)).order_by(catalog_items.c.created_at)
                ).all()
            return [_catalog_from_row(row) for row in rows]

        return _guarded("list_active_catalog", _list)

    def list_all(self) -> list[CatalogItem]:
        @_read_retry
        def _list() -> list[CatalogItem]:
            with self._engine.connect() as conn:
                rows = conn.execute(select(catalog_items).order_by(catalog_items.c.created_at)).all()
            return [_catalog_from_row(row) for row in rows]

        return _guarded("list_catalog", _list)

    def add(self, title: str, image: str, recent_win: Mapping[str, str] | None = None) -> CatalogItem:
        item = CatalogItem(item_id=uuid.uuid4().hex, title=title, image=image, recent_win=dict(recent_win or {}))

        def _insert() -> None:
            with self._engine.begin() as conn:
                conn.execute(
                    insert(catalog_items).values(
                        item_id=item.item_id,
                        title=item.title,
                        image=item.image,
                        recent_win=dict(item.recent_win),
                        active=True,
                        created_at=utcnow(),
                    )
                )

        _guarded("add_catalog_item", _insert)
        return item

    def set_active(self, item_id: str, active: bool) -> CatalogItem | None:
        def _toggle() -> CatalogItem | None:
            with self._engine.begin() as conn:
                conn.execute(update(catalog_items).where(catalog_items.c.item_id == item_id).values(active=active))
                row = conn.execute(select(catalog_items).where(catalog_items.c.item_id == item_id)).first()
            return _catalog_from_row(row) if row is not None else None

        return _guarded("set_catalog_active", _toggle)


class SqlPrizeConfigStore:
    """Single-row store for the default table used by unlinked play."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def load(self) -> ProbabilityTable | None:
        @_read_retry
        def _load() -> ProbabilityTable | None:
            with self._engine.connect() as conn:
                row = conn.execute(select(prize_config.c.card_configs).where(prize_config.c.id == _CONFIG_ROW_ID)).first()
            if row is None:
                return None
            try:
                return ProbabilityTable.from_payload(row.card_configs)
            except InvalidConfiguration:
                logger.warning("stored prize config is malformed; ignoring it")
                return None

        return _guarded("load_prize_config", _load)

    def save(self, table: ProbabilityTable) -> None:
        def _upsert() -> None:
            payload = table.to_payload()
            now = utcnow()
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(prize_config)
                    .where(prize_config.c.id == _CONFIG_ROW_ID)
                    .values(card_configs=payload, updated_at=now)
                )
                if result.rowcount == 0:
                    conn.execute(insert(prize_config).values(id=_CONFIG_ROW_ID, card_configs=payload, updated_at=now))

        _guarded("save_prize_config", _upsert)
