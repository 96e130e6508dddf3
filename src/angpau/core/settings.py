"""Process configuration read from the environment.

Settings are resolved once at startup and handed to :func:`angpau.web.app.create_app`;
nothing below is consulted per request.  Variables use the ``ANGPAU_`` prefix::

    ANGPAU_STORE=sql ANGPAU_DATABASE_URL=sqlite:///angpau.db angpau serve

``BIND`` and ``PORT`` keep their unprefixed names so hosting platforms can set
them directly.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import time
from typing import Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidConfiguration

__all__ = ["Settings", "parse_refresh_time"]

_PREFIX: Final = "ANGPAU_"
_BACKENDS: Final = frozenset({"memory", "sql"})
_TRUTHY: Final = frozenset({"1", "true", "yes", "on"})
_FALSY: Final = frozenset({"0", "false", "no", "off"})


def _normalise(value: str) -> str:
    return value.strip().lower()


def parse_refresh_time(raw: str) -> time:
    """Parse ``HH:MM`` as used by the admin panel's refresh setting."""

    try:
        hour_text, minute_text = raw.strip().split(":")
        return time(hour=int(hour_text), minute=int(minute_text))
    except ValueError as exc:
        raise InvalidConfiguration(f"refresh time must be HH:MM, got {raw!r}") from exc


def _parse_bool(name: str, raw: str) -> bool:
    value = _normalise(raw)
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise InvalidConfiguration(f"{name} must be a boolean flag, got {raw!r}")


def _parse_int(name: str, raw: str, *, minimum: int) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidConfiguration(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise InvalidConfiguration(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    store_backend: str = "memory"
    database_url: str = "sqlite:///angpau.db"
    card_count: int = 10
    daily_count: int = 3
    refresh_time: time = time(2, 0)
    timezone: str = "Asia/Kolkata"
    scheduler_enabled: bool = True
    admin_token: str | None = None
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    def __post_init__(self) -> None:
        if self.store_backend not in _BACKENDS:
            raise InvalidConfiguration(
                f"store backend must be one of {sorted(_BACKENDS)}, got {self.store_backend!r}"
            )
        if self.card_count < 1:
            raise InvalidConfiguration("card count must be positive")
        if self.daily_count < 1:
            raise InvalidConfiguration("daily count must be positive")
        _ = self.tzinfo

    @property
    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise InvalidConfiguration(f"unknown timezone {self.timezone!r}") from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        kwargs: dict[str, object] = {}
        if (raw := get("STORE")) is not None:
            kwargs["store_backend"] = _normalise(raw)
        if (raw := get("DATABASE_URL")) is not None:
            kwargs["database_url"] = raw
        if (raw := get("CARD_COUNT")) is not None:
            kwargs["card_count"] = _parse_int("ANGPAU_CARD_COUNT", raw, minimum=1)
        if (raw := get("DAILY_COUNT")) is not None:
            kwargs["daily_count"] = _parse_int("ANGPAU_DAILY_COUNT", raw, minimum=1)
        if (raw := get("REFRESH_TIME")) is not None:
            kwargs["refresh_time"] = parse_refresh_time(raw)
        if (raw := get("TIMEZONE")) is not None:
            kwargs["timezone"] = raw
        if (raw := get("SCHEDULER")) is not None:
            kwargs["scheduler_enabled"] = _parse_bool("ANGPAU_SCHEDULER", raw)
        if (raw := get("ADMIN_TOKEN")) is not None:
            kwargs["admin_token"] = raw
        if (raw := get("LOG_LEVEL")) is not None:
            kwargs["log_level"] = raw.upper()
        bind = env.get("BIND")
        if bind:
            kwargs["host"] = bind
        port = env.get("PORT")
        if port:
            kwargs["port"] = _parse_int("PORT", port, minimum=1)
        return cls(**kwargs)  # type: ignore[arg-type]
