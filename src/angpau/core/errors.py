"""Error taxonomy shared by the stores, services and routers."""

from __future__ import annotations

__all__ = [
    "AngpauError",
    "CatalogEmpty",
    "DuplicateRotation",
    "InvalidConfiguration",
    "RotationImmutable",
    "SessionAlreadyPlayed",
    "SessionInactive",
    "SessionNotFound",
    "StoreUnavailable",
]


class AngpauError(Exception):
    """Base class for every error raised by the engine."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidConfiguration(AngpauError, ValueError):
    """A probability table or setting failed validation."""


class SessionNotFound(AngpauError, LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"session '{session_id}' not found")
        self.session_id = session_id


class SessionInactive(AngpauError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"session '{session_id}' is no longer active")
        self.session_id = session_id


class SessionAlreadyPlayed(AngpauError):
    """The single play was consumed; ``result`` is the persisted label."""

    def __init__(self, session_id: str, result: str | None) -> None:
        super().__init__(f"session '{session_id}' already played")
        self.session_id = session_id
        self.result = result


class StoreUnavailable(AngpauError):
    """The backing store could not complete the operation."""


class DuplicateRotation(AngpauError):
    """A rotation record for the date already exists."""


class CatalogEmpty(AngpauError):
    """No active catalog items are available for selection."""


class RotationImmutable(AngpauError):
    """Rotation records for past dates cannot be replaced."""
