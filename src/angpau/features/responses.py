from __future__ import annotations

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import (
    AngpauError,
    CatalogEmpty,
    InvalidConfiguration,
    RotationImmutable,
    SessionAlreadyPlayed,
    SessionInactive,
    SessionNotFound,
    StoreUnavailable,
)
from .schemas import ErrorPayload

__all__ = [
    "ALREADY_PLAYED_MESSAGE",
    "error_payload",
    "error_response",
    "error_status",
    "validation_error_response",
]

ALREADY_PLAYED_MESSAGE = "You already played\nPlease contact us for new link"

_STATUS: tuple[tuple[type[AngpauError], int], ...] = (
    (SessionAlreadyPlayed, 403),
    (SessionNotFound, 404),
    (SessionInactive, 410),
    (StoreUnavailable, 503),
    (InvalidConfiguration, 400),
    (CatalogEmpty, 400),
    (RotationImmutable, 409),
)


def error_status(exc: AngpauError) -> int:
    for kind, status in _STATUS:
        if isinstance(exc, kind):
            return status
    return 500


def error_payload(exc: AngpauError) -> ErrorPayload:
    if isinstance(exc, SessionAlreadyPlayed):
        return ErrorPayload(
            error="Session already played",
            state="already-played",
            already_played=True,
            label=exc.result,
            message=ALREADY_PLAYED_MESSAGE,
        )
    if isinstance(exc, StoreUnavailable):
        return ErrorPayload(error="Something went wrong, please try again", state="retry")
    return ErrorPayload(error=str(exc), state="invalid")


def error_response(exc: AngpauError) -> JSONResponse:
    return JSONResponse(error_payload(exc).to_dict(), status_code=error_status(exc))


def _describe(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid request"
    first = errors[0]
    where = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "invalid value")
    return f"{where}: {message}" if where else message


async def validation_error_response(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and parameters in the shared error shape."""
    return error_response(InvalidConfiguration(_describe(exc)))
