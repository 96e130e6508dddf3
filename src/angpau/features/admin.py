"""Interface-level admin check; real authentication lives in front of the app."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable

from fastapi import Header, HTTPException

__all__ = ["ADMIN_HEADER", "admin_guard"]

logger = logging.getLogger(__name__)

ADMIN_HEADER = "X-Admin-Token"


def admin_guard(token: str | None) -> Callable[..., None]:
    """Build a dependency comparing ``X-Admin-Token`` against ``token``.

    With no token configured every caller is treated as admin.
    """

    if token is None:
        logger.warning("admin token not configured; admin endpoints are open")

    def _require_admin(x_admin_token: str | None = Header(default=None, alias=ADMIN_HEADER)) -> None:
        if token is None:
            return
        if x_admin_token is None or not hmac.compare_digest(x_admin_token, token):
            raise HTTPException(401, "admin token required")

    return _require_admin
