"""Daily game rotation: date-keyed cache, scheduled refresh, and catalog routes."""

from .cache import DailyRotationCache
from .router import create_daily_router
from .scheduler import DailyRefreshScheduler

__all__ = ["DailyRefreshScheduler", "DailyRotationCache", "create_daily_router"]
