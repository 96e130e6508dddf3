from __future__ import annotations

import asyncio
import contextvars
import os
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, TypeVar

__all__ = ["run_blocking"]

T = TypeVar("T")

# Store calls mostly wait on I/O, so the pool is sized past the core count.
_MAX_WORKERS = max(4, min(32, (os.cpu_count() or 1) * 4))
_EXECUTOR = ThreadPoolExecutor(max_workers=_MAX_WORKERS, thread_name_prefix="angpau-store")


async def run_blocking(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run a store-bound call on the shared worker pool.

    The caller's context variables travel with the call, as with
    :func:`asyncio.to_thread`.
    """
    loop = asyncio.get_running_loop()
    ctx = contextvars.copy_context()
    bound = partial(ctx.run, func, *args, **kwargs)
    return await loop.run_in_executor(_EXECUTOR, bound)
