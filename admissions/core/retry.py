"""Retry helper for transient failures in reads and notification deliveries."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from structlog.stdlib import BoundLogger

T = TypeVar("T")


async def run_with_retry(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = 3,
    base_delay_seconds: float = 0.5,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[int, BaseException], Awaitable[None]]] = None,
    logger: BoundLogger | None = None,
    **kwargs: Any,
) -> T:
    """
    Await `operation` up to `attempts` times with exponential backoff.

    Only exceptions listed in `retry_on` are retried; the last one is
    re-raised once attempts run out. `on_retry` runs before each sleep,
    e.g. to roll back a session after a failed statement.
    """
    attempts = max(attempts, 1)

    for attempt in range(1, attempts + 1):
        try:
            return await operation(*args, **kwargs)
        except retry_on as exc:
            if attempt >= attempts:
                raise
            delay = base_delay_seconds * (2 ** (attempt - 1))
            if logger is not None:
                logger.warning(
                    "transient_error_retry",
                    operation=getattr(operation, "__name__", repr(operation)),
                    attempt=attempt,
                    attempts=attempts,
                    delay_seconds=delay,
                    error=str(exc),
                )
            if on_retry is not None:
                await on_retry(attempt, exc)
            await asyncio.sleep(delay)

    raise RuntimeError("unreachable retry state")
