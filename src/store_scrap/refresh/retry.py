from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, Tuple, Type, TypeVar

from store_scrap.core.errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    delays: Sequence[float],
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    retry_on: Tuple[Type[BaseException], ...] = (TransportError,),
) -> T:
    """
    Call ``operation`` up to ``len(delays) + 1`` times.

    After failed attempt ``i`` the coroutine sleeps ``delays[i]`` seconds before trying
    again. The last failure is re-raised once attempts run out. Errors outside
    ``retry_on`` are raised immediately.
    """
    attempts = len(delays) + 1
    for attempt in range(attempts):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= len(delays):
                raise
            delay = delays[attempt]
            logger.debug(
                "Retrying upstream call. attempt=%d/%d delay_seconds=%s error=%s",
                attempt + 1,
                attempts,
                delay,
                e,
            )
            await sleep(delay)
    raise AssertionError("unreachable")
