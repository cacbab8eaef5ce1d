"""Bounded poll-with-timeout, the one primitive behind every page-state wait."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


async def poll_until(
    predicate: Callable[[], Awaitable[Any]],
    interval: float,
    timeout: float,
) -> Any:
    """Evaluate *predicate* until it returns something truthy.

    Sleeps *interval* between evaluations and never past *timeout*.
    Returns the truthy value, or ``None`` once the deadline passes.  A
    predicate that raises counts as a negative result for that poll.
    """
    deadline = time.monotonic() + timeout
    while True:
        try:
            value = await predicate()
        except Exception as e:
            logger.debug("Poll predicate failed: %s", e)
            value = None
        if value:
            return value
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval, remaining))


async def settle(seconds: float) -> None:
    """Let the page's own reactive updates catch up after an interaction."""
    if seconds > 0:
        await asyncio.sleep(seconds)
