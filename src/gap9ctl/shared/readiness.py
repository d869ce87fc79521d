"""Bounded readiness polling with an injectable clock."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from gap9ctl.shared.enums import ReadinessStatus

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class Ready:
    """The check passed on attempt ``attempts``."""

    attempts: int
    status: ReadinessStatus = ReadinessStatus.READY


@dataclass(frozen=True, slots=True)
class TimedOut:
    """Every one of ``attempts`` checks failed."""

    attempts: int
    status: ReadinessStatus = ReadinessStatus.TIMED_OUT


async def wait_until(
    check: Callable[[], Awaitable[bool]],
    *,
    max_attempts: int = 20,
    interval: float = 1.0,
    sleep: Sleep = asyncio.sleep,
    what: str = "service",
) -> Ready | TimedOut:
    """Poll ``check`` until it returns True or ``max_attempts`` is exhausted.

    Sleeps ``interval`` seconds between failed attempts but never after the
    last one, so a timeout costs ``(max_attempts - 1) * interval`` seconds of
    waiting plus the checks themselves.

    Args:
        check: Async predicate probed once per attempt.
        max_attempts: Upper bound on the number of probes (at least 1).
        interval: Seconds to wait between probes.
        sleep: Awaitable sleep, replaceable in tests.
        what: Name used in progress log lines.

    Returns:
        ``Ready`` with the attempt number that succeeded, or ``TimedOut``.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, max_attempts + 1):
        if await check():
            return Ready(attempts=attempt)
        if attempt == max_attempts:
            logger.info("  Attempt %d/%d: %s not ready yet, giving up", attempt, max_attempts, what)
            break
        logger.info(
            "  Attempt %d/%d: %s not ready yet, retrying in %gs...",
            attempt,
            max_attempts,
            what,
            interval,
        )
        await sleep(interval)

    return TimedOut(attempts=max_attempts)
