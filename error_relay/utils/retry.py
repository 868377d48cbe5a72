"""Result-driven retry scheduling with increasing backoff"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

logger = logging.getLogger(__name__)


class Settleable(Protocol):
    """Anything an attempt function returns: it knows whether to try again"""

    @property
    def retryable(self) -> bool:
        ...


R = TypeVar("R", bound=Settleable)


def backoff_delay(delays: Sequence[float], attempt: int) -> float:
    """
    Delay to wait after a failed attempt

    Args:
        delays: Configured backoff schedule, e.g. [5, 30, 60]
        attempt: 1-based number of the attempt that just failed

    Returns:
        Seconds to sleep; the last entry repeats if the schedule is short
    """
    if not delays:
        return 0.0
    return float(delays[min(attempt - 1, len(delays) - 1)])


async def retry_async(
    attempt_fn: Callable[[int], Awaitable[R]],
    max_attempts: int = 3,
    delays: Sequence[float] = (5.0, 30.0, 60.0),
    label: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> R:
    """
    Run attempt_fn until it returns a non-retryable result or the budget runs out

    The attempt function receives the 1-based attempt number and reports its
    own outcome; nothing is inferred from raised exceptions.

    Args:
        attempt_fn: Coroutine function returning a Settleable result
        max_attempts: Attempt budget (default 3)
        delays: Backoff schedule in seconds between attempts
        label: Name used in log messages
        sleep: Sleep coroutine (default asyncio.sleep)

    Returns:
        The last result produced; callers check retryable to detect exhaustion

    Usage:
        result = await retry_async(sender.attempt_once, max_attempts=3)
    """
    sleep = sleep or asyncio.sleep

    attempt = 1
    while True:
        result = await attempt_fn(attempt)

        if not result.retryable:
            return result

        if attempt >= max_attempts:
            logger.debug(f"{label} gave up after {max_attempts} attempts")
            return result

        current_delay = backoff_delay(delays, attempt)
        logger.debug(
            f"{label} attempt {attempt}/{max_attempts} will be retried in {current_delay:.1f}s"
        )
        await sleep(current_delay)
        attempt += 1
