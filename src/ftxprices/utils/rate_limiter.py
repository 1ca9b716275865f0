import asyncio
import contextlib
import time
from collections.abc import AsyncGenerator, Awaitable, Callable

from loguru import logger


class IntervalPacer:
    """An asynchronous fixed-interval request pacer.

    Each acquisition is allowed no earlier than `interval_sec` after the
    previous one was scheduled, which keeps a strictly sequential request loop
    under the exchange's rate limit. The schedule advances by a constant step
    from the previous slot, not from the time the slot was actually used, so
    slow requests do not push later ones further out.

    The clock and the sleep function are injectable, so tests can drive the
    pacer with a fake clock instead of waiting in real time.

    Usage:
        pacer = IntervalPacer(0.25)  # at most one request every 250 ms
        while more_pages:
            async with pacer.acquire():
                page = await make_api_call()
    """

    def __init__(
        self,
        interval_sec: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initializes the pacer.

        Args:
            interval_sec: The minimum spacing between two acquisitions, in seconds.
            clock: A monotonic clock returning seconds.
            sleep: A coroutine function suspending for the given number of seconds.
        """
        if not isinstance(interval_sec, int | float) or interval_sec < 0:
            err_msg = "Interval must be a non-negative number."
            raise ValueError(err_msg)

        self.interval_sec = float(interval_sec)
        self._clock = clock
        self._sleep = sleep
        self._next_allowed = clock()
        self.acquisitions = 0

    @property
    def next_allowed(self) -> float:
        """The clock reading before which the next acquisition will wait."""
        return self._next_allowed

    async def wait(self) -> None:
        """Suspends until the next slot, then schedules the one after it."""
        delay = self._next_allowed - self._clock()
        if delay > 0:
            logger.trace(f"Pacing: waiting {delay:.3f}s before the next request.")
            await self._sleep(delay)
        self._next_allowed += self.interval_sec
        self.acquisitions += 1

    @contextlib.asynccontextmanager
    async def acquire(self) -> AsyncGenerator[None, None]:
        """Waits for the next slot. Use as an async context manager."""
        await self.wait()
        yield
