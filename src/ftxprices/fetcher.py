import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Final

from loguru import logger

from ftxprices.exchange.base import ExchangeClient, GetHistoricalPrices
from ftxprices.models import Candle, TimeWindow, validate_resolution
from ftxprices.utils.rate_limiter import IntervalPacer

# Minimum spacing between two candle requests, to stay under the rate limit.
REQUEST_INTERVAL_SECONDS: Final[float] = 0.25

# Log a progress line after this many pages.
PROGRESS_EVERY_PAGES: Final[int] = 10

# The next page must end strictly before the earliest candle already received.
CURSOR_STEP: Final[timedelta] = timedelta(seconds=1)


class HistoricalCandleFetcher:
    """Downloads the complete candle series of a market over a time window.

    The candles endpoint has no continuation token: each call returns the
    newest candles inside `[start_time, end_time]`. The fetcher therefore walks
    the window backward, ending every new query one second before the earliest
    candle it has already seen, until a page comes back empty.

    Requests are strictly sequential, because each page's window depends on the
    previous page, and are spaced by a fixed pacing interval.
    """

    def __init__(
        self,
        client: ExchangeClient,
        request_interval: float = REQUEST_INTERVAL_SECONDS,
        progress_every: int = PROGRESS_EVERY_PAGES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initializes the fetcher.

        Args:
            client: The REST client that serves GetHistoricalPrices requests.
            request_interval: Minimum seconds between two consecutive requests.
            progress_every: Log a progress line every this many pages.
            clock: Monotonic clock used for pacing.
            sleep: Coroutine function used to wait between requests.
        """
        if progress_every <= 0:
            err_msg = "progress_every must be a positive integer."
            raise ValueError(err_msg)
        self.client = client
        self.request_interval = request_interval
        self.progress_every = progress_every
        self._clock = clock
        self._sleep = sleep

    async def fetch(
        self, market: str, resolution: int, window: TimeWindow
    ) -> list[Candle]:
        """Fetches every candle of `market` whose start time lies in `window`.

        Args:
            market: The market name (e.g., 'BTC-PERP').
            resolution: The candle width in seconds.
            window: The UTC range to download.

        Returns:
            The candles sorted by start time, without duplicates.

        Raises:
            InvalidResolutionError: If `resolution` is not served by the exchange.
            RemoteRequestError: If any page request fails. Nothing collected so
                far is returned.
        """
        validate_resolution(resolution)
        pacer = IntervalPacer(self.request_interval, self._clock, self._sleep)

        logger.info(
            f"[{self.client.venue_name}] Fetching {market} candles "
            f"(resolution {resolution}s) from {window.start} to {window.end}"
        )

        collected: list[Candle] = []
        cursor_end = window.end
        pages = 0
        while True:
            async with pacer.acquire():
                page = await self.client.get_historical_prices(
                    GetHistoricalPrices(
                        market_name=market,
                        resolution=resolution,
                        start_time=window.start,
                        end_time=cursor_end,
                    )
                )

            if not page:
                break

            earliest = min(candle.start_time for candle in page)
            if earliest > cursor_end:
                logger.warning(
                    f"[{self.client.venue_name}] {market}: page starts at {earliest}, "
                    f"after the requested end {cursor_end}. Stopping."
                )
                break
            cursor_end = earliest - CURSOR_STEP
            collected.extend(page)
            pages += 1

            if pages % self.progress_every == 0:
                logger.info(
                    f"[{self.client.venue_name}] {market}: reached {earliest}, "
                    f"{len(collected)} points after {pages} pages."
                )

            if cursor_end < window.start:
                break

        candles = self._merge(collected, window)
        logger.success(
            f"[{self.client.venue_name}] Fetched {len(candles)} unique candles "
            f"for {market} in {pages} pages."
        )
        return candles

    @staticmethod
    def _merge(collected: list[Candle], window: TimeWindow) -> list[Candle]:
        """Sorts candles by start time, dropping duplicates and out-of-window ones."""
        unique = {c.start_time: c for c in collected if window.contains(c.start_time)}
        return sorted(unique.values(), key=lambda c: c.start_time)
