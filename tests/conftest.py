import types
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Self

import pytest
from loguru import logger

from ftxprices.config import Settings
from ftxprices.exceptions import RemoteRequestError
from ftxprices.exchange.base import ExchangeClient, GetFutures, GetHistoricalPrices
from ftxprices.models import Candle, FutureMarket


def make_candle(start_time: datetime, price: str = "100", volume: str = "1") -> Candle:
    """Helper to create a flat Candle at the given start time."""
    value = Decimal(price)
    return Candle(
        start_time=start_time,
        open=value,
        close=value,
        low=value,
        high=value,
        volume=Decimal(volume),
    )


def make_series(start: datetime, count: int, resolution: int) -> list[Candle]:
    """Helper to create `count` consecutive candles starting at `start`."""
    step = timedelta(seconds=resolution)
    return [make_candle(start + i * step, price=str(100 + i)) for i in range(count)]


def create_future(
    name: str, volume: str, *, expired: bool = False, enabled: bool = True
) -> FutureMarket:
    """Helper to create a FutureMarket with the given 24h volume."""
    return FutureMarket(
        name=name,
        underlying=name.split("-")[0],
        type="perpetual",
        perpetual=True,
        expired=expired,
        enabled=enabled,
        last=Decimal("10.5"),
        mark=Decimal("10.5"),
        change24h=Decimal("0.0525"),
        volume_usd24h=Decimal(volume),
        open_interest_usd=Decimal(0),
    )


class FakeClock:
    """A manually advanced monotonic clock with a matching async sleep."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class FakeExchange(ExchangeClient):
    """An in-memory exchange with the candles endpoint's windowing semantics.

    Each call returns, in ascending order, the newest `page_size` candles whose
    start time lies inside the requested range.
    """

    def __init__(
        self,
        candles: list[Candle] | None = None,
        page_size: int = 10,
        futures: list[FutureMarket] | None = None,
        fail_on_call: int | None = None,
    ) -> None:
        self.candles = sorted(candles or [], key=lambda c: c.start_time)
        self.page_size = page_size
        self.futures = futures or []
        self.fail_on_call = fail_on_call
        self.requests: list[GetHistoricalPrices] = []
        self.closed = False

    @property
    def venue_name(self) -> str:
        return "fake"

    async def get_historical_prices(
        self, request: GetHistoricalPrices
    ) -> list[Candle]:
        self.requests.append(request)
        if self.fail_on_call is not None and len(self.requests) == self.fail_on_call:
            err_msg = "simulated outage"
            raise RemoteRequestError(err_msg, 503)
        in_range = [
            c
            for c in self.candles
            if (request.start_time is None or c.start_time >= request.start_time)
            and (request.end_time is None or c.start_time <= request.end_time)
        ]
        return in_range[-self.page_size :]

    async def get_futures(self, request: GetFutures) -> list[FutureMarket]:
        return list(self.futures)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.closed = True


class ScriptedExchange(ExchangeClient):
    """Returns a fixed sequence of pages regardless of the request, then empty pages."""

    def __init__(self, pages: list[list[Candle]]) -> None:
        self.pages = list(pages)
        self.requests: list[GetHistoricalPrices] = []

    @property
    def venue_name(self) -> str:
        return "scripted"

    async def get_historical_prices(
        self, request: GetHistoricalPrices
    ) -> list[Candle]:
        self.requests.append(request)
        return self.pages.pop(0) if self.pages else []

    async def get_futures(self, request: GetFutures) -> list[FutureMarket]:
        return []


@pytest.fixture
def t0() -> datetime:
    """A fixed UTC reference instant."""
    return datetime(2023, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Collects loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture(autouse=True)
def _reset_settings() -> Iterator[None]:
    Settings.reset_instance()
    yield
    Settings.reset_instance()
