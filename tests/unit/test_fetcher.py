from datetime import timedelta

import pytest
from conftest import FakeClock, FakeExchange, ScriptedExchange, make_candle, make_series

from ftxprices.exceptions import InvalidResolutionError, RemoteRequestError
from ftxprices.fetcher import HistoricalCandleFetcher
from ftxprices.models import TimeWindow

INTERVAL = 0.25


def make_fetcher(client, clock: FakeClock, **kwargs) -> HistoricalCandleFetcher:
    """Helper to create a fetcher driven by the fake clock."""
    return HistoricalCandleFetcher(
        client, request_interval=INTERVAL, clock=clock, sleep=clock.sleep, **kwargs
    )


def assert_strictly_ascending(candles) -> None:
    times = [c.start_time for c in candles]
    assert all(a < b for a, b in zip(times, times[1:], strict=False))


@pytest.mark.asyncio
async def test_walks_window_backward_until_start(t0, fake_clock) -> None:
    """Each page ends one second before the earliest candle already received."""
    series = make_series(t0, 25, 60)
    client = FakeExchange(series, page_size=10)
    window = TimeWindow(start=t0, end=t0 + timedelta(minutes=30))

    result = await make_fetcher(client, fake_clock).fetch("BTC-PERP", 60, window)

    assert result == series
    end_times = [r.end_time for r in client.requests]
    assert end_times == [
        window.end,
        series[15].start_time - timedelta(seconds=1),
        series[5].start_time - timedelta(seconds=1),
    ]
    assert all(r.start_time == window.start for r in client.requests)
    assert all(r.limit is None for r in client.requests)
    assert all(r.market_name == "BTC-PERP" for r in client.requests)
    assert all(r.resolution == 60 for r in client.requests)


@pytest.mark.asyncio
async def test_stops_on_empty_page_when_market_has_no_earlier_data(
    t0, fake_clock
) -> None:
    series = make_series(t0, 25, 60)
    client = FakeExchange(series, page_size=10)
    window = TimeWindow(start=t0 - timedelta(days=1), end=t0 + timedelta(hours=1))

    result = await make_fetcher(client, fake_clock).fetch("BTC-PERP", 60, window)

    assert result == series
    # Three full pages, then one empty page ends the loop.
    assert len(client.requests) == 4


@pytest.mark.asyncio
async def test_immediately_empty_page_returns_empty_result(t0, fake_clock) -> None:
    client = FakeExchange([], page_size=10)
    window = TimeWindow(start=t0, end=t0 + timedelta(days=1))

    result = await make_fetcher(client, fake_clock).fetch("BTC-PERP", 15, window)

    assert result == []
    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_abutting_pages_are_merged_without_gaps_or_repeats(
    t0, fake_clock
) -> None:
    series = make_series(t0, 30, 60)
    pages = [series[20:30], series[10:20], series[0:10]]
    client = ScriptedExchange(pages)
    window = TimeWindow(start=t0 - timedelta(hours=1), end=t0 + timedelta(hours=1))

    result = await make_fetcher(client, fake_clock).fetch("ETH-PERP", 60, window)

    assert result == series
    assert_strictly_ascending(result)
    assert len(client.requests) == 4


@pytest.mark.asyncio
async def test_overlapping_pages_are_deduplicated(t0, fake_clock) -> None:
    """A server returning overlapping, unordered pages still yields a clean series."""
    series = make_series(t0, 20, 60)
    pages = [
        list(reversed(series[10:20])),
        series[5:12],
        [series[0], series[3], series[3], series[1], series[2], series[4]],
    ]
    client = ScriptedExchange(pages)
    window = TimeWindow(start=t0 - timedelta(hours=1), end=t0 + timedelta(hours=1))

    result = await make_fetcher(client, fake_clock).fetch("ETH-PERP", 60, window)

    assert result == series
    assert_strictly_ascending(result)


@pytest.mark.asyncio
async def test_stops_when_server_ignores_end_time(t0, fake_clock) -> None:
    page = make_series(t0, 10, 60)
    client = ScriptedExchange([page, page, page])
    window = TimeWindow(start=t0 - timedelta(hours=1), end=t0 + timedelta(hours=1))

    result = await make_fetcher(client, fake_clock).fetch("ETH-PERP", 60, window)

    assert result == page
    assert len(client.requests) == 2


@pytest.mark.asyncio
async def test_candles_outside_window_are_dropped(t0, fake_clock) -> None:
    inside = make_candle(t0 + timedelta(minutes=5))
    before = make_candle(t0 - timedelta(minutes=5))
    client = ScriptedExchange([[before, inside]])
    window = TimeWindow(start=t0, end=t0 + timedelta(hours=1))

    result = await make_fetcher(client, fake_clock).fetch("ETH-PERP", 60, window)

    assert result == [inside]
    # The page reached before the window start, so no further request is made.
    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_request_failure_aborts_fetch(t0, fake_clock) -> None:
    client = FakeExchange(make_series(t0, 25, 60), page_size=10, fail_on_call=2)
    window = TimeWindow(start=t0, end=t0 + timedelta(hours=1))

    with pytest.raises(RemoteRequestError, match="simulated outage"):
        await make_fetcher(client, fake_clock).fetch("BTC-PERP", 60, window)
    assert len(client.requests) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("resolution", [0, 16, 120, 86400 * 31, -60])
async def test_invalid_resolution_fails_before_any_request(
    t0, fake_clock, resolution: int
) -> None:
    client = FakeExchange(make_series(t0, 5, 60))
    window = TimeWindow(start=t0, end=t0 + timedelta(hours=1))

    with pytest.raises(InvalidResolutionError):
        await make_fetcher(client, fake_clock).fetch("BTC-PERP", resolution, window)
    assert client.requests == []


@pytest.mark.asyncio
async def test_requests_are_paced_by_fixed_interval(t0, fake_clock) -> None:
    """N pages take at least (N - 1) intervals."""
    series = make_series(t0, 50, 60)
    client = FakeExchange(series, page_size=10)
    window = TimeWindow(start=t0 - timedelta(days=1), end=t0 + timedelta(days=1))
    started = fake_clock.now

    await make_fetcher(client, fake_clock).fetch("BTC-PERP", 60, window)

    pages = len(client.requests)
    assert pages == 6
    elapsed = fake_clock.now - started
    assert elapsed >= (pages - 1) * INTERVAL
    assert fake_clock.sleeps == pytest.approx([INTERVAL] * (pages - 1))


@pytest.mark.asyncio
async def test_progress_is_logged_every_n_pages(
    t0, fake_clock, log_messages: list[str]
) -> None:
    client = FakeExchange(make_series(t0, 40, 60), page_size=10)
    window = TimeWindow(start=t0 - timedelta(hours=1), end=t0 + timedelta(hours=1))

    await make_fetcher(client, fake_clock, progress_every=2).fetch(
        "BTC-PERP", 60, window
    )

    progress = [m for m in log_messages if "reached" in m]
    assert len(progress) == 2
    assert "20 points after 2 pages" in progress[0]
    assert "40 points after 4 pages" in progress[1]


def test_progress_every_must_be_positive() -> None:
    with pytest.raises(ValueError, match="progress_every"):
        HistoricalCandleFetcher(FakeExchange(), progress_every=0)
