import pytest
from conftest import FakeClock

from ftxprices.utils.rate_limiter import IntervalPacer


def test_rejects_negative_interval() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        IntervalPacer(-1)


@pytest.mark.asyncio
async def test_first_acquisition_does_not_wait(fake_clock: FakeClock) -> None:
    pacer = IntervalPacer(0.5, clock=fake_clock, sleep=fake_clock.sleep)

    async with pacer.acquire():
        pass

    assert fake_clock.sleeps == []
    assert pacer.next_allowed == pytest.approx(fake_clock.now + 0.5)


@pytest.mark.asyncio
async def test_back_to_back_acquisitions_are_spaced(fake_clock: FakeClock) -> None:
    pacer = IntervalPacer(0.5, clock=fake_clock, sleep=fake_clock.sleep)
    started = fake_clock.now

    for _ in range(4):
        async with pacer.acquire():
            pass

    assert fake_clock.sleeps == pytest.approx([0.5, 0.5, 0.5])
    assert fake_clock.now - started == pytest.approx(1.5)
    assert pacer.acquisitions == 4


@pytest.mark.asyncio
async def test_slow_caller_is_not_delayed_further(fake_clock: FakeClock) -> None:
    pacer = IntervalPacer(0.5, clock=fake_clock, sleep=fake_clock.sleep)

    await pacer.wait()
    fake_clock.now += 2.0  # a slow request
    await pacer.wait()

    assert fake_clock.sleeps == []


@pytest.mark.asyncio
async def test_schedule_advances_by_fixed_steps(fake_clock: FakeClock) -> None:
    pacer = IntervalPacer(1.0, clock=fake_clock, sleep=fake_clock.sleep)
    started = fake_clock.now

    await pacer.wait()
    fake_clock.now += 0.75
    await pacer.wait()

    assert fake_clock.sleeps == pytest.approx([0.25])
    assert pacer.next_allowed == pytest.approx(started + 2.0)


@pytest.mark.asyncio
async def test_zero_interval_never_waits(fake_clock: FakeClock) -> None:
    pacer = IntervalPacer(0, clock=fake_clock, sleep=fake_clock.sleep)
    for _ in range(3):
        await pacer.wait()
    assert fake_clock.sleeps == []
