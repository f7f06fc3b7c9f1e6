import asyncio
import logging

import pytest

from utils.rate_limiter import JobScheduler


def _record_starts(scheduler):
    starts = []
    scheduler.on("executing", lambda info: starts.append(info.started_at))
    return starts


async def _noop(value=None):
    return value


@pytest.mark.asyncio
async def test_schedule_returns_task_result():
    scheduler = JobScheduler(max_concurrent=2)

    assert await scheduler.schedule("job-1", _noop, 41) == 41
    assert await scheduler.schedule("job-2", _noop, value="x") == "x"
    assert scheduler.counts() == {"running": 0, "queued": 0, "done": 2}


@pytest.mark.asyncio
async def test_reservoir_caps_starts_per_interval():
    scheduler = JobScheduler(
        max_concurrent=10,
        reservoir=3,
        reservoir_refresh_amount=3,
        reservoir_refresh_interval=0.2,
    )
    starts = _record_starts(scheduler)

    await asyncio.gather(*(scheduler.schedule(f"job-{i}", _noop, i) for i in range(8)))

    assert len(starts) == 8
    for earlier, later in zip(starts, starts[3:]):
        assert later - earlier >= 0.2 - 1e-6
    # The first burst uses the full reservoir at once.
    assert starts[2] - starts[0] < 0.1


@pytest.mark.asyncio
async def test_min_time_spaces_starts():
    scheduler = JobScheduler(max_concurrent=5, min_time=0.05)
    starts = _record_starts(scheduler)

    await asyncio.gather(*(scheduler.schedule(f"job-{i}", _noop) for i in range(4)))

    for earlier, later in zip(starts, starts[1:]):
        assert later - earlier >= 0.05 - 1e-6


@pytest.mark.asyncio
async def test_concurrency_cap_and_fifo_order():
    scheduler = JobScheduler(max_concurrent=2)
    running = 0
    peak = 0
    order = []

    async def job(i):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        order.append(i)
        await asyncio.sleep(0.01)
        running -= 1
        return i

    results = await asyncio.gather(*(scheduler.schedule(f"job-{i}", job, i) for i in range(6)))

    assert results == list(range(6))
    assert order == list(range(6))
    assert peak == 2


@pytest.mark.asyncio
async def test_failure_is_raised_to_caller_and_reported():
    scheduler = JobScheduler(max_concurrent=1)
    failures = []
    scheduler.on("failed", lambda exc, info: failures.append((info.job_id, str(exc))))

    async def broken():
        raise ValueError("provider said no")

    with pytest.raises(ValueError, match="provider said no"):
        await scheduler.schedule("bad", broken)
    assert await scheduler.schedule("good", _noop, 1) == 1

    assert failures == [("bad", "provider said no")]
    assert scheduler.counts()["done"] == 2


@pytest.mark.asyncio
async def test_empty_reservoir_without_refresh_holds_jobs():
    scheduler = JobScheduler(max_concurrent=1, reservoir=1)

    await scheduler.schedule("first", _noop)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(scheduler.schedule("second", _noop), timeout=0.05)

    assert scheduler.tokens == 0
    assert scheduler.counts()["done"] == 1


@pytest.mark.asyncio
async def test_refresh_tops_up_to_refresh_amount():
    scheduler = JobScheduler(reservoir=5, reservoir_refresh_amount=2, reservoir_refresh_interval=0.05)
    for i in range(5):
        await scheduler.schedule(f"job-{i}", _noop)
    assert scheduler.tokens == 0

    await asyncio.sleep(0.06)

    assert scheduler.tokens == 2


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_scheduling(caplog):
    scheduler = JobScheduler()

    def explode(info):
        raise RuntimeError("listener bug")

    scheduler.on("queued", explode)
    with caplog.at_level(logging.ERROR, logger="utils.rate_limiter"):
        assert await scheduler.schedule("job", _noop, 3) == 3
    assert "listener" in caplog.text


def test_unknown_event_name_is_rejected():
    with pytest.raises(ValueError):
        JobScheduler().on("finished", lambda *args: None)


@pytest.mark.parametrize("kwargs", [{"max_concurrent": 0}, {"reservoir": 0}])
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        JobScheduler(**kwargs)


@pytest.mark.asyncio
async def test_provider_profile_starts_at_most_30_jobs_per_second():
    scheduler = JobScheduler(
        max_concurrent=50,
        reservoir=30,
        reservoir_refresh_amount=30,
        reservoir_refresh_interval=1.0,
    )
    starts = _record_starts(scheduler)

    await asyncio.gather(*(scheduler.schedule(f"notification_{i}", _noop) for i in range(50)))

    assert len(starts) == 50
    for i, start in enumerate(starts):
        in_window = [s for s in starts[i:] if s < start + 1.0 - 1e-6]
        assert len(in_window) <= 30
