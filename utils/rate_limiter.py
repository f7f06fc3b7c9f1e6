"""utils/rate_limiter.py

Token-bucket + concurrency-capped job scheduler for outbound provider calls.

A job starts only when all of these hold:
  * fewer than ``max_concurrent`` jobs are running,
  * at least ``min_time`` seconds passed since the previous start,
  * the reservoir holds at least one token,
  * fewer than ``reservoir`` jobs started within the trailing refresh interval.

Jobs that cannot start wait in arrival order. Every ``reservoir_refresh_interval``
seconds the reservoir is topped up to ``reservoir_refresh_amount`` (never above
``reservoir``). The scheduler never retries: a failing job's exception is raised
to whoever awaited ``schedule``.

Usage:
    scheduler = JobScheduler(max_concurrent=5, min_time=0.1, reservoir=30,
                             reservoir_refresh_amount=30, reservoir_refresh_interval=1.0)
    result = await scheduler.schedule("notification_42", send, chat_id, text)
"""

import asyncio
import logging
import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class JobInfo:
    job_id: str
    queued_at: float
    started_at: Optional[float] = None
    finished_at: Optional[float] = None


@dataclass
class _PendingJob:
    info: JobInfo
    task: Callable[..., Awaitable[Any]]
    args: tuple
    kwargs: dict
    future: asyncio.Future


class JobScheduler:
    EVENTS = ("queued", "executing", "failed", "done")

    def __init__(
        self,
        max_concurrent: int = 1,
        min_time: float = 0.0,
        reservoir: Optional[int] = None,
        reservoir_refresh_amount: Optional[int] = None,
        reservoir_refresh_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if reservoir is not None and reservoir < 1:
            raise ValueError("reservoir must be >= 1 when set")
        self.max_concurrent = int(max_concurrent)
        self.min_time = float(min_time or 0.0)
        self.capacity = reservoir
        self.refresh_amount = reservoir_refresh_amount if reservoir_refresh_amount is not None else reservoir
        self.refresh_interval = reservoir_refresh_interval
        self._clock = clock

        self._tokens = reservoir
        self._last_refresh = clock()
        self._last_start: Optional[float] = None
        self._recent_starts: Deque[float] = deque()
        self._queue: Deque[_PendingJob] = deque()
        self._running = 0
        self._done = 0
        self._tasks = set()
        self._wakeup: Optional[asyncio.TimerHandle] = None
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)

    # --- listeners -------------------------------------------------------

    def on(self, event: str, callback: Callable) -> None:
        if event not in self.EVENTS:
            raise ValueError(f"Unknown scheduler event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, *args) -> None:
        for callback in self._listeners.get(event, ()):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Scheduler listener for '{event}' raised")

    # --- public API ------------------------------------------------------

    async def schedule(self, job_id: str, task: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        job = _PendingJob(
            info=JobInfo(job_id=job_id, queued_at=self._clock()),
            task=task,
            args=args,
            kwargs=kwargs,
            future=loop.create_future(),
        )
        self._queue.append(job)
        self._emit("queued", job.info)
        self._drain()
        return await job.future

    def counts(self) -> Dict[str, int]:
        return {
            "running": self._running,
            "queued": len(self._queue),
            "done": self._done,
        }

    @property
    def tokens(self) -> Optional[int]:
        self._refresh(self._clock())
        return self._tokens

    # --- internals -------------------------------------------------------

    def _refresh(self, now: float) -> None:
        if self.capacity is None or not self.refresh_interval:
            return
        elapsed = now - self._last_refresh
        if elapsed < self.refresh_interval:
            return
        periods = int(elapsed // self.refresh_interval)
        self._last_refresh += periods * self.refresh_interval
        topped = min(self.capacity, self.refresh_amount)
        if self._tokens < topped:
            self._tokens = topped

    def _admission_delay(self, now: float) -> float:
        """Seconds until the head of the queue may start; 0 means now."""
        delays = [0.0]
        if self.min_time and self._last_start is not None:
            delays.append(self._last_start + self.min_time - now)
        if self.capacity is not None:
            if self._tokens < 1:
                if not self.refresh_interval:
                    return math.inf
                delays.append(self._last_refresh + self.refresh_interval - now)
            if self.refresh_interval:
                horizon = now - self.refresh_interval
                while self._recent_starts and self._recent_starts[0] <= horizon:
                    self._recent_starts.popleft()
                if len(self._recent_starts) >= self.capacity:
                    delays.append(self._recent_starts[0] + self.refresh_interval - now)
        return max(delays)

    def _drain(self) -> None:
        if self._wakeup is not None:
            self._wakeup.cancel()
            self._wakeup = None
        while self._queue and self._running < self.max_concurrent:
            head = self._queue[0]
            if head.future.cancelled():
                self._queue.popleft()
                continue
            now = self._clock()
            self._refresh(now)
            delay = self._admission_delay(now)
            if delay > 0:
                if delay != math.inf:
                    self._wakeup = asyncio.get_running_loop().call_later(delay, self._drain)
                return
            self._queue.popleft()
            self._start(head, now)

    def _start(self, job: _PendingJob, now: float) -> None:
        self._running += 1
        if self._tokens is not None:
            self._tokens -= 1
        self._last_start = now
        if self.capacity is not None and self.refresh_interval:
            self._recent_starts.append(now)
        job.info.started_at = now
        self._emit("executing", job.info)
        runner = asyncio.get_running_loop().create_task(self._run(job))
        self._tasks.add(runner)
        runner.add_done_callback(self._tasks.discard)

    async def _run(self, job: _PendingJob) -> None:
        try:
            result = await job.task(*job.args, **job.kwargs)
        except asyncio.CancelledError:
            job.future.cancel()
            raise
        except Exception as exc:
            self._emit("failed", exc, job.info)
            if not job.future.done():
                job.future.set_exception(exc)
        else:
            if not job.future.done():
                job.future.set_result(result)
        finally:
            self._running -= 1
            self._done += 1
            job.info.finished_at = self._clock()
            self._emit("done", job.info)
            self._drain()
