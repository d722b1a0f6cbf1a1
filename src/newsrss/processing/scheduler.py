from __future__ import annotations

import datetime
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from newsrss.core.errors import ConfigError, QueueError
from newsrss.models import CronSchedule, IntervalSchedule, ManualSchedule, ScheduleMode
from newsrss.processing.types import JobQueueLike, NowFunc, SleepFunc
from newsrss.utils.common import utc_now

logger = logging.getLogger(__name__)


class TickSource(Protocol):
    def next_delay(self, now: datetime.datetime) -> Optional[float]:
        """Seconds until the next tick, or None when no further ticks are due."""


class IntervalTicks:
    def __init__(self, minutes: int) -> None:
        self.seconds = float(minutes) * 60.0

    def next_delay(self, now: datetime.datetime) -> Optional[float]:
        return self.seconds


class CronTicks:
    def __init__(self, expression: str, timezone: str = "UTC") -> None:
        if not croniter.is_valid(expression):
            raise ConfigError(f"invalid cron expression: {expression!r}")
        self.expression = expression
        try:
            self.zone = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"unknown timezone: {timezone!r}") from exc

    def next_delay(self, now: datetime.datetime) -> Optional[float]:
        local_now = now.astimezone(self.zone)
        upcoming = croniter(self.expression, local_now).get_next(datetime.datetime)
        return max(0.0, (upcoming - local_now).total_seconds())


class ManualTicks:
    def next_delay(self, now: datetime.datetime) -> Optional[float]:
        return None


def ticks_for(mode: ScheduleMode) -> TickSource:
    if isinstance(mode, IntervalSchedule):
        return IntervalTicks(mode.minutes)
    if isinstance(mode, CronSchedule):
        return CronTicks(mode.expression, mode.timezone)
    if isinstance(mode, ManualSchedule):
        return ManualTicks()
    raise ConfigError(f"unsupported schedule: {mode!r}")


class Scheduler:
    def __init__(
        self,
        ticks: TickSource,
        *,
        sleep: SleepFunc = time.sleep,
        now_provider: NowFunc = utc_now,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._ticks = ticks
        self._sleep = sleep
        self._now = now_provider
        self._log = log or logger

    def run(self, job: Callable[[], Any], *, run_immediately: bool = True, max_ticks: Optional[int] = None) -> int:
        """Run job once per tick; a failing tick is logged and the loop continues. Returns ticks run."""
        ran = 0
        if run_immediately:
            self._run_tick(job, ran)
            ran += 1
        while max_ticks is None or ran < max_ticks:
            delay = self._ticks.next_delay(self._now())
            if delay is None:
                break
            self._log.debug("scheduler_wait: %.1fs", delay)
            self._sleep(delay)
            self._run_tick(job, ran)
            ran += 1
        return ran

    def _run_tick(self, job: Callable[[], Any], index: int) -> None:
        started = time.monotonic()
        try:
            job()
        except Exception:
            self._log.exception("scheduled_job_failed: tick=%s", index)
            return
        self._log.info("scheduled_job_done: tick=%s elapsed=%.1fs", index, time.monotonic() - started)


class JobProcessor(Protocol):
    def process(self, item: Any) -> Any: ...


class WorkerLoop:
    """Poll loop: dequeue, process fully, sleep a fixed interval, repeat."""

    def __init__(
        self,
        queue: JobQueueLike,
        processor: JobProcessor,
        *,
        poll_interval_sec: float = 5.0,
        sleep: SleepFunc = time.sleep,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._queue = queue
        self._processor = processor
        self._poll_interval = poll_interval_sec
        self._sleep = sleep
        self._log = log or logger

    def run_once(self) -> Any:
        try:
            item = self._queue.dequeue()
        except QueueError as exc:
            self._log.error("worker_dequeue_failed: %s", exc)
            return None
        if item is None:
            return None
        self._log.info("worker_job: url=%s feed=%s", item.url, item.feed_name)
        return self._processor.process(item)

    def run(self, max_iterations: Optional[int] = None, stop: Optional[threading.Event] = None) -> int:
        """Poll until max_iterations is reached or stop is set; a job in flight always finishes."""
        done = 0
        while max_iterations is None or done < max_iterations:
            if stop is not None and stop.is_set():
                break
            self.run_once()
            done += 1
            self._sleep(self._poll_interval)
        return done


def run_worker_pool(
    loop_factory: Callable[[], WorkerLoop],
    workers: int,
    *,
    max_iterations: Optional[int] = None,
    stop: Optional[threading.Event] = None,
    log: Optional[logging.Logger] = None,
) -> None:
    """Run independent worker loops side by side; they share only the queue and the store.

    Every loop is built before any thread starts, so factory errors reach the caller.
    A KeyboardInterrupt sets ``stop`` and waits for the loops to drain.
    """
    log = log or logger
    if stop is None:
        stop = threading.Event()
    loops = [loop_factory() for _ in range(max(1, workers))]
    if len(loops) == 1:
        loops[0].run(max_iterations, stop)
        return
    with ThreadPoolExecutor(max_workers=len(loops), thread_name_prefix="newsrss-worker") as pool:
        futures = [pool.submit(loop.run, max_iterations, stop) for loop in loops]
        try:
            for fut in as_completed(futures):
                exc = fut.exception()
                if exc is not None:
                    log.error("worker_crashed: %s", exc)
        except KeyboardInterrupt:
            log.info("worker_pool_stopping: waiting for %s loops", len(loops))
            stop.set()
            raise
