"""Cron scheduler for periodic background tasks.

The scheduler is an ordinary object built by the application container: tasks
are registered by name with a cron expression and a timezone, and one asyncio
loop runs whichever tasks are due. Task failures are logged and the task
stays scheduled. Tasks can also be run on demand by name.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from doclink.core.cron import CronExpression
from doclink.services.errors import DownstreamFailureError, RequestLifecycleError
from doclink.services.lifecycle import utcnow

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

logger = logging.getLogger(__name__)


class TaskNotFoundError(RequestLifecycleError):
    """Raised when triggering or describing an unregistered task."""

    code = "not_found"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Scheduled task {name!r} not found")


@dataclass
class ScheduledTask:
    """A registered periodic task.

    Attributes:
        name: Unique task name.
        func: Coroutine function run on each tick the task is due.
        cron: Parsed schedule.
        timezone: Timezone the schedule is evaluated in.
        enabled: Disabled tasks are listed but never run by the loop.
        next_run: Next scheduled run (UTC), None when disabled.
        last_run: Start of the most recent run.
        last_error: Error text from the most recent run, if it failed.
    """

    name: str
    func: Callable[[], Awaitable[Any]]
    cron: CronExpression
    timezone: ZoneInfo
    enabled: bool = True
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_error: str | None = None

    def config(self) -> dict[str, Any]:
        """Schedule, timezone and next run, as shown to operators."""
        return {
            "schedule": str(self.cron),
            "timezone": self.timezone.key,
            "next_run": self.next_run.isoformat() if self.next_run else None,
        }

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "enabled": self.enabled,
            **self.config(),
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_error": self.last_error,
        }


class TaskScheduler:
    """Runs registered tasks on their cron schedules.

    Example:
        scheduler = TaskScheduler(poll_interval=30)
        scheduler.register("expire_requests", sweeper.run_once, "0 0 * * *", "Europe/Lisbon")
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        poll_interval: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._poll_interval = poll_interval
        self._clock = clock
        self._tasks: dict[str, ScheduledTask] = {}
        self._shutdown_event = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None

    def register(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        schedule: str | CronExpression,
        timezone: str | ZoneInfo = "UTC",
        *,
        enabled: bool = True,
    ) -> ScheduledTask:
        """Register ``func`` to run on ``schedule``.

        Raises:
            ValueError: If a task with this name is already registered.
            CronSyntaxError: If ``schedule`` is not a valid cron expression.
        """
        if name in self._tasks:
            msg = f"task {name!r} is already registered"
            raise ValueError(msg)
        cron = schedule if isinstance(schedule, CronExpression) else CronExpression.parse(schedule)
        tz = timezone if isinstance(timezone, ZoneInfo) else ZoneInfo(timezone)

        task = ScheduledTask(name=name, func=func, cron=cron, timezone=tz, enabled=enabled)
        if enabled:
            task.next_run = cron.next_after(self._clock(), tz)
        self._tasks[name] = task
        logger.info(
            "Registered task %s: schedule=%r timezone=%s next_run=%s",
            name,
            str(cron),
            tz.key,
            task.next_run.isoformat() if task.next_run else "disabled",
        )
        return task

    def get(self, name: str) -> ScheduledTask:
        """Return the task registered as ``name``.

        Raises:
            TaskNotFoundError: If no such task exists.
        """
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskNotFoundError(name) from None

    @property
    def tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    def describe(self) -> list[dict[str, Any]]:
        return [task.describe() for task in self._tasks.values()]

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def _run_task(self, task: ScheduledTask) -> None:
        """Run one scheduled execution; errors are logged, never raised."""
        task.last_run = self._clock()
        try:
            await task.func()
        except Exception as e:
            task.last_error = str(e) or type(e).__name__
            logger.exception("Scheduled task %s failed", task.name)
        else:
            task.last_error = None

    async def tick(self) -> list[str]:
        """Run every enabled task whose next run is due.

        Returns:
            Names of the tasks that ran.
        """
        now = self._clock()
        ran: list[str] = []
        for task in self._tasks.values():
            if not task.enabled or task.next_run is None or task.next_run > now:
                continue
            await self._run_task(task)
            task.next_run = task.cron.next_after(max(now, self._clock()), task.timezone)
            ran.append(task.name)
            logger.debug("Task %s next run at %s", task.name, task.next_run.isoformat())
        return ran

    async def trigger(self, name: str) -> Any:
        """Run ``name`` now and return its result.

        The regular schedule is not affected.

        Raises:
            TaskNotFoundError: If no such task exists.
            DownstreamFailureError: If the task fails.
        """
        task = self.get(name)
        logger.info("Manually triggering task %s", name)
        task.last_run = self._clock()
        try:
            result = await task.func()
        except Exception as e:
            task.last_error = str(e) or type(e).__name__
            logger.exception("Manually triggered task %s failed", name)
            raise DownstreamFailureError(name, f"Task {name!r} failed") from e
        task.last_error = None
        return result

    def _seconds_until_next_run(self) -> float:
        upcoming = [t.next_run for t in self._tasks.values() if t.enabled and t.next_run]
        if not upcoming:
            return self._poll_interval
        delay = (min(upcoming) - self._clock()).total_seconds()
        return min(max(delay, 0.0), self._poll_interval)

    async def run(self) -> None:
        """Run due tasks until :meth:`stop` is called."""
        logger.info(
            "Scheduler starting: poll_interval=%ss, tasks=%d",
            self._poll_interval,
            len(self._tasks),
        )
        while not self._shutdown_event.is_set():
            try:
                await self.tick()
            except Exception as e:
                logger.exception("Error in scheduler loop: %s", e)

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._seconds_until_next_run(),
                )
        logger.info("Scheduler stopped")

    def start(self) -> asyncio.Task[None]:
        """Start the scheduler loop as a background task."""
        if self.running:
            return self._loop_task
        self._shutdown_event.clear()
        self._loop_task = asyncio.create_task(self.run(), name="doclink-scheduler")
        return self._loop_task

    async def stop(self, timeout: float = 10.0) -> None:
        """Signal the loop to stop and wait for it to exit."""
        self._shutdown_event.set()
        if self._loop_task is None:
            return
        try:
            await asyncio.wait_for(self._loop_task, timeout=timeout)
        except TimeoutError:
            logger.warning("Scheduler did not stop within %ss, cancelling", timeout)
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
        self._loop_task = None
