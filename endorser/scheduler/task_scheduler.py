"""
Task scheduler for periodic validator jobs.

Each task fires on its own timer. A tick that finds the previous cycle of
the same task still running is skipped, so slow cycles never overlap.
"""

import asyncio
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Set

import structlog

from endorser.core.exceptions import SchedulerError

logger = structlog.get_logger(__name__)


class RunGuard:
    """Non-reentrant run flag for one task."""

    def __init__(self, name: str):
        self.name = name
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """Yield whether the guard was acquired; release it on every exit path."""
        if not self.try_acquire():
            yield False
            return
        try:
            yield True
        finally:
            self.release()


class ScheduledTask:
    """Represents a scheduled task."""

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        enabled: bool = True,
        run_immediately: bool = False,
        error_delay_seconds: float = 0.0,
        log_skips: bool = True,
    ):
        if interval_seconds <= 0:
            raise SchedulerError(
                f"Task {name} needs a positive interval",
                {"interval_seconds": interval_seconds}
            )
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self.run_immediately = run_immediately
        self.error_delay_seconds = error_delay_seconds
        self.log_skips = log_skips
        self.guard = RunGuard(name)
        self.last_run: Optional[datetime] = None
        self.run_count = 0
        self.skip_count = 0
        self.error_count = 0
        self.last_error: Optional[str] = None

    async def tick(self) -> bool:
        """
        Run one cycle unless the previous one is still in flight.

        Errors are logged and followed by the error delay before the guard is
        released; they never propagate to the scheduler.

        Returns:
            False if the tick was skipped
        """
        with self.guard.hold() as acquired:
            if not acquired:
                self.skip_count += 1
                if self.log_skips:
                    logger.info(f"{self.name} task is already running. Skipping this round.")
                return False

            start_time = datetime.utcnow()
            try:
                await self.func()
                self.run_count += 1
                logger.debug(
                    f"Task completed: {self.name}",
                    duration=(datetime.utcnow() - start_time).total_seconds(),
                    run_count=self.run_count
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.error_count += 1
                self.last_error = str(e)
                logger.error(
                    f"{self.name} task error",
                    error=str(e),
                    error_count=self.error_count,
                    exc_info=True
                )
                if self.error_delay_seconds:
                    await asyncio.sleep(self.error_delay_seconds)
            finally:
                self.last_run = start_time
            return True

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "running": self.guard.held,
            "interval_seconds": self.interval_seconds,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "skip_count": self.skip_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
        }


class TaskScheduler:
    """Runs registered tasks on independent timers."""

    def __init__(self):
        self.tasks: Dict[str, ScheduledTask] = {}
        self.running = False
        self._timers: Dict[str, asyncio.Task] = {}
        self._inflight: Set[asyncio.Task] = set()

    def register_task(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        enabled: bool = True,
        run_immediately: bool = False,
        error_delay_seconds: float = 0.0,
        log_skips: bool = True,
    ) -> ScheduledTask:
        """Register a new scheduled task."""
        if name in self.tasks:
            raise SchedulerError(f"Task already registered: {name}")
        task = ScheduledTask(
            name=name,
            func=func,
            interval_seconds=interval_seconds,
            enabled=enabled,
            run_immediately=run_immediately,
            error_delay_seconds=error_delay_seconds,
            log_skips=log_skips,
        )
        self.tasks[name] = task
        logger.info(f"Registered task: {name} (interval: {interval_seconds}s)")
        return task

    def fire(self, task: ScheduledTask) -> asyncio.Task:
        """Start one tick of `task` without waiting for it."""
        tick = asyncio.create_task(task.tick(), name=f"tick:{task.name}")
        self._inflight.add(tick)
        tick.add_done_callback(self._inflight.discard)
        return tick

    async def _timer_loop(self, task: ScheduledTask):
        if task.run_immediately and task.enabled:
            self.fire(task)
        while self.running:
            await asyncio.sleep(task.interval_seconds)
            if self.running and task.enabled:
                self.fire(task)

    async def start(self):
        """Start every task timer and wait until the scheduler is stopped."""
        logger.info("Starting task scheduler", tasks=list(self.tasks))
        self.running = True
        for name, task in self.tasks.items():
            self._timers[name] = asyncio.create_task(self._timer_loop(task), name=f"timer:{name}")

        try:
            await asyncio.gather(*self._timers.values())
        except asyncio.CancelledError:
            pass
        logger.info("Task scheduler stopped")

    async def stop(self):
        """Stop timers and cancel cycles still in flight."""
        logger.info("Stopping task scheduler")
        self.running = False
        pending = list(self._timers.values()) + list(self._inflight)
        for task in pending:
            if not task.done():
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._timers.clear()

    async def health_check(self) -> Dict[str, Any]:
        """Get health status of the task scheduler."""
        total_tasks = len(self.tasks)
        tasks_with_errors = sum(1 for task in self.tasks.values() if task.error_count > 0)
        return {
            "healthy": self.running,
            "running": self.running,
            "total_tasks": total_tasks,
            "tasks_with_errors": tasks_with_errors,
            "tasks": {name: task.status() for name, task in self.tasks.items()},
        }
