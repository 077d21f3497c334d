"""Periodic Task Scheduler

Drives the telemetry core's independent periodic tasks (aggregation logging,
retention cleanup, alert evaluation) on the running event loop. Tasks are not
synchronized with each other beyond sharing the loop; a slow pass delays
later ticks but never overlaps with itself.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..error_handling.error_manager import (
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity
)

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTask:
    """A named callback run every ``interval`` seconds"""
    name: str
    interval: float
    callback: Callable[[], Any]
    run_count: int = 0
    failure_count: int = 0
    last_run: Optional[datetime] = None
    task: Optional[asyncio.Task] = None


class Scheduler:
    """Runs named periodic tasks as asyncio loops"""

    def __init__(self, error_handler: Optional[ErrorHandler] = None):
        self.tasks: Dict[str, ScheduledTask] = {}
        self.error_handler = error_handler or ErrorHandler()
        self.is_running = False

    def add_task(self, name: str, interval: float, callback: Callable[[], Any]) -> ScheduledTask:
        """Register a periodic task

        Args:
            name: Unique task name
            interval: Seconds between the end of one pass and the next
            callback: Plain function or coroutine function to run each tick
        """
        if name in self.tasks:
            raise ValueError(f"Task already registered: {name}")
        if interval <= 0:
            raise ValueError(f"Interval for {name} must be positive")

        scheduled = ScheduledTask(name=name, interval=interval, callback=callback)
        self.tasks[name] = scheduled

        if self.is_running:
            scheduled.task = asyncio.create_task(self._task_loop(scheduled))

        logger.info(f"Scheduled task {name} every {interval}s")
        return scheduled

    async def start(self) -> None:
        if self.is_running:
            return

        self.is_running = True
        for scheduled in self.tasks.values():
            scheduled.task = asyncio.create_task(self._task_loop(scheduled))

        logger.info(f"Scheduler started with {len(self.tasks)} tasks")

    async def stop(self) -> None:
        """Cancel every loop; a pass already in progress is not interrupted"""
        self.is_running = False

        for scheduled in self.tasks.values():
            task = scheduled.task
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            scheduled.task = None

        logger.info("Scheduler stopped")

    async def run_task(self, name: str) -> bool:
        """Run one pass of a task immediately

        Returns:
            True if the pass completed without raising
        """
        return await self._execute(self.tasks[name])

    async def _task_loop(self, scheduled: ScheduledTask) -> None:
        while self.is_running:
            try:
                await asyncio.sleep(scheduled.interval)
                await asyncio.shield(self._execute(scheduled))
            except asyncio.CancelledError:
                break

    async def _execute(self, scheduled: ScheduledTask) -> bool:
        try:
            result = scheduled.callback()
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as e:
            scheduled.failure_count += 1
            self.error_handler.handle_error(
                e,
                ErrorContext(component="scheduler", operation=scheduled.name),
                ErrorCategory.SCHEDULER,
                ErrorSeverity.HIGH
            )
            return False
        finally:
            scheduled.run_count += 1
            scheduled.last_run = datetime.now()

    def get_status(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "interval": scheduled.interval,
                "run_count": scheduled.run_count,
                "failure_count": scheduled.failure_count,
                "last_run": scheduled.last_run.isoformat() if scheduled.last_run else None
            }
            for name, scheduled in self.tasks.items()
        }
