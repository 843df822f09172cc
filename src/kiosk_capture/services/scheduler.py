"""Periodic background jobs run on the application event loop."""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)

Job = Callable[[], object | Awaitable[object]]


@dataclass
class BackgroundScheduler:
    """Runs registered jobs at fixed intervals until stopped."""

    _jobs: list[tuple[str, float, Job]] = field(default_factory=list)
    _tasks: list[asyncio.Task[None]] = field(default_factory=list)

    def add_job(self, name: str, interval_seconds: float, job: Job) -> None:
        self._jobs.append((name, interval_seconds, job))

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Start one task per job; must be called inside a running loop."""
        if self._tasks:
            return
        for name, interval, job in self._jobs:
            self._tasks.append(
                asyncio.create_task(self._loop(name, interval, job), name=name)
            )
        _logger.info("Background scheduler started: jobs=%s", len(self._jobs))

    async def stop(self) -> None:
        """Cancel all job tasks and wait for them to finish."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def run_once(self, name: str) -> None:
        """Run a registered job immediately."""
        for job_name, _, job in self._jobs:
            if job_name == name:
                await _call(job)
                return
        raise KeyError(name)

    async def _loop(self, name: str, interval: float, job: Job) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await _call(job)
            except Exception:
                _logger.exception("Background job failed: job=%s", name)


async def _call(job: Job) -> object:
    result = job()
    if inspect.isawaitable(result):
        return await result
    return result
