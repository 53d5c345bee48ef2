"""Cancelable periodic tasks on the running asyncio loop.

Pollers (slide relay, presence, lesson refresh) are registered here instead
of as ambient timers so a view teardown or ``Scheduler.close()`` stops them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class TaskHandle:
    """Handle to one periodic task."""

    def __init__(self, name: str, task: "asyncio.Task[None]", owner: "Scheduler") -> None:
        self.name = name
        self._task = task
        self._owner = owner

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()
        self._owner._forget(self)

    async def wait_cancelled(self) -> None:
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def __repr__(self) -> str:
        return f"TaskHandle({self.name}, cancelled={self.cancelled})"


class Scheduler:
    """Owns every periodic task it starts."""

    def __init__(self) -> None:
        self._handles: Set[TaskHandle] = set()

    @property
    def active(self) -> int:
        return len(self._handles)

    def every(
        self,
        interval_seconds: float,
        callback: Callable[[], Any],
        *,
        name: Optional[str] = None,
        run_immediately: bool = True,
    ) -> TaskHandle:
        """Call *callback* (sync or async) every *interval_seconds* until cancelled.

        Exceptions from the callback are logged and the loop keeps going.
        """
        task_name = name or getattr(callback, "__name__", "periodic")

        async def _loop() -> None:
            if not run_immediately:
                await asyncio.sleep(interval_seconds)
            while True:
                try:
                    result = callback()
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(f"Periodic task {task_name} failed")
                await asyncio.sleep(interval_seconds)

        task = asyncio.get_running_loop().create_task(_loop(), name=task_name)
        handle = TaskHandle(task_name, task, self)
        self._handles.add(handle)
        logger.debug(f"Scheduled {task_name} every {interval_seconds}s")
        return handle

    def _forget(self, handle: TaskHandle) -> None:
        self._handles.discard(handle)

    def close(self) -> None:
        """Cancel every task still running."""
        for handle in list(self._handles):
            handle.cancel()

    async def aclose(self) -> None:
        handles = list(self._handles)
        self.close()
        for handle in handles:
            await handle.wait_cancelled()
