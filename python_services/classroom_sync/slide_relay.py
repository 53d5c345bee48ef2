"""Slide-position relay between the teacher view and student views.

One scalar per lesson id in the local cache. The teacher flow writes it
whenever the displayed slide changes; each student flow polls it every
``RELAY_POLL_INTERVAL_SECONDS``. Last writer wins and a follower can lag by
up to one poll interval; there is no push.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Optional

from .config import RELAY_POLL_INTERVAL_SECONDS
from .local_cache import LocalCache
from .scheduler import Scheduler, TaskHandle

logger = logging.getLogger(__name__)


class SlideRelay:
    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    def publish(self, lesson_id: str, index: int) -> None:
        if index < 0:
            raise ValueError(f"slide index must be >= 0, got {index}")
        self.cache.set_slide_pointer(lesson_id, index)
        logger.debug(f"Lesson {lesson_id} now on slide {index}")

    def current(self, lesson_id: str) -> Optional[int]:
        return self.cache.get_slide_pointer(lesson_id)

    def clear(self, lesson_id: str) -> None:
        self.cache.clear_slide_pointer(lesson_id)


class SlideFollower:
    """Student-side poller that reports slide changes published for a lesson."""

    def __init__(
        self,
        relay: SlideRelay,
        lesson_id: str,
        on_change: Callable[[int], Any],
        *,
        scheduler: Scheduler,
        interval_seconds: float = RELAY_POLL_INTERVAL_SECONDS,
    ) -> None:
        self.relay = relay
        self.lesson_id = lesson_id
        self.on_change = on_change
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds
        self.last_seen: Optional[int] = None
        self._handle: Optional[TaskHandle] = None

    async def poll_once(self) -> Optional[int]:
        index = self.relay.current(self.lesson_id)
        if index is not None and index != self.last_seen:
            self.last_seen = index
            result = self.on_change(index)
            if inspect.isawaitable(result):
                await result
        return index

    def start(self) -> TaskHandle:
        if self._handle is None or self._handle.cancelled:
            self._handle = self.scheduler.every(
                self.interval_seconds, self.poll_once, name=f"slide-follower:{self.lesson_id}"
            )
        return self._handle

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def running(self) -> bool:
        return self._handle is not None and not self._handle.cancelled
