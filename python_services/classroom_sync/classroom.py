"""Composition root wiring the cache, remote client, breaker and managers.

One ``ClassroomSync`` per client process. Teacher and student views start
their pollers through it and cancel them through the returned handles.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List, Optional

import httpx

from .circuit_breaker import CircuitBreaker
from .clock import Clock, SystemClock
from .config import (
    HEARTBEAT_INTERVAL_SECONDS,
    LESSON_REFRESH_INTERVAL_SECONDS,
    PRESENCE_POLL_INTERVAL_SECONDS,
    Settings,
    get_settings,
)
from .lesson_sync import LessonSynchronizer
from .local_cache import LocalCache, open_cache_backend
from .models import Lesson, StudentSession
from .remote_client import RemoteStoreClient
from .scheduler import Scheduler, TaskHandle
from .session_manager import SessionManager
from .slide_relay import SlideFollower, SlideRelay

logger = logging.getLogger(__name__)


async def _deliver(callback: Callable[[Any], Any], value: Any) -> None:
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class ClassroomSync:
    """Lesson synchronizer, session manager and slide relay sharing one cache."""

    def __init__(
        self,
        cache: LocalCache,
        remote: RemoteStoreClient,
        *,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.cache = cache
        self.remote = remote
        self.scheduler = scheduler or Scheduler()
        self.breaker = CircuitBreaker(self.clock)
        self.relay = SlideRelay(cache)
        self.lessons = LessonSynchronizer(cache, remote, self.breaker, self.relay, self.clock)
        self.sessions = SessionManager(cache, remote, self.breaker, self.clock)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        clock: Optional[Clock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ClassroomSync":
        settings = settings or get_settings()
        cache = LocalCache(open_cache_backend(settings.cache_path, settings.cache_table), settings.cache_namespace)
        remote = RemoteStoreClient(
            settings.remote_base_url, timeout=settings.remote_timeout_seconds, transport=transport
        )
        return cls(cache, remote, clock=clock)

    def startup(self) -> int:
        """Purge stale sessions left over from a previous run."""
        return self.sessions.cleanup_stale_sessions()

    # ------------------------------------------------------------------
    # Teacher flow
    # ------------------------------------------------------------------

    async def change_slide(self, lesson_id: str, index: int) -> List[StudentSession]:
        """Publish the teacher's slide and push it into every active local session."""
        self.relay.publish(lesson_id, index)
        updated: List[StudentSession] = []
        for student in await self.sessions.get_active_students(lesson_id):
            session = await self.sessions.update_session(student.student_id, {"current_slide": index})
            if session is not None:
                updated.append(session)
        return updated

    def watch_presence(
        self,
        lesson_id: str,
        on_update: Callable[[List[StudentSession]], Any],
        *,
        interval_seconds: float = PRESENCE_POLL_INTERVAL_SECONDS,
    ) -> TaskHandle:
        async def _tick() -> None:
            await _deliver(on_update, await self.sessions.get_active_students(lesson_id))

        return self.scheduler.every(interval_seconds, _tick, name=f"presence:{lesson_id}")

    def watch_lessons(
        self,
        on_update: Callable[[List[Lesson]], Any],
        *,
        interval_seconds: float = LESSON_REFRESH_INTERVAL_SECONDS,
    ) -> TaskHandle:
        async def _tick() -> None:
            await _deliver(on_update, await self.lessons.get_all_lessons())

        return self.scheduler.every(interval_seconds, _tick, name="lessons")

    # ------------------------------------------------------------------
    # Student flow
    # ------------------------------------------------------------------

    def follow_slides(self, lesson_id: str, on_change: Callable[[int], Any]) -> SlideFollower:
        follower = SlideFollower(self.relay, lesson_id, on_change, scheduler=self.scheduler)
        follower.start()
        return follower

    def keep_alive(self, student_id: str, *, interval_seconds: float = HEARTBEAT_INTERVAL_SECONDS) -> TaskHandle:
        async def _beat() -> None:
            await self.sessions.heartbeat(student_id)

        return self.scheduler.every(interval_seconds, _beat, name=f"heartbeat:{student_id}")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        await self.scheduler.aclose()
        self.cache.close()
        logger.info("Classroom sync closed")
