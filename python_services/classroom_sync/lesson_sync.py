"""
Lesson synchronizer: lesson CRUD over the local cache with remote write-through,
and last-write-wins reconciliation against the remote lesson list.
"""

from __future__ import annotations

import logging
import secrets
from typing import Dict, List, Optional

from .circuit_breaker import LESSON_LIST_SCOPE, CircuitBreaker, access_code_scope
from .clock import Clock
from .config import ACCESS_CODE_ALPHABET, ACCESS_CODE_LENGTH, SYNC_THROTTLE_MS
from .errors import AccessCodeConflictError
from .local_cache import LocalCache
from .models import Lesson
from .remote_client import RemoteStoreClient
from .slide_relay import SlideRelay
from .validation import Invalid, parse_lesson

logger = logging.getLogger(__name__)


def _ordered(lessons: Dict[str, Lesson]) -> List[Lesson]:
    return sorted(lessons.values(), key=lambda l: (l.created_at or 0, l.id))


class LessonSynchronizer:
    """Owns lesson records. Local writes always land before the remote attempt."""

    def __init__(
        self,
        cache: LocalCache,
        remote: RemoteStoreClient,
        breaker: CircuitBreaker,
        relay: SlideRelay,
        clock: Clock,
        *,
        sync_throttle_ms: int = SYNC_THROTTLE_MS,
    ) -> None:
        self.cache = cache
        self.remote = remote
        self.breaker = breaker
        self.relay = relay
        self.clock = clock
        self.sync_throttle_ms = sync_throttle_ms
        self._last_sync_ms: Optional[int] = None
        self._syncing = False

    # ------------------------------------------------------------------
    # Local helpers
    # ------------------------------------------------------------------

    def _local_lessons(self) -> Dict[str, Lesson]:
        lessons: Dict[str, Lesson] = {}
        for key, raw in self.cache.lesson_records().items():
            parsed = parse_lesson(raw)
            if isinstance(parsed, Invalid):
                logger.warning(f"Ignoring malformed cached lesson {key}: {parsed.reason}")
                continue
            lessons[parsed.value.id] = parsed.value
        return lessons

    def _store(self, lesson: Lesson) -> None:
        self.cache.put_lesson_record(lesson.id, lesson.to_record())

    def _with_slide(self, lesson: Lesson) -> Lesson:
        index = self.relay.current(lesson.id)
        if index is None:
            return lesson
        return lesson.model_copy(update={"current_slide": index})

    def _check_access_code(self, lesson: Lesson) -> None:
        code = lesson.normalized_code
        for other in self._local_lessons().values():
            if other.id != lesson.id and other.normalized_code == code:
                raise AccessCodeConflictError(lesson.access_code, other.id)

    def _accept_fetched(self, raw, *, what: str) -> Optional[Lesson]:
        parsed = parse_lesson(raw)
        if isinstance(parsed, Invalid):
            logger.warning(f"Dropping malformed remote lesson for {what}: {parsed.reason}")
            return None
        self._store(parsed.value)
        return parsed.value

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def save_lesson(self, lesson: Lesson) -> Lesson:
        """Insert or replace *lesson* locally, then write it through to the remote store.

        Raises AccessCodeConflictError when another local lesson has the same code.
        """
        self._check_access_code(lesson)
        if lesson.created_at is None:
            lesson = lesson.model_copy(update={"created_at": self.clock.now_ms()})
        self._store(lesson)
        if not self.cache.get_active_lesson_id():
            self.cache.set_active_lesson_id(lesson.id)

        await self.breaker.call(lesson.id, self.remote.save_lesson, lesson.to_record())
        return self._with_slide(lesson)

    async def get_lesson_by_id(self, lesson_id: str) -> Optional[Lesson]:
        raw = self.cache.get_lesson_record(lesson_id)
        if raw is not None:
            parsed = parse_lesson(raw)
            if not isinstance(parsed, Invalid):
                return self._with_slide(parsed.value)
            logger.warning(f"Cached lesson {lesson_id} is malformed: {parsed.reason}")

        fetched = await self.breaker.call(lesson_id, self.remote.get_lesson, lesson_id)
        if fetched is None:
            return None
        if fetched.get("id") != lesson_id:
            logger.warning(f"Remote returned lesson {fetched.get('id')!r} for id {lesson_id!r}")
            return None
        lesson = self._accept_fetched(fetched, what=f"id {lesson_id}")
        return self._with_slide(lesson) if lesson else None

    async def get_lesson_by_access_code(self, access_code: str) -> Optional[Lesson]:
        """Case-insensitive exact match; the oldest lesson wins if several share a code."""
        if not access_code:
            return None
        code = access_code.upper()
        for lesson in _ordered(self._local_lessons()):
            if lesson.normalized_code == code:
                return self._with_slide(lesson)

        fetched = await self.breaker.call(access_code_scope(code), self.remote.get_lesson_by_code, access_code)
        if fetched is None:
            return None
        if str(fetched.get("accessCode", "")).upper() != code:
            logger.warning(f"Remote returned a lesson with a different access code for {access_code!r}")
            return None
        lesson = self._accept_fetched(fetched, what=f"code {access_code}")
        return self._with_slide(lesson) if lesson else None

    async def delete_lesson(self, lesson_id: str) -> bool:
        """Remove a lesson locally (and its slide pointer), then best-effort remotely.

        Returns whether the lesson was known locally.
        """
        existed = self.cache.get_lesson_record(lesson_id) is not None
        self.cache.remove_lesson_record(lesson_id)
        self.relay.clear(lesson_id)

        if self.cache.get_active_lesson_id() == lesson_id:
            remaining = _ordered(self._local_lessons())
            self.cache.set_active_lesson_id(remaining[0].id if remaining else None)

        await self.breaker.call(lesson_id, self.remote.delete_lesson, lesson_id)
        return existed

    async def get_all_lessons(self) -> List[Lesson]:
        await self.sync_with_server()
        return [self._with_slide(lesson) for lesson in _ordered(self._local_lessons())]

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def sync_with_server(self) -> bool:
        """Pull the remote lesson list and merge it into the cache.

        At most one pass per throttle window, and a call made while a pass is in
        flight is a no-op. Returns True when a merge was applied.
        """
        if self._syncing:
            logger.debug("Lesson sync already in flight")
            return False
        now = self.clock.now_ms()
        if self._last_sync_ms is not None and now - self._last_sync_ms < self.sync_throttle_ms:
            return False

        self._syncing = True
        self._last_sync_ms = now
        try:
            remote_records = await self.breaker.call(LESSON_LIST_SCOPE, self.remote.list_lessons)
            if remote_records is None:
                return False

            # Snapshot after the await so local writes made meanwhile are kept
            merged = self._local_lessons()
            adopted = 0
            for raw in remote_records:
                parsed = parse_lesson(raw)
                if isinstance(parsed, Invalid):
                    logger.warning(f"Dropping malformed remote lesson: {parsed.reason}")
                    continue
                incoming = parsed.value
                local = merged.get(incoming.id)
                if local is None or incoming.created_at > local.created_at:
                    merged[incoming.id] = incoming
                    adopted += 1

            for key in self.cache.lesson_records():
                if key not in merged:
                    self.cache.remove_lesson_record(key)
            for lesson in merged.values():
                self._store(lesson)

            if not self.cache.get_active_lesson_id() and merged:
                self.cache.set_active_lesson_id(_ordered(merged)[0].id)

            logger.info(f"Lesson sync merged {len(merged)} lessons ({adopted} from remote)")
            return True
        finally:
            self._syncing = False

    # ------------------------------------------------------------------
    # Active lesson, pause, access codes
    # ------------------------------------------------------------------

    async def get_active_lesson(self) -> Optional[Lesson]:
        lesson_id = self.cache.get_active_lesson_id()
        if not lesson_id:
            return None
        return await self.get_lesson_by_id(lesson_id)

    def set_active_lesson(self, lesson_id: Optional[str]) -> None:
        self.cache.set_active_lesson_id(lesson_id)

    async def set_paused(self, lesson_id: str, paused: bool) -> Optional[Lesson]:
        """Pause or resume student chat for a lesson."""
        lesson = await self.get_lesson_by_id(lesson_id)
        if lesson is None:
            return None
        return await self.save_lesson(lesson.model_copy(update={"is_paused": paused, "current_slide": None}))

    def generate_access_code(self) -> str:
        """Random code not used by any local lesson."""
        used = {lesson.normalized_code for lesson in self._local_lessons().values()}
        while True:
            code = "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(ACCESS_CODE_LENGTH))
            if code not in used:
                return code
