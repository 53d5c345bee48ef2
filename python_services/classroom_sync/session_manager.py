"""
Student session lifecycle: creation, heartbeats, goal/response accumulation,
presence queries and staleness cleanup.

Every session read from the cache or the remote store goes through
``parse_session`` first, so ``completed_goals`` and ``responses`` are always
present. Remote calls are gated per lesson by the shared circuit breaker.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from .circuit_breaker import SESSION_SCOPE, CircuitBreaker
from .clock import Clock
from .config import PRESENCE_THROTTLE_MS, PRESENCE_WINDOW_MS, SESSION_STALE_MS
from .errors import InvalidRecordError
from .local_cache import LocalCache
from .models import StudentResponse, StudentSession
from .remote_client import RemoteStoreClient
from .validation import Invalid, parse_session

logger = logging.getLogger(__name__)


def new_student_id() -> str:
    return f"student_{uuid.uuid4().hex[:9]}"


def _alias_updates(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Map snake_case field names in *updates* to their camelCase aliases."""
    fields = StudentSession.model_fields
    aliased: Dict[str, Any] = {}
    for key, value in updates.items():
        field = fields.get(key)
        aliased[field.alias if field is not None and field.alias else key] = value
    return aliased


class SessionManager:
    """Owns student sessions in the local cache with remote write-through."""

    def __init__(
        self,
        cache: LocalCache,
        remote: RemoteStoreClient,
        breaker: CircuitBreaker,
        clock: Clock,
        *,
        presence_window_ms: int = PRESENCE_WINDOW_MS,
        presence_throttle_ms: int = PRESENCE_THROTTLE_MS,
        stale_after_ms: int = SESSION_STALE_MS,
    ) -> None:
        self.cache = cache
        self.remote = remote
        self.breaker = breaker
        self.clock = clock
        self.presence_window_ms = presence_window_ms
        self.presence_throttle_ms = presence_throttle_ms
        self.stale_after_ms = stale_after_ms
        self._last_presence_call: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Local helpers
    # ------------------------------------------------------------------

    def _load_local(self, student_id: str) -> Optional[StudentSession]:
        raw = self.cache.get_session_record(student_id)
        if raw is None:
            return None
        parsed = parse_session(raw)
        if isinstance(parsed, Invalid):
            logger.warning(f"Cached session {student_id} is malformed: {parsed.reason}")
            return None
        return parsed.value

    def _local_sessions(self) -> List[StudentSession]:
        sessions = []
        for key, raw in self.cache.session_records().items():
            parsed = parse_session(raw)
            if isinstance(parsed, Invalid):
                logger.debug(f"Skipping malformed cached session {key}: {parsed.reason}")
                continue
            sessions.append(parsed.value)
        return sessions

    def _write_local(self, session: StudentSession) -> None:
        self.cache.put_session_record(session.student_id, session.to_record())

    async def _write_through(self, session: StudentSession) -> None:
        await self.breaker.call(session.lesson_id, self.remote.save_session, session.to_record())

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_session(self, student_name: str, lesson_id: str) -> StudentSession:
        session = StudentSession(
            student_id=new_student_id(),
            student_name=student_name,
            lesson_id=lesson_id,
            last_active=self.clock.now_ms(),
            current_slide=0,
        )
        self._write_local(session)
        logger.info(f"Student {student_name!r} joined lesson {lesson_id} as {session.student_id}")
        await self._write_through(session)
        return session

    async def save_session(self, session: StudentSession) -> StudentSession:
        """Normalize, stamp the heartbeat, persist locally, then write through."""
        parsed = parse_session(session)
        if isinstance(parsed, Invalid):
            raise InvalidRecordError(f"Invalid session: {parsed.reason}")
        session = parsed.value.model_copy(update={"last_active": self.clock.now_ms()})
        self._write_local(session)
        await self._write_through(session)
        return session

    async def update_session(self, student_id: str, updates: Mapping[str, Any]) -> Optional[StudentSession]:
        """Apply a partial update (snake_case or camelCase keys) to a local session."""
        session = self._load_local(student_id)
        if session is None:
            return None
        record = session.to_record()
        record.update(_alias_updates(updates))
        record["studentId"] = student_id
        parsed = parse_session(record)
        if isinstance(parsed, Invalid):
            raise InvalidRecordError(f"Invalid update for {student_id}: {parsed.reason}")
        return await self.save_session(parsed.value)

    async def heartbeat(self, student_id: str) -> Optional[StudentSession]:
        return await self.update_session(student_id, {})

    async def get_session(self, student_id: str) -> Optional[StudentSession]:
        """Local first; refresh from the remote store when the lesson's circuit is closed."""
        local = self._load_local(student_id)
        scope = local.lesson_id if local else SESSION_SCOPE
        fetched = await self.breaker.call(scope, self.remote.get_session, student_id)
        if fetched is None:
            return local

        parsed = parse_session(fetched)
        if isinstance(parsed, Invalid) or parsed.value.student_id != student_id:
            reason = parsed.reason if isinstance(parsed, Invalid) else "student id mismatch"
            logger.warning(f"Dropping remote copy of session {student_id}: {reason}")
            return local
        self._write_local(parsed.value)
        return parsed.value

    async def end_session(self, student_id: str) -> bool:
        local = self._load_local(student_id)
        existed = self.cache.get_session_record(student_id) is not None
        self.cache.remove_session_record(student_id)
        scope = local.lesson_id if local else SESSION_SCOPE
        await self.breaker.call(scope, self.remote.delete_session, student_id)
        if existed:
            logger.info(f"Session {student_id} ended")
        return existed

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def add_completed_goal(self, student_id: str, goal_id: str) -> Optional[StudentSession]:
        session = await self.get_session(student_id)
        if session is None:
            return None
        if goal_id in session.completed_goals:
            return session
        updated = session.model_copy(update={"completed_goals": [*session.completed_goals, goal_id]})
        return await self.save_session(updated)

    async def add_response(
        self, student_id: str, slide_id: str, response: Mapping[str, Any]
    ) -> Optional[StudentSession]:
        """Append a timestamped answer for *slide_id*; every call adds a new entry."""
        session = await self.get_session(student_id)
        if session is None:
            return None
        data = dict(response)
        data.pop("timestamp", None)
        try:
            entry = StudentResponse.model_validate({**data, "timestamp": self.clock.now_ms()})
        except ValueError as e:
            raise InvalidRecordError(f"Invalid response for {student_id}: {e}") from e

        responses = {key: list(entries) for key, entries in session.responses.items()}
        responses.setdefault(slide_id, []).append(entry)
        return await self.save_session(session.model_copy(update={"responses": responses}))

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    async def get_active_students(self, lesson_id: str) -> List[StudentSession]:
        """Sessions for *lesson_id* seen within the presence window.

        Remote presence is merged in at most once per throttle window and only
        while the lesson's circuit is closed; local entries win on collision.
        """
        now = self.clock.now_ms()
        local = [s for s in self._local_sessions() if s.lesson_id == lesson_id]
        active = [s for s in local if now - s.last_active < self.presence_window_ms]

        last_call = self._last_presence_call.get(lesson_id)
        if self.breaker.is_open(lesson_id) or (last_call is not None and now - last_call < self.presence_throttle_ms):
            return active

        self._last_presence_call[lesson_id] = now
        remote_records = await self.breaker.call(
            lesson_id, self.remote.list_active_sessions, lesson_id, not_found_cooldown=True
        )
        if not remote_records:
            return active

        # Any local record, idle or not, outranks the remote copy
        seen = {s.student_id for s in local}
        for raw in remote_records:
            parsed = parse_session(raw)
            if isinstance(parsed, Invalid):
                logger.debug(f"Skipping malformed remote session: {parsed.reason}")
                continue
            remote_session = parsed.value
            if remote_session.lesson_id != lesson_id or remote_session.student_id in seen:
                continue
            if now - remote_session.last_active >= self.presence_window_ms:
                continue
            seen.add(remote_session.student_id)
            active.append(remote_session)
        return active

    def cleanup_stale_sessions(self) -> int:
        """Delete local sessions idle past the staleness threshold or unparsable."""
        now = self.clock.now_ms()
        removed = 0
        for student_id, raw in self.cache.session_records().items():
            parsed = parse_session(raw)
            if isinstance(parsed, Invalid) or now - parsed.value.last_active > self.stale_after_ms:
                self.cache.remove_session_record(student_id)
                removed += 1
        if removed:
            logger.info(f"Removed {removed} stale sessions")
        return removed
