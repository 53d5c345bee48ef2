"""Shared fixtures: manual clock, in-memory cache and a fake remote store."""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from classroom_sync.classroom import ClassroomSync
from classroom_sync.clock import ManualClock
from classroom_sync.local_cache import LocalCache
from classroom_sync.models import Lesson
from classroom_sync.remote_client import RemoteStoreClient

STORE_URL = "http://store.test"


class FakeRemoteStore:
    """In-memory lesson/session store speaking the remote JSON protocol.

    Records every request in ``calls``. ``fail_status`` makes every request
    answer with that status; ``offline`` makes every request raise a
    connection error.
    """

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.lessons: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_status: Optional[int] = None
        self.offline = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))
        if self.offline:
            raise httpx.ConnectError("store unreachable", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"error": "injected failure"})

        parts = [p for p in path.split("/") if p]
        body = json.loads(request.content) if request.content else {}

        if parts == ["lessons"] and method == "GET":
            return httpx.Response(200, json={"lessons": list(self.lessons.values())})
        if parts == ["lessons", "save"] and method == "POST":
            lesson = body["lesson"]
            self.lessons[lesson["id"]] = lesson
            return httpx.Response(200, json={"success": True, "lesson": lesson})
        if len(parts) == 3 and parts[:2] == ["lessons", "code"]:
            for lesson in self.lessons.values():
                if lesson.get("accessCode", "").upper() == parts[2].upper():
                    return httpx.Response(200, json={"lesson": lesson})
            return httpx.Response(404, json={"error": "Lesson not found with that access code"})
        if len(parts) == 2 and parts[0] == "lessons":
            if method == "DELETE":
                self.lessons.pop(parts[1], None)
                return httpx.Response(200, json={"success": True})
            if parts[1] in self.lessons:
                return httpx.Response(200, json={"lesson": self.lessons[parts[1]]})
            return httpx.Response(404, json={"error": "Lesson not found"})

        if len(parts) == 3 and parts[:2] == ["sessions", "active"]:
            now = self.clock.now_ms()
            active = [
                s for s in self.sessions.values()
                if s.get("lessonId") == parts[2] and now - s.get("lastActive", 0) < 30_000
            ]
            return httpx.Response(200, json={"sessions": active})
        if parts == ["sessions", "save"] and method == "POST":
            session = body["session"]
            self.sessions[session["studentId"]] = session
            return httpx.Response(200, json={"success": True})
        if len(parts) == 2 and parts[0] == "sessions":
            if method == "DELETE":
                self.sessions.pop(parts[1], None)
                return httpx.Response(200, json={"success": True})
            if parts[1] in self.sessions:
                return httpx.Response(200, json={"session": self.sessions[parts[1]]})
            return httpx.Response(404, json={"error": "Session not found"})

        return httpx.Response(404, json={"error": f"no route for {method} {path}"})


@pytest.fixture
def clock():
    return ManualClock(start_ms=1_700_000_000_000)


@pytest.fixture
def remote_store(clock):
    return FakeRemoteStore(clock)


@pytest.fixture
def remote(remote_store):
    return RemoteStoreClient(STORE_URL, timeout=2.0, transport=httpx.MockTransport(remote_store.handle))


@pytest.fixture
def backend():
    return {}


@pytest.fixture
def cache(backend):
    return LocalCache(backend, namespace="test")


@pytest.fixture
def classroom(cache, remote, clock):
    return ClassroomSync(cache, remote, clock=clock)


@pytest.fixture
def lessons(classroom):
    return classroom.lessons


@pytest.fixture
def sessions(classroom):
    return classroom.sessions


@pytest.fixture
def make_lesson():
    def _make(lesson_id: str = "L1", **overrides: Any) -> Lesson:
        data = {
            "id": lesson_id,
            "title": f"Lesson {lesson_id}",
            "accessCode": f"CODE{lesson_id}",
            "slides": [{"id": "s1", "title": "Intro", "content": {"type": "markdown", "content": {"text": "hi"}}, "goals": []}],
            "goals": [{"id": "g1", "description": "Say hello", "completed": False}],
            "systemPrompt": "Be kind.",
            "isPaused": False,
        }
        data.update(overrides)
        return Lesson.model_validate(data)

    return _make
