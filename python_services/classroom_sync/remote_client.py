"""Remote store client: a stateless JSON CRUD wrapper over lessons and sessions.

No retries and no caching here. Every failure (transport error, timeout,
non-2xx status, envelope without its payload key) surfaces as
``RemoteStoreError``; the managers decide what to do with it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .errors import RemoteStoreError

logger = logging.getLogger(__name__)


class RemoteStoreClient:
    """Minimal async client for the lesson/session store."""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport) as client:
            try:
                resp = await client.request(method, url, json=json)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                raise RemoteStoreError(f"{method} {path} returned {status}", status_code=status) from e
            except httpx.HTTPError as e:
                raise RemoteStoreError(f"{method} {path} failed: {e}") from e
        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteStoreError(f"{method} {path} returned a non-JSON body", status_code=resp.status_code) from e
        if not isinstance(body, dict):
            raise RemoteStoreError(f"{method} {path} returned an unexpected body", status_code=resp.status_code)
        return body

    @staticmethod
    def _payload(body: Dict[str, Any], key: str, path: str, expected: type) -> Any:
        value = body.get(key)
        if not isinstance(value, expected):
            raise RemoteStoreError(f"{path}: response has no '{key}'")
        return value

    # ------------------------------------------------------------------
    # Lessons
    # ------------------------------------------------------------------

    async def list_lessons(self) -> List[Any]:
        body = await self._request("GET", "/lessons")
        return self._payload(body, "lessons", "/lessons", list)

    async def get_lesson(self, lesson_id: str) -> Dict[str, Any]:
        path = f"/lessons/{quote(lesson_id, safe='')}"
        body = await self._request("GET", path)
        return self._payload(body, "lesson", path, dict)

    async def get_lesson_by_code(self, access_code: str) -> Dict[str, Any]:
        path = f"/lessons/code/{quote(access_code, safe='')}"
        body = await self._request("GET", path)
        return self._payload(body, "lesson", path, dict)

    async def save_lesson(self, lesson: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/lessons/save", json={"lesson": lesson})

    async def delete_lesson(self, lesson_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/lessons/{quote(lesson_id, safe='')}")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def list_active_sessions(self, lesson_id: str) -> List[Any]:
        path = f"/sessions/active/{quote(lesson_id, safe='')}"
        body = await self._request("GET", path)
        return self._payload(body, "sessions", path, list)

    async def get_session(self, student_id: str) -> Dict[str, Any]:
        path = f"/sessions/{quote(student_id, safe='')}"
        body = await self._request("GET", path)
        return self._payload(body, "session", path, dict)

    async def save_session(self, session: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/sessions/save", json={"session": session})

    async def delete_session(self, student_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/sessions/{quote(student_id, safe='')}")
