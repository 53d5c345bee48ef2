"""Local durable cache for lessons, sessions and small scalar markers.

Backed by sqlitedict; any ``MutableMapping[str, str]`` works as a backend
(a plain ``dict`` for tests). Values are stored as JSON text so a corrupt
value is detectable at read time.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, MutableMapping, Optional, Tuple

from sqlitedict import SqliteDict

logger = logging.getLogger(__name__)

# Returned by reads whose stored value is not valid JSON.
UNREADABLE = object()


def open_cache_backend(path: str, table_name: str = "classroom") -> SqliteDict:
    """Open the sqlitedict table used as the durable backend."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return SqliteDict(str(path), tablename=table_name, autocommit=True)


@contextmanager
def cache_table(path: str, table_name: str = "classroom") -> Iterator["LocalCache"]:
    """Context manager returning a LocalCache over a sqlitedict table.

    Usage:
        with cache_table("./storage/cache.sqlite") as cache:
            cache.set_active_lesson_id("lesson-1")
    """
    cache = LocalCache(open_cache_backend(path, table_name))
    try:
        yield cache
    finally:
        cache.close()


class LocalCache:
    """Key-indexed JSON storage with namespaced keys.

    Layout:
        <ns>:lesson:<lessonId>     lesson record
        <ns>:session:<studentId>   student session record
        <ns>:slide:<lessonId>      live slide pointer (int)
        <ns>:active_lesson         id of the active lesson
    """

    def __init__(self, backend: MutableMapping[str, str], namespace: str = "teachery") -> None:
        self._backend = backend
        self.namespace = namespace
        self.lesson_prefix = f"{namespace}:lesson:"
        self.session_prefix = f"{namespace}:session:"
        self.slide_prefix = f"{namespace}:slide:"
        self.active_lesson_key = f"{namespace}:active_lesson"

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def read(self, key: str) -> Any:
        """Return the decoded value, None when absent, UNREADABLE when corrupt."""
        raw = self._backend.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Unreadable cache entry {key}: {e}")
            return UNREADABLE

    def write(self, key: str, value: Any) -> None:
        self._backend[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._backend.pop(key, None)

    def scan(self, prefix: str) -> Iterator[Tuple[str, Any]]:
        """Yield (suffix, decoded value) for every key under *prefix*."""
        for key in [k for k in self._backend.keys() if k.startswith(prefix)]:
            yield key[len(prefix):], self.read(key)

    def close(self) -> None:
        close = getattr(self._backend, "close", None)
        if callable(close):
            close()

    # ------------------------------------------------------------------
    # Lessons
    # ------------------------------------------------------------------

    def lesson_records(self) -> Dict[str, Any]:
        return dict(self.scan(self.lesson_prefix))

    def get_lesson_record(self, lesson_id: str) -> Any:
        return self.read(self.lesson_prefix + lesson_id)

    def put_lesson_record(self, lesson_id: str, record: Dict[str, Any]) -> None:
        self.write(self.lesson_prefix + lesson_id, record)

    def remove_lesson_record(self, lesson_id: str) -> None:
        self.delete(self.lesson_prefix + lesson_id)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def session_records(self) -> Dict[str, Any]:
        return dict(self.scan(self.session_prefix))

    def get_session_record(self, student_id: str) -> Any:
        return self.read(self.session_prefix + student_id)

    def put_session_record(self, student_id: str, record: Dict[str, Any]) -> None:
        self.write(self.session_prefix + student_id, record)

    def remove_session_record(self, student_id: str) -> None:
        self.delete(self.session_prefix + student_id)

    # ------------------------------------------------------------------
    # Scalars
    # ------------------------------------------------------------------

    def get_active_lesson_id(self) -> Optional[str]:
        value = self.read(self.active_lesson_key)
        return value if isinstance(value, str) and value else None

    def set_active_lesson_id(self, lesson_id: Optional[str]) -> None:
        if lesson_id:
            self.write(self.active_lesson_key, lesson_id)
        else:
            self.delete(self.active_lesson_key)

    def get_slide_pointer(self, lesson_id: str) -> Optional[int]:
        value = self.read(self.slide_prefix + lesson_id)
        # bool is an int subclass; a stray true/false is not a slide index
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    def set_slide_pointer(self, lesson_id: str, index: int) -> None:
        self.write(self.slide_prefix + lesson_id, int(index))

    def clear_slide_pointer(self, lesson_id: str) -> None:
        self.delete(self.slide_prefix + lesson_id)
