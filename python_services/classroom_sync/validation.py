"""Structural checks applied at the cache and remote read boundaries.

Every persisted or fetched record goes through ``parse_lesson`` or
``parse_session`` and comes back as either ``Valid`` or ``Invalid``. Callers
drop ``Invalid`` records from the usable set instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, TypeVar, Union

from pydantic import ValidationError

from .models import Lesson, StudentSession

T = TypeVar("T")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    reason: str
    raw: Any = None


Parsed = Union[Valid[T], Invalid]


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def parse_lesson(raw: Any, *, require_created_at: bool = True) -> Parsed[Lesson]:
    """Check a stored or fetched lesson record."""
    if not isinstance(raw, dict):
        return Invalid("lesson is not an object", raw)
    try:
        lesson = Lesson.model_validate(raw)
    except ValidationError as e:
        return Invalid(_first_error(e), raw)
    if require_created_at and lesson.created_at is None:
        return Invalid("createdAt: missing", raw)
    return Valid(lesson)


def _ensure_container(data: Dict[str, Any], alias: str, name: str, is_ok: Callable[[Any], bool], empty: Callable[[], Any]) -> None:
    value = data.pop(name, None) if name in data else data.get(alias)
    data[alias] = value if is_ok(value) else empty()


def normalize_session_data(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of *raw* whose goal and response containers are never absent."""
    data = dict(raw)
    _ensure_container(data, "completedGoals", "completed_goals", lambda v: isinstance(v, (list, set, tuple)), list)
    if isinstance(data["completedGoals"], (set, tuple)):
        data["completedGoals"] = list(data["completedGoals"])
    _ensure_container(data, "responses", "responses", lambda v: isinstance(v, dict), dict)
    return data


def parse_session(raw: Any) -> Parsed[StudentSession]:
    """Normalize and check a session record."""
    if isinstance(raw, StudentSession):
        raw = raw.to_record()
    if not isinstance(raw, dict):
        return Invalid("session is not an object", raw)
    try:
        session = StudentSession.model_validate(normalize_session_data(raw))
    except ValidationError as e:
        return Invalid(_first_error(e), raw)
    return Valid(session)
