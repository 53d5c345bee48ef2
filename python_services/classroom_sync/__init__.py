"""Classroom sync package.

Keeps lessons and student sessions consistent between a local durable cache
and a remote lesson/session store, and tracks which students are live in a
lesson:

- lesson_sync: lesson CRUD, access-code lookup, last-write-wins reconciliation
- session_manager: student sessions, presence window, staleness cleanup
- circuit_breaker: per-lesson suppression of remote calls after failures
- slide_relay: teacher-to-student slide position over a polled scalar

The FastAPI app is built by `create_app()` in `main.py`.
"""

__version__ = "0.1.0"

from .classroom import ClassroomSync
from .models import Goal, Lesson, Slide, StudentResponse, StudentSession

__all__ = ["ClassroomSync", "Goal", "Lesson", "Slide", "StudentResponse", "StudentSession"]
