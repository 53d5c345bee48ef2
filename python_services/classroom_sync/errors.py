"""Error types raised by the classroom sync engine."""

from typing import Optional


class ClassroomSyncError(Exception):
    """Base class for all classroom sync errors."""


class RemoteStoreError(ClassroomSyncError):
    """A remote store call failed (transport error, timeout, non-2xx or bad envelope)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class AccessCodeConflictError(ClassroomSyncError):
    """Another lesson already uses the access code."""

    def __init__(self, access_code: str, lesson_id: str) -> None:
        super().__init__(f"Access code {access_code!r} is already used by lesson {lesson_id}")
        self.access_code = access_code
        self.lesson_id = lesson_id


class InvalidRecordError(ClassroomSyncError):
    """A caller-supplied record or update does not have a valid shape."""
