"""Local HTTP routes for the teacher and student views."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from .classroom import ClassroomSync
from .errors import AccessCodeConflictError, InvalidRecordError
from .validation import Invalid, parse_lesson


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ActiveLessonRequest(_Body):
    lesson_id: Optional[str] = Field(None, alias="lessonId")


class PauseRequest(_Body):
    paused: bool


class SlideRequest(_Body):
    index: int = Field(..., ge=0)


class JoinRequest(_Body):
    student_name: str = Field(..., min_length=1, alias="studentName")
    lesson_id: str = Field(..., min_length=1, alias="lessonId")


class GoalRequest(_Body):
    goal_id: str = Field(..., min_length=1, alias="goalId")


class ResponseRequest(_Body):
    slide_id: str = Field(..., min_length=1, alias="slideId")
    answer: str
    is_correct: bool = Field(..., alias="isCorrect")
    feedback: Optional[str] = None
    latex_answer: Optional[str] = Field(None, alias="latexAnswer")
    selected_choice: Optional[str] = Field(None, alias="selectedChoice")


def _classroom(request: Request) -> ClassroomSync:
    return request.app.state.classroom


def _out(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _found(model, what: str) -> Dict[str, Any]:
    if model is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return _out(model)


def get_router() -> APIRouter:
    """Local surface used by the teacher and student views."""
    router = APIRouter(tags=["classroom"])

    # ------------------------------------------------------------------
    # Lessons
    # ------------------------------------------------------------------

    @router.get("/lessons")
    async def list_lessons(request: Request) -> List[Dict[str, Any]]:
        lessons = await _classroom(request).lessons.get_all_lessons()
        return [_out(lesson) for lesson in lessons]

    @router.post("/lessons")
    async def save_lesson(request: Request, payload: Dict[str, Any]):
        classroom = _classroom(request)
        data = dict(payload)
        data.setdefault("id", str(uuid.uuid4()))
        if not data.get("accessCode") and not data.get("access_code"):
            data["accessCode"] = classroom.lessons.generate_access_code()
        parsed = parse_lesson(data, require_created_at=False)
        if isinstance(parsed, Invalid):
            raise HTTPException(status_code=422, detail=parsed.reason)
        try:
            lesson = await classroom.lessons.save_lesson(parsed.value)
        except AccessCodeConflictError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return _out(lesson)

    @router.get("/lessons/active")
    async def get_active_lesson(request: Request):
        return _found(await _classroom(request).lessons.get_active_lesson(), "Active lesson")

    @router.put("/lessons/active")
    async def set_active_lesson(request: Request, body: ActiveLessonRequest):
        _classroom(request).lessons.set_active_lesson(body.lesson_id)
        return {"lessonId": body.lesson_id}

    @router.get("/lessons/code/{access_code}")
    async def get_lesson_by_code(request: Request, access_code: str):
        lesson = await _classroom(request).lessons.get_lesson_by_access_code(access_code)
        return _found(lesson, f"Lesson with code {access_code}")

    @router.get("/lessons/{lesson_id}")
    async def get_lesson(request: Request, lesson_id: str):
        return _found(await _classroom(request).lessons.get_lesson_by_id(lesson_id), f"Lesson {lesson_id}")

    @router.delete("/lessons/{lesson_id}")
    async def delete_lesson(request: Request, lesson_id: str):
        existed = await _classroom(request).lessons.delete_lesson(lesson_id)
        return {"success": True, "existed": existed}

    @router.post("/lessons/{lesson_id}/pause")
    async def pause_lesson(request: Request, lesson_id: str, body: PauseRequest):
        lesson = await _classroom(request).lessons.set_paused(lesson_id, body.paused)
        return _found(lesson, f"Lesson {lesson_id}")

    @router.get("/lessons/{lesson_id}/slide")
    async def get_slide(request: Request, lesson_id: str):
        return {"lessonId": lesson_id, "currentSlide": _classroom(request).relay.current(lesson_id)}

    @router.post("/lessons/{lesson_id}/slide")
    async def change_slide(request: Request, lesson_id: str, body: SlideRequest):
        updated = await _classroom(request).change_slide(lesson_id, body.index)
        return {"lessonId": lesson_id, "currentSlide": body.index, "studentsUpdated": len(updated)}

    @router.get("/lessons/{lesson_id}/students")
    async def active_students(request: Request, lesson_id: str):
        students = await _classroom(request).sessions.get_active_students(lesson_id)
        return [_out(s) for s in students]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @router.post("/sessions")
    async def join_lesson(request: Request, body: JoinRequest):
        session = await _classroom(request).sessions.create_session(body.student_name, body.lesson_id)
        return _out(session)

    @router.get("/sessions/{student_id}")
    async def get_session(request: Request, student_id: str):
        return _found(await _classroom(request).sessions.get_session(student_id), f"Session {student_id}")

    @router.patch("/sessions/{student_id}")
    async def update_session(request: Request, student_id: str, updates: Dict[str, Any]):
        try:
            session = await _classroom(request).sessions.update_session(student_id, updates)
        except InvalidRecordError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return _found(session, f"Session {student_id}")

    @router.delete("/sessions/{student_id}")
    async def end_session(request: Request, student_id: str):
        existed = await _classroom(request).sessions.end_session(student_id)
        return {"success": True, "existed": existed}

    @router.post("/sessions/{student_id}/heartbeat")
    async def heartbeat(request: Request, student_id: str):
        return _found(await _classroom(request).sessions.heartbeat(student_id), f"Session {student_id}")

    @router.post("/sessions/{student_id}/goals")
    async def complete_goal(request: Request, student_id: str, body: GoalRequest):
        session = await _classroom(request).sessions.add_completed_goal(student_id, body.goal_id)
        return _found(session, f"Session {student_id}")

    @router.post("/sessions/{student_id}/responses")
    async def add_response(request: Request, student_id: str, body: ResponseRequest):
        response = body.model_dump(by_alias=True, exclude={"slide_id"})
        try:
            session = await _classroom(request).sessions.add_response(student_id, body.slide_id, response)
        except InvalidRecordError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return _found(session, f"Session {student_id}")

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    @router.post("/maintenance/cleanup")
    async def cleanup(request: Request):
        return {"removed": _classroom(request).sessions.cleanup_stale_sessions()}

    return router
