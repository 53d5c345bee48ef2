"""
Pydantic models for lessons and student sessions.

Attribute names are snake_case; the cache and the remote store use the
camelCase aliases. Both spellings are accepted on input.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, field_validator


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Goal(_Record):
    """A learning goal attached to a lesson or a slide."""
    id: StrictStr
    description: str = ""
    completed: bool = False
    answer_key: Optional[str] = Field(None, alias="answerKey")


class Slide(_Record):
    """A slide; its content is opaque to the sync engine."""
    id: StrictStr
    title: Optional[str] = None
    content: Dict[str, Any] = Field(default_factory=dict, description="Tagged by 'type': markdown, image, quiz, equation")
    goals: List[Goal] = Field(default_factory=list)
    chatbot_enabled: Optional[bool] = Field(None, alias="chatbotEnabled")


class Lesson(_Record):
    """A lesson as stored locally and remotely.

    ``created_at`` is the merge tiebreaker; ``current_slide`` is attached at
    read time from the slide relay and never persisted.
    """
    id: StrictStr
    title: StrictStr
    access_code: StrictStr = Field(..., alias="accessCode")
    slides: List[Slide] = Field(default_factory=list)
    goals: List[Goal] = Field(default_factory=list)
    system_prompt: StrictStr = Field("", alias="systemPrompt")
    is_paused: StrictBool = Field(False, alias="isPaused")
    created_at: Optional[StrictInt] = Field(None, alias="createdAt")
    current_slide: Optional[StrictInt] = Field(None, alias="currentSlide")

    @property
    def normalized_code(self) -> str:
        return self.access_code.upper()

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the cache / remote store (without the live slide)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"current_slide"})


class StudentResponse(_Record):
    """One answer submitted by a student for a slide or question."""
    answer: str
    is_correct: bool = Field(..., alias="isCorrect")
    timestamp: int
    feedback: Optional[str] = None
    latex_answer: Optional[str] = Field(None, alias="latexAnswer")
    selected_choice: Optional[str] = Field(None, alias="selectedChoice")


class StudentSession(_Record):
    """A student's presence and progress within one lesson."""
    student_id: StrictStr = Field(..., alias="studentId")
    student_name: str = Field(..., alias="studentName")
    lesson_id: StrictStr = Field(..., alias="lessonId")
    last_active: StrictInt = Field(..., alias="lastActive")
    current_slide: int = Field(0, alias="currentSlide")
    completed_goals: List[str] = Field(default_factory=list, alias="completedGoals")
    responses: Dict[str, List[StudentResponse]] = Field(default_factory=dict)

    @field_validator("completed_goals")
    @classmethod
    def _unique_goals(cls, goals: List[str]) -> List[str]:
        # Ordered set: keep first occurrence only
        return list(dict.fromkeys(goals))

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class HealthCheck(BaseModel):
    """Health check response model."""
    service: str
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str = "0.1.0"
