"""Attempt-related Pydantic models."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AttemptAnswersRequest(BaseModel):
    """Selected answer ids keyed by question id."""

    answers: dict[str, list[int]] = Field(default_factory=dict)


class AttemptUpdateRequest(AttemptAnswersRequest):
    """Save a draft or submit final answers."""

    save_draft: bool = False


class AnswerEntry(BaseModel):
    selected_answer_ids: list[int] = Field(default_factory=list)
    is_draft: bool = False


class AttemptResponse(BaseModel):
    """Stored attempt record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    component_id: int
    attempt_number: int
    answers: dict[str, AnswerEntry]
    mark: int
    status: str
    submitted: bool
    created_at: datetime
    submitted_at: datetime | None = None


class GradingResultResponse(BaseModel):
    """Score of a finalized attempt."""

    model_config = ConfigDict(from_attributes=True)

    correct_count: int
    total_questions: int
    passed: bool
    mark: int
    percent: float


class FlashResponse(BaseModel):
    level: str
    message: str


class CommandResponse(BaseModel):
    """Response of every attempt command: where to go next and what to show."""

    action: str
    location: str | None = None
    flash: FlashResponse | None = None
    editable: bool = False
    remaining_seconds: int | None = None
    attempt: AttemptResponse | None = None
    result: GradingResultResponse | None = None
