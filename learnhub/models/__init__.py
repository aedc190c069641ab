"""Pydantic models."""
from learnhub.models.attempts import (
    AttemptAnswersRequest,
    AttemptResponse,
    AttemptUpdateRequest,
    CommandResponse,
    FlashResponse,
    GradingResultResponse,
)
from learnhub.models.auth import (
    MessageResponse,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from learnhub.models.courses import CourseDetail, CourseSummary, LessonSummary

__all__ = [
    "AttemptAnswersRequest",
    "AttemptResponse",
    "AttemptUpdateRequest",
    "CommandResponse",
    "FlashResponse",
    "GradingResultResponse",
    "CourseDetail",
    "CourseSummary",
    "LessonSummary",
    "MessageResponse",
    "TokenResponse",
    "UserLogin",
    "UserRegister",
    "UserResponse",
]
