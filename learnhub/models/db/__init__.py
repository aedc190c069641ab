"""Database models."""
from learnhub.models.db.user import User, Session
from learnhub.models.db.course import (
    Answer,
    Component,
    ComponentKind,
    Course,
    Lesson,
    Question,
    TestDefinition,
)
from learnhub.models.db.attempt import AttemptStatus, TestAttempt

__all__ = [
    "User",
    "Session",
    "Answer",
    "Component",
    "ComponentKind",
    "Course",
    "Lesson",
    "Question",
    "TestDefinition",
    "AttemptStatus",
    "TestAttempt",
]
