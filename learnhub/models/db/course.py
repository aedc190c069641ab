"""
Course content models: courses, lessons, components and test definitions.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnhub.database import Base

if TYPE_CHECKING:
    from learnhub.models.db.attempt import TestAttempt


class ComponentKind(str, enum.Enum):
    """Kind of content unit placed inside a lesson."""

    WORD = "word"
    PARAGRAPH = "paragraph"
    TEST = "test"


class Course(Base):
    """A course groups an ordered list of lessons."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    lessons: Mapped[list["Lesson"]] = relationship(
        "Lesson",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Lesson.position",
    )


class Lesson(Base):
    """A lesson inside a course, made of ordered components."""

    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    course_id: Mapped[int] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(default=1, nullable=False)

    course: Mapped["Course"] = relationship("Course", back_populates="lessons")
    components: Mapped[list["Component"]] = relationship(
        "Component",
        back_populates="lesson",
        cascade="all, delete-orphan",
        order_by="Component.position",
    )


class Component(Base):
    """
    Positioned content unit inside a lesson.
    Only components of kind TEST reference a test definition.
    """

    __tablename__ = "components"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    lesson_id: Mapped[int] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(
        String(20), default=ComponentKind.PARAGRAPH.value, nullable=False
    )
    position: Mapped[int] = mapped_column(default=0, nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    test_id: Mapped[int | None] = mapped_column(
        ForeignKey("tests.id", ondelete="SET NULL"), nullable=True, index=True
    )

    lesson: Mapped["Lesson"] = relationship("Lesson", back_populates="components")
    test: Mapped["TestDefinition | None"] = relationship(
        "TestDefinition", back_populates="components"
    )
    attempts: Mapped[list["TestAttempt"]] = relationship(
        "TestAttempt", back_populates="component", cascade="all, delete-orphan"
    )

    @property
    def is_test(self) -> bool:
        return self.kind == ComponentKind.TEST.value


class TestDefinition(Base):
    """Timed test: duration, attempt limit and ordered questions."""

    __tablename__ = "tests"
    __test__ = False  # keep pytest from collecting this model

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(default=30, nullable=False)
    max_attempts: Mapped[int] = mapped_column(default=1, nullable=False)
    # Falls back to DEFAULT_PASSING_RATIO when unset
    passing_ratio: Mapped[float | None] = mapped_column(sa.Float, nullable=True)

    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    components: Mapped[list["Component"]] = relationship(
        "Component", back_populates="test"
    )

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60


class Question(Base):
    """Question inside a test definition."""

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    test_id: Mapped[int] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    test: Mapped["TestDefinition"] = relationship(
        "TestDefinition", back_populates="questions"
    )
    answers: Mapped[list["Answer"]] = relationship(
        "Answer",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Answer.id",
    )

    @property
    def correct_answer_ids(self) -> set[int]:
        return {answer.id for answer in self.answers if answer.correct}


class Answer(Base):
    """Answer option of a question, flagged correct or incorrect."""

    __tablename__ = "answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    correct: Mapped[bool] = mapped_column(default=False, nullable=False)

    question: Mapped["Question"] = relationship("Question", back_populates="answers")
