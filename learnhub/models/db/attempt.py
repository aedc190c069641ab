"""
TestAttempt database model: one user's timed instance of taking a test.
"""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnhub.database import Base

if TYPE_CHECKING:
    from learnhub.models.db.course import Component
    from learnhub.models.db.user import User


class AttemptStatus(str, enum.Enum):
    """Grading verdict of a test attempt."""

    PASSED = "passed"
    FAILED = "failed"


class TestAttempt(Base):
    """
    Test attempt record.
    Answers are stored as JSON keyed by question id:
    {"<question_id>": {"selected_answer_ids": [int], "is_draft": bool}}
    """

    __tablename__ = "test_attempts"
    __test__ = False  # keep pytest from collecting this model

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # References
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    component_id: Mapped[int] = mapped_column(
        ForeignKey("components.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attempt_number: Mapped[int] = mapped_column(nullable=False)

    # Answers (stored as JSON string)
    answers_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Results
    mark: Mapped[int] = mapped_column(default=0, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.FAILED.value, nullable=False
    )
    submitted: Mapped[bool] = mapped_column(default=False, nullable=False, index=True)

    # Timing
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "user_id", "component_id", "attempt_number", name="uq_user_component_attempt"
        ),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="test_attempts")
    component: Mapped["Component"] = relationship("Component", back_populates="attempts")

    @property
    def answers(self) -> dict[str, dict[str, Any]]:
        """Parse answers from JSON."""
        if not self.answers_json:
            return {}
        try:
            value = json.loads(self.answers_json)
        except (json.JSONDecodeError, TypeError):
            return {}
        return value if isinstance(value, dict) else {}

    @answers.setter
    def answers(self, value: dict[str, dict[str, Any]] | None) -> None:
        """Serialize answers to JSON."""
        self.answers_json = json.dumps(value) if value else None

    @property
    def passed(self) -> bool:
        return self.status == AttemptStatus.PASSED.value

    def __repr__(self) -> str:
        return (
            f"<TestAttempt(id={self.id}, user_id={self.user_id}, "
            f"component_id={self.component_id}, attempt_number={self.attempt_number})>"
        )
