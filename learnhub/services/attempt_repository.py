"""Persistence operations for test attempts."""
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session as DBSession, joinedload

from learnhub.models.db.attempt import AttemptStatus, TestAttempt
from learnhub.models.db.course import Component, Question, TestDefinition
from learnhub.utils import compact_json_dump, ensure_utc


def elapsed_seconds(attempt: TestAttempt, now: datetime) -> float:
    """Seconds since the attempt started, measured by the server clock."""
    return (ensure_utc(now) - ensure_utc(attempt.created_at)).total_seconds()


def is_expired(attempt: TestAttempt, test: TestDefinition, now: datetime) -> bool:
    """An attempt is expired once strictly more than the test duration has elapsed."""
    return elapsed_seconds(attempt, now) > test.duration_seconds


def remaining_seconds(attempt: TestAttempt, test: TestDefinition, now: datetime) -> int:
    """Whole seconds left in the attempt's window, floored at zero."""
    remaining = test.duration_seconds - elapsed_seconds(attempt, now)
    return int(remaining) if remaining > 0 else 0


def create_attempt(
    db: DBSession,
    user_id: int,
    component_id: int,
    attempt_number: int,
    now: datetime,
) -> TestAttempt:
    """Create a fresh, unsubmitted attempt."""
    attempt = TestAttempt(
        user_id=user_id,
        component_id=component_id,
        attempt_number=attempt_number,
        mark=0,
        status=AttemptStatus.FAILED.value,
        submitted=False,
        created_at=now,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def get_attempt(db: DBSession, attempt_id: int) -> TestAttempt | None:
    """Get attempt by ID with its component and test loaded."""
    return db.execute(
        select(TestAttempt)
        .options(
            joinedload(TestAttempt.component)
            .joinedload(Component.test)
            .joinedload(TestDefinition.questions)
            .joinedload(Question.answers)
        )
        .where(TestAttempt.id == attempt_id)
    ).unique().scalar_one_or_none()


def count_attempts(db: DBSession, user_id: int, component_id: int) -> int:
    """Count all attempts a user has made on a component."""
    query = select(func.count(TestAttempt.id)).where(
        TestAttempt.user_id == user_id,
        TestAttempt.component_id == component_id,
    )
    return db.execute(query).scalar() or 0


def get_open_attempts(db: DBSession, user_id: int, component_id: int) -> list[TestAttempt]:
    """Unsubmitted attempts for a user on a component, oldest first."""
    query = (
        select(TestAttempt)
        .where(
            TestAttempt.user_id == user_id,
            TestAttempt.component_id == component_id,
            TestAttempt.submitted == False,  # noqa: E712
        )
        .order_by(TestAttempt.created_at, TestAttempt.id)
    )
    return list(db.execute(query).scalars().all())


def find_live_attempt(
    db: DBSession, user_id: int, component: Component, now: datetime
) -> TestAttempt | None:
    """Most recent unsubmitted attempt still inside its time window."""
    live = [
        attempt
        for attempt in get_open_attempts(db, user_id, component.id)
        if not is_expired(attempt, component.test, now)
    ]
    return live[-1] if live else None


def find_expired_live_attempt(
    db: DBSession, user_id: int, component: Component, now: datetime
) -> TestAttempt | None:
    """Most recent unsubmitted attempt whose time window has elapsed."""
    expired = [
        attempt
        for attempt in get_open_attempts(db, user_id, component.id)
        if is_expired(attempt, component.test, now)
    ]
    return expired[-1] if expired else None


def get_attempts_for_component(
    db: DBSession, user_id: int, component_id: int
) -> list[TestAttempt]:
    """All attempts of a user on a component ordered by attempt number."""
    query = (
        select(TestAttempt)
        .where(
            TestAttempt.user_id == user_id,
            TestAttempt.component_id == component_id,
        )
        .order_by(TestAttempt.attempt_number)
    )
    return list(db.execute(query).scalars().all())


def get_expired_open_attempts(db: DBSession, now: datetime) -> list[TestAttempt]:
    """Every unsubmitted attempt, across users, whose window has elapsed."""
    query = (
        select(TestAttempt)
        .options(joinedload(TestAttempt.component).joinedload(Component.test))
        .where(TestAttempt.submitted == False)  # noqa: E712
        .order_by(TestAttempt.created_at)
    )
    attempts = db.execute(query).unique().scalars().all()
    return [
        attempt
        for attempt in attempts
        if attempt.component.test is not None
        and is_expired(attempt, attempt.component.test, now)
    ]


def save_draft_answers(
    db: DBSession, attempt_id: int, answers: dict[str, dict[str, Any]]
) -> bool:
    """
    Replace the answers of a still-open attempt.
    Returns False when the attempt was submitted in the meantime.
    """
    result = db.execute(
        update(TestAttempt)
        .where(TestAttempt.id == attempt_id, TestAttempt.submitted == False)  # noqa: E712
        .values(answers_json=compact_json_dump(answers) if answers else None)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0


def mark_submitted(
    db: DBSession,
    attempt_id: int,
    answers: dict[str, dict[str, Any]],
    mark: int,
    status: AttemptStatus,
    now: datetime,
) -> bool:
    """
    Write the final answers and verdict in one statement.
    Only the first caller to flip `submitted` wins; later callers get False.
    """
    result = db.execute(
        update(TestAttempt)
        .where(TestAttempt.id == attempt_id, TestAttempt.submitted == False)  # noqa: E712
        .values(
            answers_json=compact_json_dump(answers) if answers else None,
            mark=mark,
            status=status.value,
            submitted=True,
            submitted_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0
