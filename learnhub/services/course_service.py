"""Service layer for courses, lessons and their components."""
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession, joinedload, selectinload

from learnhub.models.db.course import (
    Answer,
    Component,
    ComponentKind,
    Course,
    Lesson,
    Question,
    TestDefinition,
)
from learnhub.models.db.user import User
from learnhub.services import attempt_repository
from learnhub.utils import attempt_path, lesson_path

logger = logging.getLogger(__name__)


def list_courses(db: DBSession) -> list[Course]:
    """List all courses, newest first."""
    query = select(Course).order_by(Course.created_at.desc(), Course.id.desc())
    return list(db.execute(query).scalars().all())


def get_course(db: DBSession, course_id: int) -> Course | None:
    """Get course by ID with lessons loaded."""
    return db.execute(
        select(Course).options(selectinload(Course.lessons)).where(Course.id == course_id)
    ).scalar_one_or_none()


def get_lesson(db: DBSession, lesson_id: int) -> Lesson | None:
    """Get lesson by ID with course and components loaded."""
    return db.execute(
        select(Lesson)
        .options(
            joinedload(Lesson.course),
            selectinload(Lesson.components)
            .joinedload(Component.test)
            .selectinload(TestDefinition.questions)
            .selectinload(Question.answers),
        )
        .where(Lesson.id == lesson_id)
    ).scalar_one_or_none()


def get_test_component(lesson: Lesson) -> Component | None:
    """First test component of a lesson (by position) that has a test attached."""
    for component in lesson.components:
        if component.is_test and component.test is not None:
            return component
    return None


def _attempt_summary(attempt, test: TestDefinition, now: datetime) -> dict[str, object]:
    expired = attempt_repository.is_expired(attempt, test, now)
    return {
        "id": attempt.id,
        "attempt_number": attempt.attempt_number,
        "mark": attempt.mark,
        "status": attempt.status,
        "submitted": attempt.submitted,
        "expired": not attempt.submitted and expired,
        "created_at": attempt.created_at,
        "submitted_at": attempt.submitted_at,
    }


def build_lesson_view(
    db: DBSession, user: User, lesson: Lesson, now: datetime
) -> dict[str, object]:
    """Lesson payload with the user's attempt history for its test."""
    components = []
    for component in lesson.components:
        item: dict[str, object] = {
            "id": component.id,
            "kind": component.kind,
            "position": component.position,
            "content": component.content,
        }
        if component.is_test and component.test is not None:
            item["test"] = {
                "id": component.test.id,
                "name": component.test.name,
                "description": component.test.description,
                "duration_minutes": component.test.duration_minutes,
                "max_attempts": component.test.max_attempts,
                "question_count": len(component.test.questions),
            }
        components.append(item)

    payload: dict[str, object] = {
        "id": lesson.id,
        "course_id": lesson.course_id,
        "title": lesson.title,
        "description": lesson.description,
        "position": lesson.position,
        "path": lesson_path(lesson.course_id, lesson.id),
        "components": components,
        "test_progress": None,
    }

    component = get_test_component(lesson)
    if component is not None:
        test = component.test
        attempts = attempt_repository.get_attempts_for_component(db, user.id, component.id)
        live = attempt_repository.find_live_attempt(db, user.id, component, now)
        payload["test_progress"] = {
            "component_id": component.id,
            "attempts_used": len(attempts),
            "remaining_attempts": max(test.max_attempts - len(attempts), 0),
            "live_attempt_path": attempt_path(live.id) if live else None,
            "attempts": [_attempt_summary(attempt, test, now) for attempt in attempts],
        }
    return payload


def _require(payload: dict[str, Any], key: str, where: str) -> Any:
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{where}: '{key}' is required")
    return value


def _build_test(payload: dict[str, Any]) -> TestDefinition:
    test = TestDefinition(
        name=_require(payload, "name", "test"),
        description=payload.get("description"),
        duration_minutes=int(_require(payload, "duration_minutes", "test")),
        max_attempts=int(_require(payload, "max_attempts", "test")),
        passing_ratio=payload.get("passing_ratio"),
    )
    if test.duration_minutes <= 0:
        raise ValueError("test: 'duration_minutes' must be positive")
    if test.max_attempts <= 0:
        raise ValueError("test: 'max_attempts' must be positive")
    if test.passing_ratio is not None and not 0 <= float(test.passing_ratio) <= 1:
        raise ValueError("test: 'passing_ratio' must be between 0 and 1")

    for position, question_data in enumerate(payload.get("questions") or []):
        question = Question(
            content=_require(question_data, "content", "question"),
            position=position,
        )
        for answer_data in question_data.get("answers") or []:
            question.answers.append(
                Answer(
                    content=_require(answer_data, "content", "answer"),
                    correct=bool(answer_data.get("correct", False)),
                )
            )
        test.questions.append(question)
    return test


def import_course(db: DBSession, payload: dict[str, Any]) -> Course:
    """
    Create a course with its lessons, components and tests from a JSON payload.

    Raises:
        ValueError: if the payload is missing required fields.
    """
    course = Course(
        title=_require(payload, "title", "course"),
        description=payload.get("description"),
    )
    for lesson_position, lesson_data in enumerate(payload.get("lessons") or [], start=1):
        lesson = Lesson(
            title=_require(lesson_data, "title", "lesson"),
            description=lesson_data.get("description"),
            position=lesson_position,
        )
        for position, component_data in enumerate(lesson_data.get("components") or []):
            try:
                kind = ComponentKind(component_data.get("kind", ComponentKind.PARAGRAPH.value))
            except ValueError as exc:
                raise ValueError(f"component: unknown kind {component_data.get('kind')!r}") from exc
            component = Component(
                kind=kind.value,
                position=position,
                content=component_data.get("content"),
            )
            if kind is ComponentKind.TEST:
                component.test = _build_test(_require(component_data, "test", "component"))
            lesson.components.append(component)
        course.lessons.append(lesson)

    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info("Imported course %s (%s lessons)", course.id, len(course.lessons))
    return course
