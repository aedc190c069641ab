"""Course and lesson browsing endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DbSession

from learnhub.context import RequestContext
from learnhub.database import get_db
from learnhub.dependencies.auth import get_current_user
from learnhub.dependencies.context import get_request_context
from learnhub.models import CourseDetail, CourseSummary
from learnhub.models.db.course import Course
from learnhub.models.db.user import User
from learnhub.services import course_service

router = APIRouter(prefix="/api/courses", tags=["courses"])


@router.get("", response_model=list[CourseSummary])
def list_courses(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> list[Course]:
    """List all courses."""
    return course_service.list_courses(db)


@router.get("/{course_id}", response_model=CourseDetail)
def get_course(
    course_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> Course:
    """Get a course with its lessons."""
    course = course_service.get_course(db, course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.get("/{course_id}/lessons/{lesson_id}")
def get_lesson(
    course_id: int,
    lesson_id: int,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Lesson components and the current user's progress on its test."""
    lesson = course_service.get_lesson(db, lesson_id)
    if lesson is None or lesson.course_id != course_id:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return course_service.build_lesson_view(db, ctx.user, lesson, ctx.now)
