import copy
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EXPIRY_SWEEP_INTERVAL_SECONDS", "0")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import learnhub.models.db  # noqa: F401
from learnhub.context import RequestContext
from learnhub.database import Base
from learnhub.models.db import Component, Course, Lesson, User
from learnhub.services.course_service import import_course

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

COURSE_PAYLOAD = {
    "title": "Vietnamese for Beginners",
    "description": "Everyday words and a short quiz.",
    "lessons": [
        {
            "title": "Cities",
            "components": [
                {"kind": "word", "content": "thành phố"},
                {"kind": "paragraph", "content": "Vietnam has two large cities."},
                {
                    "kind": "test",
                    "test": {
                        "name": "Cities quiz",
                        "duration_minutes": 30,
                        "max_attempts": 2,
                        "passing_ratio": 0.5,
                        "questions": [
                            {
                                "content": "What is the capital of Vietnam?",
                                "answers": [
                                    {"content": "Hanoi", "correct": True},
                                    {"content": "Ho Chi Minh City"},
                                ],
                            },
                            {
                                "content": "Which numbers are prime?",
                                "answers": [
                                    {"content": "2", "correct": True},
                                    {"content": "3", "correct": True},
                                    {"content": "4"},
                                ],
                            },
                        ],
                    },
                },
            ],
        },
        {
            "title": "Reading",
            "components": [{"kind": "paragraph", "content": "No test here."}],
        },
    ],
}


class RecordingScheduler:
    """Collects schedule requests instead of starting timers."""

    def __init__(self) -> None:
        self.calls: list[tuple[datetime, int]] = []

    def schedule_at(self, when: datetime, attempt_id: int) -> None:
        self.calls.append((when, attempt_id))


def at(minutes: float) -> datetime:
    """Server time `minutes` after T0."""
    return T0 + timedelta(minutes=minutes)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, username: str) -> User:
    user = User(username=username, email=f"{username}@example.com", hashed_password="x")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db) -> User:
    return _make_user(db, "linh")


@pytest.fixture
def other_user(db) -> User:
    return _make_user(db, "minh")


@pytest.fixture
def course(db) -> Course:
    return import_course(db, copy.deepcopy(COURSE_PAYLOAD))


@pytest.fixture
def lesson(course) -> Lesson:
    return course.lessons[0]


@pytest.fixture
def empty_lesson(course) -> Lesson:
    return course.lessons[1]


@pytest.fixture
def quiz_component(lesson) -> Component:
    return next(component for component in lesson.components if component.is_test)


@pytest.fixture
def key(quiz_component) -> dict[str, object]:
    """Question and answer ids of the quiz, by role."""
    capital, primes = quiz_component.test.questions
    hanoi, saigon = capital.answers
    two, three, four = primes.answers
    return {
        "capital": str(capital.id),
        "primes": str(primes.id),
        "hanoi": hanoi.id,
        "saigon": saigon.id,
        "two": two.id,
        "three": three.id,
        "four": four.id,
    }


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def ctx_at(user):
    def _ctx(minutes: float, acting_user: User | None = None, locale: str = "en") -> RequestContext:
        return RequestContext(user=acting_user or user, now=at(minutes), locale=locale)

    return _ctx
