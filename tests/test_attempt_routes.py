from typing import Annotated

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session as DbSession

from conftest import at
from learnhub.app import app
from learnhub.context import RequestContext
from learnhub.database import get_db
from learnhub.dependencies.auth import get_current_user
from learnhub.dependencies.context import get_request_context, get_scheduler
from learnhub.models.db import User


@pytest.fixture
def clock() -> dict[str, object]:
    """Mutable server time and acting user for the overridden context."""
    return {"now": at(0), "user_id": None, "locale": "en"}


@pytest.fixture
def client(session_factory, user, clock, scheduler):
    clock["user_id"] = user.id

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def _get_context(db: Annotated[DbSession, Depends(get_db)]) -> RequestContext:
        return RequestContext(
            user=db.get(User, clock["user_id"]), now=clock["now"], locale=clock["locale"]
        )

    def _get_user(db: Annotated[DbSession, Depends(get_db)]) -> User:
        return db.get(User, clock["user_id"])

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_request_context] = _get_context
    app.dependency_overrides[get_current_user] = _get_user
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_index_banner(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["name"] == "learnhub"


def test_start_then_submit_over_http(client, clock, lesson, key, scheduler) -> None:
    started = client.post(f"/api/lessons/{lesson.id}/attempts")
    assert started.status_code == 201
    body = started.json()
    attempt_id = body["attempt"]["id"]
    assert body["action"] == "redirect"
    assert body["location"] == f"/api/attempts/{attempt_id}"
    assert body["remaining_seconds"] == 1800
    assert scheduler.calls[0][1] == attempt_id

    clock["now"] = at(10)
    shown = client.get(f"/api/attempts/{attempt_id}")
    assert shown.status_code == 200
    assert shown.json()["action"] == "render"
    assert shown.json()["editable"] is True
    assert shown.json()["remaining_seconds"] == 1200

    submitted = client.post(
        f"/api/attempts/{attempt_id}/submit",
        json={"answers": {key["capital"]: [key["hanoi"]], key["primes"]: [key["two"], key["three"]]}},
    )
    assert submitted.status_code == 200
    result = submitted.json()
    assert result["location"] == f"/api/courses/{lesson.course_id}/lessons/{lesson.id}"
    assert result["result"] == {
        "correct_count": 2,
        "total_questions": 2,
        "passed": True,
        "mark": 2,
        "percent": 100.0,
    }
    assert result["attempt"]["submitted"] is True
    assert result["attempt"]["status"] == "passed"
    assert result["flash"]["level"] == "notice"


def test_draft_endpoint_keeps_attempt_open(client, clock, lesson, key) -> None:
    attempt_id = client.post(f"/api/lessons/{lesson.id}/attempts").json()["attempt"]["id"]

    clock["now"] = at(4)
    response = client.put(
        f"/api/attempts/{attempt_id}/draft",
        json={"answers": {key["capital"]: [key["saigon"]]}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["action"] == "render"
    assert body["editable"] is True
    assert body["attempt"]["submitted"] is False
    assert body["attempt"]["answers"][key["capital"]] == {
        "selected_answer_ids": [key["saigon"]],
        "is_draft": True,
    }


def test_patch_with_save_draft_flag(client, clock, lesson, key) -> None:
    attempt_id = client.post(f"/api/lessons/{lesson.id}/attempts").json()["attempt"]["id"]

    draft = client.patch(
        f"/api/attempts/{attempt_id}",
        json={"answers": {key["primes"]: [key["two"]]}, "save_draft": True},
    )
    assert draft.json()["attempt"]["submitted"] is False

    final = client.patch(f"/api/attempts/{attempt_id}", json={"answers": {}})
    assert final.json()["attempt"]["submitted"] is True
    assert final.json()["result"]["passed"] is False


def test_expired_view_submits_saved_answers(client, clock, lesson, key) -> None:
    attempt_id = client.post(f"/api/lessons/{lesson.id}/attempts").json()["attempt"]["id"]
    clock["now"] = at(5)
    client.put(f"/api/attempts/{attempt_id}/draft", json={"answers": {key["capital"]: [key["hanoi"]]}})

    clock["now"] = at(45)
    response = client.get(f"/api/attempts/{attempt_id}")

    body = response.json()
    assert body["action"] == "redirect"
    assert body["remaining_seconds"] == 0
    assert body["attempt"]["submitted"] is True
    assert body["attempt"]["mark"] == 1


def test_submit_rejects_foreign_answers(client, lesson, key) -> None:
    attempt_id = client.post(f"/api/lessons/{lesson.id}/attempts").json()["attempt"]["id"]

    response = client.post(
        f"/api/attempts/{attempt_id}/submit",
        json={"answers": {key["capital"]: [key["four"]]}},
    )

    assert response.status_code == 422
    assert response.json()["editable"] is True
    assert response.json()["flash"]["level"] == "danger"


def test_other_user_gets_forbidden(client, clock, lesson, other_user) -> None:
    attempt_id = client.post(f"/api/lessons/{lesson.id}/attempts").json()["attempt"]["id"]

    clock["user_id"] = other_user.id
    response = client.get(f"/api/attempts/{attempt_id}")

    assert response.status_code == 403
    assert response.json()["location"] == "/"
    assert response.json()["attempt"] is None


def test_missing_lesson_and_attempt(client) -> None:
    assert client.post("/api/lessons/999/attempts").status_code == 404
    missing = client.get("/api/attempts/999")
    assert missing.status_code == 404
    assert missing.json()["location"] == "/api/courses"


def test_locale_follows_context(client, clock, lesson) -> None:
    clock["locale"] = "vi"
    response = client.post(f"/api/lessons/{lesson.id}/attempts")
    assert response.json()["flash"]["message"].startswith("Bắt đầu lượt làm bài")


def test_course_listing_and_detail(client, course) -> None:
    listing = client.get("/api/courses")
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [course.id]

    detail = client.get(f"/api/courses/{course.id}")
    assert [lesson["title"] for lesson in detail.json()["lessons"]] == ["Cities", "Reading"]

    assert client.get("/api/courses/999").status_code == 404


def test_lesson_view_reports_progress(client, clock, course, lesson) -> None:
    attempt_id = client.post(f"/api/lessons/{lesson.id}/attempts").json()["attempt"]["id"]

    clock["now"] = at(1)
    response = client.get(f"/api/courses/{course.id}/lessons/{lesson.id}")

    assert response.status_code == 200
    progress = response.json()["test_progress"]
    assert progress["attempts_used"] == 1
    assert progress["remaining_attempts"] == 1
    assert progress["live_attempt_path"] == f"/api/attempts/{attempt_id}"
    assert [kind["kind"] for kind in response.json()["components"]] == ["word", "paragraph", "test"]


def test_lesson_view_checks_course(client, course, lesson) -> None:
    assert client.get(f"/api/courses/{course.id + 1}/lessons/{lesson.id}").status_code == 404


def test_register_login_and_me(session_factory) -> None:
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        client = TestClient(app)
        registered = client.post(
            "/api/auth/register",
            json={"username": "hoa", "email": "hoa@example.com", "password": "secret123"},
        )
        assert registered.status_code == 201

        duplicate = client.post(
            "/api/auth/register",
            json={"username": "hoa", "email": "other@example.com", "password": "secret123"},
        )
        assert duplicate.status_code == 400

        assert client.post(
            "/api/auth/login", json={"username": "hoa", "password": "wrong"}
        ).status_code == 401

        token = client.post(
            "/api/auth/login", json={"username": "hoa@example.com", "password": "secret123"}
        ).json()["access_token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["username"] == "hoa"

        assert client.get("/api/auth/me").status_code == 401

        headers = {"Authorization": f"Bearer {token}"}
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401
    finally:
        app.dependency_overrides.clear()
