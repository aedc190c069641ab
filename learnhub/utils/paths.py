"""URL path helpers used as redirect targets."""


def root_path() -> str:
    """Landing page."""
    return "/"


def courses_path() -> str:
    """Course listing."""
    return "/api/courses"


def lesson_path(course_id: int, lesson_id: int) -> str:
    """Lesson view inside a course."""
    return f"/api/courses/{course_id}/lessons/{lesson_id}"


def attempt_path(attempt_id: int) -> str:
    """Editable view of a test attempt."""
    return f"/api/attempts/{attempt_id}"
