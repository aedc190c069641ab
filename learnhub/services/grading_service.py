"""Grading of test attempts against a test's answer key."""
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from learnhub.config import DEFAULT_PASSING_RATIO
from learnhub.models.db.course import Question, TestDefinition


@dataclass(frozen=True)
class GradingResult:
    """Outcome of grading one attempt."""

    correct_count: int
    total_questions: int
    passed: bool
    mark: int

    @property
    def percent(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.correct_count / self.total_questions * 100


def selected_answer_ids(answers: Mapping[str, Any], question_id: int) -> set[int]:
    """Selected answer ids recorded for a question, empty if none."""
    entry = answers.get(str(question_id))
    if not isinstance(entry, Mapping):
        return set()
    raw = entry.get("selected_answer_ids") or []
    selected = set()
    for value in raw:
        try:
            selected.add(int(value))
        except (TypeError, ValueError):
            continue
    return selected


def is_question_correct(question: Question, answers: Mapping[str, Any]) -> bool:
    """A question is correct only when the selection equals the key exactly."""
    return selected_answer_ids(answers, question.id) == question.correct_answer_ids


def grade_questions(
    answers: Mapping[str, Any],
    questions: Iterable[Question],
    passing_ratio: float,
) -> GradingResult:
    """Grade answers against questions. Pure; the order of questions is irrelevant."""
    correct_count = 0
    total_questions = 0
    for question in questions:
        total_questions += 1
        if is_question_correct(question, answers):
            correct_count += 1

    passed = total_questions > 0 and correct_count / total_questions >= passing_ratio
    return GradingResult(
        correct_count=correct_count,
        total_questions=total_questions,
        passed=passed,
        mark=correct_count,
    )


def grade(answers: Mapping[str, Any], test: TestDefinition) -> GradingResult:
    """Grade stored answers against a test definition."""
    ratio = test.passing_ratio if test.passing_ratio is not None else DEFAULT_PASSING_RATIO
    return grade_questions(answers, test.questions, ratio)
