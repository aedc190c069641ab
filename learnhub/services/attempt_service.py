"""
Lifecycle of timed test attempts: start, view, save draft, submit, finalize.

Each command first runs an ordered list of guards. A guard returns None to let
the command proceed, or an Outcome that ends it.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from learnhub.context import RequestContext
from learnhub.messages import translate
from learnhub.models.db.attempt import AttemptStatus, TestAttempt
from learnhub.models.db.course import Component, Lesson, TestDefinition
from learnhub.services import attempt_repository, course_service, grading_service
from learnhub.services.grading_service import GradingResult
from learnhub.services.outcomes import Flash, FlashLevel, Outcome
from learnhub.utils import attempt_path, courses_path, ensure_utc, lesson_path, root_path

if TYPE_CHECKING:
    from learnhub.services.scheduler_service import GradingScheduler

logger = logging.getLogger(__name__)


class AnswerValidationError(ValueError):
    """Submitted answers do not match the test's questions."""


@dataclass
class Finalization:
    attempt: TestAttempt
    result: GradingResult
    finalized: bool  # False when the attempt had already been submitted


@dataclass
class StartState:
    ctx: RequestContext
    lesson_id: int
    lesson: Lesson | None = None
    component: Component | None = None
    test: TestDefinition | None = None
    attempt_count: int = 0


@dataclass
class AttemptState:
    ctx: RequestContext
    attempt_id: int
    attempt: TestAttempt | None = None


def run_guards(guards: Sequence[Callable], db: DBSession, state: Any) -> Outcome | None:
    """Run guards in order; the first Outcome returned wins."""
    for guard in guards:
        outcome = guard(db, state)
        if outcome is not None:
            return outcome
    return None


def _flash(ctx: RequestContext, level: FlashLevel, key: str, **kwargs: object) -> Flash:
    return Flash(level=level, message=translate(key, ctx.locale, **kwargs))


def _lesson_location(attempt: TestAttempt) -> str:
    lesson = attempt.component.lesson
    return lesson_path(lesson.course_id, lesson.id)


# Answers


def collect_answers(
    test: TestDefinition,
    submitted: Mapping[str, Sequence[int]] | None,
    is_draft: bool,
) -> dict[str, dict[str, Any]]:
    """
    Build the stored answer map for every question of the test.

    Raises:
        AnswerValidationError: unknown question, or answer not belonging to its question.
    """
    submitted = dict(submitted or {})
    question_ids = {str(question.id) for question in test.questions}
    unknown = sorted(key for key in submitted if key not in question_ids)
    if unknown:
        raise AnswerValidationError(f"unknown question ids: {', '.join(unknown)}")

    answers: dict[str, dict[str, Any]] = {}
    for question in test.questions:
        allowed = {answer.id for answer in question.answers}
        selected = sorted({int(answer_id) for answer_id in submitted.get(str(question.id)) or []})
        invalid = [answer_id for answer_id in selected if answer_id not in allowed]
        if invalid:
            raise AnswerValidationError(
                f"answers {invalid} do not belong to question {question.id}"
            )
        answers[str(question.id)] = {"selected_answer_ids": selected, "is_draft": is_draft}
    return answers


def finalize_answers(answers: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Copy of stored answers with every draft flag cleared."""
    return {
        question_id: {
            "selected_answer_ids": sorted(grading_service.selected_answer_ids(answers, int(question_id))),
            "is_draft": False,
        }
        for question_id in answers
    }


def stored_result(attempt: TestAttempt, test: TestDefinition) -> GradingResult:
    """Result of an already-submitted attempt, read from its stored verdict."""
    return GradingResult(
        correct_count=attempt.mark,
        total_questions=len(test.questions),
        passed=attempt.passed,
        mark=attempt.mark,
    )


# Finalize


def finalize_attempt(
    db: DBSession,
    attempt_id: int,
    now: datetime,
    answers: Mapping[str, Any] | None = None,
) -> Finalization | None:
    """
    Grade and close an attempt. Idempotent: an attempt that is already
    submitted is returned unchanged with its stored result.

    Args:
        answers: final answers to store; defaults to the attempt's saved answers.
    """
    attempt = attempt_repository.get_attempt(db, attempt_id)
    if attempt is None:
        logger.warning("Cannot finalize attempt %s: not found", attempt_id)
        return None

    test = attempt.component.test
    if attempt.submitted:
        return Finalization(attempt, stored_result(attempt, test), finalized=False)

    final_answers = finalize_answers(attempt.answers if answers is None else answers)
    result = grading_service.grade(final_answers, test)
    status = AttemptStatus.PASSED if result.passed else AttemptStatus.FAILED

    won = attempt_repository.mark_submitted(
        db, attempt.id, final_answers, result.mark, status, now
    )
    db.refresh(attempt)
    if not won:
        logger.info("Attempt %s was already finalized", attempt.id)
        return Finalization(attempt, stored_result(attempt, test), finalized=False)

    logger.info(
        "Finalized attempt %s: %s/%s correct, %s",
        attempt.id,
        result.correct_count,
        result.total_questions,
        status.value,
    )
    return Finalization(attempt, result, finalized=True)


def result_flash(ctx: RequestContext, finalization: Finalization) -> Flash:
    """Pass/fail message, with remaining attempts when failed."""
    result = finalization.result
    if result.passed:
        return _flash(
            ctx, FlashLevel.NOTICE, "passed",
            score=result.correct_count, total=result.total_questions,
        )
    test = finalization.attempt.component.test
    remaining = max(test.max_attempts - finalization.attempt.attempt_number, 0)
    return _flash(
        ctx, FlashLevel.NOTICE, "failed",
        score=result.correct_count, total=result.total_questions,
        remaining_attempts=remaining,
    )


def _finalized_outcome(
    ctx: RequestContext, finalization: Finalization, prefix_key: str | None = None
) -> Outcome:
    flash = result_flash(ctx, finalization)
    if prefix_key:
        flash = Flash(flash.level, f"{translate(prefix_key, ctx.locale)} {flash.message}")
    return Outcome.redirect(
        _lesson_location(finalization.attempt),
        flash,
        attempt=finalization.attempt,
        result=finalization.result,
        remaining_seconds=0,
    )


def _already_submitted_outcome(ctx: RequestContext, attempt: TestAttempt) -> Outcome:
    return Outcome.redirect(
        _lesson_location(attempt),
        _flash(ctx, FlashLevel.INFO, "already_submitted"),
        attempt=attempt,
        result=stored_result(attempt, attempt.component.test),
        remaining_seconds=0,
    )


def _expire(db: DBSession, ctx: RequestContext, attempt: TestAttempt) -> Outcome:
    finalization = finalize_attempt(db, attempt.id, ctx.now)
    if finalization is None or not finalization.finalized:
        return _already_submitted_outcome(ctx, attempt)
    return _finalized_outcome(ctx, finalization, prefix_key="time_expired")


def _handle_failure(
    db: DBSession, ctx: RequestContext, attempt_id: int, exc: Exception
) -> tuple[Flash, int]:
    """Roll back a failed command and log it. Returns the flash and status to report."""
    db.rollback()
    if isinstance(exc, AnswerValidationError):
        logger.warning("Rejected answers for attempt %s: %s", attempt_id, exc)
        return _flash(ctx, FlashLevel.DANGER, "validation_failed", errors=str(exc)), 422
    if isinstance(exc, SQLAlchemyError):
        logger.error("Database rejected update of attempt %s: %s", attempt_id, exc)
        return (
            _flash(ctx, FlashLevel.DANGER, "validation_failed", errors=exc.__class__.__name__),
            422,
        )
    logger.exception("Processing of attempt %s failed", attempt_id)
    return _flash(ctx, FlashLevel.DANGER, "unexpected"), 500


# StartAttempt guards


def load_lesson(db: DBSession, state: StartState) -> Outcome | None:
    state.lesson = course_service.get_lesson(db, state.lesson_id)
    if state.lesson is not None:
        return None
    return Outcome.redirect(
        courses_path(), _flash(state.ctx, FlashLevel.DANGER, "lesson_not_found"), status_code=404
    )


def load_test_component(db: DBSession, state: StartState) -> Outcome | None:
    lesson = state.lesson
    state.component = course_service.get_test_component(lesson)
    if state.component is None:
        return Outcome.redirect(
            lesson_path(lesson.course_id, lesson.id),
            _flash(state.ctx, FlashLevel.DANGER, "test_not_found"),
            status_code=404,
        )
    state.test = state.component.test
    state.attempt_count = attempt_repository.count_attempts(
        db, state.ctx.user.id, state.component.id
    )
    return None


def resume_live_attempt(db: DBSession, state: StartState) -> Outcome | None:
    live = attempt_repository.find_live_attempt(
        db, state.ctx.user.id, state.component, state.ctx.now
    )
    if live is None:
        return None
    return Outcome.redirect(
        attempt_path(live.id),
        _flash(state.ctx, FlashLevel.INFO, "continuing_ongoing_test"),
        attempt=live,
        remaining_seconds=attempt_repository.remaining_seconds(live, state.test, state.ctx.now),
    )


def finalize_expired_attempt(db: DBSession, state: StartState) -> Outcome | None:
    expired = attempt_repository.find_expired_live_attempt(
        db, state.ctx.user.id, state.component, state.ctx.now
    )
    if expired is None:
        return None
    lesson = state.lesson
    try:
        finalization = finalize_attempt(db, expired.id, state.ctx.now)
    except Exception as exc:
        flash, status_code = _handle_failure(db, state.ctx, expired.id, exc)
        return Outcome.redirect(
            lesson_path(lesson.course_id, lesson.id), flash, status_code=status_code
        )
    return Outcome.redirect(
        lesson_path(lesson.course_id, lesson.id),
        _flash(state.ctx, FlashLevel.INFO, "test_auto_submitted"),
        attempt=finalization.attempt if finalization else expired,
        result=finalization.result if finalization else None,
        remaining_seconds=0,
    )


def check_attempt_limit(db: DBSession, state: StartState) -> Outcome | None:
    if state.attempt_count < state.test.max_attempts:
        return None
    lesson = state.lesson
    return Outcome.redirect(
        lesson_path(lesson.course_id, lesson.id),
        _flash(state.ctx, FlashLevel.DANGER, "max_attempts_reached", max_attempts=state.test.max_attempts),
        status_code=409,
    )


START_GUARDS = (
    load_lesson,
    load_test_component,
    resume_live_attempt,
    finalize_expired_attempt,
    check_attempt_limit,
)


# Attempt guards


def load_attempt(db: DBSession, state: AttemptState) -> Outcome | None:
    state.attempt = attempt_repository.get_attempt(db, state.attempt_id)
    if state.attempt is not None:
        return None
    return Outcome.redirect(
        courses_path(), _flash(state.ctx, FlashLevel.DANGER, "attempt_not_found"), status_code=404
    )


def check_ownership(db: DBSession, state: AttemptState) -> Outcome | None:
    if state.attempt.user_id == state.ctx.user.id:
        return None
    logger.warning(
        "User %s tried to access attempt %s owned by user %s",
        state.ctx.user.id,
        state.attempt.id,
        state.attempt.user_id,
    )
    return Outcome.redirect(
        root_path(), _flash(state.ctx, FlashLevel.DANGER, "unauthorized_access"), status_code=403
    )


ATTEMPT_GUARDS = (load_attempt, check_ownership)


# Commands


def start_attempt(
    db: DBSession,
    ctx: RequestContext,
    lesson_id: int,
    scheduler: GradingScheduler,
) -> Outcome:
    """Start a new attempt on the lesson's test, or route to an existing one."""
    state = StartState(ctx=ctx, lesson_id=lesson_id)
    outcome = run_guards(START_GUARDS, db, state)
    if outcome is not None:
        return outcome

    attempt_number = state.attempt_count + 1
    try:
        attempt = attempt_repository.create_attempt(
            db, ctx.user.id, state.component.id, attempt_number, ctx.now
        )
    except IntegrityError:
        # A concurrent request created this attempt number first
        db.rollback()
        logger.warning(
            "Attempt %s for user %s on component %s already exists",
            attempt_number,
            ctx.user.id,
            state.component.id,
        )
        outcome = resume_live_attempt(db, state)
        if outcome is None:
            raise
        return outcome

    deadline = ensure_utc(attempt.created_at) + timedelta(seconds=state.test.duration_seconds)
    scheduler.schedule_at(deadline, attempt.id)
    logger.info(
        "User %s started attempt %s (#%s) on component %s",
        ctx.user.id,
        attempt.id,
        attempt.attempt_number,
        state.component.id,
    )
    return Outcome.redirect(
        attempt_path(attempt.id),
        _flash(ctx, FlashLevel.INFO, "attempt_started", attempt_number=attempt.attempt_number),
        status_code=201,
        attempt=attempt,
        remaining_seconds=state.test.duration_seconds,
    )


def _form_outcome(
    ctx: RequestContext,
    attempt: TestAttempt,
    flash: Flash | None = None,
    status_code: int = 200,
) -> Outcome:
    test = attempt.component.test
    return Outcome.render(
        attempt_path(attempt.id),
        flash,
        status_code=status_code,
        attempt=attempt,
        remaining_seconds=attempt_repository.remaining_seconds(attempt, test, ctx.now),
        editable=not attempt_repository.is_expired(attempt, test, ctx.now),
    )


def render_attempt(db: DBSession, ctx: RequestContext, attempt_id: int) -> Outcome:
    """Show an attempt; an expired attempt is finalized on view."""
    state = AttemptState(ctx=ctx, attempt_id=attempt_id)
    outcome = run_guards(ATTEMPT_GUARDS, db, state)
    if outcome is not None:
        return outcome

    attempt = state.attempt
    test = attempt.component.test
    if attempt.submitted:
        return Outcome.render(
            attempt_path(attempt.id),
            attempt=attempt,
            result=stored_result(attempt, test),
            remaining_seconds=0,
        )
    if attempt_repository.is_expired(attempt, test, ctx.now):
        try:
            return _expire(db, ctx, attempt)
        except Exception as exc:
            flash, status_code = _handle_failure(db, ctx, attempt_id, exc)
            return _form_outcome(ctx, attempt, flash, status_code=status_code)
    return _form_outcome(ctx, attempt)


def _save_draft(
    db: DBSession,
    ctx: RequestContext,
    attempt: TestAttempt,
    answers: Mapping[str, Sequence[int]] | None,
) -> Outcome:
    draft = collect_answers(attempt.component.test, answers, is_draft=True)
    saved = attempt_repository.save_draft_answers(db, attempt.id, draft)
    db.refresh(attempt)
    if not saved:
        return _already_submitted_outcome(ctx, attempt)
    logger.debug("Saved draft for attempt %s", attempt.id)
    return _form_outcome(ctx, attempt, _flash(ctx, FlashLevel.SUCCESS, "draft_saved"))


def _submit(
    db: DBSession,
    ctx: RequestContext,
    attempt: TestAttempt,
    answers: Mapping[str, Sequence[int]] | None,
) -> Outcome:
    final = collect_answers(attempt.component.test, answers, is_draft=False)
    finalization = finalize_attempt(db, attempt.id, ctx.now, answers=final)
    if finalization is None or not finalization.finalized:
        return _already_submitted_outcome(ctx, attempt)
    return _finalized_outcome(ctx, finalization)


def update_attempt(
    db: DBSession,
    ctx: RequestContext,
    attempt_id: int,
    answers: Mapping[str, Sequence[int]] | None,
    save_draft: bool,
) -> Outcome:
    """Save a draft or submit final answers. The server clock decides expiry."""
    state = AttemptState(ctx=ctx, attempt_id=attempt_id)
    outcome = run_guards(ATTEMPT_GUARDS, db, state)
    if outcome is not None:
        return outcome

    attempt = state.attempt
    if attempt.submitted:
        return _already_submitted_outcome(ctx, attempt)

    try:
        if attempt_repository.is_expired(attempt, attempt.component.test, ctx.now):
            return _expire(db, ctx, attempt)
        if save_draft:
            return _save_draft(db, ctx, attempt, answers)
        return _submit(db, ctx, attempt, answers)
    except Exception as exc:
        flash, status_code = _handle_failure(db, ctx, attempt_id, exc)
        return _form_outcome(ctx, attempt, flash, status_code=status_code)
