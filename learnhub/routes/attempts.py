"""Test attempt endpoints: start, view, save draft, submit."""
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session as DbSession

from learnhub.context import RequestContext
from learnhub.database import get_db
from learnhub.dependencies.context import get_request_context, get_scheduler
from learnhub.models import (
    AttemptAnswersRequest,
    AttemptResponse,
    AttemptUpdateRequest,
    CommandResponse,
    FlashResponse,
    GradingResultResponse,
)
from learnhub.services import attempt_service
from learnhub.services.outcomes import Outcome
from learnhub.services.scheduler_service import GradingScheduler

router = APIRouter(prefix="/api", tags=["attempts"])


def outcome_response(outcome: Outcome) -> JSONResponse:
    """Serialize a command outcome with its status code."""
    body = CommandResponse(
        action=outcome.action.value,
        location=outcome.location,
        flash=(
            FlashResponse(level=outcome.flash.level.value, message=outcome.flash.message)
            if outcome.flash
            else None
        ),
        editable=outcome.editable,
        remaining_seconds=outcome.remaining_seconds,
        attempt=AttemptResponse.model_validate(outcome.attempt) if outcome.attempt else None,
        result=GradingResultResponse.model_validate(outcome.result) if outcome.result else None,
    )
    return JSONResponse(status_code=outcome.status_code, content=body.model_dump(mode="json"))


@router.post("/lessons/{lesson_id}/attempts", response_model=CommandResponse)
def start_attempt(
    lesson_id: int,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    scheduler: Annotated[GradingScheduler, Depends(get_scheduler)],
    db: Annotated[DbSession, Depends(get_db)],
) -> JSONResponse:
    """Start (or resume) an attempt on the lesson's test."""
    return outcome_response(attempt_service.start_attempt(db, ctx, lesson_id, scheduler))


@router.get("/attempts/{attempt_id}", response_model=CommandResponse)
def get_attempt(
    attempt_id: int,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    db: Annotated[DbSession, Depends(get_db)],
) -> JSONResponse:
    """Show an attempt with its remaining time; expired attempts are submitted."""
    return outcome_response(attempt_service.render_attempt(db, ctx, attempt_id))


@router.patch("/attempts/{attempt_id}", response_model=CommandResponse)
def update_attempt(
    attempt_id: int,
    payload: AttemptUpdateRequest,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    db: Annotated[DbSession, Depends(get_db)],
) -> JSONResponse:
    """Save a draft or submit, depending on `save_draft`."""
    return outcome_response(
        attempt_service.update_attempt(db, ctx, attempt_id, payload.answers, payload.save_draft)
    )


@router.put("/attempts/{attempt_id}/draft", response_model=CommandResponse)
def save_draft(
    attempt_id: int,
    payload: AttemptAnswersRequest,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    db: Annotated[DbSession, Depends(get_db)],
) -> JSONResponse:
    """Save answers as a draft without finishing the attempt."""
    return outcome_response(
        attempt_service.update_attempt(db, ctx, attempt_id, payload.answers, save_draft=True)
    )


@router.post("/attempts/{attempt_id}/submit", response_model=CommandResponse)
def submit_attempt(
    attempt_id: int,
    payload: AttemptAnswersRequest,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    db: Annotated[DbSession, Depends(get_db)],
) -> JSONResponse:
    """Submit final answers and get graded."""
    return outcome_response(
        attempt_service.update_attempt(db, ctx, attempt_id, payload.answers, save_draft=False)
    )
