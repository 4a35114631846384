"""Adaptive exam API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from adaptive_sat.api.auth import get_current_user_id
from adaptive_sat.db import get_db
from adaptive_sat.models.exam import Exam, ModuleTag, PublicQuestion
from adaptive_sat.models.session import (
    AnswerSave,
    CompleteModuleResult,
    FinalResults,
    Response,
    ReviewItem,
    ReviewSummary,
    SessionMeta,
    SessionStatusView,
    StartSessionResult,
    TestSession,
)
from adaptive_sat.services.exam_session import ExamSessionService
from adaptive_sat.services.exceptions import (
    AnswerValidationError,
    InvalidTransitionError,
    NotFoundError,
    SessionStateError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exams", tags=["exams"])


class StartExamRequest(BaseModel):
    force_new: bool = False
    resume: bool = False


class PauseRequest(BaseModel):
    time_remaining: int | None = Field(default=None, ge=0)
    current_module: ModuleTag | None = None


def _http_error(exc: Exception) -> HTTPException:
    """Map core errors onto HTTP responses."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AnswerValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(exc))
    logger.error("Session transition aborted: %s", exc)
    return HTTPException(status_code=500, detail="Internal server error")


CORE_ERRORS = (NotFoundError, AnswerValidationError, InvalidTransitionError, SessionStateError)


@router.get("", response_model=list[Exam], dependencies=[Depends(get_current_user_id)])
async def list_exams(
    db: AsyncSession = Depends(get_db),
):
    """List the exams that can be started."""
    service = ExamSessionService(db)
    return await service.list_exams()


@router.get("/reviews", response_model=list[ReviewSummary])
async def list_reviews(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the user's test sessions, most recently completed first."""
    service = ExamSessionService(db)
    return await service.list_reviews(user_id)


@router.post("/{exam_id}/start", response_model=StartSessionResult)
async def start_exam(
    exam_id: str,
    request: StartExamRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Start an adaptive test session.

    If an unfinished session exists for this exam, it is returned with
    `requires_confirmation` set; repeat the call with `resume` or
    `force_new` to choose.
    """
    request = request or StartExamRequest()
    service = ExamSessionService(db)
    try:
        return await service.start_session(
            user_id=user_id,
            exam_id=exam_id,
            force_new=request.force_new,
            resume=request.resume,
        )
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.get("/sessions/{session_id}", response_model=SessionStatusView)
async def get_session_status(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get a session with its saved responses."""
    service = ExamSessionService(db)
    try:
        return await service.get_session_status(session_id, user_id)
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.get("/sessions/{session_id}/meta", response_model=SessionMeta)
async def get_session_meta(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the exam summary and module descriptions for a session."""
    service = ExamSessionService(db)
    try:
        return await service.get_session_meta(session_id, user_id)
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.get(
    "/sessions/{session_id}/modules/{module}/questions",
    response_model=list[PublicQuestion],
)
async def get_module_questions(
    session_id: str,
    module: ModuleTag,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the questions of a module, without answer keys."""
    service = ExamSessionService(db)
    try:
        return await service.get_module_questions(session_id, user_id, module)
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/answers", response_model=Response)
async def save_answer(
    session_id: str,
    answer: AnswerSave,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Save or update the answer to a question."""
    service = ExamSessionService(db)
    try:
        return await service.save_answer(
            session_id=session_id,
            user_id=user_id,
            question_id=answer.question_id,
            user_answer=answer.user_answer,
            time_spent=answer.time_spent,
            sequence_number=answer.sequence_number,
            is_flagged=answer.is_flagged,
        )
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/pause", response_model=TestSession)
async def pause_session(
    session_id: str,
    request: PauseRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Pause a session and save the time left on the current module."""
    service = ExamSessionService(db)
    try:
        return await service.pause_session(
            session_id,
            user_id,
            time_remaining=request.time_remaining,
            current_module=request.current_module,
        )
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/resume", response_model=TestSession)
async def resume_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Resume a paused session."""
    service = ExamSessionService(db)
    try:
        return await service.resume_session(session_id, user_id)
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.post(
    "/sessions/{session_id}/modules/{module}/complete",
    response_model=CompleteModuleResult,
)
async def complete_module(
    session_id: str,
    module: ModuleTag,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Grade a module and move on to the next one."""
    service = ExamSessionService(db)
    try:
        return await service.complete_module(session_id, user_id, module)
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/complete", response_model=FinalResults)
async def complete_exam(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get final results for a completed session."""
    service = ExamSessionService(db)
    try:
        return await service.complete_exam(session_id, user_id)
    except CORE_ERRORS as e:
        raise _http_error(e)


@router.get("/sessions/{session_id}/review", response_model=list[ReviewItem])
async def get_review(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Review answered questions of a completed session."""
    service = ExamSessionService(db)
    try:
        return await service.get_review(session_id, user_id)
    except CORE_ERRORS as e:
        raise _http_error(e)
