from typing import List

from fastapi import APIRouter, Depends, status

from exam_platform.api.deps import CurrentUser, get_attempt_service, get_current_user, require_role
from exam_platform.models.enums import UserRole
from exam_platform.schemas.attempt import (
    AnswerOut, Attempt, AttemptDetail, GradeAnswerRequest, Heartbeat, ScoredResult, SubmitAnswersRequest,
    UpdatedScore,
)
from exam_platform.services.attempt_service import AttemptService

# mounted at /api/v1: start lives under /exams/{exam_id}, the rest under /attempts
router = APIRouter()

student_only = require_role(UserRole.STUDENT)


@router.post("/exams/{exam_id}/attempts", response_model=Attempt, status_code=status.HTTP_201_CREATED)
def start_attempt(
    exam_id: int,
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(student_only)
):
    """Start an attempt; paid exams are charged here"""
    return service.start_attempt(exam_id, current_user.id)


@router.get("/attempts/me", response_model=List[Attempt])
def list_my_attempts(
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(student_only)
):
    return service.list_attempts_for_student(current_user.id)


@router.get("/attempts/{attempt_id}", response_model=AttemptDetail)
def get_attempt(
    attempt_id: int,
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(student_only)
):
    return service.get_attempt(attempt_id, current_user.id)


@router.get("/attempts/{attempt_id}/heartbeat", response_model=Heartbeat)
def heartbeat(
    attempt_id: int,
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(student_only)
):
    """Remaining time, as the server sees it"""
    return service.heartbeat(attempt_id, current_user.id)


@router.put("/attempts/{attempt_id}/answers", response_model=List[AnswerOut])
def submit_answers(
    attempt_id: int,
    payload: SubmitAnswersRequest,
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(student_only)
):
    return service.submit_answers(attempt_id, current_user.id, payload.answers)


@router.post("/attempts/{attempt_id}/submit", response_model=ScoredResult)
def finalize_attempt(
    attempt_id: int,
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(student_only)
):
    return service.finalize_attempt(attempt_id, current_user.id)


@router.get("/attempts/{attempt_id}/result", response_model=ScoredResult)
def get_result(
    attempt_id: int,
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(student_only)
):
    return service.get_result(attempt_id, current_user.id)


@router.patch("/attempts/{attempt_id}/answers/{answer_id}/grade", response_model=UpdatedScore)
def grade_answer(
    attempt_id: int,
    answer_id: int,
    payload: GradeAnswerRequest,
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Manual grade for an open-ended answer"""
    return service.grade_answer(attempt_id, answer_id, current_user.id, payload.points, current_user.role)
