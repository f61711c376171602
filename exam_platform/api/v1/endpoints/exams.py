from typing import Optional

from fastapi import APIRouter, Depends, status

from exam_platform.api.deps import (
    CurrentUser, get_current_user, get_exam_service, get_leaderboard_service, get_prize_service, require_role,
)
from exam_platform.models.enums import UserRole
from exam_platform.schemas.exam import ExamCreate, ExamOut
from exam_platform.schemas.leaderboard import LeaderboardData, PrizeAwardResult
from exam_platform.services.exam_service import ExamService
from exam_platform.services.leaderboard import LeaderboardService
from exam_platform.services.prize_award import PrizeAwardService

router = APIRouter()


@router.post("/", response_model=ExamOut, status_code=status.HTTP_201_CREATED)
def create_exam(
    exam_data: ExamCreate,
    service: ExamService = Depends(get_exam_service),
    current_user: CurrentUser = Depends(require_role(UserRole.TEACHER, UserRole.ADMIN))
):
    """Create a draft exam with its questions"""
    return service.create_exam(current_user.id, exam_data)


@router.get("/{exam_id}", response_model=ExamOut)
def get_exam(
    exam_id: int,
    service: ExamService = Depends(get_exam_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    return service.get_exam(exam_id)


@router.post("/{exam_id}/publish", response_model=ExamOut)
def publish_exam(
    exam_id: int,
    service: ExamService = Depends(get_exam_service),
    current_user: CurrentUser = Depends(require_role(UserRole.TEACHER, UserRole.ADMIN))
):
    return service.publish_exam(exam_id, current_user.id, current_user.role)


@router.post("/{exam_id}/archive", response_model=ExamOut)
def archive_exam(
    exam_id: int,
    service: ExamService = Depends(get_exam_service),
    current_user: CurrentUser = Depends(require_role(UserRole.TEACHER, UserRole.ADMIN))
):
    return service.archive_exam(exam_id, current_user.id, current_user.role)


@router.get("/{exam_id}/leaderboard", response_model=LeaderboardData)
def get_leaderboard(
    exam_id: int,
    service: LeaderboardService = Depends(get_leaderboard_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Ranking of finished attempts with the prize for each position"""
    requesting_student_id: Optional[int] = (
        current_user.id if current_user.role == UserRole.STUDENT else None
    )
    return service.get_leaderboard(exam_id, requesting_student_id)


@router.post("/{exam_id}/prizes/award", response_model=PrizeAwardResult)
def award_prizes(
    exam_id: int,
    service: PrizeAwardService = Depends(get_prize_service),
    current_user: CurrentUser = Depends(require_role(UserRole.ADMIN))
):
    return service.award_prizes(exam_id)
