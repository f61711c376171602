from fastapi import APIRouter, Depends

from exam_platform.api.deps import CurrentUser, get_attempt_service, require_role
from exam_platform.models.enums import UserRole
from exam_platform.schemas.attempt import SweepResult
from exam_platform.services.attempt_service import AttemptService

router = APIRouter()


@router.post("/sweep", response_model=SweepResult)
def run_sweep(
    service: AttemptService = Depends(get_attempt_service),
    current_user: CurrentUser = Depends(require_role(UserRole.ADMIN))
):
    """Run one expiry sweep pass now"""
    return service.run_expiry_sweep()
