from fastapi import APIRouter, Depends

from exam_platform.api.deps import CurrentUser, get_current_user, get_payments, require_role
from exam_platform.models.enums import UserRole
from exam_platform.schemas.payment import Balance, TopUpRequest, TopUpResult
from exam_platform.services.payments import LedgerPayments

router = APIRouter()


@router.get("/balance", response_model=Balance)
def get_balance(
    payments: LedgerPayments = Depends(get_payments),
    current_user: CurrentUser = Depends(get_current_user)
):
    return Balance(user_id=current_user.id, balance=payments.balance_of(current_user.id))


@router.post("/top-up", response_model=TopUpResult)
def top_up(
    payload: TopUpRequest,
    payments: LedgerPayments = Depends(get_payments),
    current_user: CurrentUser = Depends(require_role(UserRole.ADMIN))
):
    transaction_id = payments.top_up(payload.user_id, payload.amount)
    return TopUpResult(transaction_id=transaction_id, balance=payments.balance_of(payload.user_id))
