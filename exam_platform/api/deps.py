"""
Request dependencies.

Identity is provided by a trusted upstream (gateway or auth service) through
the ``X-User-Id`` and ``X-User-Role`` headers. Services are built per request
so tests can swap any of them with ``app.dependency_overrides``.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from exam_platform.core.clock import SystemClock
from exam_platform.core.config import Settings, settings
from exam_platform.core.database import SessionLocal, get_db
from exam_platform.models.enums import UserRole
from exam_platform.services.attempt_service import AttemptService
from exam_platform.services.exam_service import ExamService
from exam_platform.services.leaderboard import LeaderboardService
from exam_platform.services.payments import LedgerPayments
from exam_platform.services.prize_award import PrizeAwardService


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: UserRole


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    if x_user_id is None or x_user_role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing identity headers"
        )
    try:
        return CurrentUser(id=int(x_user_id), role=UserRole(x_user_role.upper()))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid identity headers"
        )


def require_role(*roles: UserRole):
    def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not allowed for this role"
            )
        return current_user
    return checker


def get_settings() -> Settings:
    return settings


def get_clock():
    return SystemClock()


def get_session_factory():
    return SessionLocal


def get_payments(
    session_factory=Depends(get_session_factory),
    app_settings: Settings = Depends(get_settings),
) -> LedgerPayments:
    # the ledger works in its own sessions, outside the request's transaction
    return LedgerPayments(session_factory, app_settings)


def get_exam_service(db: Session = Depends(get_db), clock=Depends(get_clock)) -> ExamService:
    return ExamService(db, clock=clock)


def get_attempt_service(
    db: Session = Depends(get_db),
    payments: LedgerPayments = Depends(get_payments),
    app_settings: Settings = Depends(get_settings),
    clock=Depends(get_clock),
) -> AttemptService:
    return AttemptService(db, payments, settings=app_settings, clock=clock)


def get_leaderboard_service(
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_settings),
) -> LeaderboardService:
    return LeaderboardService(db, settings=app_settings)


def get_prize_service(
    db: Session = Depends(get_db),
    payments: LedgerPayments = Depends(get_payments),
    app_settings: Settings = Depends(get_settings),
    clock=Depends(get_clock),
) -> PrizeAwardService:
    return PrizeAwardService(db, payments, settings=app_settings, clock=clock)
