"""
Leaderboard and prize calculator.

Rankings are derived from attempt rows on every request and never stored.
Order: higher score first, then earlier submission, then lower attempt id,
which makes the order total and the output reproducible for an unchanged
attempt set.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from exam_platform.core.config import Settings, settings as default_settings
from exam_platform.core.errors import NotFoundError, ValidationError
from exam_platform.models.attempt import ExamAttempt
from exam_platform.models.enums import AttemptStatus
from exam_platform.models.exam import Exam
from exam_platform.schemas.exam import PrizeConfig
from exam_platform.schemas.leaderboard import LeaderboardData, LeaderboardEntry
from exam_platform.services.scoring import percentage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrizeSchedule:
    amounts: Tuple[float, ...]
    include_timed_out: bool = False

    def prize_for(self, position: int) -> float:
        if 1 <= position <= len(self.amounts):
            return self.amounts[position - 1]
        return 0.0

    @property
    def total(self) -> float:
        return float(sum(self.amounts))

    @classmethod
    def from_config(cls, config: Optional[dict], settings: Settings) -> "PrizeSchedule":
        try:
            parsed = PrizeConfig.model_validate(config or {})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid prize configuration: {e}") from e

        if parsed.amounts is not None:
            amounts = parsed.amounts
        elif parsed.pool is not None:
            amounts = [round(parsed.pool * share / 100, 2) for share in parsed.shares]
        else:
            amounts = settings.prize_amounts

        include_timed_out = parsed.include_timed_out
        if include_timed_out is None:
            include_timed_out = settings.LEADERBOARD_INCLUDE_TIMED_OUT
        return cls(amounts=tuple(float(a) for a in amounts), include_timed_out=include_timed_out)


@dataclass(frozen=True)
class RankableAttempt:
    attempt_id: int
    student_id: int
    status: AttemptStatus
    score: float
    total_score: float
    submitted_at: Optional[datetime]


def _rank_key(attempt: RankableAttempt):
    return (-attempt.score, attempt.submitted_at or datetime.max, attempt.attempt_id)


def rank_attempts(
    attempts: Iterable[RankableAttempt],
    schedule: PrizeSchedule,
    requesting_student_id: Optional[int] = None,
    precision: int = 2,
) -> List[LeaderboardEntry]:
    eligible = [
        a for a in attempts
        if a.status == AttemptStatus.COMPLETED
        or (schedule.include_timed_out and a.status == AttemptStatus.TIMED_OUT)
    ]

    entries = []
    ranked_students = set()
    for attempt in sorted(eligible, key=_rank_key):
        # a student appears once, with their best attempt
        if attempt.student_id in ranked_students:
            continue
        ranked_students.add(attempt.student_id)
        position = len(entries) + 1
        entries.append(LeaderboardEntry(
            position=position,
            student_id=attempt.student_id,
            attempt_id=attempt.attempt_id,
            status=attempt.status,
            score=attempt.score,
            total_score=attempt.total_score,
            percentage=percentage(attempt.score, attempt.total_score, precision),
            submitted_at=attempt.submitted_at,
            prize_amount=schedule.prize_for(position),
            is_current_user=requesting_student_id is not None and attempt.student_id == requesting_student_id,
        ))
    return entries


class LeaderboardService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings

    def schedule_for(self, exam: Exam) -> PrizeSchedule:
        return PrizeSchedule.from_config(exam.prize_config, self.settings)

    def get_leaderboard(self, exam_id: int, requesting_student_id: Optional[int] = None) -> LeaderboardData:
        exam = self.db.query(Exam).filter(Exam.id == exam_id).first()
        if not exam:
            raise NotFoundError("Exam not found")

        schedule = self.schedule_for(exam)
        rows = self.db.query(ExamAttempt).filter(
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.status.in_([AttemptStatus.COMPLETED, AttemptStatus.TIMED_OUT])
        ).all()

        entries = rank_attempts(
            (
                RankableAttempt(
                    attempt_id=row.id,
                    student_id=row.student_id,
                    status=row.status,
                    score=float(row.score or 0.0),
                    total_score=float(row.total_score or 0.0),
                    submitted_at=row.submitted_at,
                )
                for row in rows
            ),
            schedule,
            requesting_student_id=requesting_student_id,
            precision=self.settings.PERCENTAGE_PRECISION,
        )

        current_user_position = next((e.position for e in entries if e.is_current_user), None)
        return LeaderboardData(
            exam_id=exam.id,
            exam_title=exam.title,
            entries=entries,
            current_user_position=current_user_position,
            total_participants=len(entries),
            prize_total=round(sum(e.prize_amount for e in entries), 2),
        )
