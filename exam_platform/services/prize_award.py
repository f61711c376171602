import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from exam_platform.core.clock import SystemClock
from exam_platform.core.config import Settings, settings as default_settings
from exam_platform.core.errors import NotFoundError
from exam_platform.models.attempt import ExamAttempt
from exam_platform.models.enums import AttemptGradingState, AttemptStatus
from exam_platform.models.exam import Exam
from exam_platform.schemas.leaderboard import PrizeAwardResult
from exam_platform.services.leaderboard import LeaderboardService
from exam_platform.services.payments import PaymentsGateway

logger = logging.getLogger(__name__)


class PrizeAwardService:
    """
    Credits leaderboard prizes once the standings can no longer change.

    Awarding is skipped (with a reason) while the exam is unpublished, during
    the award delay after publication, while any attempt is still running, or
    while a prize-winning attempt waits for manual grading. Credits are
    idempotent per (exam, student), so running the award twice pays once.
    """

    def __init__(self, db: Session, payments: PaymentsGateway, settings: Optional[Settings] = None, clock=None):
        self.db = db
        self.payments = payments
        self.settings = settings or default_settings
        self.clock = clock or SystemClock()

    def award_prizes(self, exam_id: int) -> PrizeAwardResult:
        exam = self.db.query(Exam).filter(Exam.id == exam_id).first()
        if not exam:
            raise NotFoundError("Exam not found")

        if exam.published_at is None:
            return self._skipped(exam_id, "not_published")

        award_after = exam.published_at + timedelta(minutes=self.settings.PRIZE_AWARD_DELAY_MINUTES)
        if self.clock.now() < award_after:
            return self._skipped(exam_id, "award_delay")

        running = self.db.query(ExamAttempt).filter(
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.status == AttemptStatus.IN_PROGRESS
        ).count()
        if running:
            return self._skipped(exam_id, "attempts_in_progress")

        board = LeaderboardService(self.db, self.settings).get_leaderboard(exam_id)
        winners = [entry for entry in board.entries if entry.prize_amount > 0]
        if not winners:
            return self._skipped(exam_id, "no_winners")

        pending = self.db.query(ExamAttempt).filter(
            ExamAttempt.id.in_([entry.attempt_id for entry in winners]),
            ExamAttempt.grading_state == AttemptGradingState.AWAITING_REVIEW
        ).count()
        if pending:
            return self._skipped(exam_id, "awaiting_review")

        for entry in winners:
            self.payments.credit_prize(entry.student_id, entry.prize_amount, exam_id, position=entry.position)

        total = round(sum(entry.prize_amount for entry in winners), 2)
        logger.info(f"Prizes awarded: exam_id={exam_id}, winners={len(winners)}, total={total}")
        return PrizeAwardResult(exam_id=exam_id, awarded=len(winners), total_amount=total)

    def _skipped(self, exam_id: int, reason: str) -> PrizeAwardResult:
        logger.info(f"Prize award skipped: exam_id={exam_id}, reason={reason}")
        return PrizeAwardResult(exam_id=exam_id, awarded=0, total_amount=0.0, skipped_reason=reason)
