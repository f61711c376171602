"""
Attempt state machine.

    IN_PROGRESS --finalize (before expires_at)--> COMPLETED
    IN_PROGRESS --sweep / lazy expiry check-----> TIMED_OUT

Every move out of IN_PROGRESS is a conditional update on the attempt row
(``status = IN_PROGRESS`` plus the deadline condition). The update's row count
decides the single winner among racing finalize calls and sweepers; losers
re-read the row and report what actually happened. Terminal attempts are
immutable except for manual grading of open-ended answers.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from exam_platform.core.clock import SystemClock, deadline_for, elapsed_seconds, is_expired, remaining_seconds
from exam_platform.core.config import Settings, settings as default_settings
from exam_platform.core.database import storage_errors
from exam_platform.core.errors import (
    ConflictError, ExamPlatformError, ExpiredError, ForbiddenError, InternalError, NotFoundError, PaymentError,
    ValidationError,
)
from exam_platform.models.attempt import AttemptQuestion, ExamAttempt
from exam_platform.models.enums import AttemptGradingState, AttemptStatus, ExamStatus, QuestionType, UserRole
from exam_platform.models.exam import Exam
from exam_platform.schemas.attempt import (
    AnswerOut, AnswerSubmit, Attempt, AttemptDetail, Heartbeat, ScoredResult, SweepResult, UpdatedScore,
)
from exam_platform.schemas.exam import OptionOut, QuestionOut, ReadingTextOut
from exam_platform.services.answer_store import AnswerStore
from exam_platform.services.payments import PaymentsGateway, exam_price
from exam_platform.services.scoring import QuestionKey, percentage, score_attempt

logger = logging.getLogger(__name__)


class AttemptService:
    def __init__(self, db: Session, payments: Optional[PaymentsGateway] = None, settings: Optional[Settings] = None,
                 clock=None):
        self.db = db
        self.payments = payments
        self.settings = settings or default_settings
        self.clock = clock or SystemClock()
        self.answers = AnswerStore(db)

    # --- start ---

    def start_attempt(self, exam_id: int, student_id: int) -> ExamAttempt:
        exam = self.db.query(Exam).filter(Exam.id == exam_id).first()
        if not exam or exam.status != ExamStatus.PUBLISHED:
            raise NotFoundError("Exam not found or not published")

        now = self.clock.now()
        previous = self.db.query(ExamAttempt).filter(
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.student_id == student_id
        ).all()

        for attempt in previous:
            if attempt.status != AttemptStatus.IN_PROGRESS:
                continue
            if not is_expired(attempt.expires_at, now):
                raise ConflictError("An attempt for this exam is already in progress", code="attempt_in_progress")
            # abandoned attempt: close it before deciding on a new one
            self._time_out(attempt.id, now)

        # a timed out attempt does not count as taken
        completed = any(attempt.status == AttemptStatus.COMPLETED for attempt in previous)
        if completed and not self.settings.ALLOW_RETAKES:
            raise ConflictError("This exam has already been taken", code="attempt_already_finished")

        snapshot = [
            AttemptQuestion(
                question_id=question.id,
                position=position,
                question_type=question.type,
                points=question.points,
                correct_option_id=question.resolve_correct_option_id(),
                option_ids=[option.id for option in question.options],
            )
            for position, question in enumerate(exam.questions)
        ]

        price = exam_price(exam, self.settings)
        transaction_id = None
        if price > 0:
            if self.payments is None:
                raise PaymentError("No payment provider configured for paid exams")
            # debit first; compensated below if the attempt cannot be stored
            transaction_id = self.payments.debit(student_id, price, exam_id=exam.id, teacher_id=exam.teacher_id)

        attempt = ExamAttempt(
            exam_id=exam.id,
            student_id=student_id,
            status=AttemptStatus.IN_PROGRESS,
            grading_state=AttemptGradingState.PENDING,
            started_at=now,
            expires_at=deadline_for(now, exam.duration),
            last_activity_at=now,
            total_score=float(sum(q.points for q in snapshot)),
            payment_transaction_id=transaction_id,
            questions=snapshot,
        )
        try:
            self.db.add(attempt)
            self.db.commit()
        except IntegrityError as e:
            # a concurrent start for the same pair won the unique index
            self.db.rollback()
            self._compensate(transaction_id, e)
            raise ConflictError("An attempt for this exam is already in progress", code="attempt_in_progress")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Attempt creation failed (exam_id={exam_id}, student_id={student_id}): {e}")
            self._compensate(transaction_id, e)
            raise InternalError("Attempt could not be created") from e

        self.db.refresh(attempt)
        logger.info(
            f"Attempt started: attempt_id={attempt.id}, exam_id={exam_id}, student_id={student_id}, "
            f"expires_at={attempt.expires_at.isoformat()}"
        )
        return attempt

    def _compensate(self, transaction_id: Optional[str], cause: Exception) -> None:
        if transaction_id is None:
            return
        try:
            self.payments.refund(transaction_id)
        except ExamPlatformError as e:
            logger.error(f"Refund of {transaction_id} failed after attempt creation failure: {e}")
            raise InternalError("Attempt could not be created and the exam fee was not refunded") from cause

    # --- answers ---

    def submit_answers(self, attempt_id: int, student_id: int, answers: Sequence[AnswerSubmit]) -> List[AnswerOut]:
        attempt = self._owned_attempt(attempt_id, student_id)
        now = self.clock.now()
        if attempt.status.is_terminal or is_expired(attempt.expires_at, now):
            self._raise_closed(attempt_id, now)

        if not answers:
            raise ValidationError("No answers submitted")
        keys = {q.question_id: q for q in attempt.questions}
        for item in answers:
            self._validate_answer(keys, item)

        with storage_errors(self.db, "submit_answers"):
            # the guard row update also serializes writers on this attempt
            guarded = self.db.query(ExamAttempt).filter(
                ExamAttempt.id == attempt_id,
                ExamAttempt.status == AttemptStatus.IN_PROGRESS,
                ExamAttempt.expires_at > now
            ).update({ExamAttempt.last_activity_at: now}, synchronize_session=False)

            if guarded == 0:
                self.db.rollback()
                self._raise_closed(attempt_id, now)

            stored = [
                self.answers.upsert(attempt_id, item.question_id, item.option_id, item.content, now)
                for item in answers
            ]
            self.db.commit()

        logger.debug(f"Answers saved: attempt_id={attempt_id}, count={len(stored)}")
        return [AnswerOut.model_validate(a) for a in stored]

    def _validate_answer(self, keys, item: AnswerSubmit) -> None:
        key = keys.get(item.question_id)
        if key is None:
            raise ValidationError(f"Question {item.question_id} is not part of this attempt")
        qtype = QuestionType(key.question_type)
        if qtype.is_auto_graded:
            if item.option_id is None:
                raise ValidationError(f"Question {item.question_id} needs an option_id")
            if item.option_id not in (key.option_ids or []):
                raise ValidationError(f"Option {item.option_id} does not belong to question {item.question_id}")
        elif qtype is QuestionType.OPEN_ENDED:
            if item.content is None or not item.content.strip():
                raise ValidationError(f"Question {item.question_id} needs a text answer")

    # --- finalize ---

    def finalize_attempt(self, attempt_id: int, student_id: int) -> ScoredResult:
        attempt = self._owned_attempt(attempt_id, student_id)
        if attempt.status == AttemptStatus.COMPLETED:
            return self.scored_result(attempt)
        if attempt.status == AttemptStatus.TIMED_OUT:
            raise ExpiredError("The time for this attempt is over", code="attempt_expired")

        now = self.clock.now()
        with storage_errors(self.db, "finalize_attempt"):
            claimed = self.db.query(ExamAttempt).filter(
                ExamAttempt.id == attempt_id,
                ExamAttempt.status == AttemptStatus.IN_PROGRESS,
                ExamAttempt.expires_at > now
            ).update({
                ExamAttempt.status: AttemptStatus.COMPLETED,
                ExamAttempt.submitted_at: now,
                ExamAttempt.last_activity_at: now,
            }, synchronize_session=False)

            if claimed == 0:
                self.db.rollback()
                current = self._get_attempt(attempt_id)
                if current.status == AttemptStatus.COMPLETED:
                    logger.debug(f"Finalize lost to a concurrent finalize: attempt_id={attempt_id}")
                    return self.scored_result(current)
                self._raise_closed(attempt_id, now)

            self._score(attempt_id, now)
            self.db.commit()

        attempt = self._get_attempt(attempt_id)
        logger.info(
            f"Attempt completed: attempt_id={attempt_id}, score={attempt.score}/{attempt.total_score}, "
            f"grading_state={attempt.grading_state.value}"
        )
        return self.scored_result(attempt)

    # --- expiry ---

    def heartbeat(self, attempt_id: int, student_id: int) -> Heartbeat:
        attempt = self._refresh_expiry(self._owned_attempt(attempt_id, student_id))
        now = self.clock.now()
        return Heartbeat(
            attempt_id=attempt.id,
            status=attempt.status,
            expires_at=attempt.expires_at,
            remaining_seconds=remaining_seconds(attempt.expires_at, now)
            if attempt.status == AttemptStatus.IN_PROGRESS else 0.0,
            elapsed_seconds=elapsed_seconds(attempt.started_at, min(now, attempt.submitted_at or now)),
        )

    def run_expiry_sweep(self, batch_size: Optional[int] = None) -> SweepResult:
        """Time out every overdue attempt; a second pass over the same rows is a no-op"""
        now = self.clock.now()
        rows = self.db.query(ExamAttempt.id).filter(
            ExamAttempt.status == AttemptStatus.IN_PROGRESS,
            ExamAttempt.expires_at <= now
        ).order_by(ExamAttempt.expires_at).limit(batch_size or self.settings.SWEEP_BATCH_SIZE).all()

        processed = [row.id for row in rows if self._time_out(row.id, now)]
        if processed:
            logger.info(f"Expiry sweep timed out {len(processed)} attempt(s): {processed}")
        return SweepResult(processed_count=len(processed), attempt_ids=processed)

    def _time_out(self, attempt_id: int, now: datetime) -> bool:
        with storage_errors(self.db, "time_out_attempt"):
            # submitted_at is the deadline, not the moment the sweep noticed
            claimed = self.db.query(ExamAttempt).filter(
                ExamAttempt.id == attempt_id,
                ExamAttempt.status == AttemptStatus.IN_PROGRESS,
                ExamAttempt.expires_at <= now
            ).update({
                ExamAttempt.status: AttemptStatus.TIMED_OUT,
                ExamAttempt.submitted_at: ExamAttempt.expires_at,
            }, synchronize_session=False)

            if claimed == 0:
                self.db.rollback()
                logger.debug(f"Timeout skipped, attempt already closed: attempt_id={attempt_id}")
                return False

            sheet = self._score(attempt_id, now)
            self.db.commit()

        logger.info(f"Attempt timed out: attempt_id={attempt_id}, score={sheet.score}/{sheet.total_score}")
        return True

    def _refresh_expiry(self, attempt: ExamAttempt) -> ExamAttempt:
        """Lazy expiry check on read"""
        now = self.clock.now()
        if attempt.status == AttemptStatus.IN_PROGRESS and is_expired(attempt.expires_at, now):
            self._time_out(attempt.id, now)
            return self._get_attempt(attempt.id)
        return attempt

    def _raise_closed(self, attempt_id: int, now: datetime) -> None:
        attempt = self._get_attempt(attempt_id)
        if attempt.status == AttemptStatus.IN_PROGRESS:
            # still open in the store but past its deadline: close it like the sweeper would
            self._time_out(attempt_id, now)
            raise ExpiredError("The time for this attempt is over", code="attempt_expired")
        if attempt.status == AttemptStatus.TIMED_OUT:
            raise ExpiredError("The time for this attempt is over", code="attempt_expired")
        raise ExpiredError("This attempt has already been submitted", code="attempt_closed")

    # --- scoring ---

    def _score(self, attempt_id: int, now: datetime):
        """Grade the stored answers against the attempt's snapshot; caller commits"""
        attempt = self.db.query(ExamAttempt).populate_existing().filter(ExamAttempt.id == attempt_id).one()
        keys = [
            QuestionKey(
                question_id=q.question_id,
                question_type=q.question_type,
                points=q.points,
                correct_option_id=q.correct_option_id,
            )
            for q in attempt.questions
        ]
        sheet = score_attempt(keys, self.answers.submitted_answers(attempt_id))
        self.answers.apply_grades(attempt_id, sheet, now)

        attempt.score = sheet.score
        attempt.total_score = sheet.total_score
        attempt.grading_state = (
            AttemptGradingState.AWAITING_REVIEW if sheet.awaiting_review else AttemptGradingState.GRADED
        )
        self.db.flush()
        return sheet

    # --- manual grading ---

    def grade_answer(self, attempt_id: int, answer_id: int, grader_id: int, points: float,
                     grader_role: UserRole = UserRole.TEACHER) -> UpdatedScore:
        attempt = self._get_attempt(attempt_id)
        if grader_role == UserRole.STUDENT or (
            grader_role != UserRole.ADMIN and attempt.exam.teacher_id != grader_id
        ):
            raise ForbiddenError("Only the exam's teacher or an admin can grade answers")
        if not attempt.status.is_terminal:
            raise ValidationError("The attempt has not been submitted yet")

        answer = self.answers.get(attempt_id, answer_id)
        if not answer:
            raise NotFoundError("Answer not found")
        key = next((q for q in attempt.questions if q.question_id == answer.question_id), None)
        if key is None or key.question_type != QuestionType.OPEN_ENDED:
            raise ValidationError("Only open-ended answers can be graded manually")
        if points < 0 or points > key.points:
            raise ValidationError(f"Points must be between 0 and {key.points:g}")

        now = self.clock.now()
        with storage_errors(self.db, "grade_answer"):
            locked = self.db.query(ExamAttempt).populate_existing().with_for_update().filter(
                ExamAttempt.id == attempt_id
            ).one()
            self.answers.set_manual_grade(answer, points, grader_id, now)
            # recomputed from every known per-question score, never incremented
            locked.score = self.answers.sum_points(attempt_id)
            locked.grading_state = (
                AttemptGradingState.AWAITING_REVIEW
                if self.answers.count_awaiting_review(attempt_id)
                else AttemptGradingState.GRADED
            )
            self.db.commit()

        attempt = self._get_attempt(attempt_id)
        logger.info(
            f"Answer graded: attempt_id={attempt_id}, answer_id={answer_id}, points={points}, "
            f"grader_id={grader_id}, score={attempt.score}/{attempt.total_score}"
        )
        return UpdatedScore(
            attempt_id=attempt_id,
            answer_id=answer_id,
            points=float(points),
            is_correct=points > 0,
            score=attempt.score,
            total_score=attempt.total_score,
            grading_state=attempt.grading_state,
        )

    # --- reads ---

    def get_attempt(self, attempt_id: int, student_id: int) -> AttemptDetail:
        attempt = self._refresh_expiry(self._owned_attempt(attempt_id, student_id))
        now = self.clock.now()
        return AttemptDetail(
            attempt=Attempt.model_validate(attempt),
            questions=[self._student_question(q) for q in attempt.questions],
            answers=[AnswerOut.model_validate(a) for a in self.answers.list_for_attempt(attempt_id)],
            remaining_seconds=remaining_seconds(attempt.expires_at, now)
            if attempt.status == AttemptStatus.IN_PROGRESS else 0.0,
        )

    def get_result(self, attempt_id: int, student_id: int) -> ScoredResult:
        attempt = self._refresh_expiry(self._owned_attempt(attempt_id, student_id))
        if not attempt.status.is_terminal:
            raise ValidationError("The attempt has not been submitted yet")
        return self.scored_result(attempt)

    def list_attempts_for_student(self, student_id: int) -> List[ExamAttempt]:
        return self.db.query(ExamAttempt).filter(
            ExamAttempt.student_id == student_id
        ).order_by(ExamAttempt.started_at.desc(), ExamAttempt.id.desc()).all()

    def scored_result(self, attempt: ExamAttempt) -> ScoredResult:
        answers = self.answers.list_for_attempt(attempt.id)
        return ScoredResult(
            attempt=Attempt.model_validate(attempt),
            answers=[AnswerOut.model_validate(a) for a in answers],
            percentage=percentage(attempt.score, attempt.total_score, self.settings.PERCENTAGE_PRECISION),
            awaiting_review=self.answers.count_awaiting_review(attempt.id),
        )

    def _student_question(self, snapshot: AttemptQuestion) -> QuestionOut:
        question = snapshot.question
        allowed = set(snapshot.option_ids or [])
        return QuestionOut(
            id=question.id,
            type=snapshot.question_type,
            text=question.text,
            points=snapshot.points,
            options=[OptionOut.model_validate(o) for o in question.options if o.id in allowed],
            reading_text=ReadingTextOut.model_validate(question.reading_text) if question.reading_text else None,
        )

    def _get_attempt(self, attempt_id: int) -> ExamAttempt:
        attempt = self.db.query(ExamAttempt).populate_existing().filter(ExamAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Attempt not found")
        return attempt

    def _owned_attempt(self, attempt_id: int, student_id: int) -> ExamAttempt:
        attempt = self._get_attempt(attempt_id)
        if attempt.student_id != student_id:
            raise ForbiddenError("This attempt belongs to another student")
        return attempt
