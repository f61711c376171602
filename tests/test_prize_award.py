from datetime import timedelta

from conftest import START
from exam_platform.models.attempt import ExamAttempt
from exam_platform.models.enums import AttemptGradingState, AttemptStatus
from exam_platform.services.prize_award import PrizeAwardService


def add_attempt(db, exam, student_id, score, status=AttemptStatus.COMPLETED,
                grading_state=AttemptGradingState.GRADED):
    db.add(ExamAttempt(
        exam_id=exam.id,
        student_id=student_id,
        status=status,
        grading_state=grading_state,
        started_at=START,
        expires_at=START + timedelta(hours=1),
        submitted_at=START + timedelta(minutes=student_id % 50) if status != AttemptStatus.IN_PROGRESS else None,
        score=score,
        total_score=10,
    ))
    db.commit()


def award(db, payments, test_settings, clock, exam):
    return PrizeAwardService(db, payments, settings=test_settings, clock=clock).award_prizes(exam.id)


def test_unpublished_exam_is_skipped(make_exam, db, payments, test_settings, clock):
    exam = make_exam(publish=False)
    assert award(db, payments, test_settings, clock, exam).skipped_reason == "not_published"


def test_waits_for_award_delay(make_exam, db, payments, test_settings, clock):
    exam = make_exam()
    add_attempt(db, exam, 10, 8)
    clock.advance(minutes=9)

    result = award(db, payments, test_settings, clock, exam)

    assert result.skipped_reason == "award_delay"
    assert payments.balance_of(10) == 0


def test_waits_for_running_attempts(make_exam, db, payments, test_settings, clock):
    exam = make_exam()
    add_attempt(db, exam, 10, 8)
    add_attempt(db, exam, 11, None, status=AttemptStatus.IN_PROGRESS, grading_state=AttemptGradingState.PENDING)
    clock.advance(minutes=11)

    assert award(db, payments, test_settings, clock, exam).skipped_reason == "attempts_in_progress"


def test_waits_for_manual_grading_of_winners(make_exam, db, payments, test_settings, clock):
    exam = make_exam()
    add_attempt(db, exam, 10, 8, grading_state=AttemptGradingState.AWAITING_REVIEW)
    clock.advance(minutes=11)

    assert award(db, payments, test_settings, clock, exam).skipped_reason == "awaiting_review"


def test_nothing_to_award_without_finished_attempts(make_exam, db, payments, test_settings, clock):
    exam = make_exam()
    clock.advance(minutes=11)

    assert award(db, payments, test_settings, clock, exam).skipped_reason == "no_winners"


def test_awards_top_positions_once(make_exam, db, payments, test_settings, clock):
    exam = make_exam()
    for student_id, score in ((10, 9), (11, 7), (12, 8), (13, 2)):
        add_attempt(db, exam, student_id, score)
    clock.advance(minutes=11)

    first = award(db, payments, test_settings, clock, exam)
    second = award(db, payments, test_settings, clock, exam)

    assert first.awarded == 3
    assert first.total_amount == 20.0
    assert first.skipped_reason is None
    assert second == first
    assert payments.balance_of(10) == 10
    assert payments.balance_of(12) == 7
    assert payments.balance_of(11) == 3
    assert payments.balance_of(13) == 0
