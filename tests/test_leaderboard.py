from datetime import datetime, timedelta

import pytest

from conftest import START, four_question_exam
from exam_platform.core.errors import NotFoundError, ValidationError
from exam_platform.models.attempt import ExamAttempt
from exam_platform.models.enums import AttemptGradingState, AttemptStatus
from exam_platform.services.leaderboard import LeaderboardService, PrizeSchedule, RankableAttempt, rank_attempts

T1 = datetime(2024, 5, 1, 10, 0, 0)
T2 = T1 + timedelta(minutes=1)
T3 = T1 + timedelta(minutes=2)


def rankable(attempt_id, student_id, score, submitted_at, status=AttemptStatus.COMPLETED, total=10):
    return RankableAttempt(attempt_id, student_id, status, score, total, submitted_at)


def add_attempt(db, exam, student_id, score, submitted_at, status=AttemptStatus.COMPLETED, total=10):
    attempt = ExamAttempt(
        exam_id=exam.id,
        student_id=student_id,
        status=status,
        grading_state=AttemptGradingState.GRADED,
        started_at=START,
        expires_at=START + timedelta(hours=2),
        submitted_at=submitted_at,
        score=score,
        total_score=total,
    )
    db.add(attempt)
    db.commit()
    return attempt


def test_ties_broken_by_earlier_submission(test_settings):
    schedule = PrizeSchedule.from_config(None, test_settings)
    rows = [rankable(3, 30, 6, T3), rankable(2, 20, 8, T2), rankable(1, 10, 8, T1)]

    for ordering in (rows, list(reversed(rows))):
        entries = rank_attempts(ordering, schedule)
        assert [(e.position, e.student_id) for e in entries] == [(1, 10), (2, 20), (3, 30)]


def test_full_tie_falls_back_to_attempt_id(test_settings):
    schedule = PrizeSchedule.from_config(None, test_settings)

    entries = rank_attempts([rankable(9, 90, 5, T1), rankable(4, 40, 5, T1)], schedule)

    assert [e.attempt_id for e in entries] == [4, 9]


def test_prizes_and_percentages_follow_position(test_settings):
    schedule = PrizeSchedule.from_config(None, test_settings)
    rows = [rankable(i, 100 + i, 10 - i, T1) for i in range(1, 5)]

    entries = rank_attempts(rows, schedule, requesting_student_id=103)

    assert [e.prize_amount for e in entries] == [10.0, 7.0, 3.0, 0.0]
    assert [e.percentage for e in entries] == [90.0, 80.0, 70.0, 60.0]
    assert [e.is_current_user for e in entries] == [False, False, True, False]


def test_one_entry_per_student(test_settings):
    schedule = PrizeSchedule.from_config(None, test_settings)

    entries = rank_attempts([rankable(1, 10, 4, T1), rankable(2, 10, 7, T2), rankable(3, 20, 5, T1)], schedule)

    assert [(e.student_id, e.attempt_id) for e in entries] == [(10, 2), (20, 3)]


def test_pool_shares_schedule(test_settings):
    schedule = PrizeSchedule.from_config({"pool": 200, "shares": [50, 30, 20]}, test_settings)
    assert schedule.amounts == (100.0, 60.0, 40.0)
    assert schedule.prize_for(4) == 0.0
    assert schedule.total == 200.0


def test_invalid_prize_config_is_rejected(test_settings):
    with pytest.raises(ValidationError):
        PrizeSchedule.from_config({"pool": 100, "shares": [80, 40]}, test_settings)


def test_timed_out_attempts_only_when_configured(test_settings):
    rows = [rankable(1, 10, 8, T1), rankable(2, 20, 9, T2, status=AttemptStatus.TIMED_OUT)]

    default = rank_attempts(rows, PrizeSchedule.from_config(None, test_settings))
    included = rank_attempts(rows, PrizeSchedule.from_config({"include_timed_out": True}, test_settings))

    assert [e.student_id for e in default] == [10]
    assert [e.student_id for e in included] == [20, 10]


def test_leaderboard_from_stored_attempts(make_exam, db, test_settings):
    exam = make_exam(prize_config={"amounts": [50, 25]})
    add_attempt(db, exam, 10, 8, T1)
    add_attempt(db, exam, 20, 8, T2)
    add_attempt(db, exam, 30, 6, T3)
    add_attempt(db, exam, 40, 9, T1, status=AttemptStatus.TIMED_OUT)
    add_attempt(db, exam, 50, None, None, status=AttemptStatus.IN_PROGRESS)

    board = LeaderboardService(db, test_settings).get_leaderboard(exam.id, requesting_student_id=30)

    assert board.exam_title == exam.title
    assert [(e.position, e.student_id) for e in board.entries] == [(1, 10), (2, 20), (3, 30)]
    assert [e.prize_amount for e in board.entries] == [50.0, 25.0, 0.0]
    assert board.current_user_position == 3
    assert board.total_participants == 3
    assert board.prize_total == 75.0


def test_leaderboard_is_stable_between_calls(make_exam, db, test_settings):
    exam = make_exam(questions=four_question_exam())
    for student_id in range(10, 15):
        add_attempt(db, exam, student_id, 5, T1)
    service = LeaderboardService(db, test_settings)

    first = service.get_leaderboard(exam.id)
    second = service.get_leaderboard(exam.id)

    assert first == second
    assert first.current_user_position is None


def test_leaderboard_for_missing_exam(db, test_settings):
    with pytest.raises(NotFoundError):
        LeaderboardService(db, test_settings).get_leaderboard(9999)
