from datetime import datetime

import pytest

from exam_platform.core.clock import FrozenClock
from exam_platform.core.config import Settings
from exam_platform.core.database import build_engine, build_session_factory, create_tables
from exam_platform.models.enums import QuestionType, UserRole
from exam_platform.schemas.exam import ExamCreate
from exam_platform.services.attempt_service import AttemptService
from exam_platform.services.exam_service import ExamService
from exam_platform.services.payments import LedgerPayments

TEACHER_ID = 100
ADMIN_ID = 1
START = datetime(2024, 5, 1, 9, 0, 0)


def four_question_exam():
    """3 multiple choice questions worth 1 point (first option correct) and one open question worth 2"""
    questions = [
        {
            "type": QuestionType.MULTIPLE_CHOICE,
            "text": f"Question {i + 1}",
            "points": 1,
            "options": [{"text": "right"}, {"text": "wrong"}, {"text": "also wrong"}],
            "correct_option_index": 0,
        }
        for i in range(3)
    ]
    questions.append({
        "type": QuestionType.OPEN_ENDED,
        "text": "Explain normalisation",
        "points": 2,
        "model_answer": "Removing redundancy",
    })
    return questions


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        SWEEP_ENABLED=False,
        ALLOW_RETAKES=False,
        PRIZE_AMOUNTS="10,7,3",
        EXAM_PRICES="60:3,120:5,180:10",
        DEFAULT_EXAM_PRICE=3,
        TEACHER_SPLIT_PERCENTAGE=50,
        ADMIN_ACCOUNT_ID=ADMIN_ID,
        PRIZE_AWARD_DELAY_MINUTES=10,
        LEADERBOARD_INCLUDE_TIMED_OUT=False,
        PERCENTAGE_PRECISION=2,
        SWEEP_BATCH_SIZE=200,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def engine(tmp_path):
    # a file database so that separate sessions and threads share it
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def payments(session_factory, test_settings):
    return LedgerPayments(session_factory, test_settings)


@pytest.fixture
def attempts(db, payments, test_settings, clock):
    return AttemptService(db, payments, settings=test_settings, clock=clock)


@pytest.fixture
def make_exam(db, clock):
    """Create (and by default publish) an exam; free unless a price is given"""

    def _make_exam(questions=None, price=0, duration=60, prize_config=None, publish=True, teacher_id=TEACHER_ID):
        service = ExamService(db, clock=clock)
        exam = service.create_exam(teacher_id, ExamCreate(
            title="Databases mock exam",
            duration=duration,
            price=price,
            prize_config=prize_config,
            questions=questions or four_question_exam(),
        ))
        if publish:
            exam = service.publish_exam(exam.id, teacher_id, UserRole.TEACHER)
        return exam

    return _make_exam


def option_ids(exam, question_index):
    return [o.id for o in exam.questions[question_index].options]
