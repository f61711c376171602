import pytest

from conftest import ADMIN_ID, TEACHER_ID
from exam_platform.core.errors import InsufficientFundsError, NotFoundError, ValidationError
from exam_platform.models.enums import PaymentKind
from exam_platform.models.payment import Payment
from exam_platform.services.payments import exam_price, new_transaction_id

STUDENT = 3000


class DummyExam:
    def __init__(self, price=None, duration=60):
        self.price = price
        self.duration = duration


def test_transaction_ids_keep_their_prefixes():
    assert new_transaction_id(PaymentKind.EXAM_FEE).startswith("BAL-DED-")
    assert new_transaction_id(PaymentKind.REFUND).startswith("REFUND-")
    assert new_transaction_id(PaymentKind.PRIZE).startswith("PRIZE-")
    assert new_transaction_id(PaymentKind.TOP_UP).startswith("BAL-")
    assert new_transaction_id(PaymentKind.PRIZE) != new_transaction_id(PaymentKind.PRIZE)


def test_exam_price_prefers_explicit_price(test_settings):
    assert exam_price(DummyExam(price=0), test_settings) == 0
    assert exam_price(DummyExam(price=4.5), test_settings) == 4.5
    assert exam_price(DummyExam(duration=180), test_settings) == 10
    # durations missing from the tariff fall back to the default price
    assert exam_price(DummyExam(duration=45), test_settings) == 3


def test_top_up_requires_positive_amount(payments):
    with pytest.raises(ValidationError):
        payments.top_up(STUDENT, 0)
    assert payments.balance_of(STUDENT) == 0


def test_debit_never_goes_negative(payments):
    payments.top_up(STUDENT, 5)
    payments.debit(STUDENT, 3)

    with pytest.raises(InsufficientFundsError):
        payments.debit(STUDENT, 3)
    assert payments.balance_of(STUDENT) == 2


def test_refund_reverses_debit_once(payments, db):
    payments.top_up(STUDENT, 10)
    transaction_id = payments.debit(STUDENT, 4, exam_id=7, teacher_id=TEACHER_ID)

    first = payments.refund(transaction_id)
    second = payments.refund(transaction_id)

    assert first == second
    assert first.startswith("REFUND-")
    assert payments.balance_of(STUDENT) == 10
    assert payments.balance_of(TEACHER_ID) == 0
    assert payments.balance_of(ADMIN_ID) == 0
    assert db.query(Payment).filter(Payment.kind == PaymentKind.REFUND).count() == 1


def test_refund_of_unknown_transaction(payments):
    with pytest.raises(NotFoundError):
        payments.refund("BAL-DED-missing")


def test_prize_credit_is_idempotent_per_exam_and_student(payments, db):
    first = payments.credit_prize(STUDENT, 10, exam_id=7, position=1)
    second = payments.credit_prize(STUDENT, 10, exam_id=7, position=1)
    payments.credit_prize(STUDENT, 3, exam_id=8, position=3)

    assert first == second
    assert payments.balance_of(STUDENT) == 13
    prizes = db.query(Payment).filter(Payment.kind == PaymentKind.PRIZE, Payment.exam_id == 7).all()
    assert [(p.student_id, p.amount) for p in prizes] == [(STUDENT, 10)]
