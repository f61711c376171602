"""
Payments collaborator.

The attempt lifecycle only needs ``debit``, ``refund`` and ``credit_prize``.
``LedgerPayments`` keeps balances in the platform database, but works in its
own session and transaction so that, from the attempt service's point of
view, it behaves like an external provider: a debit is durable before the
attempt row exists and has to be compensated if the attempt cannot be created.
"""

import logging
import time
from typing import Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from exam_platform.core.config import Settings
from exam_platform.core.errors import InsufficientFundsError, NotFoundError, PaymentError, ValidationError
from exam_platform.models.enums import PaymentKind
from exam_platform.models.payment import Account, Payment

logger = logging.getLogger(__name__)

TRANSACTION_PREFIXES = {
    PaymentKind.EXAM_FEE: "BAL-DED-",
    PaymentKind.REFUND: "REFUND-",
    PaymentKind.PRIZE: "PRIZE-",
    PaymentKind.TOP_UP: "BAL-",
}


def new_transaction_id(kind: PaymentKind) -> str:
    return f"{TRANSACTION_PREFIXES[kind]}{int(time.time() * 1000)}-{uuid4().hex[:9]}"


def exam_price(exam, settings: Settings) -> float:
    """Explicit exam price, or the duration-based tariff when the exam has none"""
    if exam.price is not None:
        return float(exam.price)
    return settings.price_for_duration(exam.duration)


class PaymentsGateway:
    """Interface consumed by the attempt and prize services"""

    def debit(self, student_id: int, amount: float, exam_id: Optional[int] = None,
              teacher_id: Optional[int] = None) -> str:
        raise NotImplementedError

    def refund(self, transaction_id: str) -> str:
        raise NotImplementedError

    def credit_prize(self, student_id: int, amount: float, exam_id: int,
                     position: Optional[int] = None) -> str:
        raise NotImplementedError


class LedgerPayments(PaymentsGateway):
    def __init__(self, session_factory, settings: Settings):
        self.session_factory = session_factory
        self.settings = settings

    # --- balances ---

    def balance_of(self, user_id: int) -> float:
        db = self.session_factory()
        try:
            account = db.query(Account).filter(Account.user_id == user_id).first()
            return float(account.balance) if account else 0.0
        finally:
            db.close()

    def top_up(self, user_id: int, amount: float) -> str:
        if amount <= 0:
            raise ValidationError("Top-up amount must be positive")
        db = self.session_factory()
        try:
            self._credit(db, user_id, amount)
            transaction_id = new_transaction_id(PaymentKind.TOP_UP)
            db.add(Payment(
                transaction_id=transaction_id,
                kind=PaymentKind.TOP_UP,
                student_id=user_id,
                amount=amount,
            ))
            db.commit()
            logger.info(f"Balance top-up: user_id={user_id}, amount={amount}, transaction_id={transaction_id}")
            return transaction_id
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Top-up failed (user_id={user_id}): {e}")
            raise PaymentError("Balance top-up failed") from e
        finally:
            db.close()

    # --- collaborator operations ---

    def debit(self, student_id: int, amount: float, exam_id: Optional[int] = None,
              teacher_id: Optional[int] = None) -> str:
        db = self.session_factory()
        try:
            # conditional decrement: never drives a balance negative
            updated = db.query(Account).filter(
                Account.user_id == student_id,
                Account.balance >= amount
            ).update({Account.balance: Account.balance - amount}, synchronize_session=False)

            if updated == 0:
                db.rollback()
                raise InsufficientFundsError(
                    f"Insufficient balance. Exam price: {amount:.2f}. Balance: {self.balance_of(student_id):.2f}"
                )

            teacher_amount = 0.0
            if teacher_id is not None:
                teacher_amount = round(amount * self.settings.TEACHER_SPLIT_PERCENTAGE / 100, 2)
            admin_amount = round(amount - teacher_amount, 2)
            if self.settings.ADMIN_ACCOUNT_ID is None:
                admin_amount = 0.0
            if teacher_amount > 0:
                self._credit(db, teacher_id, teacher_amount)
            if admin_amount > 0:
                self._credit(db, self.settings.ADMIN_ACCOUNT_ID, admin_amount)

            transaction_id = new_transaction_id(PaymentKind.EXAM_FEE)
            db.add(Payment(
                transaction_id=transaction_id,
                kind=PaymentKind.EXAM_FEE,
                student_id=student_id,
                exam_id=exam_id,
                amount=amount,
                teacher_id=teacher_id,
                teacher_amount=teacher_amount,
                admin_amount=admin_amount,
            ))
            db.commit()
            logger.info(
                f"Exam fee debited: student_id={student_id}, exam_id={exam_id}, amount={amount}, "
                f"transaction_id={transaction_id}"
            )
            return transaction_id
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Debit failed (student_id={student_id}, exam_id={exam_id}): {e}")
            raise PaymentError("Payment could not be processed") from e
        finally:
            db.close()

    def refund(self, transaction_id: str) -> str:
        db = self.session_factory()
        try:
            original = db.query(Payment).filter(
                Payment.transaction_id == transaction_id,
                Payment.kind == PaymentKind.EXAM_FEE
            ).first()
            if not original:
                raise NotFoundError(f"Payment {transaction_id} not found")

            existing = db.query(Payment).filter(
                Payment.kind == PaymentKind.REFUND,
                Payment.reverses_transaction_id == transaction_id
            ).first()
            if existing:
                return existing.transaction_id

            self._credit(db, original.student_id, original.amount)
            if original.teacher_id is not None and original.teacher_amount:
                self._credit(db, original.teacher_id, -original.teacher_amount)
            if self.settings.ADMIN_ACCOUNT_ID is not None and original.admin_amount:
                self._credit(db, self.settings.ADMIN_ACCOUNT_ID, -original.admin_amount)

            refund_id = new_transaction_id(PaymentKind.REFUND)
            db.add(Payment(
                transaction_id=refund_id,
                kind=PaymentKind.REFUND,
                student_id=original.student_id,
                exam_id=original.exam_id,
                amount=original.amount,
                teacher_id=original.teacher_id,
                reverses_transaction_id=transaction_id,
            ))
            db.commit()
            logger.info(f"Exam fee refunded: transaction_id={transaction_id}, refund_id={refund_id}")
            return refund_id
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Refund failed (transaction_id={transaction_id}): {e}")
            raise PaymentError("Refund could not be processed") from e
        finally:
            db.close()

    def credit_prize(self, student_id: int, amount: float, exam_id: int,
                     position: Optional[int] = None) -> str:
        """Credit a prize once per (exam, student); repeated calls return the first transaction"""
        db = self.session_factory()
        try:
            existing = self._find_prize(db, exam_id, student_id)
            if existing:
                return existing.transaction_id

            self._credit(db, student_id, amount)
            transaction_id = new_transaction_id(PaymentKind.PRIZE)
            db.add(Payment(
                transaction_id=transaction_id,
                kind=PaymentKind.PRIZE,
                student_id=student_id,
                exam_id=exam_id,
                amount=amount,
                position=position,
            ))
            db.commit()
            logger.info(
                f"Prize credited: student_id={student_id}, exam_id={exam_id}, position={position}, amount={amount}"
            )
            return transaction_id
        except IntegrityError:
            # another award pass credited this prize first
            db.rollback()
            existing = self._find_prize(db, exam_id, student_id)
            if existing:
                return existing.transaction_id
            raise PaymentError("Prize could not be credited")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Prize credit failed (student_id={student_id}, exam_id={exam_id}): {e}")
            raise PaymentError("Prize could not be credited") from e
        finally:
            db.close()

    # --- helpers ---

    def _find_prize(self, db, exam_id: int, student_id: int) -> Optional[Payment]:
        return db.query(Payment).filter(
            Payment.kind == PaymentKind.PRIZE,
            Payment.exam_id == exam_id,
            Payment.student_id == student_id
        ).first()

    def _credit(self, db, user_id: int, amount: float) -> None:
        updated = db.query(Account).filter(
            Account.user_id == user_id
        ).update({Account.balance: Account.balance + amount}, synchronize_session=False)
        if updated == 0:
            db.add(Account(user_id=user_id, balance=amount))
            db.flush()
