from sqlalchemy import Column, Integer, String, DateTime, Float, Enum, Index, text
from sqlalchemy.sql import func
from exam_platform.core.database import Base
from exam_platform.models.enums import PaymentKind


class Account(Base):
    __tablename__ = "accounts"

    user_id = Column(Integer, primary_key=True)
    balance = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, server_default=func.now())


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        # one prize credit per (exam, student)
        Index(
            "uq_payments_prize",
            "exam_id",
            "student_id",
            unique=True,
            sqlite_where=text("kind = 'PRIZE'"),
            postgresql_where=text("kind = 'PRIZE'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(64), unique=True, nullable=False, index=True)
    kind = Column(Enum(PaymentKind), nullable=False)
    student_id = Column(Integer, nullable=False, index=True)
    exam_id = Column(Integer, index=True)
    amount = Column(Float, nullable=False)

    teacher_id = Column(Integer)
    teacher_amount = Column(Float, default=0.0)
    admin_amount = Column(Float, default=0.0)

    position = Column(Integer)
    # refunds point at the debit they reverse
    reverses_transaction_id = Column(String(64))

    created_at = Column(DateTime, server_default=func.now())
