from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Float, JSON, Enum, Boolean, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from exam_platform.core.database import Base
from exam_platform.models.enums import AttemptStatus, AttemptGradingState, AnswerGradingState, QuestionType


class ExamAttempt(Base):
    __tablename__ = "exam_attempts"
    __table_args__ = (
        # at most one IN_PROGRESS attempt per (exam, student), enforced by the store
        Index(
            "uq_exam_attempts_in_progress",
            "exam_id",
            "student_id",
            unique=True,
            sqlite_where=text("status = 'IN_PROGRESS'"),
            postgresql_where=text("status = 'IN_PROGRESS'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    student_id = Column(Integer, nullable=False, index=True)

    status = Column(Enum(AttemptStatus), nullable=False, default=AttemptStatus.IN_PROGRESS, index=True)
    grading_state = Column(Enum(AttemptGradingState), nullable=False, default=AttemptGradingState.PENDING)

    started_at = Column(DateTime, nullable=False)
    # fixed at creation, never recomputed
    expires_at = Column(DateTime, nullable=False, index=True)
    submitted_at = Column(DateTime)
    last_activity_at = Column(DateTime)

    score = Column(Float)
    total_score = Column(Float, nullable=False)

    payment_transaction_id = Column(String(64))

    exam = relationship("Exam")
    questions = relationship(
        "AttemptQuestion", back_populates="attempt", order_by="AttemptQuestion.position", cascade="all, delete-orphan"
    )
    answers = relationship("Answer", back_populates="attempt", cascade="all, delete-orphan")


class AttemptQuestion(Base):
    """Question set frozen at attempt start; scoring never reads the live exam"""
    __tablename__ = "attempt_questions"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_attempt_questions_question"),)

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("exam_attempts.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    position = Column(Integer, nullable=False)
    question_type = Column(Enum(QuestionType), nullable=False)
    points = Column(Float, nullable=False)
    correct_option_id = Column(Integer)
    option_ids = Column(JSON)

    attempt = relationship("ExamAttempt", back_populates="questions")
    question = relationship("Question")


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_answers_attempt_question"),)

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("exam_attempts.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)

    option_id = Column(Integer)
    content = Column(Text)
    # False for rows created at scoring time for unanswered questions
    submitted = Column(Boolean, nullable=False, default=True)

    is_correct = Column(Boolean)
    points = Column(Float)
    grading_state = Column(Enum(AnswerGradingState), nullable=False, default=AnswerGradingState.UNGRADED)
    graded_by = Column(Integer)
    graded_at = Column(DateTime)

    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    attempt = relationship("ExamAttempt", back_populates="answers")
    question = relationship("Question")
