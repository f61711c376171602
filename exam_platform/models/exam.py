from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Float, JSON, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from exam_platform.core.database import Base
from exam_platform.models.enums import ExamStatus, QuestionType


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    status = Column(Enum(ExamStatus), nullable=False, default=ExamStatus.DRAFT)
    duration = Column(Integer, nullable=False)  # minutes

    # None: priced by duration, 0: free
    price = Column(Float)
    # {"amounts": [...]} or {"pool": X, "shares": [...]}, optionally "include_timed_out"
    prize_config = Column(JSON)

    published_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    questions = relationship(
        "Question", back_populates="exam", order_by="Question.order", cascade="all, delete-orphan"
    )
    reading_texts = relationship(
        "ReadingText", back_populates="exam", order_by="ReadingText.order", cascade="all, delete-orphan"
    )


class ReadingText(Base):
    __tablename__ = "reading_texts"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    title = Column(String(255))
    content = Column(Text, nullable=False)
    order = Column(Integer, nullable=False, default=0)

    exam = relationship("Exam", back_populates="reading_texts")


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    reading_text_id = Column(Integer, ForeignKey("reading_texts.id"))
    type = Column(Enum(QuestionType), nullable=False)
    text = Column(Text, nullable=False)
    points = Column(Float, nullable=False, default=1)
    order = Column(Integer, nullable=False, default=0)

    # correct marker: option reference, or the legacy positional index
    correct_option_id = Column(Integer)
    correct_option_index = Column(Integer)
    model_answer = Column(Text)

    exam = relationship("Exam", back_populates="questions")
    reading_text = relationship("ReadingText")
    options = relationship(
        "Option", back_populates="question", order_by="Option.order", cascade="all, delete-orphan"
    )

    def resolve_correct_option_id(self):
        if self.correct_option_id is not None:
            return self.correct_option_id
        if self.correct_option_index is not None and 0 <= self.correct_option_index < len(self.options):
            return self.options[self.correct_option_index].id
        return None


class Option(Base):
    __tablename__ = "options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    order = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")
