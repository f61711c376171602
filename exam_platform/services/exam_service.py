"""Exam authoring: just enough to create, publish and archive exams."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from exam_platform.core.clock import SystemClock
from exam_platform.core.database import storage_errors
from exam_platform.core.errors import ForbiddenError, NotFoundError, ValidationError
from exam_platform.models.enums import ExamStatus, UserRole
from exam_platform.models.exam import Exam, Option, Question, ReadingText
from exam_platform.schemas.exam import ExamCreate

logger = logging.getLogger(__name__)


class ExamService:
    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def get_exam(self, exam_id: int) -> Exam:
        exam = self.db.query(Exam).filter(Exam.id == exam_id).first()
        if not exam:
            raise NotFoundError("Exam not found")
        return exam

    def create_exam(self, teacher_id: int, data: ExamCreate) -> Exam:
        exam = Exam(
            teacher_id=teacher_id,
            title=data.title,
            status=ExamStatus.DRAFT,
            duration=data.duration,
            price=data.price,
            prize_config=data.prize_config.model_dump(exclude_none=True) if data.prize_config else None,
        )
        reading_texts = [
            ReadingText(title=rt.title, content=rt.content, order=i)
            for i, rt in enumerate(data.reading_texts)
        ]
        exam.reading_texts = reading_texts

        for order, q in enumerate(data.questions):
            reading_text = None
            if q.reading_text_index is not None:
                if not 0 <= q.reading_text_index < len(reading_texts):
                    raise ValidationError(f"Question {order + 1} refers to a missing reading text")
                reading_text = reading_texts[q.reading_text_index]
            question = Question(
                type=q.type,
                text=q.text,
                points=q.points,
                order=order,
                correct_option_index=q.correct_option_index,
                model_answer=q.model_answer,
                reading_text=reading_text,
                options=[Option(text=o.text, order=i) for i, o in enumerate(q.options)],
            )
            exam.questions.append(question)

        with storage_errors(self.db, "create_exam"):
            self.db.add(exam)
            self.db.flush()
            # pin the answer key to option ids once they exist
            for question in exam.questions:
                if question.correct_option_index is not None:
                    question.correct_option_id = question.options[question.correct_option_index].id
            self.db.commit()
            self.db.refresh(exam)

        logger.info(f"Exam created: exam_id={exam.id}, teacher_id={teacher_id}, questions={len(exam.questions)}")
        return exam

    def publish_exam(self, exam_id: int, user_id: int, role: UserRole) -> Exam:
        exam = self._owned_exam(exam_id, user_id, role)
        if exam.status != ExamStatus.DRAFT:
            raise ValidationError(f"Only draft exams can be published (status={exam.status.value})")
        with storage_errors(self.db, "publish_exam"):
            exam.status = ExamStatus.PUBLISHED
            exam.published_at = self.clock.now()
            self.db.commit()
            self.db.refresh(exam)
        logger.info(f"Exam published: exam_id={exam_id}")
        return exam

    def archive_exam(self, exam_id: int, user_id: int, role: UserRole) -> Exam:
        exam = self._owned_exam(exam_id, user_id, role)
        with storage_errors(self.db, "archive_exam"):
            exam.status = ExamStatus.ARCHIVED
            self.db.commit()
            self.db.refresh(exam)
        logger.info(f"Exam archived: exam_id={exam_id}")
        return exam

    def _owned_exam(self, exam_id: int, user_id: int, role: Optional[UserRole]) -> Exam:
        exam = self.get_exam(exam_id)
        if role != UserRole.ADMIN and exam.teacher_id != user_id:
            raise ForbiddenError("Only the exam's teacher can change it")
        return exam
