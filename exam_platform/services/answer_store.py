"""Answers per attempt, one row per (attempt, question)."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from exam_platform.models.attempt import Answer
from exam_platform.models.enums import AnswerGradingState
from exam_platform.services.scoring import ScoreSheet, SubmittedAnswer


class AnswerStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, attempt_id: int, answer_id: int) -> Optional[Answer]:
        return self.db.query(Answer).filter(
            Answer.id == answer_id,
            Answer.attempt_id == attempt_id
        ).first()

    def find(self, attempt_id: int, question_id: int) -> Optional[Answer]:
        return self.db.query(Answer).filter(
            Answer.attempt_id == attempt_id,
            Answer.question_id == question_id
        ).first()

    def list_for_attempt(self, attempt_id: int) -> List[Answer]:
        return self.db.query(Answer).filter(
            Answer.attempt_id == attempt_id
        ).order_by(Answer.question_id).all()

    def submitted_answers(self, attempt_id: int) -> List[SubmittedAnswer]:
        return [
            SubmittedAnswer(question_id=a.question_id, option_id=a.option_id, content=a.content)
            for a in self.list_for_attempt(attempt_id)
            if a.submitted
        ]

    def upsert(
        self,
        attempt_id: int,
        question_id: int,
        option_id: Optional[int],
        content: Optional[str],
        now: datetime,
    ) -> Answer:
        """Insert or overwrite the answer for this question.

        Callers hold the attempt's write guard (see AttemptService.submit_answers),
        so upserts for one attempt apply in arrival order. The unique
        (attempt_id, question_id) constraint backs this up.
        """
        answer = self.find(attempt_id, question_id)
        if answer is None:
            answer = Answer(
                attempt_id=attempt_id,
                question_id=question_id,
                created_at=now,
            )
            self.db.add(answer)

        answer.option_id = option_id
        answer.content = content
        answer.submitted = True
        answer.updated_at = now
        self.db.flush()
        return answer

    def apply_grades(self, attempt_id: int, sheet: ScoreSheet, now: datetime) -> None:
        """Write a score sheet, creating rows for questions the student skipped"""
        existing = {a.question_id: a for a in self.list_for_attempt(attempt_id)}
        for grade in sheet.grades:
            answer = existing.get(grade.question_id)
            if answer is None:
                answer = Answer(
                    attempt_id=attempt_id,
                    question_id=grade.question_id,
                    submitted=False,
                    created_at=now,
                )
                self.db.add(answer)
            answer.is_correct = grade.is_correct
            answer.points = grade.points
            answer.grading_state = grade.state
            answer.graded_at = now if grade.state is AnswerGradingState.AUTO_GRADED else None
            answer.updated_at = now
        self.db.flush()

    def set_manual_grade(self, answer: Answer, points: float, grader_id: int, now: datetime) -> Answer:
        answer.points = float(points)
        answer.is_correct = points > 0
        answer.grading_state = AnswerGradingState.MANUALLY_GRADED
        answer.graded_by = grader_id
        answer.graded_at = now
        answer.updated_at = now
        self.db.flush()
        return answer

    def sum_points(self, attempt_id: int) -> float:
        total = self.db.query(func.sum(Answer.points)).filter(
            Answer.attempt_id == attempt_id,
            Answer.points.isnot(None)
        ).scalar()
        return float(total or 0.0)

    def count_awaiting_review(self, attempt_id: int) -> int:
        return self.db.query(func.count(Answer.id)).filter(
            Answer.attempt_id == attempt_id,
            Answer.grading_state == AnswerGradingState.AWAITING_REVIEW
        ).scalar() or 0
