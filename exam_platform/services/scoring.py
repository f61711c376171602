"""
Scoring engine.

Pure functions: given the question keys frozen at attempt start and the
answers a student submitted, decide per-question correctness and points and
the attempt totals. Multiple-choice and reading-comprehension questions are
graded mechanically; open-ended questions wait for a human grader.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from exam_platform.models.enums import AnswerGradingState, QuestionType


@dataclass(frozen=True)
class QuestionKey:
    question_id: int
    question_type: QuestionType
    points: float
    correct_option_id: Optional[int] = None


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: int
    option_id: Optional[int] = None
    content: Optional[str] = None


@dataclass(frozen=True)
class AnswerGrade:
    question_id: int
    is_correct: Optional[bool]
    points: Optional[float]
    state: AnswerGradingState
    submitted: bool


@dataclass
class ScoreSheet:
    grades: List[AnswerGrade] = field(default_factory=list)
    score: float = 0.0
    total_score: float = 0.0

    @property
    def awaiting_review(self) -> int:
        return sum(1 for g in self.grades if g.state is AnswerGradingState.AWAITING_REVIEW)


def grade_answer(key: QuestionKey, submitted: Optional[SubmittedAnswer]) -> AnswerGrade:
    """Grade one question. ``submitted`` is None when the student skipped it."""
    qtype = QuestionType(key.question_type)
    if qtype.is_auto_graded:
        if submitted is None:
            return AnswerGrade(key.question_id, False, 0.0, AnswerGradingState.AUTO_GRADED, False)
        is_correct = (
            key.correct_option_id is not None
            and submitted.option_id is not None
            and submitted.option_id == key.correct_option_id
        )
        return AnswerGrade(
            key.question_id,
            is_correct,
            float(key.points) if is_correct else 0.0,
            AnswerGradingState.AUTO_GRADED,
            True,
        )
    if qtype is QuestionType.OPEN_ENDED:
        return AnswerGrade(key.question_id, None, None, AnswerGradingState.AWAITING_REVIEW, submitted is not None)
    raise ValueError(f"Unsupported question type: {qtype}")


def total_points(keys: Iterable[QuestionKey]) -> float:
    return float(sum(k.points for k in keys))


def recompute_score(points: Iterable[Optional[float]]) -> float:
    """Sum of every known per-question score; ungraded answers count as nothing"""
    return float(sum(p for p in points if p is not None))


def percentage(score: Optional[float], total_score: Optional[float], precision: int = 2) -> float:
    if not score or not total_score:
        return 0.0
    return round(score / total_score * 100, precision)


def score_attempt(keys: Sequence[QuestionKey], answers: Iterable[SubmittedAnswer]) -> ScoreSheet:
    by_question: Dict[int, SubmittedAnswer] = {a.question_id: a for a in answers}
    grades = [grade_answer(key, by_question.get(key.question_id)) for key in keys]
    return ScoreSheet(
        grades=grades,
        score=recompute_score(g.points for g in grades),
        total_score=total_points(keys),
    )
