from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from exam_platform.models.enums import AttemptStatus, AttemptGradingState, AnswerGradingState
from exam_platform.schemas.exam import QuestionOut


class AnswerSubmit(BaseModel):
    question_id: int
    option_id: Optional[int] = None
    content: Optional[str] = None


class SubmitAnswersRequest(BaseModel):
    answers: List[AnswerSubmit]


class GradeAnswerRequest(BaseModel):
    points: float = Field(ge=0)


class Attempt(BaseModel):
    id: int
    exam_id: int
    student_id: int
    status: AttemptStatus
    grading_state: AttemptGradingState
    started_at: datetime
    expires_at: datetime
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    total_score: float

    class Config:
        from_attributes = True


class AnswerOut(BaseModel):
    id: int
    question_id: int
    option_id: Optional[int] = None
    content: Optional[str] = None
    submitted: bool
    is_correct: Optional[bool] = None
    points: Optional[float] = None
    grading_state: AnswerGradingState

    class Config:
        from_attributes = True


class AttemptDetail(BaseModel):
    """In-progress view for the student taking the exam"""
    attempt: Attempt
    questions: List[QuestionOut]
    answers: List[AnswerOut] = []
    remaining_seconds: float


class ScoredResult(BaseModel):
    attempt: Attempt
    answers: List[AnswerOut]
    percentage: float
    awaiting_review: int = 0


class Heartbeat(BaseModel):
    attempt_id: int
    status: AttemptStatus
    expires_at: datetime
    remaining_seconds: float
    elapsed_seconds: float


class UpdatedScore(BaseModel):
    attempt_id: int
    answer_id: int
    points: float
    is_correct: bool
    score: float
    total_score: float
    grading_state: AttemptGradingState


class SweepResult(BaseModel):
    processed_count: int
    attempt_ids: List[int] = []
