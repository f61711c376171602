from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List

from exam_platform.models.enums import ExamStatus, QuestionType


class PrizeConfig(BaseModel):
    """Prize distribution: fixed amounts per position, or percentage shares of a pool"""
    amounts: Optional[List[float]] = None
    pool: Optional[float] = Field(default=None, ge=0)
    shares: Optional[List[float]] = None
    include_timed_out: Optional[bool] = None

    @model_validator(mode="after")
    def check_rule(self):
        if self.amounts is not None and (self.pool is not None or self.shares is not None):
            raise ValueError("use either amounts or pool/shares, not both")
        if (self.pool is None) != (self.shares is None):
            raise ValueError("pool and shares must be given together")
        if self.amounts is not None and any(a < 0 for a in self.amounts):
            raise ValueError("prize amounts must not be negative")
        if self.shares is not None:
            if any(s < 0 for s in self.shares):
                raise ValueError("prize shares must not be negative")
            if sum(self.shares) > 100:
                raise ValueError("prize shares must not exceed 100 percent")
        return self


class OptionCreate(BaseModel):
    text: str


class ReadingTextCreate(BaseModel):
    title: Optional[str] = None
    content: str


class QuestionCreate(BaseModel):
    type: QuestionType
    text: str
    points: float = Field(default=1, gt=0)
    options: List[OptionCreate] = []
    correct_option_index: Optional[int] = None
    model_answer: Optional[str] = None
    # index into ExamCreate.reading_texts
    reading_text_index: Optional[int] = None

    @model_validator(mode="after")
    def check_answer_key(self):
        if self.type.is_auto_graded:
            if len(self.options) < 2:
                raise ValueError("choice questions need at least two options")
            if self.correct_option_index is None or not 0 <= self.correct_option_index < len(self.options):
                raise ValueError("correct_option_index must point at one of the options")
        return self


class ExamCreate(BaseModel):
    title: str
    duration: int = Field(gt=0)  # minutes
    price: Optional[float] = Field(default=None, ge=0)
    prize_config: Optional[PrizeConfig] = None
    reading_texts: List[ReadingTextCreate] = []
    questions: List[QuestionCreate] = Field(min_length=1)


class ExamOut(BaseModel):
    id: int
    teacher_id: int
    title: str
    status: ExamStatus
    duration: int
    price: Optional[float] = None
    prize_config: Optional[PrizeConfig] = None
    published_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Student view: no correct answers, no model answers

class OptionOut(BaseModel):
    id: int
    text: str

    class Config:
        from_attributes = True


class ReadingTextOut(BaseModel):
    id: int
    title: Optional[str] = None
    content: str

    class Config:
        from_attributes = True


class QuestionOut(BaseModel):
    id: int
    type: QuestionType
    text: str
    points: float
    options: List[OptionOut] = []
    reading_text: Optional[ReadingTextOut] = None

    class Config:
        from_attributes = True
