from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List

from exam_platform.models.enums import AttemptStatus


class LeaderboardEntry(BaseModel):
    position: int
    student_id: int
    attempt_id: int
    status: AttemptStatus
    score: float
    total_score: float
    percentage: float
    submitted_at: Optional[datetime] = None
    prize_amount: float = 0.0
    is_current_user: bool = False


class LeaderboardData(BaseModel):
    exam_id: int
    exam_title: str
    entries: List[LeaderboardEntry]
    current_user_position: Optional[int] = None
    total_participants: int
    prize_total: float


class PrizeAwardResult(BaseModel):
    exam_id: int
    awarded: int = 0
    total_amount: float = 0.0
    skipped_reason: Optional[str] = None
