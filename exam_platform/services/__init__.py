"""
Domain services
"""
from .attempt_service import AttemptService
from .exam_service import ExamService
from .leaderboard import LeaderboardService
from .payments import LedgerPayments, PaymentsGateway
from .prize_award import PrizeAwardService
from .sweeper import ExpirySweeper

__all__ = [
    'AttemptService', 'ExamService', 'LeaderboardService', 'LedgerPayments', 'PaymentsGateway',
    'PrizeAwardService', 'ExpirySweeper',
]
