from exam_platform.models.exam import Exam, ReadingText, Question, Option
from exam_platform.models.attempt import ExamAttempt, AttemptQuestion, Answer
from exam_platform.models.payment import Account, Payment

__all__ = [
    "Exam", "ReadingText", "Question", "Option",
    "ExamAttempt", "AttemptQuestion", "Answer",
    "Account", "Payment",
]
