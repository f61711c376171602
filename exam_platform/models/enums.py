import enum


class ExamStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    OPEN_ENDED = "OPEN_ENDED"
    READING_COMPREHENSION = "READING_COMPREHENSION"

    @property
    def is_auto_graded(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.READING_COMPREHENSION)


class AttemptStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self is not AttemptStatus.IN_PROGRESS


class AttemptGradingState(str, enum.Enum):
    PENDING = "PENDING"                  # not scored yet (attempt in progress)
    AWAITING_REVIEW = "AWAITING_REVIEW"  # open-ended answers still need a grader
    GRADED = "GRADED"


class AnswerGradingState(str, enum.Enum):
    UNGRADED = "UNGRADED"
    AUTO_GRADED = "AUTO_GRADED"
    AWAITING_REVIEW = "AWAITING_REVIEW"
    MANUALLY_GRADED = "MANUALLY_GRADED"


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class PaymentKind(str, enum.Enum):
    EXAM_FEE = "EXAM_FEE"
    REFUND = "REFUND"
    PRIZE = "PRIZE"
    TOP_UP = "TOP_UP"
