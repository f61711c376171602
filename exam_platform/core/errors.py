"""
Error taxonomy for the attempt lifecycle.

Every error carries a stable machine-readable ``code`` and a human message.
Expired and conflict outcomes are ordinary results for callers, not crashes.
"""
from typing import Optional


class ExamPlatformError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFoundError(ExamPlatformError):
    code = "not_found"
    status_code = 404


class ConflictError(ExamPlatformError):
    code = "conflict"
    status_code = 409


class ExpiredError(ExamPlatformError):
    code = "expired"
    status_code = 410


class ValidationError(ExamPlatformError):
    code = "validation_error"
    status_code = 422


class ForbiddenError(ExamPlatformError):
    code = "forbidden"
    status_code = 403


class PaymentError(ExamPlatformError):
    code = "payment_failed"
    status_code = 402


class InsufficientFundsError(PaymentError):
    code = "insufficient_funds"


class InternalError(ExamPlatformError):
    code = "internal_error"
    status_code = 500
