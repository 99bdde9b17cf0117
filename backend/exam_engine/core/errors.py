"""Typed failures raised by the exam services.

Every error carries an HTTP status and a stable ``code``; the handler
registered in ``exam_engine.main`` renders them as the standard error
envelope, so no service failure ever reaches the client as a bare 500.
"""

from fastapi import status

EXPIRED_MESSAGE = "انتهى وقت الاختبار، لا يمكن إرسال الإجابات بعد انتهاء المدة."
STORAGE_UNAVAILABLE_MESSAGE = "Service temporarily unavailable, please try again"


class ExamEngineError(Exception):
    """Base class for all domain failures."""

    code: str = "error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(ExamEngineError):
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ExamEngineError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Admin access required"


class NotFound(ExamEngineError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Expired(ExamEngineError):
    """Submission arrived after the deadline; a zero-score attempt was recorded."""

    code = "expired"
    status_code = status.HTTP_410_GONE
    default_message = EXPIRED_MESSAGE


class PersistenceFailure(ExamEngineError):
    code = "persistence_failure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Failed to save submission, please try again"


class ValidationFailure(ExamEngineError):
    code = "validation_error"
    status_code = 422
    default_message = "Invalid input"


class WriteConflict(PersistenceFailure):
    """A uniqueness guard rejected the write; another request got there first."""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Concurrent update, please retry"
