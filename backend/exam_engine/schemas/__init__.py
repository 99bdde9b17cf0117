"""Pydantic schemas, re-exported for convenience."""

from exam_engine.schemas.common import ErrorResponse  # noqa: F401
from exam_engine.schemas.session import (  # noqa: F401
    AnswersSave,
    ExamSubmit,
    GradeResultRead,
    SessionStartRead,
)
from exam_engine.schemas.admin import (  # noqa: F401
    ExamAnalyticsRead,
    ExamStatsRead,
    QuestionStatRead,
)
