"""Exam session payloads: start/resume, autosave, submit."""

import uuid
from datetime import datetime

from exam_engine.schemas.common import CamelModel, SuccessModel


class SessionStartRead(SuccessModel):
    """POST /api/exams/{exam_id}/session"""

    submission_id: uuid.UUID
    started_at: datetime
    deadline: datetime | None = None
    resumed: bool = False


class AnswersSave(CamelModel):
    """PUT /api/exams/{exam_id}/session/answers"""

    answers: dict[str, str | None]


class AnswersSaveRead(SuccessModel):
    saved_count: int


class ExamSubmit(CamelModel):
    """POST /api/exams/{exam_id}/submit with ``{questionId: answer}``."""

    answers: dict[str, str | None] = {}


class QuestionDetailRead(CamelModel):
    """Post-exam review row for one question."""

    question_id: str
    text: str
    options: list[str] = []
    user_answer: str | None = None
    correct_answer: str
    is_correct: bool


class GradeResultRead(SuccessModel):
    score: int  # raw points
    total_points: int
    percentage: int
    passed: bool
    details: list[QuestionDetailRead] = []
