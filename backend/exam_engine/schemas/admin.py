"""Admin payloads: exam authoring, analytics and score statistics."""

import uuid
from datetime import datetime

from exam_engine.db.models import QuestionTypeEnum, TimerModeEnum
from exam_engine.schemas.common import CamelModel, SuccessModel


# ── Authoring ────────────────────────────────────────────────────────────────


class ExamCreate(CamelModel):
    title: str
    duration_minutes: int | None = None
    passing_score: int | None = None
    timer_mode: TimerModeEnum = TimerModeEnum.EXAM_TOTAL
    question_time_seconds: int | None = None


class ExamUpdate(CamelModel):
    """Partial update; omitted fields keep their current value."""

    title: str | None = None
    duration_minutes: int | None = None
    passing_score: int | None = None


class ExamRead(SuccessModel):
    id: uuid.UUID
    title: str
    duration_minutes: int
    passing_score: int
    timer_mode: TimerModeEnum
    question_time_seconds: int | None = None
    created_at: datetime


class QuestionCreate(CamelModel):
    text: str
    type: QuestionTypeEnum = QuestionTypeEnum.MCQ
    options: list[str] | None = None
    correct_answer: str
    points: int | None = None


class QuestionRead(SuccessModel):
    id: uuid.UUID
    exam_id: uuid.UUID
    text: str
    question_type: QuestionTypeEnum
    options: list[str]
    correct_answer: str
    points: int
    position: int


# ── Analytics ────────────────────────────────────────────────────────────────


class QuestionStatRead(CamelModel):
    question_id: str
    text: str
    total_attempts: int
    correct_count: int
    accuracy: int  # 0-100


class ExamAnalyticsRead(SuccessModel):
    exam_id: uuid.UUID
    title: str
    question_count: int
    attempt_count: int
    questions: list[QuestionStatRead] = []


class ExamAnalyticsEntry(CamelModel):
    """One row of the all-exams listing; ``error`` set when aggregation failed."""

    exam_id: uuid.UUID
    title: str
    question_count: int | None = None
    attempt_count: int | None = None
    questions: list[QuestionStatRead] = []
    error: str | None = None


class ExamAnalyticsList(SuccessModel):
    exams: list[ExamAnalyticsEntry] = []


class ExamStatsRead(SuccessModel):
    exam_id: uuid.UUID
    total_submissions: int
    average_score: float
    pass_rate: float
    highest_score: int
    lowest_score: int
