"""Admin routes: answer-key authoring, per-question analytics, score stats."""

from fastapi import APIRouter, Depends, status

from exam_engine.api.deps import get_analytics, get_author, parse_id, require_admin
from exam_engine.db.models import User
from exam_engine.schemas.admin import (
    ExamAnalyticsEntry,
    ExamAnalyticsList,
    ExamAnalyticsRead,
    ExamCreate,
    ExamRead,
    ExamUpdate,
    ExamStatsRead,
    QuestionCreate,
    QuestionRead,
    QuestionStatRead,
)
from exam_engine.services.analytics import AnalyticsAggregator, AnalyticsFailure, ExamAnalytics
from exam_engine.services.answer_key import AnswerKeyAuthor

router = APIRouter()


# ── helpers ───────────────────────────────────────────────────────────────────


def _stat_rows(analytics: ExamAnalytics) -> list[QuestionStatRead]:
    return [QuestionStatRead.model_validate(q) for q in analytics.questions]


# ── 1. Authoring ─────────────────────────────────────────────────────────────


@router.post("/exams", response_model=ExamRead, status_code=status.HTTP_201_CREATED)
def create_exam(
    body: ExamCreate,
    author: AnswerKeyAuthor = Depends(get_author),
    _admin: User = Depends(require_admin),
):
    exam = author.create_exam(
        title=body.title,
        duration_minutes=body.duration_minutes,
        passing_score=body.passing_score,
        timer_mode=body.timer_mode,
        question_time_seconds=body.question_time_seconds,
    )
    return ExamRead.model_validate(exam)


@router.patch("/exams/{exam_id}", response_model=ExamRead)
def update_exam(
    exam_id: str,
    body: ExamUpdate,
    author: AnswerKeyAuthor = Depends(get_author),
    _admin: User = Depends(require_admin),
):
    exam = author.update_exam(
        parse_id(exam_id),
        title=body.title,
        duration_minutes=body.duration_minutes,
        passing_score=body.passing_score,
    )
    return ExamRead.model_validate(exam)


@router.post(
    "/exams/{exam_id}/questions",
    response_model=QuestionRead,
    status_code=status.HTTP_201_CREATED,
)
def add_question(
    exam_id: str,
    body: QuestionCreate,
    author: AnswerKeyAuthor = Depends(get_author),
    _admin: User = Depends(require_admin),
):
    question = author.add_question(
        parse_id(exam_id),
        text=body.text,
        question_type=body.type,
        correct_answer=body.correct_answer,
        options=body.options,
        points=body.points,
    )
    return QuestionRead.model_validate(question)


@router.delete(
    "/exams/{exam_id}/questions/{question_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_question(
    exam_id: str,
    question_id: str,
    author: AnswerKeyAuthor = Depends(get_author),
    _admin: User = Depends(require_admin),
):
    author.delete_question(parse_id(exam_id), parse_id(question_id, "Question"))


# ── 2. Analytics ─────────────────────────────────────────────────────────────


@router.get("/exams/analytics", response_model=ExamAnalyticsList)
def list_exam_analytics(
    aggregator: AnalyticsAggregator = Depends(get_analytics),
    _admin: User = Depends(require_admin),
):
    """Per-question analytics for every exam; failed exams carry ``error``."""
    entries: list[ExamAnalyticsEntry] = []
    for item in aggregator.aggregate_all():
        if isinstance(item, AnalyticsFailure):
            entries.append(
                ExamAnalyticsEntry(exam_id=item.exam_id, title=item.title, error=item.error)
            )
            continue
        entries.append(
            ExamAnalyticsEntry(
                exam_id=item.exam_id,
                title=item.title,
                question_count=item.question_count,
                attempt_count=item.attempt_count,
                questions=_stat_rows(item),
            )
        )
    return ExamAnalyticsList(exams=entries)


@router.get("/exams/{exam_id}/analytics", response_model=ExamAnalyticsRead)
def get_exam_analytics(
    exam_id: str,
    aggregator: AnalyticsAggregator = Depends(get_analytics),
    _admin: User = Depends(require_admin),
):
    analytics = aggregator.aggregate_exam(parse_id(exam_id))
    return ExamAnalyticsRead(
        exam_id=analytics.exam_id,
        title=analytics.title,
        question_count=analytics.question_count,
        attempt_count=analytics.attempt_count,
        questions=_stat_rows(analytics),
    )


@router.get("/exams/{exam_id}/stats", response_model=ExamStatsRead)
def get_exam_stats(
    exam_id: str,
    aggregator: AnalyticsAggregator = Depends(get_analytics),
    _admin: User = Depends(require_admin),
):
    """Score statistics over completed attempts."""
    stats = aggregator.exam_stats(parse_id(exam_id))
    return ExamStatsRead.model_validate(stats)
