"""Deadline computation for exam attempts.

The deadline is derived from the attempt's ``started_at`` and the exam's
timer configuration on every check; it is never stored.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from exam_engine.config import Settings
from exam_engine.db.models import Exam, TimerModeEnum

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PerQuestionMode(str, enum.Enum):
    CUMULATIVE = "cumulative"
    EXAM_TOTAL = "exam_total"


@dataclass(frozen=True)
class DeadlinePolicy:
    """How each timer mode maps to a server-side deadline."""

    enforce_untimed: bool = False
    per_question: PerQuestionMode = PerQuestionMode.CUMULATIVE

    @classmethod
    def from_settings(cls, settings: Settings) -> "DeadlinePolicy":
        return cls(
            enforce_untimed=settings.DEADLINE_ENFORCE_UNTIMED,
            per_question=PerQuestionMode(settings.DEADLINE_PER_QUESTION_MODE),
        )


def compute_deadline(
    exam: Exam,
    started_at: datetime,
    policy: DeadlinePolicy,
    question_count: int | None = None,
) -> datetime | None:
    """Return the instant after which the attempt can no longer be credited.

    ``None`` means the attempt never expires.
    """
    started_at = ensure_utc(started_at)
    exam_total = started_at + timedelta(minutes=exam.duration_minutes)

    if exam.timer_mode == TimerModeEnum.NONE:
        return exam_total if policy.enforce_untimed else None

    if exam.timer_mode == TimerModeEnum.PER_QUESTION:
        if policy.per_question is PerQuestionMode.CUMULATIVE and exam.question_time_seconds:
            if question_count is None:
                question_count = len(exam.questions)
            return started_at + timedelta(
                seconds=exam.question_time_seconds * question_count
            )
        return exam_total

    return exam_total


def is_expired(deadline: datetime | None, now: datetime) -> bool:
    """``now`` strictly past ``deadline``; the deadline instant itself is in time."""
    if deadline is None:
        return False
    return ensure_utc(now) > ensure_utc(deadline)
